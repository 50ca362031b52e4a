"""Runtime configuration: root directory, platform name, bundled module.

Settings come from environment variables so that a host application (or a
test) can point tfhost at a different installation without code changes:

    TFHOST_ROOT            installation root (default: ~/.tfhost)
    TFHOST_PLATFORM        platform name override (default: detected)
    TFHOST_BUNDLED_MODULE  Python module providing the bundled library
"""
import os
import platform as _platform
import sys
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from tfhost.errors import ConfigError

KNOWN_PLATFORMS: frozenset[str] = frozenset({"linux64", "linux32", "win64", "win32", "macosx"})


def current_platform() -> str:
    """Return the platform name used by the variant registry (e.g. ``linux64``)."""
    is_64 = sys.maxsize > 2**32
    if sys.platform.startswith("win"):
        return "win64" if is_64 else "win32"
    if sys.platform == "darwin":
        return "macosx"
    if sys.platform.startswith("linux"):
        return "linux64" if is_64 else "linux32"
    return _platform.system().lower()


def get_root_dir() -> Path:
    """Return the tfhost installation root.

    Respects the TFHOST_ROOT environment variable.
    Falls back to ~/.tfhost when the variable is not set.
    """
    env_val = os.environ.get("TFHOST_ROOT")
    if env_val is not None:
        return Path(env_val).expanduser().resolve()
    return Path.home() / ".tfhost"


class Settings(BaseModel):
    """Validated settings shared by the loader, the resource cache and the installer."""

    root: Path
    platform: str = Field(min_length=1)
    bundled_module: str = Field(default="tensorflow", min_length=1)
    bundled_distribution: Optional[str] = None
    status_interval_s: float = Field(default=0.1, ge=0.0)
    download_timeout_s: float = Field(default=30.0, gt=0.0)
    chunk_size: int = Field(default=64 * 1024, gt=0)


def load_settings(**overrides) -> Settings:
    """Build Settings from the environment, applying keyword overrides last.

    Raises ConfigError when a value fails validation.
    """
    values: dict = {
        "root": get_root_dir(),
        "platform": os.environ.get("TFHOST_PLATFORM") or current_platform(),
    }
    module = os.environ.get("TFHOST_BUNDLED_MODULE")
    if module:
        values["bundled_module"] = module
    values.update(overrides)
    try:
        return Settings(**values)
    except ValidationError as e:
        field_errors = "; ".join(
            f"{' -> '.join(str(x) for x in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(field_errors) from e
