"""NativeVersionRecord: which native TensorFlow variant is installed in lib/<platform>.

The record is a single comma-separated line::

    linux64,1.13.1,GPU,10.0,7.4
    win64,1.15.0,CPU

Fields: platform, version, GPU|CPU|? and, only when at least one is known,
the compatible CUDA and CuDNN versions ("?" for an unknown one).
"""
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional

from tfhost.errors import VersionRecordError
from tfhost.layout import Layout
from tfhost.models import LibraryVariant

logger = logging.getLogger(__name__)

_UNKNOWN = "?"


def format_version_record(platform: str, variant: LibraryVariant) -> str:
    """Return the record line for ``variant`` installed on ``platform``."""
    if variant.uses_gpu is None:
        mode = _UNKNOWN
    else:
        mode = "GPU" if variant.uses_gpu else "CPU"
    parts = [platform, variant.version, mode]
    if variant.cuda is not None or variant.cudnn is not None:
        parts.append(variant.cuda if variant.cuda is not None else _UNKNOWN)
        parts.append(variant.cudnn if variant.cudnn is not None else _UNKNOWN)
    return ",".join(parts)


def parse_version_record(text: str, path: Path) -> LibraryVariant:
    """Parse a record line. Raises VersionRecordError when it has the wrong shape."""
    parts = [p.strip() for p in text.strip().split(",")]
    if len(parts) not in (3, 5) or not parts[0] or not parts[1]:
        raise VersionRecordError(path, f"expected 3 or 5 comma-separated fields, got {text.strip()!r}")
    platform, version, mode = parts[0], parts[1], parts[2].lower()
    if mode == "gpu":
        uses_gpu: Optional[bool] = True
    elif mode == "cpu":
        uses_gpu = False
    elif mode == _UNKNOWN:
        uses_gpu = None
    else:
        raise VersionRecordError(path, f"unknown mode {parts[2]!r}, expected GPU, CPU or ?")
    cuda = cudnn = None
    if len(parts) == 5:
        cuda = None if parts[3] == _UNKNOWN else parts[3]
        cudnn = None if parts[4] == _UNKNOWN else parts[4]
    return LibraryVariant(
        version=version,
        uses_gpu=uses_gpu,
        cuda=cuda,
        cudnn=cudnn,
        platform=platform,
        origin=str(path.parent),
    )


def has_version_record(layout: Layout) -> bool:
    return layout.version_file.exists()


def read_version_record(layout: Layout) -> Optional[LibraryVariant]:
    """Return the installed native variant, or None if no record exists.

    Raises VersionRecordError if the record exists but cannot be parsed.
    """
    path = layout.version_file
    if not path.exists():
        return None
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise VersionRecordError(path, str(e)) from e
    return parse_version_record(text, path)


def write_version_record(layout: Layout, variant: LibraryVariant) -> Path:
    """Atomically write the record for ``variant`` to ``<root>/lib/<platform>/.tensorflowversion``."""
    path = layout.version_file
    path.parent.mkdir(parents=True, exist_ok=True)
    data = format_version_record(variant.platform or layout.platform, variant).encode("utf-8")
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".version.tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise
    logger.info("Recorded native version %s in %s", variant, path)
    return path
