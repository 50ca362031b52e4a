"""On-disk layout of a tfhost installation.

    <root>/lib/<platform>/.crashed              crash marker (zero bytes)
    <root>/lib/<platform>/.tensorflowversion    native version record
    <root>/lib/<platform>/...                   live native binaries
    <root>/update/lib/<platform>/...            staged variant awaiting restart
    <root>/models/<model_name>/...              unpacked model archives
    <root>/downloads/<archive>                  downloaded variant archives
"""
from dataclasses import dataclass
from pathlib import Path

CRASH_FILENAME = ".crashed"
VERSION_FILENAME = ".tensorflowversion"
LIB_DIRNAME = "lib"
UPDATE_DIRNAME = "update"
MODELS_DIRNAME = "models"
DOWNLOADS_DIRNAME = "downloads"


@dataclass(frozen=True)
class Layout:
    root: Path
    platform: str

    @property
    def lib_root(self) -> Path:
        return self.root / LIB_DIRNAME

    @property
    def lib_dir(self) -> Path:
        """Directory holding the live native library for this platform."""
        return self.lib_root / self.platform

    @property
    def update_lib_dir(self) -> Path:
        """Directory where an activated variant is staged until the next restart."""
        return self.root / UPDATE_DIRNAME / LIB_DIRNAME / self.platform

    @property
    def crash_file(self) -> Path:
        return self.lib_dir / CRASH_FILENAME

    @property
    def version_file(self) -> Path:
        return self.lib_dir / VERSION_FILENAME

    @property
    def models_dir(self) -> Path:
        return self.root / MODELS_DIRNAME

    @property
    def downloads_dir(self) -> Path:
        return self.root / DOWNLOADS_DIRNAME
