"""tfhost native library lifecycle: loading, crash detection, variant installation."""
from tfhost.lib.binding import BundledLibrary, LoadOutcome, LoadResult, NativeLibrary
from tfhost.lib.crash import CrashMarker, FileCrashMarker
from tfhost.lib.installer import InstallationHandler, collect_available_versions, select_variant
from tfhost.lib.loader import LibraryLoader
from tfhost.lib.version_record import read_version_record, write_version_record

__all__ = [
    "BundledLibrary",
    "CrashMarker",
    "FileCrashMarker",
    "InstallationHandler",
    "LibraryLoader",
    "LoadOutcome",
    "LoadResult",
    "NativeLibrary",
    "collect_available_versions",
    "read_version_record",
    "select_variant",
    "write_version_record",
]
