from pathlib import Path


class TfHostError(Exception):
    """Base class for all tfhost errors."""


class ArchiveError(TfHostError, OSError):
    def __init__(self, archive: str, detail: str) -> None:
        super().__init__(
            f"Cannot unpack archive '{archive}'.\n"
            f"  Cause: {detail}\n"
            f"  Check: Is the download complete? Is it a valid ZIP or TAR.GZ file?"
        )
        self.archive = archive
        self.detail = detail


class PathTraversalError(TfHostError):
    def __init__(self, entry: str, base_dir: Path) -> None:
        super().__init__(
            f"Archive entry '{entry}' escapes the directory '{base_dir}'.\n"
            f"  Cause: the entry path resolves outside of the extraction target.\n"
            f"  Check: Is the archive from a trusted source? Nothing was written for this entry."
        )
        self.entry = entry
        self.base_dir = base_dir


class ResourceNotFoundError(TfHostError, FileNotFoundError):
    def __init__(self, resource: str, detail: str) -> None:
        super().__init__(
            f"Resource '{resource}' not found.\n"
            f"  Cause: {detail}\n"
            f"  Check: Does the archive contain this path? Is the source location reachable?"
        )
        self.resource = resource
        self.detail = detail


class DownloadError(TfHostError, OSError):
    def __init__(self, source: str, detail: str) -> None:
        super().__init__(
            f"Failed to download '{source}'.\n"
            f"  Cause: {detail}\n"
            f"  Check: Is the network available? Is the URL still valid?"
        )
        self.source = source
        self.detail = detail


class DownloadCancelledError(DownloadError):
    def __init__(self, source: str) -> None:
        super().__init__(source, "download was cancelled; partial data discarded")


class VersionRecordError(TfHostError):
    def __init__(self, path: Path, detail: str) -> None:
        super().__init__(
            f"Native version record '{path.name}' is malformed.\n"
            f"  Cause: {detail}\n"
            f"  Check: Expected 'platform,version,GPU|CPU[,cuda,cudnn]'. Re-activate the version to rewrite it."
        )
        self.path = path
        self.detail = detail


class ConfigError(TfHostError):
    def __init__(self, detail: str) -> None:
        super().__init__(
            f"Invalid tfhost configuration.\n"
            f"  Cause: {detail}\n"
            f"  Check: TFHOST_ROOT, TFHOST_PLATFORM and TFHOST_BUNDLED_MODULE environment variables."
        )
        self.detail = detail


class UnknownVersionError(TfHostError):
    def __init__(self, requested: str, platform: str) -> None:
        super().__init__(
            f"No TensorFlow variant '{requested}' is available for platform '{platform}'.\n"
            f"  Tip: Run `tfhost versions` to list the variants that can be activated."
        )
        self.requested = requested
        self.platform = platform
