"""Cross-process crash detection for native library loads.

Loading a native library can kill the interpreter outright; no exception is
ever raised. A zero-byte marker file is written immediately before the risky
call and removed immediately after it returns. If the marker is still there
at the next start, the previous attempt crashed the process.
"""
import logging
import os
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class CrashMarker(Protocol):
    def mark_attempt_start(self) -> None: ...

    def mark_attempt_succeeded(self) -> None: ...

    def was_previous_attempt_unclean(self) -> bool: ...


class FileCrashMarker:
    """CrashMarker persisted as a sentinel file (``<root>/lib/<platform>/.crashed``)."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def mark_attempt_start(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # fsync: the process may die right after this call returns.
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)

    def mark_attempt_succeeded(self) -> None:
        self.path.unlink(missing_ok=True)

    def was_previous_attempt_unclean(self) -> bool:
        return self.path.exists()

    def clear(self) -> None:
        """Forget a recorded crash, e.g. after a different variant was installed."""
        if self.path.exists():
            logger.info("Deleting crash marker %s", self.path)
        self.path.unlink(missing_ok=True)
