"""Status and progress reporting for downloads, unpacking and installation.

The host application supplies a StatusSink (a status bar, a Rich progress
bar, a log). Progress callbacks run on the downloading/unpacking thread, so
ThrottledProgress drops updates that arrive faster than the configured
interval instead of stalling the transfer.
"""
import logging
import threading
import time
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)

# (bytes_so_far, total_bytes, message); total_bytes is -1 when unknown.
ProgressCallback = Callable[[int, int, str], None]


class StatusSink(Protocol):
    def show_status(self, message: str) -> None: ...

    def show_progress(self, current: int, maximum: int, message: str) -> None: ...

    def clear_status(self) -> None: ...


class LoggingStatusSink:
    """Default sink: status messages go to the log, progress updates to DEBUG."""

    def __init__(self, log: Optional[logging.Logger] = None) -> None:
        self._log = log or logger

    def show_status(self, message: str) -> None:
        self._log.info(message)

    def show_progress(self, current: int, maximum: int, message: str) -> None:
        self._log.debug("%s (%d/%d)", message, current, maximum)

    def clear_status(self) -> None:
        pass


def format_percent(current: int, maximum: int) -> str:
    """Format current/maximum as a percentage with at most two decimals ("12.5%")."""
    if maximum <= 0:
        return "?%"
    percent = round(100.0 * current / maximum, 2)
    return f"{percent:g}%"


class ThrottledProgress:
    """Adapt a StatusSink to a ProgressCallback, emitting at most one update per interval.

    Usage::

        progress = ThrottledProgress(sink, interval_s=0.1)
        unpack(archive, dest, progress=progress)
        progress.clear()
    """

    def __init__(
        self,
        sink: StatusSink,
        interval_s: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sink = sink
        self._interval_s = interval_s
        self._clock = clock
        self._last_update: Optional[float] = None
        self._lock = threading.Lock()

    def __call__(self, current: int, maximum: int, message: str) -> None:
        now = self._clock()
        with self._lock:
            if self._last_update is not None and now < self._last_update + self._interval_s:
                return
            self._last_update = now
        self._sink.show_progress(current, maximum, f"{message}: {format_percent(current, maximum)}")

    def status(self, message: str) -> None:
        self._sink.show_status(message)

    def clear(self) -> None:
        self._sink.clear_status()
