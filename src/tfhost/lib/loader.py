"""LibraryLoader: the one-shot, crash-aware attempt to load TensorFlow.

Status moves from NOT_ATTEMPTED to exactly one of LOADED, CRASHED or FAILED
and stays there for the life of the process. The whole attempt runs under a
lock, so concurrent callers of load_library() wait for the first one and
then see its result.

Order of attempts:

1. A crash marker left over from the previous process means that process
   died inside a load call.
   - With a native version record, the native variant is to blame: its files
     are removed, status becomes CRASHED and only the bundled variant is tried.
   - Without one, the bundled variant is to blame: status becomes CRASHED and
     nothing is loaded at all.
2. Otherwise the native library is tried first. If none is installed, the
   bundled variant is tried. A native library that is present but fails to
   link is FAILED without falling back to the bundled variant.

The crash marker brackets every load call. It survives only if the process
dies inside the call. A filesystem error around the attempt (creating the
marker, removing crashed files) ends it as FAILED.
"""
import logging
import threading
from typing import Optional

from tfhost.errors import VersionRecordError
from tfhost.layout import Layout
from tfhost.lib.binding import LibraryBinding, LoadOutcome, LoadResult
from tfhost.lib.crash import CrashMarker, FileCrashMarker
from tfhost.lib.native_files import promote_staged_update, remove_native_libraries
from tfhost.lib.version_record import has_version_record, read_version_record
from tfhost.models import LibraryStatus, LibraryVariant
from tfhost.progress import LoggingStatusSink, StatusSink

logger = logging.getLogger(__name__)


class LibraryLoader:
    """Owns the process-wide LibraryStatus. Create one per process and pass it around."""

    def __init__(
        self,
        layout: Layout,
        native: LibraryBinding,
        bundled: LibraryBinding,
        crash_marker: Optional[CrashMarker] = None,
        status: Optional[StatusSink] = None,
        apply_staged: bool = True,
    ) -> None:
        self.layout = layout
        self._native = native
        self._bundled = bundled
        self._marker = crash_marker or FileCrashMarker(layout.crash_file)
        self._sink = status or LoggingStatusSink()
        self._apply_staged = apply_staged
        self._lock = threading.Lock()
        self._status = LibraryStatus.not_attempted()

    def load_library(self) -> LibraryStatus:
        """Load TensorFlow once. Later calls return the recorded status without side effects."""
        with self._lock:
            if self._status.tried_loading:
                return self._status
            try:
                status = self._attempt()
            except OSError as exc:
                # Marker or library directory unusable.
                status = LibraryStatus.failed(f"{type(exc).__name__}: {exc}")
            self._status = status
        if status.is_loaded:
            logger.info("TensorFlow loaded: %s", status.info)
        else:
            logger.warning("TensorFlow not loaded (%s): %s", status.kind.value, status.info)
        self._sink.show_status(status.info)
        return status

    def get_status(self) -> LibraryStatus:
        return self._status

    def get_loaded_version(self) -> Optional[LibraryVariant]:
        return self._status.variant

    def _attempt(self) -> LibraryStatus:
        if self._apply_staged:
            try:
                if promote_staged_update(self.layout):
                    logger.info("Activated staged TensorFlow update in %s", self.layout.lib_dir)
            except OSError as exc:
                logger.warning("Could not activate staged TensorFlow update: %s", exc)

        if not self._marker.was_previous_attempt_unclean():
            return self._fresh_attempt()

        if has_version_record(self.layout):
            return self._recover_from_native_crash()

        logger.warning("Crash marker %s found without a native version record", self.layout.crash_file)
        return LibraryStatus.crashed(
            "bundled: loading the bundled TensorFlow library crashed the application during "
            "the previous start; it will not be loaded again. Install a different version "
            "and restart."
        )

    def _recover_from_native_crash(self) -> LibraryStatus:
        try:
            crashed = read_version_record(self.layout)
            crashed_text = str(crashed)
        except VersionRecordError:
            crashed_text = "TF (unknown version)"
        logger.warning("Native %s crashed the application during the previous start", crashed_text)
        remove_native_libraries(self.layout)

        result = self._guarded_load(self._bundled)
        info = (
            f"native: {crashed_text} crashed the application during the previous start "
            f"and was removed."
        )
        if result.outcome is LoadOutcome.LOADED:
            return LibraryStatus.crashed(
                f"{info} Using bundled {result.variant} instead.", result.variant
            )
        if result.outcome is LoadOutcome.LINK_ERROR:
            return LibraryStatus.crashed(f"{info} Bundled library failed to load: {result.message}")
        return LibraryStatus.crashed(f"{info} No bundled library found.")

    def _fresh_attempt(self) -> LibraryStatus:
        self._marker.mark_attempt_start()
        status: Optional[LibraryStatus] = None

        native = self._call(self._native)
        if native.outcome is LoadOutcome.LOADED:
            status = LibraryStatus.loaded(f"native: {native.variant} ({native.message})", native.variant)
        elif native.outcome is LoadOutcome.LINK_ERROR:
            # Present but incompatible: report it rather than silently using another variant.
            status = LibraryStatus.failed(f"native: {native.message}")
        else:
            bundled = self._call(self._bundled)
            if bundled.outcome is LoadOutcome.LOADED:
                status = LibraryStatus.loaded(
                    f"bundled: {bundled.variant} ({bundled.message})", bundled.variant
                )
            elif bundled.outcome is LoadOutcome.LINK_ERROR:
                status = LibraryStatus.failed(f"bundled: {bundled.message}")

        self._marker.mark_attempt_succeeded()
        if status is None:
            status = LibraryStatus.failed("no library found")
        return status

    def _guarded_load(self, binding: LibraryBinding) -> LoadResult:
        self._marker.mark_attempt_start()
        result = self._call(binding)
        self._marker.mark_attempt_succeeded()
        return result

    @staticmethod
    def _call(binding: LibraryBinding) -> LoadResult:
        try:
            return binding.load()
        except Exception as exc:
            # Importing or linking arbitrary native code can raise anything.
            return LoadResult(LoadOutcome.LINK_ERROR, f"{type(exc).__name__}: {exc}")
