"""Download, stage and record TensorFlow variants picked by the user.

A native library that is loaded cannot be replaced in place, so activation
never touches ``<root>/lib/<platform>/`` binaries directly. The archive is
unpacked into a hidden sibling of ``<root>/update/lib/<platform>/``, renamed
into place once complete, and then the native version record is written.
The loader promotes the staged files on the next start.
"""
import logging
import os
import shutil
import tempfile
import threading
from dataclasses import replace
from pathlib import Path
from typing import Iterable, Optional

from tfhost.errors import ResourceNotFoundError, UnknownVersionError
from tfhost.fetch import Fetcher, local_path_of, source_name
from tfhost.layout import Layout
from tfhost.lib import registry
from tfhost.lib.crash import FileCrashMarker
from tfhost.lib.native_files import clear_staged_update, remove_native_libraries
from tfhost.lib.version_record import write_version_record
from tfhost.models import LibraryVariant
from tfhost.progress import LoggingStatusSink, StatusSink, ThrottledProgress
from tfhost.unpack import unpack

logger = logging.getLogger(__name__)


class InstallationHandler:
    def __init__(
        self,
        layout: Layout,
        fetcher: Fetcher,
        status: Optional[StatusSink] = None,
        status_interval_s: float = 0.1,
    ) -> None:
        self.layout = layout
        self._fetcher = fetcher
        self._sink = status or LoggingStatusSink()
        self._status_interval_s = status_interval_s
        self._crash_marker = FileCrashMarker(layout.crash_file)

    def update_cache_status(self, variant: LibraryVariant) -> LibraryVariant:
        """Return ``variant`` with ``local_path`` set if its archive is available locally."""
        if variant.bundled or variant.origin is None:
            return variant
        local = local_path_of(variant.origin)
        if local is not None:
            return replace(variant, local_path=str(local)) if local.is_file() else variant
        cached = self.layout.downloads_dir / source_name(variant.origin)
        if cached.is_file():
            return replace(variant, local_path=str(cached))
        return variant

    def activate_version(
        self,
        variant: LibraryVariant,
        active: Optional[LibraryVariant] = None,
        cancel: Optional[threading.Event] = None,
    ) -> LibraryVariant:
        """Make ``variant`` the library used after the next restart.

        Args:
            variant: The variant to activate.
            active: The variant loaded in this process, if any. Re-activating it
                only discards a pending staged update.
            cancel: Set to abort a running download.

        Returns:
            The variant as installed (with its cached archive path).

        Raises:
            ResourceNotFoundError, DownloadError: the archive cannot be fetched.
            ArchiveError, PathTraversalError: the archive cannot be unpacked safely.
        """
        if variant.bundled:
            self._install_bundled(variant)
            return variant
        if active is not None and variant == active:
            logger.info("%s is already active", variant)
            clear_staged_update(self.layout)
            return variant
        if not variant.is_cached:
            self._download(variant, cancel)
        variant = self.update_cache_status(variant)
        if not variant.is_cached:
            raise ResourceNotFoundError(str(variant), "archive is missing after download")
        self._install(variant)
        return variant

    def _download(self, variant: LibraryVariant, cancel: Optional[threading.Event]) -> Path:
        if variant.origin is None:
            raise ResourceNotFoundError(str(variant), "variant has no download location")
        dest = self.layout.downloads_dir / source_name(variant.origin)
        logger.info("Downloading %s to %s", variant.origin, dest)
        progress = ThrottledProgress(self._sink, self._status_interval_s)
        try:
            return self._fetcher.fetch_to_file(variant.origin, dest, progress=progress, cancel=cancel)
        finally:
            progress.clear()

    def _install(self, variant: LibraryVariant) -> None:
        logger.info("Installing %s", variant)
        self._sink.show_status(f"Installing {variant}")
        staged = self.layout.update_lib_dir
        staged.parent.mkdir(parents=True, exist_ok=True)
        for stale in staged.parent.glob(f".{staged.name}.partial-*"):
            logger.info("Removing incomplete staging %s", stale)
            shutil.rmtree(stale, ignore_errors=True)

        # Unpack next to the staging directory; a failed unpack leaves any
        # previous staged update and version record as they were.
        partial = Path(tempfile.mkdtemp(prefix=f".{staged.name}.partial-", dir=staged.parent))
        progress = ThrottledProgress(self._sink, self._status_interval_s)
        try:
            unpack(Path(variant.local_path), partial, link_base=self.layout.lib_dir, progress=progress)
            clear_staged_update(self.layout)
            os.replace(partial, staged)
        except BaseException:
            shutil.rmtree(partial, ignore_errors=True)
            raise
        finally:
            progress.clear()

        try:
            write_version_record(self.layout, replace(variant, platform=variant.platform or self.layout.platform))
        except BaseException:
            clear_staged_update(self.layout)
            raise
        self._crash_marker.clear()

    def _install_bundled(self, variant: LibraryVariant) -> None:
        logger.info("Using bundled TensorFlow version %s", variant)
        clear_staged_update(self.layout)
        remove_native_libraries(self.layout)
        self._crash_marker.clear()
        self._sink.clear_status()

    def available_versions(
        self,
        current: Optional[LibraryVariant] = None,
        bundled: Optional[LibraryVariant] = None,
    ) -> list[LibraryVariant]:
        """List the variants the user can choose from on this platform. See collect_available_versions()."""
        candidates: list[LibraryVariant] = []
        if current is not None:
            candidates.append(current)
        if bundled is not None:
            candidates.append(bundled)
        candidates.extend(sorted(
            registry.available_variants(self.layout.platform),
            key=lambda v: (v.version_key(), bool(v.uses_gpu)),
            reverse=True,
        ))
        return collect_available_versions(
            self.layout.platform, (self.update_cache_status(v) for v in candidates)
        )


def collect_available_versions(platform: str, candidates: Iterable[LibraryVariant]) -> list[LibraryVariant]:
    """Merge candidate variants for ``platform``, first occurrence wins.

    Variants for other platforms are dropped (a variant without a platform is
    taken to be for this one). A later candidate equal to an earlier one
    fills in the earlier one's missing fields instead of being listed twice.
    """
    merged: list[LibraryVariant] = []
    for variant in candidates:
        if variant.platform is None:
            variant = replace(variant, platform=platform)
        if variant.platform != platform:
            continue
        for i, existing in enumerate(merged):
            if existing == variant:
                merged[i] = existing.harvest(variant)
                break
        else:
            merged.append(variant)
    return merged


def select_variant(
    versions: Iterable[LibraryVariant],
    version: str,
    uses_gpu: Optional[bool],
    platform: str,
) -> LibraryVariant:
    """Pick the listed variant with ``version`` (and GPU flag, when given)."""
    matches = [
        v for v in versions
        if v.version == version and (uses_gpu is None or v.uses_gpu == uses_gpu)
    ]
    if not matches:
        requested = version if uses_gpu is None else f"{version} {'GPU' if uses_gpu else 'CPU'}"
        raise UnknownVersionError(requested, platform)
    # Prefer the CPU build when the GPU flag was not specified.
    return sorted(matches, key=lambda v: bool(v.uses_gpu))[0]
