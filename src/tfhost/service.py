"""TensorFlowService: one object per process wiring the loader, cache and installer.

Usage::

    service = TensorFlowService.from_settings(load_settings())
    status = service.load_library()
    if status.library_available:
        graph = service.load_graph(INCEPTION_URL, "inception5h", "tensorflow_inception_graph.pb")
"""
import logging
import threading
from pathlib import Path
from typing import Any, Optional, Sequence, Union

from tfhost.config import Settings, load_settings
from tfhost.errors import VersionRecordError
from tfhost.fetch import Fetcher, HttpFetcher, Source
from tfhost.layout import Layout
from tfhost.lib.binding import BundledLibrary, LibraryBinding, NativeLibrary
from tfhost.lib.installer import InstallationHandler
from tfhost.lib.loader import LibraryLoader
from tfhost.lib.version_record import read_version_record
from tfhost.models import LibraryStatus, LibraryVariant
from tfhost.progress import StatusSink
from tfhost.resources.artifacts import ArtifactKind
from tfhost.resources.cache import ResourceCache

logger = logging.getLogger(__name__)


class TensorFlowService:
    def __init__(
        self,
        settings: Settings,
        fetcher: Optional[Fetcher] = None,
        status: Optional[StatusSink] = None,
        native: Optional[LibraryBinding] = None,
        bundled: Optional[BundledLibrary] = None,
        **cache_options: Any,
    ) -> None:
        self.settings = settings
        self.layout = Layout(settings.root, settings.platform)
        self.fetcher = fetcher or HttpFetcher(
            timeout_s=settings.download_timeout_s, chunk_size=settings.chunk_size
        )
        self.bundled = bundled or BundledLibrary(
            settings.bundled_module, settings.bundled_distribution, settings.platform
        )
        self.loader = LibraryLoader(
            self.layout, native or NativeLibrary(self.layout), self.bundled, status=status
        )
        self.cache = ResourceCache(
            self.layout.models_dir,
            self.fetcher,
            status=status,
            status_interval_s=settings.status_interval_s,
            **cache_options,
        )
        self.installer = InstallationHandler(
            self.layout, self.fetcher, status=status, status_interval_s=settings.status_interval_s
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs: Any) -> "TensorFlowService":
        return cls(settings or load_settings(), **kwargs)

    # -- library ------------------------------------------------------------

    def load_library(self) -> LibraryStatus:
        return self.loader.load_library()

    def get_status(self) -> LibraryStatus:
        return self.loader.get_status()

    def get_loaded_version(self) -> Optional[LibraryVariant]:
        return self.loader.get_loaded_version()

    def active_version(self) -> Optional[LibraryVariant]:
        """The variant loaded in this process, else the native variant recorded on disk."""
        loaded = self.get_loaded_version()
        if loaded is not None:
            return loaded
        try:
            return read_version_record(self.layout)
        except VersionRecordError as exc:
            logger.warning("%s", exc)
            return None

    def available_versions(self) -> list[LibraryVariant]:
        bundled = self.bundled.describe() if self.bundled.is_installed() else None
        return self.installer.available_versions(self.active_version(), bundled)

    def activate_version(
        self, variant: LibraryVariant, cancel: Optional[threading.Event] = None
    ) -> LibraryVariant:
        """Install ``variant`` for the next start. The library loaded in this process is unchanged."""
        return self.installer.activate_version(variant, active=self.active_version(), cancel=cancel)

    # -- resources ----------------------------------------------------------

    def ensure_installed(
        self, source: Source, model_name: str, cancel: Optional[threading.Event] = None
    ) -> Path:
        return self.cache.ensure_installed(source, model_name, cancel)

    def load(
        self,
        kind: ArtifactKind,
        source: Source,
        model_name: str,
        resource: Union[str, Sequence[str]] = (),
    ) -> Any:
        return self.cache.load(kind, source, model_name, resource)

    def load_model(self, source: Source, model_name: str, *tags: str) -> Any:
        return self.cache.load_model(source, model_name, *tags)

    def load_graph(self, source: Source, model_name: str, graph_path: str) -> Any:
        return self.cache.load_graph(source, model_name, graph_path)

    def load_labels(self, source: Source, model_name: str, labels_path: str) -> list[str]:
        return self.cache.load_labels(source, model_name, labels_path)

    def load_file(self, source: Source, model_name: str, file_path: str) -> Path:
        return self.cache.load_file(source, model_name, file_path)

    def dispose(self) -> None:
        self.cache.dispose()
