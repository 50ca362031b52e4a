"""Disk-backed cache of unpacked model archives plus in-memory artifact maps.

On-disk layout
--------------
Each model archive is unpacked once into ``<root>/models/<model_name>/``.
The directory's existence is the cache-hit test; it is never revalidated or
re-unpacked. To make that safe, an archive is first unpacked into a hidden
sibling ``.<model_name>.partial-XXXX`` directory which is renamed into place
only after every entry was written, so a process killed mid-unpack never
leaves a ``<model_name>`` directory behind. Leftover partial directories are
removed by the next install of the same model.

Install record
--------------
Every installed model directory holds ``.install.msgpack``::

    {
        "source": "https://.../inception5h.zip",
        "kind": "zip",
        "entries": 3,
        "bytes_written": 97114372,
        "installed_at": 1709123456.789
    }

Concurrency
-----------
Installation is single-flight per model name: concurrent callers missing
the cache for the same model wait for one download+unpack and share its
result. Artifact parsing is single-flight per artifact key in the same way.
The artifact maps are guarded by a lock and are append-only until dispose().
"""
import logging
import os
import shutil
import tempfile
import threading
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

import msgpack
from pydantic import TypeAdapter, ValidationError

from tfhost.errors import PathTraversalError, ResourceNotFoundError
from tfhost.fetch import Fetcher, Source, source_name
from tfhost.progress import LoggingStatusSink, StatusSink, ThrottledProgress
from tfhost.resources.artifacts import ArtifactKind, Graph, ModelBundle, read_labels
from tfhost.resources.singleflight import SingleFlight
from tfhost.unpack import detect_archive_kind, resolve_inside, unpack

logger = logging.getLogger(__name__)

INSTALL_RECORD_FILENAME = ".install.msgpack"

GraphFactory = Callable[[bytes], Any]
BundleFactory = Callable[[Path, Sequence[str]], Any]


@dataclass
class InstallRecord:
    source: str
    kind: str
    entries: int
    bytes_written: int
    installed_at: float


_record_adapter: TypeAdapter[InstallRecord] = TypeAdapter(InstallRecord)


def read_install_record(model_dir: Path) -> Optional[InstallRecord]:
    """Return the install record of ``model_dir``, or None if missing or corrupt."""
    path = model_dir / INSTALL_RECORD_FILENAME
    if not path.exists():
        return None
    try:
        payload = msgpack.unpackb(path.read_bytes(), raw=False, strict_map_key=False)
        return _record_adapter.validate_python(payload)
    except (OSError, ValueError, ValidationError, msgpack.UnpackException):
        return None


def _write_install_record(model_dir: Path, record: InstallRecord) -> None:
    data = msgpack.packb(asdict(record), use_bin_type=True)
    (model_dir / INSTALL_RECORD_FILENAME).write_bytes(data)


def _check_model_name(models_dir: Path, model_name: str) -> None:
    if (
        not model_name
        or model_name.startswith(".")
        or "/" in model_name
        or "\\" in model_name
    ):
        raise PathTraversalError(model_name, models_dir)


class ResourceCache:
    """Models, graphs and labels loaded from remote archives, cached on disk and in memory.

    Usage::

        cache = ResourceCache(layout.models_dir, HttpFetcher())
        graph = cache.load_graph(url, "inception5h", "tensorflow_inception_graph.pb")
        labels = cache.load_labels(url, "inception5h", "imagenet_comp_graph_label_strings.txt")
        ...
        cache.dispose()
    """

    def __init__(
        self,
        models_dir: Path,
        fetcher: Fetcher,
        status: Optional[StatusSink] = None,
        status_interval_s: float = 0.1,
        graph_factory: GraphFactory = Graph,
        bundle_factory: BundleFactory = ModelBundle,
    ) -> None:
        self.models_dir = models_dir
        self._fetcher = fetcher
        self._sink = status or LoggingStatusSink()
        self._status_interval_s = status_interval_s
        self._graph_factory = graph_factory
        self._bundle_factory = bundle_factory

        self._lock = threading.Lock()
        self._models: dict[str, Any] = {}
        self._graphs: dict[str, Any] = {}
        self._labels: dict[str, list[str]] = {}
        self._generation = 0
        self._installs: SingleFlight[Path] = SingleFlight()
        self._artifacts: SingleFlight[Any] = SingleFlight()

    # -- disk cache ---------------------------------------------------------

    def ensure_installed(
        self,
        source: Source,
        model_name: str,
        cancel: Optional[threading.Event] = None,
    ) -> Path:
        """Return the directory holding the unpacked archive for ``model_name``.

        Downloads and unpacks ``source`` on the first call for a model name; an
        existing directory is returned as is.

        Raises:
            ResourceNotFoundError, DownloadError: the source cannot be fetched.
            ArchiveError, PathTraversalError: the archive cannot be unpacked safely.
        """
        _check_model_name(self.models_dir, model_name)
        model_dir = self.models_dir / model_name
        if model_dir.is_dir():
            return model_dir
        return self._installs.do(model_name, lambda: self._install(source, model_name, cancel))

    def _install(self, source: Source, model_name: str, cancel: Optional[threading.Event]) -> Path:
        model_dir = self.models_dir / model_name
        # A previous flight may have finished between the check and this call.
        if model_dir.is_dir():
            return model_dir
        self.models_dir.mkdir(parents=True, exist_ok=True)
        self._remove_partials(model_name)

        name = source_name(source)
        progress = ThrottledProgress(self._sink, self._status_interval_s)
        try:
            data = self._fetcher.fetch_bytes(source, progress=progress, cancel=cancel)
            kind = detect_archive_kind(name, data[:4])
            partial = Path(tempfile.mkdtemp(prefix=f".{model_name}.partial-", dir=self.models_dir))
            try:
                result = unpack(
                    data, partial, kind=kind, link_base=model_dir, progress=progress, name=name
                )
                _write_install_record(
                    partial,
                    InstallRecord(
                        source=os.fspath(source),
                        kind=kind.value,
                        entries=result.entries,
                        bytes_written=result.bytes_written,
                        installed_at=time.time(),
                    ),
                )
                os.replace(partial, model_dir)
            except BaseException:
                shutil.rmtree(partial, ignore_errors=True)
                raise
        finally:
            progress.clear()
        logger.info("Installed model '%s' into %s", model_name, model_dir)
        return model_dir

    def _remove_partials(self, model_name: str) -> None:
        for stale in self.models_dir.glob(f".{model_name}.partial-*"):
            logger.info("Removing incomplete install %s", stale)
            shutil.rmtree(stale, ignore_errors=True)

    def installed_models(self) -> list[tuple[str, Optional[InstallRecord]]]:
        """Return (model name, install record) for every installed model, sorted by name."""
        if not self.models_dir.is_dir():
            return []
        return [
            (entry.name, read_install_record(entry))
            for entry in sorted(self.models_dir.iterdir())
            if entry.is_dir() and not entry.name.startswith(".")
        ]

    # -- artifacts ----------------------------------------------------------

    def load(
        self,
        kind: ArtifactKind,
        source: Source,
        model_name: str,
        resource: Union[str, Sequence[str]] = (),
    ) -> Any:
        """Load an artifact of ``kind``; ``resource`` is a path in the archive, or the tags of a model bundle."""
        if kind is ArtifactKind.MODEL:
            tags = [resource] if isinstance(resource, str) else list(resource)
            return self.load_model(source, model_name, *tags)
        if not isinstance(resource, str):
            raise TypeError(f"{kind.value} artifacts need a resource path, got {resource!r}")
        if kind is ArtifactKind.GRAPH:
            return self.load_graph(source, model_name, resource)
        if kind is ArtifactKind.LABELS:
            return self.load_labels(source, model_name, resource)
        return self.load_file(source, model_name, resource)

    def load_model(self, source: Source, model_name: str, *tags: str) -> Any:
        """Return the saved model bundle of ``model_name`` loaded with ``tags``.

        A cached bundle that a caller closed is loaded again.
        """
        key = f"{model_name}/{list(tags)}"
        with self._lock:
            bundle = self._models.get(key)
        if bundle is not None and not getattr(bundle, "closed", False):
            return bundle

        def build() -> Any:
            with self._lock:
                current = self._models.get(key)
            if current is not None and not getattr(current, "closed", False):
                return current
            model_dir = self.ensure_installed(source, model_name)
            loaded = self._bundle_factory(model_dir, tags)
            with self._lock:
                self._models[key] = loaded
            return loaded

        return self._artifacts.do(f"model:{key}", build)

    def load_graph(self, source: Source, model_name: str, graph_path: str) -> Any:
        """Return the graph stored at ``graph_path`` inside the model archive."""
        key = f"{model_name}/{graph_path}"

        def build() -> Any:
            data = self._resource_path(source, model_name, graph_path).read_bytes()
            return self._graph_factory(data)

        return self._cached(self._graphs, f"graph:{key}", key, build)

    def load_labels(self, source: Source, model_name: str, labels_path: str) -> list[str]:
        """Return the lines of the labels file at ``labels_path`` inside the model archive."""
        key = f"{model_name}/{labels_path}"

        def build() -> list[str]:
            return read_labels(self._resource_path(source, model_name, labels_path))

        return self._cached(self._labels, f"labels:{key}", key, build)

    def load_file(self, source: Source, model_name: str, file_path: str) -> Path:
        """Return the path of ``file_path`` inside the installed model directory."""
        return self._resource_path(source, model_name, file_path)

    def _resource_path(self, source: Source, model_name: str, resource_path: str) -> Path:
        model_dir = self.ensure_installed(source, model_name)
        path = resolve_inside(model_dir, resource_path)
        if not path.is_file():
            raise ResourceNotFoundError(
                f"{model_name}/{resource_path}", f"no such file in {model_dir}"
            )
        return path

    def _cached(self, store: dict, flight_key: str, key: str, build: Callable[[], Any]) -> Any:
        with self._lock:
            if key in store:
                return store[key]

        def build_and_store() -> Any:
            with self._lock:
                if key in store:
                    return store[key]
                generation = self._generation
            value = build()
            with self._lock:
                # Built across a dispose(): hand it to the caller without caching it.
                if generation == self._generation:
                    store[key] = value
            return value

        return self._artifacts.do(flight_key, build_and_store)

    # -- lifecycle ----------------------------------------------------------

    def dispose(self) -> None:
        """Close and forget every in-memory artifact. Installed directories stay on disk.

        An artifact still being built while this runs is returned to its caller
        but not cached, so the caller owns it.
        """
        with self._lock:
            self._generation += 1
            resources = list(self._models.values()) + list(self._graphs.values())
            self._models.clear()
            self._graphs.clear()
            self._labels.clear()
        for resource in resources:
            close = getattr(resource, "close", None)
            if close is not None and not getattr(resource, "closed", False):
                close()
