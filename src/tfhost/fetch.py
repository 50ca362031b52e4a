"""Blocking, interruptible byte fetch for model and library archives.

Sources may be http(s) URLs (streamed with requests), ``file://`` URLs or
plain local paths. Every transfer reads in bounded chunks, reports progress
through an optional callback and checks an optional cancel event between
chunks. A cancelled transfer raises DownloadCancelledError and never leaves
a partial file behind: file downloads go to a temp file in the destination
directory and are moved into place with os.replace() only when complete.
"""
import io
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import BinaryIO, Generator, Optional, Protocol, Union
from urllib.parse import unquote, urlparse

import requests

from tfhost.errors import DownloadCancelledError, DownloadError, ResourceNotFoundError
from tfhost.progress import ProgressCallback

logger = logging.getLogger(__name__)

Source = Union[str, os.PathLike]

DEFAULT_CHUNK_SIZE = 64 * 1024


class Fetcher(Protocol):
    def fetch_bytes(
        self,
        source: Source,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> bytes: ...

    def fetch_to_file(
        self,
        source: Source,
        dest: Path,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Path: ...


def source_name(source: Source) -> str:
    """Return the last path component of a URL or local path ("a/b/model.zip" -> "model.zip")."""
    text = os.fspath(source)
    parsed = urlparse(text)
    if parsed.scheme in ("http", "https", "file"):
        text = unquote(parsed.path)
    return text.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]


def local_path_of(source: Source) -> Optional[Path]:
    """Return the filesystem path for ``file://`` URLs and plain paths, None for remote URLs."""
    if isinstance(source, os.PathLike):
        return Path(source)
    parsed = urlparse(source)
    if parsed.scheme == "file":
        return Path(unquote(parsed.path))
    # Single-letter schemes are Windows drive letters ("C:\\models\\x.zip").
    if parsed.scheme == "" or len(parsed.scheme) == 1:
        return Path(source)
    return None


class HttpFetcher:
    """Fetcher backed by a requests.Session for remote sources and plain file reads otherwise."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout_s: float = 30.0,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        self._session = session or requests.Session()
        self._timeout_s = timeout_s
        self._chunk_size = chunk_size

    def fetch_bytes(
        self,
        source: Source,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> bytes:
        """Download ``source`` completely into memory and return its bytes."""
        buffer = io.BytesIO()
        self._copy(source, buffer, progress, cancel)
        return buffer.getvalue()

    def fetch_to_file(
        self,
        source: Source,
        dest: Path,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[threading.Event] = None,
    ) -> Path:
        """Download ``source`` to ``dest`` atomically, replacing any existing file."""
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=dest.parent, suffix=".download.tmp")
        try:
            with os.fdopen(fd, "wb") as out:
                self._copy(source, out, progress, cancel)
                out.flush()
                os.fsync(out.fileno())
            os.replace(tmp_path, dest)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        return dest

    def _copy(
        self,
        source: Source,
        out: BinaryIO,
        progress: Optional[ProgressCallback],
        cancel: Optional[threading.Event],
    ) -> None:
        name = source_name(source)
        total, chunks = self._open(source)
        done = 0
        logger.info("Downloading %s", os.fspath(source))
        try:
            for chunk in chunks:
                if cancel is not None and cancel.is_set():
                    raise DownloadCancelledError(os.fspath(source))
                out.write(chunk)
                done += len(chunk)
                if progress is not None:
                    progress(done, total, f"Downloading {name}")
        finally:
            chunks.close()

    def _open(self, source: Source) -> tuple[int, Generator[bytes, None, None]]:
        path = local_path_of(source)
        if path is not None:
            if not path.is_file():
                raise ResourceNotFoundError(str(path), "local source file does not exist")
            return path.stat().st_size, _iter_file(path, self._chunk_size)

        url = os.fspath(source)
        try:
            r = self._session.get(url, stream=True, timeout=self._timeout_s)
        except requests.RequestException as exc:
            raise DownloadError(url, str(exc)) from exc
        if r.status_code == 404:
            r.close()
            raise ResourceNotFoundError(url, "server answered 404 Not Found")
        try:
            r.raise_for_status()
        except requests.HTTPError as exc:
            r.close()
            raise DownloadError(url, str(exc)) from exc
        total = int(r.headers.get("Content-Length") or -1)
        return total, _iter_response(r, url, self._chunk_size)


def _iter_file(path: Path, chunk_size: int) -> Generator[bytes, None, None]:
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            yield chunk


def _iter_response(r: requests.Response, url: str, chunk_size: int) -> Generator[bytes, None, None]:
    try:
        for chunk in r.iter_content(chunk_size=chunk_size):
            if chunk:
                yield chunk
    except requests.RequestException as exc:
        raise DownloadError(url, str(exc)) from exc
    finally:
        r.close()
