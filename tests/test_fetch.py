"""Unit tests for tfhost.fetch. HTTP is served by a mocked requests.Session."""

import threading
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import requests

from tfhost.errors import DownloadCancelledError, DownloadError, ResourceNotFoundError
from tfhost.fetch import HttpFetcher, local_path_of, source_name


def make_response(chunks, status_code=200, content_length=None):
    r = MagicMock()
    r.status_code = status_code
    r.headers = {} if content_length is None else {"Content-Length": str(content_length)}
    r.iter_content.return_value = iter(chunks)
    if status_code >= 400:
        r.raise_for_status.side_effect = requests.HTTPError(f"{status_code} Server Error")
    return r


def make_session(response):
    session = MagicMock(spec=requests.Session)
    session.get.return_value = response
    return session


class TestSourceHelpers:
    @pytest.mark.parametrize(
        "source, expected",
        [
            ("https://storage.googleapis.com/download.tensorflow.org/models/inception5h.zip", "inception5h.zip"),
            ("file:///tmp/models/my%20model.zip", "my model.zip"),
            ("/tmp/models/model.tar.gz", "model.tar.gz"),
            (Path("/tmp/x/lib.tgz"), "lib.tgz"),
        ],
    )
    def test_source_name(self, source, expected):
        assert source_name(source) == expected

    def test_local_path_of(self):
        assert local_path_of("file:///tmp/a.zip") == Path("/tmp/a.zip")
        assert local_path_of("/tmp/a.zip") == Path("/tmp/a.zip")
        assert local_path_of(Path("rel/a.zip")) == Path("rel/a.zip")
        assert local_path_of("https://example.com/a.zip") is None


class TestLocalSources:
    def test_fetch_bytes_from_path(self, tmp_path):
        src = tmp_path / "model.zip"
        src.write_bytes(b"0123456789")
        assert HttpFetcher(chunk_size=3).fetch_bytes(src) == b"0123456789"

    def test_fetch_bytes_from_file_url(self, tmp_path):
        src = tmp_path / "model.zip"
        src.write_bytes(b"abc")
        assert HttpFetcher().fetch_bytes(src.as_uri()) == b"abc"

    def test_missing_local_file(self, tmp_path):
        with pytest.raises(ResourceNotFoundError):
            HttpFetcher().fetch_bytes(tmp_path / "missing.zip")

    def test_missing_local_file_is_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            HttpFetcher().fetch_bytes(str(tmp_path / "missing.zip"))

    def test_progress_reports_total(self, tmp_path):
        src = tmp_path / "model.zip"
        src.write_bytes(b"x" * 10)
        calls = []
        HttpFetcher(chunk_size=4).fetch_bytes(src, progress=lambda c, t, m: calls.append((c, t, m)))
        assert calls == [
            (4, 10, "Downloading model.zip"),
            (8, 10, "Downloading model.zip"),
            (10, 10, "Downloading model.zip"),
        ]


class TestHttpSources:
    URL = "https://example.com/models/inception5h.zip"

    def test_streams_chunks(self):
        session = make_session(make_response([b"ab", b"cd", b""], content_length=4))
        data = HttpFetcher(session=session, timeout_s=7).fetch_bytes(self.URL)
        assert data == b"abcd"
        session.get.assert_called_once_with(self.URL, stream=True, timeout=7)

    def test_unknown_length_reports_minus_one(self):
        session = make_session(make_response([b"ab"]))
        calls = []
        HttpFetcher(session=session).fetch_bytes(self.URL, progress=lambda c, t, m: calls.append(t))
        assert calls == [-1]

    def test_404_is_resource_not_found(self):
        response = make_response([], status_code=404)
        with pytest.raises(ResourceNotFoundError):
            HttpFetcher(session=make_session(response)).fetch_bytes(self.URL)
        response.close.assert_called()

    def test_server_error_is_download_error(self):
        with pytest.raises(DownloadError, match="500"):
            HttpFetcher(session=make_session(make_response([], status_code=500))).fetch_bytes(self.URL)

    def test_connection_error(self):
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = requests.ConnectionError("connection refused")
        with pytest.raises(DownloadError, match="connection refused"):
            HttpFetcher(session=session).fetch_bytes(self.URL)

    def test_error_mid_stream(self):
        def chunks():
            yield b"ab"
            raise requests.ConnectionError("reset by peer")

        response = make_response([])
        response.iter_content.return_value = chunks()
        with pytest.raises(DownloadError, match="reset by peer"):
            HttpFetcher(session=make_session(response)).fetch_bytes(self.URL)
        response.close.assert_called()

    def test_cancel_before_first_chunk(self):
        cancel = threading.Event()
        cancel.set()
        session = make_session(make_response([b"ab", b"cd"]))
        with pytest.raises(DownloadCancelledError):
            HttpFetcher(session=session).fetch_bytes(self.URL, cancel=cancel)


class TestFetchToFile:
    def test_writes_destination(self, tmp_path):
        session = make_session(make_response([b"lib", b"data"]))
        dest = tmp_path / "downloads" / "lib.tar.gz"
        assert HttpFetcher(session=session).fetch_to_file("https://x/lib.tar.gz", dest) == dest
        assert dest.read_bytes() == b"libdata"
        assert [p.name for p in dest.parent.iterdir()] == ["lib.tar.gz"]

    def test_cancel_leaves_no_partial_file(self, tmp_path):
        cancel = threading.Event()

        def chunks():
            yield b"first"
            cancel.set()
            yield b"second"

        response = make_response([])
        response.iter_content.return_value = chunks()
        dest = tmp_path / "downloads" / "lib.tar.gz"

        with pytest.raises(DownloadCancelledError):
            HttpFetcher(session=make_session(response)).fetch_to_file(
                "https://x/lib.tar.gz", dest, cancel=cancel
            )

        assert list(dest.parent.iterdir()) == []

    def test_failure_keeps_previous_file(self, tmp_path):
        dest = tmp_path / "lib.tar.gz"
        dest.write_bytes(b"previous")
        session = make_session(make_response([], status_code=503))
        with pytest.raises(DownloadError):
            HttpFetcher(session=session).fetch_to_file("https://x/lib.tar.gz", dest)
        assert dest.read_bytes() == b"previous"
