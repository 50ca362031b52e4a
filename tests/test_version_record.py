"""Unit tests for the native version record (<root>/lib/<platform>/.tensorflowversion)."""

from pathlib import Path

import pytest

from tfhost.errors import VersionRecordError
from tfhost.layout import Layout
from tfhost.lib.version_record import (
    format_version_record,
    has_version_record,
    parse_version_record,
    read_version_record,
    write_version_record,
)
from tfhost.models import LibraryVariant


def make_layout(tmp_path: Path) -> Layout:
    return Layout(tmp_path / "root", "linux64")


class TestRoundTrip:
    def test_gpu_variant_with_companions(self, tmp_path):
        """linux64 / 1.13.1 / GPU / CUDA 10.0 / CuDNN 7.4 reads back as an equal variant."""
        layout = make_layout(tmp_path)
        written = LibraryVariant("1.13.1", uses_gpu=True, cuda="10.0", cudnn="7.4", platform="linux64")
        write_version_record(layout, written)

        read = read_version_record(layout)
        assert read == written
        assert read.cuda == "10.0"
        assert read.cudnn == "7.4"
        assert read.uses_gpu is True

    def test_file_content(self, tmp_path):
        layout = make_layout(tmp_path)
        write_version_record(
            layout, LibraryVariant("1.13.1", uses_gpu=True, cuda="10.0", cudnn="7.4", platform="linux64")
        )
        assert layout.version_file.read_text(encoding="utf-8") == "linux64,1.13.1,GPU,10.0,7.4"

    def test_platform_defaults_to_layout(self, tmp_path):
        layout = make_layout(tmp_path)
        write_version_record(layout, LibraryVariant("1.15.0", uses_gpu=False))
        assert layout.version_file.read_text(encoding="utf-8") == "linux64,1.15.0,CPU"
        assert read_version_record(layout).platform == "linux64"

    def test_no_temp_files_left(self, tmp_path):
        layout = make_layout(tmp_path)
        write_version_record(layout, LibraryVariant("1.15.0", uses_gpu=False))
        assert [p.name for p in layout.lib_dir.iterdir()] == [".tensorflowversion"]


class TestFormat:
    def test_unknown_gpu_flag_written_as_question_mark(self):
        assert format_version_record("win64", LibraryVariant("1.15.0")) == "win64,1.15.0,?"

    def test_missing_companion_written_as_question_mark(self):
        v = LibraryVariant("1.10.1", uses_gpu=True, cuda="9.0")
        assert format_version_record("linux64", v) == "linux64,1.10.1,GPU,9.0,?"


class TestParse:
    def test_three_fields(self):
        v = parse_version_record("macosx,1.14.0,cpu\n", Path("/r/lib/macosx/.tensorflowversion"))
        assert v.platform == "macosx"
        assert v.uses_gpu is False
        assert v.companion_versions is None
        assert v.origin == str(Path("/r/lib/macosx"))

    def test_question_marks_read_back_as_unknown(self):
        v = parse_version_record("linux64,1.10.1,?,9.0,?", Path("x"))
        assert v.uses_gpu is None
        assert v.cuda == "9.0"
        assert v.cudnn is None

    @pytest.mark.parametrize("text", ["", "linux64", "linux64,1.13.1", "linux64,1.13.1,GPU,10.0", ",1.0,CPU"])
    def test_wrong_shape_raises(self, text):
        with pytest.raises(VersionRecordError):
            parse_version_record(text, Path("x"))

    def test_unknown_mode_raises(self):
        with pytest.raises(VersionRecordError, match="unknown mode"):
            parse_version_record("linux64,1.13.1,TPU", Path("x"))


class TestRead:
    def test_missing_record_returns_none(self, tmp_path):
        layout = make_layout(tmp_path)
        assert not has_version_record(layout)
        assert read_version_record(layout) is None

    def test_malformed_record_raises(self, tmp_path):
        layout = make_layout(tmp_path)
        layout.lib_dir.mkdir(parents=True)
        layout.version_file.write_text("garbage", encoding="utf-8")
        assert has_version_record(layout)
        with pytest.raises(VersionRecordError):
            read_version_record(layout)
