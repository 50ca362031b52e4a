"""Unit tests for tfhost.config: environment-driven Settings."""

from pathlib import Path
from unittest.mock import patch

import pytest

from tfhost.config import KNOWN_PLATFORMS, current_platform, get_root_dir, load_settings
from tfhost.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("TFHOST_ROOT", "TFHOST_PLATFORM", "TFHOST_BUNDLED_MODULE"):
        monkeypatch.delenv(name, raising=False)


class TestRootDir:
    def test_default_is_home(self):
        assert get_root_dir() == Path.home() / ".tfhost"

    def test_env_override(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TFHOST_ROOT", str(tmp_path / "tf"))
        assert get_root_dir() == (tmp_path / "tf").resolve()


class TestCurrentPlatform:
    def test_detected_platform_is_known(self):
        assert current_platform() in KNOWN_PLATFORMS

    @pytest.mark.parametrize(
        "sys_platform, maxsize, expected",
        [
            ("linux", 2**63 - 1, "linux64"),
            ("linux", 2**31 - 1, "linux32"),
            ("win32", 2**63 - 1, "win64"),
            ("win32", 2**31 - 1, "win32"),
            ("darwin", 2**63 - 1, "macosx"),
        ],
    )
    def test_mapping(self, sys_platform, maxsize, expected):
        with patch("tfhost.config.sys") as fake_sys:
            fake_sys.platform = sys_platform
            fake_sys.maxsize = maxsize
            assert current_platform() == expected


class TestLoadSettings:
    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TFHOST_ROOT", str(tmp_path))
        settings = load_settings()
        assert settings.root == tmp_path.resolve()
        assert settings.platform == current_platform()
        assert settings.bundled_module == "tensorflow"
        assert settings.status_interval_s == 0.1
        assert settings.chunk_size == 64 * 1024

    def test_env_platform_and_module(self, monkeypatch, tmp_path):
        monkeypatch.setenv("TFHOST_ROOT", str(tmp_path))
        monkeypatch.setenv("TFHOST_PLATFORM", "win64")
        monkeypatch.setenv("TFHOST_BUNDLED_MODULE", "tensorflow_cpu")
        settings = load_settings()
        assert settings.platform == "win64"
        assert settings.bundled_module == "tensorflow_cpu"

    def test_overrides_win(self, tmp_path):
        settings = load_settings(root=tmp_path, platform="macosx", download_timeout_s=5)
        assert settings.platform == "macosx"
        assert settings.download_timeout_s == 5

    def test_invalid_value_raises_config_error(self, tmp_path):
        with pytest.raises(ConfigError) as exc_info:
            load_settings(root=tmp_path, chunk_size=0)
        assert "chunk_size" in str(exc_info.value)
        assert "Cause:" in str(exc_info.value)
