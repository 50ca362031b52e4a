"""Unit tests for the static variant registry."""

from tfhost.config import KNOWN_PLATFORMS
from tfhost.lib import registry
from tfhost.models import LibraryVariant


def test_platform_filter():
    variants = registry.available_variants("linux64")
    assert variants
    assert all(v.platform == "linux64" for v in variants)


def test_all_platforms_are_known():
    assert set(registry.known_platforms()) <= KNOWN_PLATFORMS


def test_unfiltered_listing_covers_every_platform():
    platforms = {v.platform for v in registry.available_variants()}
    assert platforms == set(registry.known_platforms())


def test_linux_gpu_1_13_1_companions():
    variants = registry.available_variants("linux64")
    gpu = next(v for v in variants if v == LibraryVariant("1.13.1", uses_gpu=True, platform="linux64"))
    assert gpu.companion_versions == ("10.0", "7.4")
    assert gpu.origin.startswith("https://")
    assert gpu.origin.endswith(".tar.gz")


def test_cpu_rows_have_no_companions():
    assert all(v.companion_versions is None for v in registry.available_variants() if v.uses_gpu is False)


def test_no_duplicate_variants():
    variants = registry.available_variants()
    assert len(set(variants)) == len(variants)


def test_macosx_is_cpu_only():
    assert all(v.uses_gpu is False for v in registry.available_variants("macosx"))


def test_unknown_platform_is_empty():
    assert registry.available_variants("amiga") == []
