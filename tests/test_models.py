"""Unit tests for tfhost.models: LibraryVariant equality/merging and LibraryStatus."""

from tfhost.models import LibraryStatus, LibraryVariant, StatusKind


def make_gpu_variant(**overrides) -> LibraryVariant:
    values = dict(
        version="1.13.1",
        uses_gpu=True,
        cuda="10.0",
        cudnn="7.4",
        origin="https://example.com/libtensorflow_jni-gpu-linux-x86_64-1.13.1.tar.gz",
        platform="linux64",
    )
    values.update(overrides)
    return LibraryVariant(**values)


class TestLibraryVariantEquality:
    """Equality is (version, GPU flag, platform) only."""

    def test_same_variant_from_different_origins_is_equal(self):
        a = make_gpu_variant(origin="https://mirror-a/x.tar.gz")
        b = make_gpu_variant(origin="/tmp/x.tar.gz", local_path="/tmp/x.tar.gz", cuda=None)
        assert a == b
        assert hash(a) == hash(b)

    def test_gpu_flag_distinguishes(self):
        assert make_gpu_variant() != make_gpu_variant(uses_gpu=False)

    def test_platform_distinguishes(self):
        assert make_gpu_variant() != make_gpu_variant(platform="win64")

    def test_version_distinguishes(self):
        assert make_gpu_variant() != make_gpu_variant(version="1.14.0")

    def test_not_equal_to_other_types(self):
        assert make_gpu_variant() != "1.13.1"

    def test_usable_as_set_member(self):
        variants = {make_gpu_variant(), make_gpu_variant(origin="elsewhere"), make_gpu_variant(uses_gpu=False)}
        assert len(variants) == 2


class TestLibraryVariantFields:
    def test_str_includes_companions(self):
        assert str(make_gpu_variant()) == "TF 1.13.1 GPU (CUDA 10.0, CuDNN 7.4)"

    def test_str_cpu_without_companions(self):
        assert str(LibraryVariant("1.15.0", uses_gpu=False)) == "TF 1.15.0 CPU"

    def test_str_unknown_gpu_flag(self):
        assert str(LibraryVariant("1.15.0")) == "TF 1.15.0"

    def test_companion_versions(self):
        assert make_gpu_variant().companion_versions == ("10.0", "7.4")
        assert make_gpu_variant(cudnn=None).companion_versions == ("10.0", "?")
        assert LibraryVariant("1.15.0").companion_versions is None

    def test_is_cached_follows_local_path(self):
        assert not make_gpu_variant().is_cached
        assert make_gpu_variant(local_path="/tmp/a.tar.gz").is_cached

    def test_origin_description_prefers_local_path(self):
        v = make_gpu_variant(local_path="/cache/a.tar.gz")
        assert v.origin_description() == "/cache/a.tar.gz"

    def test_origin_description_bundled(self):
        v = LibraryVariant("2.15.0", bundled=True)
        assert v.origin_description() == "bundled with the Python package"


class TestVersionKey:
    def test_numeric_ordering(self):
        versions = ["1.9.0", "1.13.1", "1.2.0", "1.10.1"]
        ordered = sorted(versions, key=lambda v: LibraryVariant(v).version_key())
        assert ordered == ["1.2.0", "1.9.0", "1.10.1", "1.13.1"]

    def test_release_candidate_uses_leading_digits(self):
        assert LibraryVariant("2.0.0rc1").version_key() == (2, 0, 0)

    def test_non_numeric_sorts_first(self):
        assert LibraryVariant("unknown").version_key() == (-1,)


class TestHarvest:
    def test_fills_missing_fields(self):
        active = LibraryVariant("1.13.1", uses_gpu=True, platform="linux64")
        listed = make_gpu_variant(local_path="/cache/gpu.tar.gz")
        merged = active.harvest(listed)
        assert merged.cuda == "10.0"
        assert merged.cudnn == "7.4"
        assert merged.origin == listed.origin
        assert merged.local_path == "/cache/gpu.tar.gz"

    def test_keeps_existing_fields(self):
        mine = make_gpu_variant(origin="/local/x.tar.gz", cuda="10.1")
        merged = mine.harvest(make_gpu_variant())
        assert merged.origin == "/local/x.tar.gz"
        assert merged.cuda == "10.1"

    def test_returns_new_object(self):
        mine = LibraryVariant("1.13.1", uses_gpu=True, platform="linux64")
        merged = mine.harvest(make_gpu_variant())
        assert mine.cuda is None
        assert merged is not mine


class TestLibraryStatus:
    def test_not_attempted(self):
        status = LibraryStatus.not_attempted()
        assert status.kind is StatusKind.NOT_ATTEMPTED
        assert not status.tried_loading
        assert not status.library_available

    def test_loaded(self):
        v = make_gpu_variant()
        status = LibraryStatus.loaded("native: ok", v)
        assert status.is_loaded and status.tried_loading
        assert status.library_available
        assert status.variant == v

    def test_crashed_with_fallback_variant(self):
        bundled = LibraryVariant("2.15.0", bundled=True)
        status = LibraryStatus.crashed("native crashed", bundled)
        assert status.is_crashed
        assert not status.is_loaded
        assert status.library_available

    def test_failed_has_no_variant(self):
        status = LibraryStatus.failed("no library found")
        assert status.is_failed
        assert status.variant is None
