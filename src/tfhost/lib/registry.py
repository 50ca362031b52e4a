"""Known downloadable native TensorFlow variants, per platform.

Plain data: one row per archive published on the TensorFlow storage bucket.
GPU rows carry the CUDA and CuDNN versions the build was compiled against.
"""
from typing import Optional

from tfhost.models import LibraryVariant

_BASE_URL = "https://storage.googleapis.com/tensorflow/libtensorflow/"

# (platform, version, mode, cuda, cudnn, archive)
_VARIANTS: tuple[tuple[str, str, str, Optional[str], Optional[str], str], ...] = (
    ("linux64", "1.2.0", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.2.0.tar.gz"),
    ("linux64", "1.2.0", "GPU", "8.0", "5.1", "libtensorflow_jni-gpu-linux-x86_64-1.2.0.tar.gz"),
    ("linux64", "1.3.0", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.3.0.tar.gz"),
    ("linux64", "1.3.0", "GPU", "8.0", "6", "libtensorflow_jni-gpu-linux-x86_64-1.3.0.tar.gz"),
    ("linux64", "1.4.1", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.4.1.tar.gz"),
    ("linux64", "1.4.1", "GPU", "8.0", "6", "libtensorflow_jni-gpu-linux-x86_64-1.4.1.tar.gz"),
    ("linux64", "1.5.0", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.5.0.tar.gz"),
    ("linux64", "1.5.0", "GPU", "9.0", "7", "libtensorflow_jni-gpu-linux-x86_64-1.5.0.tar.gz"),
    ("linux64", "1.6.0", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.6.0.tar.gz"),
    ("linux64", "1.6.0", "GPU", "9.0", "7", "libtensorflow_jni-gpu-linux-x86_64-1.6.0.tar.gz"),
    ("linux64", "1.7.0", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.7.0.tar.gz"),
    ("linux64", "1.7.0", "GPU", "9.0", "7", "libtensorflow_jni-gpu-linux-x86_64-1.7.0.tar.gz"),
    ("linux64", "1.8.0", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.8.0.tar.gz"),
    ("linux64", "1.8.0", "GPU", "9.0", "7", "libtensorflow_jni-gpu-linux-x86_64-1.8.0.tar.gz"),
    ("linux64", "1.9.0", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.9.0.tar.gz"),
    ("linux64", "1.9.0", "GPU", "9.0", "7", "libtensorflow_jni-gpu-linux-x86_64-1.9.0.tar.gz"),
    ("linux64", "1.10.1", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.10.1.tar.gz"),
    ("linux64", "1.10.1", "GPU", "9.0", "7.?", "libtensorflow_jni-gpu-linux-x86_64-1.10.1.tar.gz"),
    ("linux64", "1.11.0", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.11.0.tar.gz"),
    ("linux64", "1.11.0", "GPU", "9.0", ">= 7.2", "libtensorflow_jni-gpu-linux-x86_64-1.11.0.tar.gz"),
    ("linux64", "1.12.0", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.12.0.tar.gz"),
    ("linux64", "1.12.0", "GPU", "9.0", ">= 7.2", "libtensorflow_jni-gpu-linux-x86_64-1.12.0.tar.gz"),
    ("linux64", "1.13.1", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.13.1.tar.gz"),
    ("linux64", "1.13.1", "GPU", "10.0", "7.4", "libtensorflow_jni-gpu-linux-x86_64-1.13.1.tar.gz"),
    ("linux64", "1.14.0", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.14.0.tar.gz"),
    ("linux64", "1.14.0", "GPU", "10.0", ">= 7.4.1", "libtensorflow_jni-gpu-linux-x86_64-1.14.0.tar.gz"),
    ("linux64", "1.15.0", "CPU", None, None, "libtensorflow_jni-cpu-linux-x86_64-1.15.0.tar.gz"),
    ("linux64", "1.15.0", "GPU", "10.1", ">= 7.5.1", "libtensorflow_jni-gpu-linux-x86_64-1.15.0.tar.gz"),
    ("win64", "1.2.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.2.0.zip"),
    ("win64", "1.3.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.3.0.zip"),
    ("win64", "1.4.1", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.4.1.zip"),
    ("win64", "1.5.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.5.0.zip"),
    ("win64", "1.6.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.6.0.zip"),
    ("win64", "1.7.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.7.0.zip"),
    ("win64", "1.8.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.8.0.zip"),
    ("win64", "1.9.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.9.0.zip"),
    ("win64", "1.10.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.10.0.zip"),
    ("win64", "1.11.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.11.0.zip"),
    ("win64", "1.12.0", "GPU", "9.0", ">= 7.2", "libtensorflow_jni-gpu-windows-x86_64-1.12.0.zip"),
    ("win64", "1.12.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.12.0.zip"),
    ("win64", "1.13.1", "GPU", "10.0", "7.4", "libtensorflow_jni-gpu-windows-x86_64-1.13.1.zip"),
    ("win64", "1.13.1", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.13.1.zip"),
    ("win64", "1.14.0", "GPU", "10.0", ">= 7.4.1", "libtensorflow_jni-gpu-windows-x86_64-1.14.0.zip"),
    ("win64", "1.14.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.14.0.zip"),
    ("win64", "1.15.0", "GPU", "10.1", ">= 7.5.1", "libtensorflow_jni-gpu-windows-x86_64-1.15.0.zip"),
    ("win64", "1.15.0", "CPU", None, None, "libtensorflow_jni-cpu-windows-x86_64-1.15.0.zip"),
    ("macosx", "1.2.0", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.2.0.tar.gz"),
    ("macosx", "1.3.0", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.3.0.tar.gz"),
    ("macosx", "1.4.1", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.4.1.tar.gz"),
    ("macosx", "1.5.0", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.5.0.tar.gz"),
    ("macosx", "1.6.0", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.6.0.tar.gz"),
    ("macosx", "1.7.0", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.7.0.tar.gz"),
    ("macosx", "1.8.0", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.8.0.tar.gz"),
    ("macosx", "1.9.0", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.9.0.tar.gz"),
    ("macosx", "1.10.1", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.10.1.tar.gz"),
    ("macosx", "1.11.0", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.11.0.tar.gz"),
    ("macosx", "1.12.0", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.12.0.tar.gz"),
    ("macosx", "1.13.1", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.13.1.tar.gz"),
    ("macosx", "1.14.0", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.14.0.tar.gz"),
    ("macosx", "1.15.0", "CPU", None, None, "libtensorflow_jni-cpu-darwin-x86_64-1.15.0.tar.gz"),
)


def available_variants(platform: Optional[str] = None) -> list[LibraryVariant]:
    """Return the downloadable variants, restricted to ``platform`` when given."""
    return [
        LibraryVariant(
            version=version,
            uses_gpu=(mode == "GPU"),
            cuda=cuda,
            cudnn=cudnn,
            origin=_BASE_URL + archive,
            platform=row_platform,
        )
        for row_platform, version, mode, cuda, cudnn, archive in _VARIANTS
        if platform is None or row_platform == platform
    ]


def known_platforms() -> list[str]:
    return sorted({row[0] for row in _VARIANTS})
