"""The two ways of getting a TensorFlow library into the process.

NativeLibrary loads shared objects unpacked into ``<root>/lib/<platform>/``
with ctypes. BundledLibrary imports the Python package installed alongside
tfhost (``tensorflow`` by default). Both report one of three outcomes; the
fourth possibility, the interpreter crashing inside the load call, is never
observed here and is handled by the crash marker in the loader.
"""
import ctypes
import importlib
import importlib.metadata
import importlib.util
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Protocol

from tfhost.errors import VersionRecordError
from tfhost.layout import Layout
from tfhost.lib.version_record import read_version_record
from tfhost.models import LibraryVariant

logger = logging.getLogger(__name__)

UNKNOWN_VERSION = "unknown"

_SHARED_SUFFIXES = (".so", ".dylib", ".dll")


class LoadOutcome(str, Enum):
    LOADED = "loaded"
    NOT_FOUND = "not_found"
    LINK_ERROR = "link_error"


@dataclass(frozen=True)
class LoadResult:
    outcome: LoadOutcome
    message: str = ""
    variant: Optional[LibraryVariant] = None


class LibraryBinding(Protocol):
    def load(self) -> LoadResult: ...


def is_native_library_file(path: Path) -> bool:
    """True for shared objects such as libtensorflow_jni.so, libtensorflow_framework.so.1 or tensorflow_jni.dll."""
    name = path.name.lower()
    if "tensorflow" not in name:
        return False
    return name.endswith(_SHARED_SUFFIXES) or ".so." in name


class NativeLibrary:
    """Shared objects installed into the platform library directory."""

    def __init__(
        self,
        layout: Layout,
        cdll: Callable[[str], ctypes.CDLL] = ctypes.CDLL,
    ) -> None:
        self.layout = layout
        self._cdll = cdll

    def candidates(self) -> list[Path]:
        """Library files to load, the framework library first (the JNI library links against it)."""
        lib_dir = self.layout.lib_dir
        if not lib_dir.is_dir():
            return []
        files = [p for p in lib_dir.iterdir() if p.is_file() and is_native_library_file(p)]
        return sorted(files, key=lambda p: ("framework" not in p.name.lower(), p.name))

    def load(self) -> LoadResult:
        files = self.candidates()
        if not files:
            return LoadResult(LoadOutcome.NOT_FOUND, f"no native library in {self.layout.lib_dir}")
        handles = []
        for path in files:
            logger.debug("Loading native library %s", path)
            try:
                handles.append(self._cdll(str(path)))
            except OSError as exc:
                return LoadResult(LoadOutcome.LINK_ERROR, f"{path.name}: {exc}")
        variant = self._describe(handles)
        return LoadResult(LoadOutcome.LOADED, f"native library from {self.layout.lib_dir}", variant)

    def _describe(self, handles: list) -> LibraryVariant:
        try:
            recorded = read_version_record(self.layout)
        except VersionRecordError as exc:
            logger.warning("%s", exc)
            recorded = None
        if recorded is not None:
            return recorded
        return LibraryVariant(
            version=_tf_version(handles),
            platform=self.layout.platform,
            origin=str(self.layout.lib_dir),
        )


def _tf_version(handles: list) -> str:
    """Ask the loaded library for its version via the C API's TF_Version()."""
    for handle in handles:
        try:
            fn = handle.TF_Version
        except AttributeError:
            continue
        fn.restype = ctypes.c_char_p
        fn.argtypes = []
        raw = fn()
        if raw:
            return raw.decode("utf-8", errors="replace")
    return UNKNOWN_VERSION


class BundledLibrary:
    """The TensorFlow Python package installed in the current environment."""

    def __init__(
        self,
        module: str = "tensorflow",
        distribution: Optional[str] = None,
        platform: Optional[str] = None,
    ) -> None:
        self.module = module
        self.distribution = distribution or module
        self.platform = platform

    def load(self) -> LoadResult:
        try:
            mod = importlib.import_module(self.module)
        except ModuleNotFoundError as exc:
            if exc.name is not None and self.module.split(".")[0] == exc.name:
                return LoadResult(LoadOutcome.NOT_FOUND, f"module '{self.module}' is not installed")
            return LoadResult(LoadOutcome.LINK_ERROR, f"{self.module}: {exc}")
        except ImportError as exc:
            return LoadResult(LoadOutcome.LINK_ERROR, f"{self.module}: {exc}")
        variant = self.describe(getattr(mod, "__version__", None), getattr(mod, "__file__", None))
        return LoadResult(LoadOutcome.LOADED, f"bundled module '{self.module}'", variant)

    def is_installed(self) -> bool:
        """True if the module can be found without importing it."""
        try:
            return importlib.util.find_spec(self.module) is not None
        except (ImportError, ValueError):
            return False

    def describe(self, module_version: Optional[str] = None, module_file: Optional[str] = None) -> LibraryVariant:
        """Return the descriptor of the bundled variant without importing it."""
        try:
            version = importlib.metadata.version(self.distribution)
        except importlib.metadata.PackageNotFoundError:
            version = module_version or UNKNOWN_VERSION
        return LibraryVariant(
            version=version,
            uses_gpu=self._guess_gpu(),
            platform=self.platform,
            origin=str(Path(module_file).parent) if module_file else None,
            bundled=True,
        )

    def _guess_gpu(self) -> bool:
        # A GPU build ships as its own distribution (e.g. "tensorflow-gpu").
        root = self.module.split(".")[0].lower()
        for dist in importlib.metadata.distributions():
            name = (dist.metadata["Name"] or "").lower()
            if root in name and "gpu" in name:
                return True
        return False
