from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


@dataclass(frozen=True, eq=False)
class LibraryVariant:
    """One build of the TensorFlow native binding: version, GPU/CPU and platform.

    Two variants are equal when version, GPU flag and platform match. The
    origin, local path and companion CUDA/CuDNN versions do not take part in
    equality: the same logical variant may arrive from different sources.
    """

    version: str
    uses_gpu: Optional[bool] = None
    cuda: Optional[str] = None        # compatible CUDA version (GPU builds)
    cudnn: Optional[str] = None       # compatible CuDNN version (GPU builds)
    origin: Optional[str] = None      # URL or local path the archive comes from
    platform: Optional[str] = None    # "linux64" | "linux32" | "win64" | "win32" | "macosx"
    local_path: Optional[str] = None  # where the archive is cached, once downloaded
    bundled: bool = False             # shipped with the Python package, no archive

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, LibraryVariant):
            return NotImplemented
        return (
            self.version == other.version
            and self.uses_gpu == other.uses_gpu
            and self.platform == other.platform
        )

    def __hash__(self) -> int:
        return hash((self.version, self.uses_gpu, self.platform))

    def __str__(self) -> str:
        text = f"TF {self.version}"
        if self.uses_gpu is not None:
            text += " GPU" if self.uses_gpu else " CPU"
        companions = []
        if self.cuda is not None:
            companions.append(f"CUDA {self.cuda}")
        if self.cudnn is not None:
            companions.append(f"CuDNN {self.cudnn}")
        if companions:
            text += f" ({', '.join(companions)})"
        return text

    @property
    def companion_versions(self) -> Optional[tuple[str, str]]:
        if self.cuda is None and self.cudnn is None:
            return None
        return (self.cuda or "?", self.cudnn or "?")

    @property
    def is_cached(self) -> bool:
        return self.local_path is not None

    def origin_description(self) -> str:
        """Return where this variant would be installed from."""
        if self.local_path is not None:
            return self.local_path
        if self.bundled:
            return self.origin or "bundled with the Python package"
        return self.origin or "unknown origin"

    def version_key(self) -> tuple[int, ...]:
        """Return the version number as an integer tuple for ordering (1.13.1 -> (1, 13, 1)).

        Non-numeric components (e.g. "unknown", "2.0.0rc1") contribute their
        leading digits, or -1 when there are none.
        """
        key = []
        for part in self.version.split("."):
            digits = ""
            for ch in part:
                if not ch.isdigit():
                    break
                digits += ch
            key.append(int(digits) if digits else -1)
        return tuple(key)

    def harvest(self, other: "LibraryVariant") -> "LibraryVariant":
        """Return a copy of this variant with missing fields borrowed from ``other``.

        Used when two descriptors name the same logical variant, e.g. the
        active version (which knows nothing about its archive) and the
        registry entry (which knows its URL and cached location).
        """
        return replace(
            self,
            cuda=self.cuda if self.cuda is not None else other.cuda,
            cudnn=self.cudnn if self.cudnn is not None else other.cudnn,
            origin=self.origin if self.origin is not None else other.origin,
            local_path=self.local_path if self.local_path is not None else other.local_path,
        )


class StatusKind(str, Enum):
    NOT_ATTEMPTED = "not_attempted"
    LOADED = "loaded"
    CRASHED = "crashed"
    FAILED = "failed"


@dataclass(frozen=True)
class LibraryStatus:
    """Outcome of the process-wide attempt to load the TensorFlow library."""

    kind: StatusKind
    info: str = ""
    variant: Optional[LibraryVariant] = None  # the variant that ended up loaded, if any

    @classmethod
    def not_attempted(cls) -> "LibraryStatus":
        return cls(StatusKind.NOT_ATTEMPTED)

    @classmethod
    def loaded(cls, info: str, variant: Optional[LibraryVariant] = None) -> "LibraryStatus":
        return cls(StatusKind.LOADED, info, variant)

    @classmethod
    def crashed(cls, info: str, variant: Optional[LibraryVariant] = None) -> "LibraryStatus":
        return cls(StatusKind.CRASHED, info, variant)

    @classmethod
    def failed(cls, info: str) -> "LibraryStatus":
        return cls(StatusKind.FAILED, info)

    @property
    def tried_loading(self) -> bool:
        return self.kind is not StatusKind.NOT_ATTEMPTED

    @property
    def is_loaded(self) -> bool:
        return self.kind is StatusKind.LOADED

    @property
    def is_crashed(self) -> bool:
        """True if a crash marker showed that a previous load attempt killed the process."""
        return self.kind is StatusKind.CRASHED

    @property
    def is_failed(self) -> bool:
        return self.kind is StatusKind.FAILED

    @property
    def library_available(self) -> bool:
        """True if some variant is loaded in this process (possibly a fallback after a crash)."""
        return self.variant is not None
