"""Streaming ZIP and TAR.GZ extraction with path-traversal protection.

Archives are read from a file path or from an in-memory byte buffer.
Entries are copied in bounded chunks (64 KiB by default), so no entry is ever
materialized in memory as a whole.

Every entry path is resolved against the destination directory before
anything is written; an entry that would land outside it raises
PathTraversalError. ZIP archives are validated completely up front (the
central directory lists all entries), TAR streams entry by entry, so an
offending TAR entry aborts extraction before that entry is written.

TAR symbolic links are resolved against ``link_base`` rather than the
extraction directory. The installer unpacks into a staging directory whose
contents are later moved into the live library directory, so symbolic links
must point at where the files will finally live. Hard links name earlier
members of the same archive and are resolved inside the extraction directory
first, falling back to ``link_base`` only when the target is not there.
"""
import gzip
import io
import logging
import os
import tarfile
import zipfile
import zlib
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import BinaryIO, Optional, Union

from tfhost.errors import ArchiveError, PathTraversalError
from tfhost.progress import ProgressCallback

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

ArchiveSource = Union[Path, bytes]

_ZIP_MAGIC = b"PK"
_GZIP_MAGIC = b"\x1f\x8b"


class ArchiveKind(str, Enum):
    ZIP = "zip"
    TAR_GZ = "tar.gz"


@dataclass
class UnpackResult:
    entries: int = 0        # regular files, directories and links created
    bytes_written: int = 0


def detect_archive_kind(name: str, head: bytes = b"") -> ArchiveKind:
    """Guess the archive kind from its file name, then from its first bytes.

    ``.zip`` is ZIP, ``.tar.gz`` / ``.tgz`` is TAR.GZ. For other names the
    magic number in ``head`` decides; ZIP is the default.
    """
    lowered = name.lower()
    if lowered.endswith(".zip"):
        return ArchiveKind.ZIP
    if lowered.endswith((".tar.gz", ".tgz")):
        return ArchiveKind.TAR_GZ
    if head.startswith(_ZIP_MAGIC):
        return ArchiveKind.ZIP
    if head.startswith(_GZIP_MAGIC):
        return ArchiveKind.TAR_GZ
    return ArchiveKind.ZIP


def resolve_inside(base: Path, name: str) -> Path:
    """Return the absolute path of ``name`` under ``base``, or raise PathTraversalError.

    ".." components are collapsed first, then symlinks in the parent directories
    are resolved. The last component is not followed, so an existing link at
    the target itself is replaced rather than written through.
    """
    base_resolved = base.resolve()
    lexical = Path(os.path.normpath(base_resolved / name))
    if lexical == base_resolved:
        return base_resolved
    target = lexical.parent.resolve() / lexical.name
    if not target.is_relative_to(base_resolved):
        raise PathTraversalError(name, base)
    return target


def unpack(
    source: ArchiveSource,
    dest: Path,
    kind: Optional[ArchiveKind] = None,
    link_base: Optional[Path] = None,
    progress: Optional[ProgressCallback] = None,
    chunk_size: int = CHUNK_SIZE,
    name: Optional[str] = None,
) -> UnpackResult:
    """Unpack a ZIP or TAR.GZ archive into ``dest``.

    Args:
        source: Path to the archive file, or the archive's bytes.
        dest: Extraction directory; created if missing.
        kind: Archive kind. Detected from ``name`` (or the file name) when None.
        link_base: Directory TAR symbolic links (and hard links whose target is not in
            ``dest``) are resolved against. Defaults to ``dest``.
        progress: Called as progress(bytes_so_far, entry_size, message) while copying.
            The callback is responsible for its own throttling.
        chunk_size: Read buffer size in bytes.
        name: Archive name used for kind detection and messages (in-memory sources).

    Returns:
        UnpackResult with the number of entries and bytes written.

    Raises:
        ArchiveError: The archive is malformed or truncated.
        PathTraversalError: An entry (or link target) escapes its base directory.
    """
    label = name or (str(source) if isinstance(source, Path) else "<memory>")
    if kind is None:
        head = source[:4] if isinstance(source, bytes) else _read_head(source)
        kind = detect_archive_kind(label, head)
    logger.info("Unpacking %s to %s", label, dest)
    if kind is ArchiveKind.ZIP:
        return unpack_zip(source, dest, progress=progress, chunk_size=chunk_size, name=label)
    return unpack_tar_gz(
        source, dest, link_base=link_base, progress=progress, chunk_size=chunk_size, name=label
    )


def unpack_zip(
    source: ArchiveSource,
    dest: Path,
    progress: Optional[ProgressCallback] = None,
    chunk_size: int = CHUNK_SIZE,
    name: Optional[str] = None,
) -> UnpackResult:
    """Unpack a ZIP archive into ``dest``. See unpack()."""
    label = name or (str(source) if isinstance(source, Path) else "<memory>")
    dest.mkdir(parents=True, exist_ok=True)
    result = UnpackResult()
    try:
        with zipfile.ZipFile(io.BytesIO(source) if isinstance(source, bytes) else source) as zf:
            infos = zf.infolist()
            # Validate every entry before writing any of them.
            targets = [resolve_inside(dest, info.filename) for info in infos]
            for info, target in zip(infos, targets):
                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    result.entries += 1
                    continue
                logger.debug("Unpacking %s", info.filename)
                target.parent.mkdir(parents=True, exist_ok=True)
                with zf.open(info) as entry, target.open("wb") as out:
                    result.bytes_written += _copy_entry(
                        entry, out, info.file_size, info.filename, progress, chunk_size
                    )
                result.entries += 1
    except (zipfile.BadZipFile, zlib.error, EOFError, NotImplementedError) as exc:
        raise ArchiveError(label, str(exc) or type(exc).__name__) from exc
    return result


def unpack_tar_gz(
    source: ArchiveSource,
    dest: Path,
    link_base: Optional[Path] = None,
    progress: Optional[ProgressCallback] = None,
    chunk_size: int = CHUNK_SIZE,
    name: Optional[str] = None,
) -> UnpackResult:
    """Unpack a gzip-compressed TAR archive into ``dest``. See unpack()."""
    label = name or (str(source) if isinstance(source, Path) else "<memory>")
    link_base = link_base if link_base is not None else dest
    dest.mkdir(parents=True, exist_ok=True)
    result = UnpackResult()
    fileobj = _as_file(source)
    try:
        # "r|gz" reads the archive as a forward-only stream.
        with tarfile.open(fileobj=fileobj, mode="r|gz") as tar:
            for member in tar:
                target = resolve_inside(dest, member.name)
                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                    result.entries += 1
                elif member.issym() or member.islnk():
                    _create_link(member, target, dest, link_base)
                    result.entries += 1
                elif member.isfile():
                    logger.debug("Writing %s", target)
                    target.parent.mkdir(parents=True, exist_ok=True)
                    if target.is_symlink():
                        target.unlink()
                    entry = tar.extractfile(member)
                    with entry, target.open("wb") as out:
                        result.bytes_written += _copy_entry(
                            entry, out, member.size, member.name, progress, chunk_size
                        )
                    result.entries += 1
                else:
                    logger.debug("Skipping special entry %s", member.name)
    except (tarfile.TarError, EOFError, zlib.error, gzip.BadGzipFile) as exc:
        raise ArchiveError(label, str(exc) or type(exc).__name__) from exc
    finally:
        fileobj.close()
    return result


def _create_link(member: tarfile.TarInfo, source: Path, dest: Path, link_base: Path) -> None:
    target = resolve_inside(link_base, member.linkname)
    source.parent.mkdir(parents=True, exist_ok=True)
    if source.is_symlink() or source.exists():
        source.unlink()
    if member.issym():
        logger.info("Creating symbolic link: %s -> %s", source, target)
        os.symlink(target, source)
        return
    # A file of the same name in link_base may belong to a previous install.
    extracted = resolve_inside(dest, member.linkname)
    if extracted.exists():
        target = extracted
    logger.info("Creating link: %s -> %s", source, target)
    os.link(target, source)


def _copy_entry(
    entry: BinaryIO,
    out: BinaryIO,
    size: int,
    name: str,
    progress: Optional[ProgressCallback],
    chunk_size: int,
) -> int:
    written = 0
    message = f"Unpacking {name}"
    while True:
        if progress is not None:
            progress(written, size, message)
        chunk = entry.read(chunk_size)
        if not chunk:
            break
        out.write(chunk)
        written += len(chunk)
    return written


def _as_file(source: ArchiveSource) -> BinaryIO:
    if isinstance(source, bytes):
        return io.BytesIO(source)
    try:
        return source.open("rb")
    except OSError as exc:
        raise ArchiveError(str(source), str(exc)) from exc


def _read_head(path: Path) -> bytes:
    try:
        with path.open("rb") as f:
            return f.read(4)
    except OSError as exc:
        raise ArchiveError(str(path), str(exc)) from exc
