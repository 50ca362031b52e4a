"""Filesystem housekeeping for the live and staged native library directories."""
import logging
import shutil

from tfhost.layout import Layout

logger = logging.getLogger(__name__)


def remove_native_libraries(layout: Layout) -> list[str]:
    """Delete every file in ``<root>/lib/<platform>/`` whose name contains "tensorflow".

    This takes the version record (``.tensorflowversion``) with it but leaves
    the crash marker alone. Returns the deleted file names.
    """
    folder = layout.lib_dir
    if not folder.is_dir():
        return []
    removed = []
    for path in sorted(folder.iterdir()):
        if "tensorflow" in path.name.lower() and (path.is_file() or path.is_symlink()):
            logger.info("Deleting %s", path)
            path.unlink()
            removed.append(path.name)
    return removed


def has_staged_update(layout: Layout) -> bool:
    staged = layout.update_lib_dir
    return staged.is_dir() and any(staged.iterdir())


def clear_staged_update(layout: Layout) -> None:
    if layout.update_lib_dir.exists():
        logger.info("Discarding staged update %s", layout.update_lib_dir)
        shutil.rmtree(layout.update_lib_dir)


def promote_staged_update(layout: Layout) -> bool:
    """Move a staged variant from ``<root>/update/lib/<platform>/`` into the live directory.

    Must run before anything from the live directory is loaded. The currently
    installed native binaries are removed first; the version record written at
    activation time describes the staged variant and is kept. Returns True if
    something was promoted.
    """
    if not has_staged_update(layout):
        return False
    staged = layout.update_lib_dir
    live = layout.lib_dir
    live.mkdir(parents=True, exist_ok=True)
    record = layout.version_file
    saved_record = record.read_bytes() if record.exists() else None
    remove_native_libraries(layout)
    if saved_record is not None:
        record.write_bytes(saved_record)
    for entry in sorted(staged.iterdir()):
        dest = live / entry.name
        if dest.is_symlink() or dest.is_file():
            dest.unlink()
        elif dest.is_dir():
            shutil.rmtree(dest)
        logger.info("Promoting staged %s to %s", entry.name, live)
        shutil.move(str(entry), str(dest))
    shutil.rmtree(staged)
    return True
