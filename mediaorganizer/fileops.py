"""File moving, copying and source-tree housekeeping for the organizer."""

from __future__ import annotations

import errno
import logging
import os
import shutil
import stat

logger = logging.getLogger(__name__)

_JOURNAL_SUFFIXES = (
    ".mediaorganizer.db",
    ".mediaorganizer.db-wal",
    ".mediaorganizer.db-shm",
)
_HIDDEN_PREFIX = "._"


def format_sequence(num: int) -> str:
    """Zero-padded sequence suffix of at least three digits."""
    return f"{num:03d}"


def is_ignored_file(path) -> bool:
    """True for resource-fork files ('._*') and the journal database files."""
    path = os.fspath(path)
    if os.path.basename(path).startswith(_HIDDEN_PREFIX):
        return True
    return path.endswith(_JOURNAL_SUFFIXES)


def copy_file(src_path, dest_path) -> None:
    """Copy a file's contents to dest_path, sync it and copy the permission bits.

    The destination is created or truncated. Errors are raised as OSError.
    """
    with open(src_path, "rb") as src, open(dest_path, "wb") as dst:
        shutil.copyfileobj(src, dst)
        dst.flush()
        os.fsync(dst.fileno())
    os.chmod(dest_path, stat.S_IMODE(os.stat(src_path).st_mode))


def move_file(src_path, dest_path) -> None:
    """Move a file, falling back to copy and delete across devices."""
    try:
        os.rename(src_path, dest_path)
    except OSError as exc:
        if exc.errno != errno.EXDEV:
            raise
        copy_file(src_path, dest_path)
        os.remove(src_path)


def _log_walk_error(exc: OSError) -> None:
    logger.error("Error accessing path while cleaning up: %s: %s", exc.filename, exc)


def remove_empty_directories(root) -> list[str]:
    """Remove directories below root that are empty; return those removed.

    Only directories that are empty when the tree is walked are removed,
    deepest paths first. The root itself is never removed.
    """
    root = os.fspath(root)
    empty_dirs = [
        dirpath
        for dirpath, dirnames, filenames in os.walk(root, onerror=_log_walk_error)
        if dirpath != root and not dirnames and not filenames
    ]
    empty_dirs.sort(key=len, reverse=True)

    removed: list[str] = []
    for directory in empty_dirs:
        try:
            os.rmdir(directory)
        except OSError as exc:
            logger.error("Failed to remove empty directory %s: %s", directory, exc)
        else:
            logger.info("Removed empty directory: %s", directory)
            removed.append(directory)

    if removed:
        logger.info("Removed %d empty directories", len(removed))
    else:
        logger.info("No empty directories found to remove")
    return removed