"""Non-destructive lock detection for the source spreadsheet.

A spreadsheet editor that has the file open may hold an exclusive lock or
drop a ``<file>.lock`` marker next to it. Both are read as "busy": the file
is never opened for writing and a failure to take a *shared* lock is never
treated as corruption.
"""

from __future__ import annotations

import sys
from pathlib import Path

from clubsync.logging import get_logger, log_debug, log_warning

logger = get_logger(__name__)

LOCK_SUFFIX = ".lock"


def lock_marker_for(path: Path) -> Path:
    """Return the sibling lock-marker path for *path*."""
    return path.with_name(path.name + LOCK_SUFFIX)


if sys.platform == "win32":
    import msvcrt

    def _try_shared_lock(path: Path) -> bool:
        """Return whether a non-blocking lock could be taken on *path*."""
        with path.open("rb") as handle:
            try:
                msvcrt.locking(handle.fileno(), msvcrt.LK_NBRLCK, 1)
            except OSError:
                return False
            msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
            return True

else:
    import fcntl

    def _try_shared_lock(path: Path) -> bool:
        """Return whether a shared advisory lock could be taken on *path*."""
        with path.open("rb") as handle:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_SH | fcntl.LOCK_NB)
            except BlockingIOError:
                return False
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            return True


def is_file_locked(path: Path | str) -> bool:
    """Return whether another process appears to hold *path*.

    The check looks for a sibling ``<file>.lock`` marker first, then tries a
    shared, non-blocking lock. Any error while probing is reported as
    locked so that callers back off instead of reading a file mid-write.
    """
    path_obj = Path(path)
    marker = lock_marker_for(path_obj)
    if marker.exists():
        log_debug(logger, "Found lock marker %s", marker)
        return True

    try:
        acquired = _try_shared_lock(path_obj)
    except PermissionError:
        log_debug(logger, "File is held by another process: %s", path_obj)
        return True
    except OSError as exc:
        log_warning(logger, "Error checking file lock for %s: %s", path_obj, exc)
        return True

    if not acquired:
        log_debug(logger, "Shared lock unavailable for %s", path_obj)
    return not acquired


__all__ = ["LOCK_SUFFIX", "is_file_locked", "lock_marker_for"]
