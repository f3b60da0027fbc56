"""Unit tests for non-destructive lock detection."""

from __future__ import annotations

import sys
import typing as typ

import pytest

from clubsync.sync import is_file_locked, lock_marker_for

if typ.TYPE_CHECKING:
    from pathlib import Path


def test_lock_marker_sits_next_to_the_file(tmp_path: Path) -> None:
    """The marker keeps the full file name and adds ``.lock``."""
    assert lock_marker_for(tmp_path / "learners.xlsx") == tmp_path / "learners.xlsx.lock"


def test_unlocked_file_is_not_busy(learners_path: Path) -> None:
    """A file nobody holds can be read."""
    assert is_file_locked(learners_path) is False


def test_lock_marker_makes_file_busy(learners_path: Path) -> None:
    """An editor's marker file is enough to back off."""
    lock_marker_for(learners_path).touch()

    assert is_file_locked(learners_path) is True


def test_missing_file_is_reported_busy(tmp_path: Path) -> None:
    """Probe errors are treated as busy rather than broken."""
    assert is_file_locked(tmp_path / "absent.xlsx") is True


@pytest.mark.skipif(sys.platform == "win32", reason="flock is POSIX only")
def test_exclusive_flock_makes_file_busy(learners_path: Path) -> None:
    """An exclusive advisory lock held elsewhere blocks the shared probe."""
    import fcntl

    with learners_path.open("rb+") as holder:
        fcntl.flock(holder.fileno(), fcntl.LOCK_EX)
        try:
            assert is_file_locked(learners_path) is True
        finally:
            fcntl.flock(holder.fileno(), fcntl.LOCK_UN)

    assert is_file_locked(learners_path) is False
