"""Emit structured observability events for synchronization passes.

This module defines event identifiers and a logger wrapper used by the
monitor and differ to emit pass summaries, lock back-off outcomes, and
authorization decisions in a form log aggregators can parse.

Usage
-----
>>> event_logger = SyncEventLogger()
>>> event_logger.log_pass_completed(path="learners.xlsx", result=diff_result)

"""

from __future__ import annotations

import enum
import typing as typ

from clubsync.logging import get_logger, log_debug, log_info, log_warning

if typ.TYPE_CHECKING:
    from pathlib import Path

    from clubsync.models import DiffResult, ParseResult

logger = get_logger(__name__)


class SyncEventType(enum.StrEnum):
    """Structured log event types for the synchronization pipeline."""

    PASS_COMPLETED = "sync.pass.completed"
    READ_COMPLETED = "sync.read.completed"
    LOAD_UNCHANGED = "sync.load.unchanged"
    LOAD_BUSY = "sync.load.busy"
    LOAD_ABANDONED = "sync.load.abandoned"
    IMPORT_DENIED = "sync.import.denied"


class SyncEventLogger:
    """Emit structured synchronization events via femtologging."""

    def log_read_completed(self, *, path: Path, result: ParseResult) -> None:
        """Log the counters of one successful spreadsheet read."""
        log_info(
            logger,
            "[%s] path=%s rows=%d valid=%d duplicates=%d skipped=%d",
            SyncEventType.READ_COMPLETED,
            path,
            result.total_rows,
            result.valid_records,
            result.duplicate_records,
            result.skipped_rows,
        )

    def log_pass_completed(self, *, path: Path | str, result: DiffResult) -> None:
        """Log the single per-pass change summary."""
        log_info(
            logger,
            "[%s] path=%s new=%d updated=%d removed=%d duplicates=%d invalid=%d",
            SyncEventType.PASS_COMPLETED,
            path,
            result.new,
            result.updated,
            result.removed,
            result.duplicates,
            result.invalid,
        )

    def log_unchanged(self, *, path: Path) -> None:
        """Log that the fingerprint matched and the parse was skipped."""
        log_debug(logger, "[%s] path=%s", SyncEventType.LOAD_UNCHANGED, path)

    def log_busy(self, *, path: Path, attempt: int, attempts: int) -> None:
        """Log one lock-contention back-off step."""
        log_info(
            logger,
            "[%s] path=%s attempt=%d/%d",
            SyncEventType.LOAD_BUSY,
            path,
            attempt,
            attempts,
        )

    def log_abandoned(self, *, path: Path, attempts: int) -> None:
        """Log that the file stayed locked for every attempt this cycle."""
        log_warning(
            logger,
            "[%s] path=%s attempts=%d",
            SyncEventType.LOAD_ABANDONED,
            path,
            attempts,
        )

    def log_denied(self, *, actor: str | None) -> None:
        """Log a silent authorization denial."""
        log_info(logger, "[%s] actor=%s", SyncEventType.IMPORT_DENIED, actor)


__all__ = ["SyncEventLogger", "SyncEventType"]
