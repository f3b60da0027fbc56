"""Snapshot differ: infer inserts, updates, and removals between two reads.

The spreadsheet has no transaction log, so changes are reconstructed by
comparing the freshly parsed snapshot with the last accepted one. Events for
one pass are ordered so that a consumer applying them in arrival order
converges on the file's contents: new and updated records in snapshot order,
then removals in the previous snapshot's order.
"""

from __future__ import annotations

import typing as typ

from clubsync.logging import get_logger, log_debug, log_warning
from clubsync.models import ChangeEvent, DiffResult, EventType, Snapshot
from clubsync.spreadsheet.dates import is_iso_date

from .observability import SyncEventLogger

if typ.TYPE_CHECKING:
    from clubsync.models import LearnerRecord

logger = get_logger(__name__)

type DiffHandler = typ.Callable[[DiffResult], None]


def validate_record(record: LearnerRecord) -> str | None:
    """Return why *record* cannot be synchronized, or ``None`` if it is valid.

    Examples
    --------
    >>> from clubsync.models import LearnerRecord
    >>> validate_record(LearnerRecord(admission_number="A1", grade_name="7"))
    'missing full name'

    """
    if not record.admission_number.strip():
        return "missing admission number"
    if not record.full_name.strip():
        return "missing full name"
    if not record.grade_name.strip():
        return "missing grade"
    if record.date_joined and not is_iso_date(record.date_joined):
        return f"invalid date {record.date_joined!r}"
    return None


def diff_snapshots(
    previous: Snapshot,
    current: Snapshot,
    *,
    parsed_duplicates: int = 0,
) -> DiffResult:
    """Compare two snapshots and return the ordered change events.

    Parameters
    ----------
    previous
        Last accepted snapshot.
    current
        Freshly parsed snapshot.
    parsed_duplicates
        Duplicates already dropped by the parser, folded into the summary.

    Returns
    -------
    DiffResult
        Events plus aggregated counters. Invalid records never produce
        events and are left out of the processed set, so a record that was
        valid before and is invalid now is reported as removed.

    """
    events: list[ChangeEvent] = []
    processed: set[str] = set()
    new = updated = invalid = duplicates = 0

    for key, record in current.items():
        reason = validate_record(record)
        if reason is not None:
            log_warning(logger, "Skipping invalid record %s: %s", key, reason)
            invalid += 1
            continue
        if key in processed:
            log_warning(logger, "Duplicate admission number in snapshot: %s", key)
            duplicates += 1
            continue
        processed.add(key)

        old = previous.get(key)
        if old is None:
            events.append(
                ChangeEvent(EventType.NEW_STUDENT, record.admission_number, record)
            )
            new += 1
            log_debug(logger, "New student detected: %s", key)
        elif old != record:
            events.append(
                ChangeEvent(EventType.STUDENT_UPDATED, record.admission_number, record)
            )
            updated += 1
            log_debug(logger, "Updated student detected: %s", key)

    removed = 0
    for key, old in previous.items():
        if key in processed:
            continue
        events.append(ChangeEvent(EventType.STUDENT_REMOVED, old.admission_number, old))
        removed += 1
        log_debug(logger, "Removed student detected: %s", key)

    return DiffResult(
        events=tuple(events),
        new=new,
        updated=updated,
        removed=removed,
        duplicates=duplicates + parsed_duplicates,
        invalid=invalid,
    )


class SnapshotDiffer:
    """Own the accepted snapshot and compute change passes against it.

    The accepted snapshot is an immutable value behind a single reference.
    Readers such as health and status queries read :attr:`current` without
    locking; a pass swaps the reference only after its events were handed
    off, so a failed hand-off leaves the previous snapshot in place and the
    next pass reports the same changes again.
    """

    def __init__(
        self,
        initial: Snapshot | None = None,
        *,
        event_logger: SyncEventLogger | None = None,
    ) -> None:
        """Start from *initial*, or an empty snapshot."""
        self._current = initial if initial is not None else Snapshot.empty()
        self._event_logger = event_logger or SyncEventLogger()

    @property
    def current(self) -> Snapshot:
        """Return the last accepted snapshot."""
        return self._current

    def compute(self, snapshot: Snapshot, *, parsed_duplicates: int = 0) -> DiffResult:
        """Diff *snapshot* against the accepted one without committing it."""
        return diff_snapshots(
            self._current, snapshot, parsed_duplicates=parsed_duplicates
        )

    def commit(self, snapshot: Snapshot) -> None:
        """Replace the accepted snapshot."""
        self._current = snapshot

    def apply(
        self,
        snapshot: Snapshot,
        handler: DiffHandler | None = None,
        *,
        parsed_duplicates: int = 0,
        source: str = "",
    ) -> DiffResult:
        """Compute a pass, hand its events to *handler*, then commit.

        Raises
        ------
        Exception
            Whatever *handler* raises; the snapshot is not committed then.

        """
        result = self.compute(snapshot, parsed_duplicates=parsed_duplicates)
        self._event_logger.log_pass_completed(path=source, result=result)
        if handler is not None and result.has_changes:
            handler(result)
        self.commit(snapshot)
        return result


__all__ = ["DiffHandler", "SnapshotDiffer", "diff_snapshots", "validate_record"]
