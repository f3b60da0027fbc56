"""Typed domain models for the learner synchronization pipeline.

The pipeline reasons about a spreadsheet as a sequence of immutable
``LearnerRecord`` values keyed by normalized admission number. A ``Snapshot``
captures the accepted contents of the file, ``FileState`` is the cheap
fingerprint consulted before parsing, and ``ChangeEvent`` values describe the
inferred inserts, updates, and removals between two snapshots.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses as dc
import enum
import typing as typ

import msgspec

if typ.TYPE_CHECKING:
    from pathlib import Path


def normalize_admission_number(value: str) -> str:
    """Return the case-insensitive natural key for an admission number.

    Examples
    --------
    >>> normalize_admission_number("  AB-001 ")
    'ab-001'

    """
    return value.strip().lower()


class EventType(enum.StrEnum):
    """Change kinds emitted by the differ and accepted by the receiver."""

    NEW_STUDENT = "new_student"
    STUDENT_UPDATED = "student_updated"
    STUDENT_REMOVED = "student_removed"

    @classmethod
    def parse(cls, value: str) -> EventType | None:
        """Return the matching event type, or ``None`` for unknown values."""
        try:
            return cls(value)
        except ValueError:
            return None


class ChangeTag(enum.StrEnum):
    """Persistence operation derived from an event type."""

    INSERT = "insert"
    UPDATE = "update"
    REMOVE = "remove"

    @classmethod
    def for_event(cls, event_type: EventType) -> ChangeTag:
        """Map an event type to the persistence operation it implies."""
        return _TAG_BY_EVENT[event_type]


_TAG_BY_EVENT: dict[EventType, ChangeTag] = {
    EventType.NEW_STUDENT: ChangeTag.INSERT,
    EventType.STUDENT_UPDATED: ChangeTag.UPDATE,
    EventType.STUDENT_REMOVED: ChangeTag.REMOVE,
}


class LearnerRecord(msgspec.Struct, kw_only=True, frozen=True):
    """One learner row as read from the source spreadsheet.

    Equality is structural over every field, which makes the record the unit
    of change detection.

    Attributes
    ----------
    admission_number
        Admission number as written in the file (trimmed, original case).
    full_name
        Learner's full name.
    grade_name
        Grade or class label.
    date_joined
        Normalized join date, ``YYYY-MM-DD`` when recognised.
    gender
        Free-form gender value.
    status
        Free-form enrolment status.

    """

    admission_number: str
    full_name: str = ""
    grade_name: str = ""
    date_joined: str = ""
    gender: str = ""
    status: str = ""

    @property
    def key(self) -> str:
        """Return the normalized natural key."""
        return normalize_admission_number(self.admission_number)


class Snapshot(cabc.Mapping[str, LearnerRecord]):
    """Immutable, ordered view of the spreadsheet at its last accepted read.

    Keys are normalized admission numbers. Instances are never mutated; the
    monitor replaces the whole snapshot after a successful pass, so readers
    may hold on to an old snapshot while a new one is being built.
    """

    __slots__ = ("_records",)

    def __init__(
        self, records: cabc.Mapping[str, LearnerRecord] | None = None
    ) -> None:
        """Copy *records* into a private insertion-ordered mapping."""
        self._records: dict[str, LearnerRecord] = dict(records or {})

    @classmethod
    def empty(cls) -> Snapshot:
        """Return a snapshot with no records."""
        return cls()

    @classmethod
    def from_records(cls, records: cabc.Iterable[LearnerRecord]) -> Snapshot:
        """Build a snapshot keeping the first record seen for each key."""
        collected: dict[str, LearnerRecord] = {}
        for record in records:
            collected.setdefault(record.key, record)
        return cls(collected)

    def __getitem__(self, key: str) -> LearnerRecord:
        return self._records[key]

    def __iter__(self) -> cabc.Iterator[str]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"Snapshot({len(self._records)} records)"


@dc.dataclass(frozen=True, slots=True)
class FileState:
    """Cheap change fingerprint for the source file."""

    modified_ns: int = 0
    size_bytes: int = -1

    @classmethod
    def of(cls, path: Path) -> FileState:
        """Stat *path* and return its fingerprint.

        Raises
        ------
        OSError
            If the file cannot be stat'ed.

        """
        stat = path.stat()
        return cls(modified_ns=stat.st_mtime_ns, size_bytes=stat.st_size)


@dc.dataclass(frozen=True, slots=True)
class ChangeEvent:
    """An inferred insert, update, or removal of one learner."""

    event_type: EventType
    admission_number: str
    record: LearnerRecord


@dc.dataclass(frozen=True, slots=True)
class TaggedRecord:
    """Record handed to the persistence collaborator with its operation."""

    record: LearnerRecord
    tag: ChangeTag

    @classmethod
    def from_event(cls, event: ChangeEvent) -> TaggedRecord:
        """Tag the event's record with the matching persistence operation."""
        return cls(record=event.record, tag=ChangeTag.for_event(event.event_type))


@dc.dataclass(frozen=True, slots=True)
class ParseResult:
    """Snapshot produced by one spreadsheet read plus observability counters."""

    snapshot: Snapshot
    total_rows: int = 0
    valid_records: int = 0
    duplicate_records: int = 0
    skipped_rows: int = 0
    duplicate_keys: tuple[str, ...] = ()


@dc.dataclass(frozen=True, slots=True)
class DiffResult:
    """Events produced by one differ pass and the aggregated counts."""

    events: tuple[ChangeEvent, ...] = ()
    new: int = 0
    updated: int = 0
    removed: int = 0
    duplicates: int = 0
    invalid: int = 0

    @property
    def has_changes(self) -> bool:
        """Return whether the pass produced any events."""
        return bool(self.events)

    def summary(self) -> str:
        """Return the one-line aggregate used in logs and notifications."""
        return (
            f"{self.new} new, {self.updated} updated, {self.removed} removed, "
            f"{self.duplicates} duplicates, {self.invalid} invalid skipped"
        )


__all__ = [
    "ChangeEvent",
    "ChangeTag",
    "DiffResult",
    "EventType",
    "FileState",
    "LearnerRecord",
    "ParseResult",
    "Snapshot",
    "TaggedRecord",
    "normalize_admission_number",
]
