"""Read a learner spreadsheet into a deduplicated ``Snapshot``.

The first worksheet is read row by row. Row 1 holds headers and is only
logged. Columns are positional, matching the learner export layout:

====  ====================
Col   Field
====  ====================
A     admission number
B     full name
C     grade
D     date joined school
E     gender
F     status
====  ====================

Rows with an empty admission number are skipped. Duplicate admission numbers
are compared case-insensitively; the first occurrence in file order is kept
and every later occurrence is counted, logged, and dropped.
"""

from __future__ import annotations

import time
import typing as typ
import zipfile
from pathlib import Path

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from clubsync.logging import get_logger, log_debug, log_info, log_warning
from clubsync.models import LearnerRecord, ParseResult, Snapshot

from .cells import coerce_cell
from .dates import normalize_date
from .errors import SpreadsheetReadError

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from openpyxl.worksheet.worksheet import Worksheet

logger = get_logger(__name__)

LEARNER_COLUMNS: tuple[str, ...] = (
    "admission_number",
    "full_name",
    "grade_name",
    "date_joined_school",
    "gender",
    "status",
)

DEFAULT_READ_ATTEMPTS = 3
DEFAULT_READ_RETRY_DELAY = 1.0

type WaitFn = typ.Callable[[float], bool]


def parse_row(cells: cabc.Sequence[typ.Any]) -> LearnerRecord | None:
    """Build a record from one data row, or ``None`` when it has no key."""
    values = [coerce_cell(cell).strip() for cell in cells[: len(LEARNER_COLUMNS)]]
    values.extend([""] * (len(LEARNER_COLUMNS) - len(values)))
    admission_number, full_name, grade_name, raw_date, gender, status = values
    if not admission_number:
        return None

    date_joined = normalize_date(raw_date)
    log_debug(
        logger,
        "Raw date %r normalized to %r for %s",
        raw_date,
        date_joined,
        admission_number,
    )
    return LearnerRecord(
        admission_number=admission_number,
        full_name=full_name,
        grade_name=grade_name,
        date_joined=date_joined,
        gender=gender,
        status=status,
    )


class _SnapshotBuilder:
    """Accumulate rows in file order, keeping the first record per key."""

    def __init__(self) -> None:
        self.records: dict[str, LearnerRecord] = {}
        self.first_rows: dict[str, int] = {}
        self.duplicate_keys: dict[str, None] = {}
        self.duplicate_rows: list[int] = []
        self.total_rows = 0
        self.skipped_rows = 0

    def add_row(self, row_number: int, cells: cabc.Sequence[typ.Any]) -> None:
        self.total_rows += 1
        try:
            record = parse_row(cells)
        except (TypeError, ValueError, OverflowError) as exc:
            log_warning(logger, "Error parsing row %d: %s", row_number, exc)
            self.skipped_rows += 1
            return

        if record is None:
            self.skipped_rows += 1
            return

        key = record.key
        existing = self.records.get(key)
        if existing is not None:
            self.duplicate_keys.setdefault(record.admission_number)
            self.duplicate_rows.append(row_number)
            log_warning(
                logger,
                "Duplicate admission number in row %d: %s (first seen in row %d); "
                "keeping %r, dropping %r",
                row_number,
                record.admission_number,
                self.first_rows[key],
                existing.full_name,
                record.full_name,
            )
            return

        self.records[key] = record
        self.first_rows[key] = row_number

    def build(self) -> ParseResult:
        return ParseResult(
            snapshot=Snapshot(self.records),
            total_rows=self.total_rows,
            valid_records=len(self.records),
            duplicate_records=len(self.duplicate_rows),
            skipped_rows=self.skipped_rows,
            duplicate_keys=tuple(self.duplicate_keys),
        )


def read_worksheet(sheet: Worksheet) -> ParseResult:
    """Parse an already opened worksheet into a ``ParseResult``."""
    builder = _SnapshotBuilder()
    rows = sheet.iter_rows()

    header = next(rows, None)
    if header is None:
        return builder.build()
    log_info(logger, "Headers: %s", ", ".join(coerce_cell(cell) for cell in header))

    for row_number, cells in enumerate(rows, start=2):
        builder.add_row(row_number, cells)

    result = builder.build()
    if result.duplicate_records:
        log_warning(
            logger,
            "Found %d duplicate records with %d unique admission numbers: %s "
            "(rows %s)",
            result.duplicate_records,
            len(result.duplicate_keys),
            ", ".join(result.duplicate_keys),
            ", ".join(str(row) for row in builder.duplicate_rows),
        )
    log_info(
        logger,
        "Parsed %d valid records from %d rows (%d duplicates, %d skipped)",
        result.valid_records,
        result.total_rows,
        result.duplicate_records,
        result.skipped_rows,
    )
    return result


def read_snapshot(path: Path | str) -> ParseResult:
    """Read the first worksheet of *path* into a deduplicated snapshot.

    Raises
    ------
    SpreadsheetReadError
        If the file is missing or cannot be opened as a workbook. A workbook
        that opens but holds no rows yields an empty snapshot instead.

    """
    path_obj = Path(path)
    if not path_obj.exists():
        raise SpreadsheetReadError.missing(path_obj)

    log_info(logger, "Reading spreadsheet %s", path_obj)
    try:
        workbook = load_workbook(path_obj, read_only=True, data_only=True)
    except (OSError, zipfile.BadZipFile, InvalidFileException, KeyError) as exc:
        raise SpreadsheetReadError.unreadable(path_obj, exc) from exc

    try:
        if not workbook.worksheets:
            return ParseResult(snapshot=Snapshot.empty())
        return read_worksheet(workbook.worksheets[0])
    except (OSError, zipfile.BadZipFile, KeyError) as exc:
        raise SpreadsheetReadError.unreadable(path_obj, exc) from exc
    finally:
        workbook.close()


def _sleep(delay: float) -> bool:
    time.sleep(delay)
    return False


def read_snapshot_with_retry(
    path: Path | str,
    *,
    attempts: int = DEFAULT_READ_ATTEMPTS,
    delay: float = DEFAULT_READ_RETRY_DELAY,
    wait: WaitFn | None = None,
) -> ParseResult:
    """Read *path*, retrying transient failures with a fixed delay.

    Parameters
    ----------
    path
        Spreadsheet to read.
    attempts
        Total number of read attempts.
    delay
        Seconds to wait between attempts.
    wait
        Interruptible wait; returns ``True`` when the caller asked to stop,
        in which case the last failure is raised without further attempts.
        Defaults to :func:`time.sleep`.

    Raises
    ------
    SpreadsheetReadError
        When every attempt fails, the failure is not transient, or the wait
        was interrupted.

    """
    wait_fn = wait or _sleep
    attempt = 1
    while True:
        try:
            return read_snapshot(path)
        except SpreadsheetReadError as exc:
            if not exc.transient or attempt >= attempts:
                raise
            log_warning(
                logger,
                "Failed to read spreadsheet (attempt %d/%d), retrying: %s",
                attempt,
                attempts,
                exc,
            )
            if wait_fn(delay):
                raise
        attempt += 1


__all__ = [
    "LEARNER_COLUMNS",
    "parse_row",
    "read_snapshot",
    "read_snapshot_with_retry",
    "read_worksheet",
]
