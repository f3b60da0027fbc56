"""Build learner workbooks on disk for spreadsheet and monitor tests."""

from __future__ import annotations

import os
import typing as typ

from openpyxl import Workbook

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

LEARNER_HEADER = (
    "Admission Number",
    "Full Name",
    "Grade",
    "Date Joined School",
    "Gender",
    "Status",
)

type Row = cabc.Sequence[object]


def write_learner_workbook(
    path: Path,
    rows: cabc.Iterable[Row],
    *,
    header: Row | None = LEARNER_HEADER,
) -> Path:
    """Write ``rows`` below ``header`` to the first sheet of ``path``.

    When ``path`` already exists its modification time is moved forward by
    at least one second, so rewriting a file with same-sized content still
    changes the monitor's fingerprint.
    """
    previous_mtime_ns = path.stat().st_mtime_ns if path.exists() else None

    workbook = Workbook()
    sheet = workbook.active
    assert sheet is not None, "new workbooks always have an active sheet"
    sheet.title = "Learners"
    if header is not None:
        sheet.append(list(header))
    for row in rows:
        sheet.append(list(row))
    workbook.save(path)

    if previous_mtime_ns is not None:
        current = path.stat().st_mtime_ns
        bumped = max(current, previous_mtime_ns + 1_000_000_000)
        os.utime(path, ns=(bumped, bumped))
    return path


def learner_row(
    admission_number: str,
    full_name: str = "Jane Doe",
    grade_name: str = "Grade 7",
    date_joined: object = "2022-01-10",
    gender: str = "F",
    status: str = "active",
) -> tuple[object, ...]:
    """Return one positional learner row with sensible defaults."""
    return (admission_number, full_name, grade_name, date_joined, gender, status)
