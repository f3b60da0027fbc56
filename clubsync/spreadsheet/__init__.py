"""Spreadsheet parsing and normalization.

Turns a learner workbook into a validated, deduplicated ``Snapshot`` with
per-read counters. Cell values are coerced to comparison text and join dates
are normalized leniently.

Quick example::

    >>> from clubsync.spreadsheet import read_snapshot
    >>> result = read_snapshot("learners.xlsx")
    >>> result.valid_records, result.duplicate_records
"""

from __future__ import annotations

from .cells import coerce_cell, coerce_value
from .dates import is_iso_date, normalize_date
from .errors import SpreadsheetReadError
from .reader import (
    LEARNER_COLUMNS,
    parse_row,
    read_snapshot,
    read_snapshot_with_retry,
    read_worksheet,
)

__all__ = [
    "LEARNER_COLUMNS",
    "SpreadsheetReadError",
    "coerce_cell",
    "coerce_value",
    "is_iso_date",
    "normalize_date",
    "parse_row",
    "read_snapshot",
    "read_snapshot_with_retry",
    "read_worksheet",
]
