"""Lenient date normalization for spreadsheet join dates.

Join dates arrive as spreadsheet serial numbers, US-style ``M/D/YYYY`` text,
or ISO ``YYYY-MM-DD`` text. Recognised shapes are rewritten to
``YYYY-MM-DD``; anything else is returned unchanged and logged so that record
validation can reject it later instead of aborting the read.

Examples
--------
>>> normalize_date("44562")
'2022-01-01'
>>> normalize_date("2/2/2020")
'2020-02-02'
>>> normalize_date("next Tuesday")
'next Tuesday'

"""

from __future__ import annotations

import datetime as dt
import re

from openpyxl.utils.datetime import from_excel

from clubsync.logging import get_logger, log_warning

logger = get_logger(__name__)

ISO_DATE_FORMAT = "%Y-%m-%d"

_SERIAL_PATTERN = re.compile(r"\d+(\.\d*)?")
_US_DATE_PATTERN = re.compile(r"\d{1,2}/\d{1,2}/\d{4}")
ISO_DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


def format_iso_date(value: dt.date) -> str:
    """Render a date or datetime as ``YYYY-MM-DD``."""
    return value.strftime(ISO_DATE_FORMAT)


def serial_to_iso_date(serial: float) -> str:
    """Convert a 1900-system spreadsheet serial number to ``YYYY-MM-DD``.

    Raises
    ------
    ValueError
        If the serial does not map to a representable date.

    """
    converted = from_excel(serial)
    if not isinstance(converted, dt.date):
        msg = f"serial {serial!r} is not a date"
        raise ValueError(msg)  # noqa: TRY004 - callers treat any failure as unparseable
    return format_iso_date(converted)


def normalize_date(value: str | None) -> str:
    """Normalize a join date to ``YYYY-MM-DD`` where the shape is recognised.

    Parameters
    ----------
    value
        Raw cell text.

    Returns
    -------
    str
        The normalized date, ``""`` for blank input, or the trimmed input
        unchanged when the format is not recognised.

    """
    if value is None:
        return ""
    text = value.strip()
    if not text:
        return ""

    try:
        if _SERIAL_PATTERN.fullmatch(text):
            return serial_to_iso_date(float(text))
        if _US_DATE_PATTERN.fullmatch(text):
            return format_iso_date(dt.datetime.strptime(text, "%m/%d/%Y"))  # noqa: DTZ007 - calendar date only
    except (ValueError, OverflowError) as exc:
        log_warning(logger, "Error normalizing date %r: %s", text, exc)
        return text

    if ISO_DATE_PATTERN.fullmatch(text):
        return text

    log_warning(logger, "Unrecognized date format: %r", text)
    return text


def is_iso_date(value: str) -> bool:
    """Return whether *value* has the ``YYYY-MM-DD`` shape."""
    return ISO_DATE_PATTERN.fullmatch(value) is not None


__all__ = [
    "ISO_DATE_FORMAT",
    "ISO_DATE_PATTERN",
    "format_iso_date",
    "is_iso_date",
    "normalize_date",
    "serial_to_iso_date",
]
