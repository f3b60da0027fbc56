"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp."""
    return dt.datetime.now(dt.UTC)


def epoch_millis(moment: dt.datetime | None = None) -> int:
    """Return milliseconds since the Unix epoch for *moment* (default: now)."""
    value = moment if moment is not None else utcnow()
    return int(value.timestamp() * 1000)
