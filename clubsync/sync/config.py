"""Configuration for the spreadsheet change monitor.

Usage
-----
Create a configuration with defaults:

>>> config = MonitorConfig(file_path=Path("learners.xlsx"))
>>> config.poll_interval
5.0

Or load from environment variables:

>>> import os
>>> os.environ["CLUBSYNC_EXCEL_FILE_PATH"] = "/srv/school/learners.xlsx"
>>> config = MonitorConfig.from_env()

"""

from __future__ import annotations

import dataclasses as dc
import os
from pathlib import Path

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_LOCK_RETRIES = 5
DEFAULT_LOCK_RETRY_DELAY = 3.0
DEFAULT_READ_RETRIES = 3
DEFAULT_READ_RETRY_DELAY = 1.0
DEFAULT_WATCH_SETTLE_DELAY = 5.0
DEFAULT_SHUTDOWN_TIMEOUT = 5.0

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


class MonitorConfigError(ValueError):
    """Raised when monitor configuration cannot be resolved at startup."""

    @classmethod
    def missing_path(cls) -> MonitorConfigError:
        """Return an error when no spreadsheet path is configured."""
        return cls("CLUBSYNC_EXCEL_FILE_PATH is required for the monitor")

    @classmethod
    def not_a_file(cls, path: Path) -> MonitorConfigError:
        """Return an error when the configured path is a directory."""
        return cls(f"spreadsheet path {path} is a directory")

    @classmethod
    def invalid_value(cls, env_var: str, raw: str, expected: str) -> MonitorConfigError:
        """Return an error for a malformed environment value."""
        return cls(f"{env_var} must be {expected}, got: {raw!r}")


def resolve_spreadsheet_path(raw: Path | str) -> Path:
    """Return the absolute, normalized spreadsheet path.

    Raises
    ------
    MonitorConfigError
        If *raw* is empty or names a directory.

    """
    if not str(raw).strip():
        raise MonitorConfigError.missing_path()
    path = Path(raw).expanduser().resolve()
    if path.is_dir():
        raise MonitorConfigError.not_a_file(path)
    return path


def _parse_positive_int(env_var: str, default: int) -> int:
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise MonitorConfigError.invalid_value(env_var, raw, "an integer") from exc
    if value < 1:
        raise MonitorConfigError.invalid_value(env_var, raw, "positive")
    return value


def _parse_positive_float(env_var: str, default: float) -> float:
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise MonitorConfigError.invalid_value(env_var, raw, "a number") from exc
    if value <= 0:
        raise MonitorConfigError.invalid_value(env_var, raw, "positive")
    return value


def _parse_bool(env_var: str, *, default: bool) -> bool:
    raw = os.environ.get(env_var, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise MonitorConfigError.invalid_value(env_var, raw, "a boolean")


@dc.dataclass(frozen=True, slots=True)
class MonitorConfig:
    """Timing and location settings for :class:`SpreadsheetMonitor`.

    Attributes
    ----------
    file_path
        Spreadsheet to monitor. Resolved to an absolute path on creation.
    poll_interval
        Seconds between fingerprint polls.
    lock_retries
        Attempts made while the file is locked before the cycle is abandoned.
    lock_retry_delay
        Seconds between lock attempts.
    read_retries
        Attempts made on transient read failures.
    read_retry_delay
        Seconds between read attempts.
    watch_enabled
        Whether OS directory notifications trigger re-reads.
    watch_settle_delay
        Seconds to wait after a notification before re-reading, giving the
        writer time to finish saving.
    shutdown_timeout
        Upper bound, in seconds, on how long ``stop()`` waits for threads.

    """

    file_path: Path
    poll_interval: float = DEFAULT_POLL_INTERVAL
    lock_retries: int = DEFAULT_LOCK_RETRIES
    lock_retry_delay: float = DEFAULT_LOCK_RETRY_DELAY
    read_retries: int = DEFAULT_READ_RETRIES
    read_retry_delay: float = DEFAULT_READ_RETRY_DELAY
    watch_enabled: bool = True
    watch_settle_delay: float = DEFAULT_WATCH_SETTLE_DELAY
    shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT

    def __post_init__(self) -> None:
        """Resolve the spreadsheet path and reject non-positive retry counts."""
        object.__setattr__(self, "file_path", resolve_spreadsheet_path(self.file_path))
        if self.lock_retries < 1 or self.read_retries < 1:
            msg = "retry counts must be positive"
            raise MonitorConfigError(msg)

    @classmethod
    def from_env(cls, *, file_path: Path | None = None) -> MonitorConfig:
        """Create configuration from environment variables.

        Reads ``CLUBSYNC_EXCEL_FILE_PATH`` (required unless *file_path* is
        given), ``CLUBSYNC_POLL_INTERVAL``, ``CLUBSYNC_LOCK_RETRIES``,
        ``CLUBSYNC_LOCK_RETRY_DELAY`` and ``CLUBSYNC_ENABLE_WATCHER``.

        Raises
        ------
        MonitorConfigError
            If the path is missing or a value is malformed.

        """
        if file_path is None:
            raw_path = os.environ.get("CLUBSYNC_EXCEL_FILE_PATH", "").strip()
            if not raw_path:
                raise MonitorConfigError.missing_path()
            file_path = Path(raw_path)
        return cls(
            file_path=file_path,
            poll_interval=_parse_positive_float(
                "CLUBSYNC_POLL_INTERVAL", DEFAULT_POLL_INTERVAL
            ),
            lock_retries=_parse_positive_int(
                "CLUBSYNC_LOCK_RETRIES", DEFAULT_LOCK_RETRIES
            ),
            lock_retry_delay=_parse_positive_float(
                "CLUBSYNC_LOCK_RETRY_DELAY", DEFAULT_LOCK_RETRY_DELAY
            ),
            watch_enabled=_parse_bool("CLUBSYNC_ENABLE_WATCHER", default=True),
        )


__all__ = ["MonitorConfig", "MonitorConfigError", "resolve_spreadsheet_path"]
