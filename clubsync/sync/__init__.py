"""Change detection for the learner spreadsheet.

The monitor notices that the file changed, the differ turns two snapshots
into ordered change events, and the pipeline forwards those events to the
webhook dispatcher, the learner store, and the notifier.
"""

from __future__ import annotations

from .config import MonitorConfig, MonitorConfigError, resolve_spreadsheet_path
from .context import (
    AllowAllAuthorizer,
    ChangeSink,
    ImportAuthorizer,
    LoggingNotifier,
    Notifier,
    SyncContext,
)
from .differ import DiffHandler, SnapshotDiffer, diff_snapshots, validate_record
from .locks import LOCK_SUFFIX, is_file_locked, lock_marker_for
from .monitor import MonitorStartError, SpreadsheetMonitor
from .observability import SyncEventLogger, SyncEventType
from .service import EventDispatcher, SyncPipeline

__all__ = [
    "LOCK_SUFFIX",
    "AllowAllAuthorizer",
    "ChangeSink",
    "DiffHandler",
    "EventDispatcher",
    "ImportAuthorizer",
    "LoggingNotifier",
    "MonitorConfig",
    "MonitorConfigError",
    "MonitorStartError",
    "Notifier",
    "SnapshotDiffer",
    "SpreadsheetMonitor",
    "SyncContext",
    "SyncEventLogger",
    "SyncEventType",
    "SyncPipeline",
    "diff_snapshots",
    "is_file_locked",
    "lock_marker_for",
    "resolve_spreadsheet_path",
    "validate_record",
]
