"""File change monitor that re-reads the spreadsheet when it changes.

Two triggers drive re-reads: a fixed-interval poll running on its own
thread, and OS directory notifications delivered by a watchdog
``Observer``. Both converge on :meth:`SpreadsheetMonitor.check_for_changes`,
which is safe to fire concurrently: a trigger that arrives while a load is in
progress is dropped, and re-reading an unchanged file is a no-op because the
``(mtime, size)`` fingerprint is compared before any parse.

A file held by another process is "busy", not broken. The monitor backs off
for a bounded number of attempts and then abandons the cycle; the next
trigger tries again. Every wait goes through a shared stop event so
``stop()`` interrupts back-off and settle delays immediately.
"""

from __future__ import annotations

import os
import threading
import typing as typ
from pathlib import Path

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from clubsync.logging import (
    get_logger,
    log_debug,
    log_error,
    log_exception,
    log_info,
    log_warning,
)
from clubsync.models import FileState
from clubsync.spreadsheet import SpreadsheetReadError, read_snapshot_with_retry

from .context import SyncContext
from .differ import DiffHandler, SnapshotDiffer
from .locks import LOCK_SUFFIX, is_file_locked
from .observability import SyncEventLogger

if typ.TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from clubsync.models import DiffResult, Snapshot

    from .config import MonitorConfig

logger = get_logger(__name__)

type LockProbe = typ.Callable[[Path], bool]


class MonitorStartError(RuntimeError):
    """Raised when the monitor cannot enter its running state."""

    @classmethod
    def watch_failed(cls, directory: Path, cause: BaseException) -> MonitorStartError:
        """Return an error for a directory watch that could not be installed."""
        return cls(f"failed to watch {directory}: {cause}")


class _SpreadsheetEventHandler(FileSystemEventHandler):
    """Forward notifications that concern the spreadsheet or its lock marker."""

    def __init__(self, monitor: SpreadsheetMonitor) -> None:
        super().__init__()
        self._monitor = monitor
        file_name = monitor.config.file_path.name
        self._names = frozenset({file_name, file_name + LOCK_SUFFIX})

    def _concerns_spreadsheet(self, event: FileSystemEvent) -> bool:
        if event.is_directory:
            return False
        paths = [event.src_path, getattr(event, "dest_path", "")]
        return any(
            path and Path(os.fsdecode(path)).name in self._names for path in paths
        )

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in {"opened", "closed_no_write"}:
            return
        if self._concerns_spreadsheet(event):
            self._monitor.handle_file_event()


class SpreadsheetMonitor:
    """Watch a spreadsheet and hand change passes to a handler.

    Parameters
    ----------
    config
        Location and timing settings.
    context
        Actor identity and collaborators; the authorizer is consulted before
        the monitor starts and before every parse.
    on_changes
        Receives each :class:`~clubsync.models.DiffResult` that carries
        events. The accepted snapshot and fingerprint advance only after it
        returns.
    differ
        Differ owning the accepted snapshot. A fresh one is created when
        omitted.
    lock_probe
        Returns whether the file is currently held by another process.

    """

    def __init__(
        self,
        config: MonitorConfig,
        *,
        context: SyncContext | None = None,
        on_changes: DiffHandler | None = None,
        differ: SnapshotDiffer | None = None,
        lock_probe: LockProbe = is_file_locked,
        event_logger: SyncEventLogger | None = None,
    ) -> None:
        """Initialise the monitor in its stopped state."""
        self.config = config
        self._context = context or SyncContext()
        self._on_changes = on_changes
        self._event_logger = event_logger or SyncEventLogger()
        self._differ = differ or SnapshotDiffer(event_logger=self._event_logger)
        self._lock_probe = lock_probe

        self._running = threading.Event()
        self._stop_requested = threading.Event()
        self._lifecycle_lock = threading.Lock()
        self._load_guard = threading.Lock()

        self._file_state = FileState()
        self._last_result: DiffResult | None = None
        self._last_error: str | None = None
        self._poll_thread: threading.Thread | None = None
        self._observer: BaseObserver | None = None

    # ------------------------------------------------------------------
    # Lock-free reads
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """Return whether the monitor is running."""
        return self._running.is_set()

    @property
    def snapshot(self) -> Snapshot:
        """Return the last accepted snapshot."""
        return self._differ.current

    @property
    def file_state(self) -> FileState:
        """Return the fingerprint of the last successful parse."""
        return self._file_state

    @property
    def last_result(self) -> DiffResult | None:
        """Return the most recent completed pass, if any."""
        return self._last_result

    def is_healthy(self) -> bool:
        """Return whether the file is present, readable, unlocked, and watched."""
        path = self.config.file_path
        return (
            path.exists()
            and os.access(path, os.R_OK)
            and not self._lock_probe(path)
            and self.is_running
        )

    def status(self) -> dict[str, typ.Any]:
        """Return a status mapping for external polling."""
        path = self.config.file_path
        exists = path.exists()
        last = self._last_result
        return {
            "file_path": str(path),
            "file_exists": exists,
            "file_readable": exists and os.access(path, os.R_OK),
            "file_locked": exists and self._lock_probe(path),
            "last_modified_ns": self._file_state.modified_ns,
            "file_size": self._file_state.size_bytes,
            "current_records": len(self._differ.current),
            "running": self.is_running,
            "watching": self._observer is not None,
            "lock_retry_attempts": self.config.lock_retries,
            "lock_retry_delay": self.config.lock_retry_delay,
            "last_pass": last.summary() if last is not None else None,
            "last_error": self._last_error,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Authorize, load once, then start polling and watching.

        Calling ``start()`` on a running monitor is a no-op. An actor the
        authorizer rejects leaves the monitor stopped without any error.

        Raises
        ------
        MonitorStartError
            If the directory watch cannot be installed.

        """
        with self._lifecycle_lock:
            if self._running.is_set():
                log_warning(logger, "Monitor for %s is already running", self._path)
                return
            if not self._context.authorize_import():
                self._event_logger.log_denied(actor=self._context.actor)
                return

            log_info(logger, "Starting spreadsheet monitor for %s", self._path)
            self._stop_requested.clear()
            self._running.set()

        # The initial load runs unlocked so stop() can interrupt its back-off.
        self._run_safely(lambda: self._load(force=False, authorized=True))

        with self._lifecycle_lock:
            if self._stop_requested.is_set():
                log_info(logger, "Monitor for %s stopped during initial load", self._path)
                return

            if self.config.watch_enabled:
                try:
                    self._start_watcher()
                except OSError as exc:
                    self._running.clear()
                    self._stop_requested.set()
                    raise MonitorStartError.watch_failed(self._path.parent, exc) from exc

            self._poll_thread = threading.Thread(
                target=self._poll_loop,
                name="clubsync-monitor-poll",
                daemon=True,
            )
            self._poll_thread.start()
            log_info(
                logger,
                "Spreadsheet monitor started (poll=%.1fs, lock retries=%d x %.1fs)",
                self.config.poll_interval,
                self.config.lock_retries,
                self.config.lock_retry_delay,
            )

    def stop(self) -> None:
        """Stop polling and watching, waiting a bounded time for threads.

        In-flight work is not interrupted mid-parse, but every pending wait
        returns immediately and no new load starts once this is called.
        """
        with self._lifecycle_lock:
            if not self._running.is_set():
                return
            self._running.clear()
            self._stop_requested.set()

            timeout = self.config.shutdown_timeout
            observer, self._observer = self._observer, None
            if observer is not None:
                observer.stop()
                if observer is not threading.current_thread():
                    observer.join(timeout)

            poll_thread, self._poll_thread = self._poll_thread, None
            if poll_thread is not None and poll_thread is not threading.current_thread():
                poll_thread.join(timeout)
                if poll_thread.is_alive():
                    log_warning(
                        logger,
                        "Poll thread did not finish within %.1fs",
                        timeout,
                    )
            log_info(logger, "Spreadsheet monitor for %s stopped", self._path)

    def __enter__(self) -> typ.Self:
        """Start the monitor for use as a context manager."""
        self.start()
        return self

    def __exit__(self, *_exc_info: object) -> None:
        """Stop the monitor."""
        self.stop()

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def check_for_changes(self) -> DiffResult | None:
        """Re-read the spreadsheet if its fingerprint changed.

        Returns
        -------
        DiffResult | None
            The completed pass, or ``None`` when nothing was parsed (stopped,
            missing, unchanged, unauthorized, busy, unreadable, or another
            load already in progress).

        """
        return self._load(force=False)

    def force_reload(self) -> DiffResult | None:
        """Re-read the spreadsheet even if the fingerprint is unchanged."""
        log_info(logger, "Manual reload requested for %s", self._path)
        return self._load(force=True)

    def handle_file_event(self) -> None:
        """React to a directory notification for the spreadsheet."""
        if not self._running.is_set():
            return
        log_debug(logger, "Directory notification for %s", self._path)
        if self._stop_requested.wait(self.config.watch_settle_delay):
            return
        self._run_safely(self.check_for_changes)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @property
    def _path(self) -> Path:
        return self.config.file_path

    def _start_watcher(self) -> None:
        observer = Observer()
        observer.name = "clubsync-monitor-watch"
        observer.daemon = True
        observer.schedule(
            _SpreadsheetEventHandler(self), str(self._path.parent), recursive=False
        )
        observer.start()
        self._observer = observer
        log_info(logger, "Watching directory %s for changes", self._path.parent)

    def _poll_loop(self) -> None:
        while not self._stop_requested.wait(self.config.poll_interval):
            self._run_safely(self.check_for_changes)

    def _run_safely(self, action: typ.Callable[[], object]) -> None:
        try:
            action()
        except Exception as exc:  # noqa: BLE001 - worker threads must survive any pass failure
            self._last_error = str(exc)
            log_exception(logger, f"Spreadsheet pass failed for {self._path}", exc)

    def _load(self, *, force: bool, authorized: bool = False) -> DiffResult | None:
        if not self._running.is_set():
            log_debug(logger, "Monitor not running, skipping load")
            return None
        if not self._load_guard.acquire(blocking=False):
            log_debug(logger, "Load already in progress for %s", self._path)
            return None
        try:
            return self._load_locked(force=force, authorized=authorized)
        finally:
            self._load_guard.release()

    def _load_locked(self, *, force: bool, authorized: bool) -> DiffResult | None:
        path = self._path
        if not path.exists():
            log_debug(logger, "Spreadsheet does not exist: %s", path)
            return None
        try:
            state = FileState.of(path)
        except OSError as exc:
            log_debug(logger, "Could not stat %s: %s", path, exc)
            return None

        if not force and state == self._file_state:
            self._event_logger.log_unchanged(path=path)
            return None

        if not authorized and not self._context.authorize_import():
            self._event_logger.log_denied(actor=self._context.actor)
            return None

        if not self._wait_until_unlocked(path):
            return None
        return self._read_and_diff(path, state)

    def _wait_until_unlocked(self, path: Path) -> bool:
        attempts = self.config.lock_retries
        for attempt in range(1, attempts + 1):
            if not self._lock_probe(path):
                return True
            self._event_logger.log_busy(path=path, attempt=attempt, attempts=attempts)
            if attempt < attempts and self._stop_requested.wait(
                self.config.lock_retry_delay
            ):
                return False
        self._event_logger.log_abandoned(path=path, attempts=attempts)
        return False

    def _read_and_diff(self, path: Path, state: FileState) -> DiffResult | None:
        try:
            parsed = read_snapshot_with_retry(
                path,
                attempts=self.config.read_retries,
                delay=self.config.read_retry_delay,
                wait=self._stop_requested.wait,
            )
        except SpreadsheetReadError as exc:
            self._last_error = str(exc)
            log_error(logger, "Error loading spreadsheet %s: %s", path, exc)
            return None

        self._event_logger.log_read_completed(path=path, result=parsed)
        result = self._differ.apply(
            parsed.snapshot,
            self._on_changes,
            parsed_duplicates=parsed.duplicate_records,
            source=str(path),
        )
        self._file_state = state
        self._last_result = result
        self._last_error = None
        return result


__all__ = ["LockProbe", "MonitorStartError", "SpreadsheetMonitor"]
