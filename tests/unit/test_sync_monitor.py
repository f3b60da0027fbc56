"""Unit tests for the spreadsheet change monitor."""

from __future__ import annotations

import threading
import time
import types
import typing as typ

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileOpenedEvent,
)

from clubsync.models import EventType, FileState
from clubsync.sync import MonitorStartError, SpreadsheetMonitor, SyncContext
from clubsync.sync.monitor import _SpreadsheetEventHandler
from tests.helpers.femtologging_capture import capture_femto_logs
from tests.helpers.workbooks import learner_row, write_learner_workbook
from tests.unit.sync_test_helpers import fast_monitor_config

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    from pathlib import Path

    from tests.unit.sync_test_helpers import FakeAuthorizer, RecordingHandler

# Keeps the poll thread idle so tests drive passes explicitly.
_IDLE_POLL = 60.0


class _ScriptedProbe:
    """Lock probe answering from a script, then ``False`` forever."""

    def __init__(self, answers: cabc.Iterable[bool] = ()) -> None:
        self.answers = list(answers)
        self.calls = 0

    def __call__(self, _path: Path) -> bool:
        self.calls += 1
        return self.answers.pop(0) if self.answers else False


def _monitor(
    path: Path,
    handler: RecordingHandler,
    *,
    authorizer: FakeAuthorizer | None = None,
    probe: _ScriptedProbe | None = None,
    **overrides: typ.Any,  # noqa: ANN401
) -> SpreadsheetMonitor:
    overrides.setdefault("poll_interval", _IDLE_POLL)
    context = SyncContext(actor="registrar", authorizer=authorizer) if authorizer else None
    return SpreadsheetMonitor(
        fast_monitor_config(path, **overrides),
        context=context,
        on_changes=handler,
        lock_probe=probe or _ScriptedProbe(),
    )


def _rewrite(path: Path, *rows: tuple[object, ...]) -> None:
    write_learner_workbook(path, rows)


class TestLoading:
    """Tests for explicit load passes."""

    def test_start_loads_initial_snapshot(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """The first pass reports every learner as new."""
        with _monitor(learners_path, handler) as monitor:
            assert monitor.is_running
            assert handler.event_keys(0) == [
                ("new_student", "A001"),
                ("new_student", "A002"),
            ]
            assert len(monitor.snapshot) == 2
            assert monitor.file_state == FileState.of(learners_path)

    def test_unchanged_file_is_not_reparsed(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """A matching fingerprint short-circuits the pass."""
        with _monitor(learners_path, handler) as monitor:
            assert monitor.check_for_changes() is None
            assert monitor.check_for_changes() is None

        assert len(handler.results) == 1

    def test_modification_is_reported_as_update(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """Editing one learner yields exactly one update event."""
        with _monitor(learners_path, handler) as monitor:
            _rewrite(
                learners_path,
                learner_row("A001", "Jane Doe", "Grade 8"),
                learner_row("A002", "John Roe", "Grade 8", gender="M"),
            )

            result = monitor.check_for_changes()

        assert result is not None
        assert [(e.event_type, e.admission_number) for e in result.events] == [
            (EventType.STUDENT_UPDATED, "A001")
        ]

    def test_force_reload_parses_unchanged_file(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """A manual reload parses even when the fingerprint matches."""
        with _monitor(learners_path, handler) as monitor:
            result = monitor.force_reload()

        assert result is not None
        assert not result.has_changes
        assert len(handler.results) == 1, "Expected no hand-off for an empty pass."

    def test_missing_file_is_loaded_once_it_appears(
        self, tmp_path: Path, handler: RecordingHandler
    ) -> None:
        """A monitor started before the file exists picks it up later."""
        path = tmp_path / "learners.xlsx"
        with _monitor(path, handler) as monitor:
            assert monitor.check_for_changes() is None
            write_learner_workbook(path, [learner_row("A001")])

            result = monitor.check_for_changes()

        assert result is not None
        assert result.new == 1

    def test_stopped_monitor_does_not_load(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """Triggers after ``stop()`` are ignored."""
        monitor = _monitor(learners_path, handler)

        assert monitor.check_for_changes() is None
        assert monitor.force_reload() is None
        assert handler.results == []

    def test_unreadable_file_is_recorded_and_retried(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """A corrupt save leaves the fingerprint untouched for the next pass."""
        with _monitor(learners_path, handler) as monitor:
            learners_path.write_bytes(b"half-written")

            assert monitor.check_for_changes() is None
            assert "failed to read spreadsheet" in monitor.status()["last_error"]

            _rewrite(learners_path, learner_row("A001"))
            result = monitor.check_for_changes()

        assert result is not None
        assert result.removed == 1


class TestHandlerFailure:
    """Tests for at-least-once hand-off."""

    def test_failed_pass_is_detected_again(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """Neither snapshot nor fingerprint advance when the handler fails."""
        handler.failures_remaining = 1
        with _monitor(learners_path, handler) as monitor:
            assert len(monitor.snapshot) == 0
            assert monitor.file_state == FileState()
            assert "downstream unavailable" in monitor.status()["last_error"]

            result = monitor.check_for_changes()

        assert result is not None
        assert result.new == 2
        assert handler.event_keys(0) == [
            ("new_student", "A001"),
            ("new_student", "A002"),
        ]


class TestLockBackOff:
    """Tests for lock contention handling."""

    def test_busy_file_is_abandoned_after_every_attempt(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """A file locked on every attempt is skipped for the cycle."""
        probe = _ScriptedProbe([True, True, True])

        with capture_femto_logs("clubsync.sync.observability") as capture:
            monitor = _monitor(learners_path, handler, probe=probe, lock_retries=3)
            with monitor:
                record = capture.wait_for_message("sync.load.abandoned")
                assert probe.calls == 3
                assert len(monitor.snapshot) == 0

                result = monitor.check_for_changes()

        assert "attempts=3" in record.message
        assert result is not None, "Expected the next trigger to retry the load."
        assert result.new == 2

    def test_lock_released_during_back_off_is_read(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """The pass continues as soon as the lock disappears."""
        probe = _ScriptedProbe([True, False])

        with _monitor(learners_path, handler, probe=probe, lock_retries=3) as monitor:
            assert len(monitor.snapshot) == 2

        assert probe.calls >= 2


class TestAuthorization:
    """Tests for the import authorization gate."""

    def test_denied_actor_never_starts(
        self,
        learners_path: Path,
        handler: RecordingHandler,
        authorizer: FakeAuthorizer,
    ) -> None:
        """Denial is silent and leaves the monitor stopped."""
        authorizer.allowed = False
        monitor = _monitor(learners_path, handler, authorizer=authorizer)

        monitor.start()

        assert not monitor.is_running
        assert authorizer.attempts == [False]
        assert handler.results == []

    def test_denial_after_start_skips_the_pass(
        self,
        learners_path: Path,
        handler: RecordingHandler,
        authorizer: FakeAuthorizer,
    ) -> None:
        """Revoked authorization stops later imports without an error."""
        with _monitor(learners_path, handler, authorizer=authorizer) as monitor:
            authorizer.allowed = False
            _rewrite(learners_path, learner_row("A001"))

            assert monitor.check_for_changes() is None
            assert len(monitor.snapshot) == 2

        assert authorizer.attempts == [True, False]

    def test_unchanged_file_is_not_audited(
        self,
        learners_path: Path,
        handler: RecordingHandler,
        authorizer: FakeAuthorizer,
    ) -> None:
        """Authorization is only consulted when there is something to read."""
        with _monitor(learners_path, handler, authorizer=authorizer) as monitor:
            monitor.check_for_changes()

        assert authorizer.attempts == [True]


class TestLifecycle:
    """Tests for start, stop, and background triggers."""

    def test_start_and_stop_are_idempotent(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """Repeated lifecycle calls are harmless."""
        monitor = _monitor(learners_path, handler)

        monitor.start()
        monitor.start()
        monitor.stop()
        monitor.stop()

        assert not monitor.is_running
        assert len(handler.results) == 1

    def test_stop_interrupts_initial_back_off(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """stop() returns promptly while start() is backing off a locked file."""
        probed = threading.Event()

        def _always_locked(_path: Path) -> bool:
            probed.set()
            return True

        monitor = SpreadsheetMonitor(
            fast_monitor_config(
                learners_path,
                poll_interval=_IDLE_POLL,
                lock_retries=5,
                lock_retry_delay=2.0,
            ),
            on_changes=handler,
            lock_probe=_always_locked,
        )
        starter = threading.Thread(target=monitor.start, daemon=True)
        starter.start()
        assert probed.wait(5.0), "Expected the initial load to probe the lock."

        began = time.monotonic()
        monitor.stop()
        elapsed = time.monotonic() - began
        starter.join(5.0)

        assert elapsed < 0.5, f"stop() blocked for {elapsed:.2f}s"
        assert not starter.is_alive()
        assert not monitor.is_running
        assert monitor.status()["watching"] is False
        assert monitor._poll_thread is None
        assert handler.results == []

    def test_poll_thread_detects_changes(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """The interval poll notices a rewritten file on its own."""
        with _monitor(learners_path, handler, poll_interval=0.05):
            handler.called.clear()
            _rewrite(learners_path, learner_row("A003", "New Learner"))

            assert handler.called.wait(5.0), "Expected the poll to report the edit."

        assert ("new_student", "A003") in handler.event_keys()

    def test_directory_notification_triggers_a_pass(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """Filesystem events re-read the file without waiting for a poll."""
        with _monitor(learners_path, handler, watch_enabled=True) as monitor:
            assert monitor.status()["watching"] is True
            handler.called.clear()
            _rewrite(learners_path, learner_row("A001"))

            assert handler.called.wait(5.0), "Expected the watcher to report the edit."

        assert handler.event_keys() == [("student_removed", "A002")]

    def test_handle_file_event_waits_then_checks(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """A notification settles briefly and then runs a normal check."""
        with _monitor(learners_path, handler) as monitor:
            _rewrite(learners_path, learner_row("A001"))
            started = time.monotonic()

            monitor.handle_file_event()

            assert time.monotonic() - started >= 0.01
        assert handler.event_keys() == [("student_removed", "A002")]

    def test_failed_watch_aborts_start(
        self,
        learners_path: Path,
        handler: RecordingHandler,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A directory watch that cannot be installed is a start error."""

        class _BrokenObserver:
            name = ""
            daemon = False

            def schedule(self, *_args: object, **_kwargs: object) -> None:
                msg = "inotify watch limit reached"
                raise OSError(msg)

        monkeypatch.setattr("clubsync.sync.monitor.Observer", _BrokenObserver)
        monitor = _monitor(learners_path, handler, watch_enabled=True)

        with pytest.raises(MonitorStartError, match="inotify watch limit"):
            monitor.start()

        assert not monitor.is_running

    def test_status_and_health(
        self, learners_path: Path, handler: RecordingHandler
    ) -> None:
        """Status reports the file, the fingerprint, and the last pass."""
        monitor = _monitor(learners_path, handler)
        assert not monitor.is_healthy(), "Expected a stopped monitor to be unhealthy."

        with monitor:
            status = monitor.status()
            assert monitor.is_healthy()

        assert status["file_path"] == str(learners_path.resolve())
        assert status["file_exists"] is True
        assert status["file_locked"] is False
        assert status["current_records"] == 2
        assert status["running"] is True
        assert status["watching"] is False
        assert status["lock_retry_attempts"] == 3
        assert status["last_pass"] == (
            "2 new, 0 updated, 0 removed, 0 duplicates, 0 invalid skipped"
        )
        assert status["last_error"] is None


class TestEventFilter:
    """Tests for the directory notification filter."""

    @pytest.fixture
    def triggered(self, tmp_path: Path) -> tuple[_SpreadsheetEventHandler, list[int]]:
        calls: list[int] = []
        monitor = types.SimpleNamespace(
            config=types.SimpleNamespace(file_path=tmp_path / "learners.xlsx"),
            handle_file_event=lambda: calls.append(1),
        )
        return _SpreadsheetEventHandler(monitor), calls  # type: ignore[arg-type]

    def test_spreadsheet_and_marker_events_trigger(
        self,
        tmp_path: Path,
        triggered: tuple[_SpreadsheetEventHandler, list[int]],
    ) -> None:
        """Writes to the file or its lock marker are forwarded."""
        event_handler, calls = triggered

        event_handler.dispatch(FileModifiedEvent(str(tmp_path / "learners.xlsx")))
        event_handler.dispatch(FileModifiedEvent(str(tmp_path / "learners.xlsx.lock")))
        event_handler.dispatch(
            FileMovedEvent(str(tmp_path / "~tmp123"), str(tmp_path / "learners.xlsx"))
        )

        assert len(calls) == 3

    def test_unrelated_events_are_ignored(
        self,
        tmp_path: Path,
        triggered: tuple[_SpreadsheetEventHandler, list[int]],
    ) -> None:
        """Other files, directories, and read-only opens are dropped."""
        event_handler, calls = triggered

        event_handler.dispatch(FileModifiedEvent(str(tmp_path / "other.xlsx")))
        event_handler.dispatch(DirModifiedEvent(str(tmp_path)))
        event_handler.dispatch(FileOpenedEvent(str(tmp_path / "learners.xlsx")))

        assert calls == []
