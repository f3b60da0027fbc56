"""Wire differ output to the webhook dispatcher, store, and notifier.

``SyncPipeline.handle_changes`` is the handler passed to
:class:`~clubsync.sync.monitor.SpreadsheetMonitor`. It never raises for
downstream failures: webhook delivery problems are already swallowed by the
dispatcher and store failures are logged, so the monitor keeps polling.
"""

from __future__ import annotations

import typing as typ

from clubsync.logging import get_logger, log_debug, log_exception, log_info
from clubsync.models import EventType, TaggedRecord

from .context import SyncContext
from .observability import SyncEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from clubsync.models import ChangeEvent, DiffResult

logger = get_logger(__name__)

NOTIFICATION_TITLE = "Learner spreadsheet synchronized"


class EventDispatcher(typ.Protocol):
    """Outbound delivery collaborator for change events."""

    def dispatch_all(self, events: cabc.Iterable[ChangeEvent]) -> object:
        """Deliver *events* in order."""
        ...


class SyncPipeline:
    """Fan out one change pass to every downstream collaborator.

    Parameters
    ----------
    context
        Actor identity, authorizer, optional store, and notifier.
    dispatcher
        Optional outbound webhook dispatcher.

    """

    def __init__(
        self,
        context: SyncContext | None = None,
        *,
        dispatcher: EventDispatcher | None = None,
        event_logger: SyncEventLogger | None = None,
    ) -> None:
        self._context = context or SyncContext()
        self._dispatcher = dispatcher
        self._event_logger = event_logger or SyncEventLogger()

    def handle_changes(self, diff: DiffResult) -> None:
        """Dispatch events, persist inserts and updates, then notify."""
        if not diff.has_changes:
            log_debug(logger, "No changes to process")
            return

        if self._dispatcher is not None:
            self._dispatcher.dispatch_all(diff.events)

        self._persist(diff.events)
        self._context.notifier.notify(NOTIFICATION_TITLE, diff.summary())

    def _persist(self, events: cabc.Sequence[ChangeEvent]) -> None:
        store = self._context.store
        if store is None:
            return
        changes = [
            TaggedRecord.from_event(event)
            for event in events
            if event.event_type is not EventType.STUDENT_REMOVED
        ]
        if not changes:
            log_info(logger, "No database changes to process")
            return
        if not self._context.authorize_import():
            self._event_logger.log_denied(actor=self._context.actor)
            return

        log_info(logger, "Applying %d changes to the learner store", len(changes))
        try:
            store.apply_changes(changes)
        except Exception as exc:  # noqa: BLE001 - store failures must not stop the monitor
            log_exception(logger, "Failed to apply changes to the learner store", exc)
            return
        log_info(logger, "Applied %d changes to the learner store", len(changes))


__all__ = ["NOTIFICATION_TITLE", "EventDispatcher", "SyncPipeline"]
