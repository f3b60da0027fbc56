"""Collaborator interfaces and the explicit synchronization context.

The monitor and pipeline never read ambient session state. Everything they
need to know about the current actor, and every external collaborator they
call, is carried by a ``SyncContext`` built by the caller and passed in.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from clubsync.logging import get_logger, log_info

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from clubsync.models import TaggedRecord

logger = get_logger(__name__)


class ImportAuthorizer(typ.Protocol):
    """Decide whether the current actor may import the spreadsheet."""

    def can_import(self) -> bool:
        """Return whether an import may run."""
        ...

    def record_import_attempt(self, *, allowed: bool) -> None:
        """Audit an import attempt and its outcome."""
        ...


class ChangeSink(typ.Protocol):
    """Persistence collaborator that commits a batch of tagged records.

    Implementations must apply a batch all-or-nothing and be idempotent on
    the learner's natural key.
    """

    def apply_changes(self, changes: cabc.Sequence[TaggedRecord]) -> None:
        """Persist *changes* in one transaction."""
        ...


class Notifier(typ.Protocol):
    """Human-facing notification surface."""

    def notify(self, title: str, message: str) -> None:
        """Show *message* under *title*."""
        ...


class AllowAllAuthorizer:
    """Authorizer that admits every import and audits to the log."""

    def can_import(self) -> bool:
        """Return ``True``."""
        return True

    def record_import_attempt(self, *, allowed: bool) -> None:
        """Log the attempt."""
        log_info(logger, "Import attempt recorded (allowed=%s)", allowed)


class LoggingNotifier:
    """Notifier that writes notifications to the log."""

    def notify(self, title: str, message: str) -> None:
        """Log *title* and *message* at INFO level."""
        log_info(logger, "%s: %s", title, message)


@dc.dataclass(frozen=True, slots=True)
class SyncContext:
    """Actor identity and collaborators injected into the pipeline.

    Attributes
    ----------
    actor
        Identifier of the user or service account driving the import.
    tenant_id
        School (tenant) the imported learners belong to.
    authorizer
        Yes/no gate consulted before every load, plus its audit callback.
    store
        Optional persistence collaborator; when ``None`` changes are only
        dispatched as webhooks.
    notifier
        Surface that receives human-readable summaries.

    """

    actor: str | None = None
    tenant_id: str = "default"
    authorizer: ImportAuthorizer = dc.field(default_factory=AllowAllAuthorizer)
    store: ChangeSink | None = None
    notifier: Notifier = dc.field(default_factory=LoggingNotifier)

    def authorize_import(self) -> bool:
        """Consult the authorizer and audit the decision."""
        allowed = self.authorizer.can_import()
        self.authorizer.record_import_attempt(allowed=allowed)
        return allowed


__all__ = [
    "AllowAllAuthorizer",
    "ChangeSink",
    "ImportAuthorizer",
    "LoggingNotifier",
    "Notifier",
    "SyncContext",
]
