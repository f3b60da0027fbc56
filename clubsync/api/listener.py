"""Listener interface receiving validated inbound webhook events."""

from __future__ import annotations

import typing as typ

from clubsync.logging import get_logger, log_exception, log_info

if typ.TYPE_CHECKING:
    from clubsync.models import EventType

logger = get_logger(__name__)


class WebhookListener(typ.Protocol):
    """Consumer of events accepted by the receiver."""

    def on_event(self, event_type: EventType, admission_number: str) -> None:
        """Handle one accepted event."""
        ...


class LoggingListener:
    """Listener that only logs accepted events."""

    def on_event(self, event_type: EventType, admission_number: str) -> None:
        """Log the event at INFO level."""
        log_info(logger, "Webhook event %s for %s", event_type, admission_number)


def deliver_to_listener(
    listener: WebhookListener, event_type: EventType, admission_number: str
) -> None:
    """Call *listener* and log, rather than raise, any failure."""
    try:
        listener.on_event(event_type, admission_number)
    except Exception as exc:  # noqa: BLE001 - runs after the response was sent
        log_exception(
            logger,
            f"Error in webhook listener for {event_type} {admission_number}",
            exc,
        )


__all__ = ["LoggingListener", "WebhookListener", "deliver_to_listener"]
