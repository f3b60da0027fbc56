"""Deliver change events to the configured webhook URL.

Delivery is best effort: the dispatcher reports every outcome but never
raises, so a slow or failing consumer cannot stall change detection.
Destinations on the loopback interface are skipped because producer and
consumer then share a host and the event would notify its own origin.
"""

from __future__ import annotations

import dataclasses as dc
import enum
import threading
import typing as typ

import httpx

from clubsync.logging import get_logger, log_debug, log_error, log_info, log_warning

from .config import EVENT_SOURCE, USER_AGENT, WebhookDispatcherConfig
from .payload import build_payload, encode_payload, idempotency_key_for
from .signing import SIGNATURE_HEADER, sign_payload

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from clubsync.models import ChangeEvent

logger = get_logger(__name__)

_SUCCESS_MIN = 200
_SUCCESS_MAX = 300


class DeliveryStatus(enum.StrEnum):
    """Result of one delivery attempt."""

    DELIVERED = "delivered"
    REJECTED = "rejected"
    FAILED = "failed"
    SKIPPED = "skipped"


@dc.dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """What happened when one event was dispatched."""

    status: DeliveryStatus
    event_type: str
    admission_number: str
    status_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        """Return whether the consumer accepted the event."""
        return self.status is DeliveryStatus.DELIVERED


class WebhookDispatcher:
    """POST change events to a webhook consumer.

    Parameters
    ----------
    config
        Destination, credentials, and timeout.
    http_client
        Optional pre-configured client; the dispatcher closes only clients
        it created itself.

    """

    def __init__(
        self,
        config: WebhookDispatcherConfig,
        *,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=config.timeout_s)
        self._closed = threading.Event()

    @property
    def config(self) -> WebhookDispatcherConfig:
        """Return the dispatcher configuration."""
        return self._config

    def build_headers(self, body: bytes, *, idempotency_key: str) -> dict[str, str]:
        """Return the request headers for *body*."""
        headers = {
            "Content-Type": "application/json",
            "X-API-Key": self._config.api_key,
            "User-Agent": USER_AGENT,
            "X-Event-Source": EVENT_SOURCE,
            "Idempotency-Key": idempotency_key,
        }
        if self._config.signing_enabled:
            headers[SIGNATURE_HEADER] = sign_payload(self._config.hmac_secret, body)
        return headers

    def dispatch(self, event: ChangeEvent) -> DeliveryOutcome:
        """Deliver one event and report the outcome without raising."""
        event_type = str(event.event_type)
        admission = event.admission_number

        if self._closed.is_set():
            log_debug(logger, "Dispatcher closed, dropping %s for %s", event_type, admission)
            return DeliveryOutcome(DeliveryStatus.SKIPPED, event_type, admission)
        if self._config.is_loopback:
            log_debug(logger, "Skipping webhook for local operation: %s", event_type)
            return DeliveryOutcome(DeliveryStatus.SKIPPED, event_type, admission)

        payload = build_payload(event)
        body = encode_payload(payload)
        headers = self.build_headers(body, idempotency_key=idempotency_key_for(payload))
        try:
            response = self._client.post(self._config.url, content=body, headers=headers)
        except httpx.HTTPError as exc:
            log_error(
                logger,
                "Network error sending %s webhook for %s: %s",
                event_type,
                admission,
                exc,
            )
            return DeliveryOutcome(
                DeliveryStatus.FAILED, event_type, admission, error=str(exc)
            )

        if _SUCCESS_MIN <= response.status_code < _SUCCESS_MAX:
            log_debug(logger, "Sent %s webhook for %s", event_type, admission)
            return DeliveryOutcome(
                DeliveryStatus.DELIVERED,
                event_type,
                admission,
                status_code=response.status_code,
            )

        log_warning(
            logger,
            "Webhook for %s returned status: %d",
            admission,
            response.status_code,
        )
        return DeliveryOutcome(
            DeliveryStatus.REJECTED,
            event_type,
            admission,
            status_code=response.status_code,
        )

    def dispatch_all(self, events: cabc.Iterable[ChangeEvent]) -> list[DeliveryOutcome]:
        """Deliver *events* in order and return one outcome per event."""
        outcomes = [self.dispatch(event) for event in events]
        delivered = sum(1 for outcome in outcomes if outcome.ok)
        if outcomes:
            log_info(
                logger,
                "Dispatched %d webhook events (%d delivered)",
                len(outcomes),
                delivered,
            )
        return outcomes

    def close(self) -> None:
        """Stop accepting events and close any owned HTTP client."""
        if self._closed.is_set():
            return
        self._closed.set()
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> typ.Self:
        """Return the dispatcher for use as a context manager."""
        return self

    def __exit__(self, *_exc_info: object) -> None:
        """Close the dispatcher."""
        self.close()


__all__ = ["DeliveryOutcome", "DeliveryStatus", "WebhookDispatcher"]
