"""Webhook resources for ``POST /webhook`` and ``POST /webhook/retry``.

The admission middleware has already authenticated the request and stashed
the raw body by the time these handlers run. The resource validates the
payload, suppresses replays, schedules the listener to run after the
response is sent, and reports the processing time.

Usage
-----
Register the resource on the Falcon app::

    resource = WebhookResource(dependencies)
    app.add_route("/webhook", resource)
    app.add_route("/webhook/retry", resource, suffix="retry")

"""

from __future__ import annotations

import dataclasses as dc
import functools
import time
import typing as typ
from http import HTTPStatus

import msgspec

from clubsync.api.errors import WebhookRejectedError
from clubsync.api.listener import deliver_to_listener
from clubsync.api.middleware import client_info
from clubsync.logging import get_logger, log_debug, log_error, log_info, log_warning
from clubsync.models import EventType

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from clubsync.api.idempotency import IdempotencyCache, RetryTracker
    from clubsync.api.listener import WebhookListener

__all__ = ["WebhookResource", "WebhookResourceDependencies", "parse_webhook_body"]

logger = get_logger(__name__)

_REQUIRED_FIELDS = ("event_type", "admission_number")


def parse_webhook_body(raw: bytes) -> tuple[EventType, str]:
    """Validate a webhook body and return its event type and admission number.

    Raises
    ------
    WebhookRejectedError
        ``EMPTY_PAYLOAD``, ``INVALID_JSON``, ``INVALID_PAYLOAD`` or
        ``INVALID_EVENT_TYPE``.

    Examples
    --------
    >>> parse_webhook_body(b'{"event_type": "new_student", "admission_number": "A1"}')
    (<EventType.NEW_STUDENT: 'new_student'>, 'A1')

    """
    if not raw.strip():
        raise WebhookRejectedError.empty_payload()
    try:
        payload = msgspec.json.decode(raw)
    except msgspec.DecodeError as exc:
        raise WebhookRejectedError.invalid_json() from exc

    if not isinstance(payload, dict):
        raise WebhookRejectedError.invalid_payload()
    values = [payload.get(field) for field in _REQUIRED_FIELDS]
    if not all(isinstance(value, str) and value.strip() for value in values):
        raise WebhookRejectedError.invalid_payload()

    raw_event_type, admission_number = typ.cast("list[str]", values)
    event_type = EventType.parse(raw_event_type)
    if event_type is None:
        raise WebhookRejectedError.invalid_event_type(raw_event_type)
    return event_type, admission_number


@dc.dataclass(frozen=True, slots=True)
class WebhookResourceDependencies:
    """Collaborators for ``WebhookResource``.

    Attributes
    ----------
    listener
        Receives each accepted event after the response is sent.
    idempotency
        Cache of recently accepted idempotency keys.
    retries
        Per ``X-Retry-ID`` attempt counter for the retry route.

    """

    listener: WebhookListener
    idempotency: IdempotencyCache
    retries: RetryTracker


class WebhookResource:
    """Accept change events pushed by a producer."""

    def __init__(self, dependencies: WebhookResourceDependencies) -> None:
        """Configure the resource with its dependencies."""
        self._listener = dependencies.listener
        self._idempotency = dependencies.idempotency
        self._retries = dependencies.retries

    async def on_post(self, req: Request, resp: Response) -> None:
        """Handle ``POST /webhook``."""
        await self._process(req, resp)

    async def on_post_retry(self, req: Request, resp: Response) -> None:
        """Handle ``POST /webhook/retry``.

        Requests carrying an ``X-Retry-ID`` that has already been used
        ``max_attempts`` times receive ``410 Gone`` without processing.
        """
        retry_id = req.get_header("X-Retry-ID")
        if retry_id is not None and not self._retries.register(retry_id):
            log_warning(logger, "Retry budget exhausted for %s", retry_id)
            resp.status = HTTPStatus.GONE
            resp.media = {"status": "error", "message": "Max retries exceeded"}
            return
        await self._process(req, resp)

    async def _process(self, req: Request, resp: Response) -> None:
        started = getattr(req.context, "admitted_at", None) or time.perf_counter()
        caller = client_info(req)
        raw = getattr(req.context, "raw_body", None)
        if raw is None:
            raw = await req.stream.read()
        log_debug(logger, "Received webhook payload from %s: %r", caller, raw)

        try:
            event_type, admission_number = parse_webhook_body(raw)
        except WebhookRejectedError as exc:
            log_error(logger, "Rejected webhook payload from %s: %s", caller, exc)
            raise

        idempotency_key = (req.get_header("Idempotency-Key") or "").strip()
        if idempotency_key and self._idempotency.seen(idempotency_key):
            log_info(
                logger,
                "Duplicate webhook request detected with idempotency key: %s",
                idempotency_key,
            )
            req.context.duplicate = True
            resp.status = HTTPStatus.OK
            resp.media = {"status": "ok", "message": "Duplicate request ignored"}
            return

        resp.schedule_sync(
            functools.partial(
                deliver_to_listener, self._listener, event_type, admission_number
            )
        )

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        log_info(
            logger,
            "Webhook processed successfully from %s in %d ms - Event: %s, Admission: %s",
            caller,
            elapsed_ms,
            event_type,
            admission_number,
        )
        resp.status = HTTPStatus.OK
        resp.media = {
            "status": "ok",
            "message": "Webhook processed successfully",
            "processing_time_ms": elapsed_ms,
        }
