"""Register and unregister this receiver's callback with a school server."""

from __future__ import annotations

import typing as typ

import httpx
import msgspec

from clubsync.logging import get_logger, log_error, log_info
from clubsync.models import EventType

if typ.TYPE_CHECKING:
    import collections.abc as cabc

logger = get_logger(__name__)

REGISTRATION_TIMEOUT_S = 15.0


class WebhookRegistration(msgspec.Struct, kw_only=True, frozen=True, omit_defaults=True):
    """Body POSTed to the school server when registering a callback."""

    url: str
    events: str
    secret: str | None = None


def _supported_events(events: cabc.Iterable[EventType] | None) -> str:
    chosen = tuple(EventType) if events is None else tuple(events)
    return ",".join(str(event) for event in chosen)


def register_webhook(
    server_url: str,
    callback_url: str,
    *,
    secret: str | None = None,
    events: cabc.Iterable[EventType] | None = None,
    http_client: httpx.Client | None = None,
) -> bool:
    """Ask the school server to POST events to *callback_url*.

    Returns
    -------
    bool
        ``True`` when the server answered with a 2xx status. Network errors
        and other statuses are logged and reported as ``False``.

    """
    registration = WebhookRegistration(
        url=callback_url,
        events=_supported_events(events),
        secret=secret or None,
    )
    body = msgspec.json.encode(registration)
    client = http_client or httpx.Client(timeout=REGISTRATION_TIMEOUT_S)
    try:
        response = client.post(
            server_url,
            content=body,
            headers={"Content-Type": "application/json"},
        )
    except httpx.HTTPError as exc:
        log_error(logger, "Error registering webhook with %s: %s", server_url, exc)
        return False
    finally:
        if http_client is None:
            client.close()

    if response.is_success:
        log_info(logger, "Registered webhook %s with %s", callback_url, server_url)
        return True
    log_error(
        logger,
        "Failed to register webhook. Status: %d, Response: %s",
        response.status_code,
        response.text,
    )
    return False


def unregister_webhook(
    server_url: str,
    callback_url: str,
    *,
    http_client: httpx.Client | None = None,
) -> bool:
    """Ask the school server to stop sending events to *callback_url*."""
    client = http_client or httpx.Client(timeout=REGISTRATION_TIMEOUT_S)
    try:
        response = client.delete(server_url, params={"url": callback_url})
    except httpx.HTTPError as exc:
        log_error(logger, "Error unregistering webhook from %s: %s", server_url, exc)
        return False
    finally:
        if http_client is None:
            client.close()

    if response.is_success:
        log_info(logger, "Unregistered webhook %s from %s", callback_url, server_url)
        return True
    log_error(
        logger,
        "Failed to unregister webhook. Status: %d, Response: %s",
        response.status_code,
        response.text,
    )
    return False


__all__ = ["WebhookRegistration", "register_webhook", "unregister_webhook"]
