"""Application factory for the webhook receiver Falcon ASGI application.

This module provides ``create_app()`` which builds the receiver with its
admission middleware, the two webhook routes, and the unauthenticated
``/health`` and ``/metrics`` endpoints.

Usage
-----
Create a receiver that only logs accepted events::

    app = create_app()

Create a receiver forwarding events to a listener::

    from clubsync.api.app import ReceiverDependencies, create_app

    deps = ReceiverDependencies(config=ReceiverConfig.from_env(), listener=listener)
    app = create_app(deps)

"""

from __future__ import annotations

import dataclasses as dc

import falcon.asgi

from clubsync.api.config import ReceiverConfig
from clubsync.api.errors import (
    WebhookRejectedError,
    handle_unexpected_error,
    handle_webhook_rejected,
)
from clubsync.api.health.resources import HealthResource, MetricsResource
from clubsync.api.idempotency import IdempotencyCache, RetryTracker
from clubsync.api.listener import LoggingListener, WebhookListener
from clubsync.api.metrics import ReceiverMetrics
from clubsync.api.middleware import WebhookAdmissionMiddleware
from clubsync.api.webhook.resources import WebhookResource, WebhookResourceDependencies
from clubsync.logging import get_logger, log_info, log_warning

__all__ = ["ReceiverDependencies", "create_app"]

logger = get_logger(__name__)


@dc.dataclass(frozen=True, slots=True)
class ReceiverDependencies:
    """Dependencies for the receiver application.

    Attributes
    ----------
    config
        Security and capacity settings.
    listener
        Receives accepted events; defaults to a logging listener.
    idempotency
        Replay cache; built from ``config`` when omitted.
    retries
        Retry counter; built from ``config`` when omitted.
    metrics
        Request counters; a fresh set when omitted.

    """

    config: ReceiverConfig = dc.field(default_factory=ReceiverConfig)
    listener: WebhookListener = dc.field(default_factory=LoggingListener)
    idempotency: IdempotencyCache | None = None
    retries: RetryTracker | None = None
    metrics: ReceiverMetrics | None = None


def _log_security_configuration(config: ReceiverConfig) -> None:
    if config.hmac_enabled:
        log_info(logger, "Webhook HMAC validation enabled")
    if config.authentication_enabled:
        log_info(logger, "Webhook API authentication enabled")
    else:
        log_warning(
            logger,
            "Webhook API authentication disabled - CLUBSYNC_WEBHOOK_API_KEY is not set",
        )


def create_app(
    dependencies: ReceiverDependencies | None = None,
) -> falcon.asgi.App:
    """Create and configure the receiver Falcon ASGI application.

    Parameters
    ----------
    dependencies
        Optional receiver dependencies. When ``None``, authentication and
        signing are disabled and events are only logged.

    Returns
    -------
    falcon.asgi.App
        Configured Falcon ASGI application.

    """
    deps = dependencies or ReceiverDependencies()
    config = deps.config
    idempotency = deps.idempotency
    if idempotency is None:
        idempotency = IdempotencyCache(
            ttl_s=config.idempotency_ttl_s,
            max_entries=config.idempotency_max_entries,
        )
    retries = deps.retries
    if retries is None:
        retries = RetryTracker(
            config.max_retry_attempts,
            ttl_s=config.idempotency_ttl_s,
            max_entries=config.idempotency_max_entries,
        )
    metrics = deps.metrics if deps.metrics is not None else ReceiverMetrics()
    _log_security_configuration(config)

    app = falcon.asgi.App(  # type: ignore[no-matching-overload]  # Falcon stubs
        middleware=[WebhookAdmissionMiddleware(config, metrics)]
    )

    webhook = WebhookResource(
        WebhookResourceDependencies(
            listener=deps.listener,
            idempotency=idempotency,
            retries=retries,
        )
    )
    app.add_route("/webhook", webhook)
    app.add_route("/webhook/retry", webhook, suffix="retry")
    app.add_route("/health", HealthResource(config))
    app.add_route("/metrics", MetricsResource(config, retries, metrics, idempotency))

    # Error handlers
    app.add_error_handler(Exception, handle_unexpected_error)
    app.add_error_handler(WebhookRejectedError, handle_webhook_rejected)

    return app
