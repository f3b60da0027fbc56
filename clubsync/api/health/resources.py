"""Unauthenticated side endpoints reporting receiver configuration.

Usage
-----
Register the endpoints on the Falcon app::

    app.add_route("/health", HealthResource(config))
    app.add_route("/metrics", MetricsResource(config, retries, metrics))

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from clubsync.api.config import ReceiverConfig
    from clubsync.api.idempotency import IdempotencyCache, RetryTracker
    from clubsync.api.metrics import ReceiverMetrics

__all__ = ["ENDPOINTS", "HealthResource", "MetricsResource"]

ENDPOINTS = ("/webhook", "/health", "/metrics", "/webhook/retry")


class HealthResource:
    """Liveness resource reporting which security checks are enabled."""

    def __init__(self, config: ReceiverConfig) -> None:
        self._config = config

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /health requests.

        Parameters
        ----------
        _req
            Falcon request (unused).
        resp
            Falcon response populated with liveness status.

        """
        resp.media = {
            "status": "ok",
            "service": "webhook",
            "port": self._config.port,
            "authentication": self._config.authentication_enabled,
            "hmac_validation": self._config.hmac_enabled,
        }
        resp.status = HTTPStatus.OK


class MetricsResource:
    """Endpoint list, security flags, and request counters."""

    def __init__(
        self,
        config: ReceiverConfig,
        retries: RetryTracker,
        metrics: ReceiverMetrics,
        idempotency: IdempotencyCache | None = None,
    ) -> None:
        self._config = config
        self._retries = retries
        self._metrics = metrics
        self._idempotency = idempotency

    async def on_get(self, _req: Request, resp: Response) -> None:
        """Handle GET /metrics requests."""
        media: dict[str, typ.Any] = {
            "endpoints": list(ENDPOINTS),
            "authentication_required": self._config.authentication_enabled,
            "hmac_validation_enabled": self._config.hmac_enabled,
            "retry_counts": len(self._retries),
            "requests": self._metrics.as_dict(),
        }
        if self._idempotency is not None:
            media["idempotency_keys"] = len(self._idempotency)
        resp.media = media
        resp.status = HTTPStatus.OK
