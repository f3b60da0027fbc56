"""Admission middleware for the webhook routes.

Requests to ``POST /webhook`` and ``POST /webhook/retry`` pass three checks
in order before any resource runs: the API key, the JSON content type, and
the HMAC signature over the raw body. The first failing check short-circuits
with a ``WebhookRejectedError``. The raw body is read exactly once here and
stashed on ``req.context.raw_body`` for the resource.

Usage
-----
Register the middleware when creating the Falcon app::

    admission = WebhookAdmissionMiddleware(config, metrics)
    app = falcon.asgi.App(middleware=[admission])

"""

from __future__ import annotations

import hmac
import time
import typing as typ

import falcon

from clubsync.api.errors import WebhookRejectedError
from clubsync.logging import get_logger, log_debug, log_warning
from clubsync.webhooks.signing import SIGNATURE_HEADER, verify_signature

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

    from clubsync.api.config import ReceiverConfig
    from clubsync.api.metrics import ReceiverMetrics

__all__ = ["WEBHOOK_PATHS", "WebhookAdmissionMiddleware", "client_info"]

logger = get_logger(__name__)

WEBHOOK_PATHS = frozenset({"/webhook", "/webhook/retry"})
JSON_MEDIA_TYPE = "application/json"


def client_info(req: Request) -> str:
    """Return a short description of the caller for log lines."""
    user_agent = req.get_header("User-Agent") or "Unknown"
    return f"IP: {req.remote_addr}, User-Agent: {user_agent}"


class WebhookAdmissionMiddleware:
    """Authenticate and frame webhook requests before they reach a resource.

    Parameters
    ----------
    config
        Receiver settings deciding which checks are enabled.
    metrics
        Counters updated once per finished webhook request.

    """

    def __init__(self, config: ReceiverConfig, metrics: ReceiverMetrics) -> None:
        self._config = config
        self._metrics = metrics

    async def process_request(self, req: Request, _resp: Response) -> None:
        """Run the admission checks for webhook routes.

        Raises
        ------
        WebhookRejectedError
            When a check fails.

        """
        if req.method != "POST" or req.path not in WEBHOOK_PATHS:
            return

        req.context.admitted_at = time.perf_counter()
        req.context.duplicate = False
        req.context.tracked = True
        caller = client_info(req)

        if self._config.authentication_enabled:
            self._check_api_key(req, caller)
        self._check_content_type(req)
        req.context.raw_body = await req.stream.read()
        if self._config.hmac_enabled:
            self._check_signature(req, caller)

    def _check_api_key(self, req: Request, caller: str) -> None:
        provided = (req.get_header("X-API-Key") or "").strip()
        if not provided:
            log_warning(logger, "Unauthorized webhook attempt - missing API key from %s", caller)
            raise WebhookRejectedError.missing_api_key()
        if not hmac.compare_digest(
            provided.encode("utf-8"), self._config.api_key.encode("utf-8")
        ):
            log_warning(logger, "Unauthorized webhook attempt - invalid API key from %s", caller)
            raise WebhookRejectedError.invalid_api_key()
        log_debug(logger, "API key validation successful for %s", caller)

    @staticmethod
    def _check_content_type(req: Request) -> None:
        content_type = (req.content_type or "").lower()
        if JSON_MEDIA_TYPE not in content_type:
            raise WebhookRejectedError.invalid_content_type()

    def _check_signature(self, req: Request, caller: str) -> None:
        signature = (req.get_header(SIGNATURE_HEADER) or "").strip()
        if not signature:
            log_warning(logger, "Missing HMAC signature from %s", caller)
            raise WebhookRejectedError.missing_signature()
        if not verify_signature(self._config.hmac_secret, req.context.raw_body, signature):
            log_warning(logger, "Invalid HMAC signature from %s", caller)
            raise WebhookRejectedError.invalid_signature()

    async def process_response(
        self,
        req: Request,
        resp: Response,
        _resource: object,
        _req_succeeded: bool,  # noqa: FBT001 - Falcon middleware signature requires positional bool
    ) -> None:
        """Count the finished webhook request."""
        if not getattr(req.context, "tracked", False):
            return
        self._metrics.record(
            status_code=falcon.http_status_to_code(resp.status),
            duplicate=getattr(req.context, "duplicate", False),
        )
