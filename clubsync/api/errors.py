"""Rejection errors and Falcon error handlers for the webhook receiver.

Every rejection carries an HTTP status and a machine-readable code and is
rendered as ``{"error": <message>, "code": <code>}``.

Usage
-----
Register error handlers on the Falcon app::

    app.add_error_handler(WebhookRejectedError, handle_webhook_rejected)
    app.add_error_handler(Exception, handle_unexpected_error)

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

from clubsync.logging import get_logger, log_exception

if typ.TYPE_CHECKING:
    from falcon.asgi import Request, Response

__all__ = [
    "WebhookRejectedError",
    "handle_unexpected_error",
    "handle_webhook_rejected",
]

logger = get_logger(__name__)


class WebhookRejectedError(Exception):
    """Raised when an inbound webhook request must be refused.

    Attributes
    ----------
    status
        HTTP status returned to the caller.
    code
        Machine-readable error code.
    message
        Human-readable description.

    """

    def __init__(self, status: HTTPStatus, code: str, message: str) -> None:
        """Initialize with the response status, code, and message."""
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")

    def as_media(self) -> dict[str, str]:
        """Return the JSON error body."""
        return {"error": self.message, "code": self.code}

    @classmethod
    def missing_api_key(cls) -> WebhookRejectedError:
        """Return the rejection for a request without an API key."""
        return cls(HTTPStatus.UNAUTHORIZED, "MISSING_API_KEY", "API key required")

    @classmethod
    def invalid_api_key(cls) -> WebhookRejectedError:
        """Return the rejection for a request with the wrong API key."""
        return cls(HTTPStatus.UNAUTHORIZED, "INVALID_API_KEY", "Invalid API key")

    @classmethod
    def invalid_content_type(cls) -> WebhookRejectedError:
        """Return the rejection for a non-JSON content type."""
        return cls(
            HTTPStatus.BAD_REQUEST,
            "INVALID_CONTENT_TYPE",
            "Content-Type must be application/json",
        )

    @classmethod
    def missing_signature(cls) -> WebhookRejectedError:
        """Return the rejection for a request without an HMAC signature."""
        return cls(
            HTTPStatus.UNAUTHORIZED, "MISSING_SIGNATURE", "HMAC signature required"
        )

    @classmethod
    def invalid_signature(cls) -> WebhookRejectedError:
        """Return the rejection for a signature that does not verify."""
        return cls(HTTPStatus.UNAUTHORIZED, "INVALID_SIGNATURE", "Invalid signature")

    @classmethod
    def empty_payload(cls) -> WebhookRejectedError:
        """Return the rejection for an empty body."""
        return cls(HTTPStatus.BAD_REQUEST, "EMPTY_PAYLOAD", "Empty payload")

    @classmethod
    def invalid_json(cls) -> WebhookRejectedError:
        """Return the rejection for a body that is not valid JSON."""
        return cls(HTTPStatus.BAD_REQUEST, "INVALID_JSON", "Invalid JSON format")

    @classmethod
    def invalid_payload(cls) -> WebhookRejectedError:
        """Return the rejection for a JSON body missing required fields."""
        return cls(HTTPStatus.BAD_REQUEST, "INVALID_PAYLOAD", "Invalid payload format")

    @classmethod
    def invalid_event_type(cls, event_type: str) -> WebhookRejectedError:
        """Return the rejection for an unknown event type."""
        return cls(
            HTTPStatus.BAD_REQUEST,
            "INVALID_EVENT_TYPE",
            f"Invalid event type: {event_type}",
        )


async def handle_webhook_rejected(
    _req: Request,
    resp: Response,
    ex: WebhookRejectedError,
    _params: dict[str, typ.Any],
) -> None:
    """Map ``WebhookRejectedError`` to its status and JSON error body."""
    resp.status = ex.status
    resp.media = ex.as_media()


async def handle_unexpected_error(
    req: Request,
    resp: Response,
    ex: Exception,
    _params: dict[str, typ.Any],
) -> None:
    """Map any unhandled exception to an HTTP 500 JSON response.

    Falcon's own ``HTTPError`` subclasses keep their dedicated handlers, so
    only genuine programming or runtime failures reach this handler.
    """
    log_exception(logger, f"Unexpected error processing {req.method} {req.path}", ex)
    resp.status = HTTPStatus.INTERNAL_SERVER_ERROR
    resp.media = {"error": "Internal server error", "code": "INTERNAL_ERROR"}
