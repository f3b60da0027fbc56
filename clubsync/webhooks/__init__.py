"""Outbound webhook delivery and shared signing helpers."""

from __future__ import annotations

from .config import (
    EVENT_SOURCE,
    USER_AGENT,
    WebhookDispatcherConfig,
    is_loopback_url,
    validate_webhook_url,
)
from .dispatcher import DeliveryOutcome, DeliveryStatus, WebhookDispatcher
from .errors import WebhookConfigError
from .payload import (
    PAYLOAD_SOURCE,
    WebhookPayload,
    build_payload,
    encode_payload,
    idempotency_key_for,
)
from .registration import WebhookRegistration, register_webhook, unregister_webhook
from .signing import (
    SIGNATURE_HEADER,
    SIGNATURE_PREFIX,
    generate_api_key,
    sign_payload,
    verify_signature,
)

__all__ = [
    "EVENT_SOURCE",
    "PAYLOAD_SOURCE",
    "SIGNATURE_HEADER",
    "SIGNATURE_PREFIX",
    "USER_AGENT",
    "DeliveryOutcome",
    "DeliveryStatus",
    "WebhookConfigError",
    "WebhookDispatcher",
    "WebhookDispatcherConfig",
    "WebhookPayload",
    "WebhookRegistration",
    "build_payload",
    "encode_payload",
    "generate_api_key",
    "idempotency_key_for",
    "is_loopback_url",
    "register_webhook",
    "sign_payload",
    "unregister_webhook",
    "validate_webhook_url",
    "verify_signature",
]
