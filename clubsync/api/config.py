"""Configuration for the inbound webhook receiver.

Usage
-----
>>> config = ReceiverConfig(api_key="k", hmac_secret="s")
>>> config.authentication_enabled, config.hmac_enabled
(True, True)

"""

from __future__ import annotations

import dataclasses as dc
import os

DEFAULT_PORT = 8080
DEFAULT_IDEMPOTENCY_TTL_S = 300.0
DEFAULT_IDEMPOTENCY_MAX_ENTRIES = 1024
DEFAULT_WORKERS = 1
DEFAULT_BACKPRESSURE = 10
MAX_RETRY_ATTEMPTS = 5


class ReceiverConfigError(ValueError):
    """Raised when receiver configuration is malformed."""

    @classmethod
    def invalid_value(cls, env_var: str, raw: str) -> ReceiverConfigError:
        """Return an error for a value that is not a positive number."""
        return cls(f"{env_var} must be a positive number, got: {raw!r}")


def _parse_positive_int(env_var: str, default: int) -> int:
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ReceiverConfigError.invalid_value(env_var, raw) from exc
    if value < 1:
        raise ReceiverConfigError.invalid_value(env_var, raw)
    return value


def _parse_positive_float(env_var: str, default: float) -> float:
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ReceiverConfigError.invalid_value(env_var, raw) from exc
    if value <= 0:
        raise ReceiverConfigError.invalid_value(env_var, raw)
    return value


@dc.dataclass(frozen=True, slots=True)
class ReceiverConfig:
    """Security and capacity settings for the webhook receiver.

    Attributes
    ----------
    api_key
        Expected ``X-API-Key`` value; authentication is off when empty.
    hmac_secret
        Shared secret for ``X-Hub-Signature-256``; validation is off when
        empty.
    port
        Port reported by ``/health`` and used by the runtime.
    idempotency_ttl_s
        Seconds an ``Idempotency-Key`` or an idle ``X-Retry-ID`` is
        remembered.
    idempotency_max_entries
        Upper bound on remembered idempotency keys and on tracked retry ids.
    max_retry_attempts
        Retries allowed per ``X-Retry-ID`` before ``410 Gone``.
    workers
        Server worker processes.
    backpressure
        Maximum concurrent requests per worker before new ones queue.

    """

    api_key: str = ""
    hmac_secret: str = ""
    port: int = DEFAULT_PORT
    idempotency_ttl_s: float = DEFAULT_IDEMPOTENCY_TTL_S
    idempotency_max_entries: int = DEFAULT_IDEMPOTENCY_MAX_ENTRIES
    max_retry_attempts: int = MAX_RETRY_ATTEMPTS
    workers: int = DEFAULT_WORKERS
    backpressure: int = DEFAULT_BACKPRESSURE

    @property
    def authentication_enabled(self) -> bool:
        """Return whether requests must carry the API key."""
        return bool(self.api_key.strip())

    @property
    def hmac_enabled(self) -> bool:
        """Return whether requests must carry a valid signature."""
        return bool(self.hmac_secret.strip())

    @classmethod
    def from_env(cls) -> ReceiverConfig:
        """Create configuration from environment variables.

        Reads ``CLUBSYNC_WEBHOOK_API_KEY``, ``CLUBSYNC_WEBHOOK_HMAC_SECRET``,
        ``CLUBSYNC_IDEMPOTENCY_TTL``, ``CLUBSYNC_IDEMPOTENCY_MAX_ENTRIES``,
        ``CLUBSYNC_RECEIVER_WORKERS`` and ``CLUBSYNC_RECEIVER_BACKPRESSURE``.
        The port is parsed by the runtime.
        """
        return cls(
            api_key=os.environ.get("CLUBSYNC_WEBHOOK_API_KEY", ""),
            hmac_secret=os.environ.get("CLUBSYNC_WEBHOOK_HMAC_SECRET", ""),
            idempotency_ttl_s=_parse_positive_float(
                "CLUBSYNC_IDEMPOTENCY_TTL", DEFAULT_IDEMPOTENCY_TTL_S
            ),
            idempotency_max_entries=_parse_positive_int(
                "CLUBSYNC_IDEMPOTENCY_MAX_ENTRIES", DEFAULT_IDEMPOTENCY_MAX_ENTRIES
            ),
            workers=_parse_positive_int("CLUBSYNC_RECEIVER_WORKERS", DEFAULT_WORKERS),
            backpressure=_parse_positive_int(
                "CLUBSYNC_RECEIVER_BACKPRESSURE", DEFAULT_BACKPRESSURE
            ),
        )


__all__ = [
    "DEFAULT_PORT",
    "MAX_RETRY_ATTEMPTS",
    "ReceiverConfig",
    "ReceiverConfigError",
]
