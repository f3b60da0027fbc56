"""Webhook configuration errors."""

from __future__ import annotations


class WebhookConfigError(ValueError):
    """Raised when the outbound webhook configuration is invalid."""

    @classmethod
    def invalid_url(cls, url: str) -> WebhookConfigError:
        """Return an error for a URL without an http(s) scheme or host."""
        return cls(f"webhook URL must be an absolute http(s) URL, got: {url!r}")

    @classmethod
    def invalid_timeout(cls, raw: str) -> WebhookConfigError:
        """Return an error for a non-positive or malformed timeout."""
        return cls(f"CLUBSYNC_WEBHOOK_TIMEOUT must be a positive number, got: {raw!r}")
