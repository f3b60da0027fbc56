"""Configuration for the outbound webhook dispatcher.

Usage
-----
>>> config = WebhookDispatcherConfig(url="https://school.example/webhook")
>>> config.signing_enabled
False

Or load from environment variables:

>>> config = WebhookDispatcherConfig.from_env()

"""

from __future__ import annotations

import dataclasses as dc
import ipaddress
import os
from urllib.parse import urlsplit

from .errors import WebhookConfigError

DEFAULT_WEBHOOK_URL = "http://localhost:8080/webhook"
DEFAULT_TIMEOUT_S = 10.0
USER_AGENT = "Excel-School-Server/1.0"
EVENT_SOURCE = "excel-file"

_LOOPBACK_HOSTS = frozenset({"localhost", "localhost.localdomain"})


def validate_webhook_url(url: str) -> str:
    """Return *url* stripped, raising if it is not an absolute http(s) URL.

    Raises
    ------
    WebhookConfigError
        If the scheme is not ``http``/``https`` or the host is missing.

    """
    cleaned = url.strip()
    try:
        parts = urlsplit(cleaned)
    except ValueError as exc:
        raise WebhookConfigError.invalid_url(url) from exc
    if parts.scheme not in {"http", "https"} or not parts.hostname:
        raise WebhookConfigError.invalid_url(url)
    return cleaned


def is_loopback_url(url: str) -> bool:
    """Return whether *url* targets this machine.

    Examples
    --------
    >>> is_loopback_url("http://127.0.0.1:8080/webhook")
    True
    >>> is_loopback_url("https://school.example/webhook")
    False

    """
    host = (urlsplit(url).hostname or "").lower()
    if host in _LOOPBACK_HOSTS:
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


@dc.dataclass(frozen=True, slots=True)
class WebhookDispatcherConfig:
    """Destination and credentials for outbound change notifications.

    Attributes
    ----------
    url
        Absolute http(s) URL receiving POSTed payloads.
    api_key
        Value sent in the ``X-API-Key`` header.
    hmac_secret
        Shared secret for ``X-Hub-Signature-256``; signing is disabled when
        empty.
    timeout_s
        Per-request timeout in seconds.

    """

    url: str = DEFAULT_WEBHOOK_URL
    api_key: str = ""
    hmac_secret: str = ""
    timeout_s: float = DEFAULT_TIMEOUT_S

    def __post_init__(self) -> None:
        """Reject malformed URLs and timeouts at construction."""
        object.__setattr__(self, "url", validate_webhook_url(self.url))
        if self.timeout_s <= 0:
            raise WebhookConfigError.invalid_timeout(str(self.timeout_s))

    @property
    def signing_enabled(self) -> bool:
        """Return whether payloads are signed."""
        return bool(self.hmac_secret.strip())

    @property
    def is_loopback(self) -> bool:
        """Return whether the destination is this machine."""
        return is_loopback_url(self.url)

    @classmethod
    def from_env(cls) -> WebhookDispatcherConfig:
        """Create configuration from environment variables.

        Reads ``CLUBSYNC_WEBHOOK_URL``, ``CLUBSYNC_WEBHOOK_API_KEY``,
        ``CLUBSYNC_WEBHOOK_HMAC_SECRET`` and ``CLUBSYNC_WEBHOOK_TIMEOUT``.

        Raises
        ------
        WebhookConfigError
            If the URL or timeout is malformed.

        """
        raw_timeout = os.environ.get("CLUBSYNC_WEBHOOK_TIMEOUT", "").strip()
        timeout_s = DEFAULT_TIMEOUT_S
        if raw_timeout:
            try:
                timeout_s = float(raw_timeout)
            except ValueError as exc:
                raise WebhookConfigError.invalid_timeout(raw_timeout) from exc
            if timeout_s <= 0:
                raise WebhookConfigError.invalid_timeout(raw_timeout)

        return cls(
            url=os.environ.get("CLUBSYNC_WEBHOOK_URL", DEFAULT_WEBHOOK_URL),
            api_key=os.environ.get("CLUBSYNC_WEBHOOK_API_KEY", ""),
            hmac_secret=os.environ.get("CLUBSYNC_WEBHOOK_HMAC_SECRET", ""),
            timeout_s=timeout_s,
        )


__all__ = [
    "DEFAULT_TIMEOUT_S",
    "DEFAULT_WEBHOOK_URL",
    "EVENT_SOURCE",
    "USER_AGENT",
    "WebhookDispatcherConfig",
    "is_loopback_url",
    "validate_webhook_url",
]
