"""Unit tests for outbound webhook configuration."""

from __future__ import annotations

import pytest

from clubsync.webhooks import (
    WebhookConfigError,
    WebhookDispatcherConfig,
    is_loopback_url,
)


@pytest.fixture(autouse=True)
def _clear_webhook_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "CLUBSYNC_WEBHOOK_URL",
        "CLUBSYNC_WEBHOOK_API_KEY",
        "CLUBSYNC_WEBHOOK_HMAC_SECRET",
        "CLUBSYNC_WEBHOOK_TIMEOUT",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.mark.parametrize(
    ("url", "loopback"),
    [
        ("http://localhost:8080/webhook", True),
        ("http://127.0.0.1/webhook", True),
        ("http://[::1]:9000/webhook", True),
        ("https://school.example/webhook", False),
        ("http://10.0.0.4/webhook", False),
    ],
)
def test_loopback_detection(url: str, *, loopback: bool) -> None:
    """Only addresses on this machine count as loopback."""
    assert is_loopback_url(url) is loopback


@pytest.mark.parametrize("url", ["school.example/webhook", "ftp://school.example/", ""])
def test_malformed_urls_are_rejected(url: str) -> None:
    """The destination must be an absolute http(s) URL."""
    with pytest.raises(WebhookConfigError, match="absolute http"):
        WebhookDispatcherConfig(url=url)


def test_non_positive_timeout_is_rejected() -> None:
    """Requests need a positive timeout."""
    with pytest.raises(WebhookConfigError, match="TIMEOUT"):
        WebhookDispatcherConfig(url="https://school.example/webhook", timeout_s=0)


def test_signing_follows_the_secret() -> None:
    """Signing is enabled exactly when a secret is configured."""
    assert not WebhookDispatcherConfig().signing_enabled
    assert WebhookDispatcherConfig(hmac_secret="s3cret").signing_enabled


def test_from_env_reads_every_variable(monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment values populate the configuration."""
    monkeypatch.setenv("CLUBSYNC_WEBHOOK_URL", " https://school.example/webhook ")
    monkeypatch.setenv("CLUBSYNC_WEBHOOK_API_KEY", "key-123")
    monkeypatch.setenv("CLUBSYNC_WEBHOOK_HMAC_SECRET", "s3cret")
    monkeypatch.setenv("CLUBSYNC_WEBHOOK_TIMEOUT", "2.5")

    config = WebhookDispatcherConfig.from_env()

    assert config.url == "https://school.example/webhook"
    assert config.api_key == "key-123"
    assert config.signing_enabled
    assert config.timeout_s == 2.5
    assert not config.is_loopback


def test_from_env_defaults_to_local_receiver() -> None:
    """Without configuration events target the local receiver."""
    config = WebhookDispatcherConfig.from_env()

    assert config.url == "http://localhost:8080/webhook"
    assert config.is_loopback


def test_from_env_rejects_malformed_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    """A timeout that is not a number fails fast."""
    monkeypatch.setenv("CLUBSYNC_WEBHOOK_TIMEOUT", "soon")

    with pytest.raises(WebhookConfigError, match="soon"):
        WebhookDispatcherConfig.from_env()
