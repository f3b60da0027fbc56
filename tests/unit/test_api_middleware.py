"""Unit tests for webhook admission checks."""

from __future__ import annotations

import typing as typ

import falcon.testing
import pytest

from clubsync.api import ReceiverConfig, ReceiverDependencies, create_app
from clubsync.webhooks import sign_payload

if typ.TYPE_CHECKING:
    from falcon.testing.client import Result

_BODY = b'{"event_type": "student_updated", "admission_number": "A001"}'
_JSON = {"Content-Type": "application/json"}


def _post(
    config: ReceiverConfig,
    headers: dict[str, str],
    *,
    body: bytes = _BODY,
    path: str = "/webhook",
) -> Result:
    client = falcon.testing.TestClient(create_app(ReceiverDependencies(config=config)))
    return client.simulate_post(path, body=body, headers=headers)


class TestApiKey:
    """Tests for ``X-API-Key`` authentication."""

    config = ReceiverConfig(api_key="key-123")

    def test_valid_key_is_admitted(self) -> None:
        """The configured key lets the request through."""
        response = _post(self.config, {**_JSON, "X-API-Key": "key-123"})

        assert response.status_code == 200
        assert response.json["status"] == "ok"

    def test_missing_key_is_rejected(self) -> None:
        """Requests without a key are unauthorized."""
        response = _post(self.config, _JSON)

        assert response.status_code == 401
        assert response.json == {"error": "API key required", "code": "MISSING_API_KEY"}

    def test_wrong_key_is_rejected(self) -> None:
        """A different key is unauthorized."""
        response = _post(self.config, {**_JSON, "X-API-Key": "key-456"})

        assert response.status_code == 401
        assert response.json["code"] == "INVALID_API_KEY"

    def test_key_is_checked_before_content_type(self) -> None:
        """Authentication failures win over framing failures."""
        response = _post(self.config, {"Content-Type": "text/plain"})

        assert response.json["code"] == "MISSING_API_KEY"

    def test_retry_route_is_protected(self) -> None:
        """The retry route runs the same admission checks."""
        response = _post(self.config, _JSON, path="/webhook/retry")

        assert response.status_code == 401


class TestContentType:
    """Tests for the JSON content-type requirement."""

    @pytest.mark.parametrize("content_type", [None, "text/plain", "application/xml"])
    def test_non_json_is_rejected(self, content_type: str | None) -> None:
        """Only JSON bodies are accepted."""
        headers = {} if content_type is None else {"Content-Type": content_type}

        response = _post(ReceiverConfig(), headers)

        assert response.status_code == 400
        assert response.json == {
            "error": "Content-Type must be application/json",
            "code": "INVALID_CONTENT_TYPE",
        }

    def test_charset_parameter_is_allowed(self) -> None:
        """Media type parameters do not affect admission."""
        response = _post(
            ReceiverConfig(), {"Content-Type": "application/json; charset=utf-8"}
        )

        assert response.status_code == 200


class TestSignature:
    """Tests for HMAC signature validation."""

    config = ReceiverConfig(api_key="key-123", hmac_secret="s3cret")
    headers: typ.ClassVar[dict[str, str]] = {**_JSON, "X-API-Key": "key-123"}

    def test_valid_signature_is_admitted(self) -> None:
        """A signature over the exact body verifies."""
        response = _post(
            self.config,
            {**self.headers, "X-Hub-Signature-256": sign_payload("s3cret", _BODY)},
        )

        assert response.status_code == 200

    def test_missing_signature_is_rejected(self) -> None:
        """Signing is mandatory once a secret is configured."""
        response = _post(self.config, self.headers)

        assert response.status_code == 401
        assert response.json["code"] == "MISSING_SIGNATURE"

    def test_wrong_secret_is_rejected(self) -> None:
        """A signature made with another secret fails."""
        response = _post(
            self.config,
            {**self.headers, "X-Hub-Signature-256": sign_payload("other", _BODY)},
        )

        assert response.status_code == 401
        assert response.json == {"error": "Invalid signature", "code": "INVALID_SIGNATURE"}

    def test_tampered_body_is_rejected(self) -> None:
        """Changing the body after signing breaks the signature."""
        response = _post(
            self.config,
            {**self.headers, "X-Hub-Signature-256": sign_payload("s3cret", _BODY)},
            body=_BODY.replace(b"A001", b"A002"),
        )

        assert response.json["code"] == "INVALID_SIGNATURE"
