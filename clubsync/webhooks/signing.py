"""HMAC signing and API key helpers shared by the dispatcher and receiver.

Signatures use the GitHub-style ``X-Hub-Signature-256`` format: the literal
prefix ``sha256=`` followed by the lower-case hex HMAC-SHA256 of the raw
request body.

Examples
--------
>>> header = sign_payload("s3cret", b'{"event_type": "new_student"}')
>>> verify_signature("s3cret", b'{"event_type": "new_student"}', header)
True

"""

from __future__ import annotations

import hashlib
import hmac
import secrets

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="
API_KEY_BYTES = 32


def _as_bytes(value: str | bytes) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def sign_payload(secret: str, body: str | bytes) -> str:
    """Return the ``sha256=<hex>`` signature of *body* under *secret*."""
    digest = hmac.new(_as_bytes(secret), _as_bytes(body), hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(secret: str, body: str | bytes, header: str | None) -> bool:
    """Return whether *header* is the valid signature of *body*.

    The comparison runs in constant time. A missing header, a header without
    the ``sha256=`` prefix, or an empty secret never verifies.
    """
    if not secret or not header or not header.startswith(SIGNATURE_PREFIX):
        return False
    expected = sign_payload(secret, body)
    return hmac.compare_digest(expected.encode("ascii"), header.encode("utf-8"))


def generate_api_key() -> str:
    """Return a URL-safe random API key with 256 bits of entropy."""
    return secrets.token_urlsafe(API_KEY_BYTES)


__all__ = [
    "SIGNATURE_HEADER",
    "SIGNATURE_PREFIX",
    "generate_api_key",
    "sign_payload",
    "verify_signature",
]
