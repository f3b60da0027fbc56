"""Wire payload for outbound change notifications."""

from __future__ import annotations

import typing as typ
import uuid

import msgspec

from clubsync.common.time import epoch_millis

if typ.TYPE_CHECKING:
    from clubsync.models import ChangeEvent

PAYLOAD_SOURCE = "excel-school-server"

_encoder = msgspec.json.Encoder()


class WebhookPayload(msgspec.Struct, kw_only=True, frozen=True):
    """JSON body POSTed to the webhook URL for one change event."""

    event_type: str
    admission_number: str
    full_name: str
    grade_name: str
    date_joined_school: str
    gender: str
    status: str
    timestamp: int
    event_id: str
    source: str = PAYLOAD_SOURCE


def build_payload(
    event: ChangeEvent,
    *,
    timestamp_ms: int | None = None,
    event_id: str | None = None,
) -> WebhookPayload:
    """Return the payload for *event*, stamped with *timestamp_ms* or now.

    Each call mints a fresh ``event_id`` unless one is supplied, so two
    occurrences of an identical change (a row deleted and restored, an edit
    reverted and reapplied) are distinct deliveries.
    """
    record = event.record
    return WebhookPayload(
        event_type=str(event.event_type),
        admission_number=event.admission_number,
        full_name=record.full_name,
        grade_name=record.grade_name,
        date_joined_school=record.date_joined,
        gender=record.gender,
        status=record.status,
        timestamp=epoch_millis() if timestamp_ms is None else timestamp_ms,
        event_id=uuid.uuid4().hex if event_id is None else event_id,
    )


def encode_payload(payload: WebhookPayload) -> bytes:
    """Serialize *payload* to the exact bytes that are sent and signed."""
    return _encoder.encode(payload)


def idempotency_key_for(payload: WebhookPayload) -> str:
    """Return the key identifying this delivery of *payload*.

    Resending the same payload reuses the key; a later occurrence of the
    same change was built with a new ``event_id`` and gets a new one.
    """
    return f"{payload.event_type}:{payload.event_id}"


__all__ = [
    "PAYLOAD_SOURCE",
    "WebhookPayload",
    "build_payload",
    "encode_payload",
    "idempotency_key_for",
]
