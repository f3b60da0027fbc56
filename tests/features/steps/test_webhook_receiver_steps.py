"""Behavioural coverage for the inbound webhook receiver."""

from __future__ import annotations

import json
import typing as typ

import falcon.testing
import pytest
from pytest_bdd import given, parsers, scenario, then, when

from clubsync.api import ReceiverConfig, ReceiverDependencies, create_app

if typ.TYPE_CHECKING:
    from falcon.testing.client import Result

_FEATURE = "../webhook_receiver.feature"


class ReceiverContext(typ.TypedDict, total=False):
    """Shared mutable scenario state."""

    client: falcon.testing.TestClient
    api_key: str
    response: Result


@scenario(_FEATURE, "Authenticated new student event is accepted")
def test_authenticated_event_is_accepted() -> None:
    """Wrap the pytest-bdd scenario for a valid delivery."""


@scenario(_FEATURE, "Wrong API key is refused")
def test_wrong_api_key_is_refused() -> None:
    """Wrap the pytest-bdd scenario for a bad key."""


@scenario(_FEATURE, "Unknown event type is refused")
def test_unknown_event_type_is_refused() -> None:
    """Wrap the pytest-bdd scenario for an unsupported event type."""


@scenario(_FEATURE, "Replayed idempotency key is ignored")
def test_replayed_key_is_ignored() -> None:
    """Wrap the pytest-bdd scenario for replay suppression."""


@scenario(_FEATURE, "Retries stop after the budget is spent")
def test_retry_budget_is_enforced() -> None:
    """Wrap the pytest-bdd scenario for exhausted retries."""


@pytest.fixture
def receiver_context() -> ReceiverContext:
    """Provide empty scenario state."""
    return {}


def _body(event_type: str, admission: str) -> bytes:
    return json.dumps({"event_type": event_type, "admission_number": admission}).encode()


def _headers(api_key: str, **extra: str) -> dict[str, str]:
    return {"Content-Type": "application/json", "X-API-Key": api_key, **extra}


@given(parsers.parse('a receiver requiring API key "{api_key}"'))
def given_receiver(receiver_context: ReceiverContext, api_key: str) -> None:
    """Build a receiver with API key authentication."""
    config = ReceiverConfig(api_key=api_key)
    receiver_context["client"] = falcon.testing.TestClient(
        create_app(ReceiverDependencies(config=config))
    )
    receiver_context["api_key"] = api_key


@when(
    parsers.parse(
        'a {event_type} event for {admission} is posted with API key "{api_key}"'
    )
)
def when_event_posted(
    receiver_context: ReceiverContext, event_type: str, admission: str, api_key: str
) -> None:
    """POST one event to ``/webhook``."""
    receiver_context["response"] = receiver_context["client"].simulate_post(
        "/webhook", body=_body(event_type, admission), headers=_headers(api_key)
    )


@when(
    parsers.parse(
        'a {event_type} event for {admission} is posted twice with idempotency key "{key}"'
    )
)
def when_event_posted_twice(
    receiver_context: ReceiverContext, event_type: str, admission: str, key: str
) -> None:
    """POST the same keyed event twice, keeping the second response."""
    headers = _headers(receiver_context["api_key"], **{"Idempotency-Key": key})
    for _ in range(2):
        receiver_context["response"] = receiver_context["client"].simulate_post(
            "/webhook", body=_body(event_type, admission), headers=headers
        )


@when(parsers.parse('a retry with id "{retry_id}" is posted {count:d} times'))
def when_retry_posted(
    receiver_context: ReceiverContext, retry_id: str, count: int
) -> None:
    """POST the same retry repeatedly, keeping the last response."""
    headers = _headers(receiver_context["api_key"], **{"X-Retry-ID": retry_id})
    for _ in range(count):
        receiver_context["response"] = receiver_context["client"].simulate_post(
            "/webhook/retry", body=_body("new_student", "A001"), headers=headers
        )


@then(parsers.parse("the response status is {status:d}"))
def then_response_status(receiver_context: ReceiverContext, status: int) -> None:
    """Assert the HTTP response status code."""
    response = receiver_context["response"]
    assert response.status_code == status, (
        f"expected status {status}, got {response.status_code}"
    )


@then(parsers.parse('the response message is "{message}"'))
def then_response_message(receiver_context: ReceiverContext, message: str) -> None:
    """Assert the ``message`` field of the response body."""
    assert receiver_context["response"].json["message"] == message


@then(parsers.parse('the error code is "{code}"'))
def then_error_code(receiver_context: ReceiverContext, code: str) -> None:
    """Assert the ``code`` field of an error response."""
    assert receiver_context["response"].json["code"] == code


@then(
    parsers.parse(
        "the receiver metrics show {accepted:d} accepted and {duplicates:d} duplicates"
    )
)
def then_metrics(
    receiver_context: ReceiverContext, accepted: int, duplicates: int
) -> None:
    """Assert the request counters."""
    metrics = receiver_context["client"].simulate_get("/metrics").json["requests"]
    assert (metrics["accepted"], metrics["duplicates"]) == (accepted, duplicates)
