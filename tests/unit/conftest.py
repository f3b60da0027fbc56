"""Unit-test fixtures for the sync pipeline and receiver."""

from __future__ import annotations

import pytest

from clubsync.api.idempotency import IdempotencyCache
from tests.unit.sync_test_helpers import (
    FakeAuthorizer,
    FakeClock,
    RecordingHandler,
    RecordingNotifier,
    RecordingSink,
)


@pytest.fixture
def fake_clock() -> FakeClock:
    """Return a clock that only moves when told to."""
    return FakeClock()


@pytest.fixture
def idempotency_cache(fake_clock: FakeClock) -> IdempotencyCache:
    """Return a small cache driven by the fake clock."""
    return IdempotencyCache(ttl_s=60.0, max_entries=3, clock=fake_clock)


@pytest.fixture
def authorizer() -> FakeAuthorizer:
    """Return an authorizer that admits imports."""
    return FakeAuthorizer()


@pytest.fixture
def sink() -> RecordingSink:
    """Return a change sink that records batches."""
    return RecordingSink()


@pytest.fixture
def notifier() -> RecordingNotifier:
    """Return a notifier that records messages."""
    return RecordingNotifier()


@pytest.fixture
def handler() -> RecordingHandler:
    """Return a diff handler that records passes."""
    return RecordingHandler()
