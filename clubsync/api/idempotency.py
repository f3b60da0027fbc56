"""Replay controls for the webhook receiver.

``IdempotencyCache`` remembers recently accepted ``Idempotency-Key`` values
for a bounded time and count, so a producer that redelivers the same change
gets a "duplicate ignored" answer instead of a second listener call.
``RetryTracker`` counts deliveries per ``X-Retry-ID`` and tells the caller to
stop once the budget is spent. Both forget idle entries after a TTL and cap
the number they hold.
"""

from __future__ import annotations

import collections
import threading
import time
import typing as typ

type Clock = typ.Callable[[], float]


class IdempotencyCache:
    """Bounded LRU of idempotency keys with per-entry expiry.

    Parameters
    ----------
    ttl_s
        Seconds a key is remembered after it was last recorded.
    max_entries
        Maximum number of keys; the least recently recorded is evicted first.
    clock
        Monotonic time source, injectable for tests.

    """

    def __init__(
        self,
        *,
        ttl_s: float,
        max_entries: int,
        clock: Clock = time.monotonic,
    ) -> None:
        if ttl_s <= 0 or max_entries < 1:
            msg = "ttl_s and max_entries must be positive"
            raise ValueError(msg)
        self._ttl_s = ttl_s
        self._max_entries = max_entries
        self._clock = clock
        self._expiry: collections.OrderedDict[str, float] = collections.OrderedDict()
        self._lock = threading.Lock()

    def seen(self, key: str) -> bool:
        """Record *key* and return whether it was already present.

        Examples
        --------
        >>> cache = IdempotencyCache(ttl_s=60, max_entries=10)
        >>> cache.seen("abc"), cache.seen("abc")
        (False, True)

        """
        now = self._clock()
        with self._lock:
            self._purge(now)
            if key in self._expiry:
                return True
            self._expiry[key] = now + self._ttl_s
            while len(self._expiry) > self._max_entries:
                self._expiry.popitem(last=False)
            return False

    def __contains__(self, key: object) -> bool:
        now = self._clock()
        with self._lock:
            self._purge(now)
            return key in self._expiry

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            self._purge(now)
            return len(self._expiry)

    def _purge(self, now: float) -> None:
        # Insertion order equals expiry order because the TTL is fixed.
        while self._expiry:
            key, expires_at = next(iter(self._expiry.items()))
            if expires_at > now:
                return
            del self._expiry[key]


class RetryTracker:
    """Count deliveries per retry id and refuse once the budget is spent.

    Counts live in a bounded LRU like ``IdempotencyCache``: an id idle for
    ``ttl_s`` seconds is forgotten, and the least recently retried id is
    evicted once ``max_entries`` are held.
    """

    def __init__(
        self,
        max_attempts: int,
        *,
        ttl_s: float = 300.0,
        max_entries: int = 1024,
        clock: Clock = time.monotonic,
    ) -> None:
        if ttl_s <= 0 or max_entries < 1:
            msg = "ttl_s and max_entries must be positive"
            raise ValueError(msg)
        self.max_attempts = max_attempts
        self._ttl_s = ttl_s
        self._max_entries = max_entries
        self._clock = clock
        self._counts: collections.OrderedDict[str, tuple[int, float]] = (
            collections.OrderedDict()
        )
        self._lock = threading.Lock()

    def register(self, retry_id: str) -> bool:
        """Count one attempt for *retry_id*; return ``False`` when exhausted.

        Examples
        --------
        >>> tracker = RetryTracker(max_attempts=1)
        >>> tracker.register("r1"), tracker.register("r1")
        (True, False)

        """
        now = self._clock()
        with self._lock:
            self._purge(now)
            count, _ = self._counts.pop(retry_id, (0, now))
            if count >= self.max_attempts:
                self._counts[retry_id] = (count, now + self._ttl_s)
                return False
            self._counts[retry_id] = (count + 1, now + self._ttl_s)
            while len(self._counts) > self._max_entries:
                self._counts.popitem(last=False)
            return True

    def count(self, retry_id: str) -> int:
        """Return the attempts recorded for *retry_id*."""
        now = self._clock()
        with self._lock:
            self._purge(now)
            return self._counts.get(retry_id, (0, now))[0]

    def __len__(self) -> int:
        now = self._clock()
        with self._lock:
            self._purge(now)
            return len(self._counts)

    def _purge(self, now: float) -> None:
        # Every register moves its id to the end with a fresh expiry.
        while self._counts:
            retry_id, (_, expires_at) = next(iter(self._counts.items()))
            if expires_at > now:
                return
            del self._counts[retry_id]


__all__ = ["Clock", "IdempotencyCache", "RetryTracker"]
