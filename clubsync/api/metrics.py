"""Request counters exposed by ``GET /metrics``."""

from __future__ import annotations

import threading


class ReceiverMetrics:
    """Per-process counters for webhook requests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.received = 0
        self.accepted = 0
        self.rejected = 0
        self.duplicates = 0

    def record(self, *, status_code: int, duplicate: bool) -> None:
        """Classify one finished webhook request."""
        with self._lock:
            self.received += 1
            if status_code >= 400:  # noqa: PLR2004 - HTTP client/server error boundary
                self.rejected += 1
            elif duplicate:
                self.duplicates += 1
            else:
                self.accepted += 1

    def as_dict(self) -> dict[str, int]:
        """Return a point-in-time copy of the counters."""
        with self._lock:
            return {
                "received": self.received,
                "accepted": self.accepted,
                "rejected": self.rejected,
                "duplicates": self.duplicates,
            }


__all__ = ["ReceiverMetrics"]
