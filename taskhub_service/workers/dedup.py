"""Processed event id store shared by all handler instances.

Claims are keyed by (tenant_id, handler_id, event_id) and taken with
insert-if-absent under a lock, so two concurrent deliveries of the same event
to the same handler cannot both win.

With a window configured, stale claims are dropped lazily: at most once per
window, the next ``claim`` purges everything older than the window.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class ProcessedIdStore:
    """In-memory processed-id set, optionally forgetting ids after a window.

    Args:
        window_seconds: Forget a claim this long after it was taken (None = never).
        clock: Monotonic seconds; tests inject a controllable one.
    """

    def __init__(
        self,
        window_seconds: float | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._window = window_seconds
        self._clock = clock
        self._claims: dict[tuple[str, str, str], float] = {}
        self._lock = threading.Lock()
        self._next_purge = self._clock() + window_seconds if window_seconds is not None else None

    def claim(self, tenant_id: str, handler_id: str, event_id: str) -> bool:
        """Take the claim; False if it is already held."""
        key = (tenant_id, handler_id, event_id)
        now = self._clock()
        with self._lock:
            if self._next_purge is not None and now >= self._next_purge:
                self._drop_stale(now)
            taken_at = self._claims.get(key)
            if taken_at is not None and not self._is_stale(taken_at, now):
                return False
            self._claims[key] = now
            return True

    def release(self, tenant_id: str, handler_id: str, event_id: str) -> None:
        with self._lock:
            self._claims.pop((tenant_id, handler_id, event_id), None)

    def is_processed(self, tenant_id: str, handler_id: str, event_id: str) -> bool:
        now = self._clock()
        with self._lock:
            taken_at = self._claims.get((tenant_id, handler_id, event_id))
            return taken_at is not None and not self._is_stale(taken_at, now)

    def purge_expired(self) -> int:
        """Drop claims older than the window; returns how many were dropped."""
        if self._window is None:
            return 0
        now = self._clock()
        with self._lock:
            return self._drop_stale(now)

    def count(self, tenant_id: str | None = None) -> int:
        with self._lock:
            if tenant_id is None:
                return len(self._claims)
            return sum(1 for key in self._claims if key[0] == tenant_id)

    def _drop_stale(self, now: float) -> int:
        # Caller holds self._lock
        stale = [k for k, t in self._claims.items() if self._is_stale(t, now)]
        for key in stale:
            del self._claims[key]
        if self._window is not None:
            self._next_purge = now + self._window
        return len(stale)

    def _is_stale(self, taken_at: float, now: float) -> bool:
        return self._window is not None and now - taken_at >= self._window


__all__ = ["ProcessedIdStore"]
