"""
Sliding-window start limiter and retry backoff for the worker pools.
"""

import time
from collections import deque
from typing import Callable, Optional


def compute_backoff(attempts: int, base_seconds: float, max_seconds: float) -> float:
    """Delay before retry number `attempts`: base * 2^(attempts-1), capped."""
    if attempts < 1:
        return 0.0
    return min(max_seconds, base_seconds * (2 ** (attempts - 1)))


class SlidingWindowRateLimiter:
    """
    Caps the number of events (task starts) in the trailing window.

    With max_events=None the limiter never refuses.
    """

    def __init__(
        self,
        max_events: Optional[int],
        window_seconds: float,
        clock: Callable[[], float] = time.time
    ):
        self.max_events = max_events
        self.window_seconds = window_seconds
        self._clock = clock
        self._events: deque = deque()

    def _evict(self, now: float):
        window_start = now - self.window_seconds
        while self._events and self._events[0] <= window_start:
            self._events.popleft()

    def has_capacity(self, now: Optional[float] = None) -> bool:
        if self.max_events is None:
            return True
        now = self._clock() if now is None else now
        self._evict(now)
        return len(self._events) < self.max_events

    def record(self, now: Optional[float] = None):
        """Count one event at `now`."""
        now = self._clock() if now is None else now
        self._events.append(now)

    def try_acquire(self, now: Optional[float] = None) -> bool:
        now = self._clock() if now is None else now
        if not self.has_capacity(now):
            return False
        self.record(now)
        return True

    def seconds_until_available(self, now: Optional[float] = None) -> float:
        """0 when a start is allowed now, else time until the oldest event ages out."""
        now = self._clock() if now is None else now
        if self.has_capacity(now):
            return 0.0
        return max(0.0, self._events[0] + self.window_seconds - now)

    def in_window(self, now: Optional[float] = None) -> int:
        now = self._clock() if now is None else now
        self._evict(now)
        return len(self._events)
