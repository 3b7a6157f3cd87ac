"""
Run lock and rate limiter primitives.

The batch coordinator serializes full runs through a RunLock and guards
the AI provider with a RateLimiter. Both are interfaces so a deployment
can plug in a distributed implementation; the in-process versions here
are used by the CLI and the tests.
"""

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Optional


class RunLock:
    """Mutual exclusion with acquire-with-timeout / release semantics."""

    def acquire(self, timeout: float = 0.0) -> bool:
        raise NotImplementedError

    def release(self) -> None:
        raise NotImplementedError


class LocalRunLock(RunLock):
    """
    In-process lock with a bounded hold time.

    A holder that never releases (crashed worker) stops blocking others
    once `hold_seconds` have elapsed since acquisition.
    """

    def __init__(self, hold_seconds: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.hold_seconds = hold_seconds
        self._clock = clock
        self._guard = threading.Lock()
        self._acquired_at: Optional[float] = None

    @property
    def locked(self) -> bool:
        with self._guard:
            return self._held()

    def _held(self) -> bool:
        if self._acquired_at is None:
            return False
        if self._clock() - self._acquired_at >= self.hold_seconds:
            self._acquired_at = None
            return False
        return True

    def acquire(self, timeout: float = 0.0) -> bool:
        deadline = self._clock() + max(timeout, 0.0)
        while True:
            with self._guard:
                if not self._held():
                    self._acquired_at = self._clock()
                    return True
            if self._clock() >= deadline:
                return False
            time.sleep(0.05)

    def release(self) -> None:
        with self._guard:
            self._acquired_at = None


class RateLimiter:
    """Allow/deny decision per caller identity."""

    def allow(self, identity: str) -> bool:
        raise NotImplementedError


class SlidingWindowRateLimiter(RateLimiter):
    """At most `limit` calls per identity within any `window` seconds."""

    def __init__(self, limit: int, window: float = 60.0, clock: Callable[[], float] = time.monotonic):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._buckets: Dict[str, Deque[float]] = {}
        self._lock = threading.Lock()

    def allow(self, identity: str) -> bool:
        now = self._clock()
        cutoff = now - self.window
        with self._lock:
            bucket = self._buckets.setdefault(identity, deque())
            while bucket and bucket[0] <= cutoff:
                bucket.popleft()
            if len(bucket) >= self.limit:
                return False
            bucket.append(now)
            return True

    def remaining(self, identity: str) -> int:
        with self._lock:
            bucket = self._buckets.get(identity, ())
            cutoff = self._clock() - self.window
            return max(self.limit - sum(1 for t in bucket if t > cutoff), 0)
