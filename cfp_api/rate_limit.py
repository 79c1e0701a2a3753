"""
Per-client rate limiting for the mutating endpoints.

Every write costs the operating key a transaction, so writes are throttled
per client with a sliding window. Reads are not limited.
"""

import math
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Optional


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    retry_after: Optional[float] = None

    @property
    def retry_after_header(self) -> Optional[str]:
        """Whole seconds for a Retry-After header, never less than one."""
        if self.retry_after is None:
            return None
        return str(max(1, math.ceil(self.retry_after)))


class RateLimiter:
    """
    Sliding window limiter keyed by client id. Thread safe.

    Keys whose window has drained are dropped, at most one sweep per window.
    """

    def __init__(self, rpm: int, window_seconds: int = 60,
                 clock: Callable[[], float] = time.monotonic):
        self._limit = max(1, rpm)
        self._window = window_seconds
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._lock = threading.Lock()
        self._last_sweep = clock()

    @property
    def limit(self) -> int:
        return self._limit

    def allow(self, key: str) -> bool:
        return self.check(key).allowed

    def check(self, key: str) -> RateLimitResult:
        """Record a hit for `key` unless its window is already full."""
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self._window:
                self._sweep(now)
            hits = self._hits[key]
            while hits and hits[0] <= now - self._window:
                hits.popleft()

            if len(hits) >= self._limit:
                return RateLimitResult(allowed=False, remaining=0,
                                       retry_after=hits[0] + self._window - now)

            hits.append(now)
            return RateLimitResult(allowed=True, remaining=self._limit - len(hits))

    def _sweep(self, now: float) -> None:
        cutoff = now - self._window
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]
        self._last_sweep = now

    def reset(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._hits.clear()
            else:
                self._hits.pop(key, None)
