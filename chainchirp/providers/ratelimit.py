"""
Sliding-window rate limiting, one limiter per provider.

acquire() blocks until a request can be admitted without exceeding
max_requests inside the trailing window, then records it. The check-and-wait
runs in a loop: after sleeping, another thread may have taken the freed slot.
"""
from __future__ import annotations

import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, Iterable, Optional

from .base import ProviderSpec

logger = logging.getLogger(__name__)

WINDOW_S = 60.0


class SlidingWindowRateLimiter:
    """Admission control over a trailing window of request timestamps."""

    def __init__(
        self,
        max_requests: int,
        window_s: float = WINDOW_S,
        name: str = "provider",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_requests <= 0:
            raise ValueError(f"max_requests must be positive, got {max_requests}")
        self.max_requests = max_requests
        self.window_s = window_s
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._timestamps: Deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_s:
            self._timestamps.popleft()

    def try_acquire(self) -> float:
        """
        Admit one request if there is room. Returns 0.0 when admitted,
        otherwise the seconds until the oldest timestamp leaves the window.
        """
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) < self.max_requests:
                self._timestamps.append(now)
                return 0.0
            return max(self.window_s - (now - self._timestamps[0]), 0.0)

    def acquire(self) -> None:
        """Block until admission is safe, then record one request."""
        while True:
            wait_s = self.try_acquire()
            if wait_s <= 0.0:
                return
            logger.warning(
                "Rate limit reached for %s (%d/%.0fs), waiting %.0fms",
                self.name, self.max_requests, self.window_s, wait_s * 1000,
            )
            self._sleep(wait_s)

    @property
    def in_window(self) -> int:
        """Requests currently counted against the window."""
        with self._lock:
            self._prune(self._clock())
            return len(self._timestamps)


class RateLimiterPool:
    """Lazily created limiter per provider key, shared by every request on a client."""

    def __init__(
        self,
        specs: Iterable[ProviderSpec] = (),
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._clock = clock
        self._sleep = sleep
        self._limiters: Dict[str, SlidingWindowRateLimiter] = {}
        self._lock = threading.Lock()
        for spec in specs:
            self.for_provider(spec)

    def for_provider(self, spec: ProviderSpec) -> SlidingWindowRateLimiter:
        with self._lock:
            limiter = self._limiters.get(spec.key)
            if limiter is None:
                limiter = SlidingWindowRateLimiter(
                    spec.rate_limit_per_minute,
                    name=spec.key,
                    clock=self._clock,
                    sleep=self._sleep,
                )
                self._limiters[spec.key] = limiter
            return limiter

    def get(self, key: str) -> Optional[SlidingWindowRateLimiter]:
        return self._limiters.get(key)
