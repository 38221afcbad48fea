"""
Client-side request throttle: sliding 60 s window plus a fixed delay per request.
"""

from __future__ import annotations

import logging
import math
import time
from collections import deque
from typing import Callable

logger = logging.getLogger("pacifica.rate_limit")

WINDOW_SECONDS = 60.0


class RateLimiter:
    """
    Bound outbound requests to ``max_requests_per_minute`` per trailing minute.

    Every ``acquire`` also sleeps ``delay_seconds`` to smooth bursts, even
    when the window has room. State lives as long as the instance.
    """

    def __init__(
        self,
        max_requests_per_minute: int = 120,
        delay_seconds: float = 0.5,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_requests_per_minute <= 0:
            raise ValueError("max_requests_per_minute must be positive")
        self._max_requests = max_requests_per_minute
        self._delay = delay_seconds
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()

    @property
    def max_requests_per_minute(self) -> int:
        return self._max_requests

    @property
    def in_window(self) -> int:
        """Requests recorded in the trailing window (pruned as of now)."""
        self._prune(self._clock())
        return len(self._timestamps)

    def _prune(self, now: float) -> None:
        cutoff = now - WINDOW_SECONDS
        while self._timestamps and self._timestamps[0] <= cutoff:
            self._timestamps.popleft()

    def acquire(self) -> None:
        """Block until one more request may be sent, then record it."""
        now = self._clock()
        self._prune(now)

        if len(self._timestamps) >= self._max_requests:
            wait = self._timestamps[0] + WINDOW_SECONDS - now
            if wait > 0:
                logger.info("Rate limit reached. Waiting %ds...", math.ceil(wait))
                self._sleep(wait)

        if self._delay > 0:
            self._sleep(self._delay)

        self._timestamps.append(self._clock())
