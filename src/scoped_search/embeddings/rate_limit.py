"""In-process fixed-window rate limiter for embedding requests."""

import logging
import threading
import time
from typing import Callable, Dict, Tuple

from ..query.collaborators import RateLimiter

logger = logging.getLogger(__name__)


class LocalRateLimiter(RateLimiter):
    """Single-process rate limiter counting attempts per ``(key, scope)``.

    The window resets once ``window_seconds`` have elapsed since the first
    attempt in it. Attempts past ``limit`` within a window are throttled.

    Args:
        limit: Attempts allowed per window
        window_seconds: Window length
        clock: Monotonic time source, injectable for tests
    """

    def __init__(self, limit: int = 60, window_seconds: float = 60, clock: Callable[[], float] = time.monotonic):
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        # bucket -> (count_used, window_start)
        self._buckets: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def throttled(self, key: str, scope: str) -> bool:
        bucket = f"{key}:{scope}"
        now = self._clock()

        with self._lock:
            self._evict_expired(now)
            count, window_start = self._buckets.get(bucket, (0, now))
            if now - window_start >= self.window_seconds:
                count, window_start = 0, now

            if count < self.limit:
                self._buckets[bucket] = (count + 1, window_start)
                return False

        logger.debug(f"Rate limit reached for {bucket}")
        return True

    def _evict_expired(self, now: float):
        """Drop buckets whose window has ended; runs at most once per window."""
        if now - self._last_sweep < self.window_seconds:
            return
        self._last_sweep = now
        expired = [bucket for bucket, (_, start) in self._buckets.items() if now - start >= self.window_seconds]
        for bucket in expired:
            del self._buckets[bucket]

    def reset(self, key: str, scope: str):
        with self._lock:
            self._buckets.pop(f"{key}:{scope}", None)
