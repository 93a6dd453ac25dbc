"""
Request pacing shared by all crawl workers.

A politeness delay turns into a token bucket: every fetch takes one token,
tokens come back at ``rate`` per second, and workers that find the bucket
empty reserve the next free slot and sleep until it arrives.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Optional


class TokenBucket:
    def __init__(self, rate_per_sec: float = 1.0, burst: int = 1, jitter_ms: int = 0):
        """
        Args:
            rate_per_sec: tokens returned per second (0.5 = one fetch every 2s)
            burst: fetches allowed back to back before pacing starts
            jitter_ms: upper bound of a random extra pause per fetch
        """
        if rate_per_sec <= 0:
            raise ValueError(f"rate_per_sec must be > 0, got {rate_per_sec}")
        if burst < 1:
            raise ValueError(f"burst must be >= 1, got {burst}")
        self.rate = rate_per_sec
        self.capacity = burst
        self.jitter_ms = jitter_ms
        self.waited_secs = 0.0
        self._available = float(burst)
        self._stamp = time.monotonic()
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def _reserve(self) -> float:
        """Take a token, borrowing against the future if needed; return the delay owed."""
        with self._lock:
            now = time.monotonic()
            self._available = min(self.capacity, self._available + (now - self._stamp) * self.rate)
            self._stamp = now
            self._available -= 1
            if self._available >= 0:
                return 0.0
            delay = -self._available / self.rate
            self.waited_secs += delay
            return delay

    def acquire(self) -> None:
        """Block until the caller may send its next request."""
        delay = self._reserve()
        if self.jitter_ms > 0:
            delay += random.uniform(0, self.jitter_ms) / 1000.0
        if delay > 0:
            self.logger.debug(f"Pacing request for {delay:.2f}s")
            time.sleep(delay)


def limiter_for_delay(delay_secs: float, jitter_ms: int = 0) -> Optional[TokenBucket]:
    """Return a bucket issuing one token per ``delay_secs``, or None when pacing is off."""
    if not delay_secs or delay_secs <= 0:
        return None
    return TokenBucket(rate_per_sec=1.0 / delay_secs, burst=1, jitter_ms=jitter_ms)
