"""Token bucket throttling for Coding and GitHub API calls."""

import asyncio
import threading
import time


class RateLimiter:
    """Token bucket shared by the synchronous and asynchronous request paths.

    The bucket holds at most ``requests_per_second`` tokens (never fewer than
    one) and refills continuously.
    """

    def __init__(self, requests_per_second: float = 1.0):
        """Initialize rate limiter.

        Args:
            requests_per_second: Sustained request rate allowed
        """
        if requests_per_second <= 0:
            raise ValueError('requests_per_second must be positive')

        self.requests_per_second = requests_per_second
        self.capacity = max(1.0, requests_per_second)
        self.tokens = self.capacity
        self.last_update = time.monotonic()
        self._sync_lock = threading.Lock()
        self._async_lock = None

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_update
        self.tokens = min(self.capacity, self.tokens + elapsed * self.requests_per_second)
        self.last_update = now

    def _reserve(self) -> float:
        """Take one token, returning how long the caller must wait for it."""
        self._refill()
        if self.tokens >= 1:
            self.tokens -= 1
            return 0.0

        wait = (1 - self.tokens) / self.requests_per_second
        self.tokens = 0.0
        self.last_update += wait
        return wait

    async def acquire(self) -> None:
        """Wait until a request may be made (async version)."""
        if self._async_lock is None:
            self._async_lock = asyncio.Lock()

        async with self._async_lock:
            wait = self._reserve()
            if wait > 0:
                await asyncio.sleep(wait)

    def acquire_sync(self) -> None:
        """Wait until a request may be made (blocking version)."""
        with self._sync_lock:
            wait = self._reserve()
        if wait > 0:
            time.sleep(wait)
