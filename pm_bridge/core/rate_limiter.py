"""Token bucket admission control for outbound API calls."""

import logging
import math
import threading
import time
from typing import Callable

from .errors import RateLimitExceededError


class RateLimiter:
    """Token bucket rate limiter shared by all provider clients.

    Burst capacity and sustained rate are configured independently: the
    bucket starts full with ``capacity`` tokens and refills continuously at
    ``refill_per_minute`` tokens per minute.
    """

    def __init__(
        self,
        capacity: int = 10,
        refill_per_minute: float = 30,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize the bucket.

        Args:
            capacity: Maximum tokens in the bucket (burst size), at least 1
            refill_per_minute: Tokens added per minute, greater than 0
            clock: Monotonic clock returning seconds
        """
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if refill_per_minute <= 0:
            raise ValueError(f"refill_per_minute must be > 0, got {refill_per_minute}")

        self.capacity = capacity
        self.refill_per_minute = refill_per_minute
        self._clock = clock
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    @property
    def refill_rate(self) -> float:
        """Refill rate in tokens per millisecond."""
        return self.refill_per_minute / 60000.0

    @property
    def retry_after_ms(self) -> int:
        """Time for one full token to refill, in milliseconds."""
        return math.ceil(60000.0 / self.refill_per_minute)

    def consume(self) -> None:
        """Take one token or raise RateLimitExceededError."""
        with self._lock:
            self._refill()

            if self._tokens < 1:
                self.logger.warning(
                    f"Rate limit reached, retry after {self.retry_after_ms}ms"
                )
                raise RateLimitExceededError(self.retry_after_ms)

            self._tokens -= 1

    def can_consume(self) -> bool:
        """Check if a call can be made without taking a token."""
        with self._lock:
            self._refill()
            return self._tokens >= 1

    @property
    def available_tokens(self) -> int:
        """Whole tokens currently available (for diagnostics)."""
        with self._lock:
            self._refill()
            return math.floor(self._tokens)

    def _refill(self) -> None:
        """Add tokens for the time elapsed since the last refill. Caller holds the lock."""
        now = self._clock()
        elapsed_ms = max(0.0, (now - self._last_refill) * 1000.0)
        self._tokens = min(
            float(self.capacity),
            self._tokens + elapsed_ms * self.refill_per_minute / 60000.0
        )
        self._last_refill = now
