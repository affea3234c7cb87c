"""
Token bucket rate limiter for Bot API requests.

Telegram limits bots to roughly one message per second per chat with short
bursts allowed; the bucket refills ``rate`` tokens per second up to ``burst``.
"""

import threading
import time
from typing import Callable, Optional

from service.utils.errors import DeliveryCancelledError


class RateLimiter:
    """Thread-safe token bucket."""

    def __init__(
        self,
        rate: float = 1.0,
        burst: int = 5,
        clock: Callable[[], float] = time.monotonic,
    ):
        if rate <= 0:
            raise ValueError("rate must be positive")
        if burst < 1:
            raise ValueError("burst must be at least 1")
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._tokens = float(burst)
        self._last = clock()
        self._lock = threading.Lock()

    def acquire(self, cancel: Optional[threading.Event] = None):
        """
        Take one token, waiting until it is available.

        Args:
            cancel: Event that aborts the wait when set

        Raises:
            DeliveryCancelledError: If ``cancel`` is set before a token is available
        """
        if cancel is not None and cancel.is_set():
            raise DeliveryCancelledError()

        wait = self._reserve()
        if wait <= 0:
            return
        if cancel is None:
            time.sleep(wait)
        elif cancel.wait(wait):
            self._release()
            raise DeliveryCancelledError()

    def _refill(self, now: float):
        elapsed = max(0.0, now - self._last)
        self._tokens = min(float(self.burst), self._tokens + elapsed * self.rate)
        self._last = now

    def _reserve(self) -> float:
        # Tokens may go negative: the deficit is the caller's wait time.
        with self._lock:
            self._refill(self._clock())
            self._tokens -= 1
            if self._tokens >= 0:
                return 0.0
            return -self._tokens / self.rate

    def _release(self):
        with self._lock:
            self._refill(self._clock())
            self._tokens = min(float(self.burst), self._tokens + 1)
