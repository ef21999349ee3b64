"""
Resilience utilities for JobPulse.

Provides a sliding-window rate limiter for calls against the provider's
message-listing endpoint. Failures are never retried automatically: every
failed operation is surfaced and needs an explicit re-invocation.
"""

import threading
import time
from collections import deque
from typing import Callable, Optional

from jobpulse.logging_config import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Sliding window rate limiter for API calls.

    Allows at most ``calls_per_minute`` calls in any 60 second window and
    spaces consecutive calls by at least ``60 / calls_per_minute`` seconds
    once the burst allowance is used up.
    """

    WINDOW_SECONDS = 60.0

    def __init__(
        self,
        calls_per_minute: int = 60,
        burst_size: Optional[int] = None,
        name: str = "api",
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize rate limiter.

        Args:
            calls_per_minute: Maximum calls allowed per minute
            burst_size: Calls allowed back to back before spacing kicks in
                (defaults to calls_per_minute / 4)
            name: Label used in log messages
            clock: Monotonic time source
            sleep: Sleep function used while waiting
        """
        if calls_per_minute <= 0:
            raise ValueError("calls_per_minute must be positive")

        self.calls_per_minute = calls_per_minute
        self.burst_size = burst_size or max(1, calls_per_minute // 4)
        self.min_interval = self.WINDOW_SECONDS / calls_per_minute
        self.name = name

        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._call_times: deque = deque()

    def _wait_time(self, now: float) -> float:
        """Seconds until the next call may proceed (0 if it may proceed now)."""
        while self._call_times and self._call_times[0] <= now - self.WINDOW_SECONDS:
            self._call_times.popleft()

        if len(self._call_times) >= self.calls_per_minute:
            return self._call_times[0] + self.WINDOW_SECONDS - now

        recent = [t for t in self._call_times if t > now - self.min_interval * self.burst_size]
        if len(recent) >= self.burst_size:
            return max(0.0, self._call_times[-1] + self.min_interval - now)

        return 0.0

    def acquire(self, timeout: Optional[float] = None) -> bool:
        """
        Acquire permission to make a call, blocking if necessary.

        Args:
            timeout: Maximum time to wait in seconds (None for infinite)

        Returns:
            True if acquired, False if timeout exceeded
        """
        start = self._clock()

        while True:
            with self._lock:
                now = self._clock()
                wait_time = self._wait_time(now)
                if wait_time <= 0:
                    self._call_times.append(now)
                    return True

            if timeout is not None and (now - start) + wait_time > timeout:
                logger.debug(f"Rate limiter '{self.name}' timed out after {now - start:.2f}s")
                return False

            logger.debug(f"Rate limiter '{self.name}' waiting {wait_time:.2f}s")
            self._sleep(min(wait_time, 0.5))

