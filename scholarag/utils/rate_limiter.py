"""Rate limiting utilities for API calls."""
import logging
import threading
import time
from typing import Callable, List

logger = logging.getLogger(__name__)


class RateLimiter:
    """Sliding-window rate limiter for one API.

    One instance is shared by every adapter created for the same provider,
    so calls from concurrent requests count against the same window.

    Args:
        name: API name used in log messages
        max_calls: Maximum number of calls allowed in the period
        period_seconds: Time period in seconds
    """

    def __init__(
        self,
        name: str,
        max_calls: int,
        period_seconds: float = 60,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")
        self.name = name
        self.max_calls = max_calls
        self.period_seconds = period_seconds
        self._clock = clock
        self._sleep = sleep
        self._call_times: List[float] = []
        self._lock = threading.Lock()

    def acquire(self) -> float:
        """Block until a call is allowed, then record it.

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        while True:
            with self._lock:
                now = self._clock()
                # Remove old timestamps outside the time window
                self._call_times = [
                    t for t in self._call_times if now - t < self.period_seconds
                ]
                if len(self._call_times) < self.max_calls:
                    self._call_times.append(now)
                    return waited
                wait_time = self.period_seconds - (now - self._call_times[0])

            logger.info(f"Rate limit hit for {self.name}. Waiting for {wait_time:.2f} seconds.")
            self._sleep(wait_time)
            waited += wait_time

    def reset(self) -> None:
        """Forget recorded calls. Useful for testing."""
        with self._lock:
            self._call_times = []
