"""Rate limiting utilities for API clients."""

import time
from collections import deque


class RateLimiter:
    """Sliding window rate limiter.

    With ``requests_per_period=1`` this enforces a minimum delay between
    consecutive calls, which is how source fetches are spaced out.

    Example:
        >>> limiter = RateLimiter(requests_per_period=1, period_seconds=1.5)
        >>> limiter.wait_if_needed()  # Blocks if the last call was < 1.5s ago
    """

    def __init__(self, requests_per_period: int, period_seconds: float):
        """Initialize rate limiter.

        Args:
            requests_per_period: Maximum number of requests allowed per period
            period_seconds: Time period in seconds for the rate limit window
        """
        self.requests_per_period = requests_per_period
        self.period_seconds = period_seconds
        self.request_times: deque[float] = deque()

    def _expire(self, now: float) -> None:
        while self.request_times and self.request_times[0] <= now - self.period_seconds:
            self.request_times.popleft()

    def wait_if_needed(self) -> float:
        """Block until another request fits in the window, then record it.

        Returns:
            Seconds spent sleeping
        """
        now = time.monotonic()
        self._expire(now)

        slept = 0.0
        if len(self.request_times) >= self.requests_per_period:
            sleep_time = self.period_seconds - (now - self.request_times[0])
            if sleep_time > 0:
                time.sleep(sleep_time)
                slept = sleep_time
            self._expire(time.monotonic())

        self.request_times.append(time.monotonic())
        return slept

