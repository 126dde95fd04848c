"""
Rate Limiter

Enforces a minimum interval between outbound requests. One limiter is
shared by every provider that goes through the HttpGateway, so Tavily
and OpenAI calls are paced together.

Usage:
    limiter = RateLimiter(min_interval=1.0, clock=SystemClock())

    # Before each API call:
    limiter.acquire()
    response = client.post(...)
"""

from typing import Optional

from .clock import Clock, SystemClock


class RateLimiter:
    """
    Minimum-interval limiter for sequential API calls.

    A request that arrives less than `min_interval` seconds after the
    previous one sleeps for the remainder before proceeding.

    Args:
        min_interval: Minimum gap between requests, in seconds.
        clock: Time source and sleeper.
        name: Optional label for logging (e.g. "gateway").
    """

    def __init__(self, min_interval: float, clock: Optional[Clock] = None, name: str = ""):
        self.min_interval = min_interval
        self.clock = clock or SystemClock()
        self.name = name
        self._last_request_at: Optional[float] = None
        self._total_requests = 0
        self._total_wait_seconds = 0.0

    def acquire(self) -> float:
        """
        Wait until the interval since the last request has elapsed, then
        reserve the slot.

        Returns:
            Seconds slept (0.0 when no wait was needed).
        """
        waited = 0.0
        if self._last_request_at is not None:
            elapsed = self.clock.now() - self._last_request_at
            if elapsed < self.min_interval:
                waited = self.min_interval - elapsed
                self._total_wait_seconds += waited
                self.clock.sleep(waited)

        self._last_request_at = self.clock.now()
        self._total_requests += 1
        return waited

    @property
    def last_request_at(self) -> Optional[float]:
        """Epoch seconds of the most recent acquired slot."""
        return self._last_request_at

    @property
    def total_requests(self) -> int:
        return self._total_requests

    @property
    def stats(self) -> dict:
        """Return usage statistics for monitoring."""
        return {
            "name": self.name,
            "min_interval": self.min_interval,
            "total_requests": self._total_requests,
            "total_wait_seconds": round(self._total_wait_seconds, 2),
            "last_request_at": self._last_request_at,
        }

    def reset(self) -> None:
        self._last_request_at = None
        self._total_requests = 0
        self._total_wait_seconds = 0.0

    def __repr__(self) -> str:
        return (
            f"RateLimiter(name={self.name!r}, min_interval={self.min_interval}, "
            f"requests={self._total_requests}, waited={self._total_wait_seconds:.1f}s)"
        )
