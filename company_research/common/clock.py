"""
Clock / Sleeper

All waiting in the pipeline (request pacing, retry backoff, the pause
between companies) goes through a Clock so tests can swap in a fake
that records sleeps instead of blocking.
"""

import time
from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    """Time source and blocking sleeper."""

    def now(self) -> float:
        """Current time as epoch seconds."""
        ...

    def sleep(self, seconds: float) -> None:
        """Block the calling thread for `seconds`."""
        ...


class SystemClock:
    """Wall-clock time and real `time.sleep`."""

    def now(self) -> float:
        return time.time()

    def sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)


def utc_datetime(clock: Clock) -> datetime:
    """The clock's current time as an aware UTC datetime."""
    return datetime.fromtimestamp(clock.now(), tz=timezone.utc)
