"""
Retry logic with exponential backoff.

Retries on transient errors (rate limits, server errors, timeouts,
dropped connections) but NOT on permanent errors (bad request, auth
failure, undecodable body).

Sleeps block the calling thread through the injected Clock.
"""

import logging
from typing import Callable, Optional, TypeVar

from ..errors import ApiError, NetworkError, RequestTimeout
from .clock import Clock, SystemClock

logger = logging.getLogger(__name__)

T = TypeVar("T")

# HTTP status codes that should trigger a retry (plus every other 5xx)
RETRYABLE_STATUS_CODES = {
    429,  # Rate limit
    500,  # Internal Server Error
    502,  # Bad Gateway
    503,  # Service Unavailable
    504,  # Gateway Timeout
}

# Exception types that should trigger a retry
RETRYABLE_EXCEPTIONS = (
    RequestTimeout,
    NetworkError,
)


def is_retryable_status(status: int) -> bool:
    return status in RETRYABLE_STATUS_CODES or 500 <= status < 600


def backoff_delay(attempt: int, delay_base: float) -> float:
    """Delay before the next try after `attempt` (1-based) failed."""
    return delay_base * (2 ** (attempt - 1))


def retry_call(
    fn: Callable[..., T],
    *args,
    max_attempts: int = 3,
    delay_base: float = 1.0,
    clock: Optional[Clock] = None,
    operation_name: str = "",
    **kwargs,
) -> T:
    """
    Call a function with exponential backoff on transient failures.

    Retry on:
    - ApiError with HTTP 429 or any 5xx
    - RequestTimeout, NetworkError

    Do NOT retry on:
    - ApiError with any other status (400, 401, 404, ...)
    - ParseError (response body could not be decoded)
    - Any other exception

    Args:
        fn: The callable to invoke.
        *args: Positional arguments passed to fn.
        max_attempts: Total attempts including the first (1 = no retries).
        delay_base: Base delay in seconds; doubles each retry (1s, 2s, 4s, ...).
        clock: Sleeper used between attempts.
        operation_name: Human-readable label for log messages.
        **kwargs: Keyword arguments passed to fn.

    Returns:
        The result of fn(*args, **kwargs).

    Raises:
        The last exception if all attempts are exhausted.
    """
    clock = clock or SystemClock()
    label = operation_name or getattr(fn, "__name__", "request")
    attempts = max(1, max_attempts)
    last_exception: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            return fn(*args, **kwargs)

        except ApiError as e:
            if not is_retryable_status(e.status_code):
                # Permanent error, don't retry
                raise

            last_exception = e
            if attempt < attempts:
                delay = backoff_delay(attempt, delay_base)
                logger.warning(
                    "%s: HTTP %d on attempt %d/%d, retrying in %.1fs",
                    label, e.status_code, attempt, attempts, delay,
                )
                clock.sleep(delay)
            else:
                logger.error(
                    "%s: HTTP %d, all %d attempts exhausted",
                    label, e.status_code, attempts,
                )

        except RETRYABLE_EXCEPTIONS as e:
            last_exception = e
            if attempt < attempts:
                delay = backoff_delay(attempt, delay_base)
                logger.warning(
                    "%s: %s on attempt %d/%d, retrying in %.1fs",
                    label, type(e).__name__, attempt, attempts, delay,
                )
                clock.sleep(delay)
            else:
                logger.error(
                    "%s: %s, all %d attempts exhausted",
                    label, type(e).__name__, attempts,
                )

    raise last_exception  # type: ignore[misc]
