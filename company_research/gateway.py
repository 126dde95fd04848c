"""
HTTP Gateway

Single outbound path for every provider call. Each request:

    1. Looks up the response cache (when the caller passes a TTL)
    2. Waits for the shared rate limiter (minimum gap between requests)
    3. Sends the request, retrying 429/5xx/timeouts/connection errors
       with exponential backoff
    4. Decodes the JSON body and stores it in the cache

Failures surface as ApiError (non-2xx), ParseError (undecodable body),
RequestTimeout or NetworkError (transport failures after the last attempt).

Usage:
    with HttpGateway(clock=SystemClock()) as gateway:
        data = gateway.request("POST", "https://api.tavily.com/search", json=payload)
        print(gateway.stats().request_count)
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from .common.cache import ResponseCache, make_cache_key
from .common.clock import Clock, SystemClock
from .common.rate_limiter import RateLimiter
from .common.retry import retry_call
from .config import PROCESSING, ProcessingConfig
from .errors import ApiError, NetworkError, ParseError, RequestTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayStats:
    """Request counters exposed to monitoring."""
    request_count: int
    last_request_at: Optional[float]
    cache_hits: int


class HttpGateway:
    """
    Rate-limited, retrying JSON-over-HTTP client.

    One instance per process; every provider shares it so the request
    counter and the pacing cover all outbound traffic.

    Args:
        client: httpx.Client to send with. A default one is created (and
            closed by close()) when omitted.
        clock: Time source and sleeper for pacing and backoff.
        config: Pacing, retry and timeout settings.
        cache: Optional response cache. Without one, cache_ttl is ignored.
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        clock: Optional[Clock] = None,
        config: ProcessingConfig = PROCESSING,
        cache: Optional[ResponseCache] = None,
    ):
        self.clock = clock or SystemClock()
        self.config = config
        self.cache = cache if config.enable_cache else None
        self._owns_client = client is None
        self._client = client or httpx.Client(timeout=config.search_timeout)
        self.limiter = RateLimiter(config.rate_limit_delay, clock=self.clock, name="gateway")
        self._cache_hits = 0

    # ─────────────────────────────────────────────────────────────────────────
    # REQUESTS
    # ─────────────────────────────────────────────────────────────────────────

    def request(
        self,
        method: str,
        url: str,
        *,
        json: Any = None,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
        timeout: Optional[float] = None,
        cache_ttl: Optional[int] = None,
        operation_name: str = "",
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Args:
            method: HTTP method.
            url: Absolute URL.
            json: JSON body.
            params: Query parameters.
            headers: Extra headers (auth goes here).
            timeout: Per-request timeout in seconds.
            cache_ttl: Seconds to cache the decoded response. None disables caching.
            operation_name: Label for retry log messages.

        Raises:
            ApiError: Non-2xx status (after retries for 429/5xx).
            ParseError: 2xx status but the body is not JSON.
            RequestTimeout: Timed out on every attempt.
            NetworkError: Connection failed on every attempt.
        """
        cache_key = None
        if self.cache is not None and cache_ttl:
            cache_key = make_cache_key(method, url, params, json)
            cached = self._cache_get(cache_key)
            if cached is not None:
                self._cache_hits += 1
                logger.debug("Cache hit for %s %s", method.upper(), url)
                return cached

        data = retry_call(
            self._send_once,
            method, url,
            json_body=json, params=params, headers=headers, timeout=timeout,
            max_attempts=self.config.max_attempts,
            delay_base=self.config.retry_delay_base,
            clock=self.clock,
            operation_name=operation_name or f"{method.upper()} {url}",
        )

        if cache_key is not None:
            self._cache_set(cache_key, data, cache_ttl)
        return data

    def get(self, url: str, **kwargs) -> Any:
        return self.request("GET", url, **kwargs)

    def post(self, url: str, **kwargs) -> Any:
        return self.request("POST", url, **kwargs)

    def _send_once(
        self,
        method: str,
        url: str,
        json_body: Any = None,
        params: Optional[dict] = None,
        headers: Optional[dict] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        """One paced attempt. Translates httpx failures into pipeline errors."""
        self.limiter.acquire()
        effective_timeout = timeout if timeout is not None else self.config.search_timeout
        try:
            response = self._client.request(
                method.upper(), url,
                json=json_body, params=params, headers=headers,
                timeout=effective_timeout,
            )
        except httpx.TimeoutException as e:
            raise RequestTimeout(f"request timeout after {effective_timeout:.0f}s") from e
        except httpx.TransportError as e:
            raise NetworkError(f"network error: {type(e).__name__}") from e

        if not response.is_success:
            raise ApiError(response.status_code, response.text[:200], url=url)

        try:
            return response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ParseError("could not decode JSON response body") from e

    # ─────────────────────────────────────────────────────────────────────────
    # CACHE (best effort: failures are logged and treated as misses)
    # ─────────────────────────────────────────────────────────────────────────

    def _cache_get(self, key: str) -> Any:
        try:
            return self.cache.get(key)
        except Exception as e:
            logger.warning("Cache read failed (%s: %s), ignoring", type(e).__name__, e)
            return None

    def _cache_set(self, key: str, value: Any, ttl: int) -> None:
        try:
            self.cache.set(key, value, ttl)
        except Exception as e:
            logger.warning("Cache write failed (%s: %s), ignoring", type(e).__name__, e)

    def clear_cache(self) -> None:
        if self.cache is None:
            return
        try:
            self.cache.clear()
        except Exception as e:
            logger.warning("Cache clear failed (%s: %s), ignoring", type(e).__name__, e)

    # ─────────────────────────────────────────────────────────────────────────
    # STATS & LIFECYCLE
    # ─────────────────────────────────────────────────────────────────────────

    def stats(self) -> GatewayStats:
        return GatewayStats(
            request_count=self.limiter.total_requests,
            last_request_at=self.limiter.last_request_at,
            cache_hits=self._cache_hits,
        )

    def reset_stats(self) -> None:
        self.limiter.reset()
        self._cache_hits = 0

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "HttpGateway":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"HttpGateway(requests={self.limiter.total_requests}, cache_hits={self._cache_hits})"
