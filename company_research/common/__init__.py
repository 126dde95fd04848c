"""Shared utilities used across the pipeline."""

from .clock import Clock, SystemClock, utc_datetime
from .rate_limiter import RateLimiter
from .cache import FileResponseCache, MemoryResponseCache, ResponseCache, make_cache_key
from .jsonl_writer import JSONLWriter, read_jsonl

__all__ = [
    "Clock", "SystemClock", "utc_datetime",
    "RateLimiter",
    "FileResponseCache", "MemoryResponseCache", "ResponseCache", "make_cache_key",
    "JSONLWriter", "read_jsonl",
]
