"""
Response Cache

Best-effort TTL cache for decoded API responses. Keys are built from
the HTTP method, the canonical URL (lowercased host, sorted query) and
a digest of the JSON body, so two identical POST searches share an entry.

Two backends:
    MemoryResponseCache  per-process dict, used by default
    FileResponseCache    one JSON file per key, survives restarts

Callers must treat every cache failure as a miss; the gateway does.
"""

import json
from hashlib import sha256
from pathlib import Path
from typing import Any, Optional, Protocol, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from .clock import Clock, SystemClock

CACHE_VERSION = 1


class ResponseCache(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        ...

    def clear(self) -> None:
        ...


def canonical_url(url: str, params: Optional[dict] = None) -> str:
    """Lowercase scheme/host, default path, and a sorted query string."""
    parsed = urlsplit(url.strip())
    scheme = (parsed.scheme or "https").lower()
    netloc = parsed.netloc.lower()
    path = parsed.path or "/"
    query_items = parse_qsl(parsed.query, keep_blank_values=True)
    if params:
        query_items.extend((str(k), str(v)) for k, v in params.items())
    query = urlencode(sorted(query_items))
    return urlunsplit((scheme, netloc, path, query, ""))


def make_cache_key(method: str, url: str, params: Optional[dict] = None, body: Any = None) -> str:
    material = f"v{CACHE_VERSION}|{method.upper()}|{canonical_url(url, params)}"
    if body is not None:
        material += "|" + json.dumps(body, sort_keys=True, ensure_ascii=False, default=str)
    return sha256(material.encode("utf-8")).hexdigest()


class MemoryResponseCache:
    """In-process TTL cache."""

    def __init__(self, clock: Optional[Clock] = None, max_entries: int = 1000):
        self.clock = clock or SystemClock()
        self.max_entries = max_entries
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if self.clock.now() >= expires_at:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        if len(self._entries) >= self.max_entries and key not in self._entries:
            # Drop the entry closest to expiry
            oldest = min(self._entries, key=lambda k: self._entries[k][0])
            del self._entries[oldest]
        self._entries[key] = (self.clock.now() + ttl_seconds, value)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class FileResponseCache:
    """
    One JSON file per key under `directory`.

    Payload: {"version", "expires_at", "value"}. Expired, unreadable or
    wrong-version files are misses.
    """

    def __init__(self, directory: Union[str, Path], clock: Optional[Clock] = None):
        self.directory = Path(directory)
        self.clock = clock or SystemClock()

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None

        payload = json.loads(path.read_text(encoding="utf-8"))
        if payload.get("version") != CACHE_VERSION:
            return None
        expires_at = payload.get("expires_at")
        if not isinstance(expires_at, (int, float)) or self.clock.now() >= expires_at:
            return None
        return payload.get("value")

    def set(self, key: str, value: Any, ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            return
        self.directory.mkdir(parents=True, exist_ok=True)
        payload = {
            "version": CACHE_VERSION,
            "expires_at": self.clock.now() + ttl_seconds,
            "value": value,
        }
        self._path(key).write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")

    def clear(self) -> None:
        if not self.directory.exists():
            return
        for path in self.directory.glob("*.json"):
            path.unlink()
