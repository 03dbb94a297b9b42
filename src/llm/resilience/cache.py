"""In-memory response cache with TTL expiry and LRU eviction.

Guarded by a threading.Lock so it is safe to share between the event loop
and worker threads.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import asdict, dataclass, is_dataclass
from typing import Any, Generic, TypeVar

from ...config import EnvVar, get_environment

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheStats:
    """Cache counters."""

    size: int
    max_size: int
    hits: int
    misses: int
    evictions: int
    hit_rate: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class ResponseCache(Generic[T]):
    """Bounded TTL + LRU cache.

    Args:
        max_size: Maximum number of entries (CACHE_MAX_SIZE).
        ttl_seconds: Default entry lifetime (CACHE_TTL_SECONDS).
        clock: Monotonic time source, injectable for tests.

    Example:
        >>> cache = ResponseCache(max_size=2, ttl_seconds=60)
        >>> cache.set("a", "reply")
        >>> cache.get("a")
        'reply'
    """

    def __init__(
        self,
        max_size: int | None = None,
        ttl_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max_size if max_size is not None else get_environment(
            EnvVar.CACHE_MAX_SIZE
        )
        self.ttl_seconds = ttl_seconds if ttl_seconds is not None else get_environment(
            EnvVar.CACHE_TTL_SECONDS
        )
        self._clock = clock
        self._entries: OrderedDict[str, tuple[T, float]] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> T | None:
        """Return the cached value, or None when missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                self._misses += 1
                return None

            self._entries.move_to_end(key)
            self._hits += 1
            return value

    def set(self, key: str, value: T, ttl_seconds: float | None = None) -> None:
        """Store a value, evicting the least recently used entry when full.

        A cache sized zero or less stores nothing.
        """
        if self.max_size <= 0:
            return
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
            elif len(self._entries) >= self.max_size:
                evicted, _ = self._entries.popitem(last=False)
                self._evictions += 1
                logger.debug(f"Evicted LRU cache entry {evicted[:12]}")
            self._entries[key] = (value, self._clock() + ttl)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def __contains__(self, key: str) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and self._clock() < entry[1]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def clear(self) -> None:
        """Drop all entries and reset counters."""
        with self._lock:
            self._entries.clear()
            self._hits = 0
            self._misses = 0
            self._evictions = 0

    def cleanup(self) -> int:
        """Remove expired entries.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            now = self._clock()
            expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def stats(self) -> CacheStats:
        """Snapshot of the cache counters."""
        with self._lock:
            lookups = self._hits + self._misses
            return CacheStats(
                size=len(self._entries),
                max_size=self.max_size,
                hits=self._hits,
                misses=self._misses,
                evictions=self._evictions,
                hit_rate=self._hits / lookups if lookups else 0.0,
            )


def _jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    if hasattr(value, "model_dump"):
        return value.model_dump()
    return str(value)


def make_cache_key(namespace: str, *parts: Any) -> str:
    """Build a stable fingerprint key.

    Args:
        namespace: Key prefix (e.g. provider identifier).
        *parts: JSON-serialisable values (dataclasses and pydantic models
            are dumped first).

    Returns:
        '<namespace>:<sha256 hex>'.
    """
    payload = json.dumps(parts, sort_keys=True, default=_jsonable, ensure_ascii=False)
    digest = hashlib.sha256(payload.encode("utf-8")).hexdigest()
    return f"{namespace}:{digest}"


__all__ = ["CacheStats", "ResponseCache", "make_cache_key"]
