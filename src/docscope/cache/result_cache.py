"""Size-bounded, TTL-based LRU cache for extraction results."""

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


@dataclass
class CacheEntry(Generic[V]):
    key: str
    value: V
    size: int
    created_at: float
    last_accessed: float


class ResultCache(Generic[V]):
    """Least-recently-used cache bounded by total byte size.

    - Entries expire ``ttl_seconds`` after creation, regardless of reads.
      Expiry is checked lazily on ``get`` and eagerly by ``cleanup``.
    - Recency order lives in an OrderedDict: most recently used at the end,
      eviction pops from the front.
    - ``current_size`` always equals the sum of entry sizes; every mutation
      happens under one lock.
    """

    def __init__(
        self,
        max_size_bytes: int,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_size_bytes <= 0:
            raise ValueError("max_size_bytes must be positive")
        self.max_size = max_size_bytes
        self.ttl = ttl_seconds
        self._clock = clock
        self._entries: "OrderedDict[str, CacheEntry[V]]" = OrderedDict()
        self._current_size = 0
        self._hits = 0
        self._misses = 0
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings: Any) -> "ResultCache":
        return cls(settings.cache_max_size_bytes, settings.cache_ttl_seconds)

    @property
    def current_size(self) -> int:
        return self._current_size

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def _expired(self, entry: CacheEntry[V], now: float) -> bool:
        return now - entry.created_at > self.ttl

    def get(self, key: str) -> Optional[V]:
        """Return the cached value, or None on a miss or expiry."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._misses += 1
                return None

            now = self._clock()
            if self._expired(entry, now):
                self._remove(key)
                self._misses += 1
                logger.debug("Cache entry expired: %s", key)
                return None

            entry.last_accessed = now
            self._entries.move_to_end(key)
            self._hits += 1
            return entry.value

    def set(self, key: str, value: V, size: int) -> bool:
        """Insert ``value`` under ``key``, evicting LRU entries to make room.

        Returns False (without touching the cache) when ``size`` alone
        exceeds the cache capacity.
        """
        if size < 0:
            raise ValueError("size must be non-negative")

        with self._lock:
            if size > self.max_size:
                logger.warning(
                    "Cache entry size (%d bytes) exceeds max cache size (%d bytes); not cached",
                    size, self.max_size,
                )
                return False

            self._remove(key)

            evicted = 0
            while self._entries and self._current_size + size > self.max_size:
                lru_key = next(iter(self._entries))
                self._remove(lru_key)
                evicted += 1
            if evicted:
                logger.info("Evicted %d cache entries to fit %s", evicted, key)

            now = self._clock()
            self._entries[key] = CacheEntry(key, value, size, now, now)
            self._current_size += size
            return True

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._remove(key)

    def _remove(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        self._current_size -= entry.size
        return True

    def cleanup(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        with self._lock:
            now = self._clock()
            expired = [k for k, e in self._entries.items() if self._expired(e, now)]
            for key in expired:
                self._remove(key)
        if expired:
            logger.debug("Cache cleanup removed %d expired entries", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._current_size = 0
            self._hits = 0
            self._misses = 0

    def entry_sizes(self) -> list[int]:
        with self._lock:
            return [e.size for e in self._entries.values()]

    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "count": len(self._entries),
                "size": self._current_size,
                "max_size": self.max_size,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": self._hits / lookups if lookups else 0.0,
            }
