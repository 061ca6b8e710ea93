"""
Bounded in-memory cache for decoded image bytes.
Enforces item-count and total-size ceilings with strict LRU eviction.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Dict, Optional

from image_service.core.exceptions import ConfigurationError

DEFAULT_MAX_ITEMS = 15
DEFAULT_MAX_BYTES = 50 * 1024 * 1024  # 50MB


def make_cache_key(path: str, length: int) -> str:
    """
    Build a cache key from a file's identity and size.

    Args:
        path: File path or name reported by the file source
        length: File size in bytes

    Returns:
        Cache key string
    """
    return f"{path}:{length}"


@dataclass
class CacheEntry:
    """A cached file's bytes plus LRU metadata."""
    key: str
    data: bytes
    mime_type: str
    last_accessed: float

    @property
    def size(self) -> int:
        return len(self.data)


class ByteCacheStore:
    """
    Key -> bytes cache bounded by item count and total bytes.

    Entries are kept in access order, so the head of the map is always the
    entry with the oldest last_accessed time.
    """

    def __init__(
        self,
        max_items: int = DEFAULT_MAX_ITEMS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        clock: Callable[[], float] = time.monotonic,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the cache.

        Args:
            max_items: Maximum number of entries (must be positive)
            max_bytes: Maximum combined size of cached bytes (must be >= 0)
            clock: Time source for last_accessed bookkeeping
            logger: Optional logger override

        Raises:
            ConfigurationError: If either budget is invalid
        """
        if max_items <= 0:
            raise ConfigurationError(f"max_items must be positive, got {max_items}")
        if max_bytes < 0:
            raise ConfigurationError(f"max_bytes must not be negative, got {max_bytes}")

        self.max_items = max_items
        self.max_bytes = max_bytes
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._total_bytes = 0

        self._hits = 0
        self._misses = 0
        self._evictions = 0

    @property
    def item_count(self) -> int:
        return len(self._entries)

    @property
    def total_bytes(self) -> int:
        return self._total_bytes

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[CacheEntry]:
        """
        Look up an entry and mark it as freshly accessed.

        Args:
            key: Cache key

        Returns:
            The cached entry, or None on a miss
        """
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        entry.last_accessed = self._clock()
        self._entries.move_to_end(key)
        self._hits += 1
        return entry

    def put(self, key: str, data: bytes, mime_type: str) -> bool:
        """
        Insert bytes, evicting least recently used entries to make room.

        An item larger than max_bytes is never cached and leaves the store
        untouched. This is not an error; callers keep the uncached bytes.

        Args:
            key: Cache key
            data: File bytes
            mime_type: Detected MIME type

        Returns:
            True if the item was cached
        """
        size = len(data)
        if size > self.max_bytes:
            self._logger.debug(
                f"[CACHE] Skipping {key}: {size} bytes exceeds budget of {self.max_bytes}"
            )
            return False

        previous = self._entries.pop(key, None)
        if previous is not None:
            self._total_bytes -= previous.size

        while self._entries and (
            len(self._entries) >= self.max_items
            or self._total_bytes + size > self.max_bytes
        ):
            self._evict_oldest()

        self._entries[key] = CacheEntry(
            key=key,
            data=data,
            mime_type=mime_type,
            last_accessed=self._clock()
        )
        self._total_bytes += size
        return True

    def clear(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        self._total_bytes = 0

    def clear_half(self) -> int:
        """
        Evict the oldest entries until the item count is halved.

        Used for memory-pressure relief where a full clear would throw away
        recently used entries for nothing.

        Returns:
            Number of entries evicted
        """
        target = len(self._entries) // 2
        evicted = 0
        while len(self._entries) > target:
            self._evict_oldest()
            evicted += 1

        if evicted:
            self._logger.info(
                f"[CACHE] Memory pressure: evicted {evicted} entries "
                f"({len(self._entries)} remaining, {self._total_bytes} bytes)"
            )
        return evicted

    def stats(self) -> Dict[str, int]:
        """Return counters and budgets for monitoring."""
        return {
            "item_count": len(self._entries),
            "total_bytes": self._total_bytes,
            "max_items": self.max_items,
            "max_bytes": self.max_bytes,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }

    def _evict_oldest(self) -> None:
        key, entry = self._entries.popitem(last=False)
        self._total_bytes -= entry.size
        self._evictions += 1
        self._logger.debug(f"[CACHE] Evicted {key} ({entry.size} bytes)")
