"""
In-process cache used while Redis is unavailable
"""
import fnmatch
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class MemoryCacheEntry:
    value: str
    expires_at: float


class MemoryCache:
    """
    Bounded key/value store with per-entry expiry.

    Values are stored serialized. When the cache is full, the oldest
    inserted keys are evicted in batches.
    """

    def __init__(
        self,
        max_size: int = 1000,
        evict_batch: int = 100,
        clock: Callable[[], float] = time.time
    ):
        self.max_size = max_size
        self.evict_batch = evict_batch
        self._clock = clock
        self._entries: Dict[str, MemoryCacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if entry and entry.expires_at > self._clock():
            return entry.value
        self._entries.pop(key, None)
        return None

    def set(self, key: str, value: str, ttl_seconds: int) -> None:
        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_oldest()

        self._entries[key] = MemoryCacheEntry(
            value=value,
            expires_at=self._clock() + ttl_seconds,
        )

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def delete_matching(self, pattern: str) -> int:
        """
        Delete keys matching a glob pattern (``*`` and ``?``)

        Returns:
            Number of deleted keys
        """
        matched = [key for key in self._entries if fnmatch.fnmatchcase(key, pattern)]
        for key in matched:
            del self._entries[key]
        return len(matched)

    def increment(self, key: str, ttl_seconds: Optional[int] = None) -> int:
        """
        Increment an integer counter.

        The expiry is set when the counter is created and is not extended
        by later increments. Counters without a TTL live for an hour.
        """
        now = self._clock()
        entry = self._entries.get(key)

        if entry and entry.expires_at > now:
            new_value = int(entry.value) + 1
            entry.value = str(new_value)
            return new_value

        self.set(key, "1", ttl_seconds or 3600)
        return 1

    def cleanup(self) -> int:
        """
        Remove expired entries

        Returns:
            Number of removed entries
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Removed {len(expired)} expired memory cache entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def _evict_oldest(self) -> None:
        oldest = list(self._entries)[:self.evict_batch]
        for key in oldest:
            del self._entries[key]
        logger.debug(f"Memory cache full, evicted {len(oldest)} oldest entries")
