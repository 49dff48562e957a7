import logging
import time
from typing import Callable, Generic, Optional, TypeVar

from cachetools import TTLCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DocumentCache(Generic[T]):
    """
    Single-entry, process-local cache for a parsed document.

    Backed by a TTLCache with maxsize=1, so an entry older than ``ttl``
    seconds is simply gone and the caller falls through to disk.

    Features:
    - Explicit invalidation after every committed write
    - Injectable timer (tests drive expiry without sleeping)
    - Hit/miss/invalidation counters
    """

    _KEY = "document"

    def __init__(self, ttl: float = 5.0, timer: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._entries: TTLCache = TTLCache(maxsize=1, ttl=ttl, timer=timer)

        # Stats tracking
        self.stats = {
            "hits": 0,
            "misses": 0,
            "invalidations": 0,
        }

    def get(self) -> Optional[T]:
        """Return the cached document, or None when empty or expired."""
        value = self._entries.get(self._KEY)
        if value is None:
            self.stats["misses"] += 1
            return None

        self.stats["hits"] += 1
        logger.debug("Returning cached data")
        return value

    def set(self, value: T) -> None:
        """Store a freshly read document and restart its TTL."""
        self._entries[self._KEY] = value

    def invalidate(self) -> None:
        """Drop the cached document so the next read goes to disk."""
        self._entries.pop(self._KEY, None)
        self.stats["invalidations"] += 1
        logger.debug("Cache invalidated")

    def get_stats(self) -> dict:
        total = self.stats["hits"] + self.stats["misses"]
        return {
            **self.stats,
            "cached": self._KEY in self._entries,
            "ttl_seconds": self.ttl,
            "hit_rate": self.stats["hits"] / total if total > 0 else 0,
        }
