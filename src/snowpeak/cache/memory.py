"""In-process memory tier in front of the DuckDB store.

Holds aggregate query results (top-N rankings, map views) keyed by query
parameters. Entries expire after a fixed TTL; there is no other eviction.
A lost write under concurrency only costs one extra store query.
"""

import logging
import time
from typing import Any, Callable, Hashable, Optional

logger = logging.getLogger(__name__)


class MemoryCache:
    """TTL-bounded dictionary cache.

    Example:
        >>> cache = MemoryCache(ttl_seconds=900)
        >>> cache.put(("top", "CO", 5), ["Vail", "Breckenridge"])
        >>> cache.get(("top", "CO", 5))
        (['Vail', 'Breckenridge'], True)
    """

    def __init__(
        self,
        ttl_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize cache.

        Args:
            ttl_seconds: Entry lifetime in seconds
            clock: Monotonic clock, injectable for tests
        """
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[Hashable, tuple[Any, float]] = {}

    def get(self, key: Hashable) -> tuple[Optional[Any], bool]:
        """Look up a key.

        Returns:
            Tuple of (value, hit). Expired entries are dropped and reported
            as a miss.
        """
        entry = self._entries.get(key)
        if entry is None:
            logger.debug(f"Memory cache MISS for {key}")
            return None, False

        value, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            self._entries.pop(key, None)
            logger.debug(f"Memory cache EXPIRED for {key}")
            return None, False

        logger.debug(f"Memory cache HIT for {key}")
        return value, True

    def put(self, key: Hashable, value: Any) -> None:
        """Store a value, replacing any previous entry."""
        self._entries[key] = (value, self._clock())

    def invalidate(self, key: Hashable) -> None:
        """Remove a single key (no-op if absent)."""
        self._entries.pop(key, None)

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()

    def age_seconds(self, key: Hashable) -> Optional[float]:
        """Age of a cached entry in seconds, None if absent."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        return self._clock() - entry[1]

    def __len__(self) -> int:
        return len(self._entries)
