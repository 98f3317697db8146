"""In-memory cache for live standings tables."""

from typing import Any, Optional
from cachetools import TTLCache
import threading

from .. import config


class StandingsCache:
    """Thread-safe TTL cache of live tables keyed by (season, group)."""

    def __init__(self, ttl_seconds: Optional[int] = None, maxsize: int = 512) -> None:
        """Initialize the cache store.

        Args:
            ttl_seconds: Entry lifetime; defaults to STANDINGS_CACHE_TTL_SECONDS
            maxsize: Maximum number of cached tables
        """
        ttl = config.STANDINGS_CACHE_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self._tables: TTLCache = TTLCache(maxsize=maxsize, ttl=max(ttl, 1))
        self._enabled = ttl > 0

        # Lock for thread safety
        self._lock = threading.RLock()

    def get(self, season_id: int, group_id: int) -> Optional[Any]:
        """Get a cached table.

        Returns:
            Cached value or None if not found/expired
        """
        with self._lock:
            return self._tables.get((season_id, group_id))

    def set(self, season_id: int, group_id: int, value: Any) -> None:
        """Cache a table (no-op when the TTL is zero)."""
        if not self._enabled:
            return
        with self._lock:
            self._tables[(season_id, group_id)] = value

    def invalidate(self, season_id: int, group_id: int) -> bool:
        """Drop one table.

        Returns:
            True if an entry was removed, False if none was cached
        """
        with self._lock:
            return self._tables.pop((season_id, group_id), None) is not None

    def clear(self) -> None:
        with self._lock:
            self._tables.clear()

    def stats(self) -> dict[str, int]:
        """Get cache size statistics."""
        with self._lock:
            return {
                "size": len(self._tables),
                "maxsize": self._tables.maxsize,
            }
