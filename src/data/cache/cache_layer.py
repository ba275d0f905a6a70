"""TTL cache with in-flight de-duplication and an optional durable mirror.

The cache layer sits in front of the protocol reader. It never raises to its
callers: internal and persistence errors degrade to a miss.
"""

import asyncio
import fnmatch
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from config.settings import Settings, get_settings
from src.core.models import CacheEntry
from src.data.cache.disk_cache import DiskCache

logger = logging.getLogger(__name__)


class CacheLayer:
    """In-memory TTL store keyed by the cache key grammar.

    ``with_dedup`` keeps a map of key -> shared future so at most one producer
    runs per key at any instant; concurrent callers await the same future.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        persistent: Optional[DiskCache] = None,
        clock: Callable[[], float] = time.time,
        max_entries: Optional[int] = None,
    ):
        """Initialize the cache layer.

        Args:
            settings: Application settings
            persistent: Optional durable mirror written on every set
            clock: Returns the current time in epoch seconds
            max_entries: Size that triggers a cleanup pass of expired entries
        """
        self.settings = settings or get_settings()
        self._persistent = persistent
        self._clock = clock
        self._max_entries = max_entries or self.settings.cache_max_entries
        self._default_ttl = self.settings.cache_ttl_seconds

        self._entries: Dict[str, CacheEntry] = {}
        self._inflight: Dict[str, asyncio.Future] = {}
        self._lock = asyncio.Lock()

        self._hits = 0
        self._misses = 0
        self._producer_calls = 0

    @property
    def persistent(self) -> Optional[DiskCache]:
        return self._persistent

    # ========== READ ==========

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """Get the live entry for a key, consulting the durable mirror on a memory miss."""
        try:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is not None:
                if not entry.is_expired(now):
                    self._hits += 1
                    logger.debug(f"Cache hit for {key}")
                    return entry
                del self._entries[key]

            if self._persistent is not None:
                entry = self._persistent.get_entry(key)
                if entry is not None:
                    self._entries[key] = entry
                    self._hits += 1
                    logger.debug(f"Disk cache hit for {key}")
                    return entry

            self._misses += 1
            logger.debug(f"Cache miss for {key}")
            return None
        except Exception as e:
            logger.warning(f"Cache get error for key {key}: {e}")
            return None

    def get(self, key: str) -> Any:
        """Return the cached value or None if missing or expired."""
        entry = self.get_entry(key)
        return None if entry is None else entry.value

    # ========== WRITE ==========

    def set(self, key: str, value: Any, ttl_seconds: Optional[float] = None) -> None:
        """Store a value. None values are never stored."""
        if value is None:
            return
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        try:
            entry = CacheEntry(key=key, value=value, written_at=self._clock(), ttl_seconds=ttl)
            self._entries[key] = entry
            if len(self._entries) > self._max_entries:
                self.cleanup()
            if self._persistent is not None:
                self._persistent.set(key, value, ttl=ttl, written_at=entry.written_at)
        except Exception as e:
            logger.warning(f"Cache set error for key {key}: {e}")

    def invalidate(self, key: str) -> None:
        """Remove a key from memory and from the durable mirror."""
        try:
            self._entries.pop(key, None)
            if self._persistent is not None:
                self._persistent.delete(key)
        except Exception as e:
            logger.warning(f"Cache invalidate error for key {key}: {e}")

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``."""
        return self.delete_pattern(f"{prefix}*")

    def delete_pattern(self, pattern: str, expired_only: bool = False) -> int:
        """Delete keys matching a glob pattern.

        Args:
            pattern: fnmatch-style pattern
            expired_only: Keep entries that are still within their TTL

        Returns:
            Number of distinct keys removed from memory or disk
        """
        deleted = set()
        try:
            now = self._clock()
            for key in list(self._entries):
                if not fnmatch.fnmatchcase(key, pattern):
                    continue
                if expired_only and not self._entries[key].is_expired(now):
                    continue
                del self._entries[key]
                deleted.add(key)
        except Exception as e:
            logger.warning(f"Cache delete_pattern error for {pattern}: {e}")

        disk_deleted = 0
        if self._persistent is not None:
            disk_deleted = self._persistent.delete_pattern(pattern, expired_only=expired_only)
        return max(len(deleted), disk_deleted)

    def cleanup(self) -> int:
        """Remove every expired in-memory entry.

        Returns:
            Number of entries removed
        """
        now = self._clock()
        expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.info(f"Cache cleanup removed {len(expired)} expired entries")
        return len(expired)

    def clear(self) -> None:
        """Drop every entry from memory and disk."""
        self._entries.clear()
        if self._persistent is not None:
            self._persistent.clear()

    # ========== DE-DUPLICATION ==========

    def is_inflight(self, key: str) -> bool:
        return key in self._inflight

    async def with_dedup(
        self,
        key: str,
        produce: Callable[[], Awaitable[Any]],
        ttl_seconds: Optional[float] = None,
        force_refresh: bool = False,
    ) -> Any:
        """Return the cached value for ``key`` or run ``produce`` at most once concurrently.

        Args:
            key: Cache key
            produce: Async callable producing the value
            ttl_seconds: TTL for the produced value
            force_refresh: Skip the cached value (an in-flight fetch is still joined)

        Returns:
            The cached or produced value

        Raises:
            Whatever ``produce`` raised, to the caller that ran it and every joiner
        """
        if not force_refresh:
            cached = self.get(key)
            if cached is not None:
                return cached

        async with self._lock:
            future = self._inflight.get(key)
            owner = future is None
            if owner:
                if not force_refresh:
                    cached = self.get(key)
                    if cached is not None:
                        return cached
                future = asyncio.get_running_loop().create_future()
                self._inflight[key] = future

        if not owner:
            logger.debug(f"Joining in-flight fetch for {key}")
            return await asyncio.shield(future)

        try:
            self._producer_calls += 1
            value = await produce()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unjoined failure is not reported as unhandled
            future.exception()
            raise
        else:
            self.set(key, value, ttl_seconds)
            future.set_result(value)
            return value
        finally:
            self._inflight.pop(key, None)

    # ========== STATS / LIFECYCLE ==========

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        stats: Dict[str, Any] = {
            "size": len(self._entries),
            "maxEntries": self._max_entries,
            "hits": self._hits,
            "misses": self._misses,
            "inflight": len(self._inflight),
            "producerCalls": self._producer_calls,
            "persistence": self._persistent is not None,
        }
        if self._persistent is not None:
            stats["disk"] = self._persistent.stats()
        return stats

    def close(self) -> None:
        """Close the durable mirror."""
        if self._persistent is not None:
            self._persistent.close()
