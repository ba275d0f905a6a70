"""SQLite-based disk cache with TTL support.

Durable mirror of the in-memory cache layer. Every entry is stored together
with its write time and TTL so a restarted process can serve recently
written values, and never values past their TTL.
"""

import fnmatch
import logging
import sqlite3
import time
from typing import Any, Callable, Dict, Optional

import diskcache

from config.settings import Settings, get_settings
from src.core.exceptions import CacheUnavailable
from src.core.models import CacheEntry

logger = logging.getLogger(__name__)


class DiskCache:
    """
    SQLite-based disk cache with TTL support.

    Uses diskcache for persistent storage. All errors are logged and degrade
    to a miss, never raised.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        namespace: str = "cache",
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or get_settings()
        self.namespace = namespace
        self._clock = clock
        self._cache: Optional[diskcache.Cache] = None

    def _get_cache(self) -> diskcache.Cache:
        """Get or create the cache instance.

        Raises:
            CacheUnavailable: If the cache directory cannot be opened
        """
        if self._cache is None:
            try:
                cache_dir = self.settings.ensure_cache_dir() / self.namespace
                cache_dir.mkdir(parents=True, exist_ok=True)
                self._cache = diskcache.Cache(str(cache_dir))
            except (OSError, sqlite3.Error, diskcache.Timeout) as e:
                raise CacheUnavailable(f"Cannot open disk cache {self.namespace}: {e}") from e
        return self._cache

    def _serialize(self, value: Any) -> Any:
        """Serialize a value for caching."""
        if hasattr(value, "to_dict"):
            return value.to_dict()
        elif isinstance(value, (list, tuple)):
            return [self._serialize(v) for v in value]
        elif isinstance(value, dict):
            return {k: self._serialize(v) for k, v in value.items()}
        return value

    def get_entry(self, key: str) -> Optional[CacheEntry]:
        """
        Get a non-stale entry from the cache.

        Args:
            key: Cache key

        Returns:
            CacheEntry or None if missing, stale or unreadable
        """
        try:
            cache = self._get_cache()
            envelope = cache.get(key)
            if envelope is None:
                return None
            entry = CacheEntry(
                key=key,
                value=envelope["value"],
                written_at=envelope["written_at"],
                ttl_seconds=envelope["ttl"],
            )
            if entry.is_expired(self._clock()):
                cache.delete(key)
                return None
            return entry
        except Exception as e:
            logger.warning(f"Cache get error for key {key}: {e}")
            return None

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a value from the cache.

        Args:
            key: Cache key
            default: Default value if not found or expired

        Returns:
            Cached value or default
        """
        entry = self.get_entry(key)
        return default if entry is None else entry.value

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[float] = None,
        written_at: Optional[float] = None,
    ) -> bool:
        """
        Set a value in the cache.

        Args:
            key: Cache key
            value: Value to cache
            ttl: Time-to-live in seconds (None = use default)
            written_at: Write time in epoch seconds (None = now)

        Returns:
            True if successful
        """
        if ttl is None:
            ttl = self.settings.cache_ttl_seconds

        try:
            cache = self._get_cache()
            envelope = {
                "value": self._serialize(value),
                "written_at": self._clock() if written_at is None else written_at,
                "ttl": ttl,
            }
            cache.set(key, envelope, expire=ttl)
            return True
        except Exception as e:
            logger.warning(f"Cache set error for key {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        """
        Delete a value from the cache.

        Args:
            key: Cache key

        Returns:
            True if key existed and was deleted
        """
        try:
            cache = self._get_cache()
            return cache.delete(key)
        except Exception as e:
            logger.warning(f"Cache delete error for key {key}: {e}")
            return False

    def delete_pattern(self, pattern: str, expired_only: bool = False) -> int:
        """
        Delete every key matching a glob pattern.

        Args:
            pattern: fnmatch-style pattern, e.g. ``aave:user:*:health``
            expired_only: Only delete entries past their TTL

        Returns:
            Number of keys deleted
        """
        try:
            cache = self._get_cache()
            now = self._clock()
            deleted = 0
            for key in list(cache.iterkeys()):
                if not isinstance(key, str) or not fnmatch.fnmatchcase(key, pattern):
                    continue
                if expired_only:
                    envelope = cache.get(key)
                    if envelope is not None and now < envelope["written_at"] + envelope["ttl"]:
                        continue
                if cache.delete(key):
                    deleted += 1
            return deleted
        except Exception as e:
            logger.warning(f"Cache delete_pattern error for {pattern}: {e}")
            return 0

    def expire(self) -> int:
        """Remove entries past their diskcache expiry."""
        try:
            return self._get_cache().expire()
        except Exception as e:
            logger.warning(f"Cache expire error: {e}")
            return 0

    def clear(self) -> int:
        """
        Clear all values from the cache.

        Returns:
            Number of items cleared
        """
        try:
            cache = self._get_cache()
            count = len(cache)
            cache.clear()
            return count
        except Exception as e:
            logger.warning(f"Cache clear error: {e}")
            return 0

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        try:
            cache = self._get_cache()
            return {
                "size": len(cache),
                "volume": cache.volume(),
                "directory": str(cache.directory),
            }
        except Exception as e:
            logger.warning(f"Cache stats error: {e}")
            return {}

    def close(self):
        """Close the cache connection."""
        if self._cache:
            self._cache.close()
            self._cache = None
