"""Counter backends for the rate limiter.

A store atomically increments a counter and attaches the window expiry on
the first increment only, like Redis INCR followed by EXPIRE.
"""

import math
import threading
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional, Tuple

import diskcache

from config.settings import Settings, get_settings


class CounterStore(ABC):
    """Atomic windowed counter backend."""

    @abstractmethod
    def increment(self, key: str, window_seconds: int) -> Tuple[int, int]:
        """
        Increment a counter.

        Args:
            key: Counter key
            window_seconds: Expiry attached when the counter is created

        Returns:
            Tuple of (count after increment, whole seconds until the window resets)
        """
        ...

    @abstractmethod
    def reset(self, key: str) -> None:
        """Delete a counter."""
        ...

    def close(self) -> None:
        pass


class MemoryCounterStore(CounterStore):
    """Process-local counters for tests and single-process deployments."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._counters: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def increment(self, key: str, window_seconds: int) -> Tuple[int, int]:
        with self._lock:
            now = self._clock()
            count, expires_at = self._counters.get(key, (0, 0.0))
            if count == 0 or now >= expires_at:
                count, expires_at = 0, now + window_seconds
            count += 1
            self._counters[key] = (count, expires_at)
            return count, math.ceil(expires_at - now)

    def reset(self, key: str) -> None:
        with self._lock:
            self._counters.pop(key, None)


class DiskCounterStore(CounterStore):
    """Counters shared by every process using the same cache directory."""

    def __init__(self, settings: Optional[Settings] = None, namespace: str = "ratelimit"):
        self.settings = settings or get_settings()
        self.namespace = namespace
        self._cache: Optional[diskcache.Cache] = None

    def _get_cache(self) -> diskcache.Cache:
        """Get or create the cache instance."""
        if self._cache is None:
            cache_dir = self.settings.ensure_cache_dir() / self.namespace
            cache_dir.mkdir(parents=True, exist_ok=True)
            self._cache = diskcache.Cache(str(cache_dir))
        return self._cache

    def increment(self, key: str, window_seconds: int) -> Tuple[int, int]:
        cache = self._get_cache()
        with cache.transact():
            count = cache.incr(key, 1, default=0)
            if count == 1:
                cache.touch(key, expire=window_seconds)
            _, expire_time = cache.get(key, expire_time=True)
        if expire_time is None:
            return count, -1
        return count, math.ceil(expire_time - time.time())

    def reset(self, key: str) -> None:
        self._get_cache().delete(key)

    def close(self) -> None:
        if self._cache:
            self._cache.close()
            self._cache = None
