"""Fixed-window request limiter guarding the ingress.

Fails closed: if the counter backend cannot be reached the request is
rejected as if the limit had been hit.
"""

import logging
from typing import Optional

from config.settings import Settings, get_settings
from src.core.exceptions import RateLimitExceeded
from src.core.models import RateLimitResult
from src.data.cache.keys import CacheKeys
from src.ratelimit.store import CounterStore, MemoryCounterStore

logger = logging.getLogger(__name__)


class RateLimiter:
    """Counts requests per {identifier, action} within a time window."""

    def __init__(self, store: Optional[CounterStore] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self._store = store or MemoryCounterStore()

    def consume(
        self,
        identifier: Optional[str],
        action: str = "general",
        limit: Optional[int] = None,
        window_seconds: Optional[int] = None,
    ) -> RateLimitResult:
        """
        Count one request and check it against the limit.

        Args:
            identifier: Caller identity (resolved upstream); "unknown" when missing
            action: Action being limited
            limit: Requests allowed per window
            window_seconds: Window length in seconds

        Returns:
            RateLimitResult with count, remaining and seconds until reset

        Raises:
            RateLimitExceeded: If the limit is exceeded or the backend is unreachable
        """
        limit = limit if limit is not None else self.settings.rate_limit_requests
        window = window_seconds if window_seconds is not None else self.settings.rate_limit_window_seconds
        key = CacheKeys.rate_limit(identifier or "unknown", action)

        try:
            count, ttl = self._store.increment(key, window)
        except Exception as e:
            logger.error(f"Rate limiter backend error for {key}, rejecting request: {e}")
            raise RateLimitExceeded(window, message="Rate limiter unavailable") from e

        reset_in = ttl if ttl > 0 else window
        if count > limit:
            logger.warning(f"Rate limit exceeded for {key}: {count}/{limit}, retry in {reset_in}s")
            raise RateLimitExceeded(reset_in)

        return RateLimitResult(count=count, remaining=max(0, limit - count), reset_in_seconds=reset_in)

    def reset(self, identifier: str, action: str = "general") -> None:
        """Clear the counter of one caller and action."""
        self._store.reset(CacheKeys.rate_limit(identifier, action))

    def close(self) -> None:
        self._store.close()
