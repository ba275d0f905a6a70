"""Cache entry data model."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class CacheEntry:
    """A cached value and the window during which it may be served."""

    key: str
    value: Any
    written_at: float  # Epoch seconds
    ttl_seconds: float

    @property
    def expires_at(self) -> float:
        return self.written_at + self.ttl_seconds

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at

    def remaining(self, now: float) -> float:
        """Seconds until expiry (never negative)."""
        return max(0.0, self.expires_at - now)
