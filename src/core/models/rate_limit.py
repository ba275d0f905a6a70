"""Rate limiter result model."""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of an allowed rate-limited request."""

    count: int
    remaining: int
    reset_in_seconds: int

    def to_headers(self, limit: int) -> Dict[str, Any]:
        return {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_in_seconds),
        }
