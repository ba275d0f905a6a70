"""Ingress rate limiting."""

from src.ratelimit.limiter import RateLimiter
from src.ratelimit.store import CounterStore, DiskCounterStore, MemoryCounterStore

__all__ = ["RateLimiter", "CounterStore", "DiskCounterStore", "MemoryCounterStore"]
