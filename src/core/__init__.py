"""Core module - models, constants and exceptions."""

from .models import EndpointSet, NormalizedAccountState, ReserveRate, DerivedHealthMetrics, Job
from .constants import WAD, RAY, HEALTH_FACTOR_INFINITE
from .exceptions import ProviderUnavailable, ReadError, RateLimitExceeded

__all__ = [
    "EndpointSet",
    "NormalizedAccountState",
    "ReserveRate",
    "DerivedHealthMetrics",
    "Job",
    "WAD",
    "RAY",
    "HEALTH_FACTOR_INFINITE",
    "ProviderUnavailable",
    "ReadError",
    "RateLimitExceeded",
]
