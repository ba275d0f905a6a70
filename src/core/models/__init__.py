"""Core data models for the Aave state acquisition core."""

from .endpoint import AaveContracts, ClientHandle, EndpointSet, FallbackStrategy
from .account import AccountStateResult, Freshness, NormalizedAccountState, ReservePosition
from .reserve import ReserveRate
from .health import DerivedHealthMetrics, HealthSnapshot, LiquidationRisk
from .job import (
    BackoffPolicy,
    BackoffType,
    Job,
    JobOptions,
    JobState,
    QueueConfig,
    QueueStats,
    RecurringSchedule,
)
from .rate_limit import RateLimitResult
from .cache import CacheEntry

__all__ = [
    "AaveContracts",
    "ClientHandle",
    "EndpointSet",
    "FallbackStrategy",
    "AccountStateResult",
    "Freshness",
    "NormalizedAccountState",
    "ReservePosition",
    "ReserveRate",
    "DerivedHealthMetrics",
    "HealthSnapshot",
    "LiquidationRisk",
    "BackoffPolicy",
    "BackoffType",
    "Job",
    "JobOptions",
    "JobState",
    "QueueConfig",
    "QueueStats",
    "RecurringSchedule",
    "RateLimitResult",
    "CacheEntry",
]
