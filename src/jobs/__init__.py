"""Durable job queue with recurring schedules and retry with backoff."""

from .broker import JobBroker, StoreBackedBroker
from .disk_broker import DiskBroker
from .manager import QueueManager
from .memory_broker import InMemoryBroker
from .queues import (
    QUEUE_CLEANUP,
    QUEUE_HEALTH,
    QUEUE_MARKET,
    QUEUE_CONFIGS,
    RECURRING_JOBS,
)
from .worker import QueueWorker

__all__ = [
    "JobBroker",
    "StoreBackedBroker",
    "DiskBroker",
    "InMemoryBroker",
    "QueueManager",
    "QueueWorker",
    "QUEUE_CLEANUP",
    "QUEUE_HEALTH",
    "QUEUE_MARKET",
    "QUEUE_CONFIGS",
    "RECURRING_JOBS",
]
