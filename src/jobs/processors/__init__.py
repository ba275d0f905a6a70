"""Job processors for the Aave queues."""

from typing import TYPE_CHECKING, Optional

from config.settings import Settings
from src.data.cache.cache_layer import CacheLayer
from src.data.pipeline import DataPipeline

from .base import JobProcessor
from .cleanup import CacheCleanupProcessor, OldJobsCleanupProcessor
from .health import BulkHealthUpdateProcessor, HealthUpdateProcessor
from .market import BulkMarketDataProcessor, MarketDataProcessor
from ..queues import QUEUE_CLEANUP, QUEUE_HEALTH, QUEUE_MARKET

if TYPE_CHECKING:
    from src.jobs.manager import QueueManager


def register_default_processors(
    manager: "QueueManager",
    pipeline: DataPipeline,
    cache: CacheLayer,
    settings: Optional[Settings] = None,
) -> None:
    """Register every built-in processor on its queue."""
    manager.register_processor(QUEUE_HEALTH, HealthUpdateProcessor(pipeline))
    manager.register_processor(QUEUE_HEALTH, BulkHealthUpdateProcessor(manager, settings=settings))
    manager.register_processor(QUEUE_MARKET, MarketDataProcessor(pipeline))
    manager.register_processor(QUEUE_MARKET, BulkMarketDataProcessor(manager))
    manager.register_processor(QUEUE_CLEANUP, CacheCleanupProcessor(cache))
    manager.register_processor(QUEUE_CLEANUP, OldJobsCleanupProcessor(manager))


__all__ = [
    "JobProcessor",
    "HealthUpdateProcessor",
    "BulkHealthUpdateProcessor",
    "MarketDataProcessor",
    "BulkMarketDataProcessor",
    "CacheCleanupProcessor",
    "OldJobsCleanupProcessor",
    "register_default_processors",
]
