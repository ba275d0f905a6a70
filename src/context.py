"""Application context owning every long-lived component.

Built once from settings and passed to the ingress and the job processors.
``init()`` opens backends and starts workers; ``shutdown()`` tears them down
in reverse order.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from config.settings import Settings, get_settings
from src.analytics.health import HealthMetricsCalculator
from src.data.cache.cache_layer import CacheLayer
from src.data.cache.disk_cache import DiskCache
from src.data.clients.aave.reader import AaveReader
from src.data.pipeline import DataPipeline
from src.data.providers.resolver import EndpointResolver
from src.jobs.broker import JobBroker
from src.jobs.disk_broker import DiskBroker
from src.jobs.manager import QueueManager
from src.jobs.memory_broker import InMemoryBroker
from src.jobs.processors import register_default_processors
from src.ratelimit.limiter import RateLimiter
from src.ratelimit.store import DiskCounterStore, MemoryCounterStore

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Explicit wiring of the acquisition core."""

    settings: Settings
    resolver: EndpointResolver
    reader: AaveReader
    cache: CacheLayer
    limiter: RateLimiter
    broker: JobBroker
    queue: QueueManager
    pipeline: DataPipeline

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        resolver: Optional[EndpointResolver] = None,
        reader: Optional[AaveReader] = None,
        cache: Optional[CacheLayer] = None,
        limiter: Optional[RateLimiter] = None,
        broker: Optional[JobBroker] = None,
    ) -> "AppContext":
        """Build a context, using any component passed in place of the default."""
        settings = settings or get_settings()
        resolver = resolver or EndpointResolver(settings=settings)
        reader = reader or AaveReader(resolver, settings=settings)

        if cache is None:
            persistent = DiskCache(settings) if settings.cache_persistence else None
            cache = CacheLayer(settings, persistent=persistent)

        if limiter is None:
            store = DiskCounterStore(settings) if settings.cache_persistence else MemoryCounterStore()
            limiter = RateLimiter(store, settings=settings)

        if broker is None:
            broker = DiskBroker(settings) if settings.queue_backend == "disk" else InMemoryBroker()

        pipeline = DataPipeline(reader, cache, limiter, settings=settings, calculator=HealthMetricsCalculator())
        queue = QueueManager(broker, cache=cache, settings=settings)
        register_default_processors(queue, pipeline, cache, settings)

        return cls(
            settings=settings,
            resolver=resolver,
            reader=reader,
            cache=cache,
            limiter=limiter,
            broker=broker,
            queue=queue,
            pipeline=pipeline,
        )

    async def init(self, start_workers: bool = True) -> None:
        """Start the queue workers and the recurring scheduler."""
        logger.info(
            f"Initializing context: networks={self.resolver.supported_networks()} "
            f"strategy={self.resolver.strategy.value} queue={self.settings.queue_backend}"
        )
        if start_workers:
            await self.queue.start()

    async def shutdown(self) -> None:
        """Stop workers, then close the pipeline, resolver and limiter."""
        await self.queue.shutdown()
        await self.pipeline.close()
        await self.resolver.close()
        self.limiter.close()
        logger.info("Context shut down")
