"""Market data refresh jobs."""

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, List

from src.core.constants import BULK_MARKET_NETWORKS
from src.core.exceptions import ReadError
from src.core.models import Job
from src.data.pipeline import MARKET_DATA_TYPES, DataPipeline
from src.jobs.processors.base import JobProcessor
from src.jobs.queues import JOB_BULK_UPDATE_MARKET_DATA, JOB_UPDATE_MARKET_DATA, QUEUE_MARKET

if TYPE_CHECKING:
    from src.jobs.manager import QueueManager

logger = logging.getLogger(__name__)

BULK_MARKET_DELAY_MS = 2000
DATA_TYPE_ALL = "all"


class MarketDataProcessor(JobProcessor):
    """Refreshes cached stablecoin market data for one network.

    Payload: ``{networkId, dataType, forceUpdate}`` where dataType is one of
    apys, rates, reserves or all. Each type falls back to its cached value
    independently when the read fails.
    """

    def __init__(self, pipeline: DataPipeline, clock: Callable[[], float] = time.time):
        self.pipeline = pipeline
        self._clock = clock

    @property
    def name(self) -> str:
        return JOB_UPDATE_MARKET_DATA

    async def process(self, job: Job) -> Dict[str, Any]:
        network_id = int(job.payload["networkId"])
        data_type = job.payload.get("dataType", DATA_TYPE_ALL)
        force = bool(job.payload.get("forceUpdate", False))

        if data_type == DATA_TYPE_ALL:
            data_types = list(MARKET_DATA_TYPES)
        elif data_type in MARKET_DATA_TYPES:
            data_types = [data_type]
        else:
            raise ValueError(f"Unknown market data type: {data_type}")

        # One reserve read serves every requested type
        loader = self.pipeline.rates_loader(network_id)
        results: Dict[str, Any] = {}
        for current in data_types:
            results[current] = await self._refresh(network_id, current, force, loader)

        logger.info(f"Updated market data ({data_type}) for network {network_id}")
        return {
            "success": True,
            "networkId": network_id,
            "dataType": data_type,
            "results": results,
            "timestamp": int(self._clock() * 1000),
        }

    async def _refresh(self, network_id: int, data_type: str, force: bool, loader: Any) -> Dict[str, Any]:
        try:
            data, from_cache = await self.pipeline.get_market_data(
                network_id, data_type, force_refresh=force, rates_loader=loader
            )
            return {"fromCache": from_cache, "count": len(data), "data": data}
        except ReadError as e:
            cached = self.pipeline.cached_market(network_id, data_type)
            if cached is None:
                raise
            logger.warning(f"Market {data_type} refresh failed on {network_id}, keeping cached data: {e}")
            return {"fromCache": True, "count": len(cached), "data": cached, "error": str(e)}


class BulkMarketDataProcessor(JobProcessor):
    """Fans out one market data job per supported network."""

    def __init__(
        self,
        manager: "QueueManager",
        networks: List[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.manager = manager
        self.networks = list(networks or BULK_MARKET_NETWORKS)
        self._clock = clock

    @property
    def name(self) -> str:
        return JOB_BULK_UPDATE_MARKET_DATA

    async def process(self, job: Job) -> Dict[str, Any]:
        data_type = job.payload.get("dataType", DATA_TYPE_ALL)
        force = bool(job.payload.get("forceUpdate", True))

        results = []
        for i, network_id in enumerate(self.networks):
            try:
                queued = await self.manager.enqueue(
                    QUEUE_MARKET,
                    JOB_UPDATE_MARKET_DATA,
                    {"networkId": network_id, "dataType": data_type, "forceUpdate": force},
                    delay_ms=i * BULK_MARKET_DELAY_MS,
                )
                results.append({"networkId": network_id, "jobId": queued.id})
            except Exception as e:
                logger.error(f"Failed to queue market update for network {network_id}: {e}")
                results.append({"networkId": network_id, "error": str(e)})

        logger.info(f"Queued market data updates for {len(self.networks)} networks")
        return {
            "success": True,
            "processed": len(self.networks),
            "results": results,
            "timestamp": int(self._clock() * 1000),
        }
