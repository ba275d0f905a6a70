"""Health snapshot refresh jobs."""

import logging
import time
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

from config.settings import Settings, get_settings
from src.core.exceptions import ReadError
from src.core.models import Job
from src.data.pipeline import DataPipeline
from src.jobs.processors.base import JobProcessor
from src.jobs.queues import JOB_BULK_UPDATE_HEALTH, JOB_UPDATE_USER_HEALTH, QUEUE_HEALTH

if TYPE_CHECKING:
    from src.jobs.manager import QueueManager

logger = logging.getLogger(__name__)

# Spacing between fanned-out per-user jobs
BULK_HEALTH_DELAY_MS = 1000

ActiveUsersProvider = Callable[[], List[Tuple[str, int]]]


def _timestamp_ms(clock: Callable[[], float]) -> int:
    return int(clock() * 1000)


class HealthUpdateProcessor(JobProcessor):
    """Refreshes the health snapshot of one user on one network.

    Payload: ``{userAddress, networkId, forceUpdate}``. When the read fails
    and a snapshot is still cached, the job succeeds with the cached snapshot
    marked ``fromCache``; otherwise the failure is raised for retry.
    """

    def __init__(self, pipeline: DataPipeline, clock: Callable[[], float] = time.time):
        self.pipeline = pipeline
        self._clock = clock

    @property
    def name(self) -> str:
        return JOB_UPDATE_USER_HEALTH

    async def process(self, job: Job) -> Dict[str, Any]:
        address = job.payload["userAddress"]
        network_id = int(job.payload["networkId"])
        force = bool(job.payload.get("forceUpdate", False))

        try:
            snapshot, from_cache = await self.pipeline.get_health_snapshot(
                address, network_id, force_refresh=force
            )
        except ReadError as e:
            cached = self.pipeline.cached_health(address, network_id)
            if cached is None:
                raise
            logger.warning(f"Health update for {address} on {network_id} failed, serving cached snapshot: {e}")
            return {
                "success": True,
                "fromCache": True,
                "data": cached,
                "error": str(e),
                "timestamp": _timestamp_ms(self._clock),
            }

        logger.info(f"Updated health for {address} on network {network_id}")
        return {
            "success": True,
            "fromCache": from_cache,
            "data": snapshot,
            "timestamp": _timestamp_ms(self._clock),
        }


class BulkHealthUpdateProcessor(JobProcessor):
    """Fans out one health update job per tracked user, spaced apart."""

    def __init__(
        self,
        manager: "QueueManager",
        settings: Optional[Settings] = None,
        active_users: Optional[ActiveUsersProvider] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the bulk processor.

        Args:
            manager: Queue manager used to enqueue per-user jobs
            settings: Application settings
            active_users: Returns (address, network id) pairs to refresh;
                defaults to the configured wallets on the tracked networks
            clock: Returns the current time in epoch seconds
        """
        self.manager = manager
        self.settings = settings or get_settings()
        self._active_users = active_users or self._configured_users
        self._clock = clock

    @property
    def name(self) -> str:
        return JOB_BULK_UPDATE_HEALTH

    def _configured_users(self) -> List[Tuple[str, int]]:
        return [
            (address, network_id)
            for network_id in self.settings.tracked_networks
            for address in self.settings.wallet_addresses
        ]

    async def process(self, job: Job) -> Dict[str, Any]:
        network_filter = job.payload.get("networkId")
        users = self._active_users()
        if network_filter is not None:
            users = [(address, network_id) for address, network_id in users if network_id == int(network_filter)]

        results = []
        for i, (address, network_id) in enumerate(users):
            try:
                queued = await self.manager.enqueue(
                    QUEUE_HEALTH,
                    JOB_UPDATE_USER_HEALTH,
                    {"userAddress": address, "networkId": network_id, "forceUpdate": True},
                    delay_ms=i * BULK_HEALTH_DELAY_MS,
                )
                results.append({"userAddress": address, "networkId": network_id, "jobId": queued.id})
            except Exception as e:
                logger.error(f"Failed to queue health update for {address} on {network_id}: {e}")
                results.append({"userAddress": address, "networkId": network_id, "error": str(e)})

        logger.info(f"Queued health updates for {len(users)} users")
        return {
            "success": True,
            "processed": len(users),
            "results": results,
            "timestamp": _timestamp_ms(self._clock),
        }
