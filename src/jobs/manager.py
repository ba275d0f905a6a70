"""Queue manager: enqueue API, recurring schedules and worker lifecycle."""

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from config.settings import Settings, get_settings
from src.core.models import Job, QueueStats, RecurringSchedule
from src.data.cache.cache_layer import CacheLayer
from src.data.cache.keys import CacheKeys
from src.jobs.broker import JobBroker
from src.jobs.processors.base import JobProcessor
from src.jobs.queues import ALL_QUEUES, RECURRING_JOBS, get_queue_config
from src.jobs.worker import QueueWorker

logger = logging.getLogger(__name__)


def recurring_id(queue_name: str, job_name: str) -> str:
    return f"recurring:{queue_name}:{job_name}"


class QueueManager:
    """Front door to the job broker.

    Holds one worker per queue with registered processors and a scheduler
    loop that turns due recurring schedules into jobs.
    """

    def __init__(
        self,
        broker: JobBroker,
        cache: Optional[CacheLayer] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.broker = broker
        self.cache = cache
        self.settings = settings or get_settings()
        self._clock = clock

        self._processors: Dict[str, Dict[str, JobProcessor]] = {}
        self._workers: Dict[str, QueueWorker] = {}
        self._tasks: List[asyncio.Task] = []
        self._running = False

    # ========== REGISTRATION ==========

    def register_processor(self, queue_name: str, processor: JobProcessor) -> None:
        self._processors.setdefault(queue_name, {})[processor.name] = processor
        logger.debug(f"Registered processor {processor.name} on {queue_name}")

    def get_worker(self, queue_name: str) -> QueueWorker:
        """Get or create the worker of a queue."""
        if queue_name not in self._workers:
            self._workers[queue_name] = QueueWorker(
                self.broker,
                queue_name,
                get_queue_config(queue_name),
                self._processors.setdefault(queue_name, {}),
                lease_seconds=self.settings.queue_lease_seconds,
                poll_interval=self.settings.queue_poll_interval,
                cache=self.cache,
            )
        return self._workers[queue_name]

    # ========== ENQUEUE ==========

    async def enqueue(
        self,
        queue_name: str,
        job_name: str,
        payload: Optional[Dict[str, Any]] = None,
        delay_ms: int = 0,
        priority: int = 0,
        job_id: Optional[str] = None,
        attempts: Optional[int] = None,
    ) -> Job:
        """Add a job to a queue.

        Args:
            queue_name: Target queue
            job_name: Selects the processor
            payload: JSON-serializable job data
            delay_ms: Delay before the job becomes runnable
            priority: Lower values run first
            job_id: Fixed id; enqueueing a pending id again is a no-op
            attempts: Overrides the queue's attempt count

        Returns:
            The stored job
        """
        config = get_queue_config(queue_name)
        job = Job(
            id=job_id or uuid.uuid4().hex,
            queue_name=queue_name,
            job_name=job_name,
            payload=dict(payload or {}),
            priority=priority,
            delay_ms=max(0, int(delay_ms)),
            max_attempts=attempts or config.attempts,
            backoff=config.backoff,
        )
        job = await self.broker.enqueue(job)
        logger.debug(f"Queued {job_name} as {job.id} on {queue_name}")
        return job

    async def enqueue_recurring(
        self,
        queue_name: str,
        job_name: str,
        cron: str,
        payload: Optional[Dict[str, Any]] = None,
        priority: int = 0,
    ) -> bool:
        """Register a recurring job under a fixed id. Returns True if newly created."""
        schedule = RecurringSchedule(
            id=recurring_id(queue_name, job_name),
            queue_name=queue_name,
            job_name=job_name,
            cron=cron,
            payload=dict(payload or {}),
            priority=priority,
        )
        return await self.broker.register_recurring(schedule)

    async def register_default_recurring(self) -> int:
        """Register the built-in recurring jobs. Returns how many were new."""
        created = 0
        for entry in RECURRING_JOBS:
            if await self.enqueue_recurring(
                entry["queue"], entry["name"], entry["cron"], entry["payload"], entry["priority"]
            ):
                created += 1
        logger.info(f"Recurring jobs registered ({created} new)")
        return created

    async def fire_due_recurring(self, now: Optional[float] = None) -> List[Job]:
        """Enqueue one job for every due recurring schedule."""
        jobs = []
        for schedule, fire_time in await self.broker.claim_due_recurring(now):
            job = await self.enqueue(
                schedule.queue_name,
                schedule.job_name,
                schedule.payload,
                priority=schedule.priority,
                job_id=f"{schedule.id}:{int(fire_time)}",
            )
            jobs.append(job)
        return jobs

    # ========== INSPECTION ==========

    async def remove_job(self, job_id: str) -> bool:
        """Remove a job that has not started yet."""
        return await self.broker.remove(job_id)

    async def get_job_status(self, job_id: str) -> Optional[Dict[str, Any]]:
        """Job summary from the broker, or the last cached status once trimmed."""
        job = await self.broker.get_job(job_id)
        if job is not None:
            return job.to_dict()
        if self.cache is not None:
            return self.cache.get(CacheKeys.job_status(job_id))
        return None

    async def get_stats(self, queue_name: str) -> QueueStats:
        return await self.broker.get_stats(queue_name)

    async def get_all_stats(self) -> List[QueueStats]:
        return [await self.broker.get_stats(queue_name) for queue_name in ALL_QUEUES]

    # ========== LIFECYCLE ==========

    async def start(self) -> None:
        """Start a worker per queue with processors, plus the recurring scheduler."""
        if self._running:
            return
        self._running = True
        if self.settings.queue_register_recurring:
            await self.register_default_recurring()

        for queue_name, processors in self._processors.items():
            if processors:
                worker = self.get_worker(queue_name)
                self._tasks.append(asyncio.create_task(worker.run()))
        self._tasks.append(asyncio.create_task(self._scheduler_loop()))
        logger.info(f"Queue manager started with {len(self._workers)} workers")

    async def _scheduler_loop(self) -> None:
        while self._running:
            try:
                await self.fire_due_recurring()
            except Exception as e:
                logger.error(f"Recurring scheduler error: {e}")
            await asyncio.sleep(self.settings.queue_poll_interval)

    async def shutdown(self, timeout: float = 10.0) -> None:
        """Stop polling, let running jobs finish, then close the broker."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        await asyncio.gather(*(worker.stop(timeout) for worker in self._workers.values()))
        await self.broker.close()
        logger.info("Queue manager shut down")
