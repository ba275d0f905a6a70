"""Queue worker: leases jobs from a broker and runs them on their processors."""

import asyncio
import logging
from typing import Dict, Optional, Set

from src.core.models import Job, JobState, QueueConfig
from src.data.cache.cache_layer import CacheLayer
from src.data.cache.keys import CacheKeys
from src.jobs.broker import JobBroker
from src.jobs.processors.base import JobProcessor

logger = logging.getLogger(__name__)

JOB_STATUS_TTL_SECONDS = 3600


class QueueWorker:
    """Runs up to ``config.concurrency`` jobs of one queue at a time."""

    def __init__(
        self,
        broker: JobBroker,
        queue_name: str,
        config: QueueConfig,
        processors: Dict[str, JobProcessor],
        lease_seconds: float = 300,
        poll_interval: float = 0.5,
        cache: Optional[CacheLayer] = None,
    ):
        """Initialize the worker.

        Args:
            broker: Job broker to lease from
            queue_name: Queue this worker drains
            config: Concurrency, retry and retention settings of the queue
            processors: Processor per job name
            lease_seconds: Lease length before an unacknowledged job is re-delivered
            poll_interval: Sleep between polls of an empty queue
            cache: Optional cache receiving job status summaries
        """
        self.broker = broker
        self.queue_name = queue_name
        self.config = config
        self.processors = processors
        self.lease_seconds = lease_seconds
        self.poll_interval = poll_interval
        self.cache = cache

        self._slots = asyncio.Semaphore(config.concurrency)
        self._active: Set[asyncio.Task] = set()
        self._running = False

    @property
    def active_count(self) -> int:
        return len(self._active)

    async def run(self) -> None:
        """Poll the broker until stopped."""
        self._running = True
        logger.info(f"Worker started for {self.queue_name} (concurrency {self.config.concurrency})")
        while self._running:
            await self._slots.acquire()
            try:
                job = await self.broker.lease_next(self.queue_name, self.lease_seconds)
            except Exception as e:
                self._slots.release()
                logger.error(f"Failed to lease from {self.queue_name}: {e}")
                await asyncio.sleep(self.poll_interval)
                continue

            if job is None:
                self._slots.release()
                await asyncio.sleep(self.poll_interval)
                continue

            task = asyncio.create_task(self._run_job(job))
            self._active.add(task)
            task.add_done_callback(self._active.discard)

    async def run_once(self) -> Optional[Job]:
        """Lease and process a single job inline. Returns the finished job, if any."""
        await self._slots.acquire()
        job = await self.broker.lease_next(self.queue_name, self.lease_seconds)
        if job is None:
            self._slots.release()
            return None
        return await self._run_job(job)

    async def _run_job(self, job: Job) -> Job:
        try:
            return await self._process(job)
        finally:
            self._slots.release()

    async def _process(self, job: Job) -> Job:
        processor = self.processors.get(job.job_name)
        try:
            if processor is None:
                raise ValueError(f"No processor for job {job.job_name} on {self.queue_name}")
            result = await processor.process(job)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            finished = await self.broker.retry_with_backoff(job.id, error)
            if finished.state == JobState.FAILED:
                logger.error(
                    f"Job {job.id} ({job.job_name}) failed after {finished.attempts_made} attempts: {error}"
                )
            else:
                logger.warning(
                    f"Job {job.id} ({job.job_name}) attempt {finished.attempts_made} failed, retrying: {error}"
                )
        else:
            finished = await self.broker.ack(job.id, result)
            logger.debug(f"Job {job.id} ({job.job_name}) completed")

        await self._after_job(finished)
        return finished

    async def _after_job(self, job: Job) -> None:
        if self.cache is not None:
            self.cache.set(CacheKeys.job_status(job.id), job.to_dict(), JOB_STATUS_TTL_SECONDS)
        if job.is_finished:
            try:
                await self.broker.trim(self.queue_name, self.config.keep_completed, self.config.keep_failed)
            except Exception as e:
                logger.warning(f"Failed to trim {self.queue_name}: {e}")

    async def stop(self, timeout: Optional[float] = None) -> None:
        """Stop polling and wait for running jobs to settle."""
        self._running = False
        if not self._active:
            return
        done, pending = await asyncio.wait(set(self._active), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"Cancelled {len(pending)} running jobs on {self.queue_name}")
