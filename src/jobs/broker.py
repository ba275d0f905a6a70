"""Generic job broker interface and the state machine shared by its implementations.

Delivery is at-least-once: an active job whose lease expires (worker crash)
becomes waiting again and is re-delivered, so processors must be idempotent.
"""

import logging
import time
from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from src.core.exceptions import JobNotFound
from src.core.models import Job, JobState, QueueStats, RecurringSchedule
from src.jobs.schedule import next_fire_time, parse_cron

logger = logging.getLogger(__name__)

T = TypeVar("T")


class JobBroker(ABC):
    """Durable per-queue work broker."""

    @abstractmethod
    async def enqueue(self, job: Job) -> Job:
        """Add a job. Enqueueing an id that is still pending returns the existing job."""
        ...

    @abstractmethod
    async def lease_next(self, queue_name: str, lease_seconds: float) -> Optional[Job]:
        """Move the next due job of a queue to active and return it."""
        ...

    @abstractmethod
    async def ack(self, job_id: str, result: Any = None) -> Job:
        """Mark an active job completed."""
        ...

    @abstractmethod
    async def retry_with_backoff(self, job_id: str, error: str) -> Job:
        """Schedule a failed job for retry, or mark it failed once attempts are exhausted."""
        ...

    @abstractmethod
    async def register_recurring(self, schedule: RecurringSchedule) -> bool:
        """Register a recurring schedule under its fixed id.

        Returns:
            True if the schedule was created, False if it already existed
        """
        ...

    @abstractmethod
    async def claim_due_recurring(self, now: Optional[float] = None) -> List[Tuple[RecurringSchedule, float]]:
        """Advance every due schedule and return (schedule, fire time) pairs."""
        ...

    @abstractmethod
    async def list_recurring(self) -> List[RecurringSchedule]:
        ...

    @abstractmethod
    async def remove_recurring(self, schedule_id: str) -> bool:
        ...

    @abstractmethod
    async def remove(self, job_id: str) -> bool:
        """Remove a job that has not started. Active and finished jobs are kept."""
        ...

    @abstractmethod
    async def get_job(self, job_id: str) -> Optional[Job]:
        ...

    @abstractmethod
    async def get_stats(self, queue_name: str) -> QueueStats:
        ...

    @abstractmethod
    async def trim(self, queue_name: str, keep_completed: int, keep_failed: int) -> int:
        """Drop the oldest finished jobs beyond the retention counts."""
        ...

    @abstractmethod
    async def clean(self, queue_name: str, older_than_seconds: float) -> int:
        """Drop finished jobs that finished more than ``older_than_seconds`` ago."""
        ...

    async def close(self) -> None:
        pass


class StoreBackedBroker(JobBroker):
    """Implements broker transitions on top of a small set of storage primitives.

    Every operation is a synchronous body run through ``_execute``; storage
    that blocks overrides it to run bodies off the event loop.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock

    async def _execute(self, fn: Callable[..., T], *args: Any) -> T:
        return fn(*args)

    # ========== STORAGE PRIMITIVES ==========

    @abstractmethod
    def _transaction(self) -> AbstractContextManager:
        ...

    @abstractmethod
    def _load(self, job_id: str) -> Optional[Job]:
        ...

    @abstractmethod
    def _store(self, job: Job) -> None:
        ...

    @abstractmethod
    def _discard(self, job_id: str) -> None:
        ...

    @abstractmethod
    def _jobs_of(self, queue_name: str) -> List[Job]:
        """Every job of one queue, in any state."""
        ...

    @abstractmethod
    def _next_sequence(self) -> int:
        ...

    @abstractmethod
    def _load_schedule(self, schedule_id: str) -> Optional[RecurringSchedule]:
        ...

    @abstractmethod
    def _store_schedule(self, schedule: RecurringSchedule) -> None:
        ...

    @abstractmethod
    def _discard_schedule(self, schedule_id: str) -> bool:
        ...

    @abstractmethod
    def _schedules(self) -> Iterable[RecurringSchedule]:
        ...

    def _require(self, job_id: str) -> Job:
        job = self._load(job_id)
        if job is None:
            raise JobNotFound(job_id)
        return job

    # ========== JOBS ==========

    async def enqueue(self, job: Job) -> Job:
        return await self._execute(self._enqueue, job)

    def _enqueue(self, job: Job) -> Job:
        with self._transaction():
            existing = self._load(job.id)
            if existing is not None:
                if not existing.is_finished:
                    logger.debug(f"Job {job.id} already queued on {job.queue_name}")
                    return existing.copy()
                self._discard(existing.id)

            now = self._clock()
            job = job.copy(
                created_at=now,
                run_at=now + job.delay_ms / 1000,
                state=JobState.DELAYED if job.delay_ms > 0 else JobState.WAITING,
                sequence=self._next_sequence(),
                attempts_made=0,
                lease_expires_at=None,
                finished_at=None,
                result=None,
                failed_reason=None,
            )
            self._store(job)
            return job.copy()

    async def lease_next(self, queue_name: str, lease_seconds: float) -> Optional[Job]:
        return await self._execute(self._lease_next, queue_name, lease_seconds)

    def _lease_next(self, queue_name: str, lease_seconds: float) -> Optional[Job]:
        with self._transaction():
            now = self._clock()
            candidates = []
            for job in self._jobs_of(queue_name):
                if job.state == JobState.DELAYED and job.run_at <= now:
                    job.state = JobState.WAITING
                    self._store(job)
                elif job.state == JobState.ACTIVE and job.lease_expires_at is not None and job.lease_expires_at <= now:
                    self._release_expired(job, now)
                if job.state == JobState.WAITING:
                    candidates.append(job)

            if not candidates:
                return None

            job = min(candidates, key=lambda j: (j.priority, j.run_at, j.sequence))
            job.state = JobState.ACTIVE
            job.attempts_made += 1
            job.lease_expires_at = now + lease_seconds
            self._store(job)
            return job.copy()

    def _release_expired(self, job: Job, now: float) -> None:
        """Return a job whose worker vanished to waiting, or fail it when out of attempts."""
        job.lease_expires_at = None
        if job.attempts_made >= job.max_attempts:
            job.state = JobState.FAILED
            job.finished_at = now
            job.failed_reason = "lease expired"
            logger.error(f"Job {job.id} ({job.job_name}) failed: lease expired after {job.attempts_made} attempts")
        else:
            job.state = JobState.WAITING
            logger.warning(f"Job {job.id} ({job.job_name}) lease expired, re-queueing")
        self._store(job)

    async def ack(self, job_id: str, result: Any = None) -> Job:
        return await self._execute(self._ack, job_id, result)

    def _ack(self, job_id: str, result: Any) -> Job:
        with self._transaction():
            job = self._require(job_id)
            job.state = JobState.COMPLETED
            job.result = result
            job.finished_at = self._clock()
            job.lease_expires_at = None
            self._store(job)
            return job.copy()

    async def retry_with_backoff(self, job_id: str, error: str) -> Job:
        return await self._execute(self._retry_with_backoff, job_id, error)

    def _retry_with_backoff(self, job_id: str, error: str) -> Job:
        with self._transaction():
            job = self._require(job_id)
            now = self._clock()
            job.failed_reason = error
            job.lease_expires_at = None
            if job.attempts_made >= job.max_attempts:
                job.state = JobState.FAILED
                job.finished_at = now
            else:
                job.state = JobState.DELAYED
                job.run_at = now + job.backoff.delay_for(job.attempts_made) / 1000
            self._store(job)
            return job.copy()

    async def remove(self, job_id: str) -> bool:
        return await self._execute(self._remove, job_id)

    def _remove(self, job_id: str) -> bool:
        with self._transaction():
            job = self._load(job_id)
            if job is None or job.state not in (JobState.WAITING, JobState.DELAYED):
                return False
            self._discard(job_id)
            return True

    async def get_job(self, job_id: str) -> Optional[Job]:
        return await self._execute(self._get_job, job_id)

    def _get_job(self, job_id: str) -> Optional[Job]:
        job = self._load(job_id)
        return None if job is None else job.copy()

    async def get_stats(self, queue_name: str) -> QueueStats:
        return await self._execute(self._get_stats, queue_name)

    def _get_stats(self, queue_name: str) -> QueueStats:
        counts: Dict[JobState, int] = {state: 0 for state in JobState}
        for job in self._jobs_of(queue_name):
            counts[job.state] += 1
        return QueueStats(
            queue_name=queue_name,
            waiting=counts[JobState.WAITING],
            delayed=counts[JobState.DELAYED],
            active=counts[JobState.ACTIVE],
            completed=counts[JobState.COMPLETED],
            failed=counts[JobState.FAILED],
        )

    async def trim(self, queue_name: str, keep_completed: int, keep_failed: int) -> int:
        return await self._execute(self._trim, queue_name, keep_completed, keep_failed)

    def _trim(self, queue_name: str, keep_completed: int, keep_failed: int) -> int:
        removed = 0
        with self._transaction():
            jobs = self._jobs_of(queue_name)
            for state, keep in ((JobState.COMPLETED, keep_completed), (JobState.FAILED, keep_failed)):
                finished = sorted(
                    (job for job in jobs if job.state == state),
                    key=lambda j: (j.finished_at or 0.0, j.sequence),
                    reverse=True,
                )
                for job in finished[keep:]:
                    self._discard(job.id)
                    removed += 1
        return removed

    async def clean(self, queue_name: str, older_than_seconds: float) -> int:
        return await self._execute(self._clean, queue_name, older_than_seconds)

    def _clean(self, queue_name: str, older_than_seconds: float) -> int:
        removed = 0
        with self._transaction():
            cutoff = self._clock() - older_than_seconds
            for job in self._jobs_of(queue_name):
                if job.is_finished and (job.finished_at or 0.0) < cutoff:
                    self._discard(job.id)
                    removed += 1
        return removed

    # ========== RECURRING ==========

    async def register_recurring(self, schedule: RecurringSchedule) -> bool:
        parse_cron(schedule.cron)
        return await self._execute(self._register_recurring, schedule)

    def _register_recurring(self, schedule: RecurringSchedule) -> bool:
        with self._transaction():
            existing = self._load_schedule(schedule.id)
            if existing is not None and existing.cron == schedule.cron and existing.payload == schedule.payload:
                return False
            schedule.next_run_at = next_fire_time(schedule.cron, self._clock())
            self._store_schedule(schedule)
            if existing is None:
                logger.info(f"Registered recurring job {schedule.id} ({schedule.cron})")
                return True
            logger.info(f"Updated recurring job {schedule.id} ({schedule.cron})")
            return False

    async def claim_due_recurring(self, now: Optional[float] = None) -> List[Tuple[RecurringSchedule, float]]:
        return await self._execute(self._claim_due_recurring, now)

    def _claim_due_recurring(self, now: Optional[float]) -> List[Tuple[RecurringSchedule, float]]:
        due = []
        with self._transaction():
            now = self._clock() if now is None else now
            for schedule in self._schedules():
                if schedule.next_run_at > now:
                    continue
                fire_time = schedule.next_run_at
                schedule.next_run_at = next_fire_time(schedule.cron, now)
                self._store_schedule(schedule)
                due.append((schedule, fire_time))
        return due

    async def list_recurring(self) -> List[RecurringSchedule]:
        return await self._execute(self._list_recurring)

    def _list_recurring(self) -> List[RecurringSchedule]:
        return sorted(self._schedules(), key=lambda s: s.id)

    async def remove_recurring(self, schedule_id: str) -> bool:
        return await self._execute(self._remove_recurring, schedule_id)

    def _remove_recurring(self, schedule_id: str) -> bool:
        with self._transaction():
            return self._discard_schedule(schedule_id)
