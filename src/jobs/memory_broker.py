"""In-memory job broker for tests and single-process runs."""

import itertools
import threading
import time
from contextlib import AbstractContextManager
from typing import Callable, Dict, Iterable, List, Optional

from src.core.models import Job, RecurringSchedule
from src.jobs.broker import StoreBackedBroker


class InMemoryBroker(StoreBackedBroker):
    """Keeps jobs and schedules in process memory. Nothing survives a restart."""

    def __init__(self, clock: Callable[[], float] = time.time):
        super().__init__(clock=clock)
        self._job_store: Dict[str, Job] = {}
        self._schedule_store: Dict[str, RecurringSchedule] = {}
        self._sequence = itertools.count(1)
        self._lock = threading.RLock()

    def _transaction(self) -> AbstractContextManager:
        return self._lock

    def _load(self, job_id: str) -> Optional[Job]:
        return self._job_store.get(job_id)

    def _store(self, job: Job) -> None:
        self._job_store[job.id] = job

    def _discard(self, job_id: str) -> None:
        self._job_store.pop(job_id, None)

    def _jobs_of(self, queue_name: str) -> List[Job]:
        return [job for job in self._job_store.values() if job.queue_name == queue_name]

    def _next_sequence(self) -> int:
        return next(self._sequence)

    def _load_schedule(self, schedule_id: str) -> Optional[RecurringSchedule]:
        return self._schedule_store.get(schedule_id)

    def _store_schedule(self, schedule: RecurringSchedule) -> None:
        self._schedule_store[schedule.id] = schedule

    def _discard_schedule(self, schedule_id: str) -> bool:
        return self._schedule_store.pop(schedule_id, None) is not None

    def _schedules(self) -> Iterable[RecurringSchedule]:
        return list(self._schedule_store.values())
