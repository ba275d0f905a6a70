"""Persistent job broker on diskcache.

Jobs and schedules live in a SQLite-backed diskcache directory; every
transition runs inside ``Cache.transact()`` so several worker processes can
share one directory. A restarted process resumes waiting and delayed jobs,
and active jobs of a crashed worker are re-delivered once their lease expires.

SQLite I/O blocks, so every broker operation runs in a worker thread. Each
queue keeps an index of its job ids so a lease only loads that queue's jobs.
"""

import asyncio
import logging
import threading
import time
from contextlib import AbstractContextManager
from typing import Any, Callable, Iterable, List, Optional, Set

import diskcache

from config.settings import Settings, get_settings
from src.core.models import Job, RecurringSchedule
from src.jobs.broker import StoreBackedBroker, T

logger = logging.getLogger(__name__)

_JOB_PREFIX = "job:"
_INDEX_PREFIX = "index:"
_SCHEDULE_PREFIX = "schedule:"
_SEQUENCE_KEY = "sequence"


class DiskBroker(StoreBackedBroker):
    """Job broker persisted in a diskcache directory."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        namespace: str = "queue",
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(clock=clock)
        self.settings = settings or get_settings()
        self.namespace = namespace
        self._cache: Optional[diskcache.Cache] = None
        self._open_lock = threading.Lock()

    def _get_cache(self) -> diskcache.Cache:
        """Get or create the cache instance."""
        with self._open_lock:
            if self._cache is None:
                cache_dir = self.settings.ensure_cache_dir() / self.namespace
                cache_dir.mkdir(parents=True, exist_ok=True)
                self._cache = diskcache.Cache(str(cache_dir))
                logger.info(f"Opened job store at {cache_dir}")
            return self._cache

    async def _execute(self, fn: Callable[..., T], *args: Any) -> T:
        return await asyncio.to_thread(fn, *args)

    def _transaction(self) -> AbstractContextManager:
        return self._get_cache().transact()

    # ========== JOBS ==========

    def _index(self, queue_name: str) -> Set[str]:
        return self._get_cache().get(_INDEX_PREFIX + queue_name, set())

    def _load(self, job_id: str) -> Optional[Job]:
        return self._get_cache().get(_JOB_PREFIX + job_id)

    def _store(self, job: Job) -> None:
        cache = self._get_cache()
        key = _JOB_PREFIX + job.id
        if key not in cache:
            index = self._index(job.queue_name)
            index.add(job.id)
            cache.set(_INDEX_PREFIX + job.queue_name, index)
        cache.set(key, job)

    def _discard(self, job_id: str) -> None:
        job = self._load(job_id)
        if job is None:
            return
        cache = self._get_cache()
        index = self._index(job.queue_name)
        index.discard(job_id)
        cache.set(_INDEX_PREFIX + job.queue_name, index)
        cache.delete(_JOB_PREFIX + job_id)

    def _jobs_of(self, queue_name: str) -> List[Job]:
        jobs = []
        for job_id in self._index(queue_name):
            job = self._load(job_id)
            if job is not None:
                jobs.append(job)
        return jobs

    def _next_sequence(self) -> int:
        return self._get_cache().incr(_SEQUENCE_KEY, 1, default=0)

    # ========== SCHEDULES ==========

    def _load_schedule(self, schedule_id: str) -> Optional[RecurringSchedule]:
        return self._get_cache().get(_SCHEDULE_PREFIX + schedule_id)

    def _store_schedule(self, schedule: RecurringSchedule) -> None:
        self._get_cache().set(_SCHEDULE_PREFIX + schedule.id, schedule)

    def _discard_schedule(self, schedule_id: str) -> bool:
        return self._get_cache().delete(_SCHEDULE_PREFIX + schedule_id)

    def _schedules(self) -> Iterable[RecurringSchedule]:
        cache = self._get_cache()
        schedules = []
        for key in list(cache.iterkeys()):
            if isinstance(key, str) and key.startswith(_SCHEDULE_PREFIX):
                schedule = cache.get(key)
                if schedule is not None:
                    schedules.append(schedule)
        return schedules

    async def close(self) -> None:
        with self._open_lock:
            if self._cache:
                self._cache.close()
                self._cache = None
