"""Housekeeping jobs for the cache and the job store."""

import logging
from typing import TYPE_CHECKING, Any, Dict

from src.core.models import Job
from src.data.cache.cache_layer import CacheLayer
from src.data.cache.keys import CLEANUP_PATTERNS
from src.jobs.processors.base import JobProcessor
from src.jobs.queues import ALL_QUEUES, JOB_CLEANUP_CACHE, JOB_CLEANUP_OLD_JOBS

if TYPE_CHECKING:
    from src.jobs.manager import QueueManager

logger = logging.getLogger(__name__)

# Finished jobs older than this are dropped by the nightly cleanup
OLD_JOB_AGE_SECONDS = 24 * 3600


class CacheCleanupProcessor(JobProcessor):
    """Removes expired entries from the cleanup namespaces."""

    def __init__(self, cache: CacheLayer):
        self.cache = cache

    @property
    def name(self) -> str:
        return JOB_CLEANUP_CACHE

    async def process(self, job: Job) -> Dict[str, Any]:
        removed = self.cache.cleanup()
        per_pattern = {}
        for pattern in CLEANUP_PATTERNS:
            per_pattern[pattern] = self.cache.delete_pattern(pattern, expired_only=True)
        logger.info(f"Cache cleanup removed {removed} expired entries, patterns: {per_pattern}")
        return {"success": True, "expired": removed, "patterns": per_pattern}


class OldJobsCleanupProcessor(JobProcessor):
    """Drops finished jobs past their retention age from every queue."""

    def __init__(self, manager: "QueueManager", max_age_seconds: float = OLD_JOB_AGE_SECONDS):
        self.manager = manager
        self.max_age_seconds = max_age_seconds

    @property
    def name(self) -> str:
        return JOB_CLEANUP_OLD_JOBS

    async def process(self, job: Job) -> Dict[str, Any]:
        removed = {}
        for queue_name in ALL_QUEUES:
            removed[queue_name] = await self.manager.broker.clean(queue_name, self.max_age_seconds)
        logger.info(f"Removed old jobs: {removed}")
        return {"success": True, "removed": removed}
