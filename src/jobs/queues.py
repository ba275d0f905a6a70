"""Queue names, job names and per-queue defaults."""

from typing import Any, Dict, List

from src.core.models import BackoffPolicy, BackoffType, QueueConfig

# ========== QUEUES ==========

QUEUE_HEALTH = "aave-health-update"
QUEUE_MARKET = "aave-market-data"
QUEUE_CLEANUP = "cleanup"

ALL_QUEUES = (QUEUE_HEALTH, QUEUE_MARKET, QUEUE_CLEANUP)

# ========== JOB NAMES ==========

JOB_UPDATE_USER_HEALTH = "update-user-health"
JOB_BULK_UPDATE_HEALTH = "bulk-update-health"
JOB_UPDATE_MARKET_DATA = "update-market-data"
JOB_BULK_UPDATE_MARKET_DATA = "bulk-update-market-data"
JOB_CLEANUP_CACHE = "cleanup-cache"
JOB_CLEANUP_OLD_JOBS = "cleanup-old-jobs"

# ========== CONFIG ==========

DEFAULT_QUEUE_CONFIG = QueueConfig(
    concurrency=5,
    attempts=3,
    backoff=BackoffPolicy(BackoffType.EXPONENTIAL, 2000),
    keep_completed=100,
    keep_failed=50,
)

QUEUE_CONFIGS: Dict[str, QueueConfig] = {
    QUEUE_HEALTH: QueueConfig(
        concurrency=3,
        attempts=5,
        backoff=BackoffPolicy(BackoffType.EXPONENTIAL, 5000),
        keep_completed=50,
        keep_failed=25,
    ),
    QUEUE_MARKET: QueueConfig(
        concurrency=2,
        attempts=3,
        backoff=BackoffPolicy(BackoffType.FIXED, 10000),
        keep_completed=100,
        keep_failed=50,
    ),
    QUEUE_CLEANUP: QueueConfig(
        concurrency=1,
        attempts=DEFAULT_QUEUE_CONFIG.attempts,
        backoff=DEFAULT_QUEUE_CONFIG.backoff,
        keep_completed=DEFAULT_QUEUE_CONFIG.keep_completed,
        keep_failed=DEFAULT_QUEUE_CONFIG.keep_failed,
    ),
}

# Registered on start; ids are fixed so re-registration is a no-op
RECURRING_JOBS: List[Dict[str, Any]] = [
    {
        "queue": QUEUE_MARKET,
        "name": JOB_BULK_UPDATE_MARKET_DATA,
        "cron": "*/5 * * * *",
        "payload": {"dataType": "all"},
        "priority": 1,
    },
    {
        "queue": QUEUE_HEALTH,
        "name": JOB_BULK_UPDATE_HEALTH,
        "cron": "*/10 * * * *",
        "payload": {},
        "priority": 2,
    },
    {
        "queue": QUEUE_CLEANUP,
        "name": JOB_CLEANUP_CACHE,
        "cron": "0 * * * *",
        "payload": {},
        "priority": 3,
    },
    {
        "queue": QUEUE_CLEANUP,
        "name": JOB_CLEANUP_OLD_JOBS,
        "cron": "0 2 * * *",
        "payload": {},
        "priority": 4,
    },
]


def get_queue_config(queue_name: str) -> QueueConfig:
    return QUEUE_CONFIGS.get(queue_name, DEFAULT_QUEUE_CONFIG)
