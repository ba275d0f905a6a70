"""Job queue data models."""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional


class JobState(Enum):
    """Lifecycle state of a queued job."""

    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


class BackoffType(Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class BackoffPolicy:
    """Delay between retry attempts."""

    type: BackoffType = BackoffType.EXPONENTIAL
    delay_ms: int = 2000

    def delay_for(self, attempts_made: int) -> int:
        """Delay in ms before the next attempt, given attempts already made (>= 1)."""
        if self.type == BackoffType.FIXED:
            return self.delay_ms
        return self.delay_ms * (2 ** max(0, attempts_made - 1))


@dataclass(frozen=True)
class QueueConfig:
    """Per-queue worker and retention settings."""

    concurrency: int = 5
    attempts: int = 3
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)
    keep_completed: int = 100
    keep_failed: int = 50


@dataclass(frozen=True)
class JobOptions:
    """Options accepted at enqueue time; unset fields fall back to the queue config."""

    delay_ms: int = 0
    priority: int = 0  # Lower runs first
    attempts: Optional[int] = None
    backoff: Optional[BackoffPolicy] = None
    job_id: Optional[str] = None


@dataclass
class Job:
    """A unit of work held by a broker."""

    id: str
    queue_name: str
    job_name: str
    payload: Dict[str, Any]
    priority: int = 0
    delay_ms: int = 0
    attempts_made: int = 0
    max_attempts: int = 3
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)
    state: JobState = JobState.WAITING
    sequence: int = 0  # Enqueue order, for FIFO within a priority

    # Epoch seconds
    created_at: float = 0.0
    run_at: float = 0.0
    lease_expires_at: Optional[float] = None
    finished_at: Optional[float] = None

    result: Any = None
    failed_reason: Optional[str] = None

    @property
    def is_finished(self) -> bool:
        return self.state in (JobState.COMPLETED, JobState.FAILED)

    def copy(self, **changes: Any) -> "Job":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "queue": self.queue_name,
            "name": self.job_name,
            "data": self.payload,
            "priority": self.priority,
            "attemptsMade": self.attempts_made,
            "maxAttempts": self.max_attempts,
            "state": self.state.value,
            "createdAt": self.created_at,
            "finishedAt": self.finished_at,
            "result": self.result,
            "failedReason": self.failed_reason,
        }


@dataclass
class RecurringSchedule:
    """A cron-driven job template registered under a fixed id."""

    id: str
    queue_name: str
    job_name: str
    cron: str
    payload: Dict[str, Any] = field(default_factory=dict)
    priority: int = 0
    next_run_at: float = 0.0


@dataclass(frozen=True)
class QueueStats:
    """Job counts per state for one queue."""

    queue_name: str
    waiting: int = 0
    delayed: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.waiting + self.delayed + self.active + self.completed + self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.queue_name,
            "waiting": self.waiting,
            "delayed": self.delayed,
            "active": self.active,
            "completed": self.completed,
            "failed": self.failed,
            "total": self.total,
        }
