"""Base class for job processors."""

from abc import ABC, abstractmethod
from typing import Any

from src.core.models import Job


class JobProcessor(ABC):
    """Handles jobs of one job name.

    Jobs are delivered at least once, so ``process`` must be safe to repeat.
    Raising marks the attempt failed and hands the job back to the broker
    for retry with backoff.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Job name this processor handles."""
        pass

    @abstractmethod
    async def process(self, job: Job) -> Any:
        """Run one job and return its result."""
        pass
