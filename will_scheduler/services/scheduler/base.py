"""
Scheduler base types and abstract interface.

ScheduledJob defines what to run and how often.
RuntimeScheduler is the ABC for in-process backends (e.g. JobQueueBackend).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, List


@dataclass
class ScheduledJob:
    """Describes a fixed-interval job.

    ``data`` is handed to the callback as ``context.job.data``.
    """

    name: str
    callback: Callable[..., Coroutine[Any, Any, None]]
    interval_seconds: int
    data: Any = None
    enabled: bool = True
    first_delay_seconds: int = 60

    def __post_init__(self) -> None:
        if not self.interval_seconds or self.interval_seconds <= 0:
            raise ValueError("interval_seconds must be a positive number of seconds")
        if self.first_delay_seconds < 0:
            raise ValueError("first_delay_seconds must not be negative")


class RuntimeScheduler(ABC):
    """ABC for in-process job schedulers."""

    @abstractmethod
    def schedule(self, job: ScheduledJob) -> None:
        """Register a job for execution."""

    @abstractmethod
    def cancel(self, name: str) -> bool:
        """Cancel a scheduled job by name. Returns True if found."""

    @abstractmethod
    def list_jobs(self) -> List[str]:
        """Return names of all registered jobs."""

    @abstractmethod
    async def stop(self) -> None:
        """Stop the scheduler and cancel all jobs."""
