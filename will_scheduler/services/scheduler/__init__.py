"""
Scheduler abstraction for periodic ticks.

Provides:
- RuntimeScheduler ABC for in-process job execution
- JobQueueBackend wrapping python-telegram-bot's job_queue
"""

from .base import RuntimeScheduler, ScheduledJob
from .job_queue_backend import JobQueueBackend

__all__ = [
    "RuntimeScheduler",
    "ScheduledJob",
    "JobQueueBackend",
]
