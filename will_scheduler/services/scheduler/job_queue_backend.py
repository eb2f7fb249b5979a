"""
JobQueueBackend: RuntimeScheduler wrapping python-telegram-bot's job_queue.

Each ScheduledJob becomes one run_repeating() job. PTB's JobQueue is
APScheduler underneath, which skips a run while the previous run of the
same job is still executing; overlapping ticks across processes are still
possible and are handled by the repository's conditional writes.
"""

import logging
from typing import Dict, List

from telegram.ext import Application

from .base import RuntimeScheduler, ScheduledJob

logger = logging.getLogger(__name__)


class JobQueueBackend(RuntimeScheduler):
    """In-process scheduler backed by python-telegram-bot's JobQueue."""

    def __init__(self, application: Application) -> None:
        self._application = application
        self._jobs: Dict[str, ScheduledJob] = {}

    @property
    def _job_queue(self):
        jq = self._application.job_queue
        if jq is None:
            raise RuntimeError("JobQueue not available on this Application")
        return jq

    def schedule(self, job: ScheduledJob) -> None:
        if not job.enabled:
            logger.info("Job '%s' is disabled, skipping", job.name)
            return

        self._job_queue.run_repeating(
            job.callback,
            interval=job.interval_seconds,
            first=job.first_delay_seconds,
            name=job.name,
            data=job.data,
        )
        logger.info(
            "Scheduled interval job '%s' every %ds (first after %ds)",
            job.name,
            job.interval_seconds,
            job.first_delay_seconds,
        )
        self._jobs[job.name] = job

    def cancel(self, name: str) -> bool:
        if name not in self._jobs:
            return False

        removed = False
        for ptb_job in self._job_queue.get_jobs_by_name(name):
            ptb_job.schedule_removal()
            removed = True

        del self._jobs[name]
        logger.info("Cancelled job '%s'", name)
        return removed

    def list_jobs(self) -> List[str]:
        return list(self._jobs.keys())

    async def stop(self) -> None:
        for name in list(self._jobs.keys()):
            self.cancel(name)
        logger.info("All scheduled jobs cancelled")
