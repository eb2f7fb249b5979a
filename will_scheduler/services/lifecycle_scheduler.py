"""
Lifecycle Scheduler: wires the two lifecycle ticks into the JobQueueBackend.

Both jobs run every tick_interval_seconds. The driver rides along in the
job data so the callbacks stay plain module functions.
"""

import logging
from typing import List

from telegram.ext import ContextTypes

from ..core.config import get_config_value
from .lifecycle_driver import LifecycleDriver
from .scheduler.base import RuntimeScheduler, ScheduledJob

logger = logging.getLogger(__name__)

LIFECYCLE_JOB = "will_lifecycle"
SESSION_WARNING_JOB = "will_session_warnings"


async def _lifecycle_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Job queue callback: transitions, session windows, notifications."""
    driver: LifecycleDriver = context.job.data
    try:
        await driver.run_lifecycle_tick()
    except Exception as e:
        # The next tick retries; nothing here is lost for good
        logger.error(f"Lifecycle tick failed: {e}", exc_info=True)


async def _session_warning_callback(context: ContextTypes.DEFAULT_TYPE) -> None:
    """Job queue callback: 24h and 15m pre-session warnings."""
    driver: LifecycleDriver = context.job.data
    try:
        await driver.run_session_warning_tick()
    except Exception as e:
        logger.error(f"Session warning tick failed: {e}", exc_info=True)


def build_lifecycle_jobs(driver: LifecycleDriver) -> List[ScheduledJob]:
    interval = int(get_config_value("scheduler.tick_interval_seconds", 60))
    first_delay = int(get_config_value("scheduler.first_delay_seconds", 5))
    return [
        ScheduledJob(
            name=LIFECYCLE_JOB,
            callback=_lifecycle_callback,
            interval_seconds=interval,
            first_delay_seconds=first_delay,
            data=driver,
        ),
        ScheduledJob(
            name=SESSION_WARNING_JOB,
            callback=_session_warning_callback,
            interval_seconds=interval,
            first_delay_seconds=first_delay,
            data=driver,
        ),
    ]


def schedule_lifecycle_jobs(scheduler: RuntimeScheduler, driver: LifecycleDriver) -> List[str]:
    """Register both ticks; returns the job names."""
    jobs = build_lifecycle_jobs(driver)
    for job in jobs:
        scheduler.schedule(job)
    logger.info(f"Lifecycle scheduler started with jobs: {[j.name for j in jobs]}")
    return [job.name for job in jobs]
