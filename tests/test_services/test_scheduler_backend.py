"""Tests for the scheduler abstraction and the lifecycle job wiring."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from will_scheduler.services.lifecycle_scheduler import (
    LIFECYCLE_JOB,
    SESSION_WARNING_JOB,
    _lifecycle_callback,
    _session_warning_callback,
    build_lifecycle_jobs,
    schedule_lifecycle_jobs,
)
from will_scheduler.services.scheduler.base import ScheduledJob
from will_scheduler.services.scheduler.job_queue_backend import JobQueueBackend

# ------------------------------------------------------------------
# ScheduledJob validation
# ------------------------------------------------------------------


def test_interval_must_be_positive():
    with pytest.raises(ValueError, match="interval_seconds"):
        ScheduledJob(name="test", callback=AsyncMock(), interval_seconds=0)


def test_first_delay_must_not_be_negative():
    with pytest.raises(ValueError, match="first_delay_seconds"):
        ScheduledJob(
            name="test", callback=AsyncMock(), interval_seconds=60, first_delay_seconds=-1
        )


def test_valid_job_defaults():
    job = ScheduledJob(name="test", callback=AsyncMock(), interval_seconds=60)
    assert job.enabled is True
    assert job.data is None
    assert job.first_delay_seconds == 60


# ------------------------------------------------------------------
# JobQueueBackend
# ------------------------------------------------------------------


@pytest.fixture
def mock_app():
    """Create a mock Application with a job queue."""
    app = MagicMock()
    jq = MagicMock()
    jq.run_repeating = MagicMock()
    jq.get_jobs_by_name = MagicMock(return_value=[])
    app.job_queue = jq
    return app


@pytest.fixture
def backend(mock_app):
    return JobQueueBackend(mock_app)


def test_schedule_calls_run_repeating(backend, mock_app):
    cb = AsyncMock()
    payload = object()
    job = ScheduledJob(
        name="tick", callback=cb, interval_seconds=60, first_delay_seconds=5, data=payload
    )
    backend.schedule(job)

    mock_app.job_queue.run_repeating.assert_called_once_with(
        cb, interval=60, first=5, name="tick", data=payload
    )
    assert backend.list_jobs() == ["tick"]


def test_disabled_job_is_skipped(backend, mock_app):
    backend.schedule(
        ScheduledJob(name="off", callback=AsyncMock(), interval_seconds=60, enabled=False)
    )
    mock_app.job_queue.run_repeating.assert_not_called()
    assert backend.list_jobs() == []


def test_cancel_removes_ptb_jobs(backend, mock_app):
    ptb_job = MagicMock()
    mock_app.job_queue.get_jobs_by_name.return_value = [ptb_job]
    backend.schedule(ScheduledJob(name="tick", callback=AsyncMock(), interval_seconds=60))

    assert backend.cancel("tick") is True
    ptb_job.schedule_removal.assert_called_once()
    assert backend.list_jobs() == []


def test_cancel_unknown_job(backend):
    assert backend.cancel("nope") is False


@pytest.mark.asyncio
async def test_stop_cancels_everything(backend):
    backend.schedule(ScheduledJob(name="a", callback=AsyncMock(), interval_seconds=60))
    backend.schedule(ScheduledJob(name="b", callback=AsyncMock(), interval_seconds=60))

    await backend.stop()

    assert backend.list_jobs() == []


def test_missing_job_queue_raises():
    app = MagicMock()
    app.job_queue = None
    backend = JobQueueBackend(app)
    with pytest.raises(RuntimeError):
        backend.schedule(ScheduledJob(name="x", callback=AsyncMock(), interval_seconds=60))


# ------------------------------------------------------------------
# Lifecycle jobs
# ------------------------------------------------------------------


def test_lifecycle_jobs_carry_the_driver():
    driver = MagicMock()
    jobs = build_lifecycle_jobs(driver)

    assert [job.name for job in jobs] == [LIFECYCLE_JOB, SESSION_WARNING_JOB]
    assert all(job.data is driver for job in jobs)
    assert all(job.interval_seconds == 60 for job in jobs)


def test_schedule_lifecycle_jobs(backend, mock_app):
    names = schedule_lifecycle_jobs(backend, MagicMock())

    assert names == [LIFECYCLE_JOB, SESSION_WARNING_JOB]
    assert mock_app.job_queue.run_repeating.call_count == 2
    assert backend.list_jobs() == names


@pytest.mark.asyncio
async def test_callbacks_run_their_tick():
    driver = MagicMock()
    driver.run_lifecycle_tick = AsyncMock()
    driver.run_session_warning_tick = AsyncMock()
    context = SimpleNamespace(job=SimpleNamespace(data=driver))

    await _lifecycle_callback(context)
    await _session_warning_callback(context)

    driver.run_lifecycle_tick.assert_awaited_once()
    driver.run_session_warning_tick.assert_awaited_once()


@pytest.mark.asyncio
async def test_callback_contains_tick_failure():
    driver = MagicMock()
    driver.run_lifecycle_tick = AsyncMock(side_effect=RuntimeError("db down"))
    context = SimpleNamespace(job=SimpleNamespace(data=driver))

    # Must not raise into the job queue
    await _lifecycle_callback(context)
