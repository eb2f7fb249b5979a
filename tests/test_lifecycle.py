"""Tests for process wiring in will_scheduler.lifecycle."""

from unittest.mock import AsyncMock, patch

import pytest

from will_scheduler.core.config import Settings
from will_scheduler.lifecycle import build_application, build_driver, lifespan
from will_scheduler.services.lifecycle_scheduler import LIFECYCLE_JOB, SESSION_WARNING_JOB
from will_scheduler.services.notification_transport import (
    LoggingNotificationTransport,
    TelegramNotificationTransport,
)


def _settings(**overrides) -> Settings:
    values = {
        "telegram_bot_token": "",
        "notifications_simulate": True,
        "daily_api_key": None,
        "database_url": "sqlite+aiosqlite:///./data/test.db",
    }
    values.update(overrides)
    return Settings(**values)


def test_application_builds_without_real_token():
    application = build_application(_settings())
    assert application.job_queue is not None
    assert application.updater is None


def test_simulated_driver_logs_instead_of_sending():
    settings = _settings()
    driver = build_driver(settings, build_application(settings))

    assert isinstance(driver.notifier.transport, LoggingNotificationTransport)
    assert driver.coordinator.transport is driver.notifier.transport
    assert driver.coordinator.provider is None


def test_live_driver_uses_telegram():
    settings = _settings(
        telegram_bot_token="123456:ABC-DEF", notifications_simulate=False
    )
    driver = build_driver(settings, build_application(settings))

    assert isinstance(driver.notifier.transport, TelegramNotificationTransport)


@pytest.mark.asyncio
async def test_config_errors_abort_startup():
    with patch(
        "will_scheduler.lifecycle.validate_config", return_value=["DATABASE_URL is required"]
    ), patch("will_scheduler.lifecycle.init_database", new=AsyncMock()) as init_db:
        with pytest.raises(SystemExit):
            async with lifespan():
                pass
    init_db.assert_not_awaited()


@pytest.mark.asyncio
async def test_simulated_lifespan_schedules_both_ticks():
    with patch(
        "will_scheduler.lifecycle.get_settings", return_value=_settings()
    ), patch("will_scheduler.lifecycle.init_database", new=AsyncMock()), patch(
        "will_scheduler.lifecycle.health_check", new=AsyncMock(return_value=True)
    ), patch(
        "will_scheduler.lifecycle.close_database", new=AsyncMock()
    ) as close_db:
        async with lifespan() as runtime:
            assert runtime.bot_connected is False
            assert runtime.scheduler.list_jobs() == [LIFECYCLE_JOB, SESSION_WARNING_JOB]
            names = {job.name for job in runtime.application.job_queue.jobs()}
            assert names == {LIFECYCLE_JOB, SESSION_WARNING_JOB}

        assert runtime.scheduler.list_jobs() == []
    close_db.assert_awaited_once()
