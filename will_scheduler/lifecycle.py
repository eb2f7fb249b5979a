"""
Process lifespan management.

Handles startup and shutdown of all subsystems:
- Configuration validation
- Database initialization
- Telegram application (job queue + push channel)
- Video room provider and notification transport
- The two lifecycle ticks
"""

import asyncio
import logging
import signal
import sys
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from telegram.ext import Application, ApplicationBuilder

from .core.config import Settings, get_settings
from .core.config_validator import log_config_summary, validate_config
from .core.database import close_database, health_check, init_database
from .services.lifecycle_driver import LifecycleDriver
from .services.lifecycle_scheduler import schedule_lifecycle_jobs
from .services.notification_scheduler import NotificationScheduler
from .services.notification_transport import build_transport
from .services.scheduler import JobQueueBackend
from .services.session_window import SessionWindowCoordinator
from .services.video_room_service import DailyVideoRoomProvider

logger = logging.getLogger(__name__)

# PTB needs a token to build an Application; simulated runs never call Telegram
SIMULATION_TOKEN = "0:simulated"


@dataclass
class Runtime:
    application: Application
    scheduler: JobQueueBackend
    driver: LifecycleDriver
    bot_connected: bool


def build_application(settings: Settings) -> Application:
    token = settings.telegram_bot_token or SIMULATION_TOKEN
    # No updater: this process only pushes, it never polls for updates
    return ApplicationBuilder().token(token).updater(None).build()


def build_driver(settings: Settings, application: Optional[Application]) -> LifecycleDriver:
    bot = None
    if application is not None and not settings.notifications_simulate:
        bot = application.bot
    transport = build_transport(settings, bot)
    coordinator = SessionWindowCoordinator(
        transport, provider=DailyVideoRoomProvider.from_settings()
    )
    return LifecycleDriver(coordinator, NotificationScheduler(transport))


@asynccontextmanager
async def lifespan() -> AsyncIterator[Runtime]:
    """Start every subsystem, yield the runtime, tear down in reverse order."""
    logger.info("Will scheduler starting up...")

    # Validate configuration before anything else
    settings = get_settings()
    config_errors = validate_config(settings)
    if config_errors:
        for err in config_errors:
            logger.error(f"Config validation error: {err}")
        logger.critical(
            "Aborting startup due to %d configuration error(s)", len(config_errors)
        )
        sys.exit(1)
    log_config_summary(settings)

    try:
        await init_database()
        logger.info("Database initialized")
        if not await health_check():
            logger.warning("Database health check failed after initialization")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    application = build_application(settings)
    bot_connected = not settings.notifications_simulate
    if bot_connected:
        await application.initialize()
        await application.start()
        logger.info(f"Telegram bot connected as @{application.bot.username}")
    else:
        await application.job_queue.start()

    driver = build_driver(settings, application)
    scheduler = JobQueueBackend(application)
    schedule_lifecycle_jobs(scheduler, driver)

    try:
        yield Runtime(application, scheduler, driver, bot_connected)
    finally:
        logger.info("Will scheduler shutting down...")
        await scheduler.stop()
        if bot_connected:
            await application.stop()
            await application.shutdown()
        else:
            await application.job_queue.stop()
        await close_database()
        logger.info("Shutdown complete")


async def serve() -> None:
    """Run until SIGINT or SIGTERM."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers; Ctrl+C still raises
            pass

    async with lifespan():
        await stop.wait()
