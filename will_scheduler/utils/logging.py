import logging
import logging.handlers
import structlog
import sys
from pathlib import Path
from typing import Any, Dict, Optional
from datetime import datetime

SCHEDULER_LOGGER = "will_scheduler.services"


def setup_logging(log_level: str = "INFO", log_to_file: bool = True) -> None:
    """Set up logging for the scheduler process.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Whether to log to files in addition to console
    """

    # Configure structlog
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.set_exc_info,
            # JSON formatting for file logs
            (
                structlog.processors.JSONRenderer()
                if log_to_file
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    level = getattr(logging, log_level.upper(), logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # PTB's job queue logs every run at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if not log_to_file:
        return

    logs_dir = Path("logs")
    logs_dir.mkdir(exist_ok=True)

    app_handler = logging.handlers.RotatingFileHandler(
        logs_dir / "app.log", maxBytes=10 * 1024 * 1024, backupCount=5  # 10MB
    )
    app_handler.setLevel(logging.INFO)
    app_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
        )
    )
    root_logger.addHandler(app_handler)

    # Scheduler ticks get their own file, at DEBUG, to trace claims and skips
    scheduler_handler = logging.handlers.RotatingFileHandler(
        logs_dir / "scheduler.log",
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
    )
    scheduler_handler.setLevel(logging.DEBUG)
    scheduler_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
        )
    )
    scheduler_logger = logging.getLogger(SCHEDULER_LOGGER)
    scheduler_logger.addHandler(scheduler_handler)
    scheduler_logger.propagate = True

    # Error-only log file for critical issues
    error_handler = logging.handlers.RotatingFileHandler(
        logs_dir / "errors.log", maxBytes=5 * 1024 * 1024, backupCount=10  # 5MB
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s - %(exc_info)s"
        )
    )
    root_logger.addHandler(error_handler)


def get_scheduler_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """Structured logger for tick-level events."""
    return structlog.get_logger(name or SCHEDULER_LOGGER)


class TickLogContext:
    """Context manager that logs the start, outcome and duration of a tick.

    The body fills ``summary`` with counters; they are attached to the
    completion record.
    """

    def __init__(self, tick: str, logger: Optional[structlog.BoundLogger] = None, **context):
        self.tick = tick
        self.context = context
        self.logger = logger or get_scheduler_logger()
        self.summary: Dict[str, Any] = {}
        self.start_time: Optional[datetime] = None

    def __enter__(self):
        self.start_time = datetime.now()
        self.logger.debug(f"{self.tick} tick started", tick=self.tick, **self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = (datetime.now() - self.start_time).total_seconds()

        if exc_type is not None:
            self.logger.error(
                f"{self.tick} tick failed",
                tick=self.tick,
                error_type=exc_type.__name__,
                error_message=str(exc_val),
                duration_seconds=duration,
                **self.context,
            )
        else:
            log = self.logger.info if any(self.summary.values()) else self.logger.debug
            log(
                f"{self.tick} tick completed",
                tick=self.tick,
                duration_seconds=duration,
                **self.summary,
                **self.context,
            )
        # Never suppress
        return False
