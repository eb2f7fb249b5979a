"""
Startup configuration validation and redacted summary logging.

Called early in the process lifecycle to fail fast on misconfiguration.
"""

import logging
import re
from typing import List

from .config import Settings
from ..utils.timezone import is_valid_timezone
from .defaults_loader import get_config_value

logger = logging.getLogger(__name__)

# Minimal pattern: scheme://... or scheme:///...
_SQLALCHEMY_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+\-.]*://")


def validate_config(settings: Settings) -> List[str]:
    """
    Validate application configuration and return a list of error strings.

    An empty list means the configuration is valid.
    """
    errors: List[str] = []

    # -- Transport credentials ---------------------------------------------
    token = (settings.telegram_bot_token or "").strip()
    if not token and not settings.notifications_simulate:
        errors.append(
            "TELEGRAM_BOT_TOKEN is required unless NOTIFICATIONS_SIMULATE=true"
        )

    # -- DATABASE_URL format -----------------------------------------------
    db_url = (settings.database_url or "").strip()
    if not db_url:
        errors.append("DATABASE_URL is required but missing or empty")
    elif not _SQLALCHEMY_URL_RE.match(db_url):
        errors.append(
            f"DATABASE_URL format is invalid (expected SQLAlchemy URL like "
            f"'sqlite+aiosqlite:///...' or 'postgresql+asyncpg://...'): "
            f"'{db_url}'"
        )

    # -- Production DB enforcement -----------------------------------------
    if settings.environment.lower() == "production" and db_url:
        if db_url.lower().startswith("sqlite"):
            errors.append(
                "SQLite is not allowed in production. "
                "DATABASE_URL must use PostgreSQL (e.g. postgresql+asyncpg://...)"
            )

    # -- Tick cadence ------------------------------------------------------
    try:
        interval = int(get_config_value("scheduler.tick_interval_seconds", 60))
    except (TypeError, ValueError):
        interval = 0
    if interval <= 0:
        errors.append("scheduler.tick_interval_seconds must be a positive integer")

    # -- Default timezone --------------------------------------------------
    default_tz = get_config_value("timezone.default", "UTC")
    if not default_tz or not is_valid_timezone(str(default_tz)):
        errors.append(f"timezone.default is not a valid IANA timezone: {default_tz!r}")

    return errors


def _redact(secret: str) -> str:
    """Return first 4 characters followed by '***', or '<empty>' if blank."""
    if not secret:
        return "<empty>"
    return secret[:4] + "***"


def _db_type(database_url: str) -> str:
    """Extract the database backend name from a SQLAlchemy URL."""
    if not database_url:
        return "none"
    scheme = database_url.split("://")[0] if "://" in database_url else database_url
    # e.g. "sqlite+aiosqlite" -> "sqlite", "postgresql+asyncpg" -> "postgresql"
    return scheme.split("+")[0].lower()


def log_config_summary(settings: Settings) -> None:
    """
    Log an INFO-level summary of loaded configuration with secrets redacted.

    Includes: environment, database type, transport mode and video provider.
    """
    transport = "simulated" if settings.notifications_simulate else "telegram"
    video = "daily" if settings.daily_api_key else "none"

    summary_lines = [
        f"environment={settings.environment}",
        f"database={_db_type(settings.database_url)}",
        f"transport={transport}",
        f"video_provider={video}",
        f"bot_token={_redact(settings.telegram_bot_token)}",
    ]

    if settings.daily_api_key:
        summary_lines.append(f"daily_key={_redact(settings.daily_api_key)}")

    logger.info("Config loaded: %s", " | ".join(summary_lines))
