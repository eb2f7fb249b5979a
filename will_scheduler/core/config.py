"""
Application configuration using Pydantic Settings.

Centralizes secrets and deployment settings with environment variable
support. Scheduler tunables (intervals, windows, templates) live in
config/defaults.yaml and are read through get_config_value().
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings

from .defaults_loader import get_config_value

__all__ = ["Settings", "get_settings", "get_config_value"]


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/will_scheduler.db"

    # Notification transport (Telegram bot used as push channel)
    telegram_bot_token: str = ""
    notifications_simulate: bool = False

    # Video room provider (Daily.co)
    daily_api_key: Optional[str] = None
    daily_api_url: str = "https://api.daily.co/v1"

    # Environment
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_to_file: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra env vars


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
