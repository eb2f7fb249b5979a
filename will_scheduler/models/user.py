from typing import Optional

from sqlalchemy import BigInteger, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class User(Base, TimestampMixin):
    """Scheduling-relevant view of a user account.

    Registration and auth live elsewhere; the scheduler only reads the
    timezone, the global reminder preference and the delivery chat id.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # IANA timezone name, e.g. "America/New_York"
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Global daily reminder (HH:MM local)
    daily_reminder_time: Mapped[Optional[str]] = mapped_column(
        String(5), nullable=True
    )
    daily_reminder_enabled: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    # Delivery address for the Telegram transport
    telegram_chat_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, nullable=True, index=True
    )

    # --- Domain behavior ---

    def get_display_name(self) -> str:
        """Return a human-readable display name."""
        parts = [p for p in (self.first_name, self.last_name) if p]
        if parts:
            return " ".join(parts)
        return f"User {self.id}"

    def wants_daily_reminder(self) -> bool:
        return bool(self.daily_reminder_enabled and self.daily_reminder_time)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, timezone={self.timezone})>"
