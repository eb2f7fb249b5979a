"""
Dedup records for reminders that are not one-shot stamps on a Will.

MemberReminder: one row per (will, user) once the uncommitted-member
reminder went out; a unique insert is the claim.
NotificationLedger: one row per (user, category) holding the last send,
compared by the user's local calendar date.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UTCDateTime, utcnow


class NotificationCategory(str, enum.Enum):
    """Per-user, per-local-day notification categories."""

    DAILY_REMINDER = "daily_reminder"
    MOTIVATIONAL = "motivational"


class MemberReminder(Base):
    __tablename__ = "member_reminders"
    __table_args__ = (UniqueConstraint("will_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    will_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wills.id"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    sent_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=utcnow, nullable=False
    )


class NotificationLedger(Base):
    __tablename__ = "notification_ledger"
    __table_args__ = (UniqueConstraint("user_id", "category"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    last_sent_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )

    def __repr__(self) -> str:
        return (
            f"<NotificationLedger(user_id={self.user_id}, category={self.category}, "
            f"last_sent_at={self.last_sent_at})>"
        )
