"""
Per-participant records attached to a Will.

Commitment: a user's pledge; its existence makes the user a participant.
Review: the mandatory post-cycle reflection gating completion.
Acknowledgment: legacy end-of-cycle record, no longer load-bearing.
"""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UTCDateTime


class CheckInType(str, enum.Enum):
    """Personal check-in cadence."""

    DAILY = "daily"
    ONE_TIME = "one-time"


class Commitment(Base, TimestampMixin):
    __tablename__ = "will_commitments"
    __table_args__ = (UniqueConstraint("will_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    will_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wills.id"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False, index=True
    )
    what: Mapped[str] = mapped_column(Text, nullable=False, default="")
    why: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    check_in_type: Mapped[str] = mapped_column(
        String(20), default=CheckInType.ONE_TIME.value, nullable=False
    )
    check_in_time: Mapped[Optional[str]] = mapped_column(
        String(5), nullable=True
    )  # HH:MM local

    # Only mutable field, scheduler-owned
    review_reminder_sent_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )

    will: Mapped["Will"] = relationship(  # noqa: F821
        "Will", back_populates="commitments"
    )

    def wants_daily_check_in(self) -> bool:
        return self.check_in_type == CheckInType.DAILY.value

    def __repr__(self) -> str:
        return f"<Commitment(id={self.id}, will_id={self.will_id}, user_id={self.user_id})>"


class Review(Base, TimestampMixin):
    __tablename__ = "will_reviews"
    __table_args__ = (UniqueConstraint("will_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    will_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wills.id"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    reflection: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Review(will_id={self.will_id}, user_id={self.user_id})>"


class Acknowledgment(Base, TimestampMixin):
    """Kept for backward compatibility; completion no longer depends on it."""

    __tablename__ = "will_acknowledgments"
    __table_args__ = (UniqueConstraint("will_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    will_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("wills.id"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
