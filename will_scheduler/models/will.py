"""
Will (commitment cycle) and circle membership models.

All lifecycle fields below the "Scheduler-owned" marker are written only by
the lifecycle scheduler; the API layer creates rows and never updates them.
"""

import enum
from datetime import datetime
from typing import List, Optional

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UTCDateTime


class WillMode(str, enum.Enum):
    """Group (circle) or individual (solo) cycle."""

    CIRCLE = "circle"
    SOLO = "solo"


class WillStatus(str, enum.Enum):
    """Lifecycle status, in forward order."""

    PENDING = "pending"
    SCHEDULED = "scheduled"
    ACTIVE = "active"
    # Legacy value between active and will_review; migrated forward.
    WAITING_FOR_END_ROOM = "waiting_for_end_room"
    WILL_REVIEW = "will_review"
    COMPLETED = "completed"


class SessionStatus(str, enum.Enum):
    """Session window sub-state, in forward order."""

    PENDING = "pending"
    OPEN = "open"
    COMPLETED = "completed"


class Will(Base, TimestampMixin):
    """A single commitment cycle."""

    __tablename__ = "wills"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mode: Mapped[str] = mapped_column(
        String(10), default=WillMode.CIRCLE.value, nullable=False
    )
    circle_id: Mapped[Optional[int]] = mapped_column(
        Integer, nullable=True, index=True
    )
    created_by: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=True
    )
    title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timing
    start_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    midpoint_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )
    reminder_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    check_in_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    timezone: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # --- Scheduler-owned ---
    status: Mapped[str] = mapped_column(
        String(30), default=WillStatus.PENDING.value, nullable=False, index=True
    )
    status_changed_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )

    # Session window (circle mode only)
    session_scheduled_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )
    session_opened_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )
    session_status: Mapped[Optional[str]] = mapped_column(
        String(20), nullable=True, index=True
    )
    session_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # One-shot notification stamps
    started_notification_sent_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )
    midpoint_notification_sent_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )
    completion_notification_sent_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )
    completed_notification_sent_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True
    )

    commitments: Mapped[List["Commitment"]] = relationship(  # noqa: F821
        "Commitment", back_populates="will", cascade="all, delete-orphan"
    )

    # --- Domain behavior ---

    def is_circle(self) -> bool:
        return self.mode == WillMode.CIRCLE.value

    def has_session(self) -> bool:
        return self.is_circle() and self.session_scheduled_at is not None

    def display_title(self) -> str:
        return self.title or f"Will #{self.id}"

    def __repr__(self) -> str:
        return (
            f"<Will(id={self.id}, mode={self.mode}, status={self.status}, "
            f"session_status={self.session_status})>"
        )


class CircleMember(Base, TimestampMixin):
    """Membership of a user in a circle (group of cycle participants)."""

    __tablename__ = "circle_members"
    __table_args__ = (UniqueConstraint("circle_id", "user_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    circle_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )

    def __repr__(self) -> str:
        return f"<CircleMember(circle_id={self.circle_id}, user_id={self.user_id})>"


_STATUS_RANK = {status.value: rank for rank, status in enumerate(WillStatus)}


def status_rank(status: str) -> int:
    """Position of *status* in the forward lifecycle order."""
    return _STATUS_RANK[status]
