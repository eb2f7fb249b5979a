from .base import Base, TimestampMixin, UTCDateTime, utcnow
from .commitment import Acknowledgment, CheckInType, Commitment, Review
from .reminder import MemberReminder, NotificationCategory, NotificationLedger
from .user import User
from .will import (
    CircleMember,
    SessionStatus,
    Will,
    WillMode,
    WillStatus,
    status_rank,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UTCDateTime",
    "utcnow",
    "User",
    "Will",
    "WillMode",
    "WillStatus",
    "status_rank",
    "SessionStatus",
    "CircleMember",
    "Commitment",
    "CheckInType",
    "Review",
    "Acknowledgment",
    "MemberReminder",
    "NotificationCategory",
    "NotificationLedger",
]
