"""
Typed domain errors for the lifecycle scheduler.

Per-entity failures are caught by the tick loop, logged and skipped;
these types let callers tell provider outages from data inconsistencies.
Losing a dedup race is never an error: claims return False instead.
"""


class DomainError(Exception):
    """Base class for all domain-specific errors."""


# ---------------------------------------------------------------------------
# Data consistency
# ---------------------------------------------------------------------------


class CycleNotFound(DomainError):
    """Will with the given ID does not exist."""

    def __init__(self, will_id: int) -> None:
        self.will_id = will_id
        super().__init__(f"Will {will_id} not found")


class InvalidTransition(DomainError):
    """Requested status change is not strictly forward."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move status from {current} to {requested}")


# ---------------------------------------------------------------------------
# External collaborators
# ---------------------------------------------------------------------------


class VideoRoomError(DomainError):
    """Video room provider returned an error or timed out."""


class NotificationDeliveryError(DomainError):
    """Notification transport failed to deliver a message."""
