"""
Pure lifecycle logic for Wills.

No database, no network I/O: every decision is a function of the cycle's
persisted timestamps and the fresh counts passed in, so re-running it on the
same input always gives the same answer.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from ..models.will import SessionStatus, WillMode, WillStatus, status_rank

_NOT_STARTED = {WillStatus.PENDING.value, WillStatus.SCHEDULED.value}
_RUNNING = {
    WillStatus.SCHEDULED.value,
    WillStatus.ACTIVE.value,
    WillStatus.WAITING_FOR_END_ROOM.value,
}


@dataclass(frozen=True)
class CycleSnapshot:
    """The fields of a Will the transition rules read."""

    status: str
    start_at: datetime
    end_at: Optional[datetime] = None
    mode: str = WillMode.CIRCLE.value
    session_scheduled_at: Optional[datetime] = None
    session_status: Optional[str] = None

    @classmethod
    def of(cls, will) -> "CycleSnapshot":
        return cls(
            status=will.status,
            start_at=will.start_at,
            end_at=will.end_at,
            mode=will.mode,
            session_scheduled_at=will.session_scheduled_at,
            session_status=will.session_status,
        )

    @property
    def has_session(self) -> bool:
        # Solo cycles never get a session window, whatever the row says
        return (
            self.mode == WillMode.CIRCLE.value and self.session_scheduled_at is not None
        )


def is_forward(current: str, target: str) -> bool:
    """True if *target* is strictly later than *current* in the lifecycle."""
    return status_rank(target) > status_rank(current)


def completion_ready(
    participant_count: int,
    review_count: int,
    has_session: bool,
    session_status: Optional[str],
) -> bool:
    """Both halves of the completion gate.

    Every participant has reviewed, and the session window is either absent
    or finished. A cycle nobody committed to has nothing left to wait for on
    the review side.
    """
    reviews_done = review_count >= participant_count
    session_done = (not has_session) or session_status == SessionStatus.COMPLETED.value
    return reviews_done and session_done


def next_state(
    cycle: CycleSnapshot,
    now: datetime,
    participant_count: int,
    review_count: int,
    session_status: Optional[str] = None,
) -> Optional[str]:
    """Return the status *cycle* should move to at *now*, or None if unchanged.

    Start and end rules are applied in order within one pass, so a cycle
    whose start and end have both passed goes straight to will_review.
    Completion is only considered for a cycle that was already in
    will_review when the pass began.

    Args:
        cycle: Current persisted state.
        now: Tick time (aware UTC).
        participant_count: Commitments on the cycle, counted this tick.
        review_count: Reviews from participants, counted this tick.
        session_status: Overrides ``cycle.session_status`` when given, for
            callers that just changed the session window.
    """
    status = cycle.status

    if status in _NOT_STARTED and now >= cycle.start_at:
        status = WillStatus.ACTIVE.value

    if status == WillStatus.WAITING_FOR_END_ROOM.value:
        # Legacy rows only reached this status after the cycle ended
        status = WillStatus.WILL_REVIEW.value
    elif status in _RUNNING and cycle.end_at is not None and now >= cycle.end_at:
        status = WillStatus.WILL_REVIEW.value

    if cycle.status == WillStatus.WILL_REVIEW.value:
        effective_session = (
            session_status if session_status is not None else cycle.session_status
        )
        if completion_ready(
            participant_count, review_count, cycle.has_session, effective_session
        ):
            status = WillStatus.COMPLETED.value

    if status == cycle.status:
        return None
    if not is_forward(cycle.status, status):
        raise AssertionError(f"Lifecycle regression {cycle.status} -> {status}")
    return status


def auto_session_time(end_at: datetime, offset_minutes: int) -> datetime:
    """Default session slot for a cycle that ended without one."""
    return end_at + timedelta(minutes=offset_minutes)


def is_valid_session_time(
    end_at: datetime, proposed: datetime, max_delay_hours: int = 48
) -> bool:
    """A session must start after the cycle ends and within *max_delay_hours*."""
    return end_at < proposed <= end_at + timedelta(hours=max_delay_hours)

