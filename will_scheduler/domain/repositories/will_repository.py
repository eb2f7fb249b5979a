"""WillRepository protocol: the scheduler's view of cycle persistence.

Every mutation is a single conditional UPDATE/INSERT so that overlapping
ticks, or several scheduler processes, collapse to one winner without
in-process locks.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, runtime_checkable


@dataclass(frozen=True)
class CycleCriteria:
    """Predicate for candidate cycles; unset fields are not filtered on."""

    statuses: Sequence[str] = ()
    mode: Optional[str] = None
    start_at_or_before: Optional[datetime] = None
    end_at_or_before: Optional[datetime] = None
    midpoint_at_or_before: Optional[datetime] = None
    created_at_or_before: Optional[datetime] = None
    status_changed_at_or_before: Optional[datetime] = None
    session_status: Optional[str] = None
    session_scheduled_before: Optional[datetime] = None
    session_scheduled_at_or_before: Optional[datetime] = None
    session_scheduled_after: Optional[datetime] = None
    session_opened_before: Optional[datetime] = None
    # Name of a one-shot stamp column that must still be NULL
    stamp_unset: Optional[str] = None
    # Keyset pagination: only rows with a larger id
    id_after: Optional[int] = None


@runtime_checkable
class WillRepository(Protocol):
    """Repository interface for Will lifecycle access."""

    async def get(self, will_id: int) -> Optional[object]:
        """Fetch a fresh copy of the Will, or None."""
        ...

    async def find_cycles(
        self, criteria: CycleCriteria, limit: int
    ) -> List[object]:
        """Return at most *limit* Wills matching *criteria*, oldest first."""
        ...

    async def update_status(
        self, will_id: int, status: str, *, expected: str, now: datetime
    ) -> bool:
        """Set status only if it still equals *expected*; True if applied."""
        ...

    async def update_session_window(
        self, will_id: int, *, expected_status: object = ..., **fields
    ) -> bool:
        """Write session fields, guarded on the current session status when given.

        ``expected_status=None`` requires the session status to be NULL;
        omitting it applies the write unconditionally.
        """
        ...

    async def claim_stamp(self, will_id: int, field: str, value: datetime) -> bool:
        """Set *field* to *value* only if it is NULL; True if this call won."""
        ...

    async def count_participants(self, will_id: int) -> int: ...

    async def count_reviews(self, will_id: int) -> int: ...

    async def participant_ids(self, will_id: int) -> List[int]: ...

    async def circle_member_ids(self, circle_id: int) -> List[int]: ...

    async def list_commitments(self, will_id: int) -> List[object]: ...

    async def commitments_missing_review(self, will_id: int) -> List[object]: ...

    async def claim_review_reminder(self, commitment_id: int, now: datetime) -> bool:
        """Stamp the commitment's review reminder if unset; True if this call won."""
        ...

    async def claim_member_reminder(
        self, will_id: int, user_id: int, now: datetime
    ) -> bool:
        """Insert the (will, user) reminder row; False if it already exists."""
        ...
