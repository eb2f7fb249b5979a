"""UserRepository protocol: user lookup and per-day dedup claims."""

from datetime import datetime
from typing import Dict, Iterable, Protocol, runtime_checkable


@runtime_checkable
class UserRepository(Protocol):
    """Repository interface for User entity access."""

    async def get_many(self, user_ids: Iterable[int]) -> Dict[int, object]:
        """Look up several users at once, keyed by ID. Missing IDs are omitted."""
        ...

    async def claim_daily_notification(
        self, user_id: int, category: str, now: datetime, local_day_start: datetime
    ) -> bool:
        """Record a send for *category* unless one happened since *local_day_start*.

        Args:
            user_id: Recipient.
            category: NotificationCategory value.
            now: Send time (UTC).
            local_day_start: Start of the user's current local day, in UTC.

        Returns:
            True if this call claimed today's send, False if already sent.
        """
        ...
