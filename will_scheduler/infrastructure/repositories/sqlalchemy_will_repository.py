"""SQLAlchemy implementation of WillRepository."""

import logging
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import and_, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...domain.errors import InvalidTransition
from ...domain.repositories import CycleCriteria
from ...models.commitment import Commitment, Review
from ...models.reminder import MemberReminder
from ...models.will import CircleMember, Will, status_rank
from ._dialect import insert_ignoring_conflicts

logger = logging.getLogger(__name__)

# One-shot notification stamps that may be claimed through claim_stamp()
STAMP_FIELDS = frozenset(
    {
        "started_notification_sent_at",
        "midpoint_notification_sent_at",
        "completion_notification_sent_at",
        "completed_notification_sent_at",
    }
)

SESSION_FIELDS = frozenset(
    {"session_scheduled_at", "session_opened_at", "session_status", "session_url"}
)

# Sentinel: do not guard session updates on the current session status
_ANY = object()


class SqlAlchemyWillRepository:
    """Concrete WillRepository backed by SQLAlchemy async sessions.

    Mutations commit immediately: a claim only counts once it is durable.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    # -- Reads --

    async def get(self, will_id: int) -> Optional[Will]:
        return await self._session.get(Will, will_id, populate_existing=True)

    async def find_cycles(self, criteria: CycleCriteria, limit: int) -> List[Will]:
        conditions = []
        if criteria.statuses:
            conditions.append(Will.status.in_(list(criteria.statuses)))
        if criteria.mode is not None:
            conditions.append(Will.mode == criteria.mode)
        if criteria.start_at_or_before is not None:
            conditions.append(Will.start_at <= criteria.start_at_or_before)
        if criteria.end_at_or_before is not None:
            conditions.append(Will.end_at.is_not(None))
            conditions.append(Will.end_at <= criteria.end_at_or_before)
        if criteria.midpoint_at_or_before is not None:
            conditions.append(Will.midpoint_at.is_not(None))
            conditions.append(Will.midpoint_at <= criteria.midpoint_at_or_before)
        if criteria.created_at_or_before is not None:
            conditions.append(Will.created_at <= criteria.created_at_or_before)
        if criteria.status_changed_at_or_before is not None:
            changed_at = func.coalesce(Will.status_changed_at, Will.end_at)
            conditions.append(changed_at <= criteria.status_changed_at_or_before)
        if criteria.session_status is not None:
            conditions.append(Will.session_status == criteria.session_status)
        if criteria.session_scheduled_before is not None:
            conditions.append(Will.session_scheduled_at < criteria.session_scheduled_before)
        if criteria.session_scheduled_at_or_before is not None:
            conditions.append(
                Will.session_scheduled_at <= criteria.session_scheduled_at_or_before
            )
        if criteria.session_scheduled_after is not None:
            conditions.append(Will.session_scheduled_at > criteria.session_scheduled_after)
        if criteria.session_opened_before is not None:
            conditions.append(Will.session_opened_at < criteria.session_opened_before)
        if criteria.id_after is not None:
            conditions.append(Will.id > criteria.id_after)
        if criteria.stamp_unset is not None:
            conditions.append(self._stamp_column(criteria.stamp_unset).is_(None))

        stmt = (
            select(Will)
            .where(and_(*conditions))
            .order_by(Will.id)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count_participants(self, will_id: int) -> int:
        result = await self._session.execute(
            select(func.count(Commitment.id)).where(Commitment.will_id == will_id)
        )
        return result.scalar() or 0

    async def count_reviews(self, will_id: int) -> int:
        """Count reviews from participants only; strays do not satisfy the gate."""
        participants = select(Commitment.user_id).where(Commitment.will_id == will_id)
        result = await self._session.execute(
            select(func.count(func.distinct(Review.user_id))).where(
                Review.will_id == will_id, Review.user_id.in_(participants)
            )
        )
        return result.scalar() or 0

    async def participant_ids(self, will_id: int) -> List[int]:
        result = await self._session.execute(
            select(Commitment.user_id)
            .where(Commitment.will_id == will_id)
            .order_by(Commitment.user_id)
        )
        return list(result.scalars().all())

    async def circle_member_ids(self, circle_id: int) -> List[int]:
        result = await self._session.execute(
            select(CircleMember.user_id)
            .where(CircleMember.circle_id == circle_id)
            .order_by(CircleMember.user_id)
        )
        return list(result.scalars().all())

    async def list_commitments(self, will_id: int) -> List[Commitment]:
        result = await self._session.execute(
            select(Commitment)
            .where(Commitment.will_id == will_id)
            .order_by(Commitment.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def commitments_missing_review(self, will_id: int) -> List[Commitment]:
        reviewed = exists().where(
            Review.will_id == Commitment.will_id, Review.user_id == Commitment.user_id
        )
        result = await self._session.execute(
            select(Commitment)
            .where(Commitment.will_id == will_id, ~reviewed)
            .order_by(Commitment.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # -- Conditional writes --

    async def update_status(
        self, will_id: int, status: str, *, expected: str, now: datetime
    ) -> bool:
        if status_rank(status) <= status_rank(expected):
            raise InvalidTransition(expected, status)

        result = await self._session.execute(
            update(Will)
            .where(Will.id == will_id, Will.status == expected)
            .values(status=status, status_changed_at=now)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        applied = result.rowcount == 1
        if not applied:
            logger.debug(
                f"Status update {expected} -> {status} for Will {will_id} lost the race"
            )
        return applied

    async def update_session_window(
        self, will_id: int, *, expected_status: Any = _ANY, **fields
    ) -> bool:
        unknown = set(fields) - SESSION_FIELDS
        if unknown:
            raise ValueError(f"Not session window fields: {sorted(unknown)}")
        if not fields:
            return False

        conditions = [Will.id == will_id]
        if expected_status is None:
            conditions.append(Will.session_status.is_(None))
        elif expected_status is not _ANY:
            conditions.append(Will.session_status == expected_status)

        result = await self._session.execute(
            update(Will)
            .where(*conditions)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        return result.rowcount == 1

    async def claim_stamp(self, will_id: int, field: str, value: datetime) -> bool:
        column = self._stamp_column(field)
        result = await self._session.execute(
            update(Will)
            .where(Will.id == will_id, column.is_(None))
            .values({field: value})
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        return result.rowcount == 1

    async def claim_review_reminder(self, commitment_id: int, now: datetime) -> bool:
        result = await self._session.execute(
            update(Commitment)
            .where(
                Commitment.id == commitment_id,
                Commitment.review_reminder_sent_at.is_(None),
            )
            .values(review_reminder_sent_at=now)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        return result.rowcount == 1

    async def claim_member_reminder(
        self, will_id: int, user_id: int, now: datetime
    ) -> bool:
        stmt = insert_ignoring_conflicts(self._session, MemberReminder).values(
            will_id=will_id, user_id=user_id, sent_at=now
        )
        result = await self._session.execute(stmt)
        await self._session.commit()
        return result.rowcount == 1

    @staticmethod
    def _stamp_column(field: str):
        if field not in STAMP_FIELDS:
            raise ValueError(f"Not a claimable stamp: {field}")
        return getattr(Will, field)
