"""SQLAlchemy implementation of UserRepository."""

import logging
from datetime import datetime
from typing import Dict, Iterable

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ...models.reminder import NotificationLedger
from ...models.user import User
from ._dialect import insert_ignoring_conflicts

logger = logging.getLogger(__name__)


class SqlAlchemyUserRepository:
    """Concrete UserRepository backed by SQLAlchemy async sessions."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_many(self, user_ids: Iterable[int]) -> Dict[int, User]:
        ids = list(set(user_ids))
        if not ids:
            return {}
        result = await self._session.execute(select(User).where(User.id.in_(ids)))
        return {user.id: user for user in result.scalars().all()}

    async def claim_daily_notification(
        self, user_id: int, category: str, now: datetime, local_day_start: datetime
    ) -> bool:
        # Make sure the ledger row exists, then claim it with one UPDATE
        await self._session.execute(
            insert_ignoring_conflicts(self._session, NotificationLedger).values(
                user_id=user_id, category=category, last_sent_at=None
            )
        )
        result = await self._session.execute(
            update(NotificationLedger)
            .where(
                NotificationLedger.user_id == user_id,
                NotificationLedger.category == category,
                or_(
                    NotificationLedger.last_sent_at.is_(None),
                    NotificationLedger.last_sent_at < local_day_start,
                ),
            )
            .values(last_sent_at=now)
            .execution_options(synchronize_session=False)
        )
        await self._session.commit()
        claimed = result.rowcount == 1
        if not claimed:
            logger.debug(f"{category} already sent today for user {user_id}")
        return claimed
