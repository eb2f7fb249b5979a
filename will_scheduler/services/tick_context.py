"""
Per-tick state shared by the driver, the session coordinator and the
notification scheduler: one database session, its repositories, the tick
time and the running summary.
"""

import logging
from collections import Counter
from contextlib import asynccontextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.repositories import CycleCriteria
from ..infrastructure.repositories import (
    SqlAlchemyUserRepository,
    SqlAlchemyWillRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class TickSummary:
    """Counters for one tick, logged on completion."""

    transitions: Counter = field(default_factory=Counter)
    sessions_opened: int = 0
    sessions_closed: int = 0
    sessions_scheduled: int = 0
    notifications: Counter = field(default_factory=Counter)
    errors: int = 0

    def record_transition(self, old: str, new: str) -> None:
        self.transitions[f"{old}->{new}"] += 1

    def record_sent(self, category: str, count: int = 1) -> None:
        self.notifications[category] += count

    def as_log_fields(self) -> Dict[str, Any]:
        return {
            "transitions": dict(self.transitions),
            "sessions_opened": self.sessions_opened,
            "sessions_closed": self.sessions_closed,
            "sessions_scheduled": self.sessions_scheduled,
            "notifications": dict(self.notifications),
            "errors": self.errors,
        }


@dataclass
class TickContext:
    session: AsyncSession
    now: datetime
    summary: TickSummary = field(default_factory=TickSummary)

    def __post_init__(self) -> None:
        self.wills = SqlAlchemyWillRepository(self.session)
        self.users = SqlAlchemyUserRepository(self.session)

    @asynccontextmanager
    async def guard(self, action: str, entity: str):
        """Contain a failure to one entity: log it, roll back, let the tick go on.

        ORM objects loaded before a rollback are expired, so callers iterate
        over ids or plain values and re-fetch inside the guard.
        """
        try:
            yield
        except Exception as e:
            self.summary.errors += 1
            logger.error(f"{action} failed for {entity}: {e}", exc_info=True)
            await self.session.rollback()


class CandidateBatches:
    """Capped candidate batches that rotate through every match across ticks.

    Each named query keeps a cursor at the last id it served. The next batch
    starts after it and wraps around to the lowest ids, so Wills that keep
    matching (waiting on reviews) cannot fill every batch tick after tick.
    """

    def __init__(self, limit: int) -> None:
        self.limit = limit
        self._cursors: Dict[str, Optional[int]] = {}

    async def next_batch(
        self, ctx: TickContext, key: str, criteria: CycleCriteria
    ) -> List[Any]:
        after = self._cursors.get(key)
        batch = await ctx.wills.find_cycles(
            replace(criteria, id_after=after), self.limit
        )
        if after is not None and len(batch) < self.limit:
            wrapped = await ctx.wills.find_cycles(
                replace(criteria, id_after=None), self.limit - len(batch)
            )
            batch.extend(w for w in wrapped if w.id <= after)

        # A short batch held every match; start from the lowest id next time
        self._cursors[key] = batch[-1].id if len(batch) == self.limit else None
        return batch

    async def all_matches(
        self, ctx: TickContext, criteria: CycleCriteria
    ) -> AsyncIterator[Any]:
        """Every match, paged by id within this tick."""
        last_id = None
        while True:
            page = await ctx.wills.find_cycles(
                replace(criteria, id_after=last_id), self.limit
            )
            for will in page:
                yield will
            if len(page) < self.limit:
                return
            last_id = page[-1].id
