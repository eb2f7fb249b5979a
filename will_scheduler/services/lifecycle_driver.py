"""
Lifecycle Driver.

Two periodic ticks:
- run_lifecycle_tick: status transitions, session windows, then every
  notification category except the pre-session warnings
- run_session_warning_tick: only the pre-session warnings, kept apart so
  the heavy tick's latency cannot push them out of their one-minute bucket

Ticks may overlap, in one process or across several. Every write is a
conditional update, so overlapping ticks never double-apply anything.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from ..core.config import get_config_value
from ..core.database import get_db_session
from ..domain.errors import CycleNotFound
from ..domain.repositories import CycleCriteria
from ..models.base import utcnow
from ..models.will import SessionStatus, WillStatus
from ..utils.logging import TickLogContext
from .lifecycle_domain import (
    CycleSnapshot,
    auto_session_time,
    is_valid_session_time,
    next_state,
)
from .notification_scheduler import NotificationScheduler
from .session_window import SessionWindowCoordinator
from .tick_context import CandidateBatches, TickContext, TickSummary

logger = logging.getLogger(__name__)


class LifecycleDriver:
    """Advances Wills through their lifecycle on each tick."""

    def __init__(
        self,
        coordinator: SessionWindowCoordinator,
        notifier: NotificationScheduler,
        session_factory: Optional[Callable] = None,
        batch_limit: Optional[int] = None,
        auto_schedule_sessions: Optional[bool] = None,
    ) -> None:
        self.coordinator = coordinator
        self.notifier = notifier
        # Anything usable as `async with session_factory() as session`
        self.session_factory = session_factory or get_db_session
        self.batch_limit = batch_limit or int(
            get_config_value("scheduler.batch_limit", 50)
        )
        self.batches = CandidateBatches(self.batch_limit)
        if auto_schedule_sessions is None:
            auto_schedule_sessions = bool(
                get_config_value("session.auto_schedule", False)
            )
        self.auto_schedule_sessions = auto_schedule_sessions
        self.session_offset_minutes = int(
            get_config_value("session.auto_schedule_offset_minutes", 60)
        )
        self.max_session_delay_hours = int(
            get_config_value("session.max_schedule_delay_hours", 48)
        )

    # -- Ticks --

    async def run_lifecycle_tick(self, now: Optional[datetime] = None) -> TickSummary:
        now = now or utcnow()
        with TickLogContext("lifecycle", now=now.isoformat()) as log_ctx:
            async with self.session_factory() as session:
                ctx = TickContext(session=session, now=now)
                await self.advance_cycles(ctx)
                await self.run_session_windows(ctx)
                await self.notifier.run_lifecycle_notifications(ctx)
            log_ctx.summary.update(ctx.summary.as_log_fields())
        return ctx.summary

    async def run_session_warning_tick(
        self, now: Optional[datetime] = None
    ) -> TickSummary:
        now = now or utcnow()
        with TickLogContext("session_warning", now=now.isoformat()) as log_ctx:
            async with self.session_factory() as session:
                ctx = TickContext(session=session, now=now)
                await self.notifier.send_pre_session_warnings(ctx)
            log_ctx.summary.update(ctx.summary.as_log_fields())
        return ctx.summary

    # -- Transitions --

    async def _candidate_ids(self, ctx: TickContext) -> List[int]:
        """Ids of Wills some transition rule may apply to, each batch capped and rotated."""
        queries = {
            "started": CycleCriteria(
                statuses=(WillStatus.PENDING.value, WillStatus.SCHEDULED.value),
                start_at_or_before=ctx.now,
            ),
            "ended": CycleCriteria(
                statuses=(WillStatus.ACTIVE.value, WillStatus.SCHEDULED.value),
                end_at_or_before=ctx.now,
            ),
            "legacy": CycleCriteria(statuses=(WillStatus.WAITING_FOR_END_ROOM.value,)),
            "review": CycleCriteria(statuses=(WillStatus.WILL_REVIEW.value,)),
        }
        ids: List[int] = []
        for key, criteria in queries.items():
            for will in await self.batches.next_batch(ctx, key, criteria):
                if will.id not in ids:
                    ids.append(will.id)
        return ids

    async def advance_cycles(self, ctx: TickContext) -> None:
        for will_id in await self._candidate_ids(ctx):
            async with ctx.guard("Transition", f"Will {will_id}"):
                await self.advance_cycle(ctx, will_id)

    async def advance_cycle(
        self, ctx: TickContext, will_id: int, session_status: Optional[str] = None
    ) -> Optional[str]:
        """Apply the transition rules to one Will; return the new status if it moved.

        Counts are taken fresh: reviews arrive between ticks.
        """
        will = await ctx.wills.get(will_id)
        if will is None:
            raise CycleNotFound(will_id)

        snapshot = CycleSnapshot.of(will)
        participants = reviews = 0
        if snapshot.status == WillStatus.WILL_REVIEW.value:
            participants = await ctx.wills.count_participants(will_id)
            reviews = await ctx.wills.count_reviews(will_id)

        target = next_state(snapshot, ctx.now, participants, reviews, session_status)
        if target is None:
            return None

        applied = await ctx.wills.update_status(
            will_id, target, expected=snapshot.status, now=ctx.now
        )
        if not applied:
            return None

        ctx.summary.record_transition(snapshot.status, target)
        logger.info(f"Will {will_id}: {snapshot.status} -> {target}")

        if target == WillStatus.WILL_REVIEW.value and self.auto_schedule_sessions:
            await self._schedule_session(ctx, will_id)
        return target

    async def _schedule_session(self, ctx: TickContext, will_id: int) -> bool:
        """Give a circle Will that ended without a session window a default one."""
        will = await ctx.wills.get(will_id)
        if not will.is_circle() or will.session_scheduled_at or will.end_at is None:
            return False

        proposed = auto_session_time(will.end_at, self.session_offset_minutes)
        if not is_valid_session_time(
            will.end_at, proposed, self.max_session_delay_hours
        ):
            logger.warning(
                f"Session time {proposed.isoformat()} for Will {will_id} is out of range"
            )
            return False

        scheduled = await ctx.wills.update_session_window(
            will_id,
            expected_status=None,
            session_scheduled_at=proposed,
            session_status=SessionStatus.PENDING.value,
        )
        if scheduled:
            ctx.summary.sessions_scheduled += 1
            logger.info(f"Scheduled session for Will {will_id} at {proposed.isoformat()}")
        return scheduled

    # -- Session windows --

    async def run_session_windows(self, ctx: TickContext) -> None:
        await self.coordinator.open_due(ctx)
        closed = await self.coordinator.close_due(ctx)
        # Closing the window may be the last thing completion was waiting on
        for will_id in closed:
            async with ctx.guard("Completion check", f"Will {will_id}"):
                await self.advance_cycle(
                    ctx, will_id, session_status=SessionStatus.COMPLETED.value
                )
