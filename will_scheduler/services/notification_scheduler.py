"""
Notification Scheduler.

Decides, per tick, which notifications are due and claims each one through
a conditional write before sending it. A lost claim means another tick
already owns that send, so it is skipped silently.

Categories and their dedup record:
- cycle_started, review_required, cycle_completed, midpoint: one-shot stamps on the Will
- session warnings: the one-minute bucket only matches once
- uncommitted_reminder: a member_reminders row per (Will, user)
- review_reminder: a stamp on the Commitment
- daily_reminder, motivational: the notification_ledger row, per user and local day
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import AsyncIterator, Dict, Iterable, List, Optional, Tuple

from ..core.config import get_config_value
from ..domain.ports import Notification, NotificationTransport
from ..domain.repositories import CycleCriteria
from ..models.reminder import NotificationCategory
from ..models.will import SessionStatus, WillMode, WillStatus
from ..utils.timezone import LocalTime, local_date, local_day_start_utc, local_time
from .notification_domain import (
    DEFAULT_MOTIVATIONAL_WINDOW,
    motivational_time,
    parse_hhmm,
    pre_session_bucket,
    render,
    short_cycle_window,
    within_window,
)
from .tick_context import CandidateBatches, TickContext

logger = logging.getLogger(__name__)

# (category, status the Will must be in, stamp claimed before sending)
ONE_SHOT_CATEGORIES = (
    ("cycle_started", WillStatus.ACTIVE.value, "started_notification_sent_at"),
    ("review_required", WillStatus.WILL_REVIEW.value, "completion_notification_sent_at"),
    ("cycle_completed", WillStatus.COMPLETED.value, "completed_notification_sent_at"),
)


@dataclass(frozen=True)
class _CycleWindow:
    start_at: datetime
    end_at: Optional[datetime]


@dataclass
class DailyCandidate:
    """What the time-of-day categories need to know about one user.

    Gathered from every active Will the user takes part in.
    """

    user_id: int
    title: str
    cycle_timezone: Optional[str] = None
    reminder_times: List[LocalTime] = field(default_factory=list)
    cycles: List[_CycleWindow] = field(default_factory=list)


class NotificationScheduler:
    def __init__(
        self, transport: NotificationTransport, batch_limit: Optional[int] = None
    ) -> None:
        self.transport = transport
        self.batch_limit = batch_limit or int(
            get_config_value("scheduler.batch_limit", 50)
        )
        self.batches = CandidateBatches(self.batch_limit)
        self.window_minutes = int(get_config_value("notifications.window_minutes", 5))
        self.pre_session_offsets = [
            int(m)
            for m in get_config_value(
                "notifications.pre_session_offsets_minutes", [1440, 15]
            )
        ]
        self.uncommitted_after = timedelta(
            hours=float(
                get_config_value("notifications.uncommitted_reminder_after_hours", 6)
            )
        )
        self.review_reminder_after = timedelta(
            hours=float(get_config_value("notifications.review_reminder_after_hours", 6))
        )
        window = get_config_value("notifications.motivational_window", {}) or {}
        self.motivational_window = (
            parse_hhmm(window.get("start")) or DEFAULT_MOTIVATIONAL_WINDOW[0],
            parse_hhmm(window.get("end")) or DEFAULT_MOTIVATIONAL_WINDOW[1],
        )
        self.default_timezone = get_config_value("timezone.default", "UTC")

    async def run_lifecycle_notifications(self, ctx: TickContext) -> None:
        """Every category except the pre-session warnings, in a fixed order."""
        await self.send_one_shot_notifications(ctx)
        await self.send_midpoint_notifications(ctx)
        await self.send_uncommitted_reminders(ctx)
        await self.send_review_reminders(ctx)
        await self.send_time_of_day_notifications(ctx)

    async def _send(
        self,
        ctx: TickContext,
        user_ids: Iterable[int],
        category: str,
        data: Optional[Dict] = None,
        **values,
    ) -> None:
        recipients = list(user_ids)
        if not recipients:
            return
        title, body = render(category, **values)
        await self.transport.send_to_users(
            recipients,
            Notification(title=title, body=body, category=category, data=data or {}),
        )
        ctx.summary.record_sent(category, len(recipients))

    # -- Cycle-level one-shot notifications --

    async def send_one_shot_notifications(self, ctx: TickContext) -> None:
        for category, status, stamp in ONE_SHOT_CATEGORIES:
            due = await self.batches.next_batch(
                ctx, category, CycleCriteria(statuses=(status,), stamp_unset=stamp)
            )
            for will_id in [w.id for w in due]:
                async with ctx.guard(category, f"Will {will_id}"):
                    await self._claim_and_notify_cycle(ctx, will_id, category, stamp)

    async def send_midpoint_notifications(self, ctx: TickContext) -> None:
        due = await self.batches.next_batch(
            ctx,
            "midpoint",
            CycleCriteria(
                statuses=(WillStatus.ACTIVE.value,),
                midpoint_at_or_before=ctx.now,
                stamp_unset="midpoint_notification_sent_at",
            ),
        )
        for will_id in [w.id for w in due]:
            async with ctx.guard("midpoint", f"Will {will_id}"):
                await self._claim_and_notify_cycle(
                    ctx, will_id, "midpoint", "midpoint_notification_sent_at"
                )

    async def _claim_and_notify_cycle(
        self, ctx: TickContext, will_id: int, category: str, stamp: str
    ) -> bool:
        if not await ctx.wills.claim_stamp(will_id, stamp, ctx.now):
            logger.debug(f"{category} for Will {will_id} already claimed")
            return False
        will = await ctx.wills.get(will_id)
        participants = await ctx.wills.participant_ids(will_id)
        await self._send(
            ctx,
            participants,
            category,
            data={"will_id": will_id},
            title=will.display_title(),
        )
        logger.info(f"Sent {category} for Will {will_id} to {len(participants)} users")
        return True

    # -- Pre-session warnings (light tick) --

    async def send_pre_session_warnings(self, ctx: TickContext) -> None:
        """Warn participants at fixed offsets before a pending session window.

        Only sessions inside this minute's bucket are queried, and all of them
        are paged through: a bucket missed now is gone by the next tick.
        """
        for offset in self.pre_session_offsets:
            after, at_or_before = pre_session_bucket(ctx.now, offset)
            criteria = CycleCriteria(
                mode=WillMode.CIRCLE.value,
                session_status=SessionStatus.PENDING.value,
                session_scheduled_after=after,
                session_scheduled_at_or_before=at_or_before,
            )
            due = [
                (w.id, w.session_scheduled_at)
                async for w in self.batches.all_matches(ctx, criteria)
            ]
            category = f"session_warning_{offset}"
            for will_id, scheduled_at in due:
                async with ctx.guard(category, f"Will {will_id}"):
                    await self._send_session_warning(
                        ctx, will_id, scheduled_at, offset, category
                    )

    async def _send_session_warning(
        self,
        ctx: TickContext,
        will_id: int,
        scheduled_at: datetime,
        offset: int,
        category: str,
    ) -> None:
        will = await ctx.wills.get(will_id)
        title = will.display_title()
        will_tz = will.timezone
        participants = await ctx.wills.participant_ids(will_id)
        users = await ctx.users.get_many(participants)

        # One message per distinct local session time
        by_local_time: Dict[str, List[int]] = {}
        for user_id in participants:
            user = users.get(user_id)
            tz_name = (user.timezone if user else None) or will_tz or self.default_timezone
            session_time = str(local_time(scheduled_at, tz_name))
            by_local_time.setdefault(session_time, []).append(user_id)

        for session_time, user_ids in by_local_time.items():
            await self._send(
                ctx,
                user_ids,
                category,
                data={"will_id": will_id, "minutes_before": offset},
                title=title,
                session_time=session_time,
            )

    # -- Per-member reminders --

    async def send_uncommitted_reminders(self, ctx: TickContext) -> None:
        """Nudge circle members who have not committed to a Will pending for a while."""
        stale = await self.batches.next_batch(
            ctx,
            "uncommitted_reminder",
            CycleCriteria(
                statuses=(WillStatus.PENDING.value,),
                mode=WillMode.CIRCLE.value,
                created_at_or_before=ctx.now - self.uncommitted_after,
            ),
        )
        for will_id, circle_id, title in [
            (w.id, w.circle_id, w.display_title()) for w in stale
        ]:
            if circle_id is None:
                continue
            async with ctx.guard("uncommitted_reminder", f"Will {will_id}"):
                members = await ctx.wills.circle_member_ids(circle_id)
                committed = set(await ctx.wills.participant_ids(will_id))
                for user_id in members:
                    if user_id in committed:
                        continue
                    if await ctx.wills.claim_member_reminder(will_id, user_id, ctx.now):
                        await self._send(
                            ctx,
                            [user_id],
                            "uncommitted_reminder",
                            data={"will_id": will_id},
                            title=title,
                        )

    async def send_review_reminders(self, ctx: TickContext) -> None:
        """Remind participants whose review is still missing a while into will_review."""
        waiting = await self.batches.next_batch(
            ctx,
            "review_reminder",
            CycleCriteria(
                statuses=(WillStatus.WILL_REVIEW.value,),
                status_changed_at_or_before=ctx.now - self.review_reminder_after,
            ),
        )
        for will_id, title in [(w.id, w.display_title()) for w in waiting]:
            async with ctx.guard("review_reminder", f"Will {will_id}"):
                missing = [
                    (c.id, c.user_id)
                    for c in await ctx.wills.commitments_missing_review(will_id)
                ]
                for commitment_id, user_id in missing:
                    if await ctx.wills.claim_review_reminder(commitment_id, ctx.now):
                        await self._send(
                            ctx,
                            [user_id],
                            "review_reminder",
                            data={"will_id": will_id},
                            title=title,
                        )

    # -- Per-user, per-local-day notifications --

    async def _active_cycle_ids(self, ctx: TickContext) -> AsyncIterator[int]:
        """All active Will ids, paged so no participant is left out."""
        criteria = CycleCriteria(statuses=(WillStatus.ACTIVE.value,))
        async for will in self.batches.all_matches(ctx, criteria):
            yield will.id

    async def collect_daily_candidates(self, ctx: TickContext) -> Dict[int, DailyCandidate]:
        """Participants of active Wills with their reminder times and cycle windows.

        A daily commitment's own check-in time wins over the Will's
        check-in/reminder time.
        """
        candidates: Dict[int, DailyCandidate] = {}
        will_ids = [will_id async for will_id in self._active_cycle_ids(ctx)]
        for will_id in will_ids:
            async with ctx.guard("daily candidates", f"Will {will_id}"):
                will = await ctx.wills.get(will_id)
                cycle_time = parse_hhmm(will.check_in_time) or parse_hhmm(
                    will.reminder_time
                )
                window = _CycleWindow(will.start_at, will.end_at)
                for commitment in await ctx.wills.list_commitments(will_id):
                    candidate = candidates.setdefault(
                        commitment.user_id,
                        DailyCandidate(
                            user_id=commitment.user_id,
                            title=will.display_title(),
                            cycle_timezone=will.timezone,
                        ),
                    )
                    personal = (
                        parse_hhmm(commitment.check_in_time)
                        if commitment.wants_daily_check_in()
                        else None
                    )
                    target = personal or cycle_time
                    if target is not None:
                        candidate.reminder_times.append(target)
                    candidate.cycles.append(window)
        return candidates

    async def send_time_of_day_notifications(self, ctx: TickContext) -> None:
        candidates = await self.collect_daily_candidates(ctx)
        if not candidates:
            return
        # Plain values only: a rollback further down would expire ORM objects
        users = {}
        for user in (await ctx.users.get_many(candidates.keys())).values():
            global_time = (
                user.daily_reminder_time if user.wants_daily_reminder() else None
            )
            users[user.id] = (user.timezone, global_time)

        for user_id, candidate in candidates.items():
            if user_id not in users:
                logger.warning(f"Participant {user_id} has no user record, skipping")
                continue
            user_tz, global_time = users[user_id]
            tz_name = user_tz or candidate.cycle_timezone or self.default_timezone

            async with ctx.guard("daily_reminder", f"user {user_id}"):
                await self._maybe_send_daily_reminder(ctx, candidate, tz_name, global_time)
            async with ctx.guard("motivational", f"user {user_id}"):
                await self._maybe_send_motivational(ctx, candidate, tz_name)

    async def _maybe_send_daily_reminder(
        self,
        ctx: TickContext,
        candidate: DailyCandidate,
        tz_name: str,
        global_time: Optional[str],
    ) -> bool:
        targets = list(candidate.reminder_times)
        if not targets and global_time:
            fallback = parse_hhmm(global_time)
            if fallback is not None:
                targets.append(fallback)
        if not targets:
            return False

        now_local = local_time(ctx.now, tz_name)
        if not any(within_window(now_local, t, self.window_minutes) for t in targets):
            return False

        category = NotificationCategory.DAILY_REMINDER.value
        claimed = await ctx.users.claim_daily_notification(
            candidate.user_id, category, ctx.now, local_day_start_utc(ctx.now, tz_name)
        )
        if not claimed:
            return False
        await self._send(ctx, [candidate.user_id], category, title=candidate.title)
        return True

    def motivational_window_for(
        self, candidate: DailyCandidate, tz_name: str
    ) -> Tuple[LocalTime, LocalTime]:
        """The user's own short cycle's window if they are in one, else the default."""
        for cycle in candidate.cycles:
            window = short_cycle_window(cycle.start_at, cycle.end_at, tz_name)
            if window is not None:
                return window
        return self.motivational_window

    async def _maybe_send_motivational(
        self, ctx: TickContext, candidate: DailyCandidate, tz_name: str
    ) -> bool:
        window = self.motivational_window_for(candidate, tz_name)
        slot = motivational_time(candidate.user_id, local_date(ctx.now, tz_name), window)
        if not within_window(local_time(ctx.now, tz_name), slot, self.window_minutes):
            return False

        category = NotificationCategory.MOTIVATIONAL.value
        claimed = await ctx.users.claim_daily_notification(
            candidate.user_id, category, ctx.now, local_day_start_utc(ctx.now, tz_name)
        )
        if not claimed:
            return False
        await self._send(ctx, [candidate.user_id], category, title=candidate.title)
        logger.info(f"Sent motivational message to user {candidate.user_id} at {slot}")
        return True
