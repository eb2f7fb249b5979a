"""
Session Window Coordinator.

Opens and closes the video session window nested in circle Wills.
Both moves are compare-and-set on session_status, so when several ticks
race only one of them provisions the room and announces it.
"""

import logging
from datetime import timedelta
from typing import List, Optional

from ..core.config import get_config_value
from ..domain.errors import CycleNotFound
from ..domain.ports import Notification, NotificationTransport, VideoRoomProvider
from ..domain.repositories import CycleCriteria
from ..models.will import SessionStatus, WillMode
from .notification_domain import render
from .tick_context import CandidateBatches, TickContext

logger = logging.getLogger(__name__)


class SessionWindowCoordinator:
    def __init__(
        self,
        transport: NotificationTransport,
        provider: Optional[VideoRoomProvider] = None,
        duration_minutes: Optional[int] = None,
        batch_limit: Optional[int] = None,
    ) -> None:
        self.transport = transport
        self.provider = provider
        self.duration_minutes = duration_minutes or int(
            get_config_value("session.duration_minutes", 30)
        )
        self.batch_limit = batch_limit or int(
            get_config_value("scheduler.batch_limit", 50)
        )
        self.batches = CandidateBatches(self.batch_limit)

    # -- Open --

    async def open_due(self, ctx: TickContext) -> List[int]:
        """Open every pending window whose scheduled start has passed."""
        due = await self.batches.next_batch(
            ctx,
            "open",
            CycleCriteria(
                mode=WillMode.CIRCLE.value,
                session_status=SessionStatus.PENDING.value,
                session_scheduled_before=ctx.now,
            ),
        )
        opened = []
        for will_id in [w.id for w in due]:
            async with ctx.guard("Session open", f"Will {will_id}"):
                if await self.open_window(ctx, will_id):
                    opened.append(will_id)
        return opened

    async def open_window(self, ctx: TickContext, will_id: int) -> bool:
        """Claim pending -> open, attach a room if possible, announce it.

        Returns False if another tick opened the window first.
        """
        claimed = await ctx.wills.update_session_window(
            will_id,
            expected_status=SessionStatus.PENDING.value,
            session_status=SessionStatus.OPEN.value,
            session_opened_at=ctx.now,
        )
        if not claimed:
            logger.debug(f"Session for Will {will_id} already opened elsewhere")
            return False

        will = await ctx.wills.get(will_id)
        if will is None:
            raise CycleNotFound(will_id)
        ctx.summary.sessions_opened += 1
        logger.info(f"Opened session window for Will {will_id}")

        url = will.session_url
        if not url:
            url = await self._provision_room(ctx, will)

        participants = await ctx.wills.participant_ids(will_id)
        if participants:
            title, body = render("session_live", title=will.display_title())
            await self.transport.send_to_users(
                participants,
                Notification(
                    title=title,
                    body=body,
                    category="session_live",
                    data={"will_id": will_id, "session_url": url},
                ),
            )
            ctx.summary.record_sent("session_live", len(participants))
        return True

    async def _provision_room(self, ctx: TickContext, will) -> Optional[str]:
        if self.provider is None:
            logger.warning(f"No video provider configured; Will {will.id} opens without a room")
            return None
        try:
            room = await self.provider.create_room(
                will.id, will.session_scheduled_at, self.duration_minutes
            )
        except Exception as e:
            # The window opens regardless; participants just get no link
            logger.error(f"Video room creation failed for Will {will.id}: {e}")
            return None

        await ctx.wills.update_session_window(
            will.id, expected_status=SessionStatus.OPEN.value, session_url=room.url
        )
        return room.url

    # -- Close --

    async def close_due(self, ctx: TickContext) -> List[int]:
        """Close every open window that has run its full duration."""
        due = await self.batches.next_batch(
            ctx,
            "close",
            CycleCriteria(
                mode=WillMode.CIRCLE.value,
                session_status=SessionStatus.OPEN.value,
                session_opened_before=ctx.now - timedelta(minutes=self.duration_minutes),
            ),
        )
        closed = []
        for will_id in [w.id for w in due]:
            async with ctx.guard("Session close", f"Will {will_id}"):
                if await self.close_window(ctx, will_id):
                    closed.append(will_id)
        return closed

    async def close_window(self, ctx: TickContext, will_id: int) -> bool:
        """Claim open -> completed, then tear down the room best-effort."""
        claimed = await ctx.wills.update_session_window(
            will_id,
            expected_status=SessionStatus.OPEN.value,
            session_status=SessionStatus.COMPLETED.value,
        )
        if not claimed:
            return False

        ctx.summary.sessions_closed += 1
        logger.info(f"Closed session window for Will {will_id}")

        will = await ctx.wills.get(will_id)
        if will is not None and will.session_url and self.provider is not None:
            try:
                await self.provider.delete_room(will.session_url)
            except Exception as e:
                logger.warning(f"Room cleanup failed for Will {will_id}: {e}")
        return True
