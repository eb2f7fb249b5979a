"""
Notification transports.

TelegramNotificationTransport pushes to each user's Telegram chat.
LoggingNotificationTransport only logs (simulation mode, local runs).
"""

import html
import logging
from collections import deque
from typing import Awaitable, Callable, Deque, Dict, Iterable, List, Optional

from telegram import Bot
from telegram.error import TelegramError

from ..domain.errors import NotificationDeliveryError
from ..domain.ports import Notification

logger = logging.getLogger(__name__)

# Maps user IDs to Telegram chat IDs; users without a chat are left out
ChatIdLookup = Callable[[List[int]], Awaitable[Dict[int, Optional[int]]]]


def format_message(notification: Notification) -> str:
    return (
        f"<b>{html.escape(notification.title)}</b>\n"
        f"{html.escape(notification.body)}"
    )


class TelegramNotificationTransport:
    """Fan a notification out to users' Telegram chats.

    A failed send to one user is logged and does not stop the rest.
    """

    def __init__(self, bot: Bot, chat_id_lookup: ChatIdLookup) -> None:
        self._bot = bot
        self._lookup = chat_id_lookup

    async def send_to_users(
        self, user_ids: Iterable[int], notification: Notification
    ) -> None:
        ids = sorted(set(user_ids))
        if not ids:
            return

        chat_ids = await self._lookup(ids)
        text = format_message(notification)
        sent = 0
        failed = 0

        for user_id in ids:
            chat_id = chat_ids.get(user_id)
            if not chat_id:
                logger.debug(f"User {user_id} has no Telegram chat, skipping")
                continue
            try:
                await self._bot.send_message(
                    chat_id=chat_id, text=text, parse_mode="HTML"
                )
                sent += 1
            except TelegramError as e:
                failed += 1
                logger.warning(
                    f"Failed to send {notification.category} to user {user_id}: {e}"
                )

        logger.info(
            f"Sent {notification.category} to {sent}/{len(ids)} users"
            + (f" ({failed} failed)" if failed else "")
        )
        if failed and not sent:
            raise NotificationDeliveryError(
                f"{notification.category}: delivery failed for all {failed} recipients"
            )


class LoggingNotificationTransport:
    """Log instead of sending. Keeps the last *history* notifications for inspection."""

    def __init__(self, history: int = 500) -> None:
        self.sent: Deque[tuple] = deque(maxlen=history)

    async def send_to_users(
        self, user_ids: Iterable[int], notification: Notification
    ) -> None:
        ids = sorted(set(user_ids))
        self.sent.append((ids, notification))
        logger.info(
            f"[SIMULATED] {notification.category} -> users {ids}: "
            f"{notification.title} | {notification.body}"
        )


async def chat_ids_from_db(user_ids: List[int]) -> Dict[int, Optional[int]]:
    """ChatIdLookup reading users.telegram_chat_id."""
    from ..core.database import get_db_session
    from ..infrastructure.repositories import SqlAlchemyUserRepository

    async with get_db_session() as session:
        users = await SqlAlchemyUserRepository(session).get_many(user_ids)
        return {user_id: user.telegram_chat_id for user_id, user in users.items()}


def build_transport(settings, bot: Optional[Bot]):
    """Telegram delivery, or the logging transport when simulating or no bot exists."""
    if settings.notifications_simulate or bot is None:
        logger.warning("Notifications are simulated: messages will only be logged")
        return LoggingNotificationTransport()
    return TelegramNotificationTransport(bot, chat_ids_from_db)
