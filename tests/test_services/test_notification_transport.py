"""Tests for the Telegram and logging notification transports."""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from telegram.error import TelegramError

from will_scheduler.domain.errors import NotificationDeliveryError
from will_scheduler.domain.ports import Notification, NotificationTransport
from will_scheduler.services.notification_transport import (
    LoggingNotificationTransport,
    TelegramNotificationTransport,
    build_transport,
    format_message,
)

NOTE = Notification(title="Session <live>", body="Join & reflect", category="session_live")


def lookup_from(mapping):
    async def lookup(user_ids):
        return {user_id: mapping.get(user_id) for user_id in user_ids}

    return lookup


def test_format_message_escapes_html():
    assert format_message(NOTE) == "<b>Session &lt;live&gt;</b>\nJoin &amp; reflect"


def test_transports_satisfy_the_port():
    bot = AsyncMock()
    assert isinstance(LoggingNotificationTransport(), NotificationTransport)
    assert isinstance(TelegramNotificationTransport(bot, lookup_from({})), NotificationTransport)


class TestTelegramTransport:
    @pytest.mark.asyncio
    async def test_sends_to_each_chat(self):
        bot = AsyncMock()
        transport = TelegramNotificationTransport(bot, lookup_from({1: 101, 2: 102}))

        await transport.send_to_users([2, 1, 2], NOTE)

        chats = [call.kwargs["chat_id"] for call in bot.send_message.await_args_list]
        assert chats == [101, 102]
        assert bot.send_message.await_args.kwargs["parse_mode"] == "HTML"

    @pytest.mark.asyncio
    async def test_users_without_chat_are_skipped(self):
        bot = AsyncMock()
        transport = TelegramNotificationTransport(bot, lookup_from({1: 101}))

        await transport.send_to_users([1, 2], NOTE)

        assert bot.send_message.await_count == 1

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_the_rest(self):
        bot = AsyncMock()
        bot.send_message.side_effect = [TelegramError("blocked"), None]
        transport = TelegramNotificationTransport(bot, lookup_from({1: 101, 2: 102}))

        await transport.send_to_users([1, 2], NOTE)

        assert bot.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_total_failure_raises(self):
        bot = AsyncMock()
        bot.send_message.side_effect = TelegramError("network")
        transport = TelegramNotificationTransport(bot, lookup_from({1: 101, 2: 102}))

        with pytest.raises(NotificationDeliveryError):
            await transport.send_to_users([1, 2], NOTE)

    @pytest.mark.asyncio
    async def test_empty_recipients_is_a_no_op(self):
        bot = AsyncMock()
        transport = TelegramNotificationTransport(bot, lookup_from({}))

        await transport.send_to_users([], NOTE)

        bot.send_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_logging_transport_records_sends():
    transport = LoggingNotificationTransport()
    await transport.send_to_users([3, 1], NOTE)
    assert list(transport.sent) == [([1, 3], NOTE)]


@pytest.mark.asyncio
async def test_logging_transport_history_is_bounded():
    transport = LoggingNotificationTransport(history=2)
    for user_id in (1, 2, 3):
        await transport.send_to_users([user_id], NOTE)
    assert [ids for ids, _ in transport.sent] == [[2], [3]]


def test_build_transport_simulated():
    settings = SimpleNamespace(notifications_simulate=True)
    assert isinstance(build_transport(settings, AsyncMock()), LoggingNotificationTransport)


def test_build_transport_without_bot():
    settings = SimpleNamespace(notifications_simulate=False)
    assert isinstance(build_transport(settings, None), LoggingNotificationTransport)


def test_build_transport_with_bot():
    settings = SimpleNamespace(notifications_simulate=False)
    assert isinstance(build_transport(settings, AsyncMock()), TelegramNotificationTransport)
