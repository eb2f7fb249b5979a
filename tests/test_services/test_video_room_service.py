"""Tests for the Daily.co video room provider, using httpx.MockTransport."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from will_scheduler.domain.errors import VideoRoomError
from will_scheduler.services.video_room_service import (
    DailyVideoRoomProvider,
    room_expiry,
    room_name_from_url,
)

START = datetime(2025, 3, 10, 13, 0, tzinfo=timezone.utc)


def provider_with(handler):
    return DailyVideoRoomProvider(
        "test-key",
        "https://api.daily.test/v1",
        timeout=5,
        max_participants=8,
        transport=httpx.MockTransport(handler),
    )


def test_room_name_from_url():
    assert room_name_from_url("https://team.daily.co/will-7-session-1") == "will-7-session-1"
    assert room_name_from_url("https://team.daily.co/will-7-session-1/") == "will-7-session-1"


def test_expiry_is_anchored_at_the_scheduled_start():
    start_ts = int(START.timestamp())
    opened = start_ts + 40
    assert room_expiry(START, 30, opened) == start_ts + 30 * 60


def test_late_open_gets_the_full_duration_from_now():
    opened = int(START.timestamp()) + 2 * 3600
    assert room_expiry(START, 30, opened) == opened + 30 * 60


def test_api_key_required():
    with pytest.raises(ValueError):
        DailyVideoRoomProvider("")


def test_from_settings_without_key_returns_none():
    assert DailyVideoRoomProvider.from_settings() is None


class TestCreateRoom:
    @pytest.mark.asyncio
    async def test_creates_room_sized_to_the_window(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"name": seen["body"]["name"], "url": "https://team.daily.co/abc"},
            )

        room = await provider_with(handler).create_room(7, START, 30)

        assert room.url == "https://team.daily.co/abc"
        assert seen["method"] == "POST"
        assert seen["path"] == "/v1/rooms"
        assert seen["auth"] == "Bearer test-key"
        body = seen["body"]
        assert body["name"].startswith("will-7-session-")
        props = body["properties"]
        assert props["max_participants"] == 8
        assert props["eject_after_elapsed"] == 30 * 60
        assert props["eject_at_room_exp"] is True
        assert props["exp"] > 0

    @pytest.mark.asyncio
    async def test_api_error_raises(self):
        provider = provider_with(lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(VideoRoomError, match="500"):
            await provider.create_room(7, START, 30)

    @pytest.mark.asyncio
    async def test_missing_url_raises(self):
        provider = provider_with(lambda request: httpx.Response(200, json={"name": "x"}))
        with pytest.raises(VideoRoomError):
            await provider.create_room(7, START, 30)

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        with pytest.raises(VideoRoomError):
            await provider_with(handler).create_room(7, START, 30)


class TestDeleteRoom:
    @pytest.mark.asyncio
    async def test_deletes_by_room_name(self):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            return httpx.Response(200, json={"deleted": True})

        await provider_with(handler).delete_room("https://team.daily.co/will-7-session-1")

        assert calls == [("DELETE", "/v1/rooms/will-7-session-1")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 500])
    async def test_errors_are_swallowed(self, status):
        provider = provider_with(lambda request: httpx.Response(status))
        await provider.delete_room("https://team.daily.co/gone")

    @pytest.mark.asyncio
    async def test_network_error_is_swallowed(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        await provider_with(handler).delete_room("https://team.daily.co/slow")


class TestRoomInfo:
    @pytest.mark.asyncio
    async def test_returns_metadata(self):
        provider = provider_with(
            lambda request: httpx.Response(200, json={"name": "abc", "privacy": "public"})
        )
        info = await provider.get_room_info("https://team.daily.co/abc")
        assert info == {"name": "abc", "privacy": "public"}

    @pytest.mark.asyncio
    async def test_missing_room_is_none(self):
        provider = provider_with(lambda request: httpx.Response(404))
        assert await provider.get_room_info("https://team.daily.co/abc") is None

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        provider = provider_with(lambda request: httpx.Response(503))
        with pytest.raises(VideoRoomError):
            await provider.get_room_info("https://team.daily.co/abc")
