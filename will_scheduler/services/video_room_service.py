"""
Daily.co video rooms for circle session windows.

One room per session window, created when the window opens and deleted
after it closes. Deletion is cleanup only and never raises.
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import httpx

from ..core.config import get_config_value, get_settings
from ..domain.errors import VideoRoomError
from ..domain.ports import VideoRoom

logger = logging.getLogger(__name__)


def room_name_from_url(url: str) -> str:
    """Daily room URLs end in the room name: https://team.daily.co/<name>."""
    path = urlparse(url).path.rstrip("/")
    return path.rsplit("/", 1)[-1] if path else url


def room_expiry(scheduled_start: datetime, duration_minutes: int, now: int) -> int:
    """Epoch seconds at which the room closes: the scheduled start plus the duration.

    A window opened so late that this has already passed gets the full
    duration from *now* instead, so the room is usable at all.
    """
    expires = int(scheduled_start.timestamp()) + duration_minutes * 60
    return expires if expires > now else now + duration_minutes * 60


class DailyVideoRoomProvider:
    """VideoRoomProvider backed by the Daily.co REST API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.daily.co/v1",
        timeout: Optional[float] = None,
        max_participants: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not api_key:
            raise ValueError("Daily.co API key is required")
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout or float(
            get_config_value("session.request_timeout_seconds", 10)
        )
        self.max_participants = max_participants or int(
            get_config_value("session.max_participants", 10)
        )
        self._transport = transport

    @classmethod
    def from_settings(cls) -> Optional["DailyVideoRoomProvider"]:
        """Build from environment settings, or None when no API key is configured."""
        settings = get_settings()
        if not settings.daily_api_key:
            logger.warning("DAILY_API_KEY not set: session windows will open without a room")
            return None
        return cls(settings.daily_api_key, settings.daily_api_url)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.api_key}"},
            transport=self._transport,
        )

    async def create_room(
        self, will_id: int, scheduled_start: datetime, duration_minutes: int
    ) -> VideoRoom:
        now = int(time.time())
        name = f"will-{will_id}-session-{now}"
        payload = {
            "name": name,
            "privacy": "public",
            "properties": {
                "start_video_off": False,
                "start_audio_off": False,
                "enable_chat": True,
                "enable_screenshare": True,
                "enable_recording": False,
                "enable_knocking": False,
                "enable_prejoin_ui": True,
                "max_participants": self.max_participants,
                "exp": room_expiry(scheduled_start, duration_minutes, now),
                "eject_at_room_exp": True,
                "eject_after_elapsed": duration_minutes * 60,
                "lang": "en",
            },
        }
        logger.info(
            f"Creating Daily room {name} for Will {will_id} "
            f"(scheduled {scheduled_start.isoformat()}, {duration_minutes} min)"
        )

        try:
            async with self._client() as client:
                response = await client.post("/rooms", json=payload)
        except httpx.HTTPError as e:
            raise VideoRoomError(f"Daily room creation failed: {e}") from e

        if response.status_code >= 400:
            raise VideoRoomError(
                f"Daily API error {response.status_code}: {response.text}"
            )

        room = response.json()
        url = room.get("url")
        if not url:
            raise VideoRoomError(f"Daily API returned no room URL: {room}")
        logger.info(f"Daily room created: {url}")
        return VideoRoom(name=room.get("name", name), url=url)

    async def delete_room(self, url: str) -> None:
        name = room_name_from_url(url)
        try:
            async with self._client() as client:
                response = await client.delete(f"/rooms/{name}")
            if response.status_code >= 400 and response.status_code != 404:
                logger.error(
                    f"Failed to delete Daily room {name}: "
                    f"{response.status_code} - {response.text}"
                )
        except httpx.HTTPError as e:
            logger.error(f"Failed to delete Daily room {name}: {e}")

    async def get_room_info(self, url: str) -> Optional[Dict[str, Any]]:
        name = room_name_from_url(url)
        try:
            async with self._client() as client:
                response = await client.get(f"/rooms/{name}")
        except httpx.HTTPError as e:
            raise VideoRoomError(f"Daily room lookup failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise VideoRoomError(
                f"Daily API error {response.status_code}: {response.text}"
            )
        return response.json()
