"""VideoRoomProvider port -- abstracts the hosted video-room service."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class VideoRoom:
    name: str
    url: str


@runtime_checkable
class VideoRoomProvider(Protocol):
    """Creates and tears down rooms for session windows."""

    async def create_room(
        self, will_id: int, scheduled_start: datetime, duration_minutes: int
    ) -> VideoRoom:
        """Create a room sized to *duration_minutes*; raise on failure."""
        ...

    async def delete_room(self, url: str) -> None:
        """Best-effort deletion of the room behind *url*."""
        ...

    async def get_room_info(self, url: str) -> Optional[Dict[str, Any]]:
        """Return provider metadata for the room, or None if it is gone."""
        ...
