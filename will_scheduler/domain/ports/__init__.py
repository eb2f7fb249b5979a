"""Domain port protocols for decoupling the scheduler from infrastructure."""

from .notification_transport import Notification, NotificationTransport
from .video_room_provider import VideoRoom, VideoRoomProvider

__all__ = ["Notification", "NotificationTransport", "VideoRoom", "VideoRoomProvider"]
