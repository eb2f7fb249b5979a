"""NotificationTransport port -- abstracts pushing a message to users."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Protocol, runtime_checkable


@dataclass(frozen=True)
class Notification:
    """A rendered notification ready for delivery."""

    title: str
    body: str
    category: str
    data: Dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class NotificationTransport(Protocol):
    """Fire-and-forget delivery to a set of users."""

    async def send_to_users(
        self, user_ids: Iterable[int], notification: Notification
    ) -> None:
        """Deliver *notification* to every user in *user_ids*."""
        ...
