import logging
import logging.handlers
import os
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Set test environment variables
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["TELEGRAM_BOT_TOKEN"] = "test:token"
os.environ["NOTIFICATIONS_SIMULATE"] = "true"
os.environ.pop("DAILY_API_KEY", None)

from will_scheduler.models import (  # noqa: E402
    Base,
    CircleMember,
    Commitment,
    Review,
    User,
    Will,
)
from will_scheduler.services.notification_transport import (  # noqa: E402
    LoggingNotificationTransport,
)

# Fixed tick time used across scenario tests
NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _strip_file_handlers():
    """Remove file handlers from root logger so tests never write to logs/app.log."""
    root = logging.getLogger()
    saved = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    for h in saved:
        root.removeHandler(h)
    yield
    for h in list(root.handlers):
        if isinstance(h, logging.FileHandler):
            root.removeHandler(h)
    for h in saved:
        root.addHandler(h)


@pytest.fixture
async def async_engine(tmp_path):
    """File-backed SQLite so several sessions can race on the same rows."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'will_scheduler.db'}", echo=False
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def async_session(session_factory):
    async with session_factory() as session:
        yield session


class Seeder:
    """Inserts rows through a private session and returns their ids."""

    def __init__(self, session_factory) -> None:
        self._factory = session_factory

    async def _add(self, obj):
        async with self._factory() as session:
            session.add(obj)
            await session.commit()
            return obj.id

    async def user(self, user_id: int, tz: Optional[str] = "UTC", **fields) -> int:
        fields.setdefault("telegram_chat_id", 1000 + user_id)
        return await self._add(User(id=user_id, timezone=tz, **fields))

    async def will(self, **fields) -> int:
        fields.setdefault("mode", "circle")
        fields.setdefault("circle_id", 1 if fields["mode"] == "circle" else None)
        fields.setdefault("start_at", NOW - timedelta(days=1))
        fields.setdefault("status", "pending")
        fields.setdefault("title", "Morning runs")
        return await self._add(Will(**fields))

    async def commitment(self, will_id: int, user_id: int, **fields) -> int:
        fields.setdefault("what", "Run 5k")
        return await self._add(Commitment(will_id=will_id, user_id=user_id, **fields))

    async def review(self, will_id: int, user_id: int) -> int:
        return await self._add(Review(will_id=will_id, user_id=user_id, reflection="Done"))

    async def member(self, circle_id: int, user_id: int) -> int:
        return await self._add(CircleMember(circle_id=circle_id, user_id=user_id))

    async def get_will(self, will_id: int) -> Will:
        async with self._factory() as session:
            return await session.get(Will, will_id)

    async def get_commitment(self, commitment_id: int) -> Commitment:
        async with self._factory() as session:
            return await session.get(Commitment, commitment_id)


@pytest.fixture
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture
def transport():
    """Simulated transport that records every notification."""
    return LoggingNotificationTransport()

