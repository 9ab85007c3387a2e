"""
Pytest fixtures for test database, client, players and games.

Each test gets a fresh SQLite database file. The file (rather than an
in-memory database) gives every session its own connection, so tests can
interleave two sessions the way two API workers would.
"""

import os

os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["STALE_SWEEP_INTERVAL_SECONDS"] = "0"

from datetime import datetime, timedelta
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from pickup.main import app
from pickup.db.base import Base
from pickup.db.session import get_db
from pickup.models import GameEvent, GameParticipant, Player, Sport
from pickup.services.notifier import ChangeNotifier, set_change_notifier
from pickup.utils.datetime_utils import utcnow


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'pickup_test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB dependency with the test session."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def change_notifier():
    """A fresh in-process notifier per test, so no queue outlives its event loop."""
    notifier = ChangeNotifier()
    set_change_notifier(notifier)
    yield notifier
    set_change_notifier(None)


@pytest_asyncio.fixture
async def sport(db_session: AsyncSession) -> Sport:
    sport = Sport(name="Basketball", slug="basketball", icon="basketball")
    db_session.add(sport)
    await db_session.commit()
    await db_session.refresh(sport)
    return sport


@pytest_asyncio.fixture
async def make_player(db_session: AsyncSession):
    async def _make(username: str, push_token: Optional[str] = None) -> Player:
        player = Player(username=username, push_token=push_token)
        db_session.add(player)
        await db_session.commit()
        await db_session.refresh(player)
        return player
    return _make


@pytest_asyncio.fixture
async def creator(make_player) -> Player:
    return await make_player("organizer", push_token="ExponentPushToken[organizer]")


@pytest_asyncio.fixture
async def make_game(db_session: AsyncSession, sport: Sport, creator: Player):
    """
    Insert a game directly, bypassing create_game's time checks, with the
    creator plus `roster` already on it.
    """
    async def _make(
        min_players: int = 2,
        max_players: int = 6,
        scheduled_time: Optional[datetime] = None,
        status: str = "waiting",
        roster: tuple = (),
    ) -> GameEvent:
        game = GameEvent(
            sport_id=sport.id,
            creator_id=creator.id,
            min_players=min_players,
            max_players=max_players,
            scheduled_time=scheduled_time or utcnow() + timedelta(hours=2),
            time_type="precise",
            status=status,
            version=1,
        )
        db_session.add(game)
        await db_session.flush()
        for player in (creator, *roster):
            db_session.add(GameParticipant(game_id=game.id, player_id=player.id))
        await db_session.commit()
        await db_session.refresh(game)
        return game
    return _make
