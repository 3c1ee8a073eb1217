"""Shared test fixtures.

DB-backed tests run against in-memory SQLite on one shared connection; the
schema is created from the ORM metadata for every test.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from unittest.mock import AsyncMock

os.environ.setdefault("DG_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("DG_JWT_SECRET", "test-secret-key-with-at-least-32-bytes")
os.environ.setdefault("DG_LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from dgames.auth.jwt import create_access_token
from dgames.config import PlatformPolicy, get_settings
from dgames.database import get_session
from dgames.db.base import Base
from dgames.db.models import DailyChallenge, Game, Player, User
from dgames.dependencies import get_policy, get_redis_dep
from dgames.gamification.calendar import local_today
from dgames.gamification.seed import seed_achievements, seed_games
from dgames.players.service import get_or_create_player

TEST_TZ = "America/Denver"

CIPHER = dict(zip("ABCDEFGHIJKLMNOPQRSTUVWXYZ", "QWERTYUIOPASDFGHJKLZXCVBNM"))


@pytest.fixture
def policy() -> PlatformPolicy:
    return PlatformPolicy(timezone=TEST_TZ)


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def redis_mock() -> AsyncMock:
    """Stand-in for the Redis page cache: always a miss."""
    redis = AsyncMock()
    redis.get.return_value = None
    return redis


@pytest_asyncio.fixture
async def games(db_session: AsyncSession) -> dict[str, Game]:
    """Seeded launch catalog (games + achievements), keyed by slug."""
    await seed_games(db_session)
    await seed_achievements(db_session)
    from sqlalchemy import select

    result = await db_session.execute(select(Game))
    return {g.slug: g for g in result.scalars()}


async def make_player(db: AsyncSession, policy: PlatformPolicy, email: str, name: str = "Tester") -> Player:
    user = User(email=email, display_name=name, created_at=datetime.now(timezone.utc))
    db.add(user)
    await db.commit()
    return await get_or_create_player(db, user, policy)


@pytest_asyncio.fixture
async def player(db_session: AsyncSession, policy: PlatformPolicy) -> Player:
    return await make_player(db_session, policy, "player@example.com")


def make_challenge(game: Game, day, number: int = 1) -> DailyChallenge:
    quote = "THE ONLY WAY TO DO GREAT WORK IS TO LOVE WHAT YOU DO"
    return DailyChallenge(
        game_id=game.id,
        challenge_date=day,
        challenge_number=number,
        difficulty=2,
        content={"encoded": "ZIT GFSN VQN ZG RG UKTQZ VGKA OL ZG SGCT VIQZ NGX RG", "author": "Steve Jobs"},
        solution={"quote": quote, "cipher": CIPHER},
        hints=[
            {"type": "letter", "original": "T", "encoded": "Z"},
            {"type": "word", "word": "THE"},
        ],
        challenge_metadata={"word_count": 12},
        is_active=True,
        generated_by="fallback",
    )


@pytest_asyncio.fixture
async def todays_challenge(db_session: AsyncSession, games: dict[str, Game], policy: PlatformPolicy) -> DailyChallenge:
    """Today's challenge (platform timezone, real clock) for decode-daily."""
    challenge = make_challenge(games["decode-daily"], local_today(None, policy.timezone))
    db_session.add(challenge)
    await db_session.commit()
    return challenge


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, policy: PlatformPolicy) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, sharing the test session. Redis is disabled."""
    get_settings.cache_clear()
    from dgames.main import create_app

    app = create_app()

    async def _session_override() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    async def _redis_override() -> AsyncGenerator[None, None]:
        yield None

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_redis_dep] = _redis_override
    app.dependency_overrides[get_policy] = lambda: policy

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def authed_client(client: AsyncClient, player: Player) -> AsyncClient:
    """Client carrying a bearer token for ``player``'s user."""
    token = create_access_token(player.user_id)
    client.headers["Authorization"] = f"Bearer {token}"
    return client


@pytest.fixture
def player_factory(db_session: AsyncSession, policy: PlatformPolicy):
    """Create extra players: ``await player_factory("b@example.com", "Bea")``."""

    async def _make(email: str, name: str = "Tester") -> Player:
        return await make_player(db_session, policy, email, name)

    return _make


@pytest.fixture
def challenge_factory(db_session: AsyncSession, games: dict[str, Game]):
    """Create a challenge for a fixed date: ``await challenge_factory(day, number=2)``."""

    async def _make(day, number: int = 1, slug: str = "decode-daily") -> DailyChallenge:
        challenge = make_challenge(games[slug], day, number)
        db_session.add(challenge)
        await db_session.commit()
        return challenge

    return _make
