"""Pytest fixtures for testing."""
import uuid
from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timedelta, timezone

import fakeredis
import fakeredis.aioredis
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from goalflow.cache.layer import GoalsCache
from goalflow.core.config import Settings
from goalflow.events import ProgressBroadcaster
from goalflow.models import Goal

BASE_TIME = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, reminder_scheduler_enabled=False)


@pytest.fixture
async def async_engine(tmp_path) -> AsyncGenerator[AsyncEngine]:
    """File-backed SQLite per test so every session sees the same data."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'goalflow.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        async_engine, class_=AsyncSession, expire_on_commit=False
    )


@pytest.fixture
async def db_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def redis_server() -> fakeredis.FakeServer:
    """Shared fake server; set ``connected = False`` to simulate an outage."""
    return fakeredis.FakeServer()


@pytest.fixture
async def redis_client(redis_server: fakeredis.FakeServer):
    client = fakeredis.aioredis.FakeRedis(server=redis_server, decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def cache(redis_client, settings: Settings) -> GoalsCache:
    return GoalsCache(redis_client, settings)


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def make_goal(db_session: AsyncSession) -> Callable[..., Awaitable[Goal]]:
    """Insert a goal directly into the store."""

    async def _make(owner: uuid.UUID, title: str = "Run a marathon", **fields) -> Goal:
        goal = Goal(
            user_id=owner,
            title=title,
            description=fields.pop("description", None),
            specific=fields.pop("specific", "Finish 42km"),
            measurable=fields.pop("measurable", "Race time"),
            achievable=fields.pop("achievable", "Training plan"),
            relevant=fields.pop("relevant", "Health"),
            time_bound=fields.pop("time_bound", BASE_TIME + timedelta(days=180)),
            created_at=fields.pop("created_at", BASE_TIME),
            **fields,
        )
        db_session.add(goal)
        await db_session.commit()
        await db_session.refresh(goal)
        return goal

    return _make


@pytest.fixture
async def client(
    session_factory: async_sessionmaker,
    cache: GoalsCache,
    settings: Settings,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database, cache and settings overrides."""
    from goalflow.core.config import get_settings
    from goalflow.database import get_db
    from goalflow.main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.state.goals_cache = cache
    app.state.progress_broadcaster = ProgressBroadcaster()

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
