import os

import fakeredis
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from scheduler_app.api.deps.clients import (
    get_calendar_provider,
    get_redis,
    get_settings,
)
from scheduler_app.api.deps.database import get_db
from scheduler_app.core.config import Settings
from scheduler_app.core.database import Base, DatabaseClient
from scheduler_app.core.redis import RedisClient
from scheduler_app.main import app
from tests.fixtures.fake_calendar import FakeCalendarProvider

# In-memory SQLite by default; point at Postgres with TEST_DATABASE_URL
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")


@pytest.fixture
async def database():
    """Create a fresh database for each test."""
    engine_kwargs = {}
    if TEST_DATABASE_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory db
        engine_kwargs = {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }

    client = DatabaseClient(TEST_DATABASE_URL, **engine_kwargs)
    await client.init()

    async with client.engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)  # Clean slate
        await conn.run_sync(Base.metadata.create_all)

    yield client

    await client.close()


@pytest.fixture
async def db(database: DatabaseClient):
    """Database session for a single test."""
    async with database.session_factory() as session:
        yield session


@pytest.fixture
async def redis_client():
    """Redis client backed by an isolated fake server."""
    client = RedisClient(
        client=fakeredis.FakeAsyncRedis(
            server=fakeredis.FakeServer(), decode_responses=True
        )
    )
    yield client
    await client.close()


@pytest.fixture
def calendar_provider() -> FakeCalendarProvider:
    return FakeCalendarProvider()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with short timeouts so failure paths run fast."""
    return Settings(
        CALENDAR_SYNC_TIMEOUT_SECONDS=0.2,
        BOOKING_LOCK_BLOCKING_TIMEOUT_SECONDS=0.2,
    )


@pytest.fixture
def override_dependencies(
    db: AsyncSession,
    redis_client: RedisClient,
    calendar_provider: FakeCalendarProvider,
    test_settings: Settings,
):
    """Route the app's dependencies to the test doubles."""

    async def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_redis] = lambda: redis_client
    app.dependency_overrides[get_calendar_provider] = lambda: calendar_provider
    app.dependency_overrides[get_settings] = lambda: test_settings
    yield
    app.dependency_overrides.clear()


@pytest.fixture
async def client(override_dependencies):
    """Create test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac


# Import all scheduler fixtures to make them available
pytest_plugins = ["tests.fixtures.scheduler_fixtures"]
