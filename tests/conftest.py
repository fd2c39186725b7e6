"""
Pytest configuration and shared fixtures.

Every test function gets its own SQLite database file (aiosqlite, WAL mode), so
tests are isolated without a database server and concurrent joins run against
a real unique index and real row updates.
"""

from collections.abc import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlmodel import SQLModel

from app import models  # noqa: F401
from app.api.dependencies import get_room_storage
from app.core.database import create_engine_from_url, create_session_factory
from app.main import app as main_app
from app.models.user import Users
from app.services.moderation import ModerationService
from app.services.room_allocator import RoomAllocator
from app.services.room_storage import SqlRoomStorage

# Users 1..20 are regular members, 100 is the moderator
MEMBER_IDS = list(range(1, 21))
MODERATOR_ID = 100


@pytest.fixture(scope="function")
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """
    Create a fresh SQLite database for each test function.

    Scope is "function" so the async engine runs in the same event loop as the
    test itself.
    """
    test_engine = create_engine_from_url(f"sqlite+aiosqlite:///{tmp_path / 'rooms_test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield test_engine

    await test_engine.dispose()


@pytest.fixture(scope="function")
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with the test users already committed."""
    factory = create_session_factory(engine)
    async with factory() as session:
        for user_id in MEMBER_IDS:
            session.add(Users(user_id=user_id, username=f"member{user_id}"))
        session.add(Users(user_id=MODERATOR_ID, username="moderator"))
        await session.commit()
    return factory


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """A session for arranging and inspecting rows directly."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(session_factory: async_sessionmaker[AsyncSession]) -> SqlRoomStorage:
    return SqlRoomStorage(session_factory)


@pytest.fixture
def allocator(storage: SqlRoomStorage) -> RoomAllocator:
    """Allocator with small rooms and millisecond backoff."""
    return RoomAllocator(storage, max_members=2, base_delay_ms=1)


@pytest.fixture
def moderation(storage: SqlRoomStorage) -> ModerationService:
    return ModerationService(storage)


@pytest.fixture(scope="function")
def app(storage: SqlRoomStorage) -> FastAPI:
    """
    FastAPI app wired to the test database.

    Overriding get_room_storage is enough: the allocator and moderation
    dependencies are built on top of it.
    """
    main_app.dependency_overrides[get_room_storage] = lambda: storage

    yield main_app

    main_app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """
    Create async HTTP client for testing API endpoints.

    Usage:
        async def test_endpoint(client):
            response = await client.get("/api/v1/support-rooms/1")
            assert response.status_code == 200
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
