"""Shared test fixtures.

Each test gets its own SQLite file so tests never share state. Redis is
replaced by AsyncMock where a test needs to observe publishes.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from techrec.auth.jwt import create_access_token
from techrec.config import Settings, get_settings
from techrec.database import get_session
from techrec.db.base import Base
from techrec.db import models  # noqa: F401
from techrec.db.models import User
from techrec.dependencies import get_event_manager
from techrec.gamification.event_manager import GamificationEventManager
from techrec.main import create_app
from techrec.users.service import create_user


@pytest.fixture
def settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh SQLite database with the full schema."""
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'gamification.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for service calls and assertions."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory) -> Callable[..., Awaitable[User]]:
    """Create and commit a platform user."""
    counter = {"n": 0}

    async def _make(tier: str = "FREE", *, is_admin: bool = False) -> User:
        counter["n"] += 1
        async with session_factory() as db:
            user = await create_user(
                db,
                f"dev{counter['n']}@example.com",
                subscription_tier=tier,
                is_admin=is_admin,
            )
            await db.commit()
            return user

    return _make


@pytest.fixture
def manager(session_factory, settings) -> GamificationEventManager:
    return GamificationEventManager(session_factory, redis=None, cache=None, settings=settings)


@pytest_asyncio.fixture
async def client(session_factory, manager) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, wired to the per-test database."""
    app = create_app()

    async def _session_override() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session_override
    app.dependency_overrides[get_event_manager] = lambda: manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> Callable[[User], dict[str, str]]:
    """Bearer header for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers
