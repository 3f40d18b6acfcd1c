"""
Pytest configuration and fixtures.

Tests run against an in-memory SQLite database built from the ORM metadata,
and stub every outbound HTTP call with ``httpx.MockTransport``.

References:
-----------
- Pytest Fixtures: https://docs.pytest.org/en/stable/fixture.html
- HTTPX Mock Transport: https://www.python-httpx.org/advanced/transports/#mock-transports
"""

import os

# Settings are validated on first use; make sure the required values exist
# before anything from feedhub is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("YOUTUBE_API_KEY", "test-youtube-key")
os.environ.setdefault("APP_ENV", "staging")

from typing import AsyncGenerator, Callable, List

import httpx
import pytest
import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import feedhub.models  # noqa: F401
from feedhub.core.config import Settings
from feedhub.db.base import Base
from feedhub.models import Category, Language


# ================================
# Settings
# ================================

@pytest.fixture
def settings() -> Settings:
    """Settings for tests, independent of any .env file."""
    return Settings(
        _env_file=None,
        DATABASE_URL="sqlite+aiosqlite://",
        YOUTUBE_API_KEY="test-youtube-key",
        APP_ENV="staging",
        DIRECTORY_URL="https://directory.test/blogs.json",
        YOUTUBE_VIDEOS_URL="https://youtube.test/videos",
        APPLE_PODCAST_SEARCH_URL="https://itunes.test/search",
    )


# ================================
# Database Fixtures
# ================================

@pytest_asyncio.fixture
async def engine():
    """
    In-memory SQLite engine with foreign keys enforced.

    StaticPool keeps the single connection (and therefore the database)
    alive for the whole test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def catalog(db: AsyncSession) -> AsyncSession:
    """Languages and categories most tests need."""
    db.add_all([
        Language(code="en", title="English"),
        Language(code="es", title="Español"),
        Category(slug="ios"),
        Category(slug="podcasts"),
        Category(slug="youtube"),
    ])
    await db.commit()
    return db


# ================================
# HTTP Fixtures
# ================================

@pytest_asyncio.fixture
async def make_client() -> AsyncGenerator[Callable[..., httpx.AsyncClient], None]:
    """
    Build an AsyncClient whose requests are answered by ``handler``.

    Usage:
        client = make_client(lambda request: httpx.Response(200, json={}))
    """
    clients: List[httpx.AsyncClient] = []

    def _make(handler) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()


