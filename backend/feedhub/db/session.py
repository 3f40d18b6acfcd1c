"""
Database Session Management

This module handles the database connection lifecycle and session management.

Architecture Flow:
------------------
Worker Start → Create Engine (lazily, on first use) → Connection Pool Ready
↓
Job Invocation → New Session → One Transaction → Commit/Rollback → Close Session
↓
Worker Shutdown → Dispose Engine → Close All Connections

The engine is created on first use rather than at import time so that tests
and the CLI can decide which settings (and therefore which database) to use.
"""

from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from feedhub.core.config import Settings, get_settings
from feedhub.core.logging import get_logger

logger = get_logger(__name__)

_engine: Optional[AsyncEngine] = None
_sessionmaker: Optional[async_sessionmaker[AsyncSession]] = None


# ================================
# Database Engine Configuration
# ================================

def get_engine_config(settings: Settings) -> dict[str, Any]:
    """
    Configure the database engine based on environment.

    Pool Types:
    -----------
    1. AsyncAdaptedQueuePool (development/production):
       - Keeps DB_POOL_SIZE connections open, DB_MAX_OVERFLOW extra on demand
    2. NullPool (staging/SQLite):
       - Opens and closes a connection per checkout

    PostgreSQL-only connect args are added only for the asyncpg driver.
    """
    config: dict[str, Any] = {
        "echo": settings.DB_ECHO,
    }

    if settings.DATABASE_URL.startswith("sqlite"):
        config["poolclass"] = NullPool
        return config

    config.update({
        # Test connection health before using
        "pool_pre_ping": True,
        "pool_recycle": 3600,
        "pool_timeout": 30,
    })

    if settings.DATABASE_URL.startswith("postgresql+asyncpg"):
        config["connect_args"] = {
            "server_settings": {
                "application_name": settings.APP_NAME,
            }
        }

    if settings.is_development or settings.is_production:
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
        config.update({
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
        })
        if settings.is_production:
            config["pool_recycle"] = 7200
    else:
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_type="NullPool",
        )
        config["poolclass"] = NullPool

    return config


def create_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    """
    Create an async database engine.

    Returns:
        AsyncEngine: The database engine instance
    """
    settings = settings or get_settings()
    engine_config = get_engine_config(settings)

    engine = create_async_engine(settings.DATABASE_URL, **engine_config)

    logger.info(
        "database_engine_created",
        dialect=engine.dialect.name,
        pool_size=engine_config.get("pool_size", "NullPool"),
    )
    return engine


def get_engine() -> AsyncEngine:
    """Return the process-wide engine, creating it on first use."""
    global _engine
    if _engine is None:
        _engine = create_engine()
    return _engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """
    Return the process-wide session factory.

    autoflush=False: changes are sent explicitly with ``flush()``
    expire_on_commit=False: instances stay readable after commit
    """
    global _sessionmaker
    if _sessionmaker is None:
        _sessionmaker = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            autoflush=False,
            expire_on_commit=False,
        )
    return _sessionmaker


# ================================
# Session Lifecycle Functions
# ================================

async def init_db() -> None:
    """
    Verify the connection and, in development, create all tables.

    Production schemas are managed outside this package.
    """
    logger.info("initializing_database")
    engine = get_engine()
    settings = get_settings()

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

        logger.info("database_connection_successful")

        if settings.is_development:
            # Import models so they are registered on the metadata
            import feedhub.models  # noqa: F401
            from feedhub.db.base import Base

            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            logger.info("database_tables_created")

    except Exception as e:
        logger.error(
            "database_initialization_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        raise


async def close_db() -> None:
    """Dispose of the engine and its connection pool."""
    global _engine, _sessionmaker
    if _engine is None:
        return

    logger.info("closing_database_connections")
    try:
        await _engine.dispose()
        logger.info("database_connections_closed")
    except Exception as e:
        logger.error(
            "database_closure_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        # Don't raise - we're shutting down anyway
    finally:
        _engine = None
        _sessionmaker = None


async def check_db_health() -> bool:
    """
    Check if the database is healthy and responsive.

    Returns:
        bool: True if database is healthy, False otherwise
    """
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    except Exception as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return False
