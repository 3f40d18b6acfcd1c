"""Database utilities and session management."""

from feedhub.db.base import (
    Base,
    BaseModel,
    TimestampedModel,
    String50,
    String100,
    String255,
    String2048,
    clip,
    fits,
    utcnow,
)
from feedhub.db.session import (
    check_db_health,
    close_db,
    create_engine,
    get_engine,
    get_sessionmaker,
    init_db,
)

__all__ = [
    # Base classes
    "Base",
    "BaseModel",
    "TimestampedModel",
    "utcnow",
    # String types
    "String50",
    "String100",
    "String255",
    "String2048",
    "clip",
    "fits",
    # Session management
    "create_engine",
    "get_engine",
    "get_sessionmaker",
    "init_db",
    "close_db",
    "check_db_health",
]
