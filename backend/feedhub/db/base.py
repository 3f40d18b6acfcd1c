"""
Database Base Classes and Common Utilities

This module provides the foundation for all database models in the application.

Key Concepts:
--------------
1. DeclarativeBase: SQLAlchemy's base class that enables ORM functionality
2. TimestampMixin / CommonTableAttributes: Shared columns used across models
3. orm_registry: Central registry that tracks all models and their metadata

Most tables use a surrogate integer key (``BaseModel``). Catalog tables keyed
by a natural string (language code, category slug) and enrichment tables keyed
by their owner's id only take the timestamps (``TimestampedModel``).
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, registry


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# ================================
# Naming Convention for Constraints
# ================================
# Consistent constraint names across PostgreSQL and SQLite.
#
# Format examples:
# - ix_channels_feed_url: Index on 'channels' table, 'feed_url' column
# - fk_entries_channel_id_channels: Foreign key from 'entries.channel_id' to 'channels'
# - pk_channels: Primary key on 'channels' table
convention = {
    "ix": "ix_%(column_0_label)s",  # Index
    "uq": "uq_%(table_name)s_%(column_0_name)s",  # Unique constraint
    "ck": "ck_%(table_name)s_%(constraint_name)s",  # Check constraint
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",  # Foreign key
    "pk": "pk_%(table_name)s",  # Primary key
}

metadata = MetaData(naming_convention=convention)

orm_registry = registry(metadata=metadata)


# ================================
# Base DeclarativeBase Class
# ================================
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        class Language(Base):
            __tablename__ = "languages"
            code: Mapped[str] = mapped_column(primary_key=True)
    """

    registry = orm_registry
    metadata = metadata

    __tablename__: str


# ================================
# Common Table Attributes Mixins
# ================================
class TimestampMixin:
    """
    Mixin that adds created/updated timestamps.

    Uses timezone-aware UTC timestamps. Always store in UTC, convert in the
    presentation layer.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
        comment="Timestamp when record was created (UTC)"
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when record was last updated (UTC)"
    )


class CommonTableAttributes(TimestampMixin):
    """
    Mixin that adds an auto-incrementing integer primary key plus timestamps.

    Common Fields Added:
    --------------------
    - id: Primary key (auto-incrementing integer)
    - created_at: When the record was created (set once, never changes)
    - updated_at: When the record was last modified (updates automatically)
    """

    id: Mapped[int] = mapped_column(
        primary_key=True,
        autoincrement=True,
        comment="Auto-incrementing primary key"
    )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.id})"


# ================================
# Convenient Base Models
# ================================
class BaseModel(Base, CommonTableAttributes):
    """
    Ready-to-use base class for models with a surrogate integer key.

    Usage:
        class Channel(BaseModel):
            __tablename__ = "channels"
            ...
    """

    __abstract__ = True


class TimestampedModel(Base, TimestampMixin):
    """Base class for models that declare their own primary key."""

    __abstract__ = True


# ================================
# String Length Constraints
# ================================
String50 = String(50)  # codes, slugs, enum-ish values
String100 = String(100)  # short identifiers (YouTube ids, job ids)
String255 = String(255)  # titles, names, emails
String2048 = String(2048)  # URLs (feeds in the wild exceed 255 characters)


def fits(value: Optional[str], column_type: String) -> bool:
    """True when ``value`` is None or within the length of ``column_type``."""
    return value is None or len(value) <= column_type.length


def clip(value: Optional[str], column_type: String) -> Optional[str]:
    """Truncate ``value`` to the length of ``column_type``."""
    return None if value is None else value[:column_type.length]
