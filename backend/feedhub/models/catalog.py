"""
Catalog Models

The directory of sites is organized by language and category. These tables
hold that organization plus the operator-maintained status list.

Models Included:
----------------
1. Language - A directory language, keyed by its code ("en", "es", ...)
2. Category - A directory category, keyed by its slug ("ios", "podcasts", ...)
3. CategoryTitle - Localized title of a category for one language
4. ChannelStatus - Operator status for a feed URL (e.g. ignore)

Database Tables:
----------------
- languages
- categories
- category_titles
- channel_status
"""

import enum

from sqlalchemy import Enum, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from feedhub.db.base import BaseModel, String50, String255, String2048, TimestampedModel


# ================================
# Enums
# ================================

class ChannelStatusType(str, enum.Enum):
    """
    Operator-assigned status for a feed URL.

    IGNORE: the feed must not exist as a Channel; any matching row is purged
    on the next directory import and the site is skipped.
    APPROVED: explicitly reviewed and kept (no effect on ingestion).
    """

    APPROVED = "approved"
    IGNORE = "ignore"

    def __str__(self) -> str:
        return self.value


# ================================
# Language / Category
# ================================

class Language(TimestampedModel):
    """A directory language. Title is overwritten on every import."""

    __tablename__ = "languages"

    code: Mapped[str] = mapped_column(
        String50,
        primary_key=True,
        comment="Language code from the directory (e.g. 'en')"
    )

    title: Mapped[str] = mapped_column(
        String255,
        nullable=False,
        comment="Display title of the language"
    )

    def __repr__(self) -> str:
        return f"Language(code='{self.code}', title='{self.title}')"


class Category(TimestampedModel):
    """A directory category. Titles live in CategoryTitle, per language."""

    __tablename__ = "categories"

    slug: Mapped[str] = mapped_column(
        String50,
        primary_key=True,
        comment="Category slug from the directory (e.g. 'podcasts')"
    )

    def __repr__(self) -> str:
        return f"Category(slug='{self.slug}')"


class CategoryTitle(BaseModel):
    """
    Localized category title.

    One row per (language, category) pair. The same category slug can appear
    under several languages with a different title in each.
    """

    __tablename__ = "category_titles"

    language_code: Mapped[str] = mapped_column(
        ForeignKey("languages.code", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    category_slug: Mapped[str] = mapped_column(
        ForeignKey("categories.slug", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String255, nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "language_code",
            "category_slug",
            name="uq_category_titles_language_category",
        ),
    )


# ================================
# Channel Status (ignore list)
# ================================

class ChannelStatus(TimestampedModel):
    """
    Operator-maintained status keyed by feed URL.

    Rows are managed outside the ingestion pipeline; the pipeline only
    reads the ``ignore`` entries.
    """

    __tablename__ = "channel_status"

    feed_url: Mapped[str] = mapped_column(
        String2048,
        primary_key=True,
        comment="Feed URL this status applies to"
    )

    status: Mapped[ChannelStatusType] = mapped_column(
        Enum(
            ChannelStatusType,
            name="channel_status_type",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"ChannelStatus(feed_url='{self.feed_url}', status={self.status})"
