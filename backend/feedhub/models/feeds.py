"""
Feed Models

Models Included:
----------------
1. Channel - A subscribed feed source (blog, podcast, YouTube channel)
2. Entry - One syndication item belonging to a Channel
3. ChannelFailure - Append-only log of failed fetch attempts
4. ChannelFailureType (Enum) - How a fetch attempt failed

Relationships:
--------------
- Language (1) ←→ (Many) Channel
- Category (1) ←→ (Many) Channel
- Channel (1) ←→ (Many) Entry
- Channel (1) ←→ (Many) ChannelFailure

Natural keys:
-------------
- channels.feed_url is globally unique
- entries.(channel_id, feed_id) is globally unique

Every write in the pipeline is keyed by one of these, which is what makes a
re-delivered job idempotent.
"""

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from feedhub.db.base import BaseModel, String50, String100, String255, String2048


# ================================
# Enums
# ================================

class ChannelFailureType(str, enum.Enum):
    """
    Classification of a failed fetch attempt.

    MISSING: no response body and the feed has never been fetched successfully
    DOWNLOAD: no response body but a previous fetch stored a content hash
    DECODING: a body arrived but could not be decoded as a feed
    """

    MISSING = "missing"
    DOWNLOAD = "download"
    DECODING = "decoding"

    def __str__(self) -> str:
        return self.value


# ================================
# Channel Model
# ================================

class Channel(BaseModel):
    """
    A subscribed feed source with catalog metadata.

    Created on first catalog sighting. Catalog fields (title, author,
    site_url, twitter_handle, language, category) are overwritten on every
    directory import; feed fields (content_hash, last_synced_at, image,
    email, subtitle) are updated on every fetch attempt.
    """

    __tablename__ = "channels"

    title: Mapped[str] = mapped_column(String255, nullable=False)

    subtitle: Mapped[str | None] = mapped_column(Text, nullable=True)

    author: Mapped[str] = mapped_column(String255, nullable=False)

    email: Mapped[str | None] = mapped_column(String255, nullable=True)

    site_url: Mapped[str] = mapped_column(String2048, nullable=False)

    feed_url: Mapped[str] = mapped_column(
        String2048,
        nullable=False,
        unique=True,
        comment="Natural key of the channel"
    )

    twitter_handle: Mapped[str | None] = mapped_column(String100, nullable=True)

    image_url: Mapped[str | None] = mapped_column(String2048, nullable=True)

    language_code: Mapped[str] = mapped_column(
        ForeignKey("languages.code"),
        nullable=False,
        index=True,
    )

    category_slug: Mapped[str] = mapped_column(
        ForeignKey("categories.slug"),
        nullable=False,
        index=True,
    )

    content_hash: Mapped[str | None] = mapped_column(
        String50,
        nullable=True,
        comment="MD5 hex digest of the last downloaded feed body"
    )

    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
        index=True,
        comment="Last fetch attempt, successful or not (NULL = never synced)"
    )

    # ================================
    # Relationships
    # ================================
    # Bulk deletes rely on ON DELETE CASCADE, so children are never loaded
    # just to be removed.

    entries: Mapped[list["Entry"]] = relationship(
        back_populates="channel",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    failures: Mapped[list["ChannelFailure"]] = relationship(
        back_populates="channel",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="raise",
    )

    def __repr__(self) -> str:
        return f"Channel(id={self.id}, feed_url='{self.feed_url}')"


# ================================
# Entry Model
# ================================

class Entry(BaseModel):
    """One syndication item. Updated in place, never deleted by ingestion."""

    __tablename__ = "entries"

    channel_id: Mapped[int] = mapped_column(
        ForeignKey("channels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    feed_id: Mapped[str] = mapped_column(
        String2048,
        nullable=False,
        comment="Item identifier from the source feed (guid / atom id)"
    )

    title: Mapped[str] = mapped_column(Text, nullable=False)

    summary: Mapped[str] = mapped_column(Text, nullable=False)

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        comment="Item content as HTML"
    )

    url: Mapped[str] = mapped_column(String2048, nullable=False)

    image_url: Mapped[str | None] = mapped_column(String2048, nullable=True)

    published_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        index=True,
    )

    channel: Mapped["Channel"] = relationship(back_populates="entries", lazy="raise")

    __table_args__ = (
        UniqueConstraint("channel_id", "feed_id", name="uq_entries_channel_feed_id"),
    )

    def __repr__(self) -> str:
        return f"Entry(id={self.id}, channel_id={self.channel_id}, feed_id='{self.feed_id}')"


# ================================
# ChannelFailure Model
# ================================

class ChannelFailure(BaseModel):
    """
    Append-only record of one failed fetch attempt.

    job_id ties the failure to the job invocation that produced it, so the
    failures of a single drain step can be listed together.
    """

    __tablename__ = "channel_failures"

    channel_id: Mapped[int] = mapped_column(
        ForeignKey("channels.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    job_id: Mapped[str] = mapped_column(String100, nullable=False, index=True)

    type: Mapped[ChannelFailureType] = mapped_column(
        Enum(
            ChannelFailureType,
            name="channel_failure_type",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
        ),
        nullable=False,
    )

    description: Mapped[str] = mapped_column(Text, nullable=False)

    # created_at from the mixin is the failure time; updated_at never changes
    channel: Mapped["Channel"] = relationship(back_populates="failures", lazy="raise")

    def __repr__(self) -> str:
        return (
            f"ChannelFailure(id={self.id}, channel_id={self.channel_id}, "
            f"type={self.type}, job_id='{self.job_id}')"
        )


__all__ = [
    "Channel",
    "ChannelFailure",
    "ChannelFailureType",
    "Entry",
]
