"""
Media Enrichment Models

Side tables that attach platform-specific identifiers to channels and
entries. Each is keyed by its owner's id, so there is at most one row per
owner and it disappears with the owner.

Models Included:
----------------
1. YouTubeChannel - YouTube channel id for a Channel
2. PodcastChannel - Apple iTunes collection id for a Channel
3. YoutubeVideo - YouTube video id (and resolved duration) for an Entry
4. PodcastEpisode - Audio enclosure URL for an Entry
"""

from sqlalchemy import ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from feedhub.db.base import String100, String2048, TimestampedModel


# ================================
# Channel Enrichment
# ================================

class YouTubeChannel(TimestampedModel):
    __tablename__ = "youtube_channels"

    channel_id: Mapped[int] = mapped_column(
        ForeignKey("channels.id", ondelete="CASCADE"),
        primary_key=True,
    )

    youtube_id: Mapped[str] = mapped_column(String100, nullable=False)

    def __repr__(self) -> str:
        return f"YouTubeChannel(channel_id={self.channel_id}, youtube_id='{self.youtube_id}')"


class PodcastChannel(TimestampedModel):
    """Links a podcast-category channel to its Apple iTunes collection."""

    __tablename__ = "podcast_channels"

    channel_id: Mapped[int] = mapped_column(
        ForeignKey("channels.id", ondelete="CASCADE"),
        primary_key=True,
    )

    collection_id: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="iTunes collectionId returned by the search API"
    )

    def __repr__(self) -> str:
        return f"PodcastChannel(channel_id={self.channel_id}, collection_id={self.collection_id})"


# ================================
# Entry Enrichment
# ================================

class YoutubeVideo(TimestampedModel):
    """
    YouTube video attached to an entry.

    duration_seconds stays NULL until the Data API reports a duration.
    """

    __tablename__ = "youtube_videos"

    entry_id: Mapped[int] = mapped_column(
        ForeignKey("entries.id", ondelete="CASCADE"),
        primary_key=True,
    )

    youtube_id: Mapped[str] = mapped_column(String100, nullable=False, index=True)

    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)

    def __repr__(self) -> str:
        return f"YoutubeVideo(entry_id={self.entry_id}, youtube_id='{self.youtube_id}')"


class PodcastEpisode(TimestampedModel):
    __tablename__ = "podcast_episodes"

    entry_id: Mapped[int] = mapped_column(
        ForeignKey("entries.id", ondelete="CASCADE"),
        primary_key=True,
    )

    audio_url: Mapped[str] = mapped_column(String2048, nullable=False)

    def __repr__(self) -> str:
        return f"PodcastEpisode(entry_id={self.entry_id})"
