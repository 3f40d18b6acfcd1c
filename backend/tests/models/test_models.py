"""
Tests for the catalog, feed and media models.

Covers natural-key uniqueness, ON DELETE CASCADE from channels, and enum
storage.
"""

from datetime import datetime, timezone

import pytest
from sqlalchemy import delete, func, select, text
from sqlalchemy.exc import IntegrityError

from feedhub.db import String100, clip, fits
from feedhub.models import (
    CategoryTitle,
    Channel,
    ChannelFailure,
    ChannelFailureType,
    ChannelStatus,
    ChannelStatusType,
    Entry,
    PodcastChannel,
    PodcastEpisode,
    YouTubeChannel,
    YoutubeVideo,
)
from tests.factories import add_channels

PUBLISHED = datetime(2025, 1, 6, tzinfo=timezone.utc)


def _entry(channel_id: int, feed_id: str = "post-1") -> Entry:
    return Entry(
        channel_id=channel_id,
        feed_id=feed_id,
        title="Title",
        summary="Summary",
        url="https://example.test/post",
        published_at=PUBLISHED,
    )


async def _count(db, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


class TestNaturalKeys:
    """Test suite for unique constraints."""

    @pytest.mark.asyncio
    async def test_feed_url_is_unique(self, catalog):
        db = catalog
        await add_channels(db, 1)

        db.add(Channel(
            title="Copy",
            author="Copy",
            site_url="https://copy.test",
            feed_url="https://site-0.test/feed",
            language_code="en",
            category_slug="ios",
        ))
        with pytest.raises(IntegrityError):
            await db.commit()
        await db.rollback()

    @pytest.mark.asyncio
    async def test_entry_feed_id_is_unique_per_channel(self, catalog):
        db = catalog
        first, second = await add_channels(db, 2)
        db.add_all([_entry(first.id), _entry(second.id)])
        await db.commit()

        db.add(_entry(first.id))
        with pytest.raises(IntegrityError):
            await db.commit()
        await db.rollback()

    @pytest.mark.asyncio
    async def test_category_title_is_unique_per_language(self, catalog):
        db = catalog
        db.add(CategoryTitle(language_code="en", category_slug="ios", title="iOS"))
        await db.commit()

        db.add(CategoryTitle(language_code="en", category_slug="ios", title="Again"))
        with pytest.raises(IntegrityError):
            await db.commit()
        await db.rollback()

    @pytest.mark.asyncio
    async def test_channel_requires_known_language(self, catalog):
        db = catalog
        db.add(Channel(
            title="T",
            author="A",
            site_url="https://t.test",
            feed_url="https://t.test/feed",
            language_code="xx",
            category_slug="ios",
        ))
        with pytest.raises(IntegrityError):
            await db.commit()
        await db.rollback()


class TestCascades:
    """Test suite for deletes cascading from channels and entries."""

    @pytest.mark.asyncio
    async def test_deleting_channel_removes_dependents(self, catalog):
        db = catalog
        channel, other = await add_channels(db, 2)
        entry = _entry(channel.id)
        db.add_all([entry, _entry(other.id)])
        await db.flush()
        db.add_all([
            YoutubeVideo(entry_id=entry.id, youtube_id="abc", duration_seconds=60),
            PodcastEpisode(entry_id=entry.id, audio_url="https://cdn.test/a.mp3"),
            YouTubeChannel(channel_id=channel.id, youtube_id="UC1"),
            PodcastChannel(channel_id=channel.id, collection_id=1),
            ChannelFailure(
                channel_id=channel.id,
                job_id="job",
                type=ChannelFailureType.MISSING,
                description="HTTP 404",
            ),
        ])
        await db.commit()

        await db.execute(delete(Channel).where(Channel.id == channel.id))
        await db.commit()

        assert await _count(db, Channel) == 1
        assert await _count(db, Entry) == 1
        for model in (YoutubeVideo, PodcastEpisode, YouTubeChannel, PodcastChannel, ChannelFailure):
            assert await _count(db, model) == 0


class TestEnums:
    """Test suite for enum storage."""

    def test_values(self):
        assert [t.value for t in ChannelFailureType] == ["missing", "download", "decoding"]
        assert [s.value for s in ChannelStatusType] == ["approved", "ignore"]
        assert str(ChannelFailureType.DECODING) == "decoding"

    @pytest.mark.asyncio
    async def test_enums_are_stored_by_value(self, catalog):
        db = catalog
        (channel,) = await add_channels(db, 1)
        db.add_all([
            ChannelStatus(feed_url="https://spam.test/feed", status=ChannelStatusType.IGNORE),
            ChannelFailure(
                channel_id=channel.id,
                job_id="job",
                type=ChannelFailureType.DOWNLOAD,
                description="timeout",
            ),
        ])
        await db.commit()

        status = (await db.execute(text("SELECT status FROM channel_status"))).scalar_one()
        failure_type = (await db.execute(text("SELECT type FROM channel_failures"))).scalar_one()
        assert (status, failure_type) == ("ignore", "download")


class TestStringLengths:
    """Test suite for the column length helpers."""

    def test_fits(self):
        assert fits(None, String100)
        assert fits("x" * 100, String100)
        assert not fits("x" * 101, String100)

    def test_clip(self):
        assert clip(None, String100) is None
        assert clip("short", String100) == "short"
        assert clip("x" * 150, String100) == "x" * 100
