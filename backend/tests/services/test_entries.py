"""
Tests for the entry upsert engine.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from feedhub.models import Entry, PodcastEpisode, YouTubeChannel, YoutubeVideo
from feedhub.services.entries import YouTubeCandidate, upsert_entries
from feedhub.services.feed_decoder import DecodedFeed, FeedItem
from tests.factories import add_channels

PUBLISHED = datetime(2025, 1, 6, 10, 0, tzinfo=timezone.utc)


def _item(item_id: str = "post-1", **overrides) -> FeedItem:
    values = {
        "id": item_id,
        "title": f"Title {item_id}",
        "url": f"https://swift.test/{item_id}",
        "content_html": f"<p>{item_id}</p>",
        "summary": f"Summary {item_id}",
        "published": PUBLISHED,
    }
    values.update(overrides)
    return FeedItem(**values)


@pytest_asyncio.fixture
async def channel(catalog):
    (channel,) = await add_channels(catalog, 1)
    return channel


async def _entries(db):
    return (await db.execute(select(Entry).order_by(Entry.feed_id))).scalars().all()


class TestUpsertEntries:
    """Test suite for entry creation and update."""

    @pytest.mark.asyncio
    async def test_creates_entries(self, db, channel):
        feed = DecodedFeed(items=[_item("a"), _item("b", image="https://swift.test/b.png")])

        result = await upsert_entries(db, channel, feed)
        await db.commit()

        assert (result.created, result.updated, result.skipped) == (2, 0, 0)
        entries = await _entries(db)
        assert [e.feed_id for e in entries] == ["a", "b"]
        assert entries[0].channel_id == channel.id
        assert entries[0].title == "Title a"
        assert entries[0].summary == "Summary a"
        assert entries[0].content == "<p>a</p>"
        assert entries[0].url == "https://swift.test/a"
        assert entries[0].image_url is None
        assert entries[1].image_url == "https://swift.test/b.png"

    @pytest.mark.asyncio
    async def test_same_feed_id_updates_in_place(self, db, channel):
        await upsert_entries(db, channel, DecodedFeed(items=[_item("a")]))
        await db.commit()

        result = await upsert_entries(
            db, channel, DecodedFeed(items=[_item("a", title="Edited", summary="New summary")])
        )
        await db.commit()

        assert (result.created, result.updated) == (0, 1)
        entries = await _entries(db)
        assert len(entries) == 1
        assert entries[0].title == "Edited"
        assert entries[0].summary == "New summary"

    @pytest.mark.asyncio
    async def test_repeated_run_is_idempotent(self, db, channel):
        feed = DecodedFeed(items=[_item("a"), _item("b")])

        await upsert_entries(db, channel, feed)
        await db.commit()
        await upsert_entries(db, channel, feed)
        await db.commit()

        count = (await db.execute(select(func.count()).select_from(Entry))).scalar_one()
        assert count == 2

    @pytest.mark.asyncio
    async def test_duplicate_ids_within_one_feed(self, db, channel):
        feed = DecodedFeed(items=[_item("a"), _item("a", title="Second copy")])

        result = await upsert_entries(db, channel, feed)
        await db.commit()

        assert (result.created, result.updated) == (1, 1)
        entries = await _entries(db)
        assert [e.title for e in entries] == ["Second copy"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["summary", "published"])
    async def test_new_item_needs_summary_and_date(self, db, channel, missing):
        feed = DecodedFeed(items=[_item("a", **{missing: None}), _item("b")])

        result = await upsert_entries(db, channel, feed)
        await db.commit()

        assert (result.created, result.skipped) == (1, 1)
        assert [e.feed_id for e in await _entries(db)] == ["b"]

    @pytest.mark.asyncio
    async def test_update_keeps_stored_values_when_item_lacks_them(self, db, channel):
        await upsert_entries(
            db, channel, DecodedFeed(items=[_item("a", image="https://swift.test/a.png")])
        )
        await db.commit()

        result = await upsert_entries(
            db,
            channel,
            DecodedFeed(items=[_item("a", title="Edited", summary=None, published=None, image=None)]),
        )
        await db.commit()

        assert result.updated == 1
        entry = (await _entries(db))[0]
        assert entry.title == "Edited"
        assert entry.summary == "Summary a"
        assert entry.image_url == "https://swift.test/a.png"
        assert entry.published_at is not None

    @pytest.mark.asyncio
    async def test_entries_are_scoped_by_channel(self, catalog):
        db = catalog
        first, second = await add_channels(db, 2)
        feed = DecodedFeed(items=[_item("shared")])

        await upsert_entries(db, first, feed)
        await upsert_entries(db, second, feed)
        await db.commit()

        entries = await _entries(db)
        assert sorted(e.channel_id for e in entries) == sorted([first.id, second.id])


class TestEnrichmentRows:
    """Test suite for podcast episode and YouTube rows written with entries."""

    @pytest.mark.asyncio
    async def test_audio_url_creates_podcast_episode(self, db, channel):
        feed = DecodedFeed(items=[_item("ep-1", audio_url="https://cdn.test/ep-1.mp3"), _item("post")])

        result = await upsert_entries(db, channel, feed)
        await db.commit()

        assert result.has_audio is True
        episodes = (await db.execute(select(PodcastEpisode))).scalars().all()
        assert len(episodes) == 1
        assert episodes[0].audio_url == "https://cdn.test/ep-1.mp3"

    @pytest.mark.asyncio
    async def test_audio_url_is_updated(self, db, channel):
        await upsert_entries(db, channel, DecodedFeed(items=[_item("ep-1", audio_url="https://cdn.test/old.mp3")]))
        await db.commit()
        await upsert_entries(db, channel, DecodedFeed(items=[_item("ep-1", audio_url="https://cdn.test/new.mp3")]))
        await db.commit()

        episodes = (await db.execute(select(PodcastEpisode))).scalars().all()
        assert [e.audio_url for e in episodes] == ["https://cdn.test/new.mp3"]

    @pytest.mark.asyncio
    async def test_no_audio(self, db, channel):
        result = await upsert_entries(db, channel, DecodedFeed(items=[_item("a")]))

        assert result.has_audio is False

    @pytest.mark.asyncio
    async def test_youtube_rows_and_candidates(self, db, channel):
        feed = DecodedFeed(
            items=[_item("yt:video:abc", youtube_item_id="abc")],
            youtube_channel_id="UC123",
        )

        result = await upsert_entries(db, channel, feed)
        await db.commit()

        entry = (await _entries(db))[0]
        assert result.youtube_candidates == [YouTubeCandidate(entry_id=entry.id, youtube_id="abc")]

        video = await db.get(YoutubeVideo, entry.id)
        assert video.youtube_id == "abc"
        assert video.duration_seconds is None

        youtube_channel = await db.get(YouTubeChannel, channel.id)
        assert youtube_channel.youtube_id == "UC123"

    @pytest.mark.asyncio
    async def test_resolved_video_is_not_a_candidate(self, db, channel):
        feed = DecodedFeed(items=[_item("v", youtube_item_id="abc")])
        first = await upsert_entries(db, channel, feed)
        video = await db.get(YoutubeVideo, first.youtube_candidates[0].entry_id)
        video.duration_seconds = 213
        await db.commit()

        result = await upsert_entries(db, channel, feed)

        assert result.youtube_candidates == []

    @pytest.mark.asyncio
    async def test_changed_video_id_resets_duration(self, db, channel):
        first = await upsert_entries(db, channel, DecodedFeed(items=[_item("v", youtube_item_id="abc")]))
        entry_id = first.youtube_candidates[0].entry_id
        (await db.get(YoutubeVideo, entry_id)).duration_seconds = 213
        await db.commit()

        result = await upsert_entries(db, channel, DecodedFeed(items=[_item("v", youtube_item_id="xyz")]))
        await db.commit()

        video = await db.get(YoutubeVideo, entry_id)
        assert video.youtube_id == "xyz"
        assert video.duration_seconds is None
        assert result.youtube_candidates == [YouTubeCandidate(entry_id=entry_id, youtube_id="xyz")]

    @pytest.mark.asyncio
    async def test_skipped_item_writes_no_enrichment(self, db, channel):
        feed = DecodedFeed(items=[_item("a", summary=None, audio_url="https://cdn.test/a.mp3", youtube_item_id="abc")])

        result = await upsert_entries(db, channel, feed)
        await db.commit()

        assert result.skipped == 1
        assert result.youtube_candidates == []
        assert (await db.execute(select(PodcastEpisode))).scalars().all() == []


class TestOverlongValues:
    """Test suite for feed values longer than their columns."""

    LONG_URL = "https://swift.test/" + "x" * 3000

    @pytest.mark.asyncio
    async def test_items_with_overlong_id_or_link_are_skipped(self, db, channel):
        feed = DecodedFeed(items=[
            _item("a"),
            _item(self.LONG_URL),
            _item("c", url=self.LONG_URL),
        ])

        result = await upsert_entries(db, channel, feed)
        await db.commit()

        assert (result.created, result.skipped) == (1, 2)
        assert [e.feed_id for e in await _entries(db)] == ["a"]

    @pytest.mark.asyncio
    async def test_overlong_optional_values_are_not_stored(self, db, channel):
        feed = DecodedFeed(
            youtube_channel_id="UC" + "x" * 200,
            items=[_item(
                "a",
                image=self.LONG_URL,
                audio_url=self.LONG_URL,
                youtube_item_id="v" * 200,
            )],
        )

        result = await upsert_entries(db, channel, feed)
        await db.commit()

        (entry,) = await _entries(db)
        assert entry.image_url is None
        assert not result.has_audio
        assert result.youtube_candidates == []
        for model in (PodcastEpisode, YoutubeVideo, YouTubeChannel):
            count = (await db.execute(select(func.count()).select_from(model))).scalar_one()
            assert count == 0
