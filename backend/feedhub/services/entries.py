"""
Entry upsert engine.

Maps the items of a decoded feed onto Entry rows keyed by
``(channel_id, feed_id)``, and records the per-entry enrichment hooks:
podcast audio URLs and YouTube video ids. Entries are never deleted here;
an item that disappears from the feed keeps its row.
"""

import logging
from dataclasses import dataclass, field
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from feedhub.db.base import String100, String2048, fits
from feedhub.models import Channel, Entry, PodcastEpisode, YouTubeChannel, YoutubeVideo
from feedhub.services.feed_decoder import DecodedFeed, FeedItem
from feedhub.services.upsert import KeyedUpsert

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class YouTubeCandidate:
    """An entry whose YouTube video has no resolved duration yet."""

    entry_id: int
    youtube_id: str


@dataclass
class EntryUpsertResult:
    created: int = 0
    updated: int = 0
    skipped: int = 0
    has_audio: bool = False
    youtube_candidates: List[YouTubeCandidate] = field(default_factory=list)


def _admit_new(item: FeedItem) -> bool:
    # New entries need both a summary and a publish date
    return item.summary is not None and item.published is not None


def _apply_item(item: FeedItem):
    def apply(entry: Entry, created: bool) -> None:
        entry.title = item.title
        entry.content = item.content_html
        entry.url = item.url
        if item.summary is not None:
            entry.summary = item.summary
        if item.image and fits(item.image, String2048):
            entry.image_url = item.image
        if item.published is not None:
            entry.published_at = item.published

    return apply


async def upsert_entries(db: AsyncSession, channel: Channel, feed: DecodedFeed) -> EntryUpsertResult:
    """
    Create or update the entries of one channel from a decoded feed.

    Existing entries are overwritten in place (an absent summary, image or
    publish date keeps the stored value). Items without a stored entry are
    only inserted when they carry both a summary and a publish date; others
    are dropped silently.

    Also upserts, per entry, the PodcastEpisode (audio URL) and YoutubeVideo
    (video id) rows, and the channel's YouTubeChannel row when the feed
    exposes a channel id.

    Items whose id or link exceed the column length are skipped; an
    over-long image, audio URL or YouTube id is left unrecorded.

    Args:
        db: Session inside the batch transaction
        channel: Persisted channel the feed belongs to
        feed: Decoded feed

    Returns:
        EntryUpsertResult with counts and the videos still missing a duration
    """
    result = EntryUpsertResult()

    channel_entry_ids = select(Entry.id).where(Entry.channel_id == channel.id)

    entries = KeyedUpsert(db, Entry, ("channel_id", "feed_id"))
    await entries.preload(Entry.channel_id == channel.id)

    episodes = KeyedUpsert(db, PodcastEpisode, ("entry_id",))
    await episodes.preload(PodcastEpisode.entry_id.in_(channel_entry_ids))

    videos = KeyedUpsert(db, YoutubeVideo, ("entry_id",))
    await videos.preload(YoutubeVideo.entry_id.in_(channel_entry_ids))

    for item in feed.items:
        if not (fits(item.id, String2048) and fits(item.url, String2048)):
            result.skipped += 1
            continue

        upserted = await entries.upsert(
            {"channel_id": channel.id, "feed_id": item.id},
            _apply_item(item),
            admit=lambda item=item: _admit_new(item),
        )
        if upserted is None:
            result.skipped += 1
            continue

        entry = upserted.instance

        if item.audio_url and fits(item.audio_url, String2048):
            result.has_audio = True

            def apply_episode(episode: PodcastEpisode, created: bool, url: str = item.audio_url) -> None:
                episode.audio_url = url

            await episodes.upsert({"entry_id": entry.id}, apply_episode)

        if item.youtube_item_id and fits(item.youtube_item_id, String100):
            def apply_video(video: YoutubeVideo, created: bool, youtube_id: str = item.youtube_item_id) -> None:
                if not created and video.youtube_id != youtube_id:
                    video.duration_seconds = None
                video.youtube_id = youtube_id

            video = (await videos.upsert({"entry_id": entry.id}, apply_video)).instance
            if video.duration_seconds is None:
                result.youtube_candidates.append(
                    YouTubeCandidate(entry_id=entry.id, youtube_id=video.youtube_id)
                )

    if feed.youtube_channel_id and fits(feed.youtube_channel_id, String100):
        def apply_channel(youtube_channel: YouTubeChannel, created: bool) -> None:
            youtube_channel.youtube_id = feed.youtube_channel_id

        youtube_channels = KeyedUpsert(db, YouTubeChannel, ("channel_id",))
        await youtube_channels.upsert({"channel_id": channel.id}, apply_channel)

    result.created = entries.created
    result.updated = entries.updated

    logger.debug(
        f"Channel {channel.id}: {result.created} entries created, "
        f"{result.updated} updated, {result.skipped} skipped"
    )
    return result
