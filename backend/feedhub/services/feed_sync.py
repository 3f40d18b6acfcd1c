"""
Feed sync: one bounded batch of the drain loop.

Each invocation:
1. Selects at most FEED_BATCH_MAX_CHANNELS stale channels (never synced
   first, then the longest unsynced)
2. Fetches every selected feed concurrently
3. Writes entries, channel metadata and failures, one channel at a time
4. Runs enrichment (YouTube durations, podcast links)
5. Counts the channels still stale

The caller wraps ``run_batch`` in a single transaction and re-enqueues the
job while ``BatchSyncResult.is_completed`` is False. A channel synced in this
batch is fresh for FEED_STALE_AFTER_HOURS, so the backlog strictly shrinks
and N stale channels drain in ceil(N / batch size) invocations.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from feedhub.core.config import Settings
from feedhub.db.base import utcnow
from feedhub.models import Channel
from feedhub.services.entries import YouTubeCandidate, upsert_entries
from feedhub.services.enrichment import PodcastLookupService, YouTubeDurationService
from feedhub.services.failures import record_channel_failure
from feedhub.services.feed_decoder import FeedDecoder
from feedhub.services.feed_fetcher import FeedResult, apply_feed_metadata, fetch_channel_feed

logger = logging.getLogger(__name__)


@dataclass
class BatchSyncResult:
    job_id: str
    selected: int = 0
    succeeded: int = 0
    failed: int = 0
    entries_created: int = 0
    entries_updated: int = 0
    entries_skipped: int = 0
    videos_resolved: int = 0
    podcasts_linked: int = 0
    remaining: int = 0
    failures: Dict[str, int] = field(default_factory=dict)

    @property
    def is_completed(self) -> bool:
        """True when no stale channel is left after this batch."""
        return self.remaining == 0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "job_id": self.job_id,
            "selected": self.selected,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "failures": dict(self.failures),
            "entries_created": self.entries_created,
            "entries_updated": self.entries_updated,
            "entries_skipped": self.entries_skipped,
            "videos_resolved": self.videos_resolved,
            "podcasts_linked": self.podcasts_linked,
            "remaining": self.remaining,
            "is_completed": self.is_completed,
        }


class FeedSyncService:
    """
    Run feed sync batches.

    Args:
        settings: Batch limits, staleness window and API configuration
        client: Shared HTTP client
        decoder: Feed decoder (default FeedDecoder)
        youtube: Duration service (default built from settings)
        podcasts: Podcast lookup service (default built from settings)
    """

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        decoder: Optional[FeedDecoder] = None,
        youtube: Optional[YouTubeDurationService] = None,
        podcasts: Optional[PodcastLookupService] = None,
    ):
        self.settings = settings
        self.client = client
        self.decoder = decoder or FeedDecoder()
        self.youtube = youtube or YouTubeDurationService.from_settings(client, settings)
        self.podcasts = podcasts or PodcastLookupService.from_settings(client, settings)

    # ========================================
    # Batch Selection
    # ========================================

    def stale_cutoff(self, now: datetime) -> datetime:
        """Channels last synced before this instant are stale."""
        return now - timedelta(hours=self.settings.FEED_STALE_AFTER_HOURS)

    def _is_stale(self, cutoff: datetime):
        return or_(Channel.last_synced_at.is_(None), Channel.last_synced_at < cutoff)

    async def select_batch(self, db: AsyncSession, now: Optional[datetime] = None) -> List[Channel]:
        """
        Pick the channels for one batch.

        Up to FEED_BATCH_NEVER_SYNCED_LIMIT never-synced channels plus up to
        FEED_BATCH_OLDEST_LIMIT stale channels with the oldest sync time,
        deduplicated and capped at FEED_BATCH_MAX_CHANNELS. If that leaves
        room, the batch is topped up with further stale channels so every
        invocation works through a full batch while any backlog remains.
        """
        now = now or utcnow()
        cutoff = self.stale_cutoff(now)
        max_channels = self.settings.FEED_BATCH_MAX_CHANNELS

        never_synced = await db.execute(
            select(Channel)
            .where(Channel.last_synced_at.is_(None))
            .order_by(Channel.id)
            .limit(self.settings.FEED_BATCH_NEVER_SYNCED_LIMIT)
        )
        oldest = await db.execute(
            select(Channel)
            .where(Channel.last_synced_at.is_not(None), Channel.last_synced_at < cutoff)
            .order_by(Channel.last_synced_at, Channel.id)
            .limit(self.settings.FEED_BATCH_OLDEST_LIMIT)
        )

        selected: Dict[int, Channel] = {}
        for channel in [*never_synced.scalars().all(), *oldest.scalars().all()]:
            if len(selected) >= max_channels:
                break
            selected.setdefault(channel.id, channel)

        if len(selected) < max_channels:
            stmt = (
                select(Channel)
                .where(self._is_stale(cutoff))
                .order_by(Channel.last_synced_at.asc().nulls_first(), Channel.id)
                .limit(max_channels - len(selected))
            )
            if selected:
                stmt = stmt.where(Channel.id.not_in(list(selected)))
            top_up = await db.execute(stmt)
            for channel in top_up.scalars().all():
                selected.setdefault(channel.id, channel)

        return list(selected.values())

    async def count_stale(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Channels never synced or last synced before the cutoff."""
        now = now or utcnow()
        result = await db.execute(
            select(func.count()).select_from(Channel).where(self._is_stale(self.stale_cutoff(now)))
        )
        return result.scalar_one()

    # ========================================
    # Batch Processing
    # ========================================

    async def run_batch(self, db: AsyncSession, job_id: str, now: Optional[datetime] = None) -> BatchSyncResult:
        """
        Sync one batch of channels.

        Fetch errors are recorded as ChannelFailure rows and never abort the
        batch; enrichment errors are swallowed. Must be called inside the
        caller's transaction, nothing is committed here.

        Args:
            db: Session with an open transaction
            job_id: Identifier of the job invocation, stored on failures
            now: Sync timestamp (defaults to the current UTC time)

        Returns:
            BatchSyncResult; ``is_completed`` tells whether to run again
        """
        now = now or utcnow()
        result = BatchSyncResult(job_id=job_id)

        channels = await self.select_batch(db, now)
        result.selected = len(channels)
        logger.info(f"[{job_id}] Syncing {len(channels)} channels")

        fetches: List[FeedResult] = await asyncio.gather(
            *(
                fetch_channel_feed(self.client, channel.feed_url, channel.content_hash, self.decoder)
                for channel in channels
            )
        )

        candidates: List[YouTubeCandidate] = []
        synced_ids: List[int] = []

        for channel, fetched in zip(channels, fetches):
            # Every attempt counts as a sync so a broken feed waits for the
            # next sweep instead of being retried immediately
            channel.last_synced_at = now

            if not fetched.ok:
                record_channel_failure(db, channel.id, job_id, fetched.error)
                result.failed += 1
                kind = str(fetched.error.kind)
                result.failures[kind] = result.failures.get(kind, 0) + 1
                continue

            channel.content_hash = fetched.content_hash
            apply_feed_metadata(channel, fetched.feed)

            upserted = await upsert_entries(db, channel, fetched.feed)
            result.entries_created += upserted.created
            result.entries_updated += upserted.updated
            result.entries_skipped += upserted.skipped
            candidates.extend(upserted.youtube_candidates)
            synced_ids.append(channel.id)
            result.succeeded += 1

        await db.flush()

        result.videos_resolved = await self.youtube.resolve_video_durations(db, candidates)
        if synced_ids:
            result.podcasts_linked = await self.podcasts.link_podcast_channels(db, synced_ids)
        await db.flush()

        result.remaining = await self.count_stale(db, now)

        logger.info(
            f"[{job_id}] Batch done: {result.succeeded} synced, {result.failed} failed, "
            f"{result.entries_created} new entries, {result.remaining} channels still stale"
        )
        return result
