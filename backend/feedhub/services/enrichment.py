"""
Enrichment services: Apple Podcasts and YouTube lookups.

Both are best effort. Any API failure is logged and swallowed; nothing is
recorded and the lookup simply happens again on the next sync.

- PodcastLookupService links podcast channels to their iTunes collection
- YouTubeDurationService resolves video lengths in batches of at most 50
  ids (the Data API ceiling) and stores them on YoutubeVideo rows
"""

import asyncio
import logging
from typing import Dict, Iterable, List, Optional, Sequence, TypeVar

import httpx
from sqlalchemy import exists, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from feedhub.core.config import Settings
from feedhub.models import Channel, Entry, PodcastChannel, PodcastEpisode, YoutubeVideo
from feedhub.services.durations import DurationParseError, IsoDuration
from feedhub.services.entries import YouTubeCandidate
from feedhub.services.upsert import KeyedUpsert

logger = logging.getLogger(__name__)

T = TypeVar("T")

YOUTUBE_MAX_IDS_PER_REQUEST = 50


# ========================================
# Custom Exceptions
# ========================================


class EnrichmentAPIError(Exception):
    """Raised when an enrichment API call fails or returns nothing usable."""
    pass


def chunked(items: Sequence[T], size: int) -> List[List[T]]:
    """
    Split ``items`` into consecutive chunks of at most ``size``.

    Example:
        >>> [len(c) for c in chunked(list(range(237)), 50)]
        [50, 50, 50, 50, 37]
    """
    if size < 1:
        raise ValueError("chunk size must be positive")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


async def _get_json(
    client: httpx.AsyncClient,
    url: str,
    params: Dict[str, str],
    timeout: Optional[float] = None,
) -> dict:
    kwargs = {"timeout": timeout} if timeout is not None else {}
    try:
        response = await client.get(url, params=params, **kwargs)
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as e:
        raise EnrichmentAPIError(f"HTTP {e.response.status_code} from {url}") from e
    except httpx.HTTPError as e:
        raise EnrichmentAPIError(f"Request to {url} failed: {e}") from e
    except ValueError as e:
        raise EnrichmentAPIError(f"Invalid JSON from {url}: {e}") from e

    if not isinstance(payload, dict):
        raise EnrichmentAPIError(f"Unexpected response shape from {url}")
    return payload


def _records(payload: dict, key: str, url: str) -> List[dict]:
    """
    The object records under ``payload[key]``.

    A missing key means no records. Anything other than a list is a
    malformed response; non-object members are dropped.

    Raises:
        EnrichmentAPIError: If ``payload[key]`` is present but not a list
    """
    records = payload.get(key)
    if records is None:
        return []
    if not isinstance(records, list):
        raise EnrichmentAPIError(f"Unexpected {key!r} in response from {url}")
    return [record for record in records if isinstance(record, dict)]


# ========================================
# YouTube Durations
# ========================================


class YouTubeDurationService:
    """
    Resolve YouTube video durations through the Data API ``videos`` endpoint.

    Example:
        >>> service = YouTubeDurationService(client, api_key="...")
        >>> await service.fetch_durations(["dQw4w9WgXcQ"])
        {'dQw4w9WgXcQ': 'PT3M33S'}
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: str,
        videos_url: str = "https://www.googleapis.com/youtube/v3/videos",
        max_ids_per_request: int = YOUTUBE_MAX_IDS_PER_REQUEST,
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.api_key = api_key
        self.videos_url = videos_url
        self.max_ids_per_request = min(max_ids_per_request, YOUTUBE_MAX_IDS_PER_REQUEST)
        self.timeout = timeout

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "YouTubeDurationService":
        return cls(
            client,
            api_key=settings.YOUTUBE_API_KEY,
            videos_url=settings.YOUTUBE_VIDEOS_URL,
            max_ids_per_request=settings.YOUTUBE_MAX_IDS_PER_REQUEST,
            timeout=settings.YOUTUBE_REQUEST_TIMEOUT,
        )

    async def fetch_durations_chunk(self, video_ids: Sequence[str]) -> Dict[str, str]:
        """
        One ``videos`` request for up to 50 ids.

        Returns:
            video id -> ISO-8601 duration, for the videos the API reported

        Raises:
            EnrichmentAPIError: On any request or response problem
        """
        if len(video_ids) > self.max_ids_per_request:
            raise ValueError(f"At most {self.max_ids_per_request} ids per request")

        payload = await _get_json(
            self.client,
            self.videos_url,
            params={
                "part": "contentDetails",
                "fields": "items/id,items/contentDetails/duration",
                "id": ",".join(video_ids),
                "key": self.api_key,
            },
            timeout=self.timeout,
        )

        durations = {}
        for item in _records(payload, "items", self.videos_url):
            video_id = item.get("id")
            details = item.get("contentDetails")
            duration = details.get("duration") if isinstance(details, dict) else None
            if isinstance(video_id, str) and isinstance(duration, str) and video_id and duration:
                durations[video_id] = duration
        return durations

    async def fetch_durations(self, video_ids: Iterable[str]) -> Dict[str, str]:
        """
        Fetch durations for any number of ids.

        Ids are deduplicated and split into chunks that are requested
        concurrently. A failing chunk is logged and left out; the other
        chunks still contribute.

        Returns:
            Merged video id -> ISO-8601 duration map
        """
        unique_ids = list(dict.fromkeys(video_ids))
        if not unique_ids:
            return {}

        chunks = chunked(unique_ids, self.max_ids_per_request)
        logger.info(f"Requesting durations for {len(unique_ids)} videos in {len(chunks)} requests")

        responses = await asyncio.gather(
            *(self.fetch_durations_chunk(chunk) for chunk in chunks),
            return_exceptions=True,
        )

        durations: Dict[str, str] = {}
        for chunk, response in zip(chunks, responses):
            if isinstance(response, EnrichmentAPIError):
                logger.warning(f"YouTube duration lookup failed for {len(chunk)} videos: {response}")
                continue
            if isinstance(response, BaseException):
                raise response
            durations.update(response)
        return durations

    async def resolve_video_durations(
        self,
        db: AsyncSession,
        candidates: Sequence[YouTubeCandidate],
    ) -> int:
        """
        Store durations for entries whose video has none yet.

        Args:
            db: Session inside the batch transaction
            candidates: Entries with an unresolved YouTube video

        Returns:
            Number of YoutubeVideo rows given a duration
        """
        if not candidates:
            return 0

        durations = await self.fetch_durations(c.youtube_id for c in candidates)

        videos = KeyedUpsert(db, YoutubeVideo, ("entry_id",))
        resolved = 0
        for candidate in candidates:
            raw = durations.get(candidate.youtube_id)
            if raw is None:
                continue
            try:
                seconds = IsoDuration.parse(raw).seconds
            except DurationParseError as e:
                logger.debug(f"Skipping video {candidate.youtube_id}: {e}")
                continue

            def apply(video: YoutubeVideo, created: bool, candidate=candidate, seconds=seconds) -> None:
                video.youtube_id = candidate.youtube_id
                video.duration_seconds = seconds

            await videos.upsert({"entry_id": candidate.entry_id}, apply)
            resolved += 1

        logger.info(f"Resolved durations for {resolved} of {len(candidates)} videos")
        return resolved


# ========================================
# Apple Podcasts
# ========================================


class PodcastLookupService:
    """Link podcast channels to their Apple iTunes collection id."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        search_url: str = "https://itunes.apple.com/search",
        podcast_category_slug: str = "podcasts",
        timeout: Optional[float] = None,
    ):
        self.client = client
        self.search_url = search_url
        self.podcast_category_slug = podcast_category_slug
        self.timeout = timeout

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "PodcastLookupService":
        return cls(
            client,
            search_url=settings.APPLE_PODCAST_SEARCH_URL,
            podcast_category_slug=settings.PODCAST_CATEGORY_SLUG,
            timeout=settings.APPLE_PODCAST_REQUEST_TIMEOUT,
        )

    async def search_collection_id(self, title: str) -> int:
        """
        Search the iTunes catalog for a podcast by title.

        Returns:
            collectionId of the first result

        Raises:
            EnrichmentAPIError: On request failure or when nothing matches
        """
        payload = await _get_json(
            self.client,
            self.search_url,
            params={
                "media": "podcast",
                "attribute": "titleTerm",
                "limit": "1",
                "entity": "podcast",
                "term": title,
            },
            timeout=self.timeout,
        )
        results = _records(payload, "results", self.search_url)
        if not results or results[0].get("collectionId") is None:
            raise EnrichmentAPIError(f"No podcast found for {title!r}")
        try:
            return int(results[0]["collectionId"])
        except (KeyError, TypeError, ValueError) as e:
            raise EnrichmentAPIError(f"Invalid collectionId for {title!r}") from e

    async def find_candidates(
        self,
        db: AsyncSession,
        channel_ids: Optional[Iterable[int]] = None,
    ) -> List[Channel]:
        """
        Channels that look like podcasts and are not linked yet.

        A channel qualifies when it has an entry with an audio enclosure or
        sits in the podcasts category, and has no PodcastChannel row.

        Args:
            channel_ids: Restrict the search to these channels
        """
        has_audio = exists(
            select(PodcastEpisode.entry_id)
            .join(Entry, Entry.id == PodcastEpisode.entry_id)
            .where(Entry.channel_id == Channel.id)
        )
        linked = exists(select(PodcastChannel.channel_id).where(PodcastChannel.channel_id == Channel.id))

        stmt = select(Channel).where(
            or_(Channel.category_slug == self.podcast_category_slug, has_audio),
            ~linked,
        )
        if channel_ids is not None:
            stmt = stmt.where(Channel.id.in_(list(channel_ids)))

        result = await db.execute(stmt.order_by(Channel.id))
        return list(result.scalars().all())

    async def link_podcast_channels(
        self,
        db: AsyncSession,
        channel_ids: Optional[Iterable[int]] = None,
    ) -> int:
        """
        Look up and link every candidate channel.

        Returns:
            Number of PodcastChannel rows created
        """
        candidates = await self.find_candidates(db, channel_ids)
        if not candidates:
            return 0

        lookups = await asyncio.gather(
            *(self.search_collection_id(channel.title) for channel in candidates),
            return_exceptions=True,
        )

        links = KeyedUpsert(db, PodcastChannel, ("channel_id",))
        linked = 0
        for channel, lookup in zip(candidates, lookups):
            if isinstance(lookup, EnrichmentAPIError):
                logger.debug(f"No podcast link for channel {channel.id}: {lookup}")
                continue
            if isinstance(lookup, BaseException):
                raise lookup

            def apply(link: PodcastChannel, created: bool, collection_id: int = lookup) -> None:
                link.collection_id = collection_id

            await links.upsert({"channel_id": channel.id}, apply)
            linked += 1

        logger.info(f"Linked {linked} of {len(candidates)} podcast channels")
        return linked
