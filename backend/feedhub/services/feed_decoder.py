"""
Feed decoder: RSS / Atom / JSON Feed bytes -> canonical feed.

feedparser does the format work; this module maps its loosely-typed
result onto small dataclasses the rest of the pipeline can rely on, and
turns "this is not a feed" into a FeedDecodingError.
"""

import io
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, List, Optional

import feedparser

logger = logging.getLogger(__name__)


# ========================================
# Custom Exceptions
# ========================================


class FeedDecodingError(Exception):
    """Raised when downloaded bytes cannot be decoded as a feed."""
    pass


# ========================================
# Canonical Feed
# ========================================


@dataclass(frozen=True)
class FeedAuthor:
    name: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class FeedItem:
    """
    One decoded feed item.

    ``id`` is the item identifier from the source (guid / atom id), falling
    back to the item link when the feed provides none.
    """

    id: str
    title: str
    url: str
    content_html: str = ""
    summary: Optional[str] = None
    image: Optional[str] = None
    published: Optional[datetime] = None
    audio_url: Optional[str] = None
    youtube_item_id: Optional[str] = None


@dataclass(frozen=True)
class DecodedFeed:
    title: Optional[str] = None
    authors: List[FeedAuthor] = field(default_factory=list)
    image: Optional[str] = None
    summary: Optional[str] = None
    updated: Optional[datetime] = None
    items: List[FeedItem] = field(default_factory=list)
    youtube_channel_id: Optional[str] = None

    @property
    def author(self) -> Optional[FeedAuthor]:
        """First listed author, if any."""
        return self.authors[0] if self.authors else None


# ========================================
# Decoder
# ========================================


class FeedDecoder:
    """
    Decode raw feed bytes with feedparser.

    Example:
        >>> feed = FeedDecoder().decode(response.content)
        >>> [item.id for item in feed.items]
    """

    def decode(self, content: bytes) -> DecodedFeed:
        """
        Decode feed bytes.

        Args:
            content: Raw response body

        Returns:
            DecodedFeed

        Raises:
            FeedDecodingError: If the bytes are not a recognizable feed
        """
        try:
            # Wrapped so a body is never taken for a path or URL
            parsed = feedparser.parse(io.BytesIO(content))
        except Exception as e:
            raise FeedDecodingError(f"Feed parser failed: {e}") from e

        entries = parsed.get("entries") or []
        if not entries and (parsed.get("bozo") or not parsed.get("version")):
            reason = parsed.get("bozo_exception") or "unrecognized feed format"
            raise FeedDecodingError(f"Not a feed: {reason}")

        meta = parsed.get("feed") or {}
        items = []
        for entry in entries:
            item = self._decode_item(entry)
            if item is not None:
                items.append(item)

        return DecodedFeed(
            title=meta.get("title"),
            authors=_authors(meta),
            image=_feed_image(meta),
            summary=meta.get("subtitle") or meta.get("description"),
            updated=_to_datetime(meta.get("updated_parsed")),
            items=items,
            youtube_channel_id=meta.get("yt_channelid"),
        )

    def _decode_item(self, entry: Any) -> Optional[FeedItem]:
        item_id = entry.get("id") or entry.get("link")
        if not item_id:
            logger.debug("Skipping feed item without id or link")
            return None

        summary = entry.get("summary")
        content_html = ""
        if entry.get("content"):
            content_html = entry["content"][0].get("value") or ""
        if not content_html:
            content_html = summary or ""

        return FeedItem(
            id=item_id,
            title=entry.get("title") or "",
            url=entry.get("link") or "",
            content_html=content_html,
            summary=summary,
            image=_item_image(entry),
            published=_to_datetime(entry.get("published_parsed") or entry.get("updated_parsed")),
            audio_url=_audio_url(entry),
            youtube_item_id=entry.get("yt_videoid"),
        )


# ========================================
# Helpers
# ========================================


def _to_datetime(struct_time: Any) -> Optional[datetime]:
    if not struct_time:
        return None
    return datetime(*struct_time[:6], tzinfo=timezone.utc)


def _authors(meta: Any) -> List[FeedAuthor]:
    authors = []
    for author in meta.get("authors") or []:
        name = author.get("name")
        email = author.get("email")
        if name or email:
            authors.append(FeedAuthor(name=name, email=email))

    if not authors and meta.get("author_detail"):
        detail = meta["author_detail"]
        authors.append(FeedAuthor(name=detail.get("name"), email=detail.get("email")))
    return authors


def _feed_image(meta: Any) -> Optional[str]:
    image = meta.get("image") or {}
    return image.get("href") or image.get("url")


def _item_image(entry: Any) -> Optional[str]:
    thumbnails = entry.get("media_thumbnail") or []
    if thumbnails and thumbnails[0].get("url"):
        return thumbnails[0]["url"]
    image = entry.get("image") or {}
    return image.get("href")


def _audio_url(entry: Any) -> Optional[str]:
    for enclosure in entry.get("enclosures") or []:
        if (enclosure.get("type") or "").startswith("audio"):
            return enclosure.get("href")
    return None
