"""
Feed fetching and change detection.

One GET per channel. The outcome is either a decoded feed plus the MD5 of
the raw bytes, or a classified ChannelFetchError:

- no body, channel never fetched before  -> missing
- no body, channel has a stored hash     -> download
- body that the decoder rejects          -> decoding

A non-2xx status or a transport error (timeout, DNS, TLS, ...) counts as
"no body". Fetch errors are returned, not raised, so one broken feed never
interrupts the batch.
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import httpx

from feedhub.core.config import Settings
from feedhub.db.base import String255, String2048, clip, fits
from feedhub.models import Channel, ChannelFailureType
from feedhub.services.feed_decoder import DecodedFeed, FeedDecoder, FeedDecodingError

logger = logging.getLogger(__name__)


# ========================================
# Custom Exceptions
# ========================================


class ChannelFetchError(Exception):
    """A single channel's fetch failed. Recorded, never fatal."""

    def __init__(self, kind: ChannelFailureType, feed_url: str, message: str):
        self.kind = kind
        self.feed_url = feed_url
        self.message = message
        super().__init__(f"{kind} error for {feed_url}: {message}")


# ========================================
# Fetch Result
# ========================================


@dataclass
class FeedResult:
    feed_url: str
    feed: Optional[DecodedFeed] = None
    content_hash: Optional[str] = None
    error: Optional[ChannelFetchError] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.feed is not None


def compute_content_hash(content: bytes) -> str:
    """MD5 hex digest of the raw feed bytes."""
    return hashlib.md5(content).hexdigest()


def classify_failure(has_body: bool, previous_hash: Optional[str]) -> ChannelFailureType:
    """
    Classify a failed fetch.

    Args:
        has_body: Whether a response body was received
        previous_hash: Content hash stored by the last successful fetch

    Returns:
        DECODING when a body arrived (it could not be decoded), otherwise
        DOWNLOAD if the feed was fetched successfully before, else MISSING
    """
    if has_body:
        return ChannelFailureType.DECODING
    if previous_hash:
        return ChannelFailureType.DOWNLOAD
    return ChannelFailureType.MISSING


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Shared client for feed, directory and enrichment requests."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.FEED_REQUEST_TIMEOUT),
        headers={"User-Agent": settings.FEED_USER_AGENT},
        follow_redirects=True,
    )


async def download_feed(client: httpx.AsyncClient, feed_url: str) -> Tuple[Optional[bytes], str]:
    """
    GET ``feed_url``.

    Returns:
        (body, reason). body is None when nothing usable came back; reason
        then describes why.
    """
    try:
        response = await client.get(feed_url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        message = str(e) or "no details"
        return None, f"{type(e).__name__}: {message}"

    if not response.is_success:
        return None, f"HTTP {response.status_code}"
    if not response.content:
        return None, "empty response body"
    return response.content, ""


async def fetch_channel_feed(
    client: httpx.AsyncClient,
    feed_url: str,
    previous_hash: Optional[str] = None,
    decoder: Optional[FeedDecoder] = None,
) -> FeedResult:
    """
    Fetch and decode one channel's feed.

    Args:
        client: Shared HTTP client (carries the timeout)
        feed_url: Channel feed URL
        previous_hash: Channel's stored content hash, used for classification
        decoder: Feed decoder, a default FeedDecoder when omitted

    Returns:
        FeedResult holding either the decoded feed and hash, or the error
    """
    decoder = decoder or FeedDecoder()

    body, reason = await download_feed(client, feed_url)
    if body is None:
        kind = classify_failure(False, previous_hash)
        logger.info(f"No feed body for {feed_url} ({kind}): {reason}")
        return FeedResult(
            feed_url=feed_url,
            error=ChannelFetchError(kind, feed_url, reason),
        )

    try:
        feed = decoder.decode(body)
    except FeedDecodingError as e:
        logger.info(f"Could not decode feed {feed_url}: {e}")
        return FeedResult(
            feed_url=feed_url,
            error=ChannelFetchError(classify_failure(True, previous_hash), feed_url, str(e)),
        )

    return FeedResult(
        feed_url=feed_url,
        feed=feed,
        content_hash=compute_content_hash(body),
    )


def apply_feed_metadata(channel: Channel, feed: DecodedFeed) -> None:
    """
    Refresh channel fields from a decoded feed.

    The first feed author overrides author and email. The image is only
    replaced when the feed has one, and the subtitle is only filled in when
    the channel has none.

    Values longer than their column are not stored as-is: an author name is
    truncated, an over-long email is dropped, and an over-long image URL
    leaves the stored one in place.
    """
    author = feed.author
    if author is not None:
        if author.name:
            channel.author = clip(author.name, String255)
        channel.email = author.email if fits(author.email, String255) else None

    if feed.image and fits(feed.image, String2048):
        channel.image_url = feed.image

    if not channel.subtitle and feed.summary:
        channel.subtitle = feed.summary
