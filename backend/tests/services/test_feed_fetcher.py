"""
Unit tests for feed fetching, change detection and failure classification.
"""

import hashlib

import httpx
import pytest

from feedhub.models import Channel, ChannelFailureType
from feedhub.services.feed_decoder import DecodedFeed, FeedAuthor
from feedhub.services.feed_fetcher import (
    apply_feed_metadata,
    build_http_client,
    classify_failure,
    compute_content_hash,
    fetch_channel_feed,
)
from tests.factories import rss_feed

FEED_URL = "https://swift.test/feed.xml"


class TestClassifyFailure:
    """Test suite for classify_failure."""

    @pytest.mark.parametrize("has_body,previous_hash,expected", [
        (False, None, ChannelFailureType.MISSING),
        (False, "", ChannelFailureType.MISSING),
        (False, "d41d8cd98f00b204e9800998ecf8427e", ChannelFailureType.DOWNLOAD),
        (True, None, ChannelFailureType.DECODING),
        (True, "d41d8cd98f00b204e9800998ecf8427e", ChannelFailureType.DECODING),
    ])
    def test_classification(self, has_body, previous_hash, expected):
        assert classify_failure(has_body, previous_hash) == expected


class TestFetchChannelFeed:
    """Test suite for fetch_channel_feed."""

    @pytest.mark.asyncio
    async def test_success_returns_feed_and_md5(self, make_client):
        body = rss_feed([{"guid": "1", "description": "d", "pub_date": "Mon, 06 Jan 2025 10:00:00 GMT"}])
        client = make_client(lambda request: httpx.Response(200, content=body))

        result = await fetch_channel_feed(client, FEED_URL)

        assert result.ok
        assert result.error is None
        assert result.content_hash == hashlib.md5(body).hexdigest()
        assert result.content_hash == compute_content_hash(body)
        assert [item.id for item in result.feed.items] == ["1"]

    @pytest.mark.asyncio
    async def test_not_found_without_history_is_missing(self, make_client):
        client = make_client(lambda request: httpx.Response(404))

        result = await fetch_channel_feed(client, FEED_URL)

        assert not result.ok
        assert result.content_hash is None
        assert result.error.kind == ChannelFailureType.MISSING
        assert "404" in result.error.message

    @pytest.mark.asyncio
    async def test_not_found_with_history_is_download(self, make_client):
        client = make_client(lambda request: httpx.Response(500))

        result = await fetch_channel_feed(client, FEED_URL, previous_hash="abc")

        assert result.error.kind == ChannelFailureType.DOWNLOAD

    @pytest.mark.asyncio
    async def test_transport_error_counts_as_no_body(self, make_client):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        client = make_client(handler)

        missing = await fetch_channel_feed(client, FEED_URL)
        download = await fetch_channel_feed(client, FEED_URL, previous_hash="abc")

        assert missing.error.kind == ChannelFailureType.MISSING
        assert download.error.kind == ChannelFailureType.DOWNLOAD
        assert "ConnectTimeout" in download.error.message

    @pytest.mark.asyncio
    async def test_empty_body_counts_as_no_body(self, make_client):
        client = make_client(lambda request: httpx.Response(200, content=b""))

        result = await fetch_channel_feed(client, FEED_URL)

        assert result.error.kind == ChannelFailureType.MISSING

    @pytest.mark.asyncio
    async def test_undecodable_body_is_decoding(self, make_client):
        client = make_client(lambda request: httpx.Response(200, content=b"<html>maintenance</html>"))

        first = await fetch_channel_feed(client, FEED_URL)
        again = await fetch_channel_feed(client, FEED_URL, previous_hash="abc")

        assert first.error.kind == ChannelFailureType.DECODING
        assert again.error.kind == ChannelFailureType.DECODING
        assert first.content_hash is None

    @pytest.mark.asyncio
    async def test_body_naming_a_local_file_is_decoding(self, make_client, tmp_path):
        local = tmp_path / "local.xml"
        local.write_bytes(rss_feed([{"guid": "LOCAL", "description": "d", "pub_date": "Mon, 06 Jan 2025 10:00:00 GMT"}]))
        client = make_client(lambda request: httpx.Response(200, content=str(local).encode()))

        result = await fetch_channel_feed(client, FEED_URL)

        assert not result.ok
        assert result.error.kind == ChannelFailureType.DECODING

    @pytest.mark.asyncio
    async def test_invalid_url_is_not_raised(self, make_client):
        client = make_client(lambda request: httpx.Response(200))

        result = await fetch_channel_feed(client, "not a url")

        assert not result.ok
        assert result.error.kind == ChannelFailureType.MISSING


class TestBuildHttpClient:
    """Test suite for build_http_client."""

    @pytest.mark.asyncio
    async def test_client_carries_settings(self, settings):
        client = build_http_client(settings)
        try:
            assert client.headers["User-Agent"] == settings.FEED_USER_AGENT
            assert client.timeout.read == settings.FEED_REQUEST_TIMEOUT
            assert client.follow_redirects is True
        finally:
            await client.aclose()


class TestApplyFeedMetadata:
    """Test suite for apply_feed_metadata."""

    def _channel(self, **overrides) -> Channel:
        values = {
            "title": "Swift",
            "author": "Directory Author",
            "site_url": "https://swift.test",
            "feed_url": FEED_URL,
            "language_code": "en",
            "category_slug": "ios",
        }
        values.update(overrides)
        return Channel(**values)

    def test_first_author_overrides_author_and_email(self):
        channel = self._channel(email="old@swift.test")
        feed = DecodedFeed(authors=[
            FeedAuthor(name="Feed Author", email="feed@swift.test"),
            FeedAuthor(name="Second"),
        ])

        apply_feed_metadata(channel, feed)

        assert channel.author == "Feed Author"
        assert channel.email == "feed@swift.test"

    def test_author_without_email_clears_email(self):
        channel = self._channel(email="old@swift.test")

        apply_feed_metadata(channel, DecodedFeed(authors=[FeedAuthor(name="Feed Author")]))

        assert channel.email is None

    def test_no_author_keeps_directory_author(self):
        channel = self._channel(email="old@swift.test")

        apply_feed_metadata(channel, DecodedFeed())

        assert channel.author == "Directory Author"
        assert channel.email == "old@swift.test"

    def test_image_only_replaced_when_present(self):
        channel = self._channel(image_url="https://swift.test/old.png")

        apply_feed_metadata(channel, DecodedFeed())
        assert channel.image_url == "https://swift.test/old.png"

        apply_feed_metadata(channel, DecodedFeed(image="https://swift.test/new.png"))
        assert channel.image_url == "https://swift.test/new.png"

    def test_subtitle_only_set_when_empty(self):
        channel = self._channel()

        apply_feed_metadata(channel, DecodedFeed(summary="First"))
        apply_feed_metadata(channel, DecodedFeed(summary="Second"))

        assert channel.subtitle == "First"

    def test_overlong_values_fit_their_columns(self):
        channel = self._channel(email="old@swift.test", image_url="https://swift.test/old.png")
        feed = DecodedFeed(
            authors=[FeedAuthor(name="N" * 300, email="e" * 250 + "@swift.test")],
            image="https://swift.test/" + "x" * 3000,
        )

        apply_feed_metadata(channel, feed)

        assert channel.author == "N" * 255
        assert channel.email is None
        assert channel.image_url == "https://swift.test/old.png"
