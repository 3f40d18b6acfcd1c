"""Business logic services."""

from feedhub.services.directory import CatalogFetchError, fetch_directory, normalize_directory
from feedhub.services.durations import DurationParseError, IsoDuration, parse_iso8601_duration
from feedhub.services.enrichment import EnrichmentAPIError, PodcastLookupService, YouTubeDurationService
from feedhub.services.feed_decoder import FeedDecoder, FeedDecodingError
from feedhub.services.feed_fetcher import ChannelFetchError, fetch_channel_feed
from feedhub.services.feed_sync import BatchSyncResult, FeedSyncService
from feedhub.services.reconciler import InvalidParentError, import_directory, reconcile_channels

__all__ = [
    "BatchSyncResult",
    "CatalogFetchError",
    "ChannelFetchError",
    "DurationParseError",
    "EnrichmentAPIError",
    "FeedDecoder",
    "FeedDecodingError",
    "FeedSyncService",
    "InvalidParentError",
    "IsoDuration",
    "PodcastLookupService",
    "YouTubeDurationService",
    "fetch_channel_feed",
    "fetch_directory",
    "import_directory",
    "normalize_directory",
    "parse_iso8601_duration",
    "reconcile_channels",
]
