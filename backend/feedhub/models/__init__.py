"""
Database models.

Importing this package registers every table on ``Base.metadata``.
"""

from feedhub.models.catalog import (
    Category,
    CategoryTitle,
    ChannelStatus,
    ChannelStatusType,
    Language,
)
from feedhub.models.feeds import (
    Channel,
    ChannelFailure,
    ChannelFailureType,
    Entry,
)
from feedhub.models.media import (
    PodcastChannel,
    PodcastEpisode,
    YouTubeChannel,
    YoutubeVideo,
)

__all__ = [
    # Catalog
    "Language",
    "Category",
    "CategoryTitle",
    "ChannelStatus",
    "ChannelStatusType",
    # Feeds
    "Channel",
    "Entry",
    "ChannelFailure",
    "ChannelFailureType",
    # Media enrichment
    "YouTubeChannel",
    "PodcastChannel",
    "YoutubeVideo",
    "PodcastEpisode",
]
