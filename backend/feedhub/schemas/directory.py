"""
Directory document schemas (Pydantic models for the catalog JSON).

The directory is a list of language documents, each holding categories,
each holding sites:

    [
        {
            "language": "en",
            "title": "English",
            "categories": [
                {
                    "slug": "podcasts",
                    "title": "Podcasts",
                    "sites": [
                        {
                            "title": "Swift by Sundell",
                            "author": "John Sundell",
                            "site_url": "https://swiftbysundell.com",
                            "feed_url": "https://swiftbysundell.com/feed.rss",
                            "twitter_url": "https://twitter.com/johnsundell"
                        }
                    ]
                }
            ]
        }
    ]

URLs are kept as plain strings: ``feed_url`` is the channel's natural key and
must be compared exactly as published.
"""

from typing import List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, Field


# ================================
# Directory Schemas
# ================================

class Site(BaseModel):
    """One site (blog, podcast or YouTube channel) listed in the directory."""

    title: str
    author: Optional[str] = None
    site_url: str
    feed_url: str
    twitter_url: Optional[str] = None

    @property
    def author_name(self) -> str:
        """Author as listed, falling back to the site title."""
        return self.author or self.title

    @property
    def twitter_handle(self) -> Optional[str]:
        """
        Last path component of ``twitter_url``.

        Example:
            "https://twitter.com/johnsundell" -> "johnsundell"
        """
        if not self.twitter_url:
            return None
        path = urlparse(self.twitter_url).path.rstrip("/")
        handle = path.rsplit("/", 1)[-1]
        return handle or None


class CategoryContent(BaseModel):
    slug: str
    title: str
    description: Optional[str] = None
    sites: List[Site] = Field(default_factory=list)


class LanguageContent(BaseModel):
    language: str = Field(..., description="Language code, e.g. 'en'")
    title: str
    categories: List[CategoryContent] = Field(default_factory=list)
