"""
Directory service: download the site catalog and flatten it.

The catalog is a nested language -> category -> site document. Ingestion
needs it flat: a language map, a per-language category title map, and a
list of sites tagged with their language and category.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from feedhub.schemas.directory import LanguageContent, Site

logger = logging.getLogger(__name__)

_directory_adapter = TypeAdapter(List[LanguageContent])


# ========================================
# Custom Exceptions
# ========================================


class CatalogFetchError(Exception):
    """
    Raised when the directory cannot be downloaded or decoded.

    Fatal for the whole import: no partial catalog is usable because every
    channel's language and category must resolve.
    """
    pass


# ========================================
# Normalized Directory
# ========================================


@dataclass(frozen=True)
class OrganizedSite:
    """A site tagged with the language and category it was listed under."""

    language_code: str
    category_slug: str
    site: Site

    @property
    def feed_url(self) -> str:
        return self.site.feed_url


@dataclass
class SiteDirectory:
    """
    Flattened catalog.

    Attributes:
        languages: language code -> title
        categories: category slug -> {language code -> title}
        category_descriptions: category slug -> {language code -> description}
        organized_sites: every site listing, in document order
    """

    languages: Dict[str, str] = field(default_factory=dict)
    categories: Dict[str, Dict[str, str]] = field(default_factory=dict)
    category_descriptions: Dict[str, Dict[str, Optional[str]]] = field(default_factory=dict)
    organized_sites: List[OrganizedSite] = field(default_factory=list)

    def sites(self, ignored: Iterable[str] = ()) -> List[OrganizedSite]:
        """
        Sites to reconcile: one per feed URL, ignored URLs removed.

        When a feed URL is listed more than once (e.g. under two categories)
        the first listing wins.
        """
        ignored = set(ignored)
        seen = set()
        result = []
        for organized in self.organized_sites:
            feed_url = organized.feed_url
            if feed_url in ignored or feed_url in seen:
                continue
            seen.add(feed_url)
            result.append(organized)
        return result


# ========================================
# Parsing / Fetching
# ========================================


def parse_directory(payload: Any) -> List[LanguageContent]:
    """
    Validate a decoded directory document.

    Raises:
        CatalogFetchError: If the document does not match the expected shape
    """
    try:
        return _directory_adapter.validate_python(payload)
    except ValidationError as e:
        raise CatalogFetchError(f"Invalid directory document: {e}") from e


async def fetch_directory(
    client: httpx.AsyncClient,
    url: str,
    timeout: Optional[float] = None,
) -> List[LanguageContent]:
    """
    Download and validate the directory document.

    Args:
        client: Shared HTTP client
        url: Directory JSON URL
        timeout: Per-request timeout override

    Returns:
        List of language documents

    Raises:
        CatalogFetchError: On transport errors, non-2xx status, invalid JSON
            or an invalid document
    """
    logger.info(f"Downloading directory from {url}")
    try:
        kwargs = {"timeout": timeout} if timeout is not None else {}
        response = await client.get(url, **kwargs)
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as e:
        raise CatalogFetchError(
            f"Directory request failed with status {e.response.status_code}"
        ) from e
    except httpx.HTTPError as e:
        raise CatalogFetchError(f"Directory request failed: {e}") from e
    except ValueError as e:
        raise CatalogFetchError(f"Directory is not valid JSON: {e}") from e

    languages = parse_directory(payload)
    logger.info(f"Downloaded directory with {len(languages)} languages")
    return languages


def normalize_directory(languages: Iterable[LanguageContent]) -> SiteDirectory:
    """
    Flatten language documents into a SiteDirectory.

    The last occurrence wins for a repeated language code or a repeated
    (category, language) pair.
    """
    directory = SiteDirectory()

    for language in languages:
        directory.languages[language.language] = language.title

        for category in language.categories:
            titles = directory.categories.setdefault(category.slug, {})
            titles[language.language] = category.title
            descriptions = directory.category_descriptions.setdefault(category.slug, {})
            descriptions[language.language] = category.description

            for site in category.sites:
                directory.organized_sites.append(
                    OrganizedSite(
                        language_code=language.language,
                        category_slug=category.slug,
                        site=site,
                    )
                )

    logger.debug(
        f"Normalized directory: {len(directory.languages)} languages, "
        f"{len(directory.categories)} categories, "
        f"{len(directory.organized_sites)} site listings"
    )
    return directory
