"""
Channel reconciler: bring the database in line with the directory.

One directory import:
1. Upserts languages, categories and localized category titles
2. Deletes channels whose feed URL is on the ignore list
3. Creates or updates one channel per remaining site

Catalog fields are overwritten on every import (last write wins). Feed-side
fields (hash, sync time, image, email, subtitle) are left alone here; they
belong to the feed sync.

The caller owns the transaction: ``import_directory`` never commits.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

import httpx
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from feedhub.core.config import Settings
from feedhub.models import (
    Category,
    CategoryTitle,
    Channel,
    ChannelStatus,
    ChannelStatusType,
    Language,
)
from feedhub.services.directory import (
    OrganizedSite,
    SiteDirectory,
    fetch_directory,
    normalize_directory,
)
from feedhub.services.upsert import KeyedUpsert

logger = logging.getLogger(__name__)


# ========================================
# Custom Exceptions
# ========================================


class InvalidParentError(Exception):
    """
    A site references a language or category that has no row.

    Collected in the ReconcileResult, never raised out of the import: the
    site is skipped and the rest of the catalog is still reconciled.
    """

    def __init__(self, feed_url: str, language_code: str, category_slug: str, missing: str):
        self.feed_url = feed_url
        self.language_code = language_code
        self.category_slug = category_slug
        self.missing = missing
        super().__init__(
            f"Skipping {feed_url}: unknown {missing} "
            f"(language={language_code!r}, category={category_slug!r})"
        )


# ========================================
# Result
# ========================================


@dataclass
class ReconcileResult:
    languages: int = 0
    categories: int = 0
    deleted: int = 0
    created: int = 0
    updated: int = 0
    invalid_parents: List[InvalidParentError] = field(default_factory=list)

    def as_dict(self) -> Dict[str, int]:
        return {
            "languages": self.languages,
            "categories": self.categories,
            "channels_deleted": self.deleted,
            "channels_created": self.created,
            "channels_updated": self.updated,
            "sites_skipped": len(self.invalid_parents),
        }


# ========================================
# Catalog Tables
# ========================================


async def get_ignored_feed_urls(db: AsyncSession) -> Set[str]:
    """Feed URLs with status ``ignore`` in the channel status list."""
    result = await db.execute(
        select(ChannelStatus.feed_url).where(ChannelStatus.status == ChannelStatusType.IGNORE)
    )
    return set(result.scalars().all())


async def upsert_languages(db: AsyncSession, languages: Dict[str, str]) -> int:
    """
    Create or retitle one Language row per code.

    Returns:
        Number of languages written
    """
    upserter = KeyedUpsert(db, Language, ("code",))
    await upserter.preload(Language.code.in_(list(languages)))

    for code, title in languages.items():
        def apply(language: Language, created: bool, title: str = title) -> None:
            language.title = title

        await upserter.upsert({"code": code}, apply)

    return len(languages)


async def upsert_categories(
    db: AsyncSession,
    categories: Dict[str, Dict[str, str]],
    descriptions: Optional[Dict[str, Dict[str, Optional[str]]]] = None,
) -> int:
    """
    Create Category rows and their per-language CategoryTitle rows.

    Languages must already exist (see ``upsert_languages``).

    Args:
        categories: slug -> {language code -> title}
        descriptions: slug -> {language code -> description}

    Returns:
        Number of categories written
    """
    descriptions = descriptions or {}
    slugs = list(categories)

    category_upserter = KeyedUpsert(db, Category, ("slug",))
    await category_upserter.preload(Category.slug.in_(slugs))

    title_upserter = KeyedUpsert(db, CategoryTitle, ("language_code", "category_slug"))
    await title_upserter.preload(CategoryTitle.category_slug.in_(slugs))

    for slug, titles in categories.items():
        await category_upserter.upsert({"slug": slug}, lambda category, created: None)

        for language_code, title in titles.items():
            description = descriptions.get(slug, {}).get(language_code)

            def apply(
                category_title: CategoryTitle,
                created: bool,
                title: str = title,
                description: Optional[str] = description,
            ) -> None:
                category_title.title = title
                category_title.description = description

            await title_upserter.upsert(
                {"language_code": language_code, "category_slug": slug},
                apply,
            )

    return len(categories)


# ========================================
# Channels
# ========================================


async def delete_ignored_channels(db: AsyncSession, ignored: Iterable[str]) -> int:
    """
    Delete every channel whose feed URL is ignored.

    Entries, failures and enrichment rows go with it (ON DELETE CASCADE).

    Returns:
        Number of channels deleted
    """
    ignored = list(ignored)
    if not ignored:
        return 0

    result = await db.execute(
        delete(Channel)
        .where(Channel.feed_url.in_(ignored))
        .execution_options(synchronize_session=False)
    )
    deleted = result.rowcount or 0
    if deleted:
        logger.info(f"Deleted {deleted} ignored channels")
    return deleted


def _apply_site(organized: OrganizedSite):
    site = organized.site

    def apply(channel: Channel, created: bool) -> None:
        channel.title = site.title
        channel.author = site.author_name
        channel.site_url = site.site_url
        channel.twitter_handle = site.twitter_handle
        channel.language_code = organized.language_code
        channel.category_slug = organized.category_slug

    return apply


async def reconcile_channels(
    db: AsyncSession,
    directory: SiteDirectory,
    ignored: Optional[Set[str]] = None,
) -> ReconcileResult:
    """
    Purge ignored channels, then upsert one channel per directory site.

    Args:
        db: Session inside the caller's transaction
        directory: Normalized directory
        ignored: Ignored feed URLs; read from the status table when omitted

    Returns:
        ReconcileResult with counts and the skipped sites
    """
    if ignored is None:
        ignored = await get_ignored_feed_urls(db)

    result = ReconcileResult()
    result.deleted = await delete_ignored_channels(db, ignored)

    sites = directory.sites(ignored)
    language_codes = set((await db.execute(select(Language.code))).scalars().all())
    category_slugs = set((await db.execute(select(Category.slug))).scalars().all())

    upserter = KeyedUpsert(db, Channel, ("feed_url",))
    await upserter.preload(Channel.feed_url.in_([s.feed_url for s in sites]))

    for organized in sites:
        missing = None
        if organized.language_code not in language_codes:
            missing = "language"
        elif organized.category_slug not in category_slugs:
            missing = "category"

        if missing:
            error = InvalidParentError(
                organized.feed_url,
                organized.language_code,
                organized.category_slug,
                missing,
            )
            logger.warning(str(error))
            result.invalid_parents.append(error)
            continue

        await upserter.upsert({"feed_url": organized.feed_url}, _apply_site(organized))

    result.created = upserter.created
    result.updated = upserter.updated

    logger.info(
        f"Reconciled channels: {result.created} created, {result.updated} updated, "
        f"{result.deleted} deleted, {len(result.invalid_parents)} skipped"
    )
    return result


async def import_directory(
    db: AsyncSession,
    client: httpx.AsyncClient,
    settings: Settings,
) -> ReconcileResult:
    """
    Full directory pass: fetch, normalize, reconcile.

    Raises:
        CatalogFetchError: If the directory cannot be fetched or decoded.
            Nothing has been written at that point.
    """
    languages = await fetch_directory(
        client,
        settings.DIRECTORY_URL,
        timeout=settings.DIRECTORY_REQUEST_TIMEOUT,
    )
    directory = normalize_directory(languages)

    language_count = await upsert_languages(db, directory.languages)
    category_count = await upsert_categories(
        db,
        directory.categories,
        directory.category_descriptions,
    )
    await db.flush()

    result = await reconcile_channels(db, directory)
    result.languages = language_count
    result.categories = category_count
    return result
