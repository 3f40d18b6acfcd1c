"""
Celery tasks for the ingestion pipeline.

This module contains:
- directory.import_directory: download the catalog, reconcile languages,
  categories and channels, then kick off a feed sync
- feeds.sync_feeds: one batch of the drain loop; re-enqueues itself while
  stale channels remain

Both run their whole database work in one transaction. The async bodies
(``run_directory_import``, ``run_feed_sync``) are plain coroutines so the CLI
and the tests can drive them without a broker.
"""

import asyncio
import logging
import uuid
from typing import Any, Dict, Optional

import httpx
from celery import Task
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedhub.core.config import Settings, get_settings
from feedhub.db.session import close_db, get_sessionmaker
from feedhub.services.directory import CatalogFetchError
from feedhub.services.feed_fetcher import build_http_client
from feedhub.services.feed_sync import BatchSyncResult, FeedSyncService
from feedhub.services.reconciler import import_directory
from feedhub.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


# ========================================
# Job Bodies
# ========================================


async def run_directory_import(
    settings: Settings,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> Dict[str, Any]:
    """
    Import the directory in one transaction.

    Args:
        settings: Application settings
        session_factory: Session factory; the process-wide one (disposed
            afterwards) when omitted
        client: HTTP client; a new one (closed afterwards) when omitted

    Returns:
        Reconcile counts

    Raises:
        CatalogFetchError: Directory unavailable; nothing was written
    """
    owns_engine = session_factory is None
    owns_client = client is None
    session_factory = session_factory or get_sessionmaker()
    client = client or build_http_client(settings)

    try:
        async with session_factory() as db:
            async with db.begin():
                result = await import_directory(db, client, settings)
        return result.as_dict()
    finally:
        if owns_client:
            await client.aclose()
        if owns_engine:
            await close_db()


async def run_feed_sync(
    settings: Settings,
    job_id: str,
    session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> BatchSyncResult:
    """
    Sync one batch of channels in one transaction.

    Args:
        settings: Application settings
        job_id: Identifier stored on the failures of this batch
        session_factory: Session factory; the process-wide one (disposed
            afterwards) when omitted
        client: HTTP client; a new one (closed afterwards) when omitted

    Returns:
        BatchSyncResult of the batch
    """
    owns_engine = session_factory is None
    owns_client = client is None
    session_factory = session_factory or get_sessionmaker()
    client = client or build_http_client(settings)

    try:
        service = FeedSyncService(settings, client)
        async with session_factory() as db:
            async with db.begin():
                return await service.run_batch(db, job_id)
    finally:
        if owns_client:
            await client.aclose()
        if owns_engine:
            await close_db()


# ========================================
# Base Task Class
# ========================================


class FeedTask(Task):
    """Base task class: retry when the database is unreachable."""

    autoretry_for = (OperationalError,)
    retry_kwargs = {'max_retries': 3}
    retry_backoff = True
    retry_backoff_max = 600  # 10 minutes
    retry_jitter = True


# ========================================
# Tasks
# ========================================


@celery_app.task(
    base=FeedTask,
    name='feeds.sync_feeds',
    bind=True,
)
def sync_feeds(self) -> dict:
    """
    Run one drain-loop batch and re-enqueue while stale channels remain.

    Per-channel fetch failures are recorded in the database and do not fail
    the task.

    Returns:
        Dictionary with task results:
        {
            'job_id': str,
            'selected': int,
            'succeeded': int,
            'failed': int,
            ...
            'remaining': int,
            'is_completed': bool,
            'next_task_id': Optional[str],
            'success': bool
        }
    """
    job_id = self.request.id or str(uuid.uuid4())
    settings = get_settings()

    logger.info(f"Starting feed sync batch {job_id}")
    try:
        batch = asyncio.run(run_feed_sync(settings, job_id))
    except Exception as e:
        logger.error(f"Feed sync batch {job_id} failed: {e}", exc_info=True)
        raise

    result = batch.as_dict()
    result['next_task_id'] = None

    if not batch.is_completed:
        next_task = sync_feeds.delay()
        result['next_task_id'] = next_task.id
        logger.info(
            f"{batch.remaining} channels still stale, queued next batch (task_id={next_task.id})"
        )
    else:
        logger.info("All channels are fresh, feed sync drained")

    result['success'] = True
    return result


@celery_app.task(
    base=FeedTask,
    name='directory.import_directory',
    bind=True,
)
def import_directory_task(self) -> dict:
    """
    Import the directory, then start the feed sync drain loop.

    Scheduled via Celery Beat (3x/day in production).

    Returns:
        Dictionary with task results:
        {
            'languages': int,
            'categories': int,
            'channels_created': int,
            'channels_updated': int,
            'channels_deleted': int,
            'sites_skipped': int,
            'sync_task_id': str,
            'success': bool
        }

    Raises:
        CatalogFetchError: The directory could not be loaded; the run is
            aborted without partial writes
    """
    settings = get_settings()

    logger.info(f"Importing directory from {settings.DIRECTORY_URL}")
    try:
        result = asyncio.run(run_directory_import(settings))
    except CatalogFetchError as e:
        logger.error(f"Directory import aborted: {e}", exc_info=True)
        raise

    sync_task = sync_feeds.delay()
    result['sync_task_id'] = sync_task.id
    result['success'] = True

    logger.info(f"Directory import completed: {result}")
    return result
