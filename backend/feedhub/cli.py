"""CLI entry point for feedhub."""

import asyncio
import uuid
from typing import Optional

import click

from feedhub.core.config import Settings, get_settings
from feedhub.core.logging import setup_logging
from feedhub.db.session import close_db, get_sessionmaker, init_db
from feedhub.services.directory import CatalogFetchError
from feedhub.services.feed_fetcher import build_http_client
from feedhub.tasks.feed_tasks import run_directory_import, run_feed_sync


async def _drain(settings: Settings, max_batches: Optional[int]) -> int:
    """Run feed sync batches in-process until nothing is stale."""
    session_factory = get_sessionmaker()
    batches = 0
    async with build_http_client(settings) as client:
        while max_batches is None or batches < max_batches:
            batch = await run_feed_sync(
                settings,
                str(uuid.uuid4()),
                session_factory=session_factory,
                client=client,
            )
            batches += 1
            click.echo(
                f"Batch {batches}: synced {batch.succeeded}, failed {batch.failed}, "
                f"{batch.entries_created} new entries, {batch.remaining} still stale"
            )
            if batch.is_completed:
                break
    return batches


async def _refresh(settings: Settings, import_only: bool, max_batches: Optional[int]) -> None:
    try:
        async with build_http_client(settings) as client:
            result = await run_directory_import(
                settings,
                session_factory=get_sessionmaker(),
                client=client,
            )
        click.echo(
            f"Directory: {result['channels_created']} created, "
            f"{result['channels_updated']} updated, {result['channels_deleted']} deleted, "
            f"{result['sites_skipped']} skipped"
        )
        if not import_only:
            await _drain(settings, max_batches)
    finally:
        await close_db()


async def _sync(settings: Settings, max_batches: Optional[int]) -> None:
    try:
        await _drain(settings, max_batches)
    finally:
        await close_db()


@click.group()
def cli():
    """Feed catalog ingestion."""
    setup_logging(get_settings())


@cli.command()
@click.option("--import-only", is_flag=True, help="Import the directory without syncing feeds")
@click.option("--max-batches", "-n", type=int, default=None, help="Stop after this many sync batches")
def refresh(import_only: bool, max_batches: Optional[int]):
    """Import the directory and sync every stale feed, in-process."""
    try:
        asyncio.run(_refresh(get_settings(), import_only, max_batches))
    except CatalogFetchError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)


@cli.command()
@click.option("--max-batches", "-n", type=int, default=1, help="Number of sync batches to run (0 = until drained)")
def sync(max_batches: int):
    """Sync stale feeds without importing the directory."""
    asyncio.run(_sync(get_settings(), max_batches or None))


@cli.command("init-db")
def init_db_command():
    """Create the database tables (development only)."""
    async def _init() -> None:
        try:
            await init_db()
        finally:
            await close_db()

    asyncio.run(_init())
    click.echo("Database initialized")


if __name__ == "__main__":
    cli()
