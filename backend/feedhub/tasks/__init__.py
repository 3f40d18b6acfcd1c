"""
Celery tasks for background processing.
"""

from feedhub.tasks.feed_tasks import (
    import_directory_task,
    run_directory_import,
    run_feed_sync,
    sync_feeds,
)

__all__ = [
    "import_directory_task",
    "run_directory_import",
    "run_feed_sync",
    "sync_feeds",
]
