"""
Celery application instance and configuration.

Run the worker with a single process so that drain-loop batches never
overlap:

    celery -A feedhub.workers.celery_app worker -Q feeds --concurrency=1
    celery -A feedhub.workers.celery_app beat
"""

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as setup_logging_signal

from feedhub.core.config import get_settings
from feedhub.core.logging import setup_logging

settings = get_settings()

# Create Celery application
celery_app = Celery(
    "feedhub",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["feedhub.tasks.feed_tasks"],
)

# Configure Celery
celery_app.conf.update(
    task_serializer=settings.CELERY_TASK_SERIALIZER,
    result_serializer=settings.CELERY_RESULT_SERIALIZER,
    accept_content=settings.celery_accept_content_list,
    timezone=settings.CELERY_TIMEZONE,
    enable_utc=settings.CELERY_ENABLE_UTC,
    task_track_started=True,
    task_acks_late=True,  # at-least-once: redeliver if the worker dies mid-batch
    worker_prefetch_multiplier=1,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    result_expires=3600,  # 1 hour
)

# Celery Beat Schedule (Periodic Tasks)
celery_app.conf.beat_schedule = {
    'import-directory': {
        'task': 'directory.import_directory',
        # 3x/day in production, hourly in development
        'schedule': crontab(minute='0', hour=settings.directory_schedule_hours),
        'options': {'queue': 'feeds'},
    },
}

# Task routing
celery_app.conf.task_routes = {
    'directory.*': {'queue': 'feeds'},
    'feeds.*': {'queue': 'feeds'},
}


@setup_logging_signal.connect
def configure_worker_logging(**kwargs) -> None:
    """Use the application's structlog setup instead of Celery's logging."""
    setup_logging(settings)
