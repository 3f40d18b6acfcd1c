"""
Configuration management using Pydantic Settings.
All environment variables are loaded and validated here.

Settings are never read from module-level globals by the ingestion pipeline:
callers build (or fetch) a ``Settings`` instance and pass it into the
service constructors and job entry points.
"""

from functools import lru_cache
from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ================================
    # Application Configuration
    # ================================
    APP_NAME: str = "feedhub"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = True

    # ================================
    # Database Configuration
    # ================================
    DATABASE_URL: str = Field(..., description="SQLAlchemy async connection string")
    DB_ECHO: bool = False
    DB_POOL_SIZE: int = 20
    DB_MAX_OVERFLOW: int = 10

    # ================================
    # Directory (catalog) Source
    # ================================
    DIRECTORY_URL: str = (
        "https://raw.githubusercontent.com/daveverwer/iOSDevDirectory/master/blogs.json"
    )
    DIRECTORY_REQUEST_TIMEOUT: float = 30.0

    # ================================
    # Feed Fetching
    # ================================
    FEED_REQUEST_TIMEOUT: float = Field(10.0, gt=0)
    FEED_USER_AGENT: str = "feedhub/0.1 (+https://github.com/feedhub/feedhub)"

    # Batch selection for the drain loop
    FEED_BATCH_NEVER_SYNCED_LIMIT: int = 80
    FEED_BATCH_OLDEST_LIMIT: int = 80
    FEED_BATCH_MAX_CHANNELS: int = 100
    FEED_STALE_AFTER_HOURS: int = 3

    # ================================
    # YouTube API
    # ================================
    YOUTUBE_API_KEY: str = Field(..., min_length=1)
    YOUTUBE_VIDEOS_URL: str = "https://www.googleapis.com/youtube/v3/videos"
    YOUTUBE_MAX_IDS_PER_REQUEST: int = Field(50, ge=1, le=50)  # hard API ceiling
    YOUTUBE_REQUEST_TIMEOUT: float = 10.0

    @field_validator("YOUTUBE_API_KEY")
    @classmethod
    def strip_api_key(cls, v: str) -> str:
        """Reject keys that are only whitespace."""
        v = v.strip()
        if not v:
            raise ValueError("YOUTUBE_API_KEY must not be blank")
        return v

    # ================================
    # Apple Podcasts Search
    # ================================
    APPLE_PODCAST_SEARCH_URL: str = "https://itunes.apple.com/search"
    APPLE_PODCAST_REQUEST_TIMEOUT: float = 10.0
    PODCAST_CATEGORY_SLUG: str = "podcasts"

    # ================================
    # Celery Configuration
    # ================================
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/0"
    CELERY_TASK_SERIALIZER: str = "json"
    CELERY_RESULT_SERIALIZER: str = "json"
    # Celery accept content as comma-separated string, we'll parse it
    CELERY_ACCEPT_CONTENT: str = "json"
    CELERY_TIMEZONE: str = "UTC"
    CELERY_ENABLE_UTC: bool = True

    # Hours (crontab syntax) at which the directory import is triggered
    DIRECTORY_SCHEDULE_HOURS_PRODUCTION: str = "0,8,16"
    DIRECTORY_SCHEDULE_HOURS_DEVELOPMENT: str = "*"

    @property
    def celery_accept_content_list(self) -> List[str]:
        """Parse CELERY_ACCEPT_CONTENT into a list."""
        return [item.strip() for item in self.CELERY_ACCEPT_CONTENT.split(",")]

    @property
    def directory_schedule_hours(self) -> str:
        """Crontab hour field for the scheduled directory import."""
        if self.is_production:
            return self.DIRECTORY_SCHEDULE_HOURS_PRODUCTION
        return self.DIRECTORY_SCHEDULE_HOURS_DEVELOPMENT

    # ================================
    # Logging Configuration
    # ================================
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.APP_ENV == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.APP_ENV == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Return the process-wide settings instance.

    Validation happens on first call, so a missing ``YOUTUBE_API_KEY`` or
    ``DATABASE_URL`` fails at startup rather than mid-run.
    """
    return Settings()
