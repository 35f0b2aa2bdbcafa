"""Configuration management for the knowledge sync engine."""

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv
import structlog


# Sync configuration constants
DEFAULT_MAX_DOCUMENTS = 100
DEFAULT_HOURLY_CRON = "0 * * * *"
DEFAULT_DAILY_CRON = "0 0 * * *"

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    app_env: str
    database_url: str
    db_pool_min: int
    db_pool_max: int
    # Scheduler settings
    sync_scheduler_enabled: bool
    sync_hourly_cron: str
    sync_daily_cron: str
    sync_max_concurrent: int
    sync_default_max_documents: int
    # Connector settings
    connector_http_timeout_seconds: float
    connector_max_retries: int
    # Chunking settings
    chunk_size: int
    chunk_overlap: int


def _parse_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def load_settings() -> Settings:
    """
    Load settings from environment variables.

    Returns:
        Settings instance with all configuration values

    Raises:
        RuntimeError: If required environment variables are missing
        ValueError: If numeric settings are malformed or out of range
    """
    load_dotenv()

    app_env = os.getenv("APP_ENV", "development").strip().lower()

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise RuntimeError(
            "Missing required environment variables: DATABASE_URL. "
            "Copy .env.example to .env and fill in values."
        )

    min_pool_size = 1
    try:
        db_pool_min = int(os.getenv("DB_POOL_MIN", str(min_pool_size)))
        db_pool_max = int(os.getenv("DB_POOL_MAX", "10"))
    except ValueError as exc:
        raise ValueError(
            "DB_POOL_MIN and DB_POOL_MAX must be valid integers. Check your .env file."
        ) from exc
    if db_pool_min < min_pool_size or db_pool_max < db_pool_min:
        raise ValueError(
            "DB_POOL_MIN must be >= 1 and DB_POOL_MAX must be >= DB_POOL_MIN."
        )

    try:
        sync_max_concurrent = int(os.getenv("SYNC_MAX_CONCURRENT", "1"))
        sync_default_max_documents = int(
            os.getenv("SYNC_DEFAULT_MAX_DOCUMENTS", str(DEFAULT_MAX_DOCUMENTS))
        )
    except ValueError as exc:
        raise ValueError(
            "SYNC_MAX_CONCURRENT and SYNC_DEFAULT_MAX_DOCUMENTS must be valid integers. "
            "Check your .env file."
        ) from exc
    if sync_max_concurrent < 1:
        raise ValueError("SYNC_MAX_CONCURRENT must be >= 1.")
    if sync_default_max_documents < 1:
        raise ValueError("SYNC_DEFAULT_MAX_DOCUMENTS must be >= 1.")

    try:
        connector_http_timeout_seconds = float(
            os.getenv("CONNECTOR_HTTP_TIMEOUT_SECONDS", "30")
        )
        connector_max_retries = int(os.getenv("CONNECTOR_MAX_RETRIES", "3"))
    except ValueError as exc:
        raise ValueError(
            "CONNECTOR_HTTP_TIMEOUT_SECONDS must be a number and CONNECTOR_MAX_RETRIES "
            "must be an integer. Check your .env file."
        ) from exc
    if connector_http_timeout_seconds <= 0:
        raise ValueError("CONNECTOR_HTTP_TIMEOUT_SECONDS must be > 0.")
    if connector_max_retries < 1:
        raise ValueError("CONNECTOR_MAX_RETRIES must be >= 1.")

    try:
        chunk_size = int(os.getenv("CHUNK_SIZE", "512"))
        chunk_overlap = int(os.getenv("CHUNK_OVERLAP", "64"))
    except ValueError as exc:
        raise ValueError(
            "CHUNK_SIZE and CHUNK_OVERLAP must be valid integers. Check your .env file."
        ) from exc
    if chunk_overlap >= chunk_size:
        raise ValueError("CHUNK_OVERLAP must be smaller than CHUNK_SIZE.")

    scheduler_enabled = _parse_bool(os.getenv("SYNC_SCHEDULER_ENABLED", "true"))
    if not scheduler_enabled:
        logger.info("sync_scheduler_disabled_by_config", env=app_env)

    return Settings(
        app_env=app_env,
        database_url=database_url,
        db_pool_min=db_pool_min,
        db_pool_max=db_pool_max,
        sync_scheduler_enabled=scheduler_enabled,
        sync_hourly_cron=os.getenv("SYNC_HOURLY_CRON", DEFAULT_HOURLY_CRON),
        sync_daily_cron=os.getenv("SYNC_DAILY_CRON", DEFAULT_DAILY_CRON),
        sync_max_concurrent=sync_max_concurrent,
        sync_default_max_documents=sync_default_max_documents,
        connector_http_timeout_seconds=connector_http_timeout_seconds,
        connector_max_retries=connector_max_retries,
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once
    from environment variables.

    Returns:
        Cached Settings instance
    """
    return load_settings()
