"""Application settings and configuration."""

import logging
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_prefix="ORDER_WAIT_", env_file=".env")

    # Order store
    sqlite_db_path: Path = Path("orders.db")
    default_timezone: str = "UTC"

    # Prep-time cache
    cache_backend: Literal["memory", "redis"] = "memory"
    cache_ttl_seconds: int = 120
    cache_max_entries: int = 500
    redis_host: str = "localhost"
    redis_port: int = 6379

    # Estimation
    default_base_prep_minutes: int = 20
    min_prep_samples: int = 5
    prep_sample_limit: int = 60

    # Serving
    api_host: str = "0.0.0.0"
    api_port: int = 8086
    log_level: str = "INFO"
    order_tracking_token_secret: str = "dev-insecure-tracking-secret"


settings = Settings()


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once for the CLI and the API server."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
