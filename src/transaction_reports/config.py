"""
Settings for the transactions API.
Values come from the environment (a local .env file is loaded first).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

from transaction_reports.errors import ConfigError

DEFAULT_SEED_URL = "https://s3.amazonaws.com/roxiler.com/product_transaction.json"


@dataclass
class Settings:
    # Store
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_db: str = "transactions"
    mongodb_collection: str = "transactions"
    store_timeout_seconds: float = 10.0

    # Seeding
    seed_url: str = DEFAULT_SEED_URL
    seed_timeout_seconds: float = 30.0

    # Reports
    report_year: Optional[int] = None
    report_timezone: str = "UTC"
    max_per_page: int = 100

    # HTTP
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    host: str = "127.0.0.1"
    port: int = 3000

    log_level: str = "INFO"


def _env_number(name: str, cast, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Build Settings from the environment."""
    load_dotenv(env_file)

    origins = os.getenv("CORS_ORIGINS", "*")

    settings = Settings(
        mongodb_url=os.getenv("MONGODB_URL", Settings.mongodb_url),
        mongodb_db=os.getenv("MONGODB_DB", Settings.mongodb_db),
        mongodb_collection=os.getenv("MONGODB_COLLECTION", Settings.mongodb_collection),
        store_timeout_seconds=_env_number("STORE_TIMEOUT_SECONDS", float, Settings.store_timeout_seconds),
        seed_url=os.getenv("SEED_URL", DEFAULT_SEED_URL),
        seed_timeout_seconds=_env_number("SEED_TIMEOUT_SECONDS", float, Settings.seed_timeout_seconds),
        report_year=_env_number("REPORT_YEAR", int, None),
        report_timezone=os.getenv("REPORT_TIMEZONE", Settings.report_timezone),
        max_per_page=_env_number("MAX_PER_PAGE", int, Settings.max_per_page),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        host=os.getenv("HOST", Settings.host),
        port=_env_number("PORT", int, Settings.port),
        log_level=os.getenv("LOG_LEVEL", Settings.log_level),
    )

    if settings.store_timeout_seconds <= 0 or settings.seed_timeout_seconds <= 0:
        raise ConfigError("Timeouts must be positive")
    if settings.max_per_page < 1:
        raise ConfigError("MAX_PER_PAGE must be at least 1")

    return settings
