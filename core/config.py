"""
Centralized configuration for the store sync engine.

This module provides a single source of truth for all configuration values.
Configuration is loaded from environment variables with sensible defaults.

Usage:
    from core.config import config

    db_path = config.database.path
    max_retries = config.sync.max_retries
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class DatabaseConfig:
    """DuckDB storage configuration."""

    path: Path = field(
        default_factory=lambda: Path(os.getenv("SYNC_DB_PATH", str(BASE_DIR / "data" / "sync.duckdb")))
    )
    query_timeout: float = field(default_factory=lambda: float(os.getenv("DB_QUERY_TIMEOUT", "30")))


@dataclass(frozen=True)
class SyncConfig:
    """Ledger and retry configuration."""

    max_retries: int = field(default_factory=lambda: int(os.getenv("SYNC_MAX_RETRIES", "5")))
    base_backoff_seconds: int = field(
        default_factory=lambda: int(os.getenv("SYNC_BASE_BACKOFF_SECONDS", "30"))
    )
    max_backoff_seconds: int = field(
        default_factory=lambda: int(os.getenv("SYNC_MAX_BACKOFF_SECONDS", "900"))  # 15 minutes
    )
    recent_syncs_limit: int = field(default_factory=lambda: int(os.getenv("SYNC_RECENT_LIMIT", "10")))
    failed_syncs_limit: int = field(default_factory=lambda: int(os.getenv("SYNC_FAILED_LIMIT", "50")))

    # Ledger writes are best-effort: a couple of quick attempts, then give up
    ledger_write_attempts: int = 2
    ledger_write_delay: float = 0.05


@dataclass(frozen=True)
class WebConfig:
    """HTTP API configuration."""

    host: str = field(default_factory=lambda: os.getenv("WEB_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("WEB_PORT", "8080")))

    # Rate limiting (slowapi limit strings)
    rate_limit_enabled: bool = field(default_factory=lambda: _env_bool("RATE_LIMIT_ENABLED", True))
    webhook_rate_limit: str = "600/minute"
    batch_rate_limit: str = "60/minute"
    read_rate_limit: str = "120/minute"
    retry_rate_limit: str = "30/minute"

    # Request timeouts (seconds)
    request_timeout: float = 30.0
    bulk_request_timeout: float = 300.0


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    format: str = field(default_factory=lambda: os.getenv("LOG_FORMAT", "text"))

    @property
    def json_format(self) -> bool:
        return self.format == "json"


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "1.0.0"
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Global config instance
config = AppConfig()

VERSION = config.version


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(app_config: AppConfig = None) -> None:
    """
    Validate configuration values.

    Call this on application startup to fail fast with clear error messages
    instead of cryptic runtime failures.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    cfg = app_config or config
    errors = []

    if cfg.sync.max_retries < 0:
        errors.append("SYNC_MAX_RETRIES must be zero or positive")

    if cfg.sync.base_backoff_seconds <= 0:
        errors.append("SYNC_BASE_BACKOFF_SECONDS must be positive")

    if cfg.sync.max_backoff_seconds < cfg.sync.base_backoff_seconds:
        errors.append("SYNC_MAX_BACKOFF_SECONDS must be >= SYNC_BASE_BACKOFF_SECONDS")

    if cfg.sync.failed_syncs_limit <= 0 or cfg.sync.recent_syncs_limit <= 0:
        errors.append("SYNC_FAILED_LIMIT and SYNC_RECENT_LIMIT must be positive")

    if cfg.database.query_timeout <= 0:
        errors.append("DB_QUERY_TIMEOUT must be positive")

    if cfg.logging.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
        errors.append(f"LOG_LEVEL has unknown value: {cfg.logging.level}")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)
