"""Centralized configuration management for the storefront favorites backend."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import Field, PrivateAttr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables defined in a local .env file before instantiating the
# settings singleton so every consumer of :mod:`storefront.settings` sees the same
# values regardless of import order.
load_dotenv()

# -- Application-wide constants -------------------------------------------------

DEFAULT_SQLITE_DATABASE_URL = "sqlite+aiosqlite:///./data/storefront.db"
POSTGRES_ASYNC_PREFIX = "postgresql+psycopg://"
POSTGRES_SYNC_PREFIXES = ("postgres://", "postgresql://")
DEFAULT_REDIS_URL = "redis://localhost:6379/0"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_SNAPSHOT_KEY = "mazaq-favorites"
DEFAULT_SNAPSHOT_PATH = "./data/favorites.json"
DEFAULT_REMOTE_TIMEOUT_SECONDS = 10.0
DEFAULT_RETRY_BACKOFF_SECONDS = 2.0

SnapshotBackend = Literal["memory", "file", "redis"]


class AppSettings(BaseSettings):
    """Typed configuration surface built on top of ``pydantic-settings``.

    Besides the database and logging knobs shared with the HTTP surface, the
    class carries every tunable of the favorites synchronization subsystem:
    where the local snapshot lives, how long remote calls may take, whether a
    logout wipes the local favorites, and the optional background retry
    policy.
    """

    _explicit_redis_url: bool = PrivateAttr(default=False)
    _explicit_snapshot_backend: bool = PrivateAttr(default=False)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    def __init__(self, **values: object) -> None:
        """Capture explicit overrides prior to delegating to ``BaseSettings``."""

        normalized_keys = {str(key).lower() for key in values}
        super().__init__(**values)
        self._explicit_redis_url = "redis_url" in normalized_keys
        self._explicit_snapshot_backend = (
            "favorites_snapshot_backend" in normalized_keys
        )
        redis_env = os.getenv("REDIS_URL")
        if redis_env is not None and redis_env.strip():
            self._explicit_redis_url = True
        backend_env = os.getenv("FAVORITES_SNAPSHOT_BACKEND")
        if backend_env is not None and backend_env.strip():
            self._explicit_snapshot_backend = True

    database_url: str | None = Field(
        default=None,
        alias="DATABASE_URL",
        description=(
            "Full SQLAlchemy-compatible URL of the remote favorites database."
            " Postgres URLs supplied in sync format (postgres:// or"
            " postgresql://) are coerced into the async psycopg driver string."
        ),
    )
    use_sqlite: bool = Field(
        default=False,
        alias="USE_SQLITE",
        description="Force SQLite usage regardless of DATABASE_URL.",
    )
    redis_url: str = Field(
        default=DEFAULT_REDIS_URL,
        alias="REDIS_URL",
        description="Redis connection string used by the redis snapshot backend.",
    )
    log_level: str = Field(
        default=DEFAULT_LOG_LEVEL,
        alias="LOG_LEVEL",
        description="Root logging level (e.g. INFO, DEBUG, WARNING).",
    )
    slow_query_threshold: float = Field(
        default=0.1,
        alias="SLOW_QUERY_THRESHOLD",
        description="Seconds after which SQL statements are logged as slow.",
    )
    favorites_snapshot_backend: SnapshotBackend = Field(
        default="file",
        alias="FAVORITES_SNAPSHOT_BACKEND",
        description="Where the local favorites snapshot is persisted.",
    )
    favorites_snapshot_path: Path = Field(
        default=Path(DEFAULT_SNAPSHOT_PATH),
        alias="FAVORITES_SNAPSHOT_PATH",
        description="JSON file used by the ``file`` snapshot backend.",
    )
    favorites_snapshot_key: str = Field(
        default=DEFAULT_SNAPSHOT_KEY,
        alias="FAVORITES_SNAPSHOT_KEY",
        min_length=1,
        description="Name of the single durable record holding the snapshot.",
    )
    favorites_remote_timeout_seconds: float = Field(
        default=DEFAULT_REMOTE_TIMEOUT_SECONDS,
        alias="FAVORITES_REMOTE_TIMEOUT_SECONDS",
        gt=0,
        description="Upper bound for each remote favorites call.",
    )
    favorites_clear_on_logout: bool = Field(
        default=False,
        alias="FAVORITES_CLEAR_ON_LOGOUT",
        description=(
            "Clear the local favorites when the identity goes away. Disabled"
            " by default so offline favorites survive identity switches."
        ),
    )
    favorites_retry_attempts: int = Field(
        default=0,
        alias="FAVORITES_RETRY_ATTEMPTS",
        ge=0,
        description="Background retries scheduled after a failed diff push.",
    )
    favorites_retry_backoff_seconds: float = Field(
        default=DEFAULT_RETRY_BACKOFF_SECONDS,
        alias="FAVORITES_RETRY_BACKOFF_SECONDS",
        gt=0,
        description="Initial delay of the background retry; doubles per attempt.",
    )
    favorites_diagnostics_history: int = Field(
        default=100,
        alias="FAVORITES_DIAGNOSTICS_HISTORY",
        ge=1,
        description="Number of sync issues retained by the diagnostics channel.",
    )

    @property
    def resolved_database_url(self) -> str:
        """Return the async-compatible database URL after applying fallbacks."""

        if self.use_sqlite or not self.database_url:
            return DEFAULT_SQLITE_DATABASE_URL

        url = self.database_url.strip()
        if url.startswith("sqlite"):
            return url

        for prefix in POSTGRES_SYNC_PREFIXES:
            if url.startswith(prefix):
                return url.replace(prefix, POSTGRES_ASYNC_PREFIX, 1)

        if url.startswith(POSTGRES_ASYNC_PREFIX):
            return url

        raise RuntimeError(
            f"Expected a PostgreSQL or SQLite connection string, received: {url}"
        )

    @property
    def database_type(self) -> str:
        """Return ``sqlite`` when using SQLite otherwise ``postgresql``."""

        if self.resolved_database_url.startswith("sqlite"):
            return "sqlite"
        return "postgresql"

    @property
    def log_level_numeric(self) -> int:
        """Translate ``log_level`` into the numeric constant expected by logging."""

        candidate = logging.getLevelName(self.log_level.upper())
        if isinstance(candidate, int):
            return candidate
        return logging.INFO

    def optional_config_warnings(self) -> list[str]:
        """Return human-readable warnings for unset optional configuration."""

        warnings: list[str] = []

        if not self.database_url and not self.use_sqlite:
            warnings.append(
                "DATABASE_URL is not set - remote favorites use the local SQLite "
                "fallback (devices will not share favorites)"
            )

        if (
            self.favorites_snapshot_backend == "redis"
            and not self._explicit_redis_url
            and self.redis_url == DEFAULT_REDIS_URL
        ):
            warnings.append(
                "REDIS_URL is not set - the redis snapshot backend will use "
                "localhost"
            )

        if self.favorites_snapshot_backend == "memory":
            warnings.append(
                "FAVORITES_SNAPSHOT_BACKEND is 'memory' - local favorites will "
                "not survive a restart"
            )

        return warnings


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    """Return a cached instance of :class:`AppSettings`."""

    return AppSettings()


__all__ = [
    "AppSettings",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_REDIS_URL",
    "DEFAULT_REMOTE_TIMEOUT_SECONDS",
    "DEFAULT_RETRY_BACKOFF_SECONDS",
    "DEFAULT_SNAPSHOT_KEY",
    "DEFAULT_SNAPSHOT_PATH",
    "DEFAULT_SQLITE_DATABASE_URL",
    "POSTGRES_ASYNC_PREFIX",
    "POSTGRES_SYNC_PREFIXES",
    "SnapshotBackend",
    "get_settings",
]
