from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from storefront.db.models import Base
from storefront.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)


def sanitize_database_url(url: str) -> str:
    """Hide the password portion of ``url`` so it can be logged."""

    if "://" not in url:
        return url

    scheme, rest = url.split("://", 1)
    if "@" in rest:
        auth, host_db = rest.split("@", 1)
        if ":" in auth:
            user, _ = auth.split(":", 1)
            return f"{scheme}://{user}:***@{host_db}"
        return f"{scheme}://{auth}@{host_db}"

    return url


def _ensure_sqlite_directory(url: str) -> None:
    """Create the parent directory of a file-backed SQLite database."""

    _, _, location = url.partition(":///")
    if not location or location.startswith(":memory:"):
        return
    Path(location).expanduser().parent.mkdir(parents=True, exist_ok=True)


def create_engine(settings: AppSettings | None = None) -> AsyncEngine:
    """Create the async SQLAlchemy engine for the remote favorites database.

    PostgreSQL gets the pooled configuration used in production; SQLite (the
    local development fallback) keeps SQLAlchemy's defaults.
    """

    settings = settings or get_settings()
    url = settings.resolved_database_url

    if settings.database_type == "postgresql":
        engine = create_async_engine(
            url,
            future=True,
            echo=False,
            pool_size=10,  # Maintain 10 warm connections
            max_overflow=20,  # Allow up to 30 total connections
            pool_pre_ping=True,  # Validate connections before use
            pool_recycle=1800,  # Recycle connections every 30 min
            pool_timeout=30,  # Timeout for getting connection from pool
        )
    else:
        _ensure_sqlite_directory(url)
        engine = create_async_engine(url, future=True, echo=False)

    from storefront.monitoring import setup_query_monitoring

    setup_query_monitoring(
        engine,
        slow_query_threshold=settings.slow_query_threshold,
        log_pool_stats=False,
    )
    return engine


def create_session_factory(engine: AsyncEngine) -> sessionmaker[AsyncSession]:
    return sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create the favorites tables when they do not exist yet."""

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Favorites tables ensured")


# Global engine/session instances for FastAPI dependency injection
_engine: AsyncEngine | None = None
_session_factory: sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get or create the global engine instance."""
    global _engine
    if _engine is None:
        _engine = create_engine()
    return _engine


def get_session_factory() -> sessionmaker[AsyncSession]:
    """Lazily create a session factory bound to the shared engine."""
    global _session_factory
    if _session_factory is None:
        _session_factory = create_session_factory(get_engine())
    return _session_factory


async def dispose_engine() -> None:
    """Dispose of the shared engine so the next caller starts fresh."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None

