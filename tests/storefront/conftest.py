"""Shared fixtures for the favorites tests: settings isolation and SQLite."""

from __future__ import annotations

from collections.abc import AsyncIterator, Iterator
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from storefront.db.connection import create_session_factory
from storefront.db.models import Base
from storefront.settings import get_settings

_SETTINGS_ENV = (
    "DATABASE_URL",
    "USE_SQLITE",
    "REDIS_URL",
    "LOG_LEVEL",
    "FAVORITES_SNAPSHOT_BACKEND",
    "FAVORITES_SNAPSHOT_PATH",
    "FAVORITES_SNAPSHOT_KEY",
    "FAVORITES_REMOTE_TIMEOUT_SECONDS",
    "FAVORITES_CLEAR_ON_LOGOUT",
    "FAVORITES_RETRY_ATTEMPTS",
    "FAVORITES_RETRY_BACKOFF_SECONDS",
    "FAVORITES_DIAGNOSTICS_HISTORY",
)


@pytest.fixture(autouse=True)
def isolated_settings(
    monkeypatch: pytest.MonkeyPatch, tmp_path_factory: pytest.TempPathFactory
) -> Iterator[None]:
    """Run every test from an empty working directory with a fresh settings cache.

    Changing directory keeps a developer's ``.env`` and ``./data`` out of the
    tests.
    """

    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path_factory.mktemp("cwd"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncIterator[AsyncEngine]:
    """File-backed SQLite engine so concurrent sessions see the same data."""

    pytest.importorskip("aiosqlite")
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'favorites.db'}", future=True
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> sessionmaker[AsyncSession]:
    return create_session_factory(engine)
