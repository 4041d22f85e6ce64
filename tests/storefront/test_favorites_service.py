"""Tests for per-session wiring of the favorites components."""

from __future__ import annotations

from pathlib import Path

import pytest

from storefront.schemas.favorites import SyncState
from storefront.services.favorites import (
    JsonFileSnapshotStorage,
    MemorySnapshotStorage,
    SessionIdentityProvider,
)
from storefront.services.favorites_service import build_favorites_session
from storefront.settings import AppSettings
from tests.storefront.support.in_memory_favorites import InMemoryFavoritesRepository


@pytest.mark.asyncio
async def test_session_merges_on_enter_and_detaches_on_exit() -> None:
    repository = InMemoryFavoritesRepository({"alice": ["p2"]})
    storage = MemorySnapshotStorage()
    storage.save(["p1"])
    identity = SessionIdentityProvider("alice")

    session = build_favorites_session(
        AppSettings(), repository=repository, storage=storage, identity=identity
    )
    async with session:
        await session.coordinator.wait_idle()
        assert session.status().state is SyncState.SYNCED
        assert session.store.snapshot() == {"p1", "p2"}

    session.store.add("p3")
    identity.sign_out()

    assert repository.remote("alice") == {"p1", "p2"}
    assert session.coordinator.state is SyncState.UNINITIALIZED


@pytest.mark.asyncio
async def test_session_uses_settings_for_coordinator_and_storage(tmp_path: Path) -> None:
    settings = AppSettings(
        favorites_snapshot_path=tmp_path / "favorites.json",
        favorites_clear_on_logout=True,
        favorites_diagnostics_history=5,
    )
    identity = SessionIdentityProvider("alice")
    repository = InMemoryFavoritesRepository({"alice": []})

    session = build_favorites_session(settings, repository=repository, identity=identity)
    async with session:
        await session.coordinator.wait_idle()
        session.store.add("p1")
        await session.coordinator.wait_idle()
        identity.sign_out()

        assert session.store.count() == 0

    storage = JsonFileSnapshotStorage(tmp_path / "favorites.json")
    assert storage.load() == []
    assert repository.remote("alice") == {"p1"}
