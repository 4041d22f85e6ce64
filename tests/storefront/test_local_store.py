"""Tests for the client-side favorites set and its durable snapshot."""

from __future__ import annotations

import json
from collections.abc import Sequence

import pytest

from storefront.services.favorites import (
    LocalFavoritesStore,
    LocalPersistenceError,
    MemorySnapshotStorage,
    SyncDiagnostics,
)


class _FlakyStorage(MemorySnapshotStorage):
    """Memory storage whose writes fail while ``broken`` is set."""

    broken = False

    def save(self, favorite_ids: Sequence[str]) -> None:
        if self.broken:
            raise LocalPersistenceError("read-only filesystem")
        super().save(favorite_ids)


def _stored(storage: MemorySnapshotStorage) -> list[str]:
    return json.loads(storage.records[storage.name])


def test_add_remove_and_contains() -> None:
    storage = MemorySnapshotStorage()
    store = LocalFavoritesStore(storage)

    store.add("p1")
    store.add("p2")
    store.remove("p1")

    assert not store.contains("p1")
    assert "p2" in store
    assert store.count() == len(store) == 1
    assert _stored(storage) == ["p2"]


def test_toggle_twice_restores_membership() -> None:
    store = LocalFavoritesStore(MemorySnapshotStorage())
    store.add("p1")

    assert store.toggle("p2") is True
    assert store.toggle("p2") is False
    assert store.snapshot() == {"p1"}


def test_duplicate_add_and_missing_remove_are_silent() -> None:
    storage = MemorySnapshotStorage()
    store = LocalFavoritesStore(storage)
    notifications: list[frozenset[str]] = []
    store.subscribe(notifications.append)

    store.add("p1")
    store.add("p1")
    store.remove("missing")
    store.clear()
    store.clear()

    assert notifications == [frozenset({"p1"}), frozenset()]
    assert storage.writes == 2


def test_replace_keeps_existing_order_and_appends_new_ids() -> None:
    store = LocalFavoritesStore(MemorySnapshotStorage())
    for favorite_id in ("p3", "p1", "p2"):
        store.add(favorite_id)

    store.replace(["p4", "p2", "p4", "p3", ""])

    assert store.ids() == ("p3", "p2", "p4")


def test_replace_with_same_set_does_not_notify() -> None:
    store = LocalFavoritesStore(MemorySnapshotStorage())
    store.add("p1")
    store.add("p2")
    notifications: list[frozenset[str]] = []
    store.subscribe(notifications.append)

    store.replace(["p2", "p1"])

    assert notifications == []
    assert store.ids() == ("p1", "p2")


def test_store_restores_previous_snapshot() -> None:
    records: dict[str, str] = {}
    first = LocalFavoritesStore(MemorySnapshotStorage("mazaq-favorites", records=records))
    first.add("p1")
    first.add("p2")

    second = LocalFavoritesStore(MemorySnapshotStorage("mazaq-favorites", records=records))

    assert second.ids() == ("p1", "p2")


def test_corrupt_snapshot_starts_empty_and_is_reported() -> None:
    diagnostics = SyncDiagnostics()
    storage = MemorySnapshotStorage(records={"favorites": "{not json"})

    store = LocalFavoritesStore(storage, diagnostics=diagnostics)

    assert store.count() == 0
    issue = diagnostics.latest()
    assert issue is not None
    assert issue.operation == "snapshot_read"
    assert issue.context == {"snapshot": "favorites"}


def test_snapshot_with_non_string_entries_is_rejected_whole() -> None:
    diagnostics = SyncDiagnostics()
    storage = MemorySnapshotStorage(records={"favorites": json.dumps(["p1", 5, ""])})

    store = LocalFavoritesStore(storage, diagnostics=diagnostics)

    assert store.count() == 0
    issue = diagnostics.latest()
    assert issue is not None
    assert issue.operation == "snapshot_read"
    assert issue.error_type == "LocalPersistenceError"


@pytest.mark.parametrize("operation", ["add", "toggle"])
def test_blank_id_is_rejected_before_touching_the_snapshot(operation: str) -> None:
    storage = MemorySnapshotStorage()
    store = LocalFavoritesStore(storage)
    notifications: list[frozenset[str]] = []
    store.subscribe(notifications.append)

    with pytest.raises(ValueError):
        getattr(store, operation)("")

    assert not store.contains("")
    assert storage.writes == 0
    assert notifications == []


def test_snapshot_matches_memory_after_restart() -> None:
    records: dict[str, str] = {}
    store = LocalFavoritesStore(MemorySnapshotStorage(records=records))
    store.add("p1")
    store.replace(["p1", "", "p2"])

    restarted = LocalFavoritesStore(MemorySnapshotStorage(records=records))

    assert restarted.snapshot() == store.snapshot() == {"p1", "p2"}


def test_write_failure_keeps_in_memory_change_and_notifies() -> None:
    diagnostics = SyncDiagnostics()
    storage = _FlakyStorage()
    store = LocalFavoritesStore(storage, diagnostics=diagnostics)
    notifications: list[frozenset[str]] = []
    store.subscribe(notifications.append)
    storage.broken = True

    store.add("p1")

    assert store.contains("p1")
    assert isinstance(store.last_persist_error, LocalPersistenceError)
    assert notifications == [frozenset({"p1"})]
    assert diagnostics.latest().operation == "snapshot_write"

    storage.broken = False
    store.add("p2")

    assert store.last_persist_error is None
    assert _stored(storage) == ["p1", "p2"]


def test_unsubscribe_stops_notifications() -> None:
    store = LocalFavoritesStore(MemorySnapshotStorage())
    notifications: list[frozenset[str]] = []
    unsubscribe = store.subscribe(notifications.append)

    store.add("p1")
    unsubscribe()
    unsubscribe()
    store.add("p2")

    assert notifications == [frozenset({"p1"})]
