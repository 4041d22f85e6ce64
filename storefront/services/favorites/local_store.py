"""In-process authoritative set of favorite product identifiers."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from storefront.schemas.favorites import dedupe_ids
from storefront.services.favorites.diagnostics import SyncDiagnostics
from storefront.services.favorites.errors import LocalPersistenceError
from storefront.services.favorites.snapshot import SnapshotStorage

logger = logging.getLogger(__name__)

FavoritesListener = Callable[[frozenset[str]], None]


def _require_id(favorite_id: str) -> None:
    if not isinstance(favorite_id, str) or not favorite_id:
        raise ValueError("favorite_id must be a non-empty string")


class LocalFavoritesStore:
    """Own the client-side favorites and persist them after every change.

    Membership is a set, but first-insertion order is remembered (a ``dict``
    with ``None`` values) so listings render in the order products were
    favorited. Order never participates in equality or diffs.

    Identifiers are non-empty strings: ``add`` and ``toggle`` raise
    ``ValueError`` for anything else and ``replace`` drops blanks, so the
    in-memory set and the snapshot always hold the same members.

    Each mutating call writes the full set to ``storage`` before returning.
    A failed write is reported to ``diagnostics`` and otherwise ignored: the
    in-memory set stays the source of truth and is not rolled back. Listeners
    registered with :meth:`subscribe` run synchronously after every mutation
    that actually changed membership. The store never talks to the network.
    """

    def __init__(
        self,
        storage: SnapshotStorage,
        *,
        diagnostics: SyncDiagnostics | None = None,
    ) -> None:
        self._storage = storage
        if diagnostics is None:
            diagnostics = SyncDiagnostics()
        self._diagnostics = diagnostics
        self._listeners: list[FavoritesListener] = []
        self._ids: dict[str, None] = dict.fromkeys(self._restore())
        self.last_persist_error: LocalPersistenceError | None = None

    # -- reads -----------------------------------------------------------------

    def contains(self, favorite_id: str) -> bool:
        return favorite_id in self._ids

    __contains__ = contains

    def count(self) -> int:
        return len(self._ids)

    __len__ = count

    def snapshot(self) -> frozenset[str]:
        """Return the current membership as an immutable set."""

        return frozenset(self._ids)

    def ids(self) -> tuple[str, ...]:
        """Return identifiers in first-favorited order."""

        return tuple(self._ids)

    # -- mutations -------------------------------------------------------------

    def add(self, favorite_id: str) -> None:
        _require_id(favorite_id)
        if favorite_id in self._ids:
            return
        self._ids[favorite_id] = None
        self._commit()

    def remove(self, favorite_id: str) -> None:
        if favorite_id not in self._ids:
            return
        del self._ids[favorite_id]
        self._commit()

    def toggle(self, favorite_id: str) -> bool:
        """Flip membership of ``favorite_id`` and return whether it is now present."""

        _require_id(favorite_id)
        if favorite_id in self._ids:
            self.remove(favorite_id)
            return False
        self.add(favorite_id)
        return True

    def replace(self, favorite_ids: Iterable[str]) -> None:
        """Set membership to exactly the deduplicated ``favorite_ids``.

        Identifiers already present keep their position; new ones are appended
        in input order.
        """

        incoming = dedupe_ids(favorite_ids)
        if set(incoming) == set(self._ids):
            return
        wanted = set(incoming)
        kept = [favorite_id for favorite_id in self._ids if favorite_id in wanted]
        appended = [favorite_id for favorite_id in incoming if favorite_id not in self._ids]
        self._ids = dict.fromkeys(kept + appended)
        self._commit()

    def clear(self) -> None:
        if not self._ids:
            return
        self._ids = {}
        self._commit()

    # -- observers -------------------------------------------------------------

    def subscribe(self, listener: FavoritesListener) -> Callable[[], None]:
        """Register ``listener`` for membership changes; returns an unsubscriber."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    # -- internals -------------------------------------------------------------

    def _restore(self) -> list[str]:
        try:
            restored = self._storage.load()
        except LocalPersistenceError as exc:
            self._diagnostics.report("snapshot_read", exc, snapshot=self._storage.name)
            return []
        logger.debug(
            "Restored %s favorites from snapshot %s", len(restored), self._storage.name
        )
        return restored

    def _commit(self) -> None:
        try:
            self._storage.save(list(self._ids))
        except LocalPersistenceError as exc:
            self.last_persist_error = exc
            self._diagnostics.report(
                "snapshot_write",
                exc,
                snapshot=self._storage.name,
                favorite_count=len(self._ids),
            )
        else:
            self.last_persist_error = None

        current = self.snapshot()
        for listener in list(self._listeners):
            listener(current)


__all__ = ["FavoritesListener", "LocalFavoritesStore"]
