"""Per-session wiring of the favorites synchronization components.

Collaborators assembled by :func:`build_favorites_session`:
* :class:`SyncDiagnostics` - shared by the store and the coordinator so every
  swallowed failure lands in one place.
* :class:`LocalFavoritesStore` - restored from the configured snapshot backend.
* :class:`SqlAlchemyFavoritesRepository` - the remote record, unless a custom
  repository is injected (tests, alternative transports).
* :class:`SyncCoordinator` - configured from :class:`AppSettings`.

Nothing here is a module-level singleton: each session owns its store and
coordinator, and closing the session unsubscribes the coordinator.
"""

from __future__ import annotations

import logging
from types import TracebackType

from storefront.db.connection import get_session_factory
from storefront.db.repositories import SqlAlchemyFavoritesRepository
from storefront.schemas.favorites import SyncStatus
from storefront.services.favorites import (
    IdentityProvider,
    LocalFavoritesStore,
    RemoteFavoritesRepository,
    SessionIdentityProvider,
    SnapshotStorage,
    SyncCoordinator,
    SyncDiagnostics,
    build_snapshot_storage,
)
from storefront.settings import AppSettings, get_settings

logger = logging.getLogger(__name__)


class FavoritesSession:
    """Owns one local store and the coordinator that syncs it."""

    def __init__(
        self,
        *,
        store: LocalFavoritesStore,
        coordinator: SyncCoordinator,
        identity: IdentityProvider,
        diagnostics: SyncDiagnostics,
    ) -> None:
        self.store = store
        self.coordinator = coordinator
        self.identity = identity
        self.diagnostics = diagnostics

    def start(self) -> None:
        self.coordinator.start()

    async def close(self) -> None:
        """Stop syncing and let already-started remote calls settle."""

        self.coordinator.close()
        await self.coordinator.wait_idle()

    def status(self) -> SyncStatus:
        return self.coordinator.status()

    async def __aenter__(self) -> FavoritesSession:
        self.start()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


def build_favorites_session(
    settings: AppSettings | None = None,
    *,
    repository: RemoteFavoritesRepository | None = None,
    storage: SnapshotStorage | None = None,
    identity: IdentityProvider | None = None,
    diagnostics: SyncDiagnostics | None = None,
) -> FavoritesSession:
    """Wire a :class:`FavoritesSession` from settings and optional overrides."""

    settings = settings or get_settings()
    if diagnostics is None:
        diagnostics = SyncDiagnostics(history=settings.favorites_diagnostics_history)
    if storage is None:
        storage = build_snapshot_storage(settings)
    if repository is None:
        repository = SqlAlchemyFavoritesRepository(get_session_factory())
    if identity is None:
        identity = SessionIdentityProvider()

    store = LocalFavoritesStore(storage, diagnostics=diagnostics)
    coordinator = SyncCoordinator(
        store,
        repository,
        identity,
        diagnostics=diagnostics,
        remote_timeout=settings.favorites_remote_timeout_seconds,
        clear_on_logout=settings.favorites_clear_on_logout,
        retry_attempts=settings.favorites_retry_attempts,
        retry_backoff=settings.favorites_retry_backoff_seconds,
    )
    logger.debug(
        "Built favorites session (snapshot=%s, clear_on_logout=%s, retries=%s)",
        storage.name,
        settings.favorites_clear_on_logout,
        settings.favorites_retry_attempts,
    )
    return FavoritesSession(
        store=store,
        coordinator=coordinator,
        identity=identity,
        diagnostics=diagnostics,
    )


__all__ = ["FavoritesSession", "build_favorites_session"]
