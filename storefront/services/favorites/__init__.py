"""Favorites synchronization components split by responsibility.

* :mod:`.local_store` - the client-side authoritative set and its observers.
* :mod:`.snapshot` - durable storage backends for the local snapshot.
* :mod:`.remote` - contract of the remote multi-device record.
* :mod:`.identity` - identity lifecycle contract and an in-process provider.
* :mod:`.coordinator` - the merge / diff-push state machine.
* :mod:`.diagnostics` - structured channel for swallowed failures.
"""

from .coordinator import FavoritesDiff, SyncCoordinator
from .diagnostics import SyncDiagnostics
from .errors import (
    AuthError,
    ConnectivityError,
    ConstraintViolation,
    FavoritesSyncError,
    LocalPersistenceError,
)
from .identity import IdentityProvider, SessionIdentityProvider
from .local_store import LocalFavoritesStore
from .remote import RemoteFavoritesRepository
from .snapshot import (
    JsonFileSnapshotStorage,
    MemorySnapshotStorage,
    RedisSnapshotStorage,
    SnapshotStorage,
    build_snapshot_storage,
)

__all__ = [
    "AuthError",
    "ConnectivityError",
    "ConstraintViolation",
    "FavoritesDiff",
    "FavoritesSyncError",
    "IdentityProvider",
    "JsonFileSnapshotStorage",
    "LocalFavoritesStore",
    "LocalPersistenceError",
    "MemorySnapshotStorage",
    "RedisSnapshotStorage",
    "RemoteFavoritesRepository",
    "SessionIdentityProvider",
    "SnapshotStorage",
    "SyncCoordinator",
    "SyncDiagnostics",
    "build_snapshot_storage",
]
