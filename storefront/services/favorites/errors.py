"""Error taxonomy shared by the favorites synchronization components."""

from __future__ import annotations


class FavoritesSyncError(Exception):
    """Base class for every failure raised by the favorites subsystem."""


class ConnectivityError(FavoritesSyncError):
    """Transient transport failure talking to the remote favorites store.

    Timeouts are reported with this type as well; recovery happens through the
    next mutation, identity event, or manual retry.
    """


class AuthError(FavoritesSyncError):
    """The remote store rejected the identity; treated like a logout."""


class ConstraintViolation(FavoritesSyncError):
    """A duplicate (identity, product) record was rejected by the remote store.

    Repositories convert this into a no-op; it only escapes when a caller
    talks to a raw backend directly.
    """


class LocalPersistenceError(FavoritesSyncError):
    """The local snapshot could not be read or written."""


__all__ = [
    "AuthError",
    "ConnectivityError",
    "ConstraintViolation",
    "FavoritesSyncError",
    "LocalPersistenceError",
]
