"""Identity lifecycle contract consumed by the sync coordinator."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)

IdentityListener = Callable[[str | None], None]


class IdentityProvider(Protocol):
    """Supplies the signed-in identity and notifies when it changes.

    Authentication itself happens elsewhere; the coordinator only needs the
    stable identifier (``None`` meaning logged out).
    """

    @property
    def current_identity(self) -> str | None: ...

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]: ...


class SessionIdentityProvider:
    """In-process provider driven by explicit sign-in and sign-out calls.

    Listeners fire only when the identifier changes; signing in twice as the
    same user, or refreshing unrelated profile fields, is silent.
    """

    def __init__(self, identity_id: str | None = None) -> None:
        self._identity_id = identity_id or None
        self._listeners: list[IdentityListener] = []

    @property
    def current_identity(self) -> str | None:
        return self._identity_id

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def sign_in(self, identity_id: str) -> None:
        if not identity_id:
            raise ValueError("identity_id must be a non-empty string")
        self._set(identity_id)

    def sign_out(self) -> None:
        self._set(None)

    def _set(self, identity_id: str | None) -> None:
        if identity_id == self._identity_id:
            return
        logger.info("Identity changed from %s to %s", self._identity_id, identity_id)
        self._identity_id = identity_id
        for listener in list(self._listeners):
            listener(identity_id)


__all__ = ["IdentityListener", "IdentityProvider", "SessionIdentityProvider"]
