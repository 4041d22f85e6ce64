"""Contract for the remote multi-device favorites record."""

from __future__ import annotations

from collections.abc import Collection
from typing import Protocol


class RemoteFavoritesRepository(Protocol):
    """Remote durable table keyed by (identity, product) pairs.

    Implementations raise :class:`~storefront.services.favorites.errors.ConnectivityError`
    for transport failures and :class:`~storefront.services.favorites.errors.AuthError`
    when the identity is rejected. All three calls are independently retriable.
    """

    async def fetch_all(self, identity_id: str) -> frozenset[str]:
        """Return every favorite stored for ``identity_id`` (empty if none)."""

    async def insert_many(self, identity_id: str, favorite_ids: Collection[str]) -> None:
        """Insert records; identifiers already stored are a benign no-op."""

    async def delete_many(self, identity_id: str, favorite_ids: Collection[str]) -> None:
        """Delete matching records; missing records are a no-op."""


__all__ = ["RemoteFavoritesRepository"]
