"""FastAPI router exposing the remote favorites record over HTTP.

This is the narrow read / bulk-insert / bulk-delete contract the sync
coordinator relies on, served for clients that cannot reach the database
directly. Authentication happens upstream; ``user_id`` is trusted as given.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path

from storefront.db.connection import get_session_factory
from storefront.db.repositories import SqlAlchemyFavoritesRepository
from storefront.schemas.favorites import FavoriteIdsPayload, RemoteFavoritesResponse

router = APIRouter()

UserId = Annotated[
    str, Path(min_length=1, max_length=128, description="Owner identity")
]


def get_favorites_repository() -> SqlAlchemyFavoritesRepository:
    """FastAPI dependency returning a repository bound to the shared engine."""

    return SqlAlchemyFavoritesRepository(get_session_factory())


async def _current(
    repository: SqlAlchemyFavoritesRepository, user_id: str
) -> RemoteFavoritesResponse:
    product_ids = await repository.list_ordered(user_id)
    return RemoteFavoritesResponse(
        user_id=user_id, product_ids=product_ids, total=len(product_ids)
    )


@router.get("/{user_id}", response_model=RemoteFavoritesResponse)
async def list_favorites(
    user_id: UserId,
    repository: SqlAlchemyFavoritesRepository = Depends(get_favorites_repository),
) -> RemoteFavoritesResponse:
    """Return every product the user favorited, oldest first."""

    return await _current(repository, user_id)


@router.post("/{user_id}", response_model=RemoteFavoritesResponse)
async def add_favorites(
    payload: FavoriteIdsPayload,
    user_id: UserId,
    repository: SqlAlchemyFavoritesRepository = Depends(get_favorites_repository),
) -> RemoteFavoritesResponse:
    """Bulk insert; products already stored are ignored."""

    await repository.insert_many(user_id, payload.product_ids)
    return await _current(repository, user_id)


@router.delete("/{user_id}", response_model=RemoteFavoritesResponse)
async def remove_favorites(
    payload: FavoriteIdsPayload,
    user_id: UserId,
    repository: SqlAlchemyFavoritesRepository = Depends(get_favorites_repository),
) -> RemoteFavoritesResponse:
    """Bulk delete; products that are not stored are ignored."""

    await repository.delete_many(user_id, payload.product_ids)
    return await _current(repository, user_id)
