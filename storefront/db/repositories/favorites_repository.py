"""SQLAlchemy implementation of the remote favorites repository.

Every call opens its own session so the coordinator can run the insert and
delete halves of a diff push concurrently. Driver and transport failures are
translated into :class:`ConnectivityError`; credential and privilege failures
into :class:`AuthError`. Anything else is a programming error and propagates
unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Collection
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import delete, insert, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
)
from sqlalchemy.exc import (
    TimeoutError as SQLAlchemyTimeoutError,
)
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

from storefront.db.models import RemoteFavorite
from storefront.services.favorites.errors import (
    AuthError,
    ConnectivityError,
    ConstraintViolation,
)

logger = logging.getLogger(__name__)

_CONFLICT_COLUMNS = ("user_id", "product_id")

# SQLSTATE classes: 28 = invalid authorization, 42501 = insufficient privilege.
_AUTH_SQLSTATE_PREFIXES = ("28", "42501")
_AUTH_MESSAGE_MARKERS = (
    "password authentication failed",
    "permission denied",
    "not authorized",
)


def _is_auth_failure(exc: BaseException) -> bool:
    """Return ``True`` when ``exc`` means the identity or credentials were rejected."""

    original = getattr(exc, "orig", None)
    sqlstate = getattr(original, "sqlstate", None) or getattr(original, "pgcode", None)
    if isinstance(sqlstate, str) and sqlstate.startswith(_AUTH_SQLSTATE_PREFIXES):
        return True
    message = str(original or exc).lower()
    return any(marker in message for marker in _AUTH_MESSAGE_MARKERS)


def _dialect_name(session: AsyncSession) -> str:
    bind = session.bind
    return bind.dialect.name if bind is not None else ""


class SqlAlchemyFavoritesRepository:
    """Remote favorites table accessed through SQLAlchemy's async ORM."""

    def __init__(self, session_factory: sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def fetch_all(self, identity_id: str) -> frozenset[str]:
        query = select(RemoteFavorite.product_id).where(
            RemoteFavorite.user_id == identity_id
        )
        async with self._session_scope("fetch", identity_id) as session:
            result = await session.execute(query)
            return frozenset(result.scalars().all())

    async def list_ordered(self, identity_id: str) -> list[str]:
        """Return stored product ids oldest first, for listing endpoints."""

        query = (
            select(RemoteFavorite.product_id)
            .where(RemoteFavorite.user_id == identity_id)
            .order_by(RemoteFavorite.created_at, RemoteFavorite.id)
        )
        async with self._session_scope("list", identity_id) as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def insert_many(self, identity_id: str, favorite_ids: Collection[str]) -> None:
        if not favorite_ids:
            return
        rows = [
            {"user_id": identity_id, "product_id": product_id}
            for product_id in sorted(favorite_ids)
        ]
        async with self._session_scope("insert", identity_id) as session:
            dialect = _dialect_name(session)
            if dialect == "postgresql":
                statement = postgresql_insert(RemoteFavorite).values(rows)
                await session.execute(
                    statement.on_conflict_do_nothing(index_elements=_CONFLICT_COLUMNS)
                )
            elif dialect == "sqlite":
                statement = sqlite_insert(RemoteFavorite).values(rows)
                await session.execute(
                    statement.on_conflict_do_nothing(index_elements=_CONFLICT_COLUMNS)
                )
            else:
                for row in rows:
                    try:
                        await self._insert_row(session, row)
                    except ConstraintViolation:
                        logger.debug(
                            "Favorite %s already stored for %s",
                            row["product_id"],
                            identity_id,
                        )
        logger.debug("Inserted up to %s favorites for %s", len(rows), identity_id)

    async def delete_many(self, identity_id: str, favorite_ids: Collection[str]) -> None:
        if not favorite_ids:
            return
        statement = delete(RemoteFavorite).where(
            RemoteFavorite.user_id == identity_id,
            RemoteFavorite.product_id.in_(sorted(favorite_ids)),
        )
        async with self._session_scope("delete", identity_id) as session:
            await session.execute(statement)
        logger.debug("Deleted up to %s favorites for %s", len(favorite_ids), identity_id)

    async def _insert_row(self, session: AsyncSession, row: dict[str, Any]) -> None:
        """Insert a single row inside a savepoint, mapping duplicates to a violation."""

        try:
            async with session.begin_nested():
                await session.execute(insert(RemoteFavorite).values(**row))
        except IntegrityError as exc:
            raise ConstraintViolation(
                f"Duplicate favorite {row['product_id']!r} for {row['user_id']!r}"
            ) from exc

    @asynccontextmanager
    async def _session_scope(
        self, operation: str, identity_id: str
    ) -> AsyncIterator[AsyncSession]:
        """Yield a session inside a transaction, translating driver failures."""

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except (
            OperationalError,
            InterfaceError,
            DisconnectionError,
            SQLAlchemyTimeoutError,
            OSError,
        ) as exc:
            if _is_auth_failure(exc):
                raise AuthError(
                    f"Remote favorites {operation} rejected identity {identity_id}"
                ) from exc
            raise ConnectivityError(
                f"Remote favorites {operation} failed for {identity_id}: {exc}"
            ) from exc
        except (ProgrammingError, DBAPIError) as exc:
            if _is_auth_failure(exc):
                raise AuthError(
                    f"Remote favorites {operation} rejected identity {identity_id}"
                ) from exc
            raise


__all__ = ["SqlAlchemyFavoritesRepository"]
