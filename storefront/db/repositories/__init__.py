"""Database repositories backing the remote favorites record."""

from .favorites_repository import SqlAlchemyFavoritesRepository

__all__ = ["SqlAlchemyFavoritesRepository"]
