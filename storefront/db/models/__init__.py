from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


from .favorites import RemoteFavorite  # noqa: E402

__all__ = ["Base", "RemoteFavorite"]
