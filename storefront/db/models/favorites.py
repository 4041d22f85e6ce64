"""SQLAlchemy ORM model for the remote multi-device favorites record.

One row per (user, product) pair. The unique constraint is what turns a
duplicate insert into a benign no-op for the repository, so clients never have
to check membership before writing.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from . import Base


def utcnow():
    """Return current UTC datetime."""
    return datetime.now(timezone.utc)


class RemoteFavorite(Base):
    """A product favorited by a single user, shared across their devices."""

    __tablename__ = "favorites"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "product_id",
            name="uq_favorites_user_product",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(128),
        index=True,
        nullable=False,
        doc=(
            "Opaque identifier supplied by the identity provider. Stored as a"
            " string so UUIDs, emails, or OAuth subjects all fit."
        ),
    )
    product_id: Mapped[str] = mapped_column(
        String(128),
        nullable=False,
        doc="Opaque product key; compared with exact string equality.",
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
