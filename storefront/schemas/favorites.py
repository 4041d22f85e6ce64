"""Pydantic schemas for the favorites snapshot, HTTP surface, and sync status."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


def dedupe_ids(values: Iterable[Any]) -> list[str]:
    """Drop blanks and duplicates while keeping first-seen order.

    Identifiers are compared with exact string equality; whitespace is not
    trimmed because product keys are opaque.
    """

    seen: set[str] = set()
    ordered: list[str] = []
    for value in values:
        if not isinstance(value, str) or not value:
            continue
        if value in seen:
            continue
        seen.add(value)
        ordered.append(value)
    return ordered


class FavoritesSnapshot(BaseModel):
    """Durable local record: a deduplicated array of product identifiers."""

    favorite_ids: list[str] = Field(
        default_factory=list,
        description="Product identifiers in the order they were first favorited.",
    )

    @field_validator("favorite_ids", mode="before")
    @classmethod
    def _dedupe(cls, value: Any) -> list[str]:
        if value is None:
            return []
        if isinstance(value, (str, bytes, dict)) or not isinstance(value, Iterable):
            raise ValueError("favorite_ids must be an array of strings")
        entries = list(value)
        if any(not isinstance(entry, str) or not entry for entry in entries):
            raise ValueError("favorite_ids must only hold non-empty strings")
        return dedupe_ids(entries)


class FavoriteIdsPayload(BaseModel):
    """Request body for bulk insert and bulk delete calls."""

    product_ids: list[str] = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Product identifiers to add or remove for the identity.",
    )

    @field_validator("product_ids")
    @classmethod
    def _reject_blank(cls, value: list[str]) -> list[str]:
        if any(not item for item in value):
            raise ValueError("Product identifiers must not be empty")
        return dedupe_ids(value)


class RemoteFavoritesResponse(BaseModel):
    """Favorites stored remotely for one identity."""

    user_id: str
    product_ids: list[str] = Field(default_factory=list)
    total: int = Field(..., ge=0)


class SyncState(str, Enum):
    """Lifecycle states of the sync coordinator."""

    UNINITIALIZED = "uninitialized"
    MERGING = "merging"
    SYNCED = "synced"
    LOCAL_ONLY = "local_only"


SyncOperation = Literal[
    "merge_fetch",
    "merge_push",
    "diff_push",
    "snapshot_read",
    "snapshot_write",
]


class SyncIssue(BaseModel):
    """A failure that was deliberately swallowed by the sync subsystem."""

    model_config = ConfigDict(frozen=True)

    operation: SyncOperation
    error_type: str = Field(..., description="Class name of the swallowed error")
    message: str
    identity_id: str | None = None
    generation: int | None = None
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    context: dict[str, Any] = Field(default_factory=dict)


class SyncStatus(BaseModel):
    """Point-in-time view of a coordinator, used by the CLI and tests."""

    state: SyncState
    identity_id: str | None = None
    initialized: bool = False
    generation: int = Field(0, ge=0)
    local_count: int = Field(0, ge=0)
    baseline_size: int | None = Field(
        None, description="Size of the last remote-confirmed set, if any"
    )
    push_in_flight: bool = False
    retry_scheduled: bool = False
    issue_count: int = Field(0, ge=0)


__all__ = [
    "FavoriteIdsPayload",
    "FavoritesSnapshot",
    "RemoteFavoritesResponse",
    "SyncIssue",
    "SyncOperation",
    "SyncState",
    "SyncStatus",
    "dedupe_ids",
]
