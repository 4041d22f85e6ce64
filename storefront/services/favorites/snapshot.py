"""Durable storage backends for the local favorites snapshot.

The snapshot is a single named record holding a deduplicated JSON array of
product identifiers. It is read once when the store is created and
overwritten wholesale after every mutation, so no versioning or migration is
needed. Three backends are available:

* :class:`MemorySnapshotStorage` - process-local, used by tests and ephemeral
  sessions.
* :class:`JsonFileSnapshotStorage` - one JSON file, replaced atomically.
* :class:`RedisSnapshotStorage` - one Redis key, for clients that already run
  next to a Redis instance.

Every backend raises :class:`LocalPersistenceError` for I/O failures and for
payloads that do not decode into an array of strings.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError
from redis import Redis
from redis.exceptions import RedisError

from storefront.schemas.favorites import FavoritesSnapshot
from storefront.services.favorites.errors import LocalPersistenceError
from storefront.settings import AppSettings

logger = logging.getLogger(__name__)


class SnapshotStorage(Protocol):
    """Minimal contract consumed by :class:`LocalFavoritesStore`."""

    name: str

    def load(self) -> list[str]:
        """Return the stored identifiers, or an empty list when absent."""

    def save(self, favorite_ids: Sequence[str]) -> None:
        """Overwrite the stored record with ``favorite_ids``."""


def decode_snapshot(raw: str | bytes | None, *, name: str) -> list[str]:
    """Decode a serialized record into a clean identifier list."""

    if raw is None or raw == "" or raw == b"":
        return []
    try:
        payload = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise LocalPersistenceError(
            f"Snapshot {name!r} is not valid JSON: {exc}"
        ) from exc
    try:
        snapshot = FavoritesSnapshot.model_validate({"favorite_ids": payload})
    except ValidationError as exc:
        raise LocalPersistenceError(
            f"Snapshot {name!r} is not an array of identifiers"
        ) from exc
    return snapshot.favorite_ids


def encode_snapshot(favorite_ids: Sequence[str]) -> str:
    snapshot = FavoritesSnapshot(favorite_ids=list(favorite_ids))
    return json.dumps(snapshot.favorite_ids)


class MemorySnapshotStorage:
    """Keep serialized records in a dictionary shared by name."""

    def __init__(
        self,
        name: str = "favorites",
        *,
        records: dict[str, str] | None = None,
    ) -> None:
        self.name = name
        self.records: dict[str, str] = records if records is not None else {}
        self.writes = 0

    def load(self) -> list[str]:
        return decode_snapshot(self.records.get(self.name), name=self.name)

    def save(self, favorite_ids: Sequence[str]) -> None:
        self.records[self.name] = encode_snapshot(favorite_ids)
        self.writes += 1


class JsonFileSnapshotStorage:
    """Persist the record as a JSON array inside a single file."""

    def __init__(self, path: Path | str, *, name: str | None = None) -> None:
        self.path = Path(path)
        self.name = name or self.path.stem

    def load(self) -> list[str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise LocalPersistenceError(
                f"Unable to read snapshot {self.path}: {exc}"
            ) from exc
        return decode_snapshot(raw, name=self.name)

    def save(self, favorite_ids: Sequence[str]) -> None:
        encoded = encode_snapshot(favorite_ids)
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write next to the target so ``os.replace`` stays atomic.
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", dir=self.path.parent
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(encoded)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise LocalPersistenceError(
                f"Unable to write snapshot {self.path}: {exc}"
            ) from exc


class RedisSnapshotStorage:
    """Persist the record under a single Redis key."""

    def __init__(self, client: Redis, *, name: str) -> None:
        self._client = client
        self.name = name

    @classmethod
    def from_url(cls, url: str, *, name: str) -> RedisSnapshotStorage:
        client = Redis.from_url(url, decode_responses=True, encoding="utf-8")
        return cls(client, name=name)

    def load(self) -> list[str]:
        try:
            raw = self._client.get(self.name)
        except RedisError as exc:
            raise LocalPersistenceError(
                f"Unable to read snapshot {self.name!r} from Redis: {exc}"
            ) from exc
        return decode_snapshot(raw, name=self.name)

    def save(self, favorite_ids: Sequence[str]) -> None:
        try:
            self._client.set(self.name, encode_snapshot(favorite_ids))
        except RedisError as exc:
            raise LocalPersistenceError(
                f"Unable to write snapshot {self.name!r} to Redis: {exc}"
            ) from exc

    def close(self) -> None:
        self._client.close()


def build_snapshot_storage(settings: AppSettings) -> SnapshotStorage:
    """Instantiate the backend selected by ``FAVORITES_SNAPSHOT_BACKEND``."""

    backend = settings.favorites_snapshot_backend
    name = settings.favorites_snapshot_key
    if backend == "memory":
        return MemorySnapshotStorage(name)
    if backend == "redis":
        logger.debug("Using redis snapshot storage under key %s", name)
        return RedisSnapshotStorage.from_url(settings.redis_url, name=name)
    logger.debug("Using file snapshot storage at %s", settings.favorites_snapshot_path)
    return JsonFileSnapshotStorage(settings.favorites_snapshot_path, name=name)


__all__ = [
    "JsonFileSnapshotStorage",
    "MemorySnapshotStorage",
    "RedisSnapshotStorage",
    "SnapshotStorage",
    "build_snapshot_storage",
    "decode_snapshot",
    "encode_snapshot",
]
