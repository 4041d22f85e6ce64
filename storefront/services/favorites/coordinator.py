"""Keep the local favorites and the remote multi-device record converged.

:class:`SyncCoordinator` is an explicit, event-driven state machine:

``UNINITIALIZED -> MERGING``
    An identity becomes available. The remote set ``R`` is fetched, the local
    store is replaced with ``U = local | R`` and the baseline becomes ``U``.
``MERGING -> SYNCED``
    The fetch succeeded. ``U - R`` is inserted remotely; a failure of that
    insert is reported but does not hold the state back, because the local
    set is already correct.
``MERGING -> LOCAL_ONLY``
    The fetch failed. No baseline exists and no remote calls are made until
    the next identity event or a manual :meth:`SyncCoordinator.retry`.
``SYNCED -> SYNCED``
    The local store changed. ``added = C - B`` and ``removed = B - C`` are
    pushed concurrently; the baseline advances to ``C`` only when both calls
    succeed, so a failed push is re-attempted by the next diff.
``* -> UNINITIALIZED``
    The identity went away (or the remote rejected it). The baseline is
    discarded and in-flight calls are abandoned: not awaited, not cancelled.

Mutation-triggered pushes are gated on :attr:`SyncCoordinator.initialized`,
which only turns true once the merge settled. Every identity event bumps a
generation counter; results of remote calls started under an older
generation are ignored. At most one push runs at a time: mutations arriving
meanwhile mark the coordinator dirty and the running push recomputes the
diff once it settles.

Remote failures never reach the caller of a store mutation. They are logged
and reported to :class:`SyncDiagnostics`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from typing import Any, TypeVar

from storefront.schemas.favorites import SyncState, SyncStatus
from storefront.services.favorites.diagnostics import SyncDiagnostics
from storefront.services.favorites.errors import AuthError, ConnectivityError
from storefront.services.favorites.identity import IdentityProvider
from storefront.services.favorites.local_store import LocalFavoritesStore
from storefront.services.favorites.remote import RemoteFavoritesRepository
from storefront.settings import DEFAULT_REMOTE_TIMEOUT_SECONDS, DEFAULT_RETRY_BACKOFF_SECONDS

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class FavoritesDiff:
    """Changes between the last remote-confirmed set and the current one."""

    added: frozenset[str]
    removed: frozenset[str]

    @classmethod
    def between(cls, baseline: frozenset[str], current: frozenset[str]) -> FavoritesDiff:
        return cls(added=current - baseline, removed=baseline - current)

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


class SyncCoordinator:
    """Merge on session start, then push incremental diffs."""

    def __init__(
        self,
        store: LocalFavoritesStore,
        repository: RemoteFavoritesRepository,
        identity_provider: IdentityProvider | None = None,
        *,
        diagnostics: SyncDiagnostics | None = None,
        remote_timeout: float = DEFAULT_REMOTE_TIMEOUT_SECONDS,
        clear_on_logout: bool = False,
        retry_attempts: int = 0,
        retry_backoff: float = DEFAULT_RETRY_BACKOFF_SECONDS,
    ) -> None:
        self._store = store
        self._repository = repository
        self._identity_provider = identity_provider
        if diagnostics is None:
            diagnostics = SyncDiagnostics()
        self._diagnostics = diagnostics
        self._remote_timeout = remote_timeout
        self._clear_on_logout = clear_on_logout
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff

        self._state = SyncState.UNINITIALIZED
        self._identity_id: str | None = None
        self._generation = 0
        self._baseline: frozenset[str] | None = None
        self._initialized = False
        self._push_running = False
        self._dirty = False
        self._retry_count = 0
        self._retry_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._unsubscribers: list[Callable[[], None]] = []
        self._closed = False

    # -- lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Subscribe to store and identity events and react to the current identity."""

        if self._unsubscribers:
            return
        self._closed = False
        self._unsubscribers.append(self._store.subscribe(self._on_local_change))
        if self._identity_provider is not None:
            self._unsubscribers.append(
                self._identity_provider.subscribe(self.handle_identity_change)
            )
            current = self._identity_provider.current_identity
            if current is not None:
                self.handle_identity_change(current)

    def close(self) -> None:
        """Stop syncing and drop back to ``UNINITIALIZED``.

        In-flight remote calls are left to finish; their results are ignored.
        """

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._closed = True
        self._reset(None)

    async def wait_idle(self) -> None:
        """Wait until every task spawned by the coordinator has settled."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -- read-only view --------------------------------------------------------

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def identity_id(self) -> str | None:
        return self._identity_id

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def baseline(self) -> frozenset[str] | None:
        return self._baseline

    @property
    def diagnostics(self) -> SyncDiagnostics:
        return self._diagnostics

    def pending_diff(self) -> FavoritesDiff | None:
        """Diff the next push would send, or ``None`` without a baseline."""

        if self._baseline is None:
            return None
        return FavoritesDiff.between(self._baseline, self._store.snapshot())

    def status(self) -> SyncStatus:
        return SyncStatus(
            state=self._state,
            identity_id=self._identity_id,
            initialized=self._initialized,
            generation=self._generation,
            local_count=self._store.count(),
            baseline_size=len(self._baseline) if self._baseline is not None else None,
            push_in_flight=self._push_running,
            retry_scheduled=self._retry_task is not None,
            issue_count=len(self._diagnostics),
        )

    # -- event handlers --------------------------------------------------------

    def handle_identity_change(self, identity_id: str | None) -> None:
        """React to login, logout, or a switch between identities."""

        identity_id = identity_id or None
        if identity_id == self._identity_id:
            return

        previous = self._identity_id
        self._reset(identity_id)

        if identity_id is None:
            logger.info("Identity %s signed out; favorites sync stopped", previous)
            if self._clear_on_logout:
                self._store.clear()
            return

        self._begin_merge()

    def retry(self) -> None:
        """Re-attempt whatever the current state left unfinished.

        ``SYNCED`` re-pushes the pending diff, ``LOCAL_ONLY`` re-runs the merge,
        and ``UNINITIALIZED`` re-reads the identity provider (useful after an
        authentication failure).
        """

        if self._closed:
            logger.debug("Coordinator closed; retry ignored")
            return
        if self._state is SyncState.SYNCED:
            self._dirty = True
            self._ensure_push()
        elif self._state is SyncState.LOCAL_ONLY and self._identity_id is not None:
            self._generation += 1
            self._initialized = False
            self._begin_merge()
        elif self._state is SyncState.UNINITIALIZED and self._identity_provider is not None:
            current = self._identity_provider.current_identity
            if current is not None:
                self._identity_id = None
                self.handle_identity_change(current)

    def _on_local_change(self, _snapshot: frozenset[str]) -> None:
        if not self._initialized or self._state is not SyncState.SYNCED:
            logger.debug("Local favorites changed before sync initialized; not pushing")
            return
        self._dirty = True
        self._ensure_push()

    # -- transitions -----------------------------------------------------------

    def _reset(self, identity_id: str | None) -> None:
        self._generation += 1
        self._cancel_retry()
        self._identity_id = identity_id
        self._state = SyncState.UNINITIALIZED
        self._baseline = None
        self._initialized = False
        self._push_running = False
        self._dirty = False
        self._retry_count = 0

    def _begin_merge(self) -> None:
        identity_id = self._identity_id
        assert identity_id is not None
        self._state = SyncState.MERGING
        logger.info(
            "Merging favorites for identity %s (generation %s)",
            identity_id,
            self._generation,
        )
        if self._spawn(self._merge(identity_id, self._generation)) is None:
            self._state = SyncState.LOCAL_ONLY
            self._initialized = True

    async def _merge(self, identity_id: str, generation: int) -> None:
        try:
            remote = await self._call(self._repository.fetch_all(identity_id))
        except Exception as exc:
            if self._is_stale(generation):
                return
            self._report("merge_fetch", exc, identity_id, generation)
            if isinstance(exc, AuthError):
                self._reset_after_auth_failure()
                return
            self._state = SyncState.LOCAL_ONLY
            self._initialized = True
            logger.info("Favorites sync for %s degraded to local-only", identity_id)
            return

        if self._is_stale(generation):
            logger.debug("Discarding merge result from stale generation %s", generation)
            return

        local_ids = self._store.ids()
        self._store.replace([*local_ids, *sorted(remote.difference(local_ids))])
        # The store drops blank ids, so the baseline is read back from it.
        merged = self._store.snapshot()
        self._baseline = merged
        self._state = SyncState.SYNCED
        self._initialized = True
        logger.info(
            "Merged %s local and %s remote favorites into %s for %s",
            len(local_ids),
            len(remote),
            len(merged),
            identity_id,
        )

        to_insert = merged - remote
        self._push_running = True
        try:
            if to_insert:
                try:
                    await self._call(self._repository.insert_many(identity_id, to_insert))
                except Exception as exc:
                    if self._is_stale(generation):
                        return
                    self._report(
                        "merge_push",
                        exc,
                        identity_id,
                        generation,
                        added=sorted(to_insert),
                    )
                    if isinstance(exc, AuthError):
                        self._reset_after_auth_failure()
                        return
            await self._drain(identity_id, generation)
        finally:
            if not self._is_stale(generation):
                self._push_running = False

    def _ensure_push(self) -> None:
        if self._push_running:
            return
        identity_id = self._identity_id
        assert identity_id is not None
        self._push_running = True
        if self._spawn(self._run_push_slot(identity_id, self._generation)) is None:
            self._push_running = False

    async def _run_push_slot(self, identity_id: str, generation: int) -> None:
        try:
            await self._drain(identity_id, generation)
        finally:
            if not self._is_stale(generation):
                self._push_running = False

    async def _drain(self, identity_id: str, generation: int) -> None:
        while (
            self._dirty
            and not self._is_stale(generation)
            and self._state is SyncState.SYNCED
        ):
            self._dirty = False
            if not await self._push_diff(identity_id, generation):
                break

    async def _push_diff(self, identity_id: str, generation: int) -> bool:
        """Push one diff; return ``True`` when the baseline caught up."""

        assert self._baseline is not None
        current = self._store.snapshot()
        diff = FavoritesDiff.between(self._baseline, current)
        if diff.is_empty:
            return True

        calls: list[Awaitable[None]] = []
        if diff.added:
            calls.append(self._call(self._repository.insert_many(identity_id, diff.added)))
        if diff.removed:
            calls.append(self._call(self._repository.delete_many(identity_id, diff.removed)))
        results = await asyncio.gather(*calls, return_exceptions=True)

        if self._is_stale(generation):
            logger.debug("Discarding push result from stale generation %s", generation)
            return False

        failures = [result for result in results if isinstance(result, BaseException)]
        for failure in failures:
            if isinstance(failure, asyncio.CancelledError):
                raise failure

        if failures:
            for failure in failures:
                self._report(
                    "diff_push",
                    failure,
                    identity_id,
                    generation,
                    added=sorted(diff.added),
                    removed=sorted(diff.removed),
                )
            if any(isinstance(failure, AuthError) for failure in failures):
                self._reset_after_auth_failure()
            else:
                self._schedule_retry(identity_id, generation)
            return False

        self._baseline = current
        self._retry_count = 0
        logger.info(
            "Pushed favorites diff for %s (+%s/-%s)",
            identity_id,
            len(diff.added),
            len(diff.removed),
        )
        return True

    def _reset_after_auth_failure(self) -> None:
        logger.warning(
            "Remote favorites rejected identity %s; sync reset", self._identity_id
        )
        self._reset(None)

    # -- background retry ------------------------------------------------------

    def _schedule_retry(self, identity_id: str, generation: int) -> None:
        if self._retry_count >= self._retry_attempts or self._retry_task is not None:
            return
        delay = self._retry_backoff * (2**self._retry_count)
        self._retry_count += 1
        logger.info(
            "Scheduling favorites push retry %s/%s in %.1fs",
            self._retry_count,
            self._retry_attempts,
            delay,
        )
        self._retry_task = self._spawn(self._retry_after(delay, identity_id, generation))

    async def _retry_after(self, delay: float, identity_id: str, generation: int) -> None:
        await asyncio.sleep(delay)
        if self._is_stale(generation):
            return
        self._retry_task = None
        if self._state is not SyncState.SYNCED:
            return
        self._dirty = True
        if self._push_running:
            return
        self._push_running = True
        await self._run_push_slot(identity_id, generation)

    def _cancel_retry(self) -> None:
        if self._retry_task is not None:
            self._retry_task.cancel()
            self._retry_task = None

    # -- helpers ---------------------------------------------------------------

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    async def _call(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._remote_timeout)
        except asyncio.TimeoutError as exc:
            raise ConnectivityError(
                f"Remote favorites call timed out after {self._remote_timeout}s"
            ) from exc

    def _report(
        self,
        operation: Any,
        error: BaseException,
        identity_id: str,
        generation: int,
        **context: Any,
    ) -> None:
        if not isinstance(error, (ConnectivityError, AuthError)):
            logger.error(
                "Unexpected error during favorites %s", operation, exc_info=error
            )
        self._diagnostics.report(
            operation,
            error,
            identity_id=identity_id,
            generation=generation,
            **context,
        )

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None] | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning("No running event loop; favorites sync work skipped")
            return None
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Favorites sync task failed", exc_info=exc)


__all__ = ["FavoritesDiff", "SyncCoordinator"]
