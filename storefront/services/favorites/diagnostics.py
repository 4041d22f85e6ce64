"""Structured reporting channel for errors the sync subsystem swallows."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from typing import Any

from storefront.schemas.favorites import SyncIssue, SyncOperation

logger = logging.getLogger(__name__)

IssueListener = Callable[[SyncIssue], None]


class SyncDiagnostics:
    """Collect, log, and fan out sync failures that never reach the caller.

    Favoriting a product must never look like it failed because of a sync
    problem, so the coordinator and the local store hand every caught error to
    this object instead of raising. Each report becomes a :class:`SyncIssue`
    kept in a bounded history and forwarded to subscribers (for example a UI
    badge or a metrics exporter).
    """

    def __init__(self, *, history: int = 100) -> None:
        self._issues: deque[SyncIssue] = deque(maxlen=history)
        self._listeners: list[IssueListener] = []

    def report(
        self,
        operation: SyncOperation,
        error: BaseException,
        *,
        identity_id: str | None = None,
        generation: int | None = None,
        **context: Any,
    ) -> SyncIssue:
        """Record ``error`` raised by ``operation`` and return the stored issue."""

        issue = SyncIssue(
            operation=operation,
            error_type=type(error).__name__,
            message=str(error) or type(error).__name__,
            identity_id=identity_id,
            generation=generation,
            context=context,
        )
        self._issues.append(issue)
        logger.warning(
            "Favorites %s failed for identity %s (generation %s): %s: %s",
            operation,
            identity_id,
            generation,
            issue.error_type,
            issue.message,
        )
        for listener in list(self._listeners):
            try:
                listener(issue)
            except Exception:  # pragma: no cover - listener bugs must not escape
                logger.exception("Diagnostics listener %r raised", listener)
        return issue

    def subscribe(self, listener: IssueListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    @property
    def issues(self) -> list[SyncIssue]:
        return list(self._issues)

    def latest(self) -> SyncIssue | None:
        return self._issues[-1] if self._issues else None

    def clear(self) -> None:
        self._issues.clear()

    def __len__(self) -> int:
        return len(self._issues)


__all__ = ["IssueListener", "SyncDiagnostics"]
