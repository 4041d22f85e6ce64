"""Slow-statement logging for the remote favorites database.

Bulk favorites writes are small, so anything crossing the threshold usually
points at lock contention on the ``favorites`` unique index or a cold pool.
"""

import logging
import time
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

_STATEMENT_PREVIEW_CHARS = 300


def setup_query_monitoring(
    engine: AsyncEngine,
    slow_query_threshold: float = 0.1,
    log_pool_stats: bool = False,
) -> None:
    """Log statements slower than ``slow_query_threshold`` seconds.

    Args:
        engine: Async engine whose ``sync_engine`` receives the listeners
        slow_query_threshold: Threshold in seconds (default: 0.1s)
        log_pool_stats: Also log pool checkouts at DEBUG level
    """
    sync_engine = getattr(engine, "sync_engine", None)
    if sync_engine is None:
        logger.warning("Engine does not expose sync_engine, skipping query monitoring")
        return

    @event.listens_for(sync_engine, "before_cursor_execute")
    def _start_timer(
        conn: Any,
        cursor: Any,
        statement: str,
        parameters: Any,
        context: Any,
        executemany: bool,
    ) -> None:
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(sync_engine, "after_cursor_execute")
    def _log_if_slow(
        conn: Any,
        cursor: Any,
        statement: str,
        parameters: Any,
        context: Any,
        executemany: bool,
    ) -> None:
        elapsed = time.perf_counter() - conn.info["query_start_time"].pop()
        if elapsed <= slow_query_threshold:
            return

        preview = statement[:_STATEMENT_PREVIEW_CHARS]
        if len(statement) > _STATEMENT_PREVIEW_CHARS:
            preview += "..."
        logger.warning(
            f"Slow favorites query ({elapsed:.3f}s): {preview}",
            extra={
                "duration_seconds": elapsed,
                "threshold_seconds": slow_query_threshold,
                "executemany": executemany,
            },
        )

    if log_pool_stats:

        @event.listens_for(sync_engine, "checkout")
        def _log_checkout(dbapi_conn: Any, connection_record: Any, connection_proxy: Any) -> None:
            logger.debug(f"Connection checked out from pool: {sync_engine.pool.status()}")

    logger.debug(
        f"Query monitoring enabled (slow query threshold: {slow_query_threshold}s)"
    )
