"""Command line entry point for inspecting and syncing favorites.

Usage:
    storefront-favorites init-db
    storefront-favorites show
    storefront-favorites add p1 p2 --user alice
    storefront-favorites sync --user alice
    storefront-favorites remote --user alice

Without ``--user`` the mutation commands only touch the local snapshot, the
same way an anonymous shopper's favorites never leave the device.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from collections.abc import Callable

import click
from rich.console import Console
from rich.table import Table

from storefront.db.connection import (
    dispose_engine,
    get_session_factory,
    init_db,
    sanitize_database_url,
)
from storefront.db.repositories import SqlAlchemyFavoritesRepository
from storefront.schemas.favorites import SyncIssue, SyncState, SyncStatus
from storefront.services.favorites import (
    FavoritesSyncError,
    LocalFavoritesStore,
    SessionIdentityProvider,
    SyncDiagnostics,
    build_snapshot_storage,
)
from storefront.services.favorites_service import build_favorites_session
from storefront.settings import get_settings

console = Console()
logger = logging.getLogger(__name__)

Mutation = Callable[[LocalFavoritesStore], None]


def _print_favorites(title: str, favorite_ids: list[str] | tuple[str, ...]) -> None:
    if not favorite_ids:
        console.print(f"[yellow]{title}: no favorites[/yellow]")
        return

    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Product", style="cyan")
    for index, favorite_id in enumerate(favorite_ids, start=1):
        table.add_row(str(index), favorite_id)
    console.print(table)


def _print_status(status: SyncStatus) -> None:
    table = Table(title="Sync status", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value", no_wrap=True)
    colour = "green" if status.state is SyncState.SYNCED else "yellow"
    table.add_row("State", f"[{colour}]{status.state.value}[/{colour}]")
    table.add_row("Identity", status.identity_id or "-")
    table.add_row("Local favorites", str(status.local_count))
    table.add_row(
        "Remote baseline",
        "-" if status.baseline_size is None else str(status.baseline_size),
    )
    table.add_row("Issues", str(status.issue_count))
    console.print(table)


def _print_issues(issues: list[SyncIssue]) -> None:
    if not issues:
        return
    table = Table(title="Sync issues")
    table.add_column("When", style="dim", no_wrap=True)
    table.add_column("Operation", no_wrap=True)
    table.add_column("Error", style="red", no_wrap=True)
    table.add_column("Message")
    for issue in issues:
        table.add_row(
            issue.occurred_at.strftime("%H:%M:%S"),
            issue.operation,
            issue.error_type,
            issue.message,
        )
    console.print(table)


def _mutate_locally(mutation: Mutation) -> None:
    settings = get_settings()
    diagnostics = SyncDiagnostics(history=settings.favorites_diagnostics_history)
    store = LocalFavoritesStore(build_snapshot_storage(settings), diagnostics=diagnostics)
    mutation(store)
    _print_favorites("Local favorites", store.ids())
    _print_issues(diagnostics.issues)


async def _mutate_and_sync(user: str, mutation: Mutation | None) -> SyncStatus:
    """Open a session for ``user``, merge, apply ``mutation`` and wait for the push."""

    session = build_favorites_session(
        get_settings(), identity=SessionIdentityProvider(user)
    )
    try:
        async with session:
            await session.coordinator.wait_idle()
            if mutation is not None:
                mutation(session.store)
                await session.coordinator.wait_idle()
            status = session.status()
            _print_favorites("Local favorites", session.store.ids())
            _print_status(status)
            _print_issues(session.diagnostics.issues)
            return status
    finally:
        await dispose_engine()


def _run_mutation(user: str | None, mutation: Mutation) -> None:
    try:
        if user is None:
            _mutate_locally(mutation)
            return
        asyncio.run(_mutate_and_sync(user, mutation))
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="PRODUCT_IDS") from exc


@click.group()
@click.option(
    "--log-level",
    default=None,
    help="Override LOG_LEVEL for this invocation.",
)
def cli(log_level: str | None) -> None:
    """Manage local favorites and their remote copy."""

    settings = get_settings()
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    for warning in settings.optional_config_warnings():
        logger.warning(warning)


@cli.command("init-db")
def init_db_command() -> None:
    """Create the remote favorites tables."""

    settings = get_settings()

    async def _init() -> None:
        try:
            await init_db()
        finally:
            await dispose_engine()

    asyncio.run(_init())
    console.print(
        "[green]✓ Favorites tables ready[/green] "
        f"[dim]({sanitize_database_url(settings.resolved_database_url)})[/dim]"
    )


@cli.command()
def show() -> None:
    """List the local favorites snapshot."""

    settings = get_settings()
    diagnostics = SyncDiagnostics(history=settings.favorites_diagnostics_history)
    store = LocalFavoritesStore(build_snapshot_storage(settings), diagnostics=diagnostics)
    _print_favorites("Local favorites", store.ids())
    _print_issues(diagnostics.issues)


user_option = click.option(
    "--user",
    "user",
    default=None,
    help="Sync with this identity's remote favorites after the change.",
)


@cli.command()
@click.argument("product_ids", nargs=-1, required=True)
@user_option
def add(product_ids: tuple[str, ...], user: str | None) -> None:
    """Favorite one or more products."""

    def _mutation(store: LocalFavoritesStore) -> None:
        for product_id in product_ids:
            store.add(product_id)

    _run_mutation(user, _mutation)


@cli.command()
@click.argument("product_ids", nargs=-1, required=True)
@user_option
def remove(product_ids: tuple[str, ...], user: str | None) -> None:
    """Unfavorite one or more products."""

    def _mutation(store: LocalFavoritesStore) -> None:
        for product_id in product_ids:
            store.remove(product_id)

    _run_mutation(user, _mutation)


@cli.command()
@click.argument("product_ids", nargs=-1, required=True)
@user_option
def toggle(product_ids: tuple[str, ...], user: str | None) -> None:
    """Flip the favorite flag of each product."""

    def _mutation(store: LocalFavoritesStore) -> None:
        for product_id in product_ids:
            now_favorite = store.toggle(product_id)
            marker = "[green]+[/green]" if now_favorite else "[red]-[/red]"
            console.print(f"{marker} {product_id}")

    _run_mutation(user, _mutation)


@cli.command()
@user_option
def clear(user: str | None) -> None:
    """Remove every local favorite."""

    _run_mutation(user, lambda store: store.clear())


@cli.command()
@click.option("--user", "user", required=True, help="Identity to merge with.")
def sync(user: str) -> None:
    """Merge local favorites with the remote record and report the outcome."""

    status = asyncio.run(_mutate_and_sync(user, None))
    if status.state is not SyncState.SYNCED:
        console.print("[red]✗ Favorites are local-only; remote merge failed[/red]")
        sys.exit(1)
    console.print("[green]✓ Favorites synced[/green]")


@cli.command()
@click.option("--user", "user", required=True, help="Identity whose record to list.")
def remote(user: str) -> None:
    """List the remote favorites of an identity."""

    async def _list() -> list[str]:
        try:
            repository = SqlAlchemyFavoritesRepository(get_session_factory())
            return await repository.list_ordered(user)
        finally:
            await dispose_engine()

    try:
        favorite_ids = asyncio.run(_list())
    except FavoritesSyncError as exc:
        console.print(f"[red]✗ {type(exc).__name__}: {exc}[/red]")
        sys.exit(1)
    _print_favorites(f"Remote favorites for {user}", favorite_ids)


if __name__ == "__main__":
    cli()
