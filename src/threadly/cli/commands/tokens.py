"""Token administration commands."""

from typing import Annotated

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from threadly.cli.runtime import run_with_services
from threadly.security.token_cipher import TokenCipher
from threadly.services.container import ServiceContainer
from threadly.tokens.models import MigrationResult, RekeyResult, SweepResult, TokenStatus


app = typer.Typer(name="tokens", help="Slack token status, migration, refresh and keys")

console = Console()


@app.command(name="status")
def status() -> None:
    """Show every stored Slack credential and when it expires."""

    async def _status(services: ServiceContainer) -> list[TokenStatus]:
        return await services.connections.token_status()

    statuses = run_with_services(_status)
    if not statuses:
        console.print("[yellow]No users with Slack tokens.[/yellow]")
        return

    table = Table(title="Slack Tokens", box=box.ROUNDED)
    table.add_column("User", style="cyan")
    table.add_column("Workspace", style="green")
    table.add_column("Token")
    table.add_column("Rotating")
    table.add_column("Expires")
    table.add_column("Remaining")

    for item in statuses:
        remaining = (
            "[red]Expired[/red]" if item.is_expired else item.time_remaining
        )
        table.add_row(
            item.user_id,
            item.workspace or "-",
            item.token_prefix,
            "[green]yes[/green]" if item.has_refresh_token else "[yellow]no[/yellow]",
            item.expires_at.strftime("%Y-%m-%d %H:%M UTC") if item.expires_at else "-",
            remaining,
        )

    console.print(table)


@app.command(name="migrate")
def migrate() -> None:
    """Exchange every legacy long-lived token for a rotating one."""

    async def _migrate(services: ServiceContainer) -> MigrationResult:
        return await services.connections.force_token_migration()

    result = run_with_services(_migrate)
    console.print(
        f"[green]Migrated {result.migrated_count}[/green], "
        f"[red]{result.error_count} failed[/red]"
    )
    if result.error_count:
        raise typer.Exit(1)


@app.command(name="sweep")
def sweep() -> None:
    """Run one token maintenance sweep now."""

    async def _sweep(services: ServiceContainer) -> SweepResult:
        return await services.connections.sweep_tokens()

    result = run_with_services(_sweep)
    console.print(
        f"Checked {result.checked}: {result.refreshed} refreshed, "
        f"{result.migrated} migrated, {result.skipped} skipped, "
        f"{result.failed} failed"
    )
    for error in result.errors:
        console.print(f"  [red]{error}[/red]")


@app.command(name="refresh")
def refresh(
    user_id: Annotated[str, typer.Argument(help="User whose token to refresh")],
) -> None:
    """Force a refresh of one user's rotating token."""

    async def _refresh(services: ServiceContainer) -> str:
        credential = await services.connections.refresh_user_token(user_id)
        return credential.expires_at.strftime("%Y-%m-%d %H:%M UTC")

    expires = run_with_services(_refresh)
    console.print(f"[green]Token refreshed for {user_id}; expires {expires}[/green]")


@app.command(name="generate-key")
def generate_key() -> None:
    """Print a new key for THREADLY_TOKEN_ENCRYPTION_KEYS."""
    typer.echo(TokenCipher.generate_key())


@app.command(name="rekey")
def rekey() -> None:
    """Re-wrap stored tokens under the first configured encryption key.

    To rotate keys, prepend a key from ``threadly tokens generate-key`` to
    THREADLY_TOKEN_ENCRYPTION_KEYS, run this command, then drop the old key.
    """

    async def _rekey(services: ServiceContainer) -> RekeyResult:
        return await services.connections.rekey_tokens()

    result = run_with_services(_rekey)
    console.print(
        f"[green]Re-keyed {result.rekeyed_count}[/green], "
        f"[red]{result.error_count} failed[/red]"
    )
    if result.error_count:
        raise typer.Exit(1)
