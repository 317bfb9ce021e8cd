"""Scheduled message commands."""

from typing import Annotated

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from threadly.cli.runtime import run_with_services
from threadly.db.models import ScheduledMessage
from threadly.scheduling.delivery import DeliveryReport
from threadly.services.container import ServiceContainer


app = typer.Typer(name="messages", help="Scheduled message delivery")

console = Console()


@app.command(name="process-due")
def process_due() -> None:
    """Deliver every message whose scheduled time has passed."""

    async def _process(services: ServiceContainer) -> DeliveryReport:
        return await services.delivery.process_due_messages()

    report = run_with_services(_process)
    console.print(
        f"Processed {report.processed}: [green]{report.sent} sent[/green], "
        f"[red]{report.failed} failed[/red], {report.skipped} skipped"
    )


@app.command(name="list")
def list_messages(
    user_id: Annotated[str, typer.Argument(help="Owner of the messages")],
    status: Annotated[
        list[str] | None,
        typer.Option("--status", "-s", help="Only these statuses (repeatable)"),
    ] = None,
) -> None:
    """List a user's scheduled messages."""

    async def _list(services: ServiceContainer) -> list[ScheduledMessage]:
        return await services.messaging.list_scheduled_messages(user_id, status)

    records = run_with_services(_list)
    if not records:
        console.print("[yellow]No scheduled messages.[/yellow]")
        return

    table = Table(title=f"Scheduled messages for {user_id}", box=box.ROUNDED)
    table.add_column("ID", style="cyan")
    table.add_column("Channel")
    table.add_column("Scheduled")
    table.add_column("Status")
    table.add_column("Message")

    for record in records:
        table.add_row(
            record.id,
            record.channel_id,
            record.scheduled_time.strftime("%Y-%m-%d %H:%M UTC"),
            str(record.status),
            record.message if len(record.message) <= 40 else record.message[:37] + "...",
        )

    console.print(table)
