"""Helpers for CLI commands that talk to the datastore and Slack directly."""

import asyncio
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TypeVar

import typer
from rich.console import Console

from threadly.config.settings import Settings, get_settings
from threadly.core.logging import setup_logging
from threadly.db import close_db, init_db
from threadly.exceptions import ThreadlyError
from threadly.services.container import ServiceContainer


T = TypeVar("T")

console = Console()


@asynccontextmanager
async def open_services(settings: Settings) -> AsyncGenerator[ServiceContainer, None]:
    await init_db(settings.database.path, echo=settings.database.echo)
    container = ServiceContainer.build(settings)
    try:
        yield container
    finally:
        await container.aclose()
        await close_db()


def run_with_services(func: Callable[[ServiceContainer], Awaitable[T]]) -> T:
    """Run ``func`` against freshly built services; exit 1 on a Threadly error."""
    settings = get_settings()
    setup_logging(log_level_name=settings.server.log_level, log_file=settings.server.log_file)

    async def _run() -> T:
        async with open_services(settings) as services:
            return await func(services)

    try:
        return asyncio.run(_run())
    except ThreadlyError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e
