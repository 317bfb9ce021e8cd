"""Run the API server."""

import os
from pathlib import Path
from typing import Annotated

import orjson
import typer
import uvicorn
from rich.console import Console

from threadly.config.settings import (
    CONFIG_OVERRIDES_ENV,
    cli_overrides_from_args,
    get_settings,
)
from threadly.core.logging import setup_logging
from threadly.exceptions import ConfigValidationError


console = Console()


def serve(
    host: Annotated[str | None, typer.Option("--host", help="Bind address")] = None,
    port: Annotated[int | None, typer.Option("--port", "-p", help="Listen port")] = None,
    reload: Annotated[
        bool | None, typer.Option("--reload/--no-reload", help="Reload on code changes")
    ] = None,
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="DEBUG, INFO, WARNING, ERROR")
    ] = None,
    log_file: Annotated[
        str | None, typer.Option("--log-file", help="Also write JSON logs here")
    ] = None,
    json_logs: Annotated[
        bool | None, typer.Option("--json-logs/--no-json-logs", help="JSON console logs")
    ] = None,
    auth_token: Annotated[
        str | None,
        typer.Option("--auth-token", help="Bearer token required on /api routes"),
    ] = None,
    database_path: Annotated[
        Path | None, typer.Option("--database-path", help="SQLite database file")
    ] = None,
    no_scheduler: Annotated[
        bool,
        typer.Option("--no-scheduler", help="Disable token sweep and delivery jobs"),
    ] = False,
    cors_origins: Annotated[
        str | None,
        typer.Option("--cors-origins", help="Comma-separated allowed origins"),
    ] = None,
) -> None:
    """Start the Threadly API server.

    Examples:
        threadly serve
        threadly serve --port 8080 --auth-token secret
    """
    overrides = cli_overrides_from_args(
        host=host,
        port=port,
        reload=reload,
        log_level=log_level,
        log_file=log_file,
        json_logs=json_logs,
        auth_token=auth_token,
        database_path=str(database_path) if database_path else None,
        no_scheduler=no_scheduler,
        cors_origins=cors_origins,
    )
    # Worker processes rebuild settings from the environment
    if overrides:
        os.environ[CONFIG_OVERRIDES_ENV] = orjson.dumps(overrides).decode()

    try:
        settings = get_settings()
    except ConfigValidationError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(1) from e

    setup_logging(
        json_logs=settings.server.json_logs,
        log_level_name=settings.server.log_level,
        log_file=settings.server.log_file,
    )

    console.print(f"[bold cyan]Threadly[/bold cyan] listening on {settings.server_url}")
    uvicorn.run(
        "threadly.api:get_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload,
        log_config=None,
    )
