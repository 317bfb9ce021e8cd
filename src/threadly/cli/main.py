"""Threadly command line entry point."""

from typing import Annotated

import typer

from threadly import __version__
from threadly.cli.commands.messages import app as messages_app
from threadly.cli.commands.serve import serve
from threadly.cli.commands.tokens import app as tokens_app


def version_callback(value: bool) -> None:
    if value:
        typer.echo(f"threadly {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="threadly",
    help="Slack connections, scheduled messages and token rotation",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


@app.callback()
def app_main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = False,
) -> None:
    """Threadly server and administration tools."""


app.command(name="serve")(serve)
app.add_typer(tokens_app)
app.add_typer(messages_app)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
