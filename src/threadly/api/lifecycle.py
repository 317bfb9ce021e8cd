"""Application lifecycle management helpers."""

from collections.abc import Awaitable, Callable

from fastapi import FastAPI
from structlog import get_logger
from typing_extensions import TypedDict

from threadly.config.settings import Settings
from threadly.exceptions import ThreadlyError


logger = get_logger(__name__)


class LifecycleComponent(TypedDict):
    name: str
    startup: Callable[[FastAPI, Settings], Awaitable[None]] | None
    shutdown: Callable[[FastAPI], Awaitable[None]] | None


def _event_name(component_name: str) -> str:
    return component_name.lower().replace(" ", "_")


async def run_startup_component(
    component: LifecycleComponent,
    app: FastAPI,
    settings: Settings,
) -> None:
    """Execute a single startup component.

    Startup failures propagate: the server must not accept requests with
    a missing Datastore or gateway.
    """
    if not component["startup"]:
        return

    logger.debug(f"starting_{_event_name(component['name'])}")
    try:
        await component["startup"](app, settings)
    except (ThreadlyError, OSError, RuntimeError, ValueError) as e:
        logger.error(
            f"{_event_name(component['name'])}_startup_failed",
            error=str(e),
            component=component["name"],
        )
        raise


async def run_shutdown_component(component: LifecycleComponent, app: FastAPI) -> None:
    """Execute a single shutdown component with error handling."""
    if not component["shutdown"]:
        return

    logger.debug(f"stopping_{_event_name(component['name'])}")
    try:
        await component["shutdown"](app)
    except (ThreadlyError, OSError, RuntimeError) as e:
        logger.error(
            f"{_event_name(component['name'])}_shutdown_failed",
            error=str(e),
            component=component["name"],
        )


async def execute_startup_sequence(
    components: list[LifecycleComponent],
    app: FastAPI,
    settings: Settings,
) -> None:
    """Execute all startup components in order."""
    for component in components:
        await run_startup_component(component, app, settings)


async def execute_shutdown_sequence(
    components: list[LifecycleComponent],
    app: FastAPI,
) -> None:
    """Execute all shutdown components in reverse order."""
    for component in reversed(components):
        await run_shutdown_component(component, app)


def log_server_start(settings: Settings) -> None:
    logger.info(
        "server_start",
        host=settings.server.host,
        port=settings.server.port,
        url=settings.server_url,
    )
    if not settings.slack.is_configured:
        logger.warning(
            "slack_client_not_configured",
            message="Set SLACK_CLIENT_ID and SLACK_CLIENT_SECRET to enable OAuth",
        )
    if settings.security.token_encryption_key_generated:
        logger.warning(
            "token_encryption_key_generated",
            message=(
                "No THREADLY_TOKEN_ENCRYPTION_KEYS configured; stored tokens "
                "will be unreadable after restart"
            ),
        )
