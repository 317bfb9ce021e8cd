"""Startup and shutdown functions for the application components.

Each startup function stores what it builds on ``app.state`` so routes and
later components can reach it.
"""

import httpx
from fastapi import FastAPI
from structlog import get_logger

from threadly.config.settings import Settings
from threadly.db import close_db, init_db
from threadly.scheduling.supervisor import BackgroundSupervisor
from threadly.services.container import ServiceContainer


logger = get_logger(__name__)


async def initialize_database_startup(app: FastAPI, settings: Settings) -> None:
    await init_db(settings.database.path, echo=settings.database.echo)


async def shutdown_database(app: FastAPI) -> None:
    await close_db()


async def initialize_services_startup(app: FastAPI, settings: Settings) -> None:
    """Build the gateway, the lifecycle manager, delivery and the services."""
    http_client: httpx.AsyncClient | None = getattr(app.state, "slack_http_client", None)
    container = ServiceContainer.build(settings, http_client=http_client)

    app.state.services = container
    app.state.slack_gateway = container.gateway
    app.state.token_lifecycle = container.lifecycle
    app.state.delivery_scheduler = container.delivery
    app.state.connection_service = container.connections
    app.state.messaging_service = container.messaging


async def shutdown_services(app: FastAPI) -> None:
    container: ServiceContainer | None = getattr(app.state, "services", None)
    if container is not None:
        await container.aclose()


async def initialize_background_supervisor_startup(
    app: FastAPI, settings: Settings
) -> None:
    if not settings.scheduler.enabled:
        logger.info("background_jobs_disabled")
        app.state.background_supervisor = None
        return

    supervisor = BackgroundSupervisor(
        app.state.token_lifecycle,
        app.state.delivery_scheduler,
        settings.scheduler,
    )
    await supervisor.start()
    app.state.background_supervisor = supervisor


async def shutdown_background_supervisor(app: FastAPI) -> None:
    supervisor: BackgroundSupervisor | None = getattr(
        app.state, "background_supervisor", None
    )
    if supervisor is not None:
        await supervisor.stop()
