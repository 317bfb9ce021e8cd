"""FastAPI application factory for the Threadly API server."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
import structlog
from fastapi import FastAPI
from structlog import get_logger

from threadly import __version__
from threadly.api.lifecycle import (
    LifecycleComponent,
    execute_shutdown_sequence,
    execute_startup_sequence,
    log_server_start,
)
from threadly.api.middleware.auth import BearerTokenAuthMiddleware
from threadly.api.middleware.cors import setup_cors_middleware
from threadly.api.middleware.errors import setup_error_handlers
from threadly.api.middleware.logging import AccessLogMiddleware
from threadly.api.middleware.request_id import RequestIDMiddleware
from threadly.api.routes.channels import router as channels_router
from threadly.api.routes.health import router as health_router
from threadly.api.routes.oauth import router as oauth_router
from threadly.api.routes.slack import router as slack_router
from threadly.api.routes.tokens import router as tokens_router
from threadly.api.startup import (
    initialize_background_supervisor_startup,
    initialize_database_startup,
    initialize_services_startup,
    shutdown_background_supervisor,
    shutdown_database,
    shutdown_services,
)
from threadly.config.settings import Settings, get_settings
from threadly.core.logging import setup_logging


logger = get_logger(__name__)


LIFECYCLE_COMPONENTS: list[LifecycleComponent] = [
    {
        "name": "Database",
        "startup": initialize_database_startup,
        "shutdown": shutdown_database,
    },
    {
        "name": "Services",
        "startup": initialize_services_startup,
        "shutdown": shutdown_services,
    },
    {
        "name": "Background Supervisor",
        "startup": initialize_background_supervisor_startup,
        "shutdown": shutdown_background_supervisor,
    },
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager using component-based approach."""
    settings: Settings = app.state.settings

    log_server_start(settings)
    await execute_startup_sequence(LIFECYCLE_COMPONENTS, app, settings)

    yield

    logger.debug("server_stop")
    await execute_shutdown_sequence(LIFECYCLE_COMPONENTS, app)


def create_app(
    settings: Settings | None = None,
    *,
    slack_http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Optional settings override. If None, uses get_settings().
        slack_http_client: HTTP client the Slack gateway should use instead
            of building its own.

    Returns:
        Configured FastAPI application instance.
    """
    if settings is None:
        settings = get_settings()

    # Reload mode re-imports the app in a fresh process
    if not structlog.is_configured():
        setup_logging(
            json_logs=settings.server.json_logs,
            log_level_name=settings.server.log_level,
            log_file=settings.server.log_file,
        )

    app = FastAPI(
        title="Threadly API Server",
        description="Slack connections, scheduled messages and token rotation",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    if slack_http_client is not None:
        app.state.slack_http_client = slack_http_client

    setup_error_handlers(app)

    # Middleware runs in reverse order of registration; CORS wraps the 401s too
    app.add_middleware(BearerTokenAuthMiddleware, auth_token=settings.security.auth_token)
    app.add_middleware(AccessLogMiddleware)
    app.add_middleware(RequestIDMiddleware)
    setup_cors_middleware(app, settings)

    app.include_router(health_router)
    app.include_router(oauth_router)
    app.include_router(slack_router)
    app.include_router(channels_router)
    app.include_router(tokens_router)

    return app


def get_app() -> FastAPI:
    """Get the FastAPI application instance."""
    return create_app()
