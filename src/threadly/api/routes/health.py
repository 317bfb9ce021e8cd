"""Health check endpoint."""

from typing import Any

from fastapi import APIRouter, Request
from sqlalchemy import text
from structlog import get_logger

from threadly import __version__
from threadly.db.engine import get_session
from threadly.exceptions import StorageError


logger = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request) -> dict[str, Any]:
    database = "ok"
    try:
        async with get_session() as session:
            await session.execute(text("SELECT 1"))
    except StorageError as e:
        logger.warning("health_database_unavailable", error=str(e))
        database = "unavailable"

    supervisor = getattr(request.app.state, "background_supervisor", None)
    return {
        "status": "ok" if database == "ok" else "degraded",
        "version": __version__,
        "database": database,
        "backgroundJobs": bool(supervisor and supervisor.is_running),
    }
