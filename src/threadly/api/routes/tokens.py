"""Token administration endpoints."""

from dataclasses import asdict
from typing import Any

from fastapi import APIRouter

from threadly.api.dependencies import ConnectionServiceDep
from threadly.api.routes.models import success


router = APIRouter(prefix="/api/tokens", tags=["tokens"])


@router.get("/status")
async def get_token_status(connections: ConnectionServiceDep) -> dict[str, Any]:
    statuses = await connections.token_status()
    return {
        "message": f"Found {len(statuses)} users with Slack tokens",
        "users": [s.model_dump(mode="json", by_alias=True) for s in statuses],
    }


@router.post("/migrate")
async def force_token_migration(connections: ConnectionServiceDep) -> dict[str, Any]:
    result = await connections.force_token_migration()
    return {
        "message": "Token migration completed",
        **result.model_dump(by_alias=True),
    }


@router.post("/sweep")
async def sweep_tokens(connections: ConnectionServiceDep) -> dict[str, Any]:
    result = await connections.sweep_tokens()
    return success(**asdict(result))


@router.post("/{user_id}/refresh")
async def refresh_user_token(
    user_id: str, connections: ConnectionServiceDep
) -> dict[str, Any]:
    credential = await connections.refresh_user_token(user_id)
    return success(
        userId=user_id,
        expiresAt=credential.expires_at.isoformat(),
        lastRefreshed=credential.last_refreshed.isoformat()
        if credential.last_refreshed
        else None,
    )
