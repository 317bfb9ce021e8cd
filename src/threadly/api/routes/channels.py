"""Channel browsing endpoints."""

from typing import Annotated, Any

from fastapi import APIRouter, Query

from threadly.api.dependencies import MessagingServiceDep
from threadly.api.routes.models import success


router = APIRouter(prefix="/api/channels", tags=["channels"])

UserIdQuery = Annotated[str, Query(alias="userId")]


@router.get("")
async def list_channels(messaging: MessagingServiceDep, user_id: UserIdQuery = "") -> dict[str, Any]:
    channels = await messaging.list_channels(user_id)
    return success(channels=[c.model_dump(by_alias=True) for c in channels])


@router.get("/{channel_id}/info")
async def get_channel_info(
    channel_id: str, messaging: MessagingServiceDep, user_id: UserIdQuery = ""
) -> dict[str, Any]:
    info = await messaging.get_channel_info(user_id, channel_id)
    return success(channel=info.model_dump(mode="json", by_alias=True))


@router.get("/{channel_id}/members")
async def get_channel_members(
    channel_id: str,
    messaging: MessagingServiceDep,
    user_id: UserIdQuery = "",
    cursor: str | None = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> dict[str, Any]:
    page = await messaging.get_channel_members(user_id, channel_id, cursor, limit)
    return success(**page.model_dump(mode="json", by_alias=True))


@router.get("/{channel_id}/messages")
async def get_channel_messages(
    channel_id: str,
    messaging: MessagingServiceDep,
    user_id: UserIdQuery = "",
    cursor: str | None = None,
    limit: Annotated[int, Query(ge=1, le=1000)] = 50,
) -> dict[str, Any]:
    page = await messaging.get_channel_messages(user_id, channel_id, cursor, limit)
    return success(**page.model_dump(mode="json", by_alias=True))
