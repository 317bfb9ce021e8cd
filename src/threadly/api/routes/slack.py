"""Slack connection and messaging endpoints.

Endpoints:
    GET  /api/slack/oauth-url           - Slack authorize URL
    POST /api/slack/oauth               - Exchange an OAuth code
    POST /api/slack/disconnect          - Remove the user's credential
    POST /api/slack/send-message        - Post a message now
    POST /api/slack/schedule-message    - Schedule a message
    POST /api/slack/confirm-message     - Confirm a scheduled message
    POST /api/slack/cancel-message      - Cancel a scheduled message
    GET  /api/slack/scheduled-messages  - List a user's scheduled messages
    GET  /api/slack/channels            - List channels
"""

from typing import Annotated, Any

from fastapi import APIRouter, Query

from threadly.api.dependencies import ConnectionServiceDep, MessagingServiceDep
from threadly.api.routes.models import (
    MessageActionRequest,
    OAuthCodeRequest,
    ScheduledMessageOut,
    ScheduleMessageRequest,
    SendMessageRequest,
    UserRequest,
    success,
)


router = APIRouter(prefix="/api/slack", tags=["slack"])


@router.get("/oauth-url")
async def get_oauth_url(connections: ConnectionServiceDep) -> dict[str, Any]:
    return success(url=connections.authorization_url())


@router.post("/oauth")
async def handle_oauth(
    body: OAuthCodeRequest, connections: ConnectionServiceDep
) -> dict[str, Any]:
    result = await connections.exchange_oauth_code(body.code or "", body.user_id or "")
    return success(**result.model_dump(by_alias=True))


@router.post("/disconnect")
async def disconnect(body: UserRequest, connections: ConnectionServiceDep) -> dict[str, Any]:
    disconnected = await connections.disconnect(body.user_id or "")
    return success(message="Disconnected from Slack", disconnected=disconnected)


@router.post("/send-message")
async def send_immediate_message(
    body: SendMessageRequest, messaging: MessagingServiceDep
) -> dict[str, Any]:
    posted = await messaging.send_immediate_message(
        body.user_id or "", body.channel_id or "", body.message or ""
    )
    return success(data=posted.model_dump(by_alias=True))


@router.post("/schedule-message")
async def schedule_message(
    body: ScheduleMessageRequest, messaging: MessagingServiceDep
) -> dict[str, Any]:
    record = await messaging.schedule_message(
        body.user_id or "",
        body.channel_id or "",
        body.message or "",
        body.scheduled_time or "",
    )
    return success(data=ScheduledMessageOut.from_record(record).model_dump(mode="json", by_alias=True))


@router.post("/confirm-message")
async def confirm_message(
    body: MessageActionRequest, messaging: MessagingServiceDep
) -> dict[str, Any]:
    record = await messaging.confirm_message(body.message_id or "", body.user_id)
    return success(data=ScheduledMessageOut.from_record(record).model_dump(mode="json", by_alias=True))


@router.post("/cancel-message")
async def cancel_message(
    body: MessageActionRequest, messaging: MessagingServiceDep
) -> dict[str, Any]:
    record = await messaging.cancel_message(body.message_id or "", body.user_id)
    return success(data=ScheduledMessageOut.from_record(record).model_dump(mode="json", by_alias=True))


@router.get("/scheduled-messages")
async def list_scheduled_messages(
    messaging: MessagingServiceDep,
    user_id: Annotated[str, Query(alias="userId")] = "",
    status: Annotated[list[str] | None, Query()] = None,
) -> dict[str, Any]:
    records = await messaging.list_scheduled_messages(user_id, status)
    return success(
        messages=[
            ScheduledMessageOut.from_record(r).model_dump(mode="json", by_alias=True)
            for r in records
        ]
    )


@router.get("/channels")
async def get_channels(
    messaging: MessagingServiceDep,
    user_id: Annotated[str, Query(alias="userId")] = "",
) -> dict[str, Any]:
    channels = await messaging.list_channels(user_id)
    return success(channels=[c.model_dump(by_alias=True) for c in channels])
