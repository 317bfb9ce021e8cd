"""Request and response models shared by the API routes."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from threadly.db.models import ScheduledMessage


class ApiModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class OAuthCodeRequest(ApiModel):
    code: str | None = None
    user_id: str | None = Field(default=None, alias="userId")


class UserRequest(ApiModel):
    user_id: str | None = Field(default=None, alias="userId")


class SendMessageRequest(ApiModel):
    user_id: str | None = Field(default=None, alias="userId")
    channel_id: str | None = Field(default=None, alias="channelId")
    message: str | None = None


class ScheduleMessageRequest(SendMessageRequest):
    scheduled_time: str | None = Field(default=None, alias="scheduledTime")


class MessageActionRequest(ApiModel):
    message_id: str | None = Field(default=None, alias="messageId")
    user_id: str | None = Field(default=None, alias="userId")


class ScheduledMessageOut(ApiModel):
    """A scheduled message as returned to the dashboard."""

    id: str
    user_id: str = Field(alias="userId")
    channel_id: str = Field(alias="channelId")
    message: str
    scheduled_time: datetime = Field(alias="scheduledTime")
    status: str
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    sent_at: datetime | None = Field(default=None, alias="sentAt")
    cancelled_at: datetime | None = Field(default=None, alias="cancelledAt")
    error: str | None = None
    slack_ts: str | None = Field(default=None, alias="slackTs")

    @classmethod
    def from_record(cls, record: ScheduledMessage) -> "ScheduledMessageOut":
        return cls(
            id=record.id,
            user_id=record.user_id,
            channel_id=record.channel_id,
            message=record.message,
            scheduled_time=record.scheduled_time,
            status=str(record.status),
            created_at=record.created_at,
            updated_at=record.updated_at,
            sent_at=record.sent_at,
            cancelled_at=record.cancelled_at,
            error=record.error,
            slack_ts=record.slack_ts,
        )


def success(**payload: Any) -> dict[str, Any]:
    """Wrap a payload in the ``{"status": "success", ...}`` envelope."""
    return {"status": "success", **payload}
