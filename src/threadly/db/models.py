"""SQLModel database models."""

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import shortuuid
from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel


def utcnow() -> datetime:
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone-aware datetime column.

    SQLite drops tzinfo, so values are written as naive UTC and come back
    with UTC attached.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Any) -> Any:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect: Any) -> Any:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class MessageStatus(StrEnum):
    """Lifecycle states of a scheduled message."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    SENT = "sent"
    FAILED = "failed"
    CANCELLED = "cancelled"


# States a message can still leave
PENDING_STATUSES = (MessageStatus.SCHEDULED, MessageStatus.CONFIRMED)


class AuditAction(StrEnum):
    """Token audit log actions."""

    TOKEN_CREATED = "token_created"
    TOKEN_REFRESHED = "token_refreshed"
    TOKEN_MIGRATED = "token_migrated"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"
    TOKEN_DELETED = "token_deleted"


class User(SQLModel, table=True):
    """Application user with the Slack credential embedded as slack_* columns.

    Token columns hold ciphertext produced by TokenCipher.
    """

    __tablename__ = "users"

    id: str = Field(primary_key=True, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)

    slack_access_token: str | None = None
    slack_refresh_token: str | None = None
    slack_token_expires_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    slack_token_created_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    slack_last_refreshed: datetime | None = Field(default=None, sa_type=UTCDateTime)
    slack_last_used: datetime | None = Field(default=None, sa_type=UTCDateTime)
    slack_scope: str | None = None
    slack_bot_user_id: str | None = None
    slack_authed_user_id: str | None = None
    slack_workspace_id: str | None = Field(default=None, index=True)
    slack_workspace_name: str | None = None


class ScheduledMessage(SQLModel, table=True):
    """A durable intent to post a message at a future time."""

    __tablename__ = "scheduled_messages"

    id: str = Field(default_factory=shortuuid.uuid, primary_key=True)
    user_id: str = Field(index=True)
    channel_id: str
    message: str
    scheduled_time: datetime = Field(sa_type=UTCDateTime, index=True)
    status: str = Field(default=MessageStatus.SCHEDULED, index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    sent_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    cancelled_at: datetime | None = Field(default=None, sa_type=UTCDateTime)
    error: str | None = None
    slack_ts: str | None = None


class TokenAuditLog(SQLModel, table=True):
    """Append-only record of credential changes."""

    __tablename__ = "token_audit_logs"

    id: int | None = Field(default=None, primary_key=True)
    action: str = Field(index=True)
    user_id: str = Field(index=True)
    workspace_id: str | None = None
    detail: str | None = None
    timestamp: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
