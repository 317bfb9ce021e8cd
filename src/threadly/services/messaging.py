"""Sending and scheduling messages, and browsing channels."""

from collections.abc import Iterable
from datetime import UTC, datetime

import structlog

from threadly.core.validators import parse_iso_datetime
from threadly.db.models import MessageStatus, ScheduledMessage
from threadly.db.repositories.scheduled_message_repo import ScheduledMessageStore
from threadly.exceptions import InvalidStateError, NotFoundError, ValidationError
from threadly.scheduling.delivery import DeliveryScheduler
from threadly.slack.gateway import SlackGateway
from threadly.slack.models import (
    Channel,
    ChannelInfo,
    HistoryPage,
    MembersPage,
    PostedMessage,
)
from threadly.tokens.lifecycle import TokenLifecycleManager


logger = structlog.get_logger(__name__)


def _require(value: str | None, field: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"Missing required field: {field}", details={"field": field})
    return value


class MessagingService:
    """Message and channel operations for a connected user."""

    def __init__(
        self,
        messages: ScheduledMessageStore,
        lifecycle: TokenLifecycleManager,
        gateway: SlackGateway,
        delivery: DeliveryScheduler,
    ) -> None:
        self.messages = messages
        self.lifecycle = lifecycle
        self.gateway = gateway
        self.delivery = delivery

    async def send_immediate_message(
        self, user_id: str, channel_id: str, message: str
    ) -> PostedMessage:
        _require(user_id, "userId")
        _require(channel_id, "channelId")
        _require(message, "message")

        token = await self.lifecycle.get_valid_access_token(user_id)
        posted = await self.gateway.post_message(token, channel_id, message)
        logger.info(
            "message_sent",
            user_id=user_id,
            channel_id=channel_id,
            slack_ts=posted.ts,
        )
        return posted

    async def schedule_message(
        self,
        user_id: str,
        channel_id: str,
        message: str,
        scheduled_time: str | datetime,
    ) -> ScheduledMessage:
        """Persist a message for later delivery.

        A time that is now or already past starts a delivery pass right away.

        Raises:
            ValidationError: Missing field or unparseable time
        """
        _require(user_id, "userId")
        _require(channel_id, "channelId")
        _require(message, "message")
        when = parse_iso_datetime(scheduled_time, field="scheduledTime")

        record = await self.messages.create(user_id, channel_id, message, when)
        logger.info(
            "message_scheduled",
            message_id=record.id,
            user_id=user_id,
            channel_id=channel_id,
            scheduled_time=when.isoformat(),
        )

        if when <= datetime.now(UTC):
            self.delivery.trigger()

        return record

    async def confirm_message(
        self, message_id: str, user_id: str | None = None
    ) -> ScheduledMessage:
        await self._get_owned(message_id, user_id)
        return await self.messages.confirm(message_id)

    async def cancel_message(
        self, message_id: str, user_id: str | None = None
    ) -> ScheduledMessage:
        """Cancel a pending message.

        Raises:
            NotFoundError: No such message for this user
            InvalidStateError: Already sent, failed, cancelled or being sent
        """
        record = await self._get_owned(message_id, user_id)
        with self.delivery.claim(message_id) as claimed:
            if not claimed:
                raise InvalidStateError(
                    f"Message '{message_id}' is being sent and can no longer be cancelled",
                    current_status=record.status,
                )
            cancelled = await self.messages.cancel(message_id)
        logger.info("message_cancelled", message_id=message_id, user_id=record.user_id)
        return cancelled

    async def list_scheduled_messages(
        self,
        user_id: str,
        statuses: Iterable[MessageStatus | str] | None = None,
    ) -> list[ScheduledMessage]:
        _require(user_id, "userId")
        if statuses is not None:
            statuses = list(statuses)
            valid = {status.value for status in MessageStatus}
            unknown = [s for s in statuses if s not in valid]
            if unknown:
                raise ValidationError(
                    f"Unknown status: {', '.join(map(str, unknown))}",
                    details={"field": "status"},
                )
        return await self.messages.list_for_user(user_id, statuses)

    async def list_channels(self, user_id: str) -> list[Channel]:
        _require(user_id, "userId")
        token = await self.lifecycle.get_valid_access_token(user_id)
        return await self.gateway.list_channels(token)

    async def get_channel_info(self, user_id: str, channel_id: str) -> ChannelInfo:
        _require(user_id, "userId")
        _require(channel_id, "channelId")
        token = await self.lifecycle.get_valid_access_token(user_id)
        return await self.gateway.get_channel_info(token, channel_id)

    async def get_channel_members(
        self,
        user_id: str,
        channel_id: str,
        cursor: str | None = None,
        limit: int = 100,
    ) -> MembersPage:
        _require(user_id, "userId")
        _require(channel_id, "channelId")
        token = await self.lifecycle.get_valid_access_token(user_id)
        return await self.gateway.list_channel_members(token, channel_id, cursor, limit)

    async def get_channel_messages(
        self,
        user_id: str,
        channel_id: str,
        cursor: str | None = None,
        limit: int = 50,
    ) -> HistoryPage:
        _require(user_id, "userId")
        _require(channel_id, "channelId")
        token = await self.lifecycle.get_valid_access_token(user_id)
        return await self.gateway.get_channel_history(token, channel_id, cursor, limit)

    async def _get_owned(self, message_id: str, user_id: str | None) -> ScheduledMessage:
        _require(message_id, "messageId")
        record = await self.messages.get(message_id)
        if record is None or (user_id is not None and record.user_id != user_id):
            raise NotFoundError(f"Scheduled message '{message_id}' not found")
        return record
