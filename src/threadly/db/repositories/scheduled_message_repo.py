"""Scheduled message repository.

Status transitions are compare-and-set UPDATEs guarded on the current
status, so a record that already left the pending states is never
overwritten.
"""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

import structlog
from sqlalchemy import update
from sqlmodel import col, select

from threadly.db.engine import get_session
from threadly.db.models import PENDING_STATUSES, MessageStatus, ScheduledMessage
from threadly.exceptions import InvalidStateError, NotFoundError


logger = structlog.get_logger(__name__)


class ScheduledMessageStore:
    """Repository for ScheduledMessage records."""

    async def create(
        self,
        user_id: str,
        channel_id: str,
        message: str,
        scheduled_time: datetime,
    ) -> ScheduledMessage:
        """Persist a new message in the ``scheduled`` state."""
        now = datetime.now(UTC)
        async with get_session() as session:
            record = ScheduledMessage(
                user_id=user_id,
                channel_id=channel_id,
                message=message,
                scheduled_time=scheduled_time,
                status=MessageStatus.SCHEDULED,
                created_at=now,
                updated_at=now,
            )
            session.add(record)
            await session.flush()
            await session.refresh(record)
            return record

    async def get(self, message_id: str) -> ScheduledMessage | None:
        async with get_session() as session:
            return await session.get(ScheduledMessage, message_id)

    async def list_for_user(
        self,
        user_id: str,
        statuses: Iterable[MessageStatus | str] | None = None,
    ) -> list[ScheduledMessage]:
        """Messages of one user ordered by scheduled time."""
        query = select(ScheduledMessage).where(ScheduledMessage.user_id == user_id)
        if statuses is not None:
            query = query.where(col(ScheduledMessage.status).in_(list(statuses)))
        query = query.order_by(col(ScheduledMessage.scheduled_time))
        async with get_session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def due_messages(self, now: datetime | None = None) -> list[ScheduledMessage]:
        """Pending messages whose time has come, oldest first."""
        now = now or datetime.now(UTC)
        async with get_session() as session:
            result = await session.execute(
                select(ScheduledMessage)
                .where(
                    col(ScheduledMessage.status).in_(PENDING_STATUSES),
                    ScheduledMessage.scheduled_time <= now,
                )
                .order_by(col(ScheduledMessage.scheduled_time), col(ScheduledMessage.created_at))
            )
            return list(result.scalars().all())

    async def confirm(self, message_id: str) -> ScheduledMessage:
        """Move ``scheduled`` to ``confirmed``."""
        return await self._transition(
            message_id,
            from_statuses=(MessageStatus.SCHEDULED,),
            to_status=MessageStatus.CONFIRMED,
            action="confirm",
        )

    async def mark_sent(self, message_id: str, slack_ts: str | None) -> ScheduledMessage:
        now = datetime.now(UTC)
        return await self._transition(
            message_id,
            from_statuses=PENDING_STATUSES,
            to_status=MessageStatus.SENT,
            action="mark as sent",
            sent_at=now,
            slack_ts=slack_ts,
            error=None,
        )

    async def mark_failed(self, message_id: str, error: str) -> ScheduledMessage:
        return await self._transition(
            message_id,
            from_statuses=PENDING_STATUSES,
            to_status=MessageStatus.FAILED,
            action="mark as failed",
            error=error,
        )

    async def cancel(self, message_id: str) -> ScheduledMessage:
        now = datetime.now(UTC)
        return await self._transition(
            message_id,
            from_statuses=PENDING_STATUSES,
            to_status=MessageStatus.CANCELLED,
            action="cancel",
            cancelled_at=now,
        )

    async def _transition(
        self,
        message_id: str,
        *,
        from_statuses: tuple[MessageStatus, ...],
        to_status: MessageStatus,
        action: str,
        **values: Any,
    ) -> ScheduledMessage:
        """Apply a guarded status change and return the updated record.

        Raises:
            NotFoundError: If no message has ``message_id``
            InvalidStateError: If the message is not in ``from_statuses``
        """
        now = datetime.now(UTC)
        async with get_session() as session:
            result = await session.execute(
                update(ScheduledMessage)
                .where(
                    col(ScheduledMessage.id) == message_id,
                    col(ScheduledMessage.status).in_(from_statuses),
                )
                .values(status=to_status, updated_at=now, **values)
                .execution_options(synchronize_session=False)
            )
            updated = result.rowcount == 1  # type: ignore[attr-defined]

            record = await session.get(
                ScheduledMessage, message_id, populate_existing=True
            )

        if record is None:
            raise NotFoundError(f"Scheduled message '{message_id}' not found")
        if not updated:
            raise InvalidStateError(
                f"Cannot {action} message '{message_id}' in status '{record.status}'",
                current_status=record.status,
            )

        logger.debug(
            "scheduled_message_transition",
            message_id=message_id,
            status=str(to_status),
        )
        return record
