"""Delivery of scheduled messages whose time has come.

Each tick fetches the due messages and dispatches them concurrently. A
failure of one message never affects the others and never escapes the
tick: it is recorded on the message as ``failed`` with a readable error.
Failed messages are not retried automatically.

A message id is claimed in-process for the whole of a send attempt, and a
cancel holds the same claim while it updates the record. Together with the
guarded status transitions in ScheduledMessageStore this keeps one process
from posting a message twice or posting a cancelled one. Running several
replicas against one Datastore would additionally need a claim step (a
conditional ``scheduled -> sending`` update) or a distributed lock.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

import structlog
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from threadly.db.models import PENDING_STATUSES, ScheduledMessage
from threadly.db.repositories.scheduled_message_repo import ScheduledMessageStore
from threadly.exceptions import InvalidStateError, StorageError, ThreadlyError
from threadly.slack.gateway import SlackGateway
from threadly.tokens.lifecycle import TokenLifecycleManager


logger = structlog.get_logger(__name__)


class DeliveryOutcome(StrEnum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class DeliveryReport:
    """Counts from one pass over the due messages."""

    processed: int = 0
    sent: int = 0
    failed: int = 0
    skipped: int = 0


class DeliveryScheduler:
    """Promotes due scheduled messages into posted Slack messages."""

    def __init__(
        self,
        messages: ScheduledMessageStore,
        tokens: TokenLifecycleManager,
        gateway: SlackGateway,
        max_concurrent: int = 10,
        record_attempts: int = 3,
        retry_wait: wait_base | None = None,
    ) -> None:
        self.messages = messages
        self.tokens = tokens
        self.gateway = gateway
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._record_attempts = record_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=5)
        self._dispatching: set[str] = set()
        # Posted to Slack but not yet recorded; maps message id to slack ts
        self._unrecorded: dict[str, str | None] = {}
        self._triggered: set[asyncio.Task[DeliveryReport | None]] = set()
        self._closed = False

    def is_dispatching(self, message_id: str) -> bool:
        """Whether a send attempt for ``message_id`` is under way."""
        return message_id in self._dispatching

    @contextmanager
    def claim(self, message_id: str) -> Iterator[bool]:
        """Hold ``message_id`` so no send attempt can start meanwhile.

        Yields False, and holds nothing, if the id is already claimed.
        """
        if message_id in self._dispatching:
            yield False
            return
        self._dispatching.add(message_id)
        try:
            yield True
        finally:
            self._dispatching.discard(message_id)

    async def process_due_messages(self, now: datetime | None = None) -> DeliveryReport:
        """Send every message due at ``now``.

        Raises:
            StorageError: If the due messages cannot be listed
        """
        now = now or datetime.now(UTC)
        due = await self.messages.due_messages(now)
        if not due:
            logger.debug("no_due_messages")
            return DeliveryReport()

        logger.info("processing_due_messages", count=len(due))
        report = DeliveryReport(processed=len(due))
        outcomes = await asyncio.gather(
            *(self._deliver(record.id, now) for record in due),
            return_exceptions=True,
        )

        for record, outcome in zip(due, outcomes, strict=True):
            if isinstance(outcome, BaseException):
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                report.failed += 1
                logger.error(
                    "scheduled_message_delivery_error",
                    message_id=record.id,
                    error=str(outcome),
                    exc_info=outcome,
                )
            elif outcome is DeliveryOutcome.SENT:
                report.sent += 1
            elif outcome is DeliveryOutcome.FAILED:
                report.failed += 1
            else:
                report.skipped += 1

        logger.info(
            "due_messages_processed",
            processed=report.processed,
            sent=report.sent,
            failed=report.failed,
            skipped=report.skipped,
        )
        return report

    def trigger(self) -> asyncio.Task[DeliveryReport | None] | None:
        """Start an immediate delivery pass in the background."""
        if self._closed:
            logger.warning("delivery_trigger_after_close")
            return None
        task = asyncio.create_task(self._run_triggered(), name="delivery-trigger")
        self._triggered.add(task)
        task.add_done_callback(self._triggered.discard)
        return task

    async def aclose(self, timeout: float | None = None) -> None:
        """Wait for triggered passes; cancel those still running after ``timeout``."""
        self._closed = True
        pending = {task for task in self._triggered if not task.done()}
        if not pending:
            return
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("triggered_deliveries_cancelled", count=len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)

    async def _run_triggered(self) -> DeliveryReport | None:
        try:
            return await self.process_due_messages()
        except ThreadlyError as e:
            logger.error("triggered_delivery_failed", error=e.message)
            return None

    async def _deliver(self, message_id: str, now: datetime) -> DeliveryOutcome:
        with self.claim(message_id) as claimed:
            if not claimed:
                logger.debug("scheduled_message_already_dispatching", message_id=message_id)
                return DeliveryOutcome.SKIPPED

            async with self._semaphore:
                record = await self.messages.get(message_id)
                if (
                    record is None
                    or record.status not in PENDING_STATUSES
                    or record.scheduled_time > now
                ):
                    self._unrecorded.pop(message_id, None)
                    return DeliveryOutcome.SKIPPED
                if message_id in self._unrecorded:
                    return await self._record_sent(record, self._unrecorded[message_id])
                return await self._send(record)

    async def _send(self, record: ScheduledMessage) -> DeliveryOutcome:
        try:
            token = await self.tokens.get_valid_access_token(record.user_id)
            posted = await self.gateway.post_message(
                token, record.channel_id, record.message
            )
        except ThreadlyError as e:
            return await self._record_failure(record, e.message)
        except Exception as e:
            logger.exception("scheduled_message_unexpected_error", message_id=record.id)
            return await self._record_failure(record, str(e) or type(e).__name__)

        self._unrecorded[record.id] = posted.ts
        return await self._record_sent(record, posted.ts)

    async def _record_sent(
        self, record: ScheduledMessage, slack_ts: str | None
    ) -> DeliveryOutcome:
        try:
            await self._persist(self.messages.mark_sent, record.id, slack_ts)
        except InvalidStateError as e:
            self._unrecorded.pop(record.id, None)
            logger.warning(
                "scheduled_message_already_handled",
                message_id=record.id,
                current_status=e.current_status,
            )
            return DeliveryOutcome.SKIPPED
        except StorageError as e:
            logger.error(
                "scheduled_message_sent_not_recorded",
                message_id=record.id,
                slack_ts=slack_ts,
                error=e.message,
            )
            outcome = await self._record_failure(
                record,
                f"Delivered to Slack (ts={slack_ts}) but not recorded: {e.message}",
            )
            if outcome is not DeliveryOutcome.FAILED:
                return outcome
            self._unrecorded.pop(record.id, None)
            return DeliveryOutcome.FAILED

        self._unrecorded.pop(record.id, None)
        logger.info(
            "scheduled_message_sent",
            message_id=record.id,
            user_id=record.user_id,
            channel_id=record.channel_id,
            slack_ts=slack_ts,
        )
        return DeliveryOutcome.SENT

    async def _record_failure(self, record: ScheduledMessage, error: str) -> DeliveryOutcome:
        logger.warning(
            "scheduled_message_failed",
            message_id=record.id,
            user_id=record.user_id,
            error=error,
        )
        try:
            await self._persist(self.messages.mark_failed, record.id, error)
        except InvalidStateError as e:
            logger.warning(
                "scheduled_message_already_handled",
                message_id=record.id,
                current_status=e.current_status,
            )
            return DeliveryOutcome.SKIPPED
        except StorageError as e:
            # Still pending in the Datastore; a posted message stays in
            # _unrecorded so the next tick records it instead of re-posting.
            logger.error(
                "scheduled_message_outcome_not_recorded",
                message_id=record.id,
                error=e.message,
            )
            return DeliveryOutcome.SKIPPED
        return DeliveryOutcome.FAILED

    async def _persist(
        self, operation: Callable[..., Awaitable[Any]], *args: Any
    ) -> None:
        async for attempt in AsyncRetrying(
            wait=self._retry_wait,
            stop=stop_after_attempt(self._record_attempts),
            retry=retry_if_exception_type(StorageError),
            reraise=True,
        ):
            with attempt:
                await operation(*args)
