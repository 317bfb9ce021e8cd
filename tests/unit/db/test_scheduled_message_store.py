"""Tests for ScheduledMessageStore."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from threadly.db import MessageStatus
from threadly.exceptions import InvalidStateError, NotFoundError


pytestmark = pytest.mark.unit


def _in(seconds: float) -> datetime:
    return datetime.now(UTC) + timedelta(seconds=seconds)


@pytest.mark.asyncio
async def test_create(message_store):
    """New messages start scheduled with an id and timestamps."""
    when = _in(3600)
    record = await message_store.create("U1", "C1", "hello", when)

    assert record.id
    assert record.status == MessageStatus.SCHEDULED
    assert abs(record.scheduled_time - when) < timedelta(seconds=1)
    assert record.created_at is not None

    fetched = await message_store.get(record.id)
    assert fetched is not None
    assert fetched.message == "hello"
    assert fetched.scheduled_time.tzinfo is not None


@pytest.mark.asyncio
async def test_get_missing(message_store):
    assert await message_store.get("missing") is None


@pytest.mark.asyncio
async def test_due_messages_only_pending_and_past(message_store):
    due = await message_store.create("U1", "C1", "due", _in(-60))
    confirmed = await message_store.create("U1", "C1", "confirmed", _in(-30))
    await message_store.confirm(confirmed.id)
    await message_store.create("U1", "C1", "future", _in(3600))
    cancelled = await message_store.create("U1", "C1", "cancelled", _in(-10))
    await message_store.cancel(cancelled.id)

    ids = [m.id for m in await message_store.due_messages()]

    assert ids == [due.id, confirmed.id]


@pytest.mark.asyncio
async def test_list_for_user_filters_status(message_store):
    first = await message_store.create("U1", "C1", "a", _in(60))
    second = await message_store.create("U1", "C1", "b", _in(120))
    await message_store.create("U2", "C1", "other user", _in(60))
    await message_store.cancel(second.id)

    all_ids = [m.id for m in await message_store.list_for_user("U1")]
    pending = await message_store.list_for_user("U1", [MessageStatus.SCHEDULED])

    assert all_ids == [first.id, second.id]
    assert [m.id for m in pending] == [first.id]


@pytest.mark.asyncio
async def test_confirm_then_mark_sent(message_store):
    record = await message_store.create("U1", "C1", "hi", _in(-1))

    confirmed = await message_store.confirm(record.id)
    assert confirmed.status == MessageStatus.CONFIRMED

    sent = await message_store.mark_sent(record.id, "1700000000.000100")
    assert sent.status == MessageStatus.SENT
    assert sent.slack_ts == "1700000000.000100"
    assert sent.sent_at is not None


@pytest.mark.asyncio
async def test_second_mark_sent_rejected_and_record_unchanged(message_store):
    record = await message_store.create("U1", "C1", "hi", _in(-1))
    first = await message_store.mark_sent(record.id, "1700000000.000100")

    with pytest.raises(InvalidStateError) as exc_info:
        await message_store.mark_sent(record.id, "1700000000.000999")
    assert exc_info.value.current_status == MessageStatus.SENT

    fetched = await message_store.get(record.id)
    assert fetched.slack_ts == "1700000000.000100"
    assert fetched.sent_at == first.sent_at


@pytest.mark.asyncio
async def test_mark_failed_records_error(message_store):
    record = await message_store.create("U1", "C1", "hi", _in(-1))

    failed = await message_store.mark_failed(record.id, "channel_not_found")

    assert failed.status == MessageStatus.FAILED
    assert failed.error == "channel_not_found"


@pytest.mark.asyncio
async def test_cancel_sent_message_rejected(message_store):
    """A sent message can never be cancelled or overwritten."""
    record = await message_store.create("U1", "C1", "hi", _in(-1))
    await message_store.mark_sent(record.id, "1.0")

    with pytest.raises(InvalidStateError) as exc_info:
        await message_store.cancel(record.id)
    assert exc_info.value.current_status == MessageStatus.SENT

    with pytest.raises(InvalidStateError):
        await message_store.mark_failed(record.id, "late failure")

    fetched = await message_store.get(record.id)
    assert fetched.status == MessageStatus.SENT
    assert fetched.error is None


@pytest.mark.asyncio
async def test_cancelled_message_cannot_be_sent(message_store):
    record = await message_store.create("U1", "C1", "hi", _in(-1))
    cancelled = await message_store.cancel(record.id)
    assert cancelled.cancelled_at is not None

    with pytest.raises(InvalidStateError):
        await message_store.mark_sent(record.id, "1.0")


@pytest.mark.asyncio
async def test_transition_missing_message(message_store):
    with pytest.raises(NotFoundError):
        await message_store.cancel("missing")


@pytest.mark.asyncio
async def test_concurrent_transitions_only_one_wins(message_store):
    record = await message_store.create("U1", "C1", "hi", _in(-1))

    results = await asyncio.gather(
        message_store.mark_sent(record.id, "1.0"),
        message_store.cancel(record.id),
        return_exceptions=True,
    )

    assert sum(1 for r in results if isinstance(r, InvalidStateError)) == 1
