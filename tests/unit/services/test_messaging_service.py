"""Tests for MessagingService."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest

from threadly.db import MessageStatus
from threadly.exceptions import (
    InvalidStateError,
    NoCredentialError,
    NotFoundError,
    ValidationError,
)


pytestmark = pytest.mark.unit


@pytest.fixture
async def connected(token_store, make_credential):
    await token_store.save("U1", make_credential(access_token="xoxb-u1"))


def _iso(delta: timedelta) -> str:
    return (datetime.now(UTC) + delta).isoformat().replace("+00:00", "Z")


@pytest.mark.asyncio
async def test_send_immediate_message(messaging, slack_stub, connected):
    slack_stub.on("chat.postMessage", {"ok": True, "ts": "1.5", "channel": "C1"})

    posted = await messaging.send_immediate_message("U1", "C1", "hello")

    assert posted.ts == "1.5"
    assert posted.channel == "C1"


@pytest.mark.asyncio
async def test_send_requires_connection(messaging):
    with pytest.raises(NoCredentialError):
        await messaging.send_immediate_message("U-none", "C1", "hello")


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("user_id", "channel_id", "message"),
    [("", "C1", "hi"), ("U1", "", "hi"), ("U1", "C1", "")],
)
async def test_send_validates_fields(messaging, slack_stub, user_id, channel_id, message):
    with pytest.raises(ValidationError):
        await messaging.send_immediate_message(user_id, channel_id, message)
    assert slack_stub.calls == []


@pytest.mark.asyncio
async def test_schedule_message(messaging, message_store, slack_stub, connected):
    when = _iso(timedelta(hours=2))

    record = await messaging.schedule_message("U1", "C1", "later", when)

    assert record.status == MessageStatus.SCHEDULED
    assert record.scheduled_time.tzinfo is not None
    assert await message_store.get(record.id) is not None
    assert slack_stub.calls == []


@pytest.mark.asyncio
async def test_schedule_message_in_past_is_delivered_promptly(
    messaging, message_store, slack_stub, connected
):
    slack_stub.on("chat.postMessage", {"ok": True, "ts": "9.9", "channel": "C1"})

    record = await messaging.schedule_message("U1", "C1", "now", _iso(timedelta(seconds=-1)))
    for _ in range(100):
        stored = await message_store.get(record.id)
        if stored.status == MessageStatus.SENT:
            break
        await asyncio.sleep(0.01)

    assert stored.status == MessageStatus.SENT
    assert stored.slack_ts == "9.9"


@pytest.mark.asyncio
async def test_schedule_rejects_bad_time(messaging):
    with pytest.raises(ValidationError) as exc_info:
        await messaging.schedule_message("U1", "C1", "hi", "next tuesday")
    assert exc_info.value.details == {"field": "scheduledTime"}


@pytest.mark.asyncio
async def test_confirm_and_cancel(messaging):
    record = await messaging.schedule_message("U1", "C1", "hi", _iso(timedelta(hours=1)))

    confirmed = await messaging.confirm_message(record.id, "U1")
    assert confirmed.status == MessageStatus.CONFIRMED

    cancelled = await messaging.cancel_message(record.id, "U1")
    assert cancelled.status == MessageStatus.CANCELLED
    assert cancelled.cancelled_at is not None


@pytest.mark.asyncio
async def test_cancel_other_users_message_is_not_found(messaging):
    record = await messaging.schedule_message("U1", "C1", "hi", _iso(timedelta(hours=1)))

    with pytest.raises(NotFoundError):
        await messaging.cancel_message(record.id, "U2")


@pytest.mark.asyncio
async def test_cancel_sent_message_rejected(messaging, message_store):
    record = await messaging.schedule_message("U1", "C1", "hi", _iso(timedelta(hours=1)))
    await message_store.mark_sent(record.id, "1.0")

    with pytest.raises(InvalidStateError) as exc_info:
        await messaging.cancel_message(record.id, "U1")
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_cancel_while_dispatching_rejected(messaging, delivery):
    record = await messaging.schedule_message("U1", "C1", "hi", _iso(timedelta(hours=1)))
    delivery._dispatching.add(record.id)

    with pytest.raises(InvalidStateError):
        await messaging.cancel_message(record.id)


@pytest.mark.asyncio
async def test_delivery_pass_during_cancel_does_not_send(
    messaging, delivery, message_store, slack_stub, connected
):
    slack_stub.on("chat.postMessage", {"ok": True, "ts": "1.1", "channel": "C1"})
    record = await message_store.create(
        "U1", "C1", "hi", datetime.now(UTC) - timedelta(seconds=1)
    )
    cancel = message_store.cancel
    reports = []

    async def cancel_with_tick(message_id):
        reports.append(await delivery.process_due_messages())
        return await cancel(message_id)

    with patch.object(message_store, "cancel", cancel_with_tick):
        cancelled = await messaging.cancel_message(record.id, "U1")

    assert cancelled.status == MessageStatus.CANCELLED
    assert reports[0].skipped == 1
    assert slack_stub.count("chat.postMessage") == 0
    assert not delivery.is_dispatching(record.id)


@pytest.mark.asyncio
async def test_cancel_unknown_message(messaging):
    with pytest.raises(NotFoundError):
        await messaging.cancel_message("missing")


@pytest.mark.asyncio
async def test_list_scheduled_messages(messaging):
    first = await messaging.schedule_message("U1", "C1", "a", _iso(timedelta(hours=1)))
    second = await messaging.schedule_message("U1", "C1", "b", _iso(timedelta(hours=2)))
    await messaging.cancel_message(second.id, "U1")

    everything = await messaging.list_scheduled_messages("U1")
    pending = await messaging.list_scheduled_messages("U1", ["scheduled"])

    assert [m.id for m in everything] == [first.id, second.id]
    assert [m.id for m in pending] == [first.id]


@pytest.mark.asyncio
async def test_list_rejects_unknown_status(messaging):
    with pytest.raises(ValidationError):
        await messaging.list_scheduled_messages("U1", ["lost"])


@pytest.mark.asyncio
async def test_list_channels(messaging, slack_stub, connected):
    slack_stub.on("conversations.list", {"ok": True, "channels": [{"id": "C1", "name": "general"}]})

    channels = await messaging.list_channels("U1")

    assert [c.name for c in channels] == ["general"]
    assert slack_stub.requests("conversations.list")[0].headers["Authorization"] == "Bearer xoxb-u1"
