"""
Tests for the notification queue worker, against a fake push provider.
"""

from datetime import timedelta

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import select

from pickup.core.exceptions import ProviderUnavailable
from pickup.infrastructure.expo_client import ExpoPushProvider
from pickup.models import NotificationQueueItem
from pickup.services.interfaces.push_provider import PushMessage, PushProvider, PushTicket
from pickup.services.notification_service import enqueue_notification
from pickup.services.notification_worker import BATCH_LIMIT, run_notification_worker
from pickup.services.provider_factory import get_push_provider
from pickup.main import app
from pickup.utils.datetime_utils import utcnow


class FakePushProvider(PushProvider):
    def __init__(self, tickets=None, error=None):
        self.batches = []
        self._tickets = tickets
        self._error = error

    async def send(self, messages):
        self.batches.append(list(messages))
        if self._error:
            raise self._error
        if self._tickets is None:
            return [PushTicket(ok=True) for _ in messages]
        return self._tickets


async def queue_for(db_session, player, count=1, **kwargs):
    items = []
    for i in range(count):
        items.append(await enqueue_notification(
            db_session,
            user_id=player.id,
            notification_type="chat_message",
            title="New Message",
            body=f"hello {i}",
            **kwargs,
        ))
    await db_session.commit()
    return [item.id for item in items]


async def statuses(session_factory, ids):
    async with session_factory() as session:
        result = await session.execute(
            select(NotificationQueueItem.id, NotificationQueueItem.status, NotificationQueueItem.error)
            .where(NotificationQueueItem.id.in_(ids))
        )
        return {row.id: (row.status, row.error) for row in result.all()}


async def sent_times(session_factory, ids):
    async with session_factory() as session:
        result = await session.execute(
            select(NotificationQueueItem.id, NotificationQueueItem.sent_at)
            .where(NotificationQueueItem.id.in_(ids))
        )
        return dict(result.all())


@pytest.mark.asyncio
async def test_worker_sends_due_items_in_one_batch(db_session, session_factory, make_player):
    player = await make_player("p", push_token="ExponentPushToken[abc]")
    ids = await queue_for(db_session, player, count=3)
    provider = FakePushProvider()

    result = await run_notification_worker(db_session, provider)

    assert (result.processed, result.sent, result.failed, result.deferred) == (3, 3, 0, 0)
    assert len(provider.batches) == 1
    assert [m.to for m in provider.batches[0]] == ["ExponentPushToken[abc]"] * 3
    assert all(status == "sent" for status, _ in (await statuses(session_factory, ids)).values())


@pytest.mark.asyncio
async def test_worker_skips_future_items(db_session, session_factory, make_player):
    player = await make_player("p", push_token="ExpoPushToken[abc]")
    ids = await queue_for(db_session, player, scheduled_for=utcnow() + timedelta(minutes=30))
    provider = FakePushProvider()

    result = await run_notification_worker(db_session, provider)

    assert result.processed == 0
    assert provider.batches == []
    assert (await statuses(session_factory, ids))[ids[0]] == ("pending", None)


@pytest.mark.asyncio
async def test_invalid_destination_fails_without_provider_call(db_session, session_factory, make_player):
    no_token = await make_player("silent")
    bad_token = await make_player("bad", push_token="not-a-token")
    ids = await queue_for(db_session, no_token) + await queue_for(db_session, bad_token)
    provider = FakePushProvider()

    result = await run_notification_worker(db_session, provider)

    assert (result.processed, result.sent, result.failed) == (2, 0, 2)
    assert provider.batches == []
    for status, error in (await statuses(session_factory, ids)).values():
        assert status == "failed"
        assert error == "Invalid or missing push token"
    assert all(sent_at is not None for sent_at in (await sent_times(session_factory, ids)).values())


@pytest.mark.asyncio
async def test_provider_outage_leaves_items_pending(db_session, session_factory, make_player):
    good = await make_player("good", push_token="ExponentPushToken[good]")
    silent = await make_player("silent")
    good_ids = await queue_for(db_session, good, count=2)
    silent_ids = await queue_for(db_session, silent)
    provider = FakePushProvider(error=ProviderUnavailable("Expo API error: 503"))

    result = await run_notification_worker(db_session, provider)

    assert result.deferred == 2
    assert result.failed == 1
    assert result.provider_error == "Expo API error: 503"
    current = await statuses(session_factory, good_ids + silent_ids)
    assert [current[i][0] for i in good_ids] == ["pending", "pending"]
    assert current[silent_ids[0]][0] == "failed"
    times = await sent_times(session_factory, good_ids + silent_ids)
    assert [times[i] for i in good_ids] == [None, None]
    assert times[silent_ids[0]] is not None

    # The next run picks the deferred items up again
    retry = await run_notification_worker(db_session, FakePushProvider())
    assert retry.sent == 2


@pytest.mark.asyncio
async def test_per_message_tickets(db_session, session_factory, make_player):
    player = await make_player("p", push_token="ExponentPushToken[abc]")
    ids = await queue_for(db_session, player, count=2)
    provider = FakePushProvider(tickets=[PushTicket(ok=True), PushTicket(ok=False, error="DeviceNotRegistered")])

    result = await run_notification_worker(db_session, provider)

    assert (result.sent, result.failed) == (1, 1)
    current = await statuses(session_factory, ids)
    assert current[ids[0]] == ("sent", None)
    assert current[ids[1]] == ("failed", "DeviceNotRegistered")
    assert all(sent_at is not None for sent_at in (await sent_times(session_factory, ids)).values())


@pytest.mark.asyncio
async def test_short_ticket_list_counts_as_batch_success(db_session, session_factory, make_player):
    player = await make_player("p", push_token="ExponentPushToken[abc]")
    ids = await queue_for(db_session, player, count=3)
    provider = FakePushProvider(tickets=[PushTicket(ok=False, error="DeviceNotRegistered")])

    result = await run_notification_worker(db_session, provider)

    assert (result.sent, result.failed) == (3, 0)
    assert set((await statuses(session_factory, ids)).values()) == {("sent", None)}


@pytest.mark.asyncio
async def test_batch_is_capped(db_session, make_player):
    player = await make_player("p", push_token="ExponentPushToken[abc]")
    await queue_for(db_session, player, count=BATCH_LIMIT + 5)
    provider = FakePushProvider()

    first = await run_notification_worker(db_session, provider)
    second = await run_notification_worker(db_session, provider)

    assert first.processed == BATCH_LIMIT
    assert second.processed == 5
    assert [len(batch) for batch in provider.batches] == [BATCH_LIMIT, 5]


@pytest.mark.asyncio
async def test_empty_queue(db_session):
    result = await run_notification_worker(db_session, FakePushProvider())
    assert result.to_dict() == {"processed": 0, "sent": 0, "failed": 0, "deferred": 0, "provider_error": None}


@pytest.mark.asyncio
async def test_process_endpoint(client: AsyncClient, db_session, make_player):
    player = await make_player("p", push_token="ExponentPushToken[abc]")
    await queue_for(db_session, player, count=2)
    app.dependency_overrides[get_push_provider] = lambda: FakePushProvider()

    response = await client.post("/api/v1/notifications/process")

    assert response.status_code == 200
    assert response.json()["sent"] == 2


@pytest.mark.asyncio
async def test_expo_provider_parses_tickets():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/--/api/v2/push/send"
        return httpx.Response(200, json={"data": [
            {"status": "ok", "id": "a"},
            {"status": "error", "message": "not registered", "details": {"error": "DeviceNotRegistered"}},
        ]})

    provider = ExpoPushProvider(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    tickets = await provider.send([
        PushMessage(to="ExponentPushToken[a]", title="t", body="b"),
        PushMessage(to="ExponentPushToken[b]", title="t", body="b"),
    ])
    await provider.close()

    assert tickets == [PushTicket(ok=True), PushTicket(ok=False, error="DeviceNotRegistered")]


@pytest.mark.asyncio
async def test_expo_provider_maps_http_errors():
    provider = ExpoPushProvider(client=httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(503))
    ))
    with pytest.raises(ProviderUnavailable):
        await provider.send([PushMessage(to="ExponentPushToken[a]", title="t", body="b")])
    await provider.close()


@pytest.mark.asyncio
async def test_mixed_batch_and_no_reselection(db_session, session_factory, make_player):
    silent = await make_player("silent", push_token="")
    good = await make_player("good", push_token="ExponentPushToken[good]")
    bad_id = (await queue_for(db_session, silent))[0]
    good_id = (await queue_for(db_session, good))[0]
    provider = FakePushProvider()

    result = await run_notification_worker(db_session, provider)

    assert (result.sent, result.failed) == (1, 1)
    current = await statuses(session_factory, [bad_id, good_id])
    assert current[bad_id][0] == "failed"
    assert current[good_id][0] == "sent"

    again = await run_notification_worker(db_session, provider)
    assert again.processed == 0
    assert len(provider.batches) == 1
