"""Tests for the notification outbox and push token endpoints."""

import pytest

from barter.models.bid import Bid, BidStatus
from barter.models.notification import PushData, PushMessage
from barter.services.notifications.outbox import NotificationOutbox

HEADERS = {"X-User-Id": "u1"}


async def _record(store, bid_id, status=BidStatus.ACCEPTED):
    bid = Bid(
        id=bid_id,
        bidder_id="u1",
        target_product_id="p99",
        target_product_owner_id="u2",
        status=status,
    )
    message = PushMessage(
        title="Bid Update",
        body=f"Update for {bid_id}",
        data=PushData(bid_id=bid_id, target_product_id="p99"),
    )
    return await NotificationOutbox(store).record(bid, message)


@pytest.mark.asyncio
async def test_outbox_records_each_transition_once(store):
    assert await _record(store, "b1") is not None
    assert await _record(store, "b1") is None
    assert await _record(store, "b1", BidStatus.REJECTED) is not None


@pytest.mark.asyncio
async def test_list_and_mark_notifications_read(client, store):
    await _record(store, "b1")
    await _record(store, "b2", BidStatus.REJECTED)

    listed = await client.get("/notifications", headers=HEADERS)
    assert listed.status_code == 200
    assert {n["id"] for n in listed.json()} == {"b1-accepted", "b2-rejected"}
    assert all(n["read"] is False for n in listed.json())

    marked = await client.post("/notifications/b1-accepted/read", headers=HEADERS)
    assert marked.status_code == 200
    assert marked.json()["read"] is True

    rest = await client.post("/notifications/read-all", headers=HEADERS)
    assert rest.json() == {"updated": 1}


@pytest.mark.asyncio
async def test_mark_unknown_notification(client):
    response = await client.post("/notifications/missing/read", headers=HEADERS)

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_notifications_require_identity(client):
    response = await client.get("/notifications")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_push_token_registration(client, store):
    registered = await client.put(
        "/notifications/push-token",
        json={"token": "ExponentPushToken[u1]"},
        headers=HEADERS,
    )
    assert registered.status_code == 200
    assert registered.json()["userId"] == "u1"
    assert (await store.get("pushTokens/u1"))["token"] == "ExponentPushToken[u1]"

    removed = await client.delete("/notifications/push-token", headers=HEADERS)
    assert removed.status_code == 204
    assert await store.get("pushTokens/u1") is None
