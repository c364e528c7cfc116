"""Tests for push delivery and its dead letter stream."""

import json

import httpx
import pytest

from barter.models.notification import PushData, PushMessage
from barter.services.notifications.push_client import (
    ExpoPushClient,
    LoggingPushClient,
)
from barter.services.queue.dlq_manager import DLQManager

ENDPOINT = "https://push.example.com/--/api/v2/push/send"


def _message():
    return PushMessage(
        title="Bid Accepted! 🎉",
        body="Your bid for Road Bike has been accepted!",
        data=PushData(bid_id="b1", target_product_id="p99"),
    )


def _client(handler, dlq=None):
    return ExpoPushClient(
        endpoint=ENDPOINT,
        timeout=1.0,
        dlq=dlq,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )


@pytest.mark.asyncio
async def test_send_posts_expo_payload():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200, json={"data": {"status": "ok"}})

    client = _client(handler)
    try:
        assert await client.send("ExponentPushToken[u1]", _message())
    finally:
        await client.aclose()

    body = json.loads(requests[0].content)
    assert str(requests[0].url) == ENDPOINT
    assert body["to"] == "ExponentPushToken[u1]"
    assert body["data"] == {"bidId": "b1", "targetProductId": "p99"}


@pytest.mark.asyncio
async def test_failed_delivery_goes_to_dead_letter_stream(redis_client):
    dlq = DLQManager(redis_client, stream_key="notifications:dlq")
    client = _client(lambda request: httpx.Response(503), dlq=dlq)
    try:
        assert not await client.send("ExponentPushToken[u1]", _message())
    finally:
        await client.aclose()

    entries = await redis_client.xrange("notifications:dlq")
    assert len(entries) == 1
    fields = entries[0][1]
    assert fields["entry_id"] == "b1"
    assert fields["recipient"] == "ExponentPushToken[u1]"
    assert "503" in fields["error"]


def test_endpoint_is_required():
    with pytest.raises(ValueError):
        ExpoPushClient(endpoint="", timeout=1.0)


@pytest.mark.asyncio
async def test_logging_client_reports_success():
    assert await LoggingPushClient().send("token", _message())
