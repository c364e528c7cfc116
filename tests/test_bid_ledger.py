"""Tests for the bid ledger state machine."""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest

from barter.errors import (
    AuthError,
    NotFoundError,
    StateConflictError,
    UnauthorizedError,
    ValidationError,
)
from barter.models.bid import BidRole, BidStatus
from barter.services.bids.ledger import BidLedger
from barter.services.bids.paths import bidder_path, owner_path
from tests.support import FailingOwnerIndexStore, sequential_ids


@pytest.mark.asyncio
async def test_create_bid_writes_both_indices(ledger, store, catalog):
    bid_id = await ledger.create_bid("u1", "p99", ["p10", "p11"])

    assert bid_id == "b1"
    bidder_copy = await store.get(bidder_path("u1", bid_id))
    owner_copy = await store.get(owner_path("u2", bid_id))
    assert bidder_copy == owner_copy
    assert bidder_copy["status"] == "pending"
    assert bidder_copy["offeredProductIds"] == ["p10", "p11"]
    assert bidder_copy["targetProductOwnerId"] == "u2"
    assert bidder_copy["notified"] is False
    assert [event["action"] for event in bidder_copy["history"]] == ["created"]


@pytest.mark.asyncio
async def test_create_bid_requires_identity(ledger, catalog):
    with pytest.raises(AuthError):
        await ledger.create_bid(None, "p99", ["p10"])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "target, offered, error",
    [
        ("p99", [], ValidationError),
        ("p99", ["p10", "p10"], ValidationError),
        ("missing", ["p10"], NotFoundError),
        ("p11", ["p10"], ValidationError),
        ("p99", ["p50"], ValidationError),
        ("p99", ["p12"], ValidationError),
        ("p99", ["ghost"], NotFoundError),
    ],
    ids=[
        "empty-offer",
        "duplicate-offer",
        "unknown-target",
        "own-target",
        "offered-not-owned",
        "offered-draft",
        "offered-unknown",
    ],
)
async def test_create_bid_validation(ledger, store, catalog, target, offered, error):
    with pytest.raises(error):
        await ledger.create_bid("u1", target, offered)

    assert await store.children(bidder_path("u1")) == {}
    assert await store.children(owner_path("u2")) == {}


@pytest.mark.asyncio
async def test_accept_bid_updates_both_copies(ledger, store, catalog):
    bid_id = await ledger.create_bid("u1", "p99", ["p10", "p11"])

    bid = await ledger.accept_bid(bid_id, "u2")

    assert bid.status is BidStatus.ACCEPTED
    assert [event.action for event in bid.history] == ["created", "accepted"]
    assert (await store.get(bidder_path("u1", bid_id)))["status"] == "accepted"
    assert (await store.get(owner_path("u2", bid_id)))["status"] == "accepted"


@pytest.mark.asyncio
async def test_reject_bid(ledger, catalog):
    bid_id = await ledger.create_bid("u1", "p99", ["p10"])

    bid = await ledger.reject_bid(bid_id, "u2")

    assert bid.status is BidStatus.REJECTED
    placed = await ledger.list_bids_for("u1", BidRole.BIDDER)
    assert placed[0].status is BidStatus.REJECTED


@pytest.mark.asyncio
async def test_only_owner_can_answer(ledger, catalog):
    bid_id = await ledger.create_bid("u1", "p99", ["p10"])

    with pytest.raises(UnauthorizedError):
        await ledger.accept_bid(bid_id, "u1")
    with pytest.raises(UnauthorizedError):
        await ledger.reject_bid(bid_id, "u3")
    with pytest.raises(AuthError):
        await ledger.accept_bid(bid_id, None)


@pytest.mark.asyncio
async def test_answering_a_resolved_bid_conflicts(ledger, catalog):
    bid_id = await ledger.create_bid("u1", "p99", ["p10"])
    await ledger.reject_bid(bid_id, "u2")

    with pytest.raises(StateConflictError) as exc_info:
        await ledger.accept_bid(bid_id, "u2")

    assert exc_info.value.status == "rejected"


@pytest.mark.asyncio
async def test_stale_read_cannot_resolve_twice(ledger, store, catalog):
    bid_id = await ledger.create_bid("u1", "p99", ["p10"])
    stale = await ledger.get_bid(bid_id, "u2")
    await ledger.accept_bid(bid_id, "u2")

    ledger._load = AsyncMock(return_value=stale)
    with pytest.raises(StateConflictError):
        await ledger.reject_bid(bid_id, "u2")

    document = await store.get(bidder_path("u1", bid_id))
    assert document["status"] == "accepted"
    assert [event["action"] for event in document["history"]] == [
        "created",
        "accepted",
    ]


@pytest.mark.asyncio
async def test_concurrent_accept_and_reject_single_winner(ledger, store, catalog):
    bid_id = await ledger.create_bid("u1", "p99", ["p10"])

    results = await asyncio.gather(
        ledger.accept_bid(bid_id, "u2"),
        ledger.reject_bid(bid_id, "u2"),
        return_exceptions=True,
    )

    winners = [result for result in results if not isinstance(result, Exception)]
    losers = [result for result in results if isinstance(result, Exception)]
    assert len(winners) == 1
    assert len(losers) == 1
    assert isinstance(losers[0], StateConflictError)
    stored = await store.get(bidder_path("u1", bid_id))
    assert stored["status"] == winners[0].status.value


@pytest.mark.asyncio
async def test_cancel_bid_removes_both_copies(ledger, store, catalog):
    bid_id = await ledger.create_bid("u1", "p99", ["p10"])

    await ledger.cancel_bid(bid_id, "u1")

    assert await store.get(bidder_path("u1", bid_id)) is None
    assert await store.get(owner_path("u2", bid_id)) is None
    with pytest.raises(NotFoundError):
        await ledger.get_bid(bid_id, "u1")


@pytest.mark.asyncio
async def test_cancel_is_bidder_only_and_pending_only(ledger, catalog):
    bid_id = await ledger.create_bid("u1", "p99", ["p10"])

    with pytest.raises(UnauthorizedError):
        await ledger.cancel_bid(bid_id, "u2")

    await ledger.accept_bid(bid_id, "u2")
    with pytest.raises(StateConflictError):
        await ledger.cancel_bid(bid_id, "u1")


@pytest.mark.asyncio
async def test_list_bids_by_role_newest_first(ledger, catalog):
    first = await ledger.create_bid("u1", "p99", ["p10"])
    second = await ledger.create_bid("u1", "p50", ["p11"])
    third = await ledger.create_bid("u3", "p99", ["p50"])

    placed = await ledger.list_bids_for("u1", BidRole.BIDDER)
    received = await ledger.list_bids_for("u2", BidRole.OWNER)

    assert [bid.id for bid in placed] == [second, first]
    assert [bid.id for bid in received] == [third, first]


@pytest.mark.asyncio
async def test_list_bids_skips_malformed_documents(ledger, store, catalog):
    bid_id = await ledger.create_bid("u1", "p99", ["p10"])
    await store.set(bidder_path("u1", "junk"), {"status": "pending"})

    placed = await ledger.list_bids_for("u1", BidRole.BIDDER)

    assert [bid.id for bid in placed] == [bid_id]


@pytest.mark.asyncio
async def test_get_bid_visible_to_both_parties_only(ledger, catalog):
    bid_id = await ledger.create_bid("u1", "p99", ["p10"])

    assert (await ledger.get_bid(bid_id, "u1")).id == bid_id
    assert (await ledger.get_bid(bid_id, "u2")).id == bid_id
    with pytest.raises(UnauthorizedError):
        await ledger.get_bid(bid_id, "u3")


@pytest.mark.asyncio
async def test_summary_counts(ledger, catalog):
    first = await ledger.create_bid("u1", "p99", ["p10"])
    await ledger.create_bid("u1", "p50", ["p11"])
    await ledger.create_bid("u3", "p10", ["p50"])
    await ledger.accept_bid(first, "u2")

    placed = await ledger.summary("u1")
    received = await ledger.summary("u2")

    assert placed.pending_as_bidder == 1
    assert received.resolved_as_owner == 1


@pytest.mark.asyncio
async def test_lost_owner_write_keeps_the_bid(redis_client, products, catalog, clock, caplog):
    store = FailingOwnerIndexStore(redis_client, failures=1)
    ledger = BidLedger(store, products, clock=clock, id_factory=sequential_ids())

    with caplog.at_level(logging.WARNING):
        bid_id = await ledger.create_bid("u1", "p99", ["p10"])

    assert bid_id == "b1"
    assert await store.get(bidder_path("u1", bid_id)) is not None
    assert await store.get(owner_path("u2", bid_id)) is None
    assert "partial state" in caplog.text


@pytest.mark.asyncio
async def test_lost_owner_delete_on_cancel_is_tolerated(
    redis_client, products, catalog, clock
):
    store = FailingOwnerIndexStore(redis_client, failures=0)
    ledger = BidLedger(store, products, clock=clock, id_factory=sequential_ids())
    bid_id = await ledger.create_bid("u1", "p99", ["p10"])

    store.failures = 1
    await ledger.cancel_bid(bid_id, "u1")

    assert await store.get(bidder_path("u1", bid_id)) is None
    assert await store.get(owner_path("u2", bid_id)) is not None
