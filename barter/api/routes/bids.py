"""Routes for placing, answering and withdrawing bids."""

from __future__ import annotations

from fastapi import APIRouter, Query, status

from barter.models.bid import (
    Bid,
    BidCreatedResponse,
    BidCreateRequest,
    BidRole,
    BidSummary,
)
from barter.services.bids.ledger import BidLedgerDependency
from barter.services.identity import CurrentUserDependency

router = APIRouter(prefix="/bids", tags=["bids"])


@router.post(
    "",
    response_model=BidCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Offer some of your products in exchange for another user's product",
)
async def create_bid(
    payload: BidCreateRequest,
    user_id: CurrentUserDependency,
    ledger: BidLedgerDependency,
) -> BidCreatedResponse:
    bid_id = await ledger.create_bid(
        user_id, payload.target_product_id, payload.offered_product_ids
    )
    return BidCreatedResponse(id=bid_id)


@router.get("", response_model=list[Bid], summary="List bids placed or received")
async def list_bids(
    user_id: CurrentUserDependency,
    ledger: BidLedgerDependency,
    role: BidRole = Query(BidRole.BIDDER),
) -> list[Bid]:
    return await ledger.list_bids_for(user_id, role)


@router.get("/summary", response_model=BidSummary)
async def bid_summary(
    user_id: CurrentUserDependency,
    ledger: BidLedgerDependency,
) -> BidSummary:
    return await ledger.summary(user_id)


@router.get("/{bid_id}", response_model=Bid)
async def get_bid(
    bid_id: str,
    user_id: CurrentUserDependency,
    ledger: BidLedgerDependency,
) -> Bid:
    return await ledger.get_bid(bid_id, user_id)


@router.post("/{bid_id}/accept", response_model=Bid)
async def accept_bid(
    bid_id: str,
    user_id: CurrentUserDependency,
    ledger: BidLedgerDependency,
) -> Bid:
    return await ledger.accept_bid(bid_id, user_id)


@router.post("/{bid_id}/reject", response_model=Bid)
async def reject_bid(
    bid_id: str,
    user_id: CurrentUserDependency,
    ledger: BidLedgerDependency,
) -> Bid:
    return await ledger.reject_bid(bid_id, user_id)


@router.delete("/{bid_id}", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_bid(
    bid_id: str,
    user_id: CurrentUserDependency,
    ledger: BidLedgerDependency,
) -> None:
    await ledger.cancel_bid(bid_id, user_id)
