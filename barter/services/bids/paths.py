"""Store layout of the two bid indices."""

from __future__ import annotations

from barter.models.bid import BidRole

BIDDER_ROOT = "bids/byBidder"
OWNER_ROOT = "bids/byOwner"


def bidder_path(bidder_id: str, bid_id: str | None = None) -> str:
    base = f"{BIDDER_ROOT}/{bidder_id}"
    return f"{base}/{bid_id}" if bid_id else base


def owner_path(owner_id: str, bid_id: str | None = None) -> str:
    base = f"{OWNER_ROOT}/{owner_id}"
    return f"{base}/{bid_id}" if bid_id else base


def index_path(user_id: str, role: BidRole) -> str:
    if role is BidRole.BIDDER:
        return bidder_path(user_id)
    return owner_path(user_id)
