"""Bid domain models and API schemas."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from barter.models.product import MISSING_TIMESTAMP


class BidStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not BidStatus.PENDING


class BidRole(str, Enum):
    BIDDER = "bidder"
    OWNER = "owner"


class BidEvent(BaseModel):
    """Single entry of a bid's audit history."""

    action: str = Field(..., min_length=1)
    timestamp: int = MISSING_TIMESTAMP


class Bid(BaseModel):
    """A bid package, materialized under both the bidder and the owner index."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    bidder_id: str = Field(..., alias="bidderId", min_length=1)
    target_product_id: str = Field(..., alias="targetProductId", min_length=1)
    target_product_owner_id: str = Field(
        ..., alias="targetProductOwnerId", min_length=1
    )
    offered_product_ids: list[str] = Field(
        default_factory=list, alias="offeredProductIds"
    )
    status: BidStatus = BidStatus.PENDING
    created_at: int = Field(MISSING_TIMESTAMP, alias="createdAt")
    notified: bool = False
    history: list[BidEvent] = Field(default_factory=list)

    @property
    def awaiting_notification(self) -> bool:
        return self.status.is_terminal and not self.notified

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class BidCreateRequest(BaseModel):
    """Request body for POST /bids."""

    model_config = ConfigDict(populate_by_name=True)

    target_product_id: str = Field(..., alias="targetProductId", min_length=1)
    offered_product_ids: list[str] = Field(
        default_factory=list, alias="offeredProductIds"
    )


class BidCreatedResponse(BaseModel):
    id: str
    status: BidStatus = BidStatus.PENDING


class BidSummary(BaseModel):
    """Badge counters shown on the bidder and owner tabs."""

    model_config = ConfigDict(populate_by_name=True)

    pending_as_bidder: int = Field(0, alias="pendingAsBidder")
    resolved_as_owner: int = Field(0, alias="resolvedAsOwner")
