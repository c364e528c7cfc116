"""Notification and push delivery models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from barter.models.bid import BidStatus
from barter.models.product import MISSING_TIMESTAMP


class PushData(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bid_id: str = Field(..., alias="bidId")
    target_product_id: str = Field(..., alias="targetProductId")


class PushMessage(BaseModel):
    """Outbound notification content sent to a user's push token."""

    title: str
    body: str
    data: PushData


class Notification(BaseModel):
    """Entry of the ``notifications/{recipientId}`` outbox."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1)
    recipient_id: str = Field(..., alias="recipientId", min_length=1)
    message: str = ""
    title: str | None = None
    created_at: int = Field(MISSING_TIMESTAMP, alias="createdAt")
    read: bool = False
    bid_id: str | None = Field(None, alias="bidId")
    status: BidStatus | None = None

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class PushTokenRequest(BaseModel):
    token: str = Field(..., min_length=1)


class PushRegistration(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId", min_length=1)
    token: str = Field(..., min_length=1)
    registered_at: int = Field(MISSING_TIMESTAMP, alias="registeredAt")
