"""Defensive decoding of raw store documents into domain models.

Remote documents are written by several disconnected clients and may be stale,
partial or plain wrong. Decoders never raise: optional fields fall back to
their defaults and a document that lacks its identity or foreign keys is
dropped with a ``DecodeWarning`` log entry.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from typing import Any, TypeVar

from pydantic import ValidationError as PydanticValidationError

from barter.errors import DecodeWarning
from barter.models.bid import Bid, BidStatus
from barter.models.notification import Notification
from barter.models.product import (
    MISSING_PRICE,
    MISSING_TIMESTAMP,
    Product,
    ProductStatus,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
Decoder = Callable[[str, Any], T | None]

_BID_FOREIGN_KEYS = ("bidderId", "targetProductId", "targetProductOwnerId")


def _drop(kind: str, key: str, reason: str) -> None:
    logger.warning(
        "%s: dropping %s document %s (%s)",
        DecodeWarning.__name__,
        kind,
        key,
        reason,
        extra={"document_key": key, "document_kind": kind},
    )


def _as_list(value: Any) -> list:
    # Realtime databases may materialize arrays as index-keyed objects.
    if isinstance(value, list):
        return [item for item in value if item is not None]
    if isinstance(value, dict):
        return [value[k] for k in sorted(value, key=str) if value[k] is not None]
    return []


def _as_number(value: Any, default: int | float) -> int | float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return value


def _as_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def decode_bid(key: str, raw: Any) -> Bid | None:
    if not isinstance(raw, dict):
        _drop("bid", key, "not an object")
        return None

    bid_id = _as_text(raw.get("id")) or _as_text(key)
    if bid_id is None:
        _drop("bid", key, "missing id")
        return None

    missing = [name for name in _BID_FOREIGN_KEYS if _as_text(raw.get(name)) is None]
    if missing:
        _drop("bid", key, f"missing {', '.join(missing)}")
        return None

    try:
        status = BidStatus(raw.get("status", BidStatus.PENDING.value))
    except ValueError:
        _drop("bid", key, f"unknown status {raw.get('status')!r}")
        return None

    offered = raw.get("offeredProductIds", raw.get("offeredProducts"))
    history = [
        {
            "action": event["action"],
            "timestamp": int(_as_number(event.get("timestamp"), MISSING_TIMESTAMP)),
        }
        for event in _as_list(raw.get("history"))
        if isinstance(event, dict) and _as_text(event.get("action"))
    ]

    try:
        return Bid(
            id=bid_id,
            bidder_id=raw["bidderId"],
            target_product_id=raw["targetProductId"],
            target_product_owner_id=raw["targetProductOwnerId"],
            offered_product_ids=[
                item for item in _as_list(offered) if _as_text(item) is not None
            ],
            status=status,
            created_at=int(_as_number(raw.get("createdAt"), MISSING_TIMESTAMP)),
            notified=raw.get("notified") is True,
            history=history,
        )
    except PydanticValidationError as exc:
        _drop("bid", key, str(exc))
        return None


def decode_product(key: str, raw: Any) -> Product | None:
    if not isinstance(raw, dict):
        _drop("product", key, "not an object")
        return None

    product_id = _as_text(raw.get("id")) or _as_text(key)
    owner_id = _as_text(raw.get("ownerId")) or _as_text(raw.get("userId"))
    if product_id is None or owner_id is None:
        _drop("product", key, "missing id or ownerId")
        return None

    try:
        status = ProductStatus(raw.get("status", ProductStatus.DRAFT.value))
    except ValueError:
        status = ProductStatus.DRAFT

    try:
        return Product(
            id=product_id,
            owner_id=owner_id,
            name=_as_text(raw.get("name")) or "",
            description=_as_text(raw.get("description")) or "",
            images=[url for url in _as_list(raw.get("images")) if isinstance(url, str)],
            price_start=_as_number(raw.get("priceStart"), MISSING_PRICE),
            price_end=_as_number(raw.get("priceEnd"), MISSING_PRICE),
            status=status,
            categories=[
                c for c in _as_list(raw.get("categories")) if isinstance(c, str)
            ],
            created_at=int(_as_number(raw.get("createdAt"), MISSING_TIMESTAMP)),
        )
    except PydanticValidationError as exc:
        _drop("product", key, str(exc))
        return None


def decode_notification(key: str, raw: Any) -> Notification | None:
    if not isinstance(raw, dict):
        _drop("notification", key, "not an object")
        return None

    notification_id = _as_text(raw.get("id")) or _as_text(key)
    recipient_id = _as_text(raw.get("recipientId"))
    if notification_id is None or recipient_id is None:
        _drop("notification", key, "missing id or recipientId")
        return None

    try:
        status = BidStatus(raw["status"]) if raw.get("status") else None
    except ValueError:
        status = None

    return Notification(
        id=notification_id,
        recipient_id=recipient_id,
        message=raw.get("message") if isinstance(raw.get("message"), str) else "",
        title=_as_text(raw.get("title")),
        created_at=int(_as_number(raw.get("createdAt"), MISSING_TIMESTAMP)),
        read=raw.get("read") is True,
        bid_id=_as_text(raw.get("bidId")),
        status=status,
    )


def decode_collection(
    documents: dict[str, Any],
    decoder: Decoder[T],
) -> tuple[dict[str, T], int]:
    """Decode every child document, returning the survivors and the dropped count."""

    items: dict[str, T] = {}
    dropped = 0
    for key, raw in documents.items():
        decoded = decoder(key, raw)
        if decoded is None:
            dropped += 1
            continue
        items[getattr(decoded, "id", key)] = decoded
    return items, dropped
