"""Bid ledger: the bid package state machine over two denormalized indices.

Every bid is written to ``bids/byBidder/{bidderId}/{bidId}`` (authoritative)
and then copied to ``bids/byOwner/{ownerId}/{bidId}``. The two writes are
independent; a failed second write leaves a partial state that readers repair
(see ``BidIndexReconciler``) instead of being rolled back.

Status transitions are optimistic: a single conditional write on the
authoritative document that only lands while the bid is still pending.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from typing import Annotated

from fastapi import Depends

from barter.errors import (
    AuthError,
    NotFoundError,
    PartialConsistencyError,
    StateConflictError,
    TransientNetworkError,
    UnauthorizedError,
    ValidationError,
)
from barter.models.bid import Bid, BidEvent, BidRole, BidStatus, BidSummary
from barter.services.bids.paths import (
    BIDDER_ROOT,
    bidder_path,
    index_path,
    owner_path,
)
from barter.services.bids.reconciler import (
    BidIndexReconciler,
    mirror_to_owner_index,
)
from barter.services.products.product_store import ProductStore, get_product_store
from barter.services.storage.document_store import (
    DocumentStore,
    escape_segment,
    get_document_store,
)
from barter.services.sync.bridge import (
    RealtimeSyncBridge,
    Subscription,
    create_sync_bridge,
)
from barter.services.sync.decoding import decode_bid, decode_collection

logger = logging.getLogger(__name__)

CREATED_ACTION = "created"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_bid_id() -> str:
    return uuid.uuid4().hex


def _require_identity(user_id: str | None) -> str:
    if not user_id:
        raise AuthError()
    return user_id


class BidLedger:
    """Creates, queries, transitions and cancels bid packages."""

    def __init__(
        self,
        store: DocumentStore,
        products: ProductStore,
        *,
        bridge: RealtimeSyncBridge | None = None,
        reconciler: BidIndexReconciler | None = None,
        clock: Callable[[], int] = _now_ms,
        id_factory: Callable[[], str] = _new_bid_id,
    ) -> None:
        self._store = store
        self._products = products
        self._bridge = bridge
        self.reconciler = reconciler or BidIndexReconciler(store)
        self._clock = clock
        self._id_factory = id_factory

    async def create_bid(
        self,
        bidder_id: str | None,
        target_product_id: str,
        offered_product_ids: list[str],
    ) -> str:
        """Validate and record a new pending bid, returning its id."""

        bidder_id = _require_identity(bidder_id)
        if not offered_product_ids:
            raise ValidationError("Offer at least one product")
        if len(set(offered_product_ids)) != len(offered_product_ids):
            raise ValidationError("Each product can only be offered once")

        target = await self._products.get(target_product_id)
        if target is None:
            raise NotFoundError("Product", target_product_id)
        if target.owner_id == bidder_id:
            raise ValidationError("You cannot bid on your own product")

        for product_id in offered_product_ids:
            offered = await self._products.get(product_id)
            if offered is None:
                raise NotFoundError("Product", product_id)
            if offered.owner_id != bidder_id:
                raise ValidationError(f"Product {product_id} is not yours to offer")
            if not offered.is_published:
                raise ValidationError(f"Product {product_id} is not published")

        now = self._clock()
        bid = Bid(
            id=self._id_factory(),
            bidder_id=bidder_id,
            target_product_id=target.id,
            target_product_owner_id=target.owner_id,
            offered_product_ids=list(offered_product_ids),
            status=BidStatus.PENDING,
            created_at=now,
            notified=False,
            history=[BidEvent(action=CREATED_ACTION, timestamp=now)],
        )

        await self._store.set(bidder_path(bidder_id, bid.id), bid.to_document())
        await self._mirror(bid)

        logger.info(
            "Bid %s created by %s for product %s",
            bid.id,
            bidder_id,
            target.id,
            extra={"bid_id": bid.id, "offered": len(offered_product_ids)},
        )
        return bid.id

    async def accept_bid(self, bid_id: str, actor_id: str | None) -> Bid:
        return await self._resolve(bid_id, actor_id, BidStatus.ACCEPTED)

    async def reject_bid(self, bid_id: str, actor_id: str | None) -> Bid:
        return await self._resolve(bid_id, actor_id, BidStatus.REJECTED)

    async def cancel_bid(self, bid_id: str, actor_id: str | None) -> None:
        """Withdraw a pending bid from both indices."""

        actor_id = _require_identity(actor_id)
        bid = await self._load(bid_id)
        if actor_id != bid.bidder_id:
            raise UnauthorizedError("Only the bidder can cancel this bid")
        if bid.status is not BidStatus.PENDING:
            raise StateConflictError(bid_id, bid.status.value)

        deleted = await self._store.conditional_delete(
            bidder_path(bid.bidder_id, bid_id),
            {"status": BidStatus.PENDING.value},
        )
        if not deleted:
            raise StateConflictError(bid_id)

        try:
            await self._store.delete(owner_path(bid.target_product_owner_id, bid_id))
        except TransientNetworkError as exc:
            self._report_partial(bid_id, f"owner copy not deleted: {exc}")

        logger.info("Bid %s cancelled by %s", bid_id, actor_id)

    async def list_bids_for(self, user_id: str | None, role: BidRole) -> list[Bid]:
        """Read one index; newest bids first. Never writes."""

        user_id = _require_identity(user_id)
        documents = await self._store.children(index_path(user_id, role))
        bids, dropped = decode_collection(documents, decode_bid)
        if dropped:
            logger.info(
                "Skipped %d undecodable bids in %s index of %s",
                dropped,
                role.value,
                user_id,
            )
        return sorted(bids.values(), key=lambda bid: bid.created_at, reverse=True)

    async def get_bid(self, bid_id: str, actor_id: str | None) -> Bid:
        """Return a bid visible to either of its two parties."""

        actor_id = _require_identity(actor_id)
        bid = await self._load(bid_id)
        if actor_id not in (bid.bidder_id, bid.target_product_owner_id):
            raise UnauthorizedError("Only the bidder or the owner can view this bid")
        return bid

    async def summary(self, user_id: str | None) -> BidSummary:
        """Counters for the pending-bids and resolved-bids badges."""

        placed = await self.list_bids_for(user_id, BidRole.BIDDER)
        received = await self.list_bids_for(user_id, BidRole.OWNER)
        return BidSummary(
            pending_as_bidder=sum(b.status is BidStatus.PENDING for b in placed),
            resolved_as_owner=sum(b.status.is_terminal for b in received),
        )

    def watch_bids(self, user_id: str, role: BidRole) -> Subscription[Bid]:
        """Stream full snapshots of one index, repairing the paired index."""

        if self._bridge is None:
            raise RuntimeError("BidLedger was created without a sync bridge")
        return self._bridge.subscribe(
            index_path(user_id, role),
            decode_bid,
            hooks=[self.reconciler.hook_for(user_id, role)],
        )

    async def _resolve(
        self, bid_id: str, actor_id: str | None, target: BidStatus
    ) -> Bid:
        actor_id = _require_identity(actor_id)
        bid = await self._load(bid_id)
        if actor_id != bid.target_product_owner_id:
            raise UnauthorizedError("Only the product owner can answer this bid")
        if bid.status is not BidStatus.PENDING:
            raise StateConflictError(bid_id, bid.status.value)

        event = BidEvent(action=target.value, timestamp=self._clock())

        def _apply(document: dict) -> dict:
            history = document.get("history")
            if isinstance(history, dict):
                history = list(history.values())
            document["status"] = target.value
            document["history"] = [*(history or []), event.model_dump()]
            return document

        written = await self._store.conditional_update(
            bidder_path(bid.bidder_id, bid_id),
            {"status": BidStatus.PENDING.value},
            _apply,
        )
        if written is None:
            # Someone else resolved or withdrew the bid since it was loaded.
            raise StateConflictError(bid_id)

        updated = decode_bid(bid_id, written)
        if updated is None:
            raise NotFoundError("Bid", bid_id)
        await self._mirror(updated)

        logger.info(
            "Bid %s %s by %s",
            bid_id,
            target.value,
            actor_id,
            extra={"bid_id": bid_id, "status": target.value},
        )
        return updated

    async def _load(self, bid_id: str) -> Bid:
        """Load the authoritative copy from the bidder index."""

        if not bid_id:
            raise ValidationError("Bid id is required")
        pattern = f"{BIDDER_ROOT}/*/{escape_segment(bid_id)}"
        for path, raw in (await self._store.scan(pattern)).items():
            if path.count("/") != 3:
                continue
            bid = decode_bid(bid_id, raw)
            if bid is not None:
                return bid
        raise NotFoundError("Bid", bid_id)

    async def _mirror(self, bid: Bid) -> None:
        try:
            if not await mirror_to_owner_index(self._store, bid):
                logger.info("Owner copy of bid %s is already current", bid.id)
        except TransientNetworkError as exc:
            self._report_partial(bid.id, f"owner copy not written: {exc}")

    @staticmethod
    def _report_partial(bid_id: str, detail: str) -> None:
        fault = PartialConsistencyError(bid_id, detail)
        logger.warning(
            "Left bid in partial state: %s",
            fault.message,
            extra={"bid_id": bid_id, "code": fault.code},
        )


def get_bid_ledger(
    store: Annotated[DocumentStore, Depends(get_document_store)],
    products: Annotated[ProductStore, Depends(get_product_store)],
) -> BidLedger:
    """FastAPI dependency factory."""

    return BidLedger(store, products, bridge=create_sync_bridge(store))


BidLedgerDependency = Annotated[BidLedger, Depends(get_bid_ledger)]
