"""Exactly-once notification of bid resolutions observed on the bidder index.

A bid is notified when a snapshot shows it accepted or rejected while its
``notified`` flag is still false. The persisted flag is written after the push,
not atomically with the read that triggered it, so replays of a stale snapshot
can observe the same transition again. A process-local idempotency set keyed by
``(bidId, status)`` collapses those: it is claimed before the first await, so at
most one notification per transition leaves this process. Across processes the
guarantee is at-least-once; the outbox and the receiving UI dedupe on the same
natural key.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from barter.errors import TransientNetworkError
from barter.models.bid import Bid, BidStatus
from barter.models.notification import PushData, PushMessage
from barter.models.sync import Snapshot
from barter.services.bids.paths import bidder_path
from barter.services.notifications.outbox import NotificationOutbox
from barter.services.notifications.push_client import PushClient
from barter.services.notifications.push_tokens import PushTokenRegistry
from barter.services.products.product_store import ProductStore
from barter.services.storage.document_store import DocumentStore
from barter.services.sync.bridge import (
    RealtimeSyncBridge,
    SnapshotHook,
    Subscription,
)
from barter.services.sync.decoding import decode_bid
from barter.services.sync.session import SyncSession

logger = logging.getLogger(__name__)

FALLBACK_PRODUCT_NAME = "your requested item"

NotificationKey = tuple[str, BidStatus]


class IdempotencySet:
    """Process-local set of notification keys already fired. No expiry."""

    def __init__(self) -> None:
        self._keys: set[NotificationKey] = set()

    def claim(self, key: NotificationKey) -> bool:
        """Return True only for the first caller claiming ``key``."""
        if key in self._keys:
            return False
        self._keys.add(key)
        return True

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __len__(self) -> int:
        return len(self._keys)


def build_message(bid: Bid, product_name: str) -> PushMessage:
    data = PushData(bid_id=bid.id, target_product_id=bid.target_product_id)
    if bid.status is BidStatus.ACCEPTED:
        return PushMessage(
            title="Bid Accepted! 🎉",
            body=f"Your bid for {product_name} has been accepted!",
            data=data,
        )
    return PushMessage(
        title="Bid Update",
        body=f"Your bid for {product_name} was not accepted.",
        data=data,
    )


class NotificationDispatcher:
    """Fires one notification per bid resolution per process."""

    def __init__(
        self,
        *,
        store: DocumentStore,
        outbox: NotificationOutbox,
        push_client: PushClient,
        tokens: PushTokenRegistry,
        products: ProductStore | None = None,
        fired: IdempotencySet | None = None,
    ) -> None:
        self._store = store
        self._outbox = outbox
        self._push_client = push_client
        self._tokens = tokens
        self._products = products
        self.fired = fired or IdempotencySet()

    async def handle_snapshot(self, snapshot: Snapshot[Bid]) -> int:
        """Notify every newly resolved bid in ``snapshot``; return how many fired."""
        claimed = [
            bid
            for bid in snapshot.values()
            if bid.awaiting_notification and self.fired.claim((bid.id, bid.status))
        ]
        for bid in claimed:
            await self._fire(bid)
        return len(claimed)

    async def run(self, subscription: Subscription[Bid]) -> None:
        """Consume a bidder-index subscription until it closes."""
        async for snapshot in subscription:
            await self.handle_snapshot(snapshot)

    def watch(
        self,
        session: SyncSession,
        bridge: RealtimeSyncBridge,
        *,
        hooks: Sequence[SnapshotHook] = (),
    ) -> asyncio.Task:
        """Start dispatching for the session's user, owned by ``session``.

        ``hooks`` run on every bidder snapshot before it is dispatched.
        """
        subscription = session.track(
            bridge.subscribe(bidder_path(session.user_id), decode_bid, hooks=hooks)
        )
        return session.spawn(self.run(subscription), name="notifications")

    async def _fire(self, bid: Bid) -> None:
        message = build_message(bid, await self._product_name(bid))

        token = await self._lookup_token(bid.bidder_id)
        if token is None:
            logger.info("No push token for %s, skipping push", bid.bidder_id)
        else:
            await self._push_client.send(token, message)

        try:
            await self._outbox.record(bid, message)
            await self._mark_notified(bid)
        except TransientNetworkError as exc:
            # Key stays claimed; another process may notify again after restart.
            logger.warning(
                "Could not persist notification state for bid %s: %s", bid.id, exc
            )
            return

        logger.info(
            "Notified %s about bid %s (%s)",
            bid.bidder_id,
            bid.id,
            bid.status.value,
            extra={"bid_id": bid.id, "status": bid.status.value},
        )

    async def _mark_notified(self, bid: Bid) -> None:
        written = await self._store.conditional_update(
            bidder_path(bid.bidder_id, bid.id),
            {"status": bid.status.value},
            lambda document: {**document, "notified": True},
        )
        if written is None:
            logger.info("Bid %s changed before it could be marked notified", bid.id)

    async def _lookup_token(self, user_id: str) -> str | None:
        try:
            return await self._tokens.token_for(user_id)
        except TransientNetworkError:
            logger.warning("Push token lookup for %s failed", user_id)
            return None

    async def _product_name(self, bid: Bid) -> str:
        if self._products is None:
            return FALLBACK_PRODUCT_NAME
        try:
            product = await self._products.get(bid.target_product_id)
        except TransientNetworkError:
            return FALLBACK_PRODUCT_NAME
        if product is None or not product.name:
            return FALLBACK_PRODUCT_NAME
        return product.name
