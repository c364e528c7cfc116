"""Reader-side repair of divergence between the two bid indices.

The bidder index is authoritative: every mutation lands there first. The owner
index is a cache of it, written second and possibly missed. Whenever a full
snapshot of either side is observed, the owner-side copies are brought back in
line with the authoritative copies. Repairs only ever write to the owner index,
so they can never duplicate a bid on the bidder side.

Snapshots can be stale by the time a hook runs. Before repairing, the bidder
documents are read again and a repair only lands if the bid still exists, and
an owner copy never moves from a resolved status back to pending.

Each repair pass is bounded by the size of the snapshot it was triggered by:
owner snapshots only check the bids they contain plus the bids last seen in
bidder snapshots that target the same owner. Nothing scans the whole index.
"""

from __future__ import annotations

import logging
from typing import Any

from barter.errors import PartialConsistencyError, TransientNetworkError
from barter.models.bid import Bid, BidRole
from barter.models.sync import Snapshot
from barter.services.bids.paths import bidder_path, owner_path
from barter.services.storage.document_store import DocumentStore, key_of
from barter.services.sync.bridge import SnapshotHook
from barter.services.sync.decoding import decode_bid

logger = logging.getLogger(__name__)


def _supersedes(bid: Bid, current: Any | None) -> bool:
    if current is None:
        return True
    existing = decode_bid(bid.id, current)
    if existing is None:
        return True
    if existing.status is bid.status:
        return False
    return not existing.status.is_terminal


async def mirror_to_owner_index(store: DocumentStore, bid: Bid) -> bool:
    """Copy ``bid`` to its owner index unless the copy there is already as new.

    Returns False when the stored copy has the same status or a resolved one.
    """
    return await store.conditional_put(
        owner_path(bid.target_product_owner_id, bid.id),
        bid.to_document(),
        lambda current: _supersedes(bid, current),
    )


class BidIndexReconciler:
    """Detects and re-issues missing or stale owner-index writes."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._seen_by_bidder: dict[str, dict[str, str]] = {}
        self.repairs = 0

    async def reconcile_bidder_snapshot(self, snapshot: Snapshot[Bid]) -> int:
        """Ensure every bid of a bidder has a matching owner copy."""
        bids = list(snapshot.values())
        bidder_id = key_of(snapshot.path)
        self._seen_by_bidder[bidder_id] = {
            bid.id: bid.target_product_owner_id for bid in bids
        }
        if not bids:
            return 0

        copies = await self._store.get_many(
            [owner_path(bid.target_product_owner_id, bid.id) for bid in bids]
        )
        suspects = []
        for bid in bids:
            raw = copies.get(owner_path(bid.target_product_owner_id, bid.id))
            copy = decode_bid(bid.id, raw) if raw is not None else None
            if copy is None or copy.status is not bid.status:
                suspects.append(bid)
        if not suspects:
            return 0

        fresh = await self._store.get_many(
            [bidder_path(bidder_id, bid.id) for bid in suspects]
        )
        repaired = 0
        for bid in suspects:
            raw = fresh.get(bidder_path(bidder_id, bid.id))
            current = decode_bid(bid.id, raw) if raw is not None else None
            if current is None:
                logger.debug("Bid %s was withdrawn since the snapshot", bid.id)
                continue
            if await mirror_to_owner_index(self._store, current):
                self._report(current.id, "owner copy was missing or stale")
                repaired += 1
        self.repairs += repaired
        return repaired

    async def reconcile_owner_snapshot(
        self, owner_id: str, snapshot: Snapshot[Bid]
    ) -> int:
        """Align an owner's index with the authoritative bidder copies."""
        bidders = {
            bid_id: bidder_id
            for bidder_id, seen in self._seen_by_bidder.items()
            for bid_id, target_owner in seen.items()
            if target_owner == owner_id
        }
        for bid_id, copy in snapshot.items.items():
            if copy.bidder_id:
                bidders[bid_id] = copy.bidder_id
        if not bidders:
            return 0

        authoritative = await self._store.get_many(
            [bidder_path(bidder_id, bid_id) for bid_id, bidder_id in bidders.items()]
        )
        repaired = 0
        for bid_id, bidder_id in bidders.items():
            raw = authoritative.get(bidder_path(bidder_id, bid_id))
            bid = decode_bid(bid_id, raw) if raw is not None else None
            copy = snapshot.items.get(bid_id)

            if bid is None:
                if copy is not None:
                    # Left behind by a cancel whose second delete did not land.
                    self._report(bid_id, "owner copy has no bidder copy")
                    await self._store.delete(owner_path(owner_id, bid_id))
                    repaired += 1
                continue
            if bid.target_product_owner_id != owner_id:
                continue
            if copy is not None and copy.status is bid.status:
                continue
            if await mirror_to_owner_index(self._store, bid):
                self._report(bid_id, "owner copy was missing or stale")
                repaired += 1

        self.repairs += repaired
        return repaired

    def hook_for(self, user_id: str, role: BidRole) -> SnapshotHook:
        """Build a snapshot hook repairing the paired index of ``user_id``."""

        async def _hook(snapshot: Snapshot[Bid]) -> None:
            try:
                if role is BidRole.BIDDER:
                    await self.reconcile_bidder_snapshot(snapshot)
                else:
                    await self.reconcile_owner_snapshot(user_id, snapshot)
            except TransientNetworkError as exc:
                logger.info(
                    "Index repair for %s postponed to the next snapshot: %s",
                    user_id,
                    exc,
                )

        return _hook

    @staticmethod
    def _report(bid_id: str, detail: str) -> None:
        fault = PartialConsistencyError(bid_id, detail)
        logger.warning(
            "Repaired owner index: %s",
            fault.message,
            extra={"bid_id": bid_id, "code": fault.code},
        )
