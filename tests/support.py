"""Shared helpers for the barter test suite."""

import asyncio
import itertools

from barter.errors import TransientNetworkError
from barter.services.storage.document_store import DocumentStore
from barter.services.sync.bridge import RealtimeSyncBridge

CATALOG = [
    ("p10", "u1", "Vintage Camera", "published"),
    ("p11", "u1", "Record Player", "published"),
    ("p12", "u1", "Unfinished Quilt", "draft"),
    ("p99", "u2", "Road Bike", "published"),
    ("p50", "u3", "Guitar", "published"),
]


def product_doc(product_id, owner_id, *, name=None, status="published", created_at=1):
    return {
        "id": product_id,
        "ownerId": owner_id,
        "name": name or f"Product {product_id}",
        "description": "",
        "images": [],
        "priceStart": 10,
        "priceEnd": 20,
        "status": status,
        "categories": ["misc"],
        "createdAt": created_at,
    }


async def wait_for_snapshot(subscription, timeout=2.0):
    """Return the next snapshot of a subscription or fail the test on timeout."""
    return await asyncio.wait_for(subscription.next_snapshot(), timeout)


async def wait_until(predicate, timeout=2.0, interval=0.01):
    """Poll ``predicate`` until it returns a truthy value."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        result = predicate()
        if asyncio.iscoroutine(result):
            result = await result
        if result:
            return result
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(interval)


def fast_bridge(store, **overrides):
    """Bridge tuned for tests: non-blocking polls and millisecond backoff."""
    options = {
        "coalesce_window_ms": 5,
        "block_ms": 0,
        "poll_interval_ms": 5,
        "retry_base_ms": 1,
        "retry_max_ms": 5,
        "retry_attempts": 3,
    }
    options.update(overrides)
    return RealtimeSyncBridge(store, **options)


def sequential_ids(prefix="b"):
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


class Clock:
    """Deterministic millisecond clock."""

    def __init__(self, start=1_700_000_000_000):
        self.now = start

    def __call__(self):
        self.now += 1
        return self.now


class FailingOwnerIndexStore(DocumentStore):
    """Store whose owner-index writes fail a given number of times."""

    def __init__(self, client, failures=1):
        super().__init__(client)
        self.failures = failures

    def _maybe_fail(self, path):
        if path.startswith("bids/byOwner/") and self.failures:
            self.failures -= 1
            raise TransientNetworkError("simulated drop")

    async def set(self, path, document):
        self._maybe_fail(path)
        await super().set(path, document)

    async def conditional_put(self, path, document, accept):
        self._maybe_fail(path)
        return await super().conditional_put(path, document, accept)

    async def delete(self, path):
        self._maybe_fail(path)
        return await super().delete(path)
