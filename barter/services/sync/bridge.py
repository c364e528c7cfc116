"""Realtime sync bridge turning store change streams into typed snapshots.

A subscription watches one collection path. Change events are only used as a
signal: after a short coalescing window the bridge reloads and decodes the
whole collection, so consumers always receive full snapshots and never apply
deltas that could be stale. After a connection loss the subscription backs off,
re-subscribes and replays a full snapshot.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Generic, TypeVar

from barter.config import settings
from barter.errors import TransientNetworkError
from barter.models.sync import Snapshot
from barter.services.queue.change_feed import ChangeFeed
from barter.services.storage.document_store import DocumentStore
from barter.services.sync.decoding import Decoder, decode_collection

logger = logging.getLogger(__name__)

T = TypeVar("T")
SnapshotHook = Callable[[Snapshot[Any]], Awaitable[None]]


class LatestSnapshotSlot(Generic[T]):
    """Single-slot buffer keeping only the newest undelivered snapshot."""

    def __init__(self) -> None:
        self._value: Snapshot[T] | None = None
        self._error: BaseException | None = None
        self._closed = False
        self._event = asyncio.Event()
        self.dropped = 0

    def put(self, snapshot: Snapshot[T]) -> None:
        if self._value is not None:
            self.dropped += 1
        self._value = snapshot
        self._event.set()

    def fail(self, error: BaseException) -> None:
        self._error = error
        self._event.set()

    def close(self) -> None:
        self._closed = True
        self._event.set()

    async def get(self) -> Snapshot[T] | None:
        """Wait for the next snapshot; None once the slot is closed."""
        while True:
            if self._value is not None:
                value, self._value = self._value, None
                return value
            if self._error is not None:
                raise self._error
            if self._closed:
                return None
            self._event.clear()
            await self._event.wait()


class Subscription(Generic[T]):
    """Stoppable stream of coalesced full snapshots for one path."""

    def __init__(
        self,
        bridge: RealtimeSyncBridge,
        path: str,
        decoder: Decoder[T],
        hooks: Sequence[SnapshotHook] = (),
    ) -> None:
        self.bridge = bridge
        self.path = path
        self.decoder = decoder
        self.hooks = list(hooks)
        self.version = 0
        self.resubscriptions = 0
        self.coalesced_events = 0
        self.latest: Snapshot[T] | None = None
        self._slot: LatestSnapshotSlot[T] = LatestSnapshotSlot()
        self._stopping = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def dropped_snapshots(self) -> int:
        return self._slot.dropped

    @property
    def closed(self) -> bool:
        return self._task is None or self._task.done()

    def start(self) -> Subscription[T]:
        if self._task is None and not self._stopping.is_set():
            self._task = asyncio.create_task(self._run(), name=f"sync:{self.path}")
        return self

    async def close(self) -> None:
        """Stop the background stream task between two store reads.

        The task is only cancelled if it does not finish its in-flight read
        within the grace period, so the shared Redis connection is never
        abandoned mid-command.
        """
        self._stopping.set()
        task, self._task = self._task, None
        if task is not None and not task.done():
            try:
                await asyncio.wait_for(
                    asyncio.shield(task), timeout=self.bridge.stop_grace
                )
            except asyncio.TimeoutError:
                logger.warning("Subscription to %s did not stop, cancelling", self.path)
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
        self._slot.close()
        logger.debug("Subscription to %s closed", self.path)

    async def next_snapshot(self) -> Snapshot[T] | None:
        return await self._slot.get()

    def __aiter__(self) -> Subscription[T]:
        return self

    async def __anext__(self) -> Snapshot[T]:
        snapshot = await self._slot.get()
        if snapshot is None:
            raise StopAsyncIteration
        return snapshot

    async def __aenter__(self) -> Subscription[T]:
        return self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    @property
    def stopping(self) -> bool:
        return self._stopping.is_set()

    async def _pause(self, seconds: float) -> bool:
        """Sleep up to ``seconds``; True when a stop was requested meanwhile."""
        try:
            await asyncio.wait_for(self._stopping.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return False
        return True

    async def _run(self) -> None:
        attempt = 0
        replay = False
        try:
            while not self.stopping:
                try:
                    cursor = await self.bridge.feed.latest_id(self.path)
                    await self._deliver_full(replay=replay)
                    attempt = 0
                    await self._follow(cursor)
                except TransientNetworkError as exc:
                    if self.stopping:
                        return
                    attempt += 1
                    if attempt > self.bridge.retry_attempts:
                        logger.error(
                            "Giving up on %s after %d attempts",
                            self.path,
                            attempt - 1,
                        )
                        self._slot.fail(exc)
                        return
                    delay = self.bridge.backoff_delay(attempt)
                    logger.warning(
                        "Stream for %s lost, resubscribing in %.2fs (attempt %d/%d)",
                        self.path,
                        delay,
                        attempt,
                        self.bridge.retry_attempts,
                    )
                    if await self._pause(delay):
                        return
                    replay = True
                    self.resubscriptions += 1
        except asyncio.CancelledError:
            logger.debug("Subscription task for %s cancelled", self.path)
            raise
        except Exception as exc:
            logger.exception("Subscription to %s failed", self.path)
            self._slot.fail(exc)

    async def _follow(self, cursor: str) -> None:
        feed = self.bridge.feed
        while not self.stopping:
            entries = await feed.read_since(
                self.path, cursor, block_ms=self.bridge.block_ms
            )
            if not entries:
                if not self.bridge.block_ms and await self._pause(
                    self.bridge.poll_interval
                ):
                    return
                continue
            cursor = entries[-1][0]
            received = len(entries)

            if self.bridge.coalesce_window > 0:
                if await self._pause(self.bridge.coalesce_window):
                    return
                late = await feed.read_since(self.path, cursor)
                if late:
                    cursor = late[-1][0]
                    received += len(late)

            self.coalesced_events += received - 1
            if self.stopping:
                return
            await self._deliver_full(replay=False)

    async def _deliver_full(self, *, replay: bool) -> None:
        raw = await self.bridge.store.children(self.path)
        items, dropped = decode_collection(raw, self.decoder)
        if not replay and self.latest is not None and self.latest.items == items:
            logger.debug("Snapshot of %s unchanged, not redelivered", self.path)
            return

        self.version += 1
        snapshot = Snapshot(
            path=self.path,
            items=items,
            version=self.version,
            replay=replay,
            dropped=dropped,
        )
        self.latest = snapshot
        for hook in self.hooks:
            try:
                await hook(snapshot)
            except Exception:
                logger.exception("Snapshot hook failed for %s", self.path)
        self._slot.put(snapshot)


class RealtimeSyncBridge:
    """Factory for subscriptions sharing one store, feed and retry policy."""

    def __init__(
        self,
        store: DocumentStore,
        feed: ChangeFeed | None = None,
        *,
        coalesce_window_ms: int | None = None,
        block_ms: int | None = None,
        poll_interval_ms: int | None = None,
        retry_base_ms: int | None = None,
        retry_max_ms: int | None = None,
        retry_attempts: int | None = None,
    ) -> None:
        self.store = store
        self.feed = feed or store.feed
        self.coalesce_window = (
            _pick(coalesce_window_ms, settings.SYNC_COALESCE_WINDOW_MS) / 1000
        )
        self.block_ms = _pick(block_ms, settings.SYNC_BLOCK_MS)
        self.poll_interval = (
            _pick(poll_interval_ms, settings.SYNC_POLL_INTERVAL_MS) / 1000
        )
        self.retry_base = _pick(retry_base_ms, settings.SYNC_RETRY_BASE_MS) / 1000
        self.retry_max = _pick(retry_max_ms, settings.SYNC_RETRY_MAX_MS) / 1000
        self.retry_attempts = _pick(retry_attempts, settings.SYNC_RETRY_ATTEMPTS)
        # Longest a stopping subscription may need to finish its current read.
        self.stop_grace = self.block_ms / 1000 + self.coalesce_window + 1.0

    def subscribe(
        self,
        path: str,
        decoder: Decoder[T],
        *,
        hooks: Sequence[SnapshotHook] = (),
    ) -> Subscription[T]:
        """Open a subscription on ``path``; must be called from a running loop."""
        subscription = Subscription(self, path, decoder, hooks)
        logger.info("Subscribing to %s", path)
        return subscription.start()

    async def snapshot(self, path: str, decoder: Decoder[T]) -> Snapshot[T]:
        """One-off full read of ``path`` without opening a stream."""
        raw = await self.store.children(path)
        items, dropped = decode_collection(raw, decoder)
        return Snapshot(path=path, items=items, dropped=dropped)

    def backoff_delay(self, attempt: int) -> float:
        return min(self.retry_base * (2 ** (attempt - 1)), self.retry_max)


def _pick(value: int | None, default: int) -> int:
    return default if value is None else value


def create_sync_bridge(store: DocumentStore) -> RealtimeSyncBridge:
    """Factory function to create a bridge configured from settings."""
    return RealtimeSyncBridge(store)
