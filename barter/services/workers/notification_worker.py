"""Worker keeping one notification session open per registered user."""

from __future__ import annotations

import asyncio
import logging
import os
import socket
import uuid

from barter.config import settings
from barter.models.bid import BidRole
from barter.services.bids.ledger import BidLedger
from barter.services.notifications.dispatcher import NotificationDispatcher
from barter.services.notifications.outbox import NotificationOutbox
from barter.services.notifications.push_client import PushClient, create_push_client
from barter.services.notifications.push_tokens import PushTokenRegistry
from barter.services.products.product_store import RedisProductStore
from barter.services.queue.dlq_manager import create_dlq_manager
from barter.services.storage.document_store import DocumentStore
from barter.services.storage.redis_client import close_redis_client, get_redis_client
from barter.services.sync.bridge import RealtimeSyncBridge, create_sync_bridge
from barter.services.sync.session import SyncSession
from barter.services.workers.base import BaseWorker

logger = logging.getLogger(__name__)


class NotificationWorker(BaseWorker):
    """Opens a session for every user with a push token and closes stale ones.

    Each session also keeps the owner index of its user in line with the
    bidder index, so partial bid writes are repaired while the worker runs.
    """

    def __init__(
        self,
        *,
        bridge: RealtimeSyncBridge,
        ledger: BidLedger,
        dispatcher: NotificationDispatcher,
        tokens: PushTokenRegistry,
        push_client: PushClient | None = None,
        consumer_name: str | None = None,
        refresh_seconds: float | None = None,
    ) -> None:
        super().__init__(
            consumer_name, refresh_seconds or settings.SESSION_REFRESH_SECONDS
        )
        self.bridge = bridge
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.tokens = tokens
        self.push_client = push_client
        self.sessions: dict[str, SyncSession] = {}

    async def tick(self) -> None:
        await self.refresh_sessions()

    async def cleanup(self) -> None:
        await self.close_all()

    async def refresh_sessions(self) -> None:
        """Match open sessions to the current push registrations."""
        registered = set(await self.tokens.registered_users())

        for user_id in list(self.sessions):
            session = self.sessions[user_id]
            if user_id not in registered:
                await self.close_session(user_id)
            elif not session.healthy:
                logger.warning("Session for %s stopped, reopening", user_id)
                await self.close_session(user_id)

        for user_id in sorted(registered - self.sessions.keys()):
            self.open_session(user_id)

    def open_session(self, user_id: str) -> SyncSession:
        """Watch both indices of ``user_id``; bidder snapshots also drive pushes."""
        session = SyncSession(user_id, stop_grace=self.bridge.stop_grace)
        repair = self.ledger.reconciler.hook_for(user_id, BidRole.BIDDER)
        self.dispatcher.watch(session, self.bridge, hooks=[repair])
        session.track(self.ledger.watch_bids(user_id, BidRole.OWNER))
        self.sessions[user_id] = session
        logger.info("Opened notification session for %s", user_id)
        return session

    async def close_session(self, user_id: str) -> None:
        session = self.sessions.pop(user_id, None)
        if session is not None:
            await session.close()

    async def close_all(self) -> None:
        for user_id in list(self.sessions):
            await self.close_session(user_id)
        if self.push_client is not None:
            await self.push_client.aclose()

    @staticmethod
    def _build_consumer_name() -> str:
        hostname = socket.gethostname()
        pid = os.getpid()
        suffix = uuid.uuid4().hex[:6]
        return f"notification-worker:{hostname}:{pid}:{suffix}"


def create_notification_worker() -> NotificationWorker:
    """Factory function to create a notification worker with all dependencies."""
    client = get_redis_client()
    store = DocumentStore(client)
    tokens = PushTokenRegistry(store)
    products = RedisProductStore(store)
    bridge = create_sync_bridge(store)
    push_client = create_push_client(create_dlq_manager(client))
    dispatcher = NotificationDispatcher(
        store=store,
        outbox=NotificationOutbox(store),
        push_client=push_client,
        tokens=tokens,
        products=products,
    )
    return NotificationWorker(
        bridge=bridge,
        ledger=BidLedger(store, products, bridge=bridge),
        dispatcher=dispatcher,
        tokens=tokens,
        push_client=push_client,
    )


async def run_worker() -> None:
    """Run the notification worker until cancelled."""
    worker = create_notification_worker()
    worker.install_signal_handlers()
    try:
        await worker.run_forever()
    finally:
        await close_redis_client()


def main() -> None:
    """CLI entry point."""
    try:
        asyncio.run(run_worker())
    except KeyboardInterrupt:
        logger.info("Notification worker interrupted, shutting down")


if __name__ == "__main__":
    main()
