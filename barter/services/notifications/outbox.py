"""Redis-backed notification outbox at ``notifications/{recipientId}``."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Annotated

from fastapi import Depends

from barter.errors import NotFoundError
from barter.models.bid import Bid
from barter.models.notification import Notification, PushMessage
from barter.services.storage.document_store import DocumentStore, get_document_store
from barter.services.sync.decoding import decode_collection, decode_notification

NOTIFICATIONS_ROOT = "notifications"


def notification_key(bid: Bid) -> str:
    """Natural key of the notification produced by a bid transition."""
    return f"{bid.id}-{bid.status.value}"


class NotificationOutbox:
    """Wrapper responsible for persisting user-visible notifications."""

    def __init__(
        self,
        store: DocumentStore,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._store = store
        self._clock = clock or (lambda: int(time.time() * 1000))

    def _path(self, recipient_id: str, notification_id: str | None = None) -> str:
        base = f"{NOTIFICATIONS_ROOT}/{recipient_id}"
        return f"{base}/{notification_id}" if notification_id else base

    async def record(self, bid: Bid, message: PushMessage) -> Notification | None:
        """Store the notification for a bid transition unless it already exists.

        Returns None when another process already recorded the same
        ``(bidId, status)`` pair.
        """
        notification = Notification(
            id=notification_key(bid),
            recipient_id=bid.bidder_id,
            title=message.title,
            message=message.body,
            created_at=self._clock(),
            read=False,
            bid_id=bid.id,
            status=bid.status,
        )
        created = await self._store.create(
            self._path(bid.bidder_id, notification.id),
            notification.to_document(),
        )
        return notification if created else None

    async def list_for(self, recipient_id: str) -> list[Notification]:
        documents = await self._store.children(self._path(recipient_id))
        notifications, _ = decode_collection(documents, decode_notification)
        return sorted(
            notifications.values(), key=lambda n: n.created_at, reverse=True
        )

    async def mark_read(self, recipient_id: str, notification_id: str) -> Notification:
        written = await self._store.update(
            self._path(recipient_id, notification_id), {"read": True}
        )
        notification = (
            decode_notification(notification_id, written) if written else None
        )
        if notification is None:
            raise NotFoundError("Notification", notification_id)
        return notification

    async def mark_all_read(self, recipient_id: str) -> int:
        count = 0
        for notification in await self.list_for(recipient_id):
            if notification.read:
                continue
            if await self._store.update(
                self._path(recipient_id, notification.id), {"read": True}
            ):
                count += 1
        return count


def get_notification_outbox(
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> NotificationOutbox:
    return NotificationOutbox(store)


NotificationOutboxDependency = Annotated[
    NotificationOutbox, Depends(get_notification_outbox)
]
