"""Dead letter stream for push deliveries that could not be made."""

from __future__ import annotations

import logging

import redis.asyncio as redis

from barter.config import settings

logger = logging.getLogger(__name__)


class DLQManager:
    """Records failed deliveries so they can be inspected, never replayed."""

    def __init__(self, client: redis.Redis, stream_key: str | None = None):
        self.client = client
        self.dlq_stream = stream_key or settings.PUSH_DLQ_STREAM_KEY

    async def send_to_dlq(
        self,
        entry_id: str,
        payload: str,
        error: Exception,
        recipient: str | None = None,
    ) -> None:
        """Send a failed message to the dead letter queue."""
        try:
            await self.client.xadd(
                self.dlq_stream,
                {
                    "payload": payload,
                    "error": str(error),
                    "entry_id": entry_id,
                    "recipient": recipient or "",
                },
                maxlen=settings.CHANGE_STREAM_MAXLEN,
                approximate=True,
            )
            logger.warning(
                "Message sent to DLQ",
                extra={
                    "entry_id": entry_id,
                    "dlq_stream": self.dlq_stream,
                    "error": str(error),
                },
            )
        except Exception as dlq_error:
            logger.error(
                "Failed to send message to DLQ: %s",
                dlq_error,
                extra={"entry_id": entry_id, "original_error": str(error)},
                exc_info=True,
            )


def create_dlq_manager(client: redis.Redis) -> DLQManager:
    """Factory function to create a DLQ manager."""
    return DLQManager(client)
