"""Redis stream helpers carrying document change events per parent path."""

from __future__ import annotations

import logging

import redis.asyncio as redis

from barter.config import settings
from barter.services.storage.redis_client import (
    get_redis_client,
    translate_redis_errors,
)

logger = logging.getLogger(__name__)

StreamEntry = tuple[str, dict[str, str]]

EMPTY_STREAM_ID = "0-0"


class ChangeFeed:
    """Publishes and reads change events for a subtree of the document store."""

    def __init__(
        self,
        client: redis.Redis,
        prefix: str | None = None,
        maxlen: int | None = None,
    ):
        self.client = client
        self.prefix = prefix if prefix is not None else settings.CHANGE_STREAM_PREFIX
        self.maxlen = maxlen or settings.CHANGE_STREAM_MAXLEN

    def stream_key(self, parent_path: str) -> str:
        return f"{self.prefix}{parent_path}"

    async def publish(self, parent_path: str, path: str, op: str) -> str:
        """Append a change event to the stream of the document's parent."""
        key = self.stream_key(parent_path)
        with translate_redis_errors("xadd", key):
            return await self.client.xadd(
                key,
                {"path": path, "op": op},
                maxlen=self.maxlen,
                approximate=True,
            )

    async def latest_id(self, parent_path: str) -> str:
        """Return the id of the newest event, used as a read cursor."""
        key = self.stream_key(parent_path)
        with translate_redis_errors("xrevrange", key):
            entries = await self.client.xrevrange(key, count=1)
        if not entries:
            return EMPTY_STREAM_ID
        return entries[0][0]

    async def read_since(
        self,
        parent_path: str,
        last_id: str,
        block_ms: int | None = None,
        count: int = 100,
    ) -> list[StreamEntry]:
        """Read events newer than last_id, optionally blocking for block_ms."""
        key = self.stream_key(parent_path)
        with translate_redis_errors("xread", key):
            response = await self.client.xread(
                streams={key: last_id},
                count=count,
                block=block_ms or None,
            )
        entries: list[StreamEntry] = []
        for _stream, messages in response or []:
            entries.extend(messages)
        return entries


def create_change_feed(client: redis.Redis | None = None) -> ChangeFeed:
    """Factory function to create a change feed."""
    return ChangeFeed(client or get_redis_client())
