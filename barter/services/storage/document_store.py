"""Hierarchical JSON document tree stored in Redis.

Every document lives under a slash separated path such as
``bids/byBidder/u1/b1``. Writes append a change event to the stream of the
document's parent path so that subscribers of that collection can reload it.
There are no multi-document transactions; the only atomic primitive is the
single-document conditional write built on WATCH/MULTI.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable
from typing import Annotated, Any

import redis.asyncio as redis
from fastapi import Depends
from redis.exceptions import WatchError

from barter.errors import TransientNetworkError
from barter.services.queue.change_feed import ChangeFeed
from barter.services.storage.redis_client import (
    get_redis_client,
    translate_redis_errors,
)

logger = logging.getLogger(__name__)

_GLOB_SPECIALS = re.compile(r"([*?\[\]\\])")


def parent_of(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def key_of(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def escape_segment(segment: str) -> str:
    """Escape glob characters so a path segment matches literally in SCAN."""
    return _GLOB_SPECIALS.sub(r"\\\1", segment)


class DocumentStore:
    """Document operations over a Redis keyspace."""

    def __init__(self, client: redis.Redis, feed: ChangeFeed | None = None):
        self.client = client
        self.feed = feed or ChangeFeed(client)

    async def get(self, path: str) -> Any | None:
        with translate_redis_errors("get", path):
            raw = await self.client.get(path)
        return self._loads(path, raw)

    async def children(self, path: str) -> dict[str, Any]:
        """Return the direct children of ``path`` keyed by their last segment."""
        prefix = f"{path}/"
        pattern = "/".join(escape_segment(part) for part in path.split("/")) + "/*"
        found = await self.scan(pattern)
        return {
            full[len(prefix):]: value
            for full, value in found.items()
            if "/" not in full[len(prefix):]
        }

    async def scan(self, pattern: str) -> dict[str, Any]:
        """Return every document whose path matches the glob ``pattern``."""
        with translate_redis_errors("scan", pattern):
            paths = [path async for path in self.client.scan_iter(match=pattern)]
            if not paths:
                return {}
            values = await self.client.mget(paths)
        documents: dict[str, Any] = {}
        for path, raw in zip(paths, values):
            if raw is None:
                # deleted between SCAN and MGET
                continue
            documents[path] = self._loads(path, raw)
        return documents

    async def get_many(self, paths: list[str]) -> dict[str, Any]:
        """Fetch several documents in one round trip; absent paths are omitted."""
        if not paths:
            return {}
        with translate_redis_errors("mget", paths[0]):
            values = await self.client.mget(paths)
        return {
            path: self._loads(path, raw)
            for path, raw in zip(paths, values)
            if raw is not None
        }

    async def set(self, path: str, document: Any) -> None:
        with translate_redis_errors("set", path):
            await self.client.set(path, json.dumps(document))
        await self._publish(path, "set")

    async def create(self, path: str, document: Any) -> bool:
        """Write the document only if nothing exists at ``path`` yet."""
        with translate_redis_errors("set", path):
            created = await self.client.set(path, json.dumps(document), nx=True)
        if created:
            await self._publish(path, "set")
        return bool(created)

    async def update(self, path: str, fields: dict[str, Any]) -> dict | None:
        """Merge ``fields`` into an existing document; missing documents stay missing."""
        return await self.conditional_update(
            path, {}, lambda current: {**current, **fields}
        )

    async def delete(self, path: str) -> bool:
        with translate_redis_errors("delete", path):
            removed = await self.client.delete(path)
        if removed:
            await self._publish(path, "delete")
        return bool(removed)

    async def conditional_update(
        self,
        path: str,
        expected: dict[str, Any],
        mutate: Callable[[dict], dict],
    ) -> dict | None:
        """Apply ``mutate`` only while every ``expected`` field still matches.

        Returns the written document, or None when the document is missing or
        no longer matches. A concurrent write between the read and the commit
        restarts the check against the new value.
        """
        with translate_redis_errors("watch", path):
            async with self.client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(path)
                        current = self._loads(path, await pipe.get(path))
                        if not self._matches(current, expected):
                            await pipe.unwatch()
                            return None
                        updated = mutate(dict(current))
                        pipe.multi()
                        pipe.set(path, json.dumps(updated))
                        await pipe.execute()
                        break
                    except WatchError:
                        logger.debug("Concurrent write on %s, re-checking", path)
                        continue
        await self._publish(path, "set")
        return updated

    async def conditional_put(
        self,
        path: str,
        document: Any,
        accept: Callable[[Any | None], bool],
    ) -> bool:
        """Write ``document`` only if ``accept`` approves the current value.

        ``accept`` receives None when nothing is stored at ``path`` yet.
        """
        with translate_redis_errors("watch", path):
            async with self.client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(path)
                        current = self._loads(path, await pipe.get(path))
                        if not accept(current):
                            await pipe.unwatch()
                            return False
                        pipe.multi()
                        pipe.set(path, json.dumps(document))
                        await pipe.execute()
                        break
                    except WatchError:
                        logger.debug("Concurrent write on %s, re-checking", path)
                        continue
        await self._publish(path, "set")
        return True

    async def conditional_delete(self, path: str, expected: dict[str, Any]) -> bool:
        """Delete the document only while every ``expected`` field still matches."""
        with translate_redis_errors("watch", path):
            async with self.client.pipeline(transaction=True) as pipe:
                while True:
                    try:
                        await pipe.watch(path)
                        current = self._loads(path, await pipe.get(path))
                        if not self._matches(current, expected):
                            await pipe.unwatch()
                            return False
                        pipe.multi()
                        pipe.delete(path)
                        await pipe.execute()
                        break
                    except WatchError:
                        logger.debug("Concurrent write on %s, re-checking", path)
                        continue
        await self._publish(path, "delete")
        return True

    async def ping(self) -> bool:
        with translate_redis_errors("ping", "server"):
            return bool(await self.client.ping())

    async def _publish(self, path: str, op: str) -> None:
        # The write already landed; subscribers catch up on their next full reload.
        try:
            await self.feed.publish(parent_of(path), path, op)
        except TransientNetworkError:
            logger.warning("Change event for %s (%s) was not published", path, op)

    @staticmethod
    def _matches(current: Any, expected: dict[str, Any]) -> bool:
        if not isinstance(current, dict):
            return False
        return all(current.get(field) == value for field, value in expected.items())

    @staticmethod
    def _loads(path: str, raw: str | bytes | None) -> Any | None:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Document at %s is not valid JSON", path)
            return raw


def get_document_store(
    client: Annotated[redis.Redis, Depends(get_redis_client)],
) -> DocumentStore:
    """FastAPI dependency returning a document store bound to the Redis client."""

    return DocumentStore(client)


DocumentStoreDependency = Annotated[DocumentStore, Depends(get_document_store)]
