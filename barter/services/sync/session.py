"""Session-scoped ownership of realtime subscriptions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from barter.services.sync.bridge import Subscription

logger = logging.getLogger(__name__)


class SyncSession:
    """Owns the subscriptions and consumer tasks opened for one user.

    Everything tracked here is torn down by ``close()`` so that a finished
    session never leaks an open stream.
    """

    def __init__(self, user_id: str, stop_grace: float = 2.0) -> None:
        self.user_id = user_id
        self.stop_grace = stop_grace
        self._subscriptions: list[Subscription[Any]] = []
        self._tasks: list[asyncio.Task] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def healthy(self) -> bool:
        """False once any consumer task or stream has stopped on its own."""
        return (
            not self._closed
            and all(not task.done() for task in self._tasks)
            and all(not sub.closed for sub in self._subscriptions)
        )

    def track(self, subscription: Subscription[Any]) -> Subscription[Any]:
        if self._closed:
            raise RuntimeError(f"Session for {self.user_id} is closed")
        self._subscriptions.append(subscription)
        return subscription

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task:
        if self._closed:
            coro.close()
            raise RuntimeError(f"Session for {self.user_id} is closed")
        task = asyncio.create_task(coro, name=f"{name}:{self.user_id}")
        self._tasks.append(task)
        return task

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await asyncio.gather(*(sub.close() for sub in self._subscriptions))
        # Consumers end on their own once their subscription slot is closed.
        if self._tasks:
            _, pending = await asyncio.wait(self._tasks, timeout=self.stop_grace)
            for task in pending:
                task.cancel()
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.warning(
                        "Session task for %s ended with %r", self.user_id, result
                    )
        self._subscriptions.clear()
        self._tasks.clear()
        logger.info("Session for %s closed", self.user_id)

    async def __aenter__(self) -> SyncSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
