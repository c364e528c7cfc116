"""Base worker functionality for long-running async processes."""

from __future__ import annotations

import asyncio
import logging
import signal
from abc import ABC, abstractmethod

from barter.errors import TransientNetworkError

logger = logging.getLogger(__name__)


class BaseWorker(ABC):
    """Periodic async worker: ``tick`` every ``interval`` seconds until shutdown."""

    def __init__(self, consumer_name: str | None = None, interval: float = 30.0):
        self.consumer_name = consumer_name or self._build_consumer_name()
        self.interval = interval
        self._shutdown_event = asyncio.Event()

    @abstractmethod
    async def tick(self) -> None:
        """One unit of work. Transient store failures are retried next tick."""

    async def cleanup(self) -> None:
        """Release everything the worker opened. Called once on exit."""

    @abstractmethod
    def _build_consumer_name(self) -> str:
        """Build a unique name for this worker instance."""

    async def run_forever(self) -> None:
        """Main worker loop."""
        logger.info(
            "%s started", type(self).__name__, extra={"consumer": self.consumer_name}
        )
        try:
            while not self.is_shutdown_requested():
                try:
                    await self.tick()
                except TransientNetworkError as exc:
                    logger.error("%s tick failed: %s", self.consumer_name, exc)
                await self.wait_for_shutdown(self.interval)
        except asyncio.CancelledError:
            logger.info("%s cancelled", self.consumer_name)
            raise
        finally:
            await self.cleanup()
            logger.info("%s stopped", self.consumer_name)

    def shutdown(self) -> None:
        """Signal the worker to shut down gracefully."""
        self._shutdown_event.set()

    def is_shutdown_requested(self) -> bool:
        """Check if shutdown has been requested."""
        return self._shutdown_event.is_set()

    async def wait_for_shutdown(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds, waking early on shutdown."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def install_signal_handlers(self) -> None:
        """Turn SIGINT/SIGTERM into a graceful shutdown where the loop allows it."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.shutdown)
            except NotImplementedError:
                logger.debug("Signal handlers unsupported on this platform")
                return
