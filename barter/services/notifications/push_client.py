"""Push delivery client abstractions and implementations."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import httpx

from barter.config import settings
from barter.models.notification import PushMessage
from barter.services.queue.dlq_manager import DLQManager

logger = logging.getLogger(__name__)


class PushClient(ABC):
    """Abstract fire-and-forget delivery to a registered device token."""

    @abstractmethod
    async def send(self, token: str, message: PushMessage) -> bool:
        """Deliver ``message`` to ``token``; return False when delivery failed."""

    async def aclose(self) -> None:
        """Release network resources held by the client."""


class ExpoPushClient(PushClient):
    """Delivers notifications through an Expo compatible push endpoint."""

    def __init__(
        self,
        *,
        endpoint: str,
        timeout: float,
        dlq: DLQManager | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("Push endpoint URL must be provided")
        self._endpoint = endpoint
        self._dlq = dlq
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def send(self, token: str, message: PushMessage) -> bool:
        body = {
            "to": token,
            "title": message.title,
            "body": message.body,
            "data": message.data.model_dump(by_alias=True),
        }
        try:
            response = await self._client.post(self._endpoint, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(
                "Push delivery for bid %s failed: %s",
                message.data.bid_id,
                exc,
                exc_info=True,
            )
            if self._dlq is not None:
                await self._dlq.send_to_dlq(
                    message.data.bid_id,
                    message.model_dump_json(by_alias=True),
                    exc,
                    recipient=token,
                )
            return False

        logger.info(
            "Push delivered",
            extra={"bid_id": message.data.bid_id, "status": response.status_code},
        )
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


class LoggingPushClient(PushClient):
    """Used when push delivery is disabled; records what would have been sent."""

    async def send(self, token: str, message: PushMessage) -> bool:
        logger.info(
            "Push disabled, not delivering '%s' for bid %s",
            message.title,
            message.data.bid_id,
        )
        return True


def create_push_client(dlq: DLQManager | None = None) -> PushClient:
    """Build the push client configured for this process."""

    if not settings.push_configured:
        return LoggingPushClient()
    return ExpoPushClient(
        endpoint=settings.PUSH_ENDPOINT_URL,
        timeout=settings.PUSH_TIMEOUT_SECONDS,
        dlq=dlq,
    )
