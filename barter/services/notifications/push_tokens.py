"""Registry of per-user push destination tokens at ``pushTokens/{userId}``."""

from __future__ import annotations

import logging
import time
from typing import Annotated

from fastapi import Depends
from pydantic import ValidationError as PydanticValidationError

from barter.models.notification import PushRegistration
from barter.services.storage.document_store import DocumentStore, get_document_store

logger = logging.getLogger(__name__)

PUSH_TOKENS_ROOT = "pushTokens"


class PushTokenRegistry:
    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def register(self, user_id: str, token: str) -> PushRegistration:
        registration = PushRegistration(
            user_id=user_id,
            token=token,
            registered_at=int(time.time() * 1000),
        )
        await self._store.set(
            f"{PUSH_TOKENS_ROOT}/{user_id}",
            registration.model_dump(mode="json", by_alias=True),
        )
        logger.info("Registered push token for %s", user_id)
        return registration

    async def unregister(self, user_id: str) -> bool:
        return await self._store.delete(f"{PUSH_TOKENS_ROOT}/{user_id}")

    async def token_for(self, user_id: str) -> str | None:
        raw = await self._store.get(f"{PUSH_TOKENS_ROOT}/{user_id}")
        if not isinstance(raw, dict):
            return None
        token = raw.get("token")
        return token if isinstance(token, str) and token else None

    async def registered_users(self) -> list[str]:
        users = []
        for user_id, raw in (await self._store.children(PUSH_TOKENS_ROOT)).items():
            try:
                PushRegistration.model_validate({"userId": user_id, **raw})
            except (PydanticValidationError, TypeError):
                logger.warning("Ignoring malformed push registration of %s", user_id)
                continue
            users.append(user_id)
        return sorted(users)


def get_push_token_registry(
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> PushTokenRegistry:
    return PushTokenRegistry(store)


PushTokenRegistryDependency = Annotated[
    PushTokenRegistry, Depends(get_push_token_registry)
]
