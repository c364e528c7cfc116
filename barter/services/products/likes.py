"""Per-user product likes kept under ``likes/{userId}/{productId}``."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends

from barter.errors import NotFoundError
from barter.models.product import LikeState
from barter.services.products.product_store import ProductStore, get_product_store
from barter.services.storage.document_store import DocumentStore, get_document_store

logger = logging.getLogger(__name__)

LIKES_ROOT = "likes"


def like_path(user_id: str, product_id: str | None = None) -> str:
    base = f"{LIKES_ROOT}/{user_id}"
    return f"{base}/{product_id}" if product_id else base


class LikeStore:
    """Likes are a flag per product; unliking removes the document."""

    def __init__(self, store: DocumentStore, products: ProductStore) -> None:
        self._store = store
        self._products = products

    async def is_liked(self, user_id: str, product_id: str) -> bool:
        return await self._store.get(like_path(user_id, product_id)) is True

    async def like(self, user_id: str, product_id: str) -> LikeState:
        if await self._products.get(product_id) is None:
            raise NotFoundError("Product", product_id)
        await self._store.set(like_path(user_id, product_id), True)
        logger.debug("%s liked %s", user_id, product_id)
        return LikeState(product_id=product_id, liked=True)

    async def unlike(self, user_id: str, product_id: str) -> LikeState:
        await self._store.delete(like_path(user_id, product_id))
        logger.debug("%s unliked %s", user_id, product_id)
        return LikeState(product_id=product_id, liked=False)

    async def toggle(self, user_id: str, product_id: str) -> LikeState:
        if await self.is_liked(user_id, product_id):
            return await self.unlike(user_id, product_id)
        return await self.like(user_id, product_id)

    async def liked_product_ids(self, user_id: str) -> list[str]:
        """Ids of every product ``user_id`` currently likes."""
        documents = await self._store.children(like_path(user_id))
        return sorted(key for key, value in documents.items() if value is True)


def get_like_store(
    store: Annotated[DocumentStore, Depends(get_document_store)],
    products: Annotated[ProductStore, Depends(get_product_store)],
) -> LikeStore:
    """FastAPI dependency factory."""

    return LikeStore(store, products)


LikeStoreDependency = Annotated[LikeStore, Depends(get_like_store)]
