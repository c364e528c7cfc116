"""Read access to published products, plus owner-side registration."""

from __future__ import annotations

import logging
import time
import uuid
from abc import ABC, abstractmethod
from typing import Annotated

from fastapi import Depends

from barter.errors import UnauthorizedError
from barter.models.product import Product, ProductPayload
from barter.services.storage.document_store import (
    DocumentStore,
    escape_segment,
    get_document_store,
)
from barter.services.sync.decoding import decode_collection, decode_product

logger = logging.getLogger(__name__)

PRODUCTS_ROOT = "products"


def product_path(owner_id: str, product_id: str | None = None) -> str:
    base = f"{PRODUCTS_ROOT}/{owner_id}"
    return f"{base}/{product_id}" if product_id else base


class ProductStore(ABC):
    """Collaborator contract consumed by the bid ledger. Never mutated by it."""

    @abstractmethod
    async def get(self, product_id: str) -> Product | None:
        """Return the product with ``product_id`` or None when it does not resolve."""

    @abstractmethod
    async def list_owned_by(self, user_id: str) -> list[Product]:
        """Return every product owned by ``user_id``."""


class RedisProductStore(ProductStore):
    """Product store over ``products/{ownerId}/{productId}`` documents."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def get(self, product_id: str) -> Product | None:
        pattern = f"{PRODUCTS_ROOT}/*/{escape_segment(product_id)}"
        for path, raw in (await self._store.scan(pattern)).items():
            if path.count("/") != 2:
                continue
            owner_id = path.split("/")[1]
            if isinstance(raw, dict):
                raw = {"ownerId": owner_id, **raw}
            product = decode_product(product_id, raw)
            if product is not None:
                return product
        return None

    async def list_owned_by(self, user_id: str) -> list[Product]:
        documents = await self._store.children(product_path(user_id))
        documents = {
            key: {"ownerId": user_id, **raw} if isinstance(raw, dict) else raw
            for key, raw in documents.items()
        }
        products, _ = decode_collection(documents, decode_product)
        return sorted(products.values(), key=lambda p: p.created_at, reverse=True)

    async def save(
        self,
        owner_id: str,
        payload: ProductPayload,
        product_id: str | None = None,
    ) -> Product:
        """Create or overwrite one of the owner's products."""

        existing = await self.get(product_id) if product_id else None
        if existing is not None and existing.owner_id != owner_id:
            raise UnauthorizedError(f"Product {product_id} belongs to another owner")

        product = Product(
            id=product_id or uuid.uuid4().hex,
            owner_id=owner_id,
            name=payload.name,
            description=payload.description,
            images=[str(url) for url in payload.images],
            price_start=payload.price_start,
            price_end=payload.price_end,
            status=payload.status,
            categories=payload.categories,
            created_at=(
                existing.created_at if existing else int(time.time() * 1000)
            ),
        )
        await self._store.set(
            product_path(owner_id, product.id), product.to_document()
        )
        logger.info(
            "Saved product %s for owner %s (status=%s)",
            product.id,
            owner_id,
            product.status.value,
        )
        return product


def get_product_store(
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> RedisProductStore:
    """FastAPI dependency factory."""

    return RedisProductStore(store)


ProductStoreDependency = Annotated[RedisProductStore, Depends(get_product_store)]
