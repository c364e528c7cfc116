"""Routes letting owners publish products that others can bid on."""

from __future__ import annotations

import logging

from fastapi import APIRouter, status

from barter.errors import NotFoundError
from barter.models.product import Product, ProductPayload
from barter.services.identity import RequiredUserDependency
from barter.services.products.product_store import ProductStoreDependency

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


@router.post(
    "",
    response_model=Product,
    status_code=status.HTTP_201_CREATED,
    summary="Publish or save a product owned by the caller",
)
async def register_product(
    payload: ProductPayload,
    user_id: RequiredUserDependency,
    products: ProductStoreDependency,
) -> Product:
    logger.debug("Received payload: %s", payload.model_dump_json())
    return await products.save(user_id, payload)


@router.put(
    "/{product_id}",
    response_model=Product,
    summary="Update one of the caller's products",
)
async def update_product(
    product_id: str,
    payload: ProductPayload,
    user_id: RequiredUserDependency,
    products: ProductStoreDependency,
) -> Product:
    if await products.get(product_id) is None:
        raise NotFoundError("Product", product_id)
    return await products.save(user_id, payload, product_id=product_id)


@router.get(
    "/mine",
    response_model=list[Product],
    summary="List the caller's products, drafts included",
)
async def list_my_products(
    user_id: RequiredUserDependency,
    products: ProductStoreDependency,
) -> list[Product]:
    return await products.list_owned_by(user_id)


@router.get("/{product_id}", response_model=Product)
async def get_product(product_id: str, products: ProductStoreDependency) -> Product:
    product = await products.get(product_id)
    if product is None:
        raise NotFoundError("Product", product_id)
    return product
