"""Routes for liking products while browsing swaps."""

from __future__ import annotations

from fastapi import APIRouter

from barter.models.product import LikeState
from barter.services.identity import RequiredUserDependency
from barter.services.products.likes import LikeStoreDependency

router = APIRouter(prefix="/likes", tags=["likes"])


@router.get(
    "",
    response_model=list[str],
    summary="List the products the caller likes",
)
async def list_likes(
    user_id: RequiredUserDependency,
    likes: LikeStoreDependency,
) -> list[str]:
    return await likes.liked_product_ids(user_id)


@router.put("/{product_id}", response_model=LikeState)
async def like_product(
    product_id: str,
    user_id: RequiredUserDependency,
    likes: LikeStoreDependency,
) -> LikeState:
    return await likes.like(user_id, product_id)


@router.delete("/{product_id}", response_model=LikeState)
async def unlike_product(
    product_id: str,
    user_id: RequiredUserDependency,
    likes: LikeStoreDependency,
) -> LikeState:
    return await likes.unlike(user_id, product_id)


@router.post(
    "/{product_id}/toggle",
    response_model=LikeState,
    summary="Like the product, or remove the like if it is already there",
)
async def toggle_like(
    product_id: str,
    user_id: RequiredUserDependency,
    likes: LikeStoreDependency,
) -> LikeState:
    return await likes.toggle(user_id, product_id)
