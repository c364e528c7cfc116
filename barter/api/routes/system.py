"""System-level routes such as health checks."""

from __future__ import annotations

from fastapi import APIRouter

from barter.config import settings
from barter.errors import TransientNetworkError
from barter.services.storage.document_store import DocumentStoreDependency

router = APIRouter(tags=["system"])


@router.get("/")
async def read_root() -> dict[str, str]:
    """Hello World endpoint used by smoke tests."""

    return {"message": "Hello World"}


@router.get("/health")
async def health_check(store: DocumentStoreDependency) -> dict[str, str]:
    """Health check endpoint with document store connectivity check."""

    try:
        store_status = "connected" if await store.ping() else "disconnected"
    except TransientNetworkError:
        store_status = "disconnected"

    return {
        "status": "healthy",
        "store": store_status,
        "environment": settings.ENVIRONMENT,
    }
