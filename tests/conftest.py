"""Pytest configuration and fixtures for the barter service."""

import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis
from httpx import ASGITransport, AsyncClient

from barter.services.bids.ledger import BidLedger
from barter.services.products.product_store import RedisProductStore, product_path
from barter.services.storage.document_store import DocumentStore
from barter.services.storage.redis_client import get_redis_client
from tests.support import CATALOG, Clock, fast_bridge, product_doc, sequential_ids


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "asyncio: marks tests as async tests")


@pytest_asyncio.fixture()
async def redis_client():
    """Provide a fake Redis client for each test."""
    client = fakeredis.FakeRedis(decode_responses=True)
    await client.flushall()
    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()


@pytest.fixture()
def store(redis_client):
    return DocumentStore(redis_client)


@pytest.fixture()
def products(store):
    return RedisProductStore(store)


@pytest_asyncio.fixture()
async def catalog(store):
    """Seed the products used across the bid tests."""
    for product_id, owner_id, name, status in CATALOG:
        await store.set(
            product_path(owner_id, product_id),
            product_doc(product_id, owner_id, name=name, status=status),
        )
    return {product_id: owner_id for product_id, owner_id, _, _ in CATALOG}


@pytest.fixture()
def clock():
    return Clock()


@pytest.fixture()
def ledger(store, products, clock):
    return BidLedger(
        store,
        products,
        bridge=fast_bridge(store),
        clock=clock,
        id_factory=sequential_ids(),
    )


@pytest_asyncio.fixture()
async def client(redis_client):
    """Return an HTTPX async client pointing at the FastAPI app."""
    from barter.main import app

    app.dependency_overrides[get_redis_client] = lambda: redis_client
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://testserver",
        ) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_redis_client, None)
