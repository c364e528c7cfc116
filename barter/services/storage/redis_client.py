"""Shared Redis client and error translation for the document store."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import redis.asyncio as redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from barter.config import settings
from barter.errors import TransientNetworkError

logger = logging.getLogger(__name__)

_redis_client: redis.Redis | None = None


def get_redis_client() -> redis.Redis:
    """Return a singleton Redis client for the current process."""

    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            health_check_interval=30,
        )
    return _redis_client


async def close_redis_client() -> None:
    """Close the process-wide Redis client if it was opened."""

    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


@contextmanager
def translate_redis_errors(operation: str, key: str) -> Iterator[None]:
    """Re-raise connection level Redis failures as TransientNetworkError."""

    try:
        yield
    except (RedisConnectionError, RedisTimeoutError, OSError) as exc:
        logger.warning(
            "Redis %s failed for %s: %s",
            operation,
            key,
            exc,
            extra={"operation": operation, "key": key},
        )
        raise TransientNetworkError(f"{operation} {key}: {exc}") from exc
