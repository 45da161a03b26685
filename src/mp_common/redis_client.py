"""Shared Redis connection for the search retry queue.

Redis holds no money state. When it cannot be reached at startup the app
runs without a retry queue and failed search pushes are only logged.
"""

import logging

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from config.settings import settings

logger = logging.getLogger(__name__)

_redis_pool: aioredis.Redis | None = None


async def get_redis() -> aioredis.Redis | None:
    """Connected client, or None if Redis did not answer a ping."""
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is None:
        client = aioredis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT_SECONDS,
        )
        try:
            await client.ping()
        except (RedisError, OSError) as exc:
            logger.warning("Redis unavailable at %s, search retries disabled: %s",
                           settings.REDIS_URL, exc)
            await client.aclose()
            return None
        _redis_pool = client
    return _redis_pool


async def close_redis() -> None:
    global _redis_pool  # noqa: PLW0603
    if _redis_pool is not None:
        await _redis_pool.aclose()
        _redis_pool = None
