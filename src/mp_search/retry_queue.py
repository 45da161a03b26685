"""Redis-backed queue of search documents whose push failed."""

import json
import logging
from typing import Any

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

RETRY_KEY = "mp:search:retry"


class ProjectorRetryQueue:
    def __init__(self, redis: aioredis.Redis, key: str = RETRY_KEY) -> None:
        self._redis = redis
        self._key = key

    async def enqueue(self, document: dict[str, Any]) -> None:
        await self._redis.rpush(self._key, json.dumps(document))

    async def pop(self) -> dict[str, Any] | None:
        raw = await self._redis.lpop(self._key)
        if raw is None:
            return None
        return json.loads(raw)

    async def size(self) -> int:
        return int(await self._redis.llen(self._key))
