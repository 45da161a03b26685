"""SearchProjector: best-effort push of listing state to the search index.

Called after the settlement transaction has committed. It never raises: a
failed push is logged and parked on the retry queue, which the scheduler
drains periodically.
"""

import logging
from typing import Any

import httpx
from redis.exceptions import RedisError

from src.mp_listing.domain.models import Listing
from src.mp_search.backends import NullBackend, SearchBackend
from src.mp_search.document import to_search_document
from src.mp_search.retry_queue import ProjectorRetryQueue

logger = logging.getLogger(__name__)


class SearchProjector:
    def __init__(
        self,
        backend: SearchBackend | None = None,
        queue: ProjectorRetryQueue | None = None,
    ) -> None:
        self._backend: SearchBackend = backend or NullBackend()
        self._queue = queue

    async def upsert_or_remove(self, listing: Listing) -> bool:
        """Push one listing; True if the index accepted it."""
        document = to_search_document(listing)
        if await self._push(document):
            return True
        await self._park(document)
        return False

    async def retry_pending(self, max_items: int = 100) -> tuple[int, int]:
        """Drain up to `max_items` parked documents. Returns (pushed, requeued)."""
        if self._queue is None:
            return 0, 0
        pushed = requeued = 0
        try:
            budget = min(max_items, await self._queue.size())
            for _ in range(budget):
                document = await self._queue.pop()
                if document is None:
                    break
                if await self._push(document):
                    pushed += 1
                else:
                    await self._queue.enqueue(document)
                    requeued += 1
        except RedisError as exc:
            logger.warning("Search retry queue unavailable: %s", exc)
        if pushed or requeued:
            logger.info("Search retry drain: pushed=%d requeued=%d", pushed, requeued)
        return pushed, requeued

    async def aclose(self) -> None:
        await self._backend.aclose()

    async def _push(self, document: dict[str, Any]) -> bool:
        try:
            await self._backend.apply(document)
        except httpx.HTTPError as exc:
            logger.warning("Search push failed for listing %s: %s", document.get("id"), exc)
            return False
        return True

    async def _park(self, document: dict[str, Any]) -> None:
        if self._queue is None:
            return
        try:
            await self._queue.enqueue(document)
        except RedisError as exc:
            logger.warning(
                "Could not queue listing %s for search retry: %s", document.get("id"), exc
            )
