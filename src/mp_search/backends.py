"""Search index backends.

MeiliSearchBackend talks to the Meilisearch HTTP API with httpx; it raises
httpx.HTTPError on any failure and leaves retrying to SearchProjector.
"""

import logging
from typing import Any, Protocol

import httpx

from src.mp_search.document import is_removal

logger = logging.getLogger(__name__)


class SearchBackend(Protocol):
    async def apply(self, document: dict[str, Any]) -> None: ...

    async def aclose(self) -> None: ...


class MeiliSearchBackend:
    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        index: str = "listings",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._index = index
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def apply(self, document: dict[str, Any]) -> None:
        if is_removal(document):
            response = await self._client.delete(
                f"/indexes/{self._index}/documents/{document['id']}"
            )
        else:
            response = await self._client.post(
                f"/indexes/{self._index}/documents",
                params={"primaryKey": "id"},
                json=[document],
            )
        response.raise_for_status()
        logger.debug(
            "Search %s for listing %s accepted",
            "removal" if is_removal(document) else "upsert",
            document["id"],
        )

    async def aclose(self) -> None:
        await self._client.aclose()


class NullBackend:
    """Accepts and drops every document (tests, local runs without a search host)."""

    async def apply(self, document: dict[str, Any]) -> None:
        logger.debug("Search push skipped for listing %s", document.get("id"))

    async def aclose(self) -> None:
        return None
