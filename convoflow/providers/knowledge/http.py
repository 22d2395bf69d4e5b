"""
HTTP Knowledge Connector for Convoflow.

Delegates retrieval to an external knowledge service that owns
ingestion (sheets, PDFs, URLs, vector stores).

Request (per source):
    POST {base_url}/search
    {"query": ..., "tenantId": ..., "source": {...compiled descriptor...}}

Response:
    {"results": [{"content": "...", "metadata": {...}}, ...]}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

import httpx

from .base import KnowledgeChunk, gather_per_source

if TYPE_CHECKING:
    from convoflow.compiler.models import KnowledgeSource

logger = logging.getLogger(__name__)


class HTTPKnowledgeConnector:
    """
    Knowledge connector backed by a retrieval HTTP service.

    Each source is queried independently; a failing source is logged
    and skipped.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = 10.0,
        limit_per_source: int = 5,
        client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._limit = limit_per_source
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {}
            if self._api_key:
                headers["Authorization"] = f"Bearer {self._api_key}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                headers=headers,
                timeout=self._timeout,
            )
        return self._client

    async def _search(
        self,
        query: str,
        source: "KnowledgeSource",
        tenant_id: str | None,
    ) -> list[KnowledgeChunk]:
        client = await self._get_client()
        response = await client.post(
            "/search",
            json={
                "query": query,
                "tenantId": tenant_id,
                "limit": self._limit,
                "source": source.model_dump(mode="json", by_alias=True),
            },
        )
        response.raise_for_status()
        results = response.json().get("results", [])
        return [
            KnowledgeChunk(
                content=str(item.get("content", "")),
                metadata={**(item.get("metadata") or {}), "sourceId": source.id},
            )
            for item in results
            if item.get("content")
        ]

    async def get_knowledge(
        self,
        query: str,
        sources: Sequence["KnowledgeSource"],
        tenant_id: str | None,
    ) -> list[KnowledgeChunk]:
        searchable = [s for s in sources if s.searchable]
        return await gather_per_source(query, searchable, tenant_id, self._search)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
