"""
Knowledge Connector Protocol for Convoflow.

``get_knowledge(query, sources, tenant_id) -> [KnowledgeChunk]``.
Connectors must not raise because one source failed; partial results
are acceptable.
"""
from __future__ import annotations

import asyncio
import logging
import re
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from convoflow.compiler.models import KnowledgeSource

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r"[a-z0-9]+")


@dataclass(frozen=True)
class KnowledgeChunk:
    """A piece of retrieved content with its provenance."""

    content: str
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"content": self.content, "metadata": dict(self.metadata)}


@runtime_checkable
class KnowledgeConnector(Protocol):
    """Protocol for knowledge retrieval collaborators."""

    async def get_knowledge(
        self,
        query: str,
        sources: Sequence["KnowledgeSource"],
        tenant_id: str | None,
    ) -> list[KnowledgeChunk]:
        ...


async def gather_per_source(
    query: str,
    sources: Sequence["KnowledgeSource"],
    tenant_id: str | None,
    fetch,
) -> list[KnowledgeChunk]:
    """
    Query every source concurrently, dropping the ones that fail.

    ``fetch(query, source, tenant_id)`` returns a list of chunks.
    Results keep source order.
    """
    results = await asyncio.gather(
        *(fetch(query, source, tenant_id) for source in sources),
        return_exceptions=True,
    )
    chunks: list[KnowledgeChunk] = []
    for source, result in zip(sources, results):
        if isinstance(result, BaseException):
            logger.warning(
                f"[knowledge] Source failed | source={source.id} | "
                f"tenant={tenant_id} | error={result}"
            )
            continue
        chunks.extend(result)
    return chunks


def _tokens(text: str) -> set[str]:
    return set(_TOKEN.findall(text.lower()))


class InMemoryKnowledgeConnector:
    """
    Term-overlap retrieval over documents held in memory.

    Documents are grouped by collection name, matching the
    ``collection_name`` on compiled knowledge sources.

    Example:
        connector = InMemoryKnowledgeConnector()
        connector.add_document("tenant_acme_knowledge", "Refunds take 5 days.")
    """

    def __init__(self, limit_per_source: int = 5):
        self._limit = limit_per_source
        self._collections: dict[str, list[KnowledgeChunk]] = defaultdict(list)

    def add_document(
        self,
        collection_name: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self._collections[collection_name].append(
            KnowledgeChunk(content=content, metadata=dict(metadata or {}))
        )

    async def _search(
        self,
        query: str,
        source: "KnowledgeSource",
        tenant_id: str | None,
    ) -> list[KnowledgeChunk]:
        terms = _tokens(query)
        scored = []
        for position, chunk in enumerate(self._collections.get(source.collection_name, [])):
            overlap = len(terms & _tokens(chunk.content))
            if overlap:
                scored.append((-overlap, position, chunk))
        scored.sort(key=lambda item: (item[0], item[1]))
        return [
            KnowledgeChunk(
                content=chunk.content,
                metadata={**chunk.metadata, "sourceId": source.id, "score": -score},
            )
            for score, _, chunk in scored[: self._limit]
        ]

    async def get_knowledge(
        self,
        query: str,
        sources: Sequence["KnowledgeSource"],
        tenant_id: str | None,
    ) -> list[KnowledgeChunk]:
        searchable = [s for s in sources if s.searchable]
        return await gather_per_source(query, searchable, tenant_id, self._search)
