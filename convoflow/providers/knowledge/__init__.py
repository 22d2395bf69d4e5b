"""
Knowledge Connectors for Convoflow.
"""

from .base import (
    InMemoryKnowledgeConnector,
    KnowledgeChunk,
    KnowledgeConnector,
    gather_per_source,
)
from .http import HTTPKnowledgeConnector

__all__ = [
    "KnowledgeChunk",
    "KnowledgeConnector",
    "InMemoryKnowledgeConnector",
    "HTTPKnowledgeConnector",
    "gather_per_source",
]
