"""
Pytest configuration and fixtures for Convoflow tests.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add the repository root to path for imports
# This allows `from convoflow.graph import ...` to work
repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from builders import edge, node  # noqa: E402
from convoflow.providers.llm import LLMResponse  # noqa: E402
from convoflow.providers.moderation import ModerationResult  # noqa: E402


# =============================================================================
# Graph payloads (editor JSON)
# =============================================================================


@pytest.fixture
def persona_only():
    """Smallest valid graph: one persona node, no edges."""
    return [node("p1", "persona", prompt="You help customers of Acme.")], []


@pytest.fixture
def support_graph():
    """
    persona -> moderation -> knowledge -> router -> fallback

    Router matches 'refund' (contains) or 'billing, invoice' (keyword).
    """
    nodes = [
        node("p1", "persona", prompt="You are Acme's support agent.", tone="friendly"),
        node("m1", "moderation", strictness="high", filters=["crypto"]),
        node(
            "k1",
            "knowledge",
            sourceType="vector_store",
            config={"collectionName": "acme_docs"},
        ),
        node(
            "r1",
            "router",
            conditions=[
                {"type": "contains", "value": "refund", "target": "refunds"},
                {"type": "keyword", "value": "billing, invoice", "target": "billing"},
            ],
        ),
        node(
            "f1",
            "fallback",
            message="Let me connect you with a human.",
            escalation={"enabled": True, "type": "operator"},
        ),
    ]
    edges = [edge("p1", "m1"), edge("m1", "k1"), edge("k1", "r1"), edge("r1", "f1")]
    return nodes, edges


# =============================================================================
# Collaborator mocks
# =============================================================================


@pytest.fixture
def mock_llm():
    llm = MagicMock()
    llm.name = "mock"
    llm.complete = AsyncMock(
        return_value=LLMResponse(content="Hello! How can I help you today?", provider="mock")
    )
    return llm


@pytest.fixture
def mock_moderation():
    moderation = MagicMock()
    moderation.name = "mock"
    moderation.classify = AsyncMock(return_value=ModerationResult.clean(provider="mock"))
    return moderation


@pytest.fixture
def mock_knowledge():
    knowledge = MagicMock()
    knowledge.get_knowledge = AsyncMock(return_value=[])
    return knowledge


@pytest.fixture
def mock_transport():
    transport = MagicMock()
    transport.broadcast_to_tenant = AsyncMock(return_value=None)
    return transport
