"""
Convoflow Providers

Collaborators the runtime consumes through narrow protocols.

Provider Types:
- LLM: OpenAILLMProvider, AnthropicLLMProvider
- Moderation: OpenAIModerationProvider, NoopModerationProvider
- Knowledge: HTTPKnowledgeConnector, InMemoryKnowledgeConnector
- Transport: WebhookTransport, NullTransport
"""

from .registry import ProviderConfig, ProviderRegistry

# LLM Providers
from .llm import (
    AnthropicLLMProvider,
    BaseLLMProvider,
    LLMConfig,
    LLMProvider,
    LLMResponse,
    Message,
    MessageRole,
    OpenAILLMProvider,
)

# Moderation Providers
from .moderation import (
    ModerationProvider,
    ModerationResult,
    NoopModerationProvider,
    OpenAIModerationProvider,
)

# Knowledge Connectors
from .knowledge import (
    HTTPKnowledgeConnector,
    InMemoryKnowledgeConnector,
    KnowledgeChunk,
    KnowledgeConnector,
)

# Transports
from .transport import NullTransport, RealtimeTransport, WebhookTransport

__all__ = [
    # Registry
    "ProviderConfig",
    "ProviderRegistry",
    # LLM
    "LLMProvider",
    "BaseLLMProvider",
    "LLMConfig",
    "LLMResponse",
    "Message",
    "MessageRole",
    "OpenAILLMProvider",
    "AnthropicLLMProvider",
    # Moderation
    "ModerationProvider",
    "ModerationResult",
    "NoopModerationProvider",
    "OpenAIModerationProvider",
    # Knowledge
    "KnowledgeConnector",
    "KnowledgeChunk",
    "InMemoryKnowledgeConnector",
    "HTTPKnowledgeConnector",
    # Transport
    "RealtimeTransport",
    "NullTransport",
    "WebhookTransport",
]
