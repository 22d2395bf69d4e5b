"""
LLM Providers for Convoflow.

- OpenAILLMProvider: GPT-4o and GPT-4o-mini
- AnthropicLLMProvider: Claude models
"""

from .base import BaseLLMProvider, LLMConfig, LLMProvider, LLMResponse, Message, MessageRole
from .claude import AnthropicLLMProvider
from .openai import OpenAILLMProvider

__all__ = [
    # Protocol and base
    "LLMProvider",
    "BaseLLMProvider",
    "LLMConfig",
    "LLMResponse",
    "Message",
    "MessageRole",
    # Implementations
    "OpenAILLMProvider",
    "AnthropicLLMProvider",
]
