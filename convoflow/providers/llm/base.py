"""
Language-model collaborator.

The engine makes exactly one model call per execution:
``complete([system, ...history, user], sampling) -> LLMResponse``.
Sampling is fixed per deployment (``LLMConfig.from_settings``); workflows
cannot change it. Chat history arrives from callers as plain
``{"role", "content"}`` mappings and is parsed with ``Message.from_dict``.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Protocol, Sequence, runtime_checkable

if TYPE_CHECKING:
    from convoflow.config import AppSettings

logger = logging.getLogger(__name__)


class MessageRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """One turn of the conversation sent to the model."""

    role: MessageRole
    content: str

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Message":
        """
        Parse a chat-history entry.

        A missing role means the end user; ``content`` is coerced to text.

        Raises:
            ValueError: Role is not system, user or assistant
        """
        return cls(
            role=MessageRole(payload.get("role") or MessageRole.USER.value),
            content=str(payload.get("content") or ""),
        )

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role=MessageRole.SYSTEM, content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role=MessageRole.USER, content=content)

    @classmethod
    def assistant(cls, content: str) -> "Message":
        return cls(role=MessageRole.ASSISTANT, content=content)

    def to_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class LLMConfig:
    """
    Sampling parameters shared by every tenant of a deployment.

    ``model`` overrides the provider's default model when set.
    """

    temperature: float = 0.7
    max_tokens: int = 1000
    model: str | None = None

    @classmethod
    def from_settings(cls, settings: "AppSettings") -> "LLMConfig":
        return cls(temperature=settings.temperature, max_tokens=settings.max_tokens)


@dataclass(frozen=True)
class LLMResponse:
    """Model reply. Token counts are zero when the provider does not report them."""

    content: str
    provider: str = ""
    input_tokens: int = 0
    output_tokens: int = 0


@runtime_checkable
class LLMProvider(Protocol):
    @property
    def name(self) -> str:
        ...

    async def complete(
        self,
        messages: Sequence[Message],
        config: LLMConfig | None = None,
    ) -> LLMResponse:
        ...


class BaseLLMProvider(ABC):
    """
    Shared plumbing for SDK-backed providers.

    Subclasses implement ``_request`` against their SDK; ``complete``
    resolves the model and logs failures before letting them propagate.
    The engine owns timeouts and error wrapping.
    """

    def __init__(self, default_model: str):
        self.default_model = default_model

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    async def _request(
        self, messages: Sequence[Message], config: LLMConfig, model: str
    ) -> LLMResponse:
        ...

    async def complete(
        self,
        messages: Sequence[Message],
        config: LLMConfig | None = None,
    ) -> LLMResponse:
        config = config or LLMConfig()
        model = config.model or self.default_model
        try:
            return await self._request(messages, config, model)
        except Exception as e:
            logger.error(f"[llm] Completion failed | provider={self.name} | model={model} | error={e}")
            raise

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', model='{self.default_model}')"
