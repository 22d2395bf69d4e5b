"""
Anthropic Messages API.

Claude takes the system prompt as a separate argument, so the assembled
``[system, ...turns]`` list is split before the request. Reply text is
the concatenation of the text blocks.
"""
from __future__ import annotations

from typing import Sequence

from .base import BaseLLMProvider, LLMConfig, LLMResponse, Message, MessageRole


def split_system(messages: Sequence[Message]) -> tuple[str, list[dict[str, str]]]:
    system = "\n\n".join(m.content for m in messages if m.role is MessageRole.SYSTEM)
    turns = [m.to_dict() for m in messages if m.role is not MessageRole.SYSTEM]
    return system, turns


class AnthropicLLMProvider(BaseLLMProvider):
    def __init__(self, api_key: str, model: str = "claude-3-5-haiku-latest"):
        super().__init__(default_model=model)
        self._api_key = api_key
        self._client = None

    @property
    def name(self) -> str:
        return "anthropic"

    def _get_client(self):
        if self._client is None:
            try:
                from anthropic import AsyncAnthropic
            except ImportError:
                raise ImportError(
                    "anthropic package is required for Anthropic LLM. "
                    "Install with: pip install anthropic"
                )
            self._client = AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def _request(
        self, messages: Sequence[Message], config: LLMConfig, model: str
    ) -> LLMResponse:
        system, turns = split_system(messages)
        response = await self._get_client().messages.create(
            model=model,
            system=system,
            messages=turns,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
        text = "".join(getattr(block, "text", "") for block in response.content or ())
        return LLMResponse(
            content=text,
            provider=self.name,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
