"""
OpenAI chat completions.

The SDK client is built on first use, so constructing the provider at
bootstrap needs neither network access nor a valid key.
"""
from __future__ import annotations

from typing import Any, Sequence

from .base import BaseLLMProvider, LLMConfig, LLMResponse, Message


class OpenAILLMProvider(BaseLLMProvider):
    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        organization: str | None = None,
        client: Any | None = None,
    ):
        super().__init__(default_model=model)
        self._api_key = api_key
        self._organization = organization
        self._client = client

    @property
    def name(self) -> str:
        return "openai"

    def _get_client(self):
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise ImportError(
                    "openai package is required for OpenAI LLM. Install with: pip install openai"
                )
            self._client = AsyncOpenAI(api_key=self._api_key, organization=self._organization)
        return self._client

    async def _request(
        self, messages: Sequence[Message], config: LLMConfig, model: str
    ) -> LLMResponse:
        response = await self._get_client().chat.completions.create(
            model=model,
            messages=[message.to_dict() for message in messages],
            temperature=config.temperature,
            max_tokens=config.max_tokens,
        )
        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            provider=self.name,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )
