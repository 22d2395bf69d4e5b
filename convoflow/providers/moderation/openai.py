"""
OpenAI Moderation Provider for Convoflow.

Uses the OpenAI moderations endpoint.
"""

from __future__ import annotations

import logging
from typing import Any

from .base import ModerationResult

logger = logging.getLogger(__name__)


class OpenAIModerationProvider:
    """
    Content classification via OpenAI's moderation API.

    Errors propagate; failing open is the engine's decision.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "omni-moderation-latest",
        client: Any | None = None,
    ):
        self._api_key = api_key
        self._model = model
        self._client = client

    @property
    def name(self) -> str:
        return "openai"

    def _get_client(self):
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            try:
                from openai import AsyncOpenAI
            except ImportError:
                raise ImportError(
                    "openai package is required for OpenAI moderation. "
                    "Install with: pip install openai"
                )
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def classify(self, text: str) -> ModerationResult:
        client = self._get_client()
        response = await client.moderations.create(model=self._model, input=text)
        result = response.results[0]

        raw = result.categories
        categories = raw.model_dump() if hasattr(raw, "model_dump") else dict(raw)
        categories = {name: bool(value) for name, value in categories.items()}
        reason = next((name for name, hit in categories.items() if hit), None)

        if result.flagged:
            logger.debug(f"[moderation] OpenAI flagged content | reason={reason}")

        return ModerationResult(
            flagged=bool(result.flagged),
            categories=categories,
            reason=reason if result.flagged else None,
            provider=self.name,
        )
