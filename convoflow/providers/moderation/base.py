"""
Moderation Provider Protocol for Convoflow.

``classify(text) -> ModerationResult``. The engine fails open: if a
provider raises or times out the text is treated as not flagged.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ModerationResult:
    """
    Classification of a piece of text.

    Attributes:
        flagged: Whether the text violates policy
        categories: Category name -> flagged
        reason: First flagged category, if any
        provider: Name of the classifying provider
    """

    flagged: bool
    categories: dict[str, bool] = field(default_factory=dict)
    reason: str | None = None
    provider: str = ""

    @classmethod
    def clean(cls, provider: str = "") -> "ModerationResult":
        return cls(flagged=False, provider=provider)

    def to_dict(self) -> dict[str, Any]:
        return {
            "flagged": self.flagged,
            "categories": dict(self.categories),
            "reason": self.reason,
            "provider": self.provider,
        }


@runtime_checkable
class ModerationProvider(Protocol):
    """Protocol for content moderation providers."""

    @property
    def name(self) -> str:
        ...

    async def classify(self, text: str) -> ModerationResult:
        """Classify text; may raise on provider failure."""
        ...


class NoopModerationProvider:
    """Never flags anything. For local development without a provider key."""

    @property
    def name(self) -> str:
        return "noop"

    async def classify(self, text: str) -> ModerationResult:
        return ModerationResult.clean(provider=self.name)
