"""
Operator-assist collaborator.

When a human operator has joined a conversation, the engine's answer is
never sent to the end user. It is handed to the operator as a suggestion
instead.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Suggestion:
    """An engine answer offered to a human operator."""

    conversation_id: str
    tenant_id: str
    content: str | None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        return {
            "conversationId": self.conversation_id,
            "tenantId": self.tenant_id,
            "content": self.content,
            "metadata": dict(self.metadata),
            "createdAt": self.created_at.isoformat(),
        }


@runtime_checkable
class OperatorAssist(Protocol):
    """Protocol for the operator hand-off service."""

    async def is_conversation_assisted(self, conversation_id: str) -> bool:
        ...

    async def submit_suggestion(self, suggestion: Suggestion) -> None:
        ...


class InMemoryOperatorAssist:
    """
    Process-local operator presence.

    Example:
        assist = InMemoryOperatorAssist()
        assist.join("conv-1", operator_id="op-7")
        await assist.is_conversation_assisted("conv-1")   # True
    """

    def __init__(self) -> None:
        self._operators: dict[str, str] = {}
        self._suggestions: dict[str, list[Suggestion]] = {}

    def join(self, conversation_id: str, operator_id: str) -> None:
        self._operators[conversation_id] = operator_id
        logger.info(f"[assist] Operator joined | conversation={conversation_id} | operator={operator_id}")

    def leave(self, conversation_id: str) -> bool:
        removed = self._operators.pop(conversation_id, None) is not None
        if removed:
            logger.info(f"[assist] Operator left | conversation={conversation_id}")
        return removed

    def operator_for(self, conversation_id: str) -> str | None:
        return self._operators.get(conversation_id)

    def suggestions(self, conversation_id: str) -> list[Suggestion]:
        return list(self._suggestions.get(conversation_id, []))

    async def is_conversation_assisted(self, conversation_id: str) -> bool:
        return conversation_id in self._operators

    async def submit_suggestion(self, suggestion: Suggestion) -> None:
        self._suggestions.setdefault(suggestion.conversation_id, []).append(suggestion)
        logger.debug(f"[assist] Suggestion queued | conversation={suggestion.conversation_id}")
