"""
Prompt assembly.

Order is fixed: root system prompt, then persona, then knowledge
context. Earlier text takes precedence when instructions conflict.

The root prompt appears exactly once. The compiled persona prompt already
opens with it, so the persona prompt stands in for the bare root instead
of being appended after a second copy of it.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Sequence

from convoflow.providers.llm import Message, MessageRole

if TYPE_CHECKING:
    from convoflow.compiler.models import PromptHierarchy
    from convoflow.providers.knowledge import KnowledgeChunk

KNOWLEDGE_HEADER = "Relevant Knowledge:"
DEFAULT_HISTORY_WINDOW = 10


def knowledge_context(chunks: Sequence["KnowledgeChunk"]) -> str:
    return "\n".join(chunk.content for chunk in chunks if chunk.content)


def build_system_prompt(prompts: "PromptHierarchy", context: str = "") -> str:
    """
    Assemble the final system prompt.

    The compiled persona prompt already starts with the root prompt, so
    it replaces the bare root rather than repeating it.
    """
    if prompts.persona is not None:
        system_prompt = prompts.persona.system_prompt
    else:
        system_prompt = prompts.root_system

    if context:
        system_prompt += f"\n\n{KNOWLEDGE_HEADER}\n{context}"
    return system_prompt


def _history_message(entry: Message | Mapping[str, Any]) -> Message | None:
    message = entry if isinstance(entry, Message) else Message.from_dict(entry)
    # History never gets to inject its own system instructions
    if message.role is MessageRole.SYSTEM:
        return None
    return message


def build_messages(
    system_prompt: str,
    history: Sequence[Message | Mapping[str, Any]],
    user_message: str,
    history_window: int = DEFAULT_HISTORY_WINDOW,
) -> list[Message]:
    """[system, ...last ``history_window`` history entries, user]."""
    recent = list(history)[-history_window:] if history_window > 0 else []
    turns = [m for m in (_history_message(e) for e in recent) if m is not None]
    return [Message.system(system_prompt), *turns, Message.user(user_message)]
