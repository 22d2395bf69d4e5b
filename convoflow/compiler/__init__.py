"""
Convoflow Compiler

Turns validated graphs into immutable, tenant-scoped compiled configurations.
"""

from .compiler import (
    DEFAULT_FALLBACK_MESSAGE,
    ROOT_SYSTEM_PROMPT,
    ChainCompiler,
    compose_persona_prompt,
    default_collection_name,
)
from .models import (
    CompilationMetadata,
    CompiledConfiguration,
    CompiledStep,
    Escalation,
    FallbackDescriptor,
    KnowledgeBindings,
    KnowledgeSource,
    ModerationPolicy,
    PersonaPrompt,
    PromptHierarchy,
    RouteCondition,
    RouterRule,
    RoutingTable,
)

__all__ = [
    # Compiler
    "ChainCompiler",
    "ROOT_SYSTEM_PROMPT",
    "DEFAULT_FALLBACK_MESSAGE",
    "compose_persona_prompt",
    "default_collection_name",
    # Compiled configuration
    "CompiledConfiguration",
    "CompiledStep",
    "CompilationMetadata",
    "PromptHierarchy",
    "PersonaPrompt",
    "ModerationPolicy",
    "KnowledgeBindings",
    "KnowledgeSource",
    "RoutingTable",
    "RouterRule",
    "RouteCondition",
    "FallbackDescriptor",
    "Escalation",
]
