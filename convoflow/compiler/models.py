"""
Compiled Configuration schema.

The Chain Compiler's output. JSON-serializable so it can be stored in a
version snapshot and reloaded; frozen so a compiled configuration is
never patched in place. A change produces a new configuration.

Serialized field names are camelCase (``entryPoint``, ``rootSystem``);
Python attributes are snake_case.

Usage:
    config = compiler.compile(nodes, edges, tenant_id="acme")
    payload = config.to_dict()
    restored = CompiledConfiguration.from_dict(payload)
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


def _utc_now() -> datetime:
    return datetime.now(UTC)


class _Compiled(BaseModel):
    class Config:
        frozen = True
        populate_by_name = True
        alias_generator = to_camel


# =============================================================================
# Prompts
# =============================================================================


class PersonaPrompt(_Compiled):
    """
    Compiled persona.

    ``system_prompt`` is precomputed as the platform root prompt followed
    by the persona, tone and personality lines.
    """

    user_prompt: str
    tone: str = "professional"
    personality: str = "helpful"
    system_prompt: str


class ModerationPolicy(_Compiled):
    """
    Moderation posture.

    Enabled at medium strictness unless a moderation node adjusts it.
    A node can change strictness and filters but cannot switch moderation off.
    """

    enabled: bool = True
    level: str = "medium"
    custom_filters: tuple[str, ...] = ()
    use_provider_moderation: bool = True


class PromptHierarchy(_Compiled):
    root_system: str
    persona: PersonaPrompt | None = None
    moderation: ModerationPolicy = Field(default_factory=ModerationPolicy)


# =============================================================================
# Knowledge
# =============================================================================


class KnowledgeSource(_Compiled):
    """Descriptor for one bound knowledge source."""

    id: str
    source_type: str
    config: dict[str, Any] = Field(default_factory=dict)
    collection_name: str
    searchable: bool = True


class KnowledgeBindings(_Compiled):
    sources: tuple[KnowledgeSource, ...] = ()


# =============================================================================
# Routing
# =============================================================================


class RouteCondition(_Compiled):
    """
    One authored routing predicate.

    Types:
        contains: case-insensitive substring match on ``value``
        keyword: any of a comma-separated (or list) ``value`` present
        intent: reserved, never matches
    """

    type: str = "contains"
    value: str | list[str] = ""
    target: str | None = None

    class Config:
        extra = "allow"


class RouterRule(_Compiled):
    """Compiled router node; conditions keep their authored order."""

    id: str
    conditions: tuple[RouteCondition, ...] = ()
    default_route: str | None = None
    type: str = "conditional"


class Escalation(_Compiled):
    enabled: bool = False
    type: str = "operator"


class FallbackDescriptor(_Compiled):
    message: str
    escalation: Escalation = Field(default_factory=Escalation)


class RoutingTable(_Compiled):
    conditions: tuple[RouterRule, ...] = ()
    fallback: FallbackDescriptor | None = None

    @property
    def has_conditions(self) -> bool:
        """True if any router carries at least one predicate."""
        return any(rule.conditions for rule in self.conditions)


# =============================================================================
# Configuration
# =============================================================================


class CompiledStep(_Compiled):
    kind: str
    data: dict[str, Any] = Field(default_factory=dict)
    next: tuple[str, ...] = ()
    compiled: bool = True


class CompilationMetadata(_Compiled):
    """Bookkeeping. ``compiled_at`` and ``compilation_ms`` vary between runs."""

    node_count: int = 0
    edge_count: int = 0
    compiled_at: datetime = Field(default_factory=_utc_now)
    compilation_ms: float = 0.0


class CompiledConfiguration(_Compiled):
    """
    Executable, platform-guarded representation of a workflow graph.

    Attributes:
        tenant_id: Owning tenant (None for platform-level workflows)
        entry_point: Node execution starts from
        steps: Node id -> compiled step, in topological order
        prompts: Root prompt, persona and moderation policy
        knowledge: Bound knowledge sources
        routing: Router rules and optional fallback
        metadata: Compilation bookkeeping
    """

    tenant_id: str | None = None
    entry_point: str
    steps: dict[str, CompiledStep] = Field(default_factory=dict)
    prompts: PromptHierarchy
    knowledge: KnowledgeBindings = Field(default_factory=KnowledgeBindings)
    routing: RoutingTable = Field(default_factory=RoutingTable)
    metadata: CompilationMetadata = Field(default_factory=CompilationMetadata)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "CompiledConfiguration":
        return cls.model_validate(payload)

    def fingerprint(self) -> dict[str, Any]:
        """Serialized form without the run-dependent metadata."""
        payload = self.to_dict()
        payload.pop("metadata", None)
        return payload
