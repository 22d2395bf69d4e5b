"""
Chain Compiler.

Validates a graph, plans it, and folds the plan into a tenant-scoped
CompiledConfiguration. The platform root prompt is injected here and is
never read from any node payload.

Flow:
    1. GraphValidator.validate_index -> ValidationError with every problem
    2. ExecutionPlanner.plan_index -> ExecutionPlan (PlanningError if no entry)
    3. Fold over plan.node_order, dispatching on NodeKind
    4. Freeze the result into a CompiledConfiguration

Tie-breaks:
    - Multiple fallback nodes: the last one in node_order wins.
    - Multiple persona nodes: the last one in node_order wins.
    - Multiple moderation nodes: the last one in node_order wins.
    - Router nodes accumulate in node_order; first match wins at runtime.
"""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from convoflow.errors import CompilationError, ValidationError
from convoflow.graph import (
    ExecutionPlan,
    ExecutionPlanner,
    GraphIndex,
    GraphValidator,
    NodeKind,
    PlanNode,
    ValidationResult,
)
from convoflow.graph.models import EdgeInput, NodeInput

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

logger = logging.getLogger(__name__)

ROOT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. You must follow all safety guidelines and "
    "provide accurate, helpful responses. Never generate harmful, illegal, or "
    "inappropriate content. Always maintain a professional and respectful tone."
)

DEFAULT_PERSONA_PROMPT = "You are a helpful assistant."
DEFAULT_TONE = "professional"
DEFAULT_PERSONALITY = "helpful"
DEFAULT_FALLBACK_MESSAGE = "I apologize, but I don't understand your request."


def compose_persona_prompt(root: str, prompt: str, tone: str, personality: str) -> str:
    return f"{root}\n\nPersona: {prompt}\nTone: {tone}\nPersonality: {personality}"


def default_collection_name(tenant_id: str | None) -> str:
    return f"tenant_{tenant_id}_knowledge"


@dataclass
class _ChainState:
    """Mutable accumulator used while folding over the plan."""

    persona: PersonaPrompt | None = None
    moderation: ModerationPolicy = field(default_factory=ModerationPolicy)
    sources: list[KnowledgeSource] = field(default_factory=list)
    rules: list[RouterRule] = field(default_factory=list)
    fallback: FallbackDescriptor | None = None
    steps: dict[str, CompiledStep] = field(default_factory=dict)


class ChainCompiler:
    """
    Compiles authored graphs into CompiledConfigurations.

    Deterministic: compiling the same graph for the same tenant twice
    yields identical configurations apart from ``metadata.compiled_at``
    and ``metadata.compilation_ms``.

    Example:
        compiler = ChainCompiler()
        config = compiler.compile(nodes, edges, tenant_id="acme")
    """

    def __init__(
        self,
        validator: GraphValidator | None = None,
        planner: ExecutionPlanner | None = None,
    ):
        self._validator = validator or GraphValidator()
        self._planner = planner or ExecutionPlanner()
        self._handlers: dict[NodeKind, Callable[[PlanNode, _ChainState, str | None], None]] = {
            NodeKind.PERSONA: self._compile_persona,
            NodeKind.KNOWLEDGE: self._compile_knowledge,
            NodeKind.MODERATION: self._compile_moderation,
            NodeKind.ROUTER: self._compile_router,
            NodeKind.FALLBACK: self._compile_fallback,
        }

    @property
    def root_system_prompt(self) -> str:
        return ROOT_SYSTEM_PROMPT

    def validate(
        self, nodes: Iterable[NodeInput], edges: Iterable[EdgeInput]
    ) -> ValidationResult:
        return self._validator.validate(nodes, edges)

    def compile(
        self,
        nodes: Iterable[NodeInput],
        edges: Iterable[EdgeInput],
        tenant_id: str | None,
    ) -> CompiledConfiguration:
        """
        Compile a graph for a tenant.

        Raises:
            ValidationError: Graph is invalid (all errors aggregated)
            PlanningError: Graph has no entry point
            CompilationError: Internal inconsistency
        """
        _, config = self.compile_with_plan(nodes, edges, tenant_id)
        return config

    def compile_with_plan(
        self,
        nodes: Iterable[NodeInput],
        edges: Iterable[EdgeInput],
        tenant_id: str | None,
    ) -> tuple[ExecutionPlan, CompiledConfiguration]:
        """Compile and also return the ExecutionPlan the config was built from."""
        started = time.perf_counter()
        index = GraphIndex.build(nodes, edges)

        result = self._validator.validate_index(index)
        if not result.valid:
            raise ValidationError(result.errors)

        plan = self._planner.plan_index(index)

        try:
            state = _ChainState()
            for node_id in plan.node_order:
                node = plan.graph[node_id]
                kind = NodeKind(node.kind)
                handler = self._handlers.get(kind)
                if handler is None:
                    raise CompilationError(f"No compiler for node kind '{kind.value}'")
                handler(node, state, tenant_id)
                state.steps[node.id] = CompiledStep(
                    kind=kind.value,
                    data=copy.deepcopy(node.data),
                    next=node.next,
                )
            config = self._freeze(state, plan, tenant_id, index, started)
        except CompilationError:
            logger.error(
                f"[compiler] Internal compilation error | tenant={tenant_id}",
                exc_info=True,
            )
            raise
        except ValueError as e:
            # Unknown kinds are rejected by the validator; reaching here is a defect
            logger.error(
                f"[compiler] Internal compilation error | tenant={tenant_id}",
                exc_info=True,
            )
            raise CompilationError(str(e)) from e

        logger.info(
            f"[compiler] Compiled workflow | tenant={tenant_id} | "
            f"nodes={len(index.nodes)} | edges={len(index.edges)} | "
            f"entry={plan.entry_point} | {config.metadata.compilation_ms:.1f}ms"
        )
        return plan, config

    def _freeze(
        self,
        state: _ChainState,
        plan: ExecutionPlan,
        tenant_id: str | None,
        index: GraphIndex,
        started: float,
    ) -> CompiledConfiguration:
        return CompiledConfiguration(
            tenant_id=tenant_id,
            entry_point=plan.entry_point,
            steps=state.steps,
            prompts=PromptHierarchy(
                root_system=ROOT_SYSTEM_PROMPT,
                persona=state.persona,
                moderation=state.moderation,
            ),
            knowledge=KnowledgeBindings(sources=tuple(state.sources)),
            routing=RoutingTable(conditions=tuple(state.rules), fallback=state.fallback),
            metadata=CompilationMetadata(
                node_count=len(index.nodes),
                edge_count=len(index.edges),
                compilation_ms=(time.perf_counter() - started) * 1000,
            ),
        )

    # ==================== Node handlers ====================

    def _compile_persona(self, node: PlanNode, state: _ChainState, tenant_id: str | None) -> None:
        data = node.data
        prompt = data.get("prompt") or DEFAULT_PERSONA_PROMPT
        tone = data.get("tone") or DEFAULT_TONE
        personality = data.get("personality") or DEFAULT_PERSONALITY
        state.persona = PersonaPrompt(
            user_prompt=prompt,
            tone=tone,
            personality=personality,
            system_prompt=compose_persona_prompt(ROOT_SYSTEM_PROMPT, prompt, tone, personality),
        )

    def _compile_knowledge(self, node: PlanNode, state: _ChainState, tenant_id: str | None) -> None:
        config = node.data.get("config")
        config = copy.deepcopy(dict(config)) if isinstance(config, Mapping) else {}
        state.sources.append(
            KnowledgeSource(
                id=node.id,
                source_type=node.data["sourceType"],
                config=config,
                collection_name=config.get("collectionName") or default_collection_name(tenant_id),
                searchable=True,
            )
        )

    def _compile_moderation(self, node: PlanNode, state: _ChainState, tenant_id: str | None) -> None:
        filters = node.data.get("filters") or []
        state.moderation = ModerationPolicy(
            enabled=True,
            level=node.data.get("strictness") or "medium",
            custom_filters=tuple(str(f) for f in filters),
            use_provider_moderation=True,
        )

    def _compile_router(self, node: PlanNode, state: _ChainState, tenant_id: str | None) -> None:
        conditions = [
            RouteCondition.model_validate(copy.deepcopy(c))
            for c in node.data.get("conditions") or []
            if isinstance(c, Mapping)
        ]
        state.rules.append(
            RouterRule(
                id=node.id,
                conditions=tuple(conditions),
                default_route=node.data.get("defaultRoute"),
            )
        )

    def _compile_fallback(self, node: PlanNode, state: _ChainState, tenant_id: str | None) -> None:
        escalation = node.data.get("escalation")
        if not isinstance(escalation, Mapping):
            escalation = {}
        state.fallback = FallbackDescriptor(
            message=node.data.get("message") or DEFAULT_FALLBACK_MESSAGE,
            escalation=Escalation(
                enabled=bool(escalation.get("enabled", False)),
                type=escalation.get("type") or "operator",
            ),
        )
