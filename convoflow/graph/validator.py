"""
Graph Validator.

Checks an authored graph for structural soundness before compilation.
All rules run; errors are accumulated so the editor can display every
problem at once.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping

from .models import (
    EdgeInput,
    GraphIndex,
    KnowledgeSourceType,
    Node,
    NodeInput,
    NodeKind,
)

logger = logging.getLogger(__name__)

# Nodes untouched by any edge once wiring has begun; one is tolerated as a
# not-yet-wired start. A graph with no edges at all runs in authored order.
MAX_ORPHANED_NODES = 1

CYCLE_ERROR = "Workflow contains cycles which may cause infinite loops"
MISSING_PERSONA_ERROR = "Workflow must include at least one Persona node"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a graph."""

    valid: bool
    errors: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors)}


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


# =============================================================================
# Per-kind payload checks
# =============================================================================


def _check_persona(node: Node) -> list[str]:
    if _is_blank(node.data.get("prompt")):
        return [f"Persona node {node.id} must have a prompt"]
    return []


def _check_knowledge(node: Node) -> list[str]:
    source_type = node.data.get("sourceType")
    if not source_type:
        return [f"Knowledge node {node.id} must have a source type"]
    try:
        kind = KnowledgeSourceType(source_type)
    except ValueError:
        return [f"Knowledge node {node.id} has unsupported source type '{source_type}'"]

    config = node.data.get("config")
    if not isinstance(config, Mapping):
        config = {}

    if kind is KnowledgeSourceType.GOOGLE_SHEETS and not config.get("sheetId"):
        return [f"Knowledge node {node.id} with Google Sheets source must have a sheet ID"]
    if kind in (KnowledgeSourceType.PDF, KnowledgeSourceType.URL):
        if not config.get("url") and not config.get("filePath"):
            return [f"Knowledge node {node.id} must have a URL or file path"]
    if kind is KnowledgeSourceType.VECTOR_STORE and not config.get("collectionName"):
        return [
            f"Knowledge node {node.id} with vector store source must have a collection name"
        ]
    return []


def _check_moderation(node: Node) -> list[str]:
    # Platform defaults cover everything a moderation node leaves out
    return []


def _check_router(node: Node) -> list[str]:
    if not isinstance(node.data.get("conditions"), list):
        return [f"Router node {node.id} must have conditions array"]
    return []


def _check_fallback(node: Node) -> list[str]:
    if _is_blank(node.data.get("message")):
        return [f"Fallback node {node.id} must have a message"]
    return []


NODE_CHECKS: dict[NodeKind, Callable[[Node], list[str]]] = {
    NodeKind.PERSONA: _check_persona,
    NodeKind.KNOWLEDGE: _check_knowledge,
    NodeKind.MODERATION: _check_moderation,
    NodeKind.ROUTER: _check_router,
    NodeKind.FALLBACK: _check_fallback,
}


# =============================================================================
# Validator
# =============================================================================


def has_cycle(index: GraphIndex) -> bool:
    """
    Iterative DFS with an explicit recursion stack.

    A back-edge into a node still on the stack means a cycle; the cycle
    path itself is not reconstructed.
    """
    size = len(index)
    visited = [False] * size
    on_stack = [False] * size

    for start in range(size):
        if visited[start]:
            continue
        visited[start] = True
        on_stack[start] = True
        stack: list[tuple[int, int]] = [(start, 0)]

        while stack:
            current, cursor = stack[-1]
            neighbours = index.outgoing[current]
            if cursor >= len(neighbours):
                stack.pop()
                on_stack[current] = False
                continue
            stack[-1] = (current, cursor + 1)
            nxt = neighbours[cursor]
            if on_stack[nxt]:
                return True
            if not visited[nxt]:
                visited[nxt] = True
                on_stack[nxt] = True
                stack.append((nxt, 0))
    return False


class GraphValidator:
    """
    Validates node/edge graphs authored in the workflow editor.

    Pure: no side effects and no I/O.

    Example:
        result = GraphValidator().validate(nodes, edges)
        if not result.valid:
            show(result.errors)
    """

    def validate(
        self,
        nodes: Iterable[NodeInput],
        edges: Iterable[EdgeInput],
    ) -> ValidationResult:
        return self.validate_index(GraphIndex.build(nodes, edges))

    def validate_index(self, index: GraphIndex) -> ValidationResult:
        errors: list[str] = []

        if not any(node.kind is NodeKind.PERSONA for node in index.nodes):
            errors.append(MISSING_PERSONA_ERROR)

        for duplicate in index.duplicate_ids:
            errors.append(f"Duplicate node id: {duplicate}")

        for node in index.nodes:
            kind = node.kind
            if kind is None:
                errors.append(f"Unknown node type '{node.type}' on node {node.id}")
                continue
            errors.extend(NODE_CHECKS[kind](node))

        for edge in index.dangling:
            errors.append(
                f"Edge {edge.id} references a non-existent node (dangling edge): "
                f"{edge.source} -> {edge.target}"
            )

        if index.edges:
            touched = index.touched_ids()
            orphaned = [node.id for node in index.nodes if node.id not in touched]
            if len(orphaned) > MAX_ORPHANED_NODES:
                errors.append(f"Found {len(orphaned)} orphaned nodes")

        if has_cycle(index):
            errors.append(CYCLE_ERROR)

        if errors:
            logger.debug(f"[validator] Graph rejected | errors={len(errors)}")
        return ValidationResult(valid=not errors, errors=tuple(errors))
