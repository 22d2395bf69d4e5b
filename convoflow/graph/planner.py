"""
Execution Planner.

Turns a validated graph into an addressable execution plan: an entry
point, per-node adjacency and a topological execution order.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable

from convoflow.errors import CompilationError, PlanningError

from .models import EdgeInput, GraphIndex, NodeInput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlanNode:
    """One node of the execution plan with its neighbours."""

    id: str
    kind: str
    data: dict[str, Any]
    next: tuple[str, ...] = ()
    previous: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "data": self.data,
            "next": list(self.next),
            "previous": list(self.previous),
        }


@dataclass(frozen=True)
class ExecutionPlan:
    """
    Ordered, addressable plan produced from a graph.

    Attributes:
        entry_point: First node with no incoming edge, in authored order
        graph: Node id -> PlanNode
        node_order: Topological order; every node appears exactly once
        entry_candidates: All nodes with no incoming edge
    """

    entry_point: str
    graph: dict[str, PlanNode]
    node_order: tuple[str, ...]
    entry_candidates: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "entryPoint": self.entry_point,
            "graph": {node_id: node.to_dict() for node_id, node in self.graph.items()},
            "nodeOrder": list(self.node_order),
        }


def topological_order(index: GraphIndex) -> list[int]:
    """
    Kahn's algorithm over arena indices.

    Zero in-degree nodes are seeded in authored order so the result is
    reproducible. Raises CompilationError if the queue does not drain,
    which means a cycle slipped past validation.
    """
    size = len(index)
    in_degree = [len(index.incoming[i]) for i in range(size)]
    queue = deque(i for i in range(size) if in_degree[i] == 0)
    order: list[int] = []

    while queue:
        current = queue.popleft()
        order.append(current)
        for neighbour in index.outgoing[current]:
            in_degree[neighbour] -= 1
            if in_degree[neighbour] == 0:
                queue.append(neighbour)

    if len(order) != size:
        stuck = [index.node_id(i) for i in range(size) if in_degree[i] > 0]
        raise CompilationError(
            f"Topological sort did not drain: {len(stuck)} node(s) still have "
            f"incoming edges ({', '.join(stuck)}); validator and planner disagree"
        )
    return order


class ExecutionPlanner:
    """
    Builds ExecutionPlans from graphs that already passed validation.

    Example:
        plan = ExecutionPlanner().plan(nodes, edges)
        for node_id in plan.node_order:
            ...
    """

    def plan(
        self,
        nodes: Iterable[NodeInput],
        edges: Iterable[EdgeInput],
    ) -> ExecutionPlan:
        return self.plan_index(GraphIndex.build(nodes, edges))

    def plan_index(self, index: GraphIndex) -> ExecutionPlan:
        if index.dangling or index.duplicate_ids:
            raise CompilationError("Planner received a graph that was not validated")

        roots = index.roots()
        if not roots:
            raise PlanningError("No entry point found in workflow")

        graph: dict[str, PlanNode] = {}
        for position, node in enumerate(index.nodes):
            graph[node.id] = PlanNode(
                id=node.id,
                kind=node.type,
                data=node.data,
                next=tuple(index.node_id(i) for i in index.outgoing[position]),
                previous=tuple(index.node_id(i) for i in index.incoming[position]),
            )

        order = topological_order(index)
        candidates = tuple(index.node_id(i) for i in roots)

        if len(candidates) > 1:
            logger.debug(
                f"[planner] Multiple entry candidates | picked={candidates[0]} | "
                f"candidates={list(candidates)}"
            )

        return ExecutionPlan(
            entry_point=candidates[0],
            graph=graph,
            node_order=tuple(index.node_id(i) for i in order),
            entry_candidates=candidates,
        )
