"""
Convoflow Graph

Authored workflow graphs: data model, validation and execution planning.
"""

from .models import (
    Edge,
    GraphIndex,
    KnowledgeSourceType,
    Node,
    NodeKind,
    Position,
    parse_edges,
    parse_nodes,
)
from .planner import ExecutionPlan, ExecutionPlanner, PlanNode, topological_order
from .validator import GraphValidator, ValidationResult, has_cycle

__all__ = [
    # Model
    "Edge",
    "GraphIndex",
    "KnowledgeSourceType",
    "Node",
    "NodeKind",
    "Position",
    "parse_edges",
    "parse_nodes",
    # Validation
    "GraphValidator",
    "ValidationResult",
    "has_cycle",
    # Planning
    "ExecutionPlan",
    "ExecutionPlanner",
    "PlanNode",
    "topological_order",
]
