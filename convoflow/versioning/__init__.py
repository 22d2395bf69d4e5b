"""
Convoflow Versioning

Persisted workflows, version snapshots and the publish/rollback lifecycle.
"""

from .models import (
    DEFAULT_NODE_WEIGHT,
    NODE_WEIGHTS,
    VersionMetrics,
    Workflow,
    WorkflowStatus,
    WorkflowVersion,
    complexity_score,
    graph_payload,
)
from .service import WorkflowService
from .store import DEFAULT_HISTORY_LIMIT, InMemoryWorkflowStore, MongoWorkflowStore, WorkflowStore

__all__ = [
    # Service
    "WorkflowService",
    # Records
    "Workflow",
    "WorkflowStatus",
    "WorkflowVersion",
    "VersionMetrics",
    "complexity_score",
    "graph_payload",
    "NODE_WEIGHTS",
    "DEFAULT_NODE_WEIGHT",
    # Stores
    "WorkflowStore",
    "InMemoryWorkflowStore",
    "MongoWorkflowStore",
    "DEFAULT_HISTORY_LIMIT",
]
