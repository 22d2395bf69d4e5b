"""
Versioning Schemas for Convoflow.

Pydantic models for workflow records and their version snapshots, as
stored in the ``workflows`` and ``workflow_versions`` collections.
"""

from __future__ import annotations

import copy
import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, Field

from convoflow.compiler import CompiledConfiguration
from convoflow.graph import NodeKind
from convoflow.runtime import RuntimeWorkflow


def _utc_now() -> datetime:
    """Get current UTC time with timezone awareness."""
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


class WorkflowStatus(str, Enum):
    """Lifecycle: draft -> published -> archived."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


# Per-node complexity weights; kinds not listed weigh DEFAULT_NODE_WEIGHT
NODE_WEIGHTS: dict[str, float] = {
    NodeKind.ROUTER.value: 2.0,
    NodeKind.KNOWLEDGE.value: 1.5,
    NodeKind.MODERATION.value: 1.0,
}
DEFAULT_NODE_WEIGHT = 0.5


def _node_type(node: Mapping[str, Any]) -> str | None:
    node_type = node.get("type")
    if not node_type and isinstance(node.get("data"), Mapping):
        node_type = node["data"].get("type")
    return node_type


def complexity_score(nodes: Iterable[Mapping[str, Any]], edges: Iterable[Any]) -> float:
    """nodes + 0.5 * edges + per-node weight, rounded to 2 decimals."""
    nodes = list(nodes)
    score = len(nodes) + 0.5 * len(list(edges))
    for node in nodes:
        score += NODE_WEIGHTS.get(_node_type(node), DEFAULT_NODE_WEIGHT)
    return round(score, 2)


def graph_payload(items: Iterable[Any] | None) -> list[dict[str, Any]]:
    """Normalize authored nodes/edges (dicts or models) to plain dicts."""
    payload = []
    for item in items or ():
        if isinstance(item, BaseModel):
            payload.append(item.model_dump(mode="json", exclude_none=True))
        else:
            payload.append(dict(item))
    return payload


class Workflow(BaseModel):
    """
    A tenant's authored workflow.

    Stored in MongoDB 'workflows' collection.
    """

    id: str = Field(default_factory=_new_id)
    tenant_id: str | None = Field(None, description="Owning tenant; None for platform workflows")
    name: str = Field(..., description="Display name")
    description: str = ""
    version: int = Field(1, ge=1)
    status: WorkflowStatus = WorkflowStatus.DRAFT

    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)
    compiled: CompiledConfiguration | None = None

    created_by: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
    published_at: datetime | None = None

    class Config:
        extra = "allow"

    @property
    def is_published(self) -> bool:
        return self.status == WorkflowStatus.PUBLISHED

    def to_runtime(self) -> RuntimeWorkflow:
        return RuntimeWorkflow(
            id=self.id,
            name=self.name,
            version=self.version,
            nodes=tuple(self.nodes),
            edges=tuple(self.edges),
            compiled=self.compiled,
        )


class VersionMetrics(BaseModel):
    """Size and cost of a version snapshot."""

    compilation_ms: float | None = None
    node_count: int = 0
    edge_count: int = 0
    complexity_score: float = 0.0

    @classmethod
    def measure(
        cls,
        nodes: list[dict[str, Any]],
        edges: list[dict[str, Any]],
        compiled: CompiledConfiguration | None = None,
    ) -> "VersionMetrics":
        return cls(
            compilation_ms=compiled.metadata.compilation_ms if compiled else None,
            node_count=len(nodes),
            edge_count=len(edges),
            complexity_score=complexity_score(nodes, edges),
        )


class WorkflowVersion(BaseModel):
    """
    Immutable snapshot of a workflow at one version number.

    Stored in MongoDB 'workflow_versions' collection.
    """

    workflow_id: str
    version: int = Field(..., ge=1)
    nodes: list[dict[str, Any]] = Field(default_factory=list)
    edges: list[dict[str, Any]] = Field(default_factory=list)
    compiled: CompiledConfiguration | None = None

    change_description: str | None = None
    is_rollback: bool = False
    rollback_from_version: int | None = None
    metrics: VersionMetrics = Field(default_factory=VersionMetrics)

    created_by: str | None = None
    created_at: datetime = Field(default_factory=_utc_now)

    class Config:
        extra = "allow"

    @classmethod
    def snapshot(
        cls,
        workflow: Workflow,
        change_description: str | None = None,
        created_by: str | None = None,
        rollback_from_version: int | None = None,
    ) -> "WorkflowVersion":
        return cls(
            workflow_id=workflow.id,
            version=workflow.version,
            nodes=copy.deepcopy(workflow.nodes),
            edges=copy.deepcopy(workflow.edges),
            compiled=workflow.compiled,
            change_description=change_description,
            is_rollback=rollback_from_version is not None,
            rollback_from_version=rollback_from_version,
            metrics=VersionMetrics.measure(workflow.nodes, workflow.edges, workflow.compiled),
            created_by=created_by,
        )
