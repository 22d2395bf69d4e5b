"""
Runtime data model.

A RuntimeEntry is the unit the registry swaps: it is frozen and replaced
wholesale, never patched. The only mutable state reachable from an entry
is its EntryCounter, which in-flight executions bump against the entry
they captured.
"""
from __future__ import annotations

import asyncio
import itertools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping, Sequence, Union

if TYPE_CHECKING:
    from convoflow.compiler.models import CompiledConfiguration


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# Inputs
# =============================================================================


@dataclass(frozen=True)
class RuntimeWorkflow:
    """
    A workflow as handed to the runtime for loading or hot-swapping.

    Attributes:
        id: Workflow id
        name: Display name
        version: Workflow version number
        nodes: Authored nodes
        edges: Authored edges
        compiled: Previously compiled configuration, reused by ``load``
    """

    id: str
    name: str = ""
    version: int = 1
    nodes: Sequence[Any] = ()
    edges: Sequence[Any] = ()
    compiled: "CompiledConfiguration | None" = None

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "RuntimeWorkflow":
        """Accept the loose dict form used by callers (``_id`` or ``id``)."""
        from convoflow.compiler.models import CompiledConfiguration

        compiled = payload.get("compiled") or payload.get("compiledConfig")
        if isinstance(compiled, Mapping):
            compiled = CompiledConfiguration.from_dict(dict(compiled))
        return cls(
            id=str(payload.get("id") or payload.get("_id") or ""),
            name=payload.get("name") or "",
            version=int(payload.get("version") or 1),
            nodes=tuple(payload.get("nodes") or ()),
            edges=tuple(payload.get("edges") or ()),
            compiled=compiled,
        )


WorkflowInput = Union[RuntimeWorkflow, Mapping[str, Any]]


def as_runtime_workflow(workflow: WorkflowInput) -> RuntimeWorkflow:
    if isinstance(workflow, RuntimeWorkflow):
        return workflow
    to_runtime = getattr(workflow, "to_runtime", None)
    if callable(to_runtime):
        return to_runtime()
    return RuntimeWorkflow.from_mapping(workflow)


# =============================================================================
# Entries
# =============================================================================


class EntryCounter:
    """Monotonic execution counter owned by one RuntimeEntry."""

    def __init__(self) -> None:
        self._counter = itertools.count(1)
        self._value = 0

    @property
    def value(self) -> int:
        return self._value

    def increment(self) -> int:
        self._value = next(self._counter)
        return self._value


@dataclass(frozen=True)
class RuntimeEntry:
    """The live compiled configuration for one tenant."""

    tenant_id: str
    workflow_id: str
    name: str
    version: int
    config: "CompiledConfiguration"
    loaded_at: datetime = field(default_factory=_utc_now)
    counter: EntryCounter = field(default_factory=EntryCounter, compare=False)

    @property
    def execution_count(self) -> int:
        return self.counter.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.workflow_id,
            "name": self.name,
            "version": self.version,
            "loadedAt": self.loaded_at.isoformat(),
            "executionCount": self.execution_count,
        }


# =============================================================================
# Statistics
# =============================================================================


@dataclass
class ExecutionStats:
    """
    Per-tenant execution statistics.

    Updates are serialized by this tenant's own lock; tenants never
    contend with each other.
    """

    execution_count: int = 0
    average_response_ms: float = 0.0
    last_execution: datetime | None = None
    errors: int = 0
    _successes: int = field(default=0, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    async def record(self, response_ms: float, failed: bool = False) -> None:
        async with self._lock:
            self.execution_count += 1
            self.last_execution = _utc_now()
            if failed:
                self.errors += 1
                return
            # Incremental mean over successful executions
            self._successes += 1
            self.average_response_ms += (response_ms - self.average_response_ms) / self._successes

    def to_dict(self) -> dict[str, Any]:
        return {
            "executionCount": self.execution_count,
            "averageResponseTime": round(self.average_response_ms, 2),
            "lastExecution": self.last_execution.isoformat() if self.last_execution else None,
            "errors": self.errors,
        }


# =============================================================================
# Results
# =============================================================================


STATUS_ACTIVE = "active"
STATUS_NOT_LOADED = "not_loaded"


@dataclass(frozen=True)
class TenantStatus:
    """Snapshot of a tenant's runtime state."""

    tenant_id: str
    status: str
    workflow: dict[str, Any] | None = None
    stats: dict[str, Any] | None = None

    @property
    def is_active(self) -> bool:
        return self.status == STATUS_ACTIVE

    @property
    def version(self) -> int | None:
        return self.workflow["version"] if self.workflow else None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": self.status, "tenantId": self.tenant_id}
        if self.workflow is not None:
            payload["workflow"] = self.workflow
            payload["stats"] = self.stats
        return payload


@dataclass(frozen=True)
class SwapResult:
    """Outcome of a successful hot-swap."""

    tenant_id: str
    old_version: int | None
    new_version: int
    swapped_at: datetime = field(default_factory=_utc_now)

    @property
    def success(self) -> bool:
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": True,
            "oldVersion": self.old_version,
            "newVersion": self.new_version,
            "swappedAt": self.swapped_at.isoformat(),
        }
