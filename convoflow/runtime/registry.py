"""
Runtime Registry for Convoflow.

Holds exactly one live compiled configuration per tenant, plus that
tenant's execution statistics.

State machine per tenant: ``not_loaded -> active``.

    load      compile (unless already compiled) and install a fresh entry;
              statistics reset
    hot_swap  compile first, then replace the entry in a single assignment;
              statistics carry over; subscribers notified in the background
    unload    remove entry and statistics; subscribers notified in the background

Entries are immutable and swapped by reference. An execution captures
the entry once and uses it to the end, so a swap completing mid-request
never changes the configuration that request runs against.

The registry is an ordinary object: build one at the composition root
and pass it to whatever needs it.
"""
from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from convoflow.compiler import ChainCompiler
from convoflow.errors import RuntimeNotLoadedError
from convoflow.observability import RuntimeLogger

from .events import SWAPPED, UNLOADED, EventPublisher, RuntimeEvent, RuntimeListener
from .models import (
    STATUS_ACTIVE,
    STATUS_NOT_LOADED,
    ExecutionStats,
    RuntimeEntry,
    RuntimeWorkflow,
    SwapResult,
    TenantStatus,
    WorkflowInput,
    as_runtime_workflow,
)

if TYPE_CHECKING:
    from convoflow.compiler import CompiledConfiguration

logger = logging.getLogger(__name__)


class RuntimeRegistry:
    """
    Tenant -> active RuntimeEntry map with hot-swap.

    Example:
        registry = RuntimeRegistry(publisher=EventPublisher(transport))
        registry.load("acme", workflow_v1)
        await registry.hot_swap("acme", workflow_v2)

        entry = registry.acquire("acme")   # capture once per request
    """

    def __init__(
        self,
        compiler: ChainCompiler | None = None,
        publisher: EventPublisher | None = None,
        audit: RuntimeLogger | None = None,
    ):
        self._compiler = compiler or ChainCompiler()
        self._publisher = publisher or EventPublisher()
        self._audit = audit or RuntimeLogger()
        self._entries: dict[str, RuntimeEntry] = {}
        self._stats: dict[str, ExecutionStats] = {}
        self._started = time.monotonic()

    @property
    def compiler(self) -> ChainCompiler:
        return self._compiler

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, tenant_id: object) -> bool:
        return tenant_id in self._entries

    # ==================== Transitions ====================

    def load(self, tenant_id: str, workflow: WorkflowInput) -> RuntimeEntry:
        """
        Install a workflow as the tenant's active entry.

        Reuses ``workflow.compiled`` when it was compiled for this tenant,
        otherwise compiles. Replaces any prior entry outright and resets
        the tenant's statistics.

        Raises:
            ValidationError / PlanningError / CompilationError from compilation
        """
        wf = as_runtime_workflow(workflow)
        logger.info(
            f"[runtime] Loading workflow | tenant={tenant_id} | workflow={wf.id} | v{wf.version}"
        )

        config = wf.compiled
        if config is None or config.tenant_id != tenant_id:
            config = self._compile(tenant_id, wf)

        entry = self._new_entry(tenant_id, wf, config)
        self._entries[tenant_id] = entry
        self._stats[tenant_id] = ExecutionStats()

        self._audit.workflow_loaded(tenant_id, entry.workflow_id, entry.version)
        logger.info(f"[runtime] Workflow loaded | tenant={tenant_id} | v{entry.version}")
        return entry

    async def hot_swap(self, tenant_id: str, workflow: WorkflowInput) -> SwapResult:
        """
        Replace the tenant's active entry without interrupting traffic.

        The new graph is compiled before any registry state is touched.
        If compilation raises, the previous entry keeps serving and the
        error propagates.
        """
        wf = as_runtime_workflow(workflow)
        logger.info(f"[runtime] Hot-swapping workflow | tenant={tenant_id} | v{wf.version}")

        try:
            config = self._compile(tenant_id, wf)
        except Exception as e:
            self._audit.swap_failed(tenant_id, wf.version, str(e))
            logger.warning(
                f"[runtime] Hot-swap aborted, previous workflow still active | "
                f"tenant={tenant_id} | error={e}"
            )
            raise

        new_entry = self._new_entry(tenant_id, wf, config)
        old_entry = self._entries.get(tenant_id)
        # Single reference replacement; readers see old or new, never a mix
        self._entries[tenant_id] = new_entry
        self._stats.setdefault(tenant_id, ExecutionStats())

        old_version = old_entry.version if old_entry else None
        self._audit.workflow_swapped(tenant_id, old_version, new_entry.version)
        logger.info(
            f"[runtime] Hot-swap completed | tenant={tenant_id} | "
            f"v{old_version} -> v{new_entry.version}"
        )

        event = RuntimeEvent(
            name=SWAPPED, tenant_id=tenant_id, old_entry=old_entry, new_entry=new_entry
        )
        self._publisher.emit(event)

        return SwapResult(
            tenant_id=tenant_id,
            old_version=old_version,
            new_version=new_entry.version,
            swapped_at=event.timestamp,
        )

    async def unload(self, tenant_id: str) -> bool:
        """Remove the tenant's entry and statistics. Returns whether one existed."""
        old_entry = self._entries.pop(tenant_id, None)
        self._stats.pop(tenant_id, None)
        if old_entry is None:
            return False

        self._audit.workflow_unloaded(tenant_id, old_entry.version)
        logger.info(f"[runtime] Workflow unloaded | tenant={tenant_id}")
        self._publisher.emit(RuntimeEvent(name=UNLOADED, tenant_id=tenant_id, old_entry=old_entry))
        return True

    # ==================== Execution support ====================

    def get(self, tenant_id: str) -> RuntimeEntry | None:
        return self._entries.get(tenant_id)

    def acquire(self, tenant_id: str) -> RuntimeEntry:
        """
        Capture the tenant's current entry for one execution.

        Raises:
            RuntimeNotLoadedError: Tenant has no active workflow
        """
        entry = self._entries.get(tenant_id)
        if entry is None:
            raise RuntimeNotLoadedError(tenant_id)
        return entry

    async def record_execution(
        self,
        entry: RuntimeEntry,
        response_ms: float,
        failed: bool = False,
    ) -> None:
        """Count an execution against the entry it ran on and the tenant's stats."""
        if not failed:
            entry.counter.increment()
        stats = self._stats.get(entry.tenant_id)
        if stats is None:
            # Unloaded while the request was in flight
            return
        await stats.record(response_ms, failed=failed)

    # ==================== Listeners ====================

    def add_listener(self, listener: RuntimeListener) -> None:
        self._publisher.add_listener(listener)

    def remove_listener(self, listener: RuntimeListener) -> bool:
        return self._publisher.remove_listener(listener)

    async def drain_events(self) -> None:
        """Wait until every swap and unload notification has been delivered."""
        await self._publisher.drain()

    # ==================== Introspection ====================

    def status(self, tenant_id: str) -> TenantStatus:
        entry = self._entries.get(tenant_id)
        if entry is None:
            return TenantStatus(tenant_id=tenant_id, status=STATUS_NOT_LOADED)
        stats = self._stats.get(tenant_id) or ExecutionStats()
        return TenantStatus(
            tenant_id=tenant_id,
            status=STATUS_ACTIVE,
            workflow=entry.to_dict(),
            stats=stats.to_dict(),
        )

    def all_active(self) -> list[TenantStatus]:
        return [self.status(tenant_id) for tenant_id in list(self._entries)]

    def health_status(self) -> dict[str, Any]:
        return {
            "status": "healthy",
            "activeWorkflows": len(self._entries),
            "totalExecutions": sum(s.execution_count for s in self._stats.values()),
            "listeners": self._publisher.listener_count,
            "pendingEvents": self._publisher.pending_count,
            "uptime": round(time.monotonic() - self._started, 3),
        }

    def shutdown(self) -> None:
        """Drop every entry, all statistics and all listeners; cancel undelivered events."""
        self._entries.clear()
        self._stats.clear()
        self._publisher.clear()
        cancelled = self._publisher.cancel_pending()
        logger.info(f"[runtime] Registry shut down | cancelled_events={cancelled}")

    # ==================== Internals ====================

    def _compile(self, tenant_id: str, wf: RuntimeWorkflow) -> "CompiledConfiguration":
        return self._compiler.compile(wf.nodes, wf.edges, tenant_id)

    @staticmethod
    def _new_entry(
        tenant_id: str, wf: RuntimeWorkflow, config: "CompiledConfiguration"
    ) -> RuntimeEntry:
        return RuntimeEntry(
            tenant_id=tenant_id,
            workflow_id=wf.id,
            name=wf.name,
            version=wf.version,
            config=config,
        )
