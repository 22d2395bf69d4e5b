"""
Workflow Runtime facade.

The operations the API layer calls: compile, validate, load, hot-swap,
execute, status, unload. Execution captures the tenant's entry once,
runs the engine against it, records statistics and stamps runtime
metadata onto the result.
"""
from __future__ import annotations

import dataclasses
import logging
import time
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Sequence

from convoflow.assist import Suggestion
from convoflow.engine import MODE_OPERATOR_ASSIST, ExecutionContext, ExecutionResult
from convoflow.errors import ConvoflowError, ExecutionError
from convoflow.observability import RuntimeLogger

from .registry import RuntimeRegistry

if TYPE_CHECKING:
    from convoflow.assist import OperatorAssist
    from convoflow.compiler import CompiledConfiguration
    from convoflow.engine import ExecutionEngine
    from convoflow.graph import ValidationResult
    from convoflow.graph.models import EdgeInput, NodeInput
    from convoflow.providers.llm import Message

    from .events import RuntimeListener
    from .models import RuntimeEntry, SwapResult, TenantStatus, WorkflowInput

logger = logging.getLogger(__name__)


class WorkflowRuntime:
    """
    Entry point for running tenant workflows.

    Example:
        runtime = WorkflowRuntime(engine=ExecutionEngine(llm=provider))
        runtime.load_workflow("acme", {"id": "wf-1", "version": 1,
                                       "nodes": nodes, "edges": edges})
        result = await runtime.execute_workflow("acme", "Hi there!")
        print(result.response, result.metadata["workflowVersion"])
    """

    def __init__(
        self,
        engine: "ExecutionEngine",
        registry: RuntimeRegistry | None = None,
        assist: "OperatorAssist | None" = None,
        audit: RuntimeLogger | None = None,
    ):
        self._engine = engine
        self._registry = registry or RuntimeRegistry()
        self._assist = assist
        self._audit = audit or RuntimeLogger()

    @property
    def registry(self) -> RuntimeRegistry:
        return self._registry

    # ==================== Authoring ====================

    def compile_workflow(
        self,
        nodes: Iterable["NodeInput"],
        edges: Iterable["EdgeInput"],
        tenant_id: str | None,
    ) -> "CompiledConfiguration":
        return self._registry.compiler.compile(nodes, edges, tenant_id)

    def validate_workflow(
        self,
        nodes: Iterable["NodeInput"],
        edges: Iterable["EdgeInput"],
    ) -> "ValidationResult":
        return self._registry.compiler.validate(nodes, edges)

    # ==================== Lifecycle ====================

    def load_workflow(self, tenant_id: str, workflow: "WorkflowInput") -> "RuntimeEntry":
        return self._registry.load(tenant_id, workflow)

    async def hot_swap_workflow(self, tenant_id: str, workflow: "WorkflowInput") -> "SwapResult":
        return await self._registry.hot_swap(tenant_id, workflow)

    async def unload_workflow(self, tenant_id: str) -> bool:
        return await self._registry.unload(tenant_id)

    def add_listener(self, listener: "RuntimeListener") -> None:
        self._registry.add_listener(listener)

    def remove_listener(self, listener: "RuntimeListener") -> bool:
        return self._registry.remove_listener(listener)

    # ==================== Execution ====================

    async def execute_workflow(
        self,
        tenant_id: str,
        message: str,
        history: Sequence["Message | Mapping[str, Any]"] = (),
        context: Mapping[str, Any] | None = None,
    ) -> ExecutionResult:
        """
        Execute the tenant's active workflow for one message.

        Raises:
            RuntimeNotLoadedError: Tenant has no active workflow
            ExecutionError: Model provider failed or timed out
        """
        entry = self._registry.acquire(tenant_id)
        ctx = ExecutionContext.from_mapping(context, tenant_id=tenant_id)
        started = time.perf_counter()

        try:
            result = await self._engine.execute(entry.config, message, history, ctx)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            await self._registry.record_execution(entry, elapsed_ms, failed=True)
            self._audit.execution_failed(
                tenant_id, ctx.execution_id, str(e), type(e).__name__, version=entry.version
            )
            if isinstance(e, ConvoflowError):
                logger.warning(f"[runtime] Execution failed | tenant={tenant_id} | error={e}")
                raise
            logger.error(
                f"[runtime] Unexpected execution error | tenant={tenant_id} | "
                f"execution={ctx.execution_id}",
                exc_info=True,
            )
            raise ExecutionError("Workflow execution failed", tenant_id=tenant_id) from e

        elapsed_ms = (time.perf_counter() - started) * 1000
        await self._registry.record_execution(entry, elapsed_ms)

        result.metadata.update(
            {
                "responseTime": round(elapsed_ms),
                "workflowVersion": entry.version,
                "executionId": ctx.execution_id,
            }
        )
        self._audit.execution_completed(
            tenant_id,
            ctx.execution_id,
            entry.version,
            elapsed_ms,
            route=result.metadata.get("route"),
            flagged=result.flagged,
        )
        logger.info(
            f"[runtime] Workflow executed | tenant={tenant_id} | v{entry.version} | "
            f"{elapsed_ms:.0f}ms"
        )

        if await self._is_assisted(ctx):
            return await self._to_suggestion(result, ctx, tenant_id)
        return result

    async def _is_assisted(self, ctx: ExecutionContext) -> bool:
        if self._assist is None or not ctx.conversation_id:
            return False
        try:
            return await self._assist.is_conversation_assisted(ctx.conversation_id)
        except Exception as e:
            logger.warning(
                f"[runtime] Operator-assist lookup failed, answering directly | "
                f"conversation={ctx.conversation_id} | error={e}"
            )
            return False

    async def _to_suggestion(
        self,
        result: ExecutionResult,
        ctx: ExecutionContext,
        tenant_id: str,
    ) -> ExecutionResult:
        suggestion = result.response
        try:
            await self._assist.submit_suggestion(
                Suggestion(
                    conversation_id=ctx.conversation_id,
                    tenant_id=tenant_id,
                    content=suggestion,
                    metadata=dict(result.metadata),
                )
            )
        except Exception as e:
            logger.warning(
                f"[runtime] Suggestion delivery failed | "
                f"conversation={ctx.conversation_id} | error={e}"
            )
        logger.info(f"[runtime] Conversation assisted, answer sent as suggestion | tenant={tenant_id}")
        return dataclasses.replace(
            result, response=None, mode=MODE_OPERATOR_ASSIST, suggestion=suggestion
        )

    # ==================== Introspection ====================

    def get_workflow_status(self, tenant_id: str) -> "TenantStatus":
        return self._registry.status(tenant_id)

    def get_all_active_workflows(self) -> list["TenantStatus"]:
        return self._registry.all_active()

    def health_status(self) -> dict[str, Any]:
        return self._registry.health_status()

    def shutdown(self) -> None:
        self._registry.shutdown()
        logger.info("[runtime] Workflow runtime shut down")
