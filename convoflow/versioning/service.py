"""
Workflow Service for Convoflow.

Lifecycle of persisted workflows: create, update, publish, archive,
rollback and delete, with a version snapshot for every version number.

Versioning rules:
    - create starts at version 1 and snapshots it
    - a graph-changing update compiles, bumps the version by exactly 1
      and snapshots it; name/description edits keep the version
    - rollback copies a snapshot's graph and compiled configuration
      into a new version (version + 1) flagged ``is_rollback``
    - publishing archives every other published workflow of the tenant

When a WorkflowRuntime is attached, the tenant's live configuration
follows the published workflow.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Iterable

from convoflow.compiler import ChainCompiler
from convoflow.errors import VersionNotFoundError, WorkflowNotFoundError, WorkflowStateError

from .models import Workflow, WorkflowStatus, WorkflowVersion, graph_payload
from .store import DEFAULT_HISTORY_LIMIT, WorkflowStore

if TYPE_CHECKING:
    from convoflow.compiler import CompiledConfiguration
    from convoflow.runtime import WorkflowRuntime

logger = logging.getLogger(__name__)


class WorkflowService:
    """
    Persistence-backed workflow lifecycle.

    Example:
        service = WorkflowService(InMemoryWorkflowStore(), runtime=runtime)
        workflow = await service.create("acme", "Support bot", nodes, edges)
        await service.publish(workflow.id, tenant_id="acme")
    """

    def __init__(
        self,
        store: WorkflowStore,
        compiler: ChainCompiler | None = None,
        runtime: "WorkflowRuntime | None" = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self._store = store
        self._compiler = compiler or (runtime.registry.compiler if runtime else ChainCompiler())
        self._runtime = runtime
        self._history_limit = history_limit

    # ==================== Queries ====================

    async def get(self, workflow_id: str, tenant_id: str | None = None) -> Workflow:
        """
        Fetch a workflow, scoped to a tenant when one is given.

        Raises:
            WorkflowNotFoundError: No such workflow for this tenant
        """
        workflow = await self._store.get_workflow(workflow_id)
        if workflow is None or (tenant_id is not None and workflow.tenant_id != tenant_id):
            raise WorkflowNotFoundError(workflow_id)
        return workflow

    async def list_workflows(
        self, tenant_id: str | None, status: WorkflowStatus | None = None
    ) -> list[Workflow]:
        return await self._store.list_workflows(tenant_id, status)

    async def get_active_workflow(self, tenant_id: str | None) -> Workflow | None:
        return await self._store.get_published(tenant_id)

    async def get_versions(
        self,
        workflow_id: str,
        tenant_id: str | None = None,
        limit: int | None = None,
    ) -> list[WorkflowVersion]:
        """Version history, newest first."""
        await self.get(workflow_id, tenant_id)
        return await self._store.list_versions(workflow_id, limit or self._history_limit)

    async def get_version(
        self, workflow_id: str, version: int, tenant_id: str | None = None
    ) -> WorkflowVersion:
        await self.get(workflow_id, tenant_id)
        snapshot = await self._store.get_version(workflow_id, version)
        if snapshot is None:
            raise VersionNotFoundError(workflow_id, version)
        return snapshot

    # ==================== Lifecycle ====================

    async def create(
        self,
        tenant_id: str | None,
        name: str,
        nodes: Iterable[Any] = (),
        edges: Iterable[Any] = (),
        description: str = "",
        created_by: str | None = None,
    ) -> Workflow:
        """
        Create a draft at version 1.

        An empty graph is a valid draft and is left uncompiled.

        Raises:
            ValidationError: Non-empty graph is invalid
        """
        nodes, edges = graph_payload(nodes), graph_payload(edges)
        workflow = Workflow(
            tenant_id=tenant_id,
            name=name.strip(),
            description=description.strip(),
            nodes=nodes,
            edges=edges,
            compiled=self._compile(nodes, edges, tenant_id),
            created_by=created_by,
        )

        await self._store.save_workflow(workflow)
        await self._snapshot(workflow, "Initial version", created_by)

        logger.info(f"[workflows] Workflow created | id={workflow.id} | tenant={tenant_id}")
        return workflow

    async def update(
        self,
        workflow_id: str,
        *,
        tenant_id: str | None = None,
        nodes: Iterable[Any] | None = None,
        edges: Iterable[Any] | None = None,
        name: str | None = None,
        description: str | None = None,
        change_description: str | None = None,
        updated_by: str | None = None,
    ) -> Workflow:
        """
        Apply edits. Graph changes recompile and bump the version.

        Raises:
            WorkflowNotFoundError: No such workflow
            ValidationError: New graph is invalid (nothing is saved)
        """
        workflow = await self.get(workflow_id, tenant_id)

        changes: dict[str, Any] = {"updated_at": datetime.now(UTC)}
        if name is not None:
            changes["name"] = name.strip()
        if description is not None:
            changes["description"] = description.strip()

        graph_changed = nodes is not None or edges is not None
        if graph_changed:
            new_nodes = graph_payload(nodes) if nodes is not None else workflow.nodes
            new_edges = graph_payload(edges) if edges is not None else workflow.edges
            changes.update(
                nodes=new_nodes,
                edges=new_edges,
                compiled=self._compile(new_nodes, new_edges, workflow.tenant_id),
                version=workflow.version + 1,
            )

        workflow = workflow.model_copy(update=changes)
        await self._store.save_workflow(workflow)

        if graph_changed:
            await self._snapshot(workflow, change_description, updated_by)
            logger.info(f"[workflows] Workflow updated | id={workflow_id} | v{workflow.version}")
            if workflow.is_published:
                await self._activate(workflow)
        return workflow

    async def publish(self, workflow_id: str, tenant_id: str | None = None) -> Workflow:
        """
        Publish a workflow and make it the tenant's live configuration.

        Raises:
            WorkflowNotFoundError: No such workflow
            WorkflowStateError: Workflow is empty or uncompiled
        """
        workflow = await self.get(workflow_id, tenant_id)
        self.validate_for_publishing(workflow)

        archived = await self._store.archive_published(workflow.tenant_id, exclude_id=workflow.id)
        now = datetime.now(UTC)
        workflow = workflow.model_copy(
            update={"status": WorkflowStatus.PUBLISHED, "published_at": now, "updated_at": now}
        )
        await self._store.save_workflow(workflow)

        logger.info(
            f"[workflows] Workflow published | id={workflow_id} | v{workflow.version} | "
            f"archived={archived}"
        )
        await self._activate(workflow)
        return workflow

    async def archive(self, workflow_id: str, tenant_id: str | None = None) -> Workflow:
        """
        Archive a workflow. Archiving the live workflow unloads it.

        Raises:
            WorkflowStateError: Already archived
        """
        workflow = await self.get(workflow_id, tenant_id)
        if workflow.status == WorkflowStatus.ARCHIVED:
            raise WorkflowStateError("Workflow is already archived")

        workflow = workflow.model_copy(
            update={"status": WorkflowStatus.ARCHIVED, "updated_at": datetime.now(UTC)}
        )
        await self._store.save_workflow(workflow)
        logger.info(f"[workflows] Workflow archived | id={workflow_id}")

        await self._deactivate(workflow)
        return workflow

    async def rollback(
        self,
        workflow_id: str,
        target_version: int,
        tenant_id: str | None = None,
        user_id: str | None = None,
    ) -> Workflow:
        """
        Restore a previous version's graph as a new version.

        Raises:
            WorkflowNotFoundError: No such workflow
            VersionNotFoundError: Target snapshot does not exist
        """
        workflow = await self.get(workflow_id, tenant_id)
        if target_version < 1:
            raise VersionNotFoundError(workflow_id, target_version)

        snapshot = await self._store.get_version(workflow_id, target_version)
        if snapshot is None:
            raise VersionNotFoundError(workflow_id, target_version)

        workflow = workflow.model_copy(
            update={
                "nodes": snapshot.nodes,
                "edges": snapshot.edges,
                "compiled": snapshot.compiled,
                "version": workflow.version + 1,
                "updated_at": datetime.now(UTC),
            },
            deep=True,
        )
        await self._store.save_workflow(workflow)
        await self._snapshot(
            workflow,
            f"Rollback to version {target_version}",
            user_id,
            rollback_from_version=target_version,
        )

        logger.info(
            f"[workflows] Workflow rolled back | id={workflow_id} | "
            f"to=v{target_version} | now=v{workflow.version}"
        )
        if workflow.is_published:
            await self._activate(workflow)
        return workflow

    async def delete(self, workflow_id: str, tenant_id: str | None = None) -> int:
        """
        Delete a workflow and all of its versions.

        Returns:
            Number of version snapshots removed

        Raises:
            WorkflowStateError: Workflow is published
        """
        workflow = await self.get(workflow_id, tenant_id)
        if workflow.is_published:
            raise WorkflowStateError("Cannot delete a published workflow. Archive it first.")

        removed = await self._store.delete_versions(workflow_id)
        await self._store.delete_workflow(workflow_id)
        logger.info(f"[workflows] Workflow deleted | id={workflow_id} | versions={removed}")
        return removed

    def validate_for_publishing(self, workflow: Workflow) -> None:
        if not workflow.nodes:
            raise WorkflowStateError("Cannot publish empty workflow")
        if workflow.compiled is None:
            raise WorkflowStateError("Workflow must be compiled before publishing")

    # ==================== Internals ====================

    def _compile(
        self,
        nodes: list[dict[str, Any]],
        edges: list[dict[str, Any]],
        tenant_id: str | None,
    ) -> "CompiledConfiguration | None":
        if not nodes:
            return None
        return self._compiler.compile(nodes, edges, tenant_id)

    async def _snapshot(
        self,
        workflow: Workflow,
        change_description: str | None,
        created_by: str | None,
        rollback_from_version: int | None = None,
    ) -> WorkflowVersion:
        snapshot = WorkflowVersion.snapshot(
            workflow,
            change_description=change_description,
            created_by=created_by,
            rollback_from_version=rollback_from_version,
        )
        await self._store.save_version_snapshot(snapshot)
        return snapshot

    async def _activate(self, workflow: Workflow) -> None:
        """Point the tenant's runtime entry at this workflow."""
        if self._runtime is None or workflow.tenant_id is None:
            return
        tenant_id = workflow.tenant_id
        if self._runtime.get_workflow_status(tenant_id).is_active:
            await self._runtime.hot_swap_workflow(tenant_id, workflow)
        else:
            self._runtime.load_workflow(tenant_id, workflow)

    async def _deactivate(self, workflow: Workflow) -> None:
        if self._runtime is None or workflow.tenant_id is None:
            return
        entry = self._runtime.registry.get(workflow.tenant_id)
        if entry is not None and entry.workflow_id == workflow.id:
            await self._runtime.unload_workflow(workflow.tenant_id)
