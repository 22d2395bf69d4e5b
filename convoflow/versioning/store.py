"""
Workflow persistence for Convoflow.

Two implementations of the same protocol:
    - InMemoryWorkflowStore: tests and local development
    - MongoWorkflowStore: MongoDB via motor

Collections (MongoDB):
    - workflows: one document per workflow, ``_id`` = workflow id
    - workflow_versions: one document per (workflow_id, version)
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

from .models import Workflow, WorkflowStatus, WorkflowVersion

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20


@runtime_checkable
class WorkflowStore(Protocol):
    """Persistence operations the lifecycle service depends on."""

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        ...

    async def save_workflow(self, workflow: Workflow) -> None:
        ...

    async def delete_workflow(self, workflow_id: str) -> bool:
        ...

    async def list_workflows(
        self, tenant_id: str | None, status: WorkflowStatus | None = None
    ) -> list[Workflow]:
        ...

    async def archive_published(self, tenant_id: str | None, exclude_id: str) -> int:
        ...

    async def get_published(self, tenant_id: str | None) -> Workflow | None:
        ...

    async def save_version_snapshot(self, version: WorkflowVersion) -> None:
        ...

    async def get_version(self, workflow_id: str, version: int) -> WorkflowVersion | None:
        ...

    async def get_latest_version(self, workflow_id: str) -> WorkflowVersion | None:
        ...

    async def list_versions(
        self, workflow_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[WorkflowVersion]:
        ...

    async def delete_versions(self, workflow_id: str) -> int:
        ...


# =============================================================================
# In-memory
# =============================================================================


class InMemoryWorkflowStore:
    """
    Dict-backed store.

    Stores and returns deep copies so callers never share state with
    the store.
    """

    def __init__(self) -> None:
        self._workflows: dict[str, Workflow] = {}
        self._versions: dict[str, dict[int, WorkflowVersion]] = {}

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        workflow = self._workflows.get(workflow_id)
        return workflow.model_copy(deep=True) if workflow else None

    async def save_workflow(self, workflow: Workflow) -> None:
        self._workflows[workflow.id] = workflow.model_copy(deep=True)

    async def delete_workflow(self, workflow_id: str) -> bool:
        return self._workflows.pop(workflow_id, None) is not None

    async def list_workflows(
        self, tenant_id: str | None, status: WorkflowStatus | None = None
    ) -> list[Workflow]:
        matches = [
            w.model_copy(deep=True)
            for w in self._workflows.values()
            if w.tenant_id == tenant_id and (status is None or w.status == status)
        ]
        return sorted(matches, key=lambda w: w.updated_at, reverse=True)

    async def archive_published(self, tenant_id: str | None, exclude_id: str) -> int:
        archived = 0
        for workflow in self._workflows.values():
            if (
                workflow.tenant_id == tenant_id
                and workflow.id != exclude_id
                and workflow.status == WorkflowStatus.PUBLISHED
            ):
                workflow.status = WorkflowStatus.ARCHIVED
                archived += 1
        return archived

    async def get_published(self, tenant_id: str | None) -> Workflow | None:
        published = await self.list_workflows(tenant_id, WorkflowStatus.PUBLISHED)
        if not published:
            return None
        return max(published, key=lambda w: w.published_at or w.updated_at)

    async def save_version_snapshot(self, version: WorkflowVersion) -> None:
        self._versions.setdefault(version.workflow_id, {})[version.version] = version.model_copy(
            deep=True
        )

    async def get_version(self, workflow_id: str, version: int) -> WorkflowVersion | None:
        snapshot = self._versions.get(workflow_id, {}).get(version)
        return snapshot.model_copy(deep=True) if snapshot else None

    async def get_latest_version(self, workflow_id: str) -> WorkflowVersion | None:
        versions = self._versions.get(workflow_id)
        if not versions:
            return None
        return versions[max(versions)].model_copy(deep=True)

    async def list_versions(
        self, workflow_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[WorkflowVersion]:
        versions = self._versions.get(workflow_id, {})
        newest_first = sorted(versions.values(), key=lambda v: v.version, reverse=True)
        return [v.model_copy(deep=True) for v in newest_first[:limit]]

    async def delete_versions(self, workflow_id: str) -> int:
        return len(self._versions.pop(workflow_id, {}))


# =============================================================================
# MongoDB
# =============================================================================


class MongoWorkflowStore:
    """
    Store backed by MongoDB.

    Collections:
    - workflows: Workflow documents
    - workflow_versions: WorkflowVersion snapshots
    """

    def __init__(self, mongodb_url: str, database_name: str = "convoflow"):
        """
        Initialize the store.

        Args:
            mongodb_url: MongoDB connection URL
            database_name: Database name
        """
        self._mongodb_url = mongodb_url
        self._database_name = database_name
        self._client = None
        self._db = None

    async def connect(self) -> None:
        """Connect to MongoDB."""
        try:
            from motor.motor_asyncio import AsyncIOMotorClient
        except ImportError:
            raise ImportError(
                "motor package is required for MongoDB. Install with: pip install motor"
            )

        self._client = AsyncIOMotorClient(self._mongodb_url)
        self._db = self._client[self._database_name]
        logger.info(f"[store] Connected to MongoDB database: {self._database_name}")

    async def close(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._db = None

    async def _ensure_connected(self) -> None:
        if self._db is None:
            await self.connect()

    @staticmethod
    def _workflow_doc(workflow: Workflow) -> dict[str, Any]:
        doc = workflow.model_dump(mode="json")
        doc["_id"] = doc.pop("id")
        return doc

    @staticmethod
    def _workflow_from_doc(doc: dict[str, Any]) -> Workflow:
        doc = dict(doc)
        doc["id"] = str(doc.pop("_id"))
        return Workflow.model_validate(doc)

    @staticmethod
    def _version_from_doc(doc: dict[str, Any]) -> WorkflowVersion:
        doc = dict(doc)
        doc.pop("_id", None)
        return WorkflowVersion.model_validate(doc)

    # ==================== Workflows ====================

    async def get_workflow(self, workflow_id: str) -> Workflow | None:
        await self._ensure_connected()
        doc = await self._db.workflows.find_one({"_id": workflow_id})
        return self._workflow_from_doc(doc) if doc else None

    async def save_workflow(self, workflow: Workflow) -> None:
        await self._ensure_connected()
        await self._db.workflows.replace_one(
            {"_id": workflow.id}, self._workflow_doc(workflow), upsert=True
        )

    async def delete_workflow(self, workflow_id: str) -> bool:
        await self._ensure_connected()
        result = await self._db.workflows.delete_one({"_id": workflow_id})
        return result.deleted_count > 0

    async def list_workflows(
        self, tenant_id: str | None, status: WorkflowStatus | None = None
    ) -> list[Workflow]:
        await self._ensure_connected()
        query: dict[str, Any] = {"tenant_id": tenant_id}
        if status is not None:
            query["status"] = status.value

        workflows = []
        async for doc in self._db.workflows.find(query).sort("updated_at", -1):
            workflows.append(self._workflow_from_doc(doc))
        return workflows

    async def archive_published(self, tenant_id: str | None, exclude_id: str) -> int:
        await self._ensure_connected()
        result = await self._db.workflows.update_many(
            {
                "tenant_id": tenant_id,
                "status": WorkflowStatus.PUBLISHED.value,
                "_id": {"$ne": exclude_id},
            },
            {"$set": {"status": WorkflowStatus.ARCHIVED.value}},
        )
        return result.modified_count

    async def get_published(self, tenant_id: str | None) -> Workflow | None:
        await self._ensure_connected()
        doc = await self._db.workflows.find_one(
            {"tenant_id": tenant_id, "status": WorkflowStatus.PUBLISHED.value},
            sort=[("published_at", -1)],
        )
        return self._workflow_from_doc(doc) if doc else None

    # ==================== Versions ====================

    async def save_version_snapshot(self, version: WorkflowVersion) -> None:
        await self._ensure_connected()
        await self._db.workflow_versions.replace_one(
            {"workflow_id": version.workflow_id, "version": version.version},
            version.model_dump(mode="json"),
            upsert=True,
        )

    async def get_version(self, workflow_id: str, version: int) -> WorkflowVersion | None:
        await self._ensure_connected()
        doc = await self._db.workflow_versions.find_one(
            {"workflow_id": workflow_id, "version": version}
        )
        return self._version_from_doc(doc) if doc else None

    async def get_latest_version(self, workflow_id: str) -> WorkflowVersion | None:
        await self._ensure_connected()
        doc = await self._db.workflow_versions.find_one(
            {"workflow_id": workflow_id}, sort=[("version", -1)]
        )
        return self._version_from_doc(doc) if doc else None

    async def list_versions(
        self, workflow_id: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[WorkflowVersion]:
        await self._ensure_connected()
        cursor = (
            self._db.workflow_versions.find({"workflow_id": workflow_id})
            .sort("version", -1)
            .limit(limit)
        )
        return [self._version_from_doc(doc) async for doc in cursor]

    async def delete_versions(self, workflow_id: str) -> int:
        await self._ensure_connected()
        result = await self._db.workflow_versions.delete_many({"workflow_id": workflow_id})
        return result.deleted_count
