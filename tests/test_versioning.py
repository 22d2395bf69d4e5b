"""
Tests for workflow versioning: lifecycle service, snapshots, rollback
and the stores.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from convoflow.engine import ExecutionEngine
from convoflow.errors import (
    ValidationError,
    VersionNotFoundError,
    WorkflowNotFoundError,
    WorkflowStateError,
)
from convoflow.graph import Node
from convoflow.runtime import WorkflowRuntime
from convoflow.versioning import (
    InMemoryWorkflowStore,
    MongoWorkflowStore,
    Workflow,
    WorkflowService,
    WorkflowStatus,
    WorkflowVersion,
    complexity_score,
    graph_payload,
)

from builders import edge, node


def persona_graph(prompt):
    return [node("p1", "persona", prompt=prompt)], []


@pytest.fixture
def store():
    return InMemoryWorkflowStore()


@pytest.fixture
def service(store):
    return WorkflowService(store)


@pytest.fixture
def runtime(mock_llm):
    return WorkflowRuntime(engine=ExecutionEngine(llm=mock_llm))


@pytest.fixture
def live_service(store, runtime):
    return WorkflowService(store, runtime=runtime)


# =============================================================================
# Create and update
# =============================================================================


class TestCreateUpdate:
    @pytest.mark.asyncio
    async def test_create_starts_at_version_one(self, service):
        workflow = await service.create("acme", "  Support  ", *persona_graph("v1"), created_by="u1")

        assert workflow.version == 1
        assert workflow.name == "Support"
        assert workflow.status == WorkflowStatus.DRAFT
        assert workflow.compiled is not None
        assert workflow.compiled.tenant_id == "acme"

        versions = await service.get_versions(workflow.id)
        assert [v.version for v in versions] == [1]
        assert versions[0].change_description == "Initial version"
        assert versions[0].created_by == "u1"

    @pytest.mark.asyncio
    async def test_create_empty_draft_is_uncompiled(self, service):
        workflow = await service.create("acme", "Empty")

        assert workflow.nodes == []
        assert workflow.compiled is None

    @pytest.mark.asyncio
    async def test_create_invalid_graph_raises(self, service, store):
        with pytest.raises(ValidationError):
            await service.create("acme", "Broken", [node("k1", "knowledge")], [])

        assert await store.list_workflows("acme") == []

    @pytest.mark.asyncio
    async def test_create_accepts_models(self, service):
        nodes = [Node(id="p1", type="persona", data={"prompt": "hi"})]
        workflow = await service.create("acme", "Models", nodes, [])

        assert workflow.nodes[0]["id"] == "p1"
        assert workflow.nodes[0]["data"] == {"prompt": "hi"}

    @pytest.mark.asyncio
    async def test_graph_update_bumps_version(self, service):
        workflow = await service.create("acme", "Support", *persona_graph("v1"))

        updated = await service.update(
            workflow.id,
            tenant_id="acme",
            nodes=persona_graph("v2")[0],
            change_description="Friendlier",
        )

        assert updated.version == 2
        assert updated.compiled.prompts.persona.user_prompt == "v2"
        snapshot = await service.get_version(workflow.id, 2)
        assert snapshot.change_description == "Friendlier"

    @pytest.mark.asyncio
    async def test_name_only_update_keeps_version(self, service):
        workflow = await service.create("acme", "Support", *persona_graph("v1"))

        updated = await service.update(workflow.id, name="Renamed")

        assert updated.version == 1
        assert updated.name == "Renamed"
        assert len(await service.get_versions(workflow.id)) == 1

    @pytest.mark.asyncio
    async def test_invalid_update_saves_nothing(self, service):
        workflow = await service.create("acme", "Support", *persona_graph("v1"))

        with pytest.raises(ValidationError):
            await service.update(workflow.id, nodes=[node("f1", "fallback", message="x")])

        stored = await service.get(workflow.id)
        assert stored.version == 1
        assert stored.nodes[0]["type"] == "persona"

    @pytest.mark.asyncio
    async def test_versions_increase_by_one(self, service):
        workflow = await service.create("acme", "Support", *persona_graph("v1"))
        for i in range(2, 6):
            workflow = await service.update(workflow.id, nodes=persona_graph(f"v{i}")[0])

        versions = await service.get_versions(workflow.id)
        assert [v.version for v in versions] == [5, 4, 3, 2, 1]

    @pytest.mark.asyncio
    async def test_history_limit(self, store):
        service = WorkflowService(store, history_limit=2)
        workflow = await service.create("acme", "Support", *persona_graph("v1"))
        for i in range(2, 5):
            await service.update(workflow.id, nodes=persona_graph(f"v{i}")[0])

        assert [v.version for v in await service.get_versions(workflow.id)] == [4, 3]
        assert len(await service.get_versions(workflow.id, limit=10)) == 4


# =============================================================================
# Tenancy and lookup
# =============================================================================


class TestLookup:
    @pytest.mark.asyncio
    async def test_other_tenant_cannot_see_workflow(self, service):
        workflow = await service.create("acme", "Support", *persona_graph("v1"))

        with pytest.raises(WorkflowNotFoundError):
            await service.get(workflow.id, tenant_id="globex")

    @pytest.mark.asyncio
    async def test_missing_version(self, service):
        workflow = await service.create("acme", "Support", *persona_graph("v1"))

        with pytest.raises(VersionNotFoundError):
            await service.get_version(workflow.id, 7)

    @pytest.mark.asyncio
    async def test_list_by_status(self, service):
        first = await service.create("acme", "One", *persona_graph("a"))
        await service.create("acme", "Two", *persona_graph("b"))
        await service.create("globex", "Three", *persona_graph("c"))
        await service.publish(first.id)

        assert len(await service.list_workflows("acme")) == 2
        published = await service.list_workflows("acme", WorkflowStatus.PUBLISHED)
        assert [w.id for w in published] == [first.id]


# =============================================================================
# Publish and archive
# =============================================================================


class TestPublishArchive:
    @pytest.mark.asyncio
    async def test_publish_archives_previous(self, service):
        first = await service.create("acme", "One", *persona_graph("a"))
        second = await service.create("acme", "Two", *persona_graph("b"))

        await service.publish(first.id)
        published = await service.publish(second.id)

        assert published.status == WorkflowStatus.PUBLISHED
        assert published.published_at is not None
        assert (await service.get(first.id)).status == WorkflowStatus.ARCHIVED
        assert (await service.get_active_workflow("acme")).id == second.id

    @pytest.mark.asyncio
    async def test_publish_does_not_touch_other_tenants(self, service):
        acme = await service.create("acme", "A", *persona_graph("a"))
        globex = await service.create("globex", "G", *persona_graph("g"))
        await service.publish(globex.id)

        await service.publish(acme.id)

        assert (await service.get(globex.id)).status == WorkflowStatus.PUBLISHED

    @pytest.mark.asyncio
    async def test_cannot_publish_empty(self, service):
        workflow = await service.create("acme", "Empty")

        with pytest.raises(WorkflowStateError, match="Cannot publish empty workflow"):
            await service.publish(workflow.id)

    @pytest.mark.asyncio
    async def test_cannot_publish_uncompiled(self, service, store):
        workflow = Workflow(tenant_id="acme", name="Raw", nodes=persona_graph("a")[0])
        await store.save_workflow(workflow)

        with pytest.raises(WorkflowStateError, match="must be compiled"):
            await service.publish(workflow.id)

    @pytest.mark.asyncio
    async def test_archive_twice(self, service):
        workflow = await service.create("acme", "One", *persona_graph("a"))
        await service.archive(workflow.id)

        with pytest.raises(WorkflowStateError, match="already archived"):
            await service.archive(workflow.id)

    @pytest.mark.asyncio
    async def test_delete_published_refused(self, service):
        workflow = await service.create("acme", "One", *persona_graph("a"))
        await service.publish(workflow.id)

        with pytest.raises(WorkflowStateError, match="Archive it first"):
            await service.delete(workflow.id)

    @pytest.mark.asyncio
    async def test_delete_removes_versions(self, service, store):
        workflow = await service.create("acme", "One", *persona_graph("a"))
        await service.update(workflow.id, nodes=persona_graph("b")[0])

        assert await service.delete(workflow.id) == 2
        assert await store.get_workflow(workflow.id) is None
        assert await store.list_versions(workflow.id) == []


# =============================================================================
# Rollback
# =============================================================================


class TestRollback:
    @pytest.mark.asyncio
    async def test_rollback_creates_new_version(self, service):
        workflow = await service.create("acme", "Support", *persona_graph("v1"))
        await service.update(workflow.id, nodes=persona_graph("v2")[0])
        await service.update(workflow.id, nodes=persona_graph("v3")[0])

        rolled = await service.rollback(workflow.id, 1, user_id="u9")

        assert rolled.version == 4
        assert rolled.nodes[0]["data"]["prompt"] == "v1"
        assert rolled.compiled.prompts.persona.user_prompt == "v1"

        snapshot = await service.get_version(workflow.id, 4)
        assert snapshot.is_rollback is True
        assert snapshot.rollback_from_version == 1
        assert snapshot.change_description == "Rollback to version 1"
        assert snapshot.created_by == "u9"

        original = await service.get_version(workflow.id, 1)
        assert original.is_rollback is False

    @pytest.mark.asyncio
    async def test_rollback_to_missing_version(self, service):
        workflow = await service.create("acme", "Support", *persona_graph("v1"))

        with pytest.raises(VersionNotFoundError):
            await service.rollback(workflow.id, 5)
        with pytest.raises(VersionNotFoundError):
            await service.rollback(workflow.id, 0)

        assert (await service.get(workflow.id)).version == 1

    @pytest.mark.asyncio
    async def test_snapshot_is_isolated_from_rollback_edits(self, service):
        workflow = await service.create("acme", "Support", *persona_graph("v1"))
        await service.update(workflow.id, nodes=persona_graph("v2")[0])
        rolled = await service.rollback(workflow.id, 1)

        rolled.nodes[0]["data"]["prompt"] = "mutated"

        assert (await service.get_version(workflow.id, 1)).nodes[0]["data"]["prompt"] == "v1"


# =============================================================================
# Runtime integration
# =============================================================================


class TestRuntimeIntegration:
    @pytest.mark.asyncio
    async def test_publish_loads_runtime(self, live_service, runtime):
        workflow = await live_service.create("acme", "Support", *persona_graph("v1"))

        await live_service.publish(workflow.id)

        entry = runtime.registry.acquire("acme")
        assert entry.workflow_id == workflow.id
        assert entry.version == 1

    @pytest.mark.asyncio
    async def test_publishing_another_hot_swaps(self, live_service, runtime):
        received = []
        runtime.add_listener(received.append)
        first = await live_service.create("acme", "One", *persona_graph("a"))
        second = await live_service.create("acme", "Two", *persona_graph("b"))

        await live_service.publish(first.id)
        await live_service.publish(second.id)
        await runtime.registry.drain_events()

        assert runtime.registry.acquire("acme").workflow_id == second.id
        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_update_of_published_swaps(self, live_service, runtime):
        workflow = await live_service.create("acme", "Support", *persona_graph("v1"))
        await live_service.publish(workflow.id)

        await live_service.update(workflow.id, nodes=persona_graph("v2")[0])

        entry = runtime.registry.acquire("acme")
        assert entry.version == 2
        assert entry.config.prompts.persona.user_prompt == "v2"

    @pytest.mark.asyncio
    async def test_update_of_draft_leaves_runtime(self, live_service, runtime):
        workflow = await live_service.create("acme", "Support", *persona_graph("v1"))

        await live_service.update(workflow.id, nodes=persona_graph("v2")[0])

        assert "acme" not in runtime.registry

    @pytest.mark.asyncio
    async def test_rollback_of_published_swaps(self, live_service, runtime):
        workflow = await live_service.create("acme", "Support", *persona_graph("v1"))
        await live_service.update(workflow.id, nodes=persona_graph("v2")[0])
        await live_service.publish(workflow.id)

        await live_service.rollback(workflow.id, 1)

        entry = runtime.registry.acquire("acme")
        assert entry.version == 3
        assert entry.config.prompts.persona.user_prompt == "v1"

    @pytest.mark.asyncio
    async def test_archive_live_workflow_unloads(self, live_service, runtime):
        workflow = await live_service.create("acme", "Support", *persona_graph("v1"))
        await live_service.publish(workflow.id)

        await live_service.archive(workflow.id)

        assert "acme" not in runtime.registry

    @pytest.mark.asyncio
    async def test_archive_other_workflow_keeps_live(self, live_service, runtime):
        live = await live_service.create("acme", "Live", *persona_graph("a"))
        draft = await live_service.create("acme", "Draft", *persona_graph("b"))
        await live_service.publish(live.id)

        await live_service.archive(draft.id)

        assert runtime.registry.acquire("acme").workflow_id == live.id

    @pytest.mark.asyncio
    async def test_published_workflow_executes(self, live_service, runtime):
        workflow = await live_service.create("acme", "Support", *persona_graph("v1"))
        await live_service.publish(workflow.id)

        result = await runtime.execute_workflow("acme", "Hi there!")

        assert result.metadata["workflowVersion"] == 1


# =============================================================================
# Records
# =============================================================================


class TestRecords:
    def test_complexity_score(self):
        nodes = [
            node("p1", "persona", prompt="a"),
            node("k1", "knowledge", sourceType="file_upload"),
            node("r1", "router", conditions=[]),
        ]
        edges = [edge("p1", "k1"), edge("k1", "r1")]

        # 3 nodes + 0.5 * 2 edges + (0.5 + 1.5 + 2.0)
        assert complexity_score(nodes, edges) == 8.0

    def test_complexity_reads_type_from_data(self):
        nodes = [{"id": "m1", "data": {"type": "moderation"}}]

        assert complexity_score(nodes, []) == 2.0

    def test_snapshot_metrics(self):
        nodes, edges = persona_graph("a")
        workflow = Workflow(tenant_id="acme", name="S", nodes=nodes, edges=edges, version=3)
        snapshot = WorkflowVersion.snapshot(workflow, rollback_from_version=1)

        assert snapshot.version == 3
        assert snapshot.is_rollback is True
        assert snapshot.metrics.node_count == 1
        assert snapshot.metrics.compilation_ms is None

    def test_graph_payload_copies(self):
        original = [node("p1", "persona", prompt="a")]
        payload = graph_payload(original)
        payload[0]["id"] = "changed"

        assert original[0]["id"] == "p1"

    def test_to_runtime(self):
        workflow = Workflow(tenant_id="acme", name="S", nodes=persona_graph("a")[0], version=2)
        runtime_wf = workflow.to_runtime()

        assert runtime_wf.id == workflow.id
        assert runtime_wf.version == 2
        assert len(runtime_wf.nodes) == 1


# =============================================================================
# MongoDB store
# =============================================================================


def mongo_store():
    store = MongoWorkflowStore("mongodb://localhost:27017")
    db = MagicMock()
    db.workflows.find_one = AsyncMock(return_value=None)
    db.workflows.replace_one = AsyncMock()
    db.workflows.update_many = AsyncMock(return_value=MagicMock(modified_count=2))
    db.workflow_versions.replace_one = AsyncMock()
    db.workflow_versions.delete_many = AsyncMock(return_value=MagicMock(deleted_count=3))
    store._db = db
    return store, db


class TestMongoWorkflowStore:
    @pytest.mark.asyncio
    async def test_save_uses_workflow_id_as_document_id(self):
        store, db = mongo_store()
        workflow = Workflow(tenant_id="acme", name="S", nodes=persona_graph("a")[0])

        await store.save_workflow(workflow)

        query, doc = db.workflows.replace_one.await_args.args
        assert query == {"_id": workflow.id}
        assert doc["_id"] == workflow.id
        assert "id" not in doc
        assert doc["status"] == "draft"
        assert db.workflows.replace_one.await_args.kwargs == {"upsert": True}

    @pytest.mark.asyncio
    async def test_get_round_trips_document(self):
        store, db = mongo_store()
        workflow = Workflow(tenant_id="acme", name="S", nodes=persona_graph("a")[0])
        db.workflows.find_one = AsyncMock(return_value=store._workflow_doc(workflow))

        loaded = await store.get_workflow(workflow.id)

        assert loaded.id == workflow.id
        assert loaded.nodes == workflow.nodes

    @pytest.mark.asyncio
    async def test_missing_workflow(self):
        store, _ = mongo_store()

        assert await store.get_workflow("nope") is None

    @pytest.mark.asyncio
    async def test_archive_published_query(self):
        store, db = mongo_store()

        assert await store.archive_published("acme", exclude_id="wf-1") == 2

        query, update = db.workflows.update_many.await_args.args
        assert query == {"tenant_id": "acme", "status": "published", "_id": {"$ne": "wf-1"}}
        assert update == {"$set": {"status": "archived"}}

    @pytest.mark.asyncio
    async def test_version_snapshot_keyed_by_workflow_and_version(self):
        store, db = mongo_store()
        snapshot = WorkflowVersion(workflow_id="wf-1", version=4, is_rollback=True)

        await store.save_version_snapshot(snapshot)

        query, doc = db.workflow_versions.replace_one.await_args.args
        assert query == {"workflow_id": "wf-1", "version": 4}
        assert doc["is_rollback"] is True
        assert await store.delete_versions("wf-1") == 3
