"""
Tests for the Execution Planner.
"""

import pytest

from convoflow.errors import CompilationError, PlanningError
from convoflow.graph import ExecutionPlanner, GraphIndex, topological_order

from builders import edge, node


@pytest.fixture
def planner():
    return ExecutionPlanner()


def assert_topological(plan, edges):
    position = {node_id: i for i, node_id in enumerate(plan.node_order)}
    for e in edges:
        assert position[e["source"]] < position[e["target"]], e


# =============================================================================
# Plans
# =============================================================================


class TestExecutionPlanner:
    def test_linear_chain(self, planner, support_graph):
        nodes, edges = support_graph
        plan = planner.plan(nodes, edges)

        assert plan.entry_point == "p1"
        assert plan.node_order == ("p1", "m1", "k1", "r1", "f1")
        assert plan.graph["m1"].next == ("k1",)
        assert plan.graph["m1"].previous == ("p1",)
        assert plan.graph["k1"].kind == "knowledge"

    def test_single_node(self, planner, persona_only):
        plan = planner.plan(*persona_only)

        assert plan.entry_point == "p1"
        assert plan.node_order == ("p1",)
        assert plan.graph["p1"].next == ()

    def test_every_node_appears_once(self, planner):
        nodes = [
            node("a", "persona", prompt="a"),
            node("b", "moderation"),
            node("c", "knowledge", sourceType="file_upload"),
            node("d", "router", conditions=[]),
            node("e", "fallback", message="x"),
        ]
        edges = [
            edge("a", "b"),
            edge("a", "c"),
            edge("b", "d"),
            edge("c", "d"),
            edge("d", "e"),
        ]
        plan = planner.plan(nodes, edges)

        assert sorted(plan.node_order) == ["a", "b", "c", "d", "e"]
        assert_topological(plan, edges)

    def test_edges_authored_out_of_order(self, planner):
        nodes = [
            node("f1", "fallback", message="x"),
            node("r1", "router", conditions=[]),
            node("p1", "persona", prompt="a"),
        ]
        edges = [edge("r1", "f1"), edge("p1", "r1")]
        plan = planner.plan(nodes, edges)

        assert plan.entry_point == "p1"
        assert plan.node_order == ("p1", "r1", "f1")

    def test_first_root_in_authored_order_wins(self, planner):
        nodes = [
            node("m1", "moderation"),
            node("p1", "persona", prompt="a"),
            node("f1", "fallback", message="x"),
        ]
        edges = [edge("m1", "f1"), edge("p1", "f1")]
        plan = planner.plan(nodes, edges)

        assert plan.entry_point == "m1"
        assert plan.entry_candidates == ("m1", "p1")

    def test_plan_is_deterministic(self, planner, support_graph):
        assert planner.plan(*support_graph) == planner.plan(*support_graph)

    def test_to_dict_shape(self, planner, support_graph):
        data = planner.plan(*support_graph).to_dict()

        assert data["entryPoint"] == "p1"
        assert data["nodeOrder"][0] == "p1"
        assert data["graph"]["r1"]["next"] == ["f1"]
        assert data["graph"]["r1"]["previous"] == ["k1"]


# =============================================================================
# Failures
# =============================================================================


class TestPlannerFailures:
    def test_no_entry_point(self, planner):
        nodes = [node("a", "persona", prompt="a"), node("b", "moderation")]
        edges = [edge("a", "b"), edge("b", "a")]

        with pytest.raises(PlanningError, match="No entry point found in workflow"):
            planner.plan(nodes, edges)

    def test_empty_graph_has_no_entry_point(self, planner):
        with pytest.raises(PlanningError):
            planner.plan([], [])

    def test_cycle_behind_root_fails_sort(self, planner):
        nodes = [
            node("p1", "persona", prompt="a"),
            node("m1", "moderation"),
            node("r1", "router", conditions=[]),
        ]
        edges = [edge("p1", "m1"), edge("m1", "r1"), edge("r1", "m1")]

        with pytest.raises(CompilationError, match="did not drain"):
            planner.plan(nodes, edges)

    def test_dangling_edge_is_rejected(self, planner):
        nodes = [node("p1", "persona", prompt="a")]

        with pytest.raises(CompilationError):
            planner.plan(nodes, [edge("p1", "ghost")])

    def test_topological_order_on_index(self):
        index = GraphIndex.build(
            [node("a", "persona", prompt="a"), node("b", "fallback", message="b")],
            [edge("b", "a")],
        )

        assert topological_order(index) == [1, 0]
