"""
Tests for the Graph Validator.

Every rule is checked in isolation, then combined to confirm that errors
accumulate instead of short-circuiting.
"""

import pytest

from convoflow.graph import GraphIndex, GraphValidator, NodeKind, has_cycle
from convoflow.graph.validator import CYCLE_ERROR, MISSING_PERSONA_ERROR, NODE_CHECKS

from builders import edge, node


@pytest.fixture
def validator():
    return GraphValidator()


# =============================================================================
# Valid graphs
# =============================================================================


class TestValidGraphs:
    def test_single_persona_is_valid(self, validator, persona_only):
        nodes, edges = persona_only
        result = validator.validate(nodes, edges)

        assert result.valid is True
        assert result.errors == ()

    def test_full_support_graph_is_valid(self, validator, support_graph):
        result = validator.validate(*support_graph)

        assert result.valid is True

    def test_file_upload_knowledge_needs_no_config(self, validator):
        nodes = [
            node("p1", "persona", prompt="Helpful."),
            node("k1", "knowledge", sourceType="file_upload"),
        ]
        result = validator.validate(nodes, [edge("p1", "k1")])

        assert result.valid is True

    def test_type_read_from_data_when_missing(self, validator):
        nodes = [{"id": "p1", "data": {"type": "persona", "prompt": "Hi"}}]

        assert validator.validate(nodes, []).valid is True

    def test_one_orphan_is_tolerated(self, validator):
        nodes = [
            node("p1", "persona", prompt="a"),
            node("f1", "fallback", message="b"),
            node("f2", "fallback", message="c"),
        ]
        result = validator.validate(nodes, [edge("p1", "f1")])

        assert result.valid is True

    def test_unwired_graph_is_valid(self, validator):
        nodes = [
            node("p1", "persona", prompt="You are Acme support"),
            node("m1", "moderation", strictness="medium"),
            node("f1", "fallback", message="Sorry"),
        ]
        result = validator.validate(nodes, [])

        assert result.valid is True

    def test_every_node_kind_has_a_payload_check(self):
        assert set(NODE_CHECKS) == set(NodeKind)

    def test_validation_result_to_dict(self, validator, persona_only):
        assert validator.validate(*persona_only).to_dict() == {"valid": True, "errors": []}


# =============================================================================
# Node payload rules
# =============================================================================


class TestNodeRules:
    def test_missing_persona(self, validator):
        result = validator.validate([node("f1", "fallback", message="Sorry")], [])

        assert result.valid is False
        assert MISSING_PERSONA_ERROR in result.errors

    def test_empty_graph_reports_missing_persona(self, validator):
        result = validator.validate([], [])

        assert result.errors == (MISSING_PERSONA_ERROR,)

    @pytest.mark.parametrize("prompt", [None, "", "   "])
    def test_persona_requires_prompt(self, validator, prompt):
        result = validator.validate([node("p1", "persona", prompt=prompt)], [])

        assert "Persona node p1 must have a prompt" in result.errors

    def test_knowledge_requires_source_type(self, validator):
        nodes = [node("p1", "persona", prompt="a"), node("k1", "knowledge")]
        result = validator.validate(nodes, [edge("p1", "k1")])

        assert "Knowledge node k1 must have a source type" in result.errors

    def test_knowledge_unsupported_source_type(self, validator):
        nodes = [node("p1", "persona", prompt="a"), node("k1", "knowledge", sourceType="ftp")]
        result = validator.validate(nodes, [edge("p1", "k1")])

        assert "Knowledge node k1 has unsupported source type 'ftp'" in result.errors

    def test_google_sheets_requires_sheet_id(self, validator):
        nodes = [
            node("p1", "persona", prompt="a"),
            node("k1", "knowledge", sourceType="google_sheets", config={}),
        ]
        result = validator.validate(nodes, [edge("p1", "k1")])

        assert "Knowledge node k1 with Google Sheets source must have a sheet ID" in result.errors

    @pytest.mark.parametrize("source_type", ["pdf", "url"])
    def test_document_sources_require_location(self, validator, source_type):
        nodes = [
            node("p1", "persona", prompt="a"),
            node("k1", "knowledge", sourceType=source_type, config={"title": "x"}),
        ]
        result = validator.validate(nodes, [edge("p1", "k1")])

        assert "Knowledge node k1 must have a URL or file path" in result.errors

    def test_pdf_with_file_path_is_valid(self, validator):
        nodes = [
            node("p1", "persona", prompt="a"),
            node("k1", "knowledge", sourceType="pdf", config={"filePath": "/docs/a.pdf"}),
        ]
        assert validator.validate(nodes, [edge("p1", "k1")]).valid is True

    def test_vector_store_requires_collection(self, validator):
        nodes = [
            node("p1", "persona", prompt="a"),
            node("k1", "knowledge", sourceType="vector_store"),
        ]
        result = validator.validate(nodes, [edge("p1", "k1")])

        assert (
            "Knowledge node k1 with vector store source must have a collection name"
            in result.errors
        )

    def test_router_requires_conditions_array(self, validator):
        nodes = [node("p1", "persona", prompt="a"), node("r1", "router", conditions="refund")]
        result = validator.validate(nodes, [edge("p1", "r1")])

        assert "Router node r1 must have conditions array" in result.errors

    def test_router_with_empty_conditions_is_valid(self, validator):
        nodes = [node("p1", "persona", prompt="a"), node("r1", "router", conditions=[])]

        assert validator.validate(nodes, [edge("p1", "r1")]).valid is True

    def test_fallback_requires_message(self, validator):
        nodes = [node("p1", "persona", prompt="a"), node("f1", "fallback")]
        result = validator.validate(nodes, [edge("p1", "f1")])

        assert "Fallback node f1 must have a message" in result.errors

    def test_moderation_needs_nothing(self, validator):
        nodes = [node("p1", "persona", prompt="a"), node("m1", "moderation")]

        assert validator.validate(nodes, [edge("p1", "m1")]).valid is True

    def test_unknown_node_type(self, validator):
        nodes = [node("p1", "persona", prompt="a"), node("x1", "webhook")]
        result = validator.validate(nodes, [edge("p1", "x1")])

        assert "Unknown node type 'webhook' on node x1" in result.errors


# =============================================================================
# Structural rules
# =============================================================================


class TestStructuralRules:
    def test_dangling_edge(self, validator):
        nodes = [node("p1", "persona", prompt="a")]
        result = validator.validate(nodes, [edge("p1", "ghost", "e1")])

        assert result.valid is False
        assert (
            "Edge e1 references a non-existent node (dangling edge): p1 -> ghost"
            in result.errors
        )

    def test_duplicate_node_ids(self, validator):
        nodes = [node("p1", "persona", prompt="a"), node("p1", "persona", prompt="b")]
        result = validator.validate(nodes, [])

        assert "Duplicate node id: p1" in result.errors

    def test_two_orphans_rejected(self, validator):
        nodes = [
            node("p1", "persona", prompt="a"),
            node("m1", "moderation"),
            node("f1", "fallback", message="b"),
            node("f2", "fallback", message="c"),
        ]
        result = validator.validate(nodes, [edge("p1", "m1")])

        assert "Found 2 orphaned nodes" in result.errors

    def test_cycle_detected(self, validator):
        nodes = [
            node("p1", "persona", prompt="a"),
            node("m1", "moderation"),
            node("r1", "router", conditions=[]),
        ]
        edges = [edge("p1", "m1"), edge("m1", "r1"), edge("r1", "m1")]
        result = validator.validate(nodes, edges)

        assert CYCLE_ERROR in result.errors

    def test_self_loop_is_a_cycle(self, validator):
        nodes = [node("p1", "persona", prompt="a")]
        result = validator.validate(nodes, [edge("p1", "p1")])

        assert result.errors == (CYCLE_ERROR,)

    def test_diamond_is_not_a_cycle(self):
        nodes = [
            node("a", "persona", prompt="a"),
            node("b", "moderation"),
            node("c", "moderation"),
            node("d", "fallback", message="x"),
        ]
        edges = [edge("a", "b"), edge("a", "c"), edge("b", "d"), edge("c", "d")]

        assert has_cycle(GraphIndex.build(nodes, edges)) is False

    def test_errors_accumulate(self, validator):
        nodes = [
            node("k1", "knowledge"),
            node("r1", "router"),
            node("f1", "fallback"),
        ]
        edges = [edge("k1", "r1"), edge("r1", "k1"), edge("f1", "nope", "e9")]
        result = validator.validate(nodes, edges)

        assert result.valid is False
        assert MISSING_PERSONA_ERROR in result.errors
        assert "Knowledge node k1 must have a source type" in result.errors
        assert "Router node r1 must have conditions array" in result.errors
        assert "Fallback node f1 must have a message" in result.errors
        assert any("dangling edge" in e for e in result.errors)
        assert CYCLE_ERROR in result.errors

    def test_validator_is_deterministic(self, validator, support_graph):
        nodes, edges = support_graph
        broken = nodes + [node("x", "mystery")]

        assert validator.validate(broken, edges) == validator.validate(broken, edges)
