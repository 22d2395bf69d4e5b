"""
Graph data model.

Nodes and edges arrive from the visual editor as loose JSON. They are
parsed into pydantic models here and then indexed into a dense arena
(``GraphIndex``) so the validator and planner can work on integer
indices instead of repeatedly hashing string ids.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, Field, model_validator


class NodeKind(str, Enum):
    """Closed set of behaviour node kinds."""

    PERSONA = "persona"
    KNOWLEDGE = "knowledge"
    MODERATION = "moderation"
    ROUTER = "router"
    FALLBACK = "fallback"


class KnowledgeSourceType(str, Enum):
    """Knowledge source types a knowledge node may bind."""

    GOOGLE_SHEETS = "google_sheets"
    PDF = "pdf"
    URL = "url"
    VECTOR_STORE = "vector_store"
    FILE_UPLOAD = "file_upload"


class Position(BaseModel):
    """Editor canvas position. Never used by compilation."""

    x: float = 0.0
    y: float = 0.0

    class Config:
        frozen = True


class Node(BaseModel):
    """
    One behavioural unit of a workflow graph.

    ``type`` is kept as the raw string the editor sent so that an unknown
    kind reaches the validator and is reported instead of being rejected
    at parse time.
    """

    id: str = Field(..., description="Unique id within the graph")
    type: str = Field(..., description="Node kind as authored")
    position: Position = Field(default_factory=Position)
    data: dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True

    @model_validator(mode="before")
    @classmethod
    def _type_from_data(cls, values: Any) -> Any:
        # Some editor builds store the kind only under data.type
        if isinstance(values, Mapping) and not values.get("type"):
            data = values.get("data") or {}
            if isinstance(data, Mapping) and data.get("type"):
                values = {**values, "type": data["type"]}
        return values

    @property
    def kind(self) -> NodeKind | None:
        """Parsed kind, or None when the authored type is unknown."""
        try:
            return NodeKind(self.type)
        except ValueError:
            return None


class Edge(BaseModel):
    """Directed relationship between two node ids."""

    id: str
    source: str
    target: str
    type: str = "default"
    data: dict[str, Any] | None = None

    class Config:
        frozen = True


NodeInput = Node | Mapping[str, Any]
EdgeInput = Edge | Mapping[str, Any]


def parse_nodes(nodes: Iterable[NodeInput]) -> list[Node]:
    """Coerce editor payloads into Node models, preserving authored order."""
    return [n if isinstance(n, Node) else Node.model_validate(n) for n in nodes]


def parse_edges(edges: Iterable[EdgeInput]) -> list[Edge]:
    """Coerce editor payloads into Edge models, preserving authored order."""
    return [e if isinstance(e, Edge) else Edge.model_validate(e) for e in edges]


# =============================================================================
# Arena index
# =============================================================================


@dataclass
class GraphIndex:
    """
    Dense integer view of a graph.

    ``nodes[i]`` is the i-th node in authored order; ``outgoing[i]`` and
    ``incoming[i]`` hold neighbour indices in authored edge order.
    Edges whose endpoints are missing are kept aside in ``dangling``
    and do not appear in the adjacency lists.
    """

    nodes: list[Node]
    edges: list[Edge]
    index_of: dict[str, int] = field(default_factory=dict)
    outgoing: list[list[int]] = field(default_factory=list)
    incoming: list[list[int]] = field(default_factory=list)
    dangling: list[Edge] = field(default_factory=list)
    duplicate_ids: list[str] = field(default_factory=list)

    @classmethod
    def build(cls, nodes: Iterable[NodeInput], edges: Iterable[EdgeInput]) -> "GraphIndex":
        parsed_nodes = parse_nodes(nodes)
        parsed_edges = parse_edges(edges)
        index = cls(nodes=parsed_nodes, edges=parsed_edges)

        for position, node in enumerate(parsed_nodes):
            if node.id in index.index_of:
                index.duplicate_ids.append(node.id)
                continue
            index.index_of[node.id] = position

        size = len(parsed_nodes)
        index.outgoing = [[] for _ in range(size)]
        index.incoming = [[] for _ in range(size)]

        for edge in parsed_edges:
            source = index.index_of.get(edge.source)
            target = index.index_of.get(edge.target)
            if source is None or target is None:
                index.dangling.append(edge)
                continue
            index.outgoing[source].append(target)
            index.incoming[target].append(source)

        return index

    def __len__(self) -> int:
        return len(self.nodes)

    def node_id(self, position: int) -> str:
        return self.nodes[position].id

    def touched_ids(self) -> set[str]:
        """Ids mentioned by any edge, dangling or not."""
        touched: set[str] = set()
        for edge in self.edges:
            touched.add(edge.source)
            touched.add(edge.target)
        return touched

    def roots(self) -> list[int]:
        """Indices with no incoming edge, in authored order."""
        return [
            i
            for i in range(len(self.nodes))
            if not self.incoming[i] and self.index_of.get(self.nodes[i].id) == i
        ]
