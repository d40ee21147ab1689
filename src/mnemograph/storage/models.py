"""
Data models for the knowledge graph store.

This module contains the core dataclasses representing nodes and edges
in the cognitive memory graph, plus the closed sets of node kinds and
edge types.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
from dataclasses import dataclass, field


class NodeKind(str, Enum):
    """Kinds of knowledge a node can hold"""
    CONCEPT = "concept"
    ENTITY = "entity"
    RELATION = "relation"
    CODE = "code"
    DOCUMENT = "document"
    MEMORY = "memory"


class EdgeType(str, Enum):
    """Relationship types between nodes"""
    RELATES_TO = "relates_to"
    CONTAINS = "contains"
    DEPENDS_ON = "depends_on"
    SIMILAR_TO = "similar_to"
    DERIVED_FROM = "derived_from"
    REFERENCES = "references"


DEFAULT_IMPORTANCE = 0.5


def utcnow() -> datetime:
    """Timezone-aware current time; all stored timestamps are UTC."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 string, treating naive values as UTC."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_unit_interval(name: str, value: float) -> None:
    if not 0.0 <= value <= 1.0:
        raise ValueError(f"{name} must be between 0.0 and 1.0")


@dataclass
class Node:
    """A node in the knowledge graph."""
    id: str
    kind: NodeKind
    name: str
    content: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    embedding: Optional[List[float]] = None
    importance: float = DEFAULT_IMPORTANCE
    access_count: int = 0
    last_accessed: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.kind = NodeKind(self.kind)
        if self.created_at is None:
            self.created_at = utcnow()
        if self.updated_at is None:
            self.updated_at = self.created_at
        if self.last_accessed is None:
            self.last_accessed = self.created_at

    @property
    def text(self) -> str:
        """Text used for embeddings and the word-overlap fallback."""
        return f"{self.name} {self.content}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "content": self.content,
            "metadata": self.metadata,
            "embedding": self.embedding,
            "importance": self.importance,
            "access_count": self.access_count,
            "last_accessed": self.last_accessed.isoformat() if self.last_accessed else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        return cls(
            id=data["id"],
            kind=NodeKind(data["kind"]),
            name=data.get("name", ""),
            content=data.get("content", ""),
            metadata=dict(data.get("metadata") or {}),
            embedding=data.get("embedding"),
            importance=float(data.get("importance", DEFAULT_IMPORTANCE)),
            access_count=int(data.get("access_count", 0)),
            last_accessed=parse_timestamp(data.get("last_accessed")),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


@dataclass
class Edge:
    """A directed, weighted relationship between two nodes."""
    id: str
    source: str
    target: str
    type: EdgeType
    weight: float = 0.5
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    def __post_init__(self):
        self.type = EdgeType(self.type)
        if self.created_at is None:
            self.created_at = utcnow()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type.value,
            "weight": self.weight,
            "metadata": self.metadata,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Edge":
        return cls(
            id=data["id"],
            source=data["source"],
            target=data["target"],
            type=EdgeType(data["type"]),
            weight=float(data.get("weight", 0.5)),
            metadata=dict(data.get("metadata") or {}),
            created_at=parse_timestamp(data.get("created_at")),
        )


def build_indices(nodes: Iterable[Node], edges: Iterable[Edge]) -> Tuple[Dict[str, Set[str]], Dict[str, Set[str]]]:
    """
    Derive the secondary indices from node and edge records.

    Returns:
        (kind -> node ids, source node id -> outgoing edge ids)
    """
    node_index: Dict[str, Set[str]] = {}
    edge_index: Dict[str, Set[str]] = {}
    for node in nodes:
        node_index.setdefault(node.kind.value, set()).add(node.id)
    for edge in edges:
        edge_index.setdefault(edge.source, set()).add(edge.id)
    return node_index, edge_index


@dataclass
class Subgraph:
    """A self-contained slice of the graph with its own indices."""
    nodes: Dict[str, Node] = field(default_factory=dict)
    edges: Dict[str, Edge] = field(default_factory=dict)
    node_index: Dict[str, Set[str]] = field(default_factory=dict)
    edge_index: Dict[str, Set[str]] = field(default_factory=dict)

    @classmethod
    def build(cls, nodes: Iterable[Node], edges: Iterable[Edge]) -> "Subgraph":
        node_map = {node.id: node for node in nodes}
        edge_map = {edge.id: edge for edge in edges}
        node_index, edge_index = build_indices(node_map.values(), edge_map.values())
        return cls(nodes=node_map, edges=edge_map,
                   node_index=node_index, edge_index=edge_index)


@dataclass
class MemoryContext:
    """
    Result of a search or traversal.

    Attributes:
        nodes: Ranked result nodes (or the seed node for traversals)
        edges: Edges collected while expanding the results
        relevance_scores: node id -> adjusted score for ranked nodes
        subgraph: Results plus related nodes, with rebuilt indices
    """
    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    relevance_scores: Dict[str, float] = field(default_factory=dict)
    subgraph: Subgraph = field(default_factory=Subgraph)

    @property
    def related_nodes(self) -> List[Node]:
        """Nodes reached by traversal that are not ranked results."""
        result_ids = {node.id for node in self.nodes}
        return [node for node_id, node in self.subgraph.nodes.items()
                if node_id not in result_ids]
