"""
Knowledge Graph - in-memory node/edge store for Mnemograph

This is the CORE of the cognitive memory engine - everything depends on it.
- Typed nodes and directed, weighted edges
- Secondary indices: kind -> node ids, source node -> outgoing edge ids
- Similarity search weighted by importance and recency decay
- Depth-bounded traversal for context subgraphs
- Importance recomputation and capacity-triggered pruning
- JSON snapshot persistence with optional auto-save

All mutation (including the access-stat updates made by search) is
serialized through a single re-entrant lock.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from ..exceptions import GraphReferenceError, PersistenceError
from .models import (
    DEFAULT_IMPORTANCE,
    Edge,
    EdgeType,
    MemoryContext,
    Node,
    NodeKind,
    Subgraph,
    build_indices,
    new_id,
    utcnow,
    validate_unit_interval,
)
from .importance import calculate_importance, select_edges_to_prune, select_nodes_to_prune
from .persistence import AutoSaver, GraphPersistence
from .search import rank_nodes
from .traversal import expand_seeds, related_nodes

logger = logging.getLogger(__name__)


class KnowledgeGraph:
    """
    Single-process knowledge graph with bounded capacity.

    Usage:
        graph = KnowledgeGraph(max_nodes=1000)
        a = graph.add_node("concept", "caching", "caching")
        b = graph.add_node("concept", "eviction", "eviction")
        graph.add_edge(a.id, b.id, "relates_to", weight=0.8)
        context = graph.search("eviction", threshold=0.3)
    """

    DEFAULT_MAX_NODES = 10000
    DEFAULT_MAX_EDGES = 50000
    DEFAULT_PRUNE_THRESHOLD = 0.1
    DEFAULT_AUTO_SAVE_INTERVAL = 60.0

    def __init__(self,
                 max_nodes: int = DEFAULT_MAX_NODES,
                 max_edges: int = DEFAULT_MAX_EDGES,
                 prune_threshold: float = DEFAULT_PRUNE_THRESHOLD,
                 embedder: Optional[Any] = None,
                 persistence_path: Optional[Union[str, Path]] = None,
                 auto_save: bool = False,
                 auto_save_interval: float = DEFAULT_AUTO_SAVE_INTERVAL):
        """
        Initialize an empty graph.

        Args:
            max_nodes: Node count above which node pruning runs
            max_edges: Edge count above which edge pruning runs
            prune_threshold: Nodes with importance at or above this are never auto-pruned
            embedder: Optional object with embed(text) -> List[float]
            persistence_path: Optional JSON snapshot file
            auto_save: Start a background save timer (requires persistence_path)
            auto_save_interval: Seconds between auto-saves
        """
        if max_nodes <= 0 or max_edges <= 0:
            raise ValueError("max_nodes and max_edges must be positive")
        validate_unit_interval("prune_threshold", prune_threshold)

        self.max_nodes = max_nodes
        self.max_edges = max_edges
        self.prune_threshold = prune_threshold
        self.embedder = embedder

        self.nodes: Dict[str, Node] = {}
        self.edges: Dict[str, Edge] = {}
        self.node_index: Dict[str, Set[str]] = {}
        self.edge_index: Dict[str, Set[str]] = {}
        # target node id -> incoming edge ids (derived, never persisted)
        self._incoming: Dict[str, Set[str]] = {}

        self._lock = threading.RLock()

        self.persistence = GraphPersistence(persistence_path) if persistence_path else None
        self._auto_saver: Optional[AutoSaver] = None
        if auto_save and self.persistence is not None:
            self._auto_saver = AutoSaver(self.save, interval=auto_save_interval)

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------

    def _embed(self, text: str) -> Optional[List[float]]:
        """Embed text, degrading to None on any provider failure."""
        if self.embedder is None:
            return None
        try:
            vector = self.embedder.embed(text)
        except Exception as e:
            logger.warning(f"Embedding provider failed, using text overlap: {e}")
            return None
        if vector is None or len(vector) == 0:
            return None
        try:
            return [float(x) for x in vector]
        except (TypeError, ValueError) as e:
            logger.warning(f"Embedding provider returned an invalid vector: {e}")
            return None

    # ------------------------------------------------------------------
    # Node / edge store
    # ------------------------------------------------------------------

    def add_node(self,
                 kind: Union[NodeKind, str],
                 name: str,
                 content: str,
                 metadata: Optional[Dict[str, Any]] = None,
                 importance: Optional[float] = None,
                 embedding: Optional[List[float]] = None) -> Node:
        """
        Add a node to the graph.

        Args:
            kind: One of (concept, entity, relation, code, document, memory)
            name: Short label
            content: Full text payload
            metadata: Kind-specific attributes
            importance: Initial importance 0.0-1.0 (default 0.5)
            embedding: Precomputed vector; computed from name + content when omitted

        Returns:
            The created Node
        """
        kind = NodeKind(kind)
        if importance is None:
            importance = DEFAULT_IMPORTANCE
        validate_unit_interval("importance", importance)

        if embedding is None:
            embedding = self._embed(f"{name} {content}")

        now = utcnow()
        node = Node(
            id=new_id(),
            kind=kind,
            name=name,
            content=content,
            metadata=dict(metadata or {}),
            embedding=embedding,
            importance=float(importance),
            access_count=0,
            last_accessed=now,
            created_at=now,
            updated_at=now,
        )

        with self._lock:
            self.nodes[node.id] = node
            self.node_index.setdefault(kind.value, set()).add(node.id)

            if len(self.nodes) > self.max_nodes:
                self.prune_nodes()

        return node

    def add_edge(self,
                 source: str,
                 target: str,
                 edge_type: Union[EdgeType, str],
                 weight: float = 0.5,
                 metadata: Optional[Dict[str, Any]] = None) -> Edge:
        """
        Create a directed edge between two existing nodes.

        Args:
            source: Source node ID
            target: Target node ID
            edge_type: One of (relates_to, contains, depends_on, similar_to, derived_from, references)
            weight: Relationship strength 0.0-1.0
            metadata: Edge attributes

        Returns:
            The created Edge

        Raises:
            GraphReferenceError: If either endpoint does not exist
        """
        edge_type = EdgeType(edge_type)
        validate_unit_interval("weight", weight)

        with self._lock:
            missing = [node_id for node_id in (source, target) if node_id not in self.nodes]
            if missing:
                raise GraphReferenceError(missing)

            edge = Edge(
                id=new_id(),
                source=source,
                target=target,
                type=edge_type,
                weight=float(weight),
                metadata=dict(metadata or {}),
            )
            self.edges[edge.id] = edge
            self.edge_index.setdefault(source, set()).add(edge.id)
            self._incoming.setdefault(target, set()).add(edge.id)

            self.recompute_importance(source)
            if target != source:
                self.recompute_importance(target)

            if len(self.edges) > self.max_edges:
                self.prune_edges(keep=edge.id)

        return edge

    def remove_node(self, node_id: str) -> bool:
        """
        Remove a node and every edge touching it.

        Returns:
            True if removed, False if the id was unknown
        """
        with self._lock:
            node = self.nodes.get(node_id)
            if node is None:
                return False

            ids = self.node_index.get(node.kind.value)
            if ids is not None:
                ids.discard(node_id)
                if not ids:
                    del self.node_index[node.kind.value]

            touching = set(self.edge_index.get(node_id, ())) | set(self._incoming.get(node_id, ()))
            for edge_id in touching:
                self.remove_edge(edge_id)

            del self.nodes[node_id]
            return True

    def remove_edge(self, edge_id: str) -> bool:
        """
        Remove an edge.

        Returns:
            True if removed, False if the id was unknown
        """
        with self._lock:
            edge = self.edges.pop(edge_id, None)
            if edge is None:
                return False

            for index, key in ((self.edge_index, edge.source), (self._incoming, edge.target)):
                ids = index.get(key)
                if ids is not None:
                    ids.discard(edge_id)
                    if not ids:
                        del index[key]
            return True

    def get_node(self, node_id: str) -> Optional[Node]:
        """Retrieve a node by ID (does not count as an access)."""
        return self.nodes.get(node_id)

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        return self.edges.get(edge_id)

    def get_edges(self, node_id: str, direction: str = "both") -> List[Edge]:
        """
        Get edges attached to a node.

        Args:
            node_id: The node ID
            direction: "out", "in" or "both"
        """
        if direction not in ("out", "in", "both"):
            raise ValueError("direction must be one of: out, in, both")
        with self._lock:
            edge_ids: Set[str] = set()
            if direction in ("out", "both"):
                edge_ids |= self.edge_index.get(node_id, set())
            if direction in ("in", "both"):
                edge_ids |= self._incoming.get(node_id, set())
            return sorted((self.edges[e] for e in edge_ids), key=lambda e: e.created_at)

    def nodes_of_kind(self, kind: Union[NodeKind, str]) -> List[Node]:
        kind = NodeKind(kind)
        with self._lock:
            return [self.nodes[node_id] for node_id in self.node_index.get(kind.value, ())]

    def degree(self, node_id: str) -> int:
        """Outgoing plus incoming edge count."""
        return len(self.edge_index.get(node_id, ())) + len(self._incoming.get(node_id, ()))

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    # ------------------------------------------------------------------
    # Importance and pruning
    # ------------------------------------------------------------------

    def recompute_importance(self, node_id: str) -> Optional[float]:
        """
        Recalculate a node's importance from its connectivity, access and recency.

        Returns:
            The new importance, or None for unknown ids
        """
        with self._lock:
            node = self.nodes.get(node_id)
            if node is None:
                return None
            node.importance = calculate_importance(node, self.degree(node_id))
            node.updated_at = utcnow()
            return node.importance

    def prune_nodes(self) -> List[str]:
        """
        Evict the least important nodes when over capacity.

        Only nodes strictly below prune_threshold are removed.

        Returns:
            IDs of removed nodes
        """
        with self._lock:
            to_remove = select_nodes_to_prune(self.nodes.values(), self.max_nodes, self.prune_threshold)
            for node_id in to_remove:
                self.remove_node(node_id)

        if to_remove:
            logger.info(f"Pruned {len(to_remove)} nodes from knowledge graph")
        return to_remove

    def prune_edges(self, keep: Optional[str] = None) -> List[str]:
        """
        Evict the lowest-weight edges when over capacity.

        Args:
            keep: Edge ID that must survive (the edge just added)

        Returns:
            IDs of removed edges
        """
        with self._lock:
            to_remove = select_edges_to_prune(self.edges.values(), self.max_edges, keep)
            for edge_id in to_remove:
                self.remove_edge(edge_id)

        if to_remove:
            logger.info(f"Pruned {len(to_remove)} edges from knowledge graph")
        return to_remove

    # ------------------------------------------------------------------
    # Search and traversal
    # ------------------------------------------------------------------

    def search(self,
               query: str,
               kind: Optional[Union[NodeKind, str]] = None,
               limit: int = 10,
               threshold: float = 0.7,
               include_related: bool = True,
               depth: int = 2) -> MemoryContext:
        """
        Rank nodes against a query and optionally expand them into a subgraph.

        Every returned node has access_count incremented and last_accessed
        refreshed.

        Args:
            query: Query text
            kind: Optional node kind filter
            limit: Max ranked results
            threshold: Minimum adjusted score
            include_related: Expand results through outgoing edges
            depth: Traversal depth for related nodes

        Returns:
            MemoryContext with ranked nodes, traversal edges and scores
        """
        kind = NodeKind(kind) if kind is not None else None
        query_embedding = self._embed(query)

        with self._lock:
            now = utcnow()
            ranked = rank_nodes(
                self.nodes.values(),
                query,
                query_embedding=query_embedding,
                kind=kind,
                limit=limit,
                threshold=threshold,
                now=now,
            )

            results = [node for node, _ in ranked]
            scores = {node.id: score for node, score in ranked}

            for node in results:
                node.access_count += 1
                node.last_accessed = now

            related: List[Node] = []
            edges: List[Edge] = []
            if include_related and results:
                related, edges = expand_seeds(
                    self.nodes, self.edges, self.edge_index,
                    [node.id for node in results], depth,
                )

            return MemoryContext(
                nodes=results,
                edges=edges,
                relevance_scores=scores,
                subgraph=Subgraph.build(results + related, edges),
            )

    def related_nodes(self,
                      node_id: str,
                      depth: int = 2,
                      visited: Optional[Set[str]] = None) -> Tuple[List[Node], List[Edge]]:
        """
        Depth-bounded expansion from a node through outgoing edges.

        Returns:
            (related nodes excluding node_id, traversed edges)
        """
        with self._lock:
            return related_nodes(self.nodes, self.edges, self.edge_index, node_id, depth, visited)

    # ------------------------------------------------------------------
    # Statistics and export
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        """
        Get graph statistics.

        Returns:
            Dict with total_nodes, total_edges, nodes_by_type, edges_by_type,
            average_importance
        """
        with self._lock:
            nodes_by_type = {kind: len(ids) for kind, ids in self.node_index.items() if ids}
            edges_by_type: Dict[str, int] = {}
            for edge in self.edges.values():
                edges_by_type[edge.type.value] = edges_by_type.get(edge.type.value, 0) + 1

            total = len(self.nodes)
            average = sum(n.importance for n in self.nodes.values()) / total if total else 0.0

            return {
                "total_nodes": total,
                "total_edges": len(self.edges),
                "nodes_by_type": nodes_by_type,
                "edges_by_type": edges_by_type,
                "average_importance": average,
            }

    def export_for_visualization(self) -> Dict[str, List[Dict[str, Any]]]:
        """Flatten the graph into node/edge lists for graph renderers."""
        with self._lock:
            nodes = [{
                "id": node.id,
                "label": node.name,
                "type": node.kind.value,
                "importance": node.importance,
                "group": node.kind.value,
            } for node in self.nodes.values()]

            edges = [{
                "id": edge.id,
                "source": edge.source,
                "target": edge.target,
                "label": edge.type.value,
                "weight": edge.weight,
            } for edge in self.edges.values()]

        return {"nodes": nodes, "edges": edges}

    # ------------------------------------------------------------------
    # Index maintenance, snapshot and restore
    # ------------------------------------------------------------------

    def rebuild_indices(self) -> None:
        """Recompute every secondary index from the node and edge tables."""
        with self._lock:
            self.node_index, self.edge_index = build_indices(self.nodes.values(), self.edges.values())
            self._incoming = {}
            for edge in self.edges.values():
                self._incoming.setdefault(edge.target, set()).add(edge.id)

    def indices_consistent(self) -> bool:
        """True when the live indices match a fresh rebuild."""
        with self._lock:
            node_index, edge_index = build_indices(self.nodes.values(), self.edges.values())
            live_nodes = {k: v for k, v in self.node_index.items() if v}
            live_edges = {k: v for k, v in self.edge_index.items() if v}
            return live_nodes == node_index and live_edges == edge_index

    def snapshot(self) -> Dict[str, Any]:
        """Serializable copy of the full graph state."""
        with self._lock:
            return {
                "nodes": [node.to_dict() for node in self.nodes.values()],
                "edges": [edge.to_dict() for edge in self.edges.values()],
                "node_index": [[kind, sorted(ids)] for kind, ids in self.node_index.items()],
                "edge_index": [[source, sorted(ids)] for source, ids in self.edge_index.items()],
            }

    def restore(self, snapshot: Dict[str, Any]) -> None:
        """
        Replace the graph contents with a snapshot.

        Serialized indices are ignored and rebuilt; edges whose endpoints
        are missing are dropped.

        Raises:
            PersistenceError: If a node or edge record is malformed
        """
        try:
            nodes = [Node.from_dict(record) for record in snapshot.get("nodes", [])]
            edges = [Edge.from_dict(record) for record in snapshot.get("edges", [])]
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"Malformed graph snapshot: {e}") from e

        node_map = {node.id: node for node in nodes}
        edge_map = {}
        for edge in edges:
            if edge.source in node_map and edge.target in node_map:
                edge_map[edge.id] = edge
            else:
                logger.warning(f"Dropping edge {edge.id} with missing endpoint")

        with self._lock:
            self.nodes = node_map
            self.edges = edge_map
            self.rebuild_indices()

    def clear(self) -> None:
        """Remove every node, edge and index entry."""
        with self._lock:
            self.nodes = {}
            self.edges = {}
            self.node_index = {}
            self.edge_index = {}
            self._incoming = {}
        logger.info("Knowledge graph cleared")

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, strict: bool = False) -> bool:
        """
        Write the graph to the configured snapshot file.

        Args:
            strict: Raise PersistenceError instead of logging it

        Returns:
            True if saved, False if persistence is disabled or the save failed
        """
        if self.persistence is None:
            return False

        snapshot = self.snapshot()
        try:
            self.persistence.save(snapshot)
        except PersistenceError as e:
            if strict:
                raise
            logger.error(f"Failed to save knowledge graph: {e}", exc_info=True)
            return False
        return True

    def load(self, strict: bool = False) -> bool:
        """
        Replace the graph with the configured snapshot file's contents.

        Args:
            strict: Raise PersistenceError instead of logging it

        Returns:
            True if a snapshot was loaded
        """
        if self.persistence is None:
            return False

        try:
            snapshot = self.persistence.load()
            if snapshot is None:
                return False
            self.restore(snapshot)
        except PersistenceError as e:
            if strict:
                raise
            logger.warning(f"Failed to load knowledge graph: {e}")
            return False

        logger.info(f"Knowledge graph loaded ({len(self.nodes)} nodes, {len(self.edges)} edges)")
        return True

    def start_auto_save(self) -> None:
        if self._auto_saver is not None:
            self._auto_saver.start()

    def stop_auto_save(self) -> None:
        if self._auto_saver is not None:
            self._auto_saver.stop()

    @property
    def auto_save_running(self) -> bool:
        return self._auto_saver is not None and self._auto_saver.running

    def close(self) -> None:
        """Stop auto-save and write a final snapshot."""
        self.stop_auto_save()
        self.save()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        return f"KnowledgeGraph(nodes={len(self.nodes)}, edges={len(self.edges)})"
