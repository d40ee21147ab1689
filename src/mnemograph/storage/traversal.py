"""
Graph Traversal Operations for the knowledge graph

This module expands nodes outward through their outgoing edges:
- related_nodes: depth-bounded expansion from a single node
- expand_seeds: expansion from a set of result nodes, skipping the seeds themselves

Expansion is breadth-first, so every node within `depth` hops is reached
through its shortest path. A shared visited set guarantees that each node is
expanded at most once per traversal, so cyclic graphs terminate and no node
is returned twice.
"""

from collections import deque
from typing import Iterable, List, Mapping, Optional, Set, Tuple

from .models import Node, Edge

NodeTable = Mapping[str, Node]
EdgeTable = Mapping[str, Edge]
EdgeIndex = Mapping[str, Set[str]]


def _expand(nodes: NodeTable,
            edges: EdgeTable,
            edge_index: EdgeIndex,
            start_ids: List[str],
            depth: int,
            visited: Set[str]) -> Tuple[List[Node], List[Edge]]:
    found_nodes: List[Node] = []
    found_edges: List[Edge] = []

    queue = deque((node_id, 0) for node_id in start_ids)
    while queue:
        node_id, hop = queue.popleft()
        if hop >= depth:
            continue

        # Sorted for deterministic output order
        for edge_id in sorted(edge_index.get(node_id, ())):
            edge = edges.get(edge_id)
            if edge is None:
                continue

            found_edges.append(edge)

            target = nodes.get(edge.target)
            if target is None or target.id in visited:
                continue

            visited.add(target.id)
            found_nodes.append(target)
            queue.append((target.id, hop + 1))

    return found_nodes, found_edges


def related_nodes(nodes: NodeTable,
                  edges: EdgeTable,
                  edge_index: EdgeIndex,
                  node_id: str,
                  depth: int = 2,
                  visited: Optional[Set[str]] = None) -> Tuple[List[Node], List[Edge]]:
    """
    Depth-bounded expansion through outgoing edges.

    Used for: assembling the context subgraph around a node

    Args:
        nodes: Node table
        edges: Edge table
        edge_index: source node id -> outgoing edge ids
        node_id: Starting node ID
        depth: Maximum number of hops (0 returns nothing)
        visited: Shared visited set; mutated in place

    Returns:
        (related nodes excluding the start node, traversed edges)
    """
    if visited is None:
        visited = set()

    if depth <= 0 or node_id in visited:
        return [], []

    visited.add(node_id)
    return _expand(nodes, edges, edge_index, [node_id], depth, visited)


def expand_seeds(nodes: NodeTable,
                 edges: EdgeTable,
                 edge_index: EdgeIndex,
                 seed_ids: Iterable[str],
                 depth: int = 2) -> Tuple[List[Node], List[Edge]]:
    """
    Expand every seed, deduplicating against the seeds and each other.

    Args:
        seed_ids: Ordered node IDs to expand (typically ranked search results)
        depth: Maximum number of hops from each seed

    Returns:
        (nodes reached that are not seeds, traversed edges)
    """
    seeds = list(dict.fromkeys(seed_ids))
    if depth <= 0:
        return [], []

    return _expand(nodes, edges, edge_index, seeds, depth, set(seeds))
