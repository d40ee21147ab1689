"""
Importance scoring and pruning selection for the knowledge graph

Importance combines (additive, clamped to [0, 1]):
- base 0.5
- connectivity: min(degree / 20, 1) * 0.3
- access frequency: min(access_count / 100, 1) * 0.2
- recency: max(1 - days_since_access / 30, 0) * 0.1

Pruning trims a table back to 90% of its capacity, lowest importance
(nodes) or lowest weight (edges) first.
"""

import math
from datetime import datetime
from typing import Iterable, List, Optional

from .models import Node, Edge
from .search import days_since

BASE_IMPORTANCE = 0.5
CONNECTIVITY_WEIGHT = 0.3
ACCESS_WEIGHT = 0.2
RECENCY_WEIGHT = 0.1

CONNECTIVITY_SATURATION = 20
ACCESS_SATURATION = 100
RECENCY_WINDOW_DAYS = 30.0

# Pruning leaves the table at this fraction of capacity
PRUNE_TARGET_RATIO = 0.9


def calculate_importance(node: Node, degree: int, now: Optional[datetime] = None) -> float:
    """
    Recompute a node's importance from connectivity, access and recency.

    Args:
        node: The node being scored
        degree: Outgoing plus incoming edge count
        now: Reference time (defaults to current UTC time)

    Returns:
        Importance score (0.0-1.0)
    """
    importance = BASE_IMPORTANCE
    importance += min(degree / CONNECTIVITY_SATURATION, 1.0) * CONNECTIVITY_WEIGHT
    importance += min(node.access_count / ACCESS_SATURATION, 1.0) * ACCESS_WEIGHT

    days = days_since(node.last_accessed, now)
    importance += max(1.0 - days / RECENCY_WINDOW_DAYS, 0.0) * RECENCY_WEIGHT

    return min(max(importance, 0.0), 1.0)


def prune_count(size: int, capacity: int) -> int:
    """
    Number of entries to evaluate when size exceeds capacity (0 otherwise).

    The table is trimmed back to 90% of capacity, so at small capacities this
    is more than 10% of the table (capacity 1 evaluates every entry).
    """
    if size <= capacity:
        return 0
    return size - math.floor(capacity * PRUNE_TARGET_RATIO)


def select_nodes_to_prune(nodes: Iterable[Node], max_nodes: int, prune_threshold: float) -> List[str]:
    """
    Pick node IDs to evict.

    The lowest-importance candidates are considered; only those strictly
    below prune_threshold are selected.

    Returns:
        Node IDs to remove (may be empty)
    """
    ordered = sorted(nodes, key=lambda n: (n.importance, n.created_at))
    count = prune_count(len(ordered), max_nodes)
    return [node.id for node in ordered[:count] if node.importance < prune_threshold]


def select_edges_to_prune(edges: Iterable[Edge], max_edges: int,
                          keep: Optional[str] = None) -> List[str]:
    """
    Pick the lowest-weight edge IDs to evict (no threshold gate).

    The edge named by keep (the one whose insertion triggered pruning) is
    never selected, even when it falls among the candidates.

    Returns:
        Edge IDs to remove (may be empty)
    """
    ordered = sorted(edges, key=lambda e: (e.weight, e.created_at))
    count = prune_count(len(ordered), max_edges)
    return [edge.id for edge in ordered[:count] if edge.id != keep]
