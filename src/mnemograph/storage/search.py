"""
Ranking operations for knowledge graph search

This module scores resident nodes against a query:
- Embedding cosine similarity when both sides carry a vector
- Word-set Jaccard overlap as the fallback
- Importance and recency decay weighting: score = relevance * importance * exp(-days/30)
"""

import math
from datetime import datetime
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from .models import Node, NodeKind, utcnow
from .embeddings import comparable, cosine_similarity

# Decay constant for the recency multiplier (days)
RECENCY_DECAY_DAYS = 30.0

SECONDS_PER_DAY = 86400.0


def days_since(timestamp: Optional[datetime], now: Optional[datetime] = None) -> float:
    """Fractional days elapsed since timestamp (never negative)."""
    if timestamp is None:
        return 0.0
    now = now or utcnow()
    return max((now - timestamp).total_seconds() / SECONDS_PER_DAY, 0.0)


def recency_boost(last_accessed: Optional[datetime], now: Optional[datetime] = None) -> float:
    """
    Calculate recency multiplier.
    Formula: exp(-days_since_access / 30)
    """
    return math.exp(-days_since(last_accessed, now) / RECENCY_DECAY_DAYS)


def _word_set(text: str) -> Set[str]:
    return set(text.lower().split())


def text_similarity(query: str, text: str) -> float:
    """
    Jaccard overlap of lower-cased word sets.

    Returns:
        |intersection| / |union|, 0.0 when both are empty
    """
    words_a = _word_set(query)
    words_b = _word_set(text)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def raw_relevance(query: str, query_embedding: Optional[Sequence[float]], node: Node) -> float:
    """Cosine similarity when both embeddings are usable, else word overlap."""
    if comparable(query_embedding, node.embedding):
        return cosine_similarity(query_embedding, node.embedding)
    return text_similarity(query, node.text)


def rank_nodes(nodes: Iterable[Node],
               query: str,
               query_embedding: Optional[Sequence[float]] = None,
               kind: Optional[NodeKind] = None,
               limit: int = 10,
               threshold: float = 0.7,
               now: Optional[datetime] = None) -> List[Tuple[Node, float]]:
    """
    Score nodes against a query.

    Algorithm:
    1. Raw relevance per node (cosine or Jaccard)
    2. Multiply by importance and recency decay
    3. Keep scores >= threshold, sort descending, truncate to limit

    Args:
        nodes: Candidate nodes (linear scan)
        query: Query text
        query_embedding: Optional query vector
        kind: Optional node kind filter
        limit: Max results to return
        threshold: Minimum adjusted score
        now: Reference time for recency (defaults to current UTC time)

    Returns:
        List of (Node, adjusted_score) tuples
    """
    now = now or utcnow()
    scored = []

    for node in nodes:
        if kind is not None and node.kind != kind:
            continue

        score = raw_relevance(query, query_embedding, node)
        score *= node.importance
        score *= recency_boost(node.last_accessed, now)

        if score >= threshold:
            scored.append((node, score))

    scored.sort(key=lambda x: x[1], reverse=True)
    return scored[:limit]
