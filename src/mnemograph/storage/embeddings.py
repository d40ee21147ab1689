"""
Embedding utilities for the graph store.
Vector normalization and similarity calculations for node embeddings.
"""

import numpy as np
from typing import List, Optional, Sequence


def comparable(v1: Optional[Sequence[float]], v2: Optional[Sequence[float]]) -> bool:
    """True when both vectors are present and share a dimensionality."""
    return bool(v1) and bool(v2) and len(v1) == len(v2)


def cosine_similarity(v1: Sequence[float], v2: Sequence[float]) -> float:
    """
    Calculate cosine similarity between two vectors.

    Args:
        v1: First vector
        v2: Second vector

    Returns:
        Cosine similarity in [-1.0, 1.0]; 0.0 for empty, zero-norm or
        mismatched vectors
    """
    if not comparable(v1, v2):
        return 0.0
    arr1 = np.asarray(v1, dtype=np.float64)
    arr2 = np.asarray(v2, dtype=np.float64)
    norm = np.linalg.norm(arr1) * np.linalg.norm(arr2)
    if norm == 0 or not np.isfinite(norm):
        return 0.0
    return float(np.dot(arr1, arr2) / norm)


def normalize(vector: Sequence[float]) -> List[float]:
    """Scale a vector to unit length (zero vectors are returned unchanged)."""
    arr = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(arr)
    if norm == 0:
        return arr.tolist()
    return (arr / norm).tolist()
