"""Pytest fixtures for Mnemograph tests"""
import zlib
from unittest.mock import MagicMock

import pytest

from mnemograph.exceptions import ProviderError
from mnemograph.storage import KnowledgeGraph

EMBEDDING_DIM = 32


def keyword_vector(text: str, dimensions: int = EMBEDDING_DIM):
    """Bag-of-words vector: each lower-cased word bumps one crc32-chosen bucket."""
    vector = [0.0] * dimensions
    for word in text.lower().split():
        vector[zlib.crc32(word.encode()) % dimensions] += 1.0
    return vector


@pytest.fixture
def graph():
    """Empty in-memory graph with no embedding provider."""
    return KnowledgeGraph()


@pytest.fixture
def mock_embedder():
    """Mock embedder returning deterministic keyword vectors."""
    mock = MagicMock()
    mock.embed.side_effect = keyword_vector
    mock.embed_batch.side_effect = lambda texts: [keyword_vector(t) for t in texts]
    return mock


@pytest.fixture
def failing_embedder():
    """Mock embedder whose every call fails."""
    mock = MagicMock()
    mock.embed.side_effect = ProviderError("provider unavailable")
    return mock


@pytest.fixture
def data_dir(tmp_path):
    """Fresh data directory for config and graph snapshots."""
    path = tmp_path / "mnemograph"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def snapshot_path(tmp_path):
    return tmp_path / "graph.json"
