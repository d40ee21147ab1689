"""
Mnemograph - cognitive memory on a knowledge graph

Typed nodes and weighted edges with importance-weighted similarity search,
depth-bounded context traversal, capacity pruning and JSON persistence.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .storage import (
    AutoSaver,
    Edge,
    EdgeType,
    GraphPersistence,
    KnowledgeGraph,
    MemoryContext,
    Node,
    NodeKind,
    Subgraph,
)
from .code_analysis import CodeAnalyzer, CodeAnalysisResult, CodeDependency, CodePattern, CodeSymbol
from .config import MemoryConfig, load_config, write_config
from .embeddings import EmbeddingCache, HashEmbedder, OllamaEmbedder, OpenAIEmbedder, create_embedder
from .exceptions import ConfigError, GraphReferenceError, MnemographError, PersistenceError, ProviderError
from .memory import CognitiveMemory

__all__ = [
    "__version__",
    "KnowledgeGraph",
    "Node",
    "Edge",
    "NodeKind",
    "EdgeType",
    "MemoryContext",
    "Subgraph",
    "GraphPersistence",
    "AutoSaver",
    "CognitiveMemory",
    "CodeAnalyzer",
    "CodeAnalysisResult",
    "CodeSymbol",
    "CodeDependency",
    "CodePattern",
    "MemoryConfig",
    "load_config",
    "write_config",
    "OllamaEmbedder",
    "OpenAIEmbedder",
    "HashEmbedder",
    "EmbeddingCache",
    "create_embedder",
    "MnemographError",
    "GraphReferenceError",
    "PersistenceError",
    "ProviderError",
    "ConfigError",
]
