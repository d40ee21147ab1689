from .graph_store import KnowledgeGraph
from .models import Node, Edge, NodeKind, EdgeType, MemoryContext, Subgraph
from .persistence import GraphPersistence, AutoSaver

__all__ = [
    "KnowledgeGraph",
    "Node",
    "Edge",
    "NodeKind",
    "EdgeType",
    "MemoryContext",
    "Subgraph",
    "GraphPersistence",
    "AutoSaver",
]
