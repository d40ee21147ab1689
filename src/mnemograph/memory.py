"""
Cognitive Memory - the main entry point for Mnemograph

Wraps a KnowledgeGraph with kind-specific helpers, code ingestion and
multi-query context assembly:

    memory = CognitiveMemory.from_config(load_config())
    memory.initialize()
    concept = memory.add_concept("caching", "Keep hot data close to the CPU")
    context = memory.search("hot data", threshold=0.2)
    memory.close()
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from .code_analysis import CodeAnalysisResult, CodeAnalyzer
from .config import MemoryConfig
from .embeddings import HashEmbedder, create_embedder
from .exceptions import ConfigError, GraphReferenceError
from .storage import (
    Edge,
    EdgeType,
    KnowledgeGraph,
    MemoryContext,
    Node,
    NodeKind,
    Subgraph,
)

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = (".js", ".ts", ".jsx", ".tsx", ".py")
SKIP_DIRECTORIES = {"node_modules", ".git", "dist", "build", "__pycache__", ".venv"}

MEMORY_IMPORTANCE = 0.6
CLASS_SYMBOL_IMPORTANCE = 0.7
SYMBOL_IMPORTANCE = 0.6
DEPENDENCY_IMPORTANCE = 0.4
CONTAINS_WEIGHT = 0.8
DEPENDS_ON_WEIGHT = 0.6


class CognitiveMemory:
    """
    High-level memory operations over a single knowledge graph.

    The graph, its embedding provider and its persistence settings all come
    from a MemoryConfig; clear() empties the graph but keeps that wiring.
    """

    def __init__(self,
                 config: Optional[MemoryConfig] = None,
                 embedder: Optional[Any] = None,
                 analyzer: Optional[CodeAnalyzer] = None):
        """
        Args:
            config: Graph settings (defaults: in-memory only)
            embedder: Embedding provider; None means word-overlap search only
            analyzer: Code analyzer used for ingestion
        """
        self.config = (config or MemoryConfig()).validate()
        self.analyzer = analyzer or CodeAnalyzer()
        self.graph = KnowledgeGraph(
            max_nodes=self.config.max_nodes,
            max_edges=self.config.max_edges,
            prune_threshold=self.config.prune_threshold,
            embedder=embedder,
            persistence_path=self.config.persistence_path,
            auto_save=self.config.auto_save,
            auto_save_interval=self.config.auto_save_interval,
        )

    @classmethod
    def from_config(cls, config: MemoryConfig, cache_dir: Optional[Path] = None) -> "CognitiveMemory":
        """
        Build a memory with the embedding provider named in the config.

        A remote provider that cannot be configured (e.g. no API key) falls
        back to the local hash embedder.
        """
        try:
            embedder = create_embedder(
                provider=config.embedding_provider,
                model=config.embedding_model,
                base_url=config.embedding_base_url,
                dimensions=config.embedding_dimensions,
                cache_dir=cache_dir,
            )
        except ConfigError as e:
            if config.embedding_provider not in ("ollama", "openai"):
                raise
            logger.warning(f"Embedding provider '{config.embedding_provider}' unavailable, using local: {e}")
            embedder = HashEmbedder(dimensions=config.embedding_dimensions)

        return cls(config=config, embedder=embedder)

    @property
    def embedder(self) -> Optional[Any]:
        return self.graph.embedder

    def initialize(self) -> "CognitiveMemory":
        """Load the persisted graph (if any) and start auto-save."""
        self.graph.load()
        if self.config.auto_save:
            self.graph.start_auto_save()
        logger.info("Cognitive memory system initialized")
        return self

    # ------------------------------------------------------------------
    # Adding knowledge
    # ------------------------------------------------------------------

    @staticmethod
    def _initial_importance(metadata: Dict[str, Any], default: Optional[float]) -> Optional[float]:
        value = metadata.get("importance")
        return default if value is None else float(value)

    def add_concept(self, name: str, content: str,
                    metadata: Optional[Dict[str, Any]] = None) -> Node:
        metadata = dict(metadata or {})
        return self.graph.add_node(
            NodeKind.CONCEPT, name, content,
            metadata=metadata,
            importance=self._initial_importance(metadata, None),
        )

    def add_entity(self, name: str, content: str, entity_type: str,
                   metadata: Optional[Dict[str, Any]] = None) -> Node:
        """Add an entity; entity_type is stored in metadata["entity_type"]."""
        metadata = dict(metadata or {})
        importance = self._initial_importance(metadata, None)
        metadata["entity_type"] = entity_type
        return self.graph.add_node(NodeKind.ENTITY, name, content,
                                   metadata=metadata, importance=importance)

    def add_memory(self, content: str, context: str,
                   metadata: Optional[Dict[str, Any]] = None) -> Node:
        """
        Add an episodic memory.

        The node is named after the first 50 characters of the content and
        starts at importance 0.6 unless metadata["importance"] says otherwise.
        """
        metadata = dict(metadata or {})
        importance = self._initial_importance(metadata, MEMORY_IMPORTANCE)
        metadata["context"] = context
        return self.graph.add_node(
            NodeKind.MEMORY,
            f"Memory: {content[:50]}...",
            content,
            metadata=metadata,
            importance=importance,
        )

    def add_relationship(self,
                         source_id: str,
                         target_id: str,
                         edge_type: Union[EdgeType, str],
                         weight: float = 0.5,
                         metadata: Optional[Dict[str, Any]] = None) -> Edge:
        """Raises GraphReferenceError if either node is missing."""
        return self.graph.add_edge(source_id, target_id, edge_type,
                                   weight=weight, metadata=metadata)

    # ------------------------------------------------------------------
    # Code ingestion
    # ------------------------------------------------------------------

    def analyze_and_add_code(self, file_path: Union[str, Path],
                             content: Optional[str] = None) -> Tuple[Node, CodeAnalysisResult]:
        """
        Analyze a source file and ingest it.

        Creates one code node, an entity node per symbol (linked with
        contains) and an entity node per dependency (linked with depends_on).

        Args:
            file_path: Source file path (read when content is None)
            content: Source text, if already loaded

        Returns:
            (code node, analysis result)
        """
        path = Path(file_path)
        if content is None:
            content = path.read_text(encoding="utf-8")

        analysis = self.analyzer.analyze_code(content, str(path))

        code_node = self.graph.add_node(
            NodeKind.CODE,
            path.name,
            content,
            metadata={
                "file_path": str(path),
                "language": path.suffix[1:],
                "complexity": analysis.complexity,
                "symbol_count": len(analysis.symbols),
                "patterns": [p.type for p in analysis.patterns],
            },
            importance=min(0.5 + len(analysis.symbols) / 100, 1.0),
        )

        for symbol in analysis.symbols:
            symbol_node = self.graph.add_node(
                NodeKind.ENTITY,
                symbol.name,
                symbol.signature or symbol.name,
                metadata={
                    "entity_type": "code-symbol",
                    "symbol_type": symbol.kind,
                    "location": symbol.location,
                    "docstring": symbol.docstring,
                },
                importance=CLASS_SYMBOL_IMPORTANCE if symbol.kind == "class" else SYMBOL_IMPORTANCE,
            )
            self._link(code_node, symbol_node, EdgeType.CONTAINS, CONTAINS_WEIGHT,
                       {"symbol_type": symbol.kind})

        for dependency in analysis.dependencies:
            dependency_node = self.graph.add_node(
                NodeKind.ENTITY,
                dependency.target,
                f"Dependency: {dependency.target}",
                metadata={
                    "entity_type": "dependency",
                    "dependency_type": dependency.kind,
                },
                importance=DEPENDENCY_IMPORTANCE,
            )
            self._link(code_node, dependency_node, EdgeType.DEPENDS_ON, DEPENDS_ON_WEIGHT,
                       {"dependency_type": dependency.kind})

        logger.debug(
            f"Analyzed {path}: {len(analysis.symbols)} symbols, "
            f"{len(analysis.dependencies)} dependencies"
        )
        return code_node, analysis

    def _link(self, source: Node, target: Node, edge_type: EdgeType,
              weight: float, metadata: Dict[str, Any]) -> Optional[Edge]:
        # Either endpoint may already have been pruned by a later add_node
        try:
            return self.graph.add_edge(source.id, target.id, edge_type,
                                       weight=weight, metadata=metadata)
        except GraphReferenceError as e:
            logger.debug(f"Skipped {edge_type.value} link {source.name} -> {target.name}: {e}")
            return None

    def iter_source_files(self, root: Union[str, Path],
                          extensions: Iterable[str] = DEFAULT_EXTENSIONS) -> List[Path]:
        """Source files under root, skipping vendored and build directories."""
        extensions = {ext.lower() for ext in extensions}
        found = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in SKIP_DIRECTORIES)
            for filename in sorted(filenames):
                if Path(filename).suffix.lower() in extensions:
                    found.append(Path(dirpath) / filename)
        return found

    def analyze_codebase(self, root: Union[str, Path],
                         extensions: Optional[Iterable[str]] = None) -> Dict[str, int]:
        """
        Ingest every matching source file under root.

        Files that cannot be read are logged and skipped.

        Returns:
            Dict with files_analyzed and nodes_created
        """
        root = Path(root)
        if not root.is_dir():
            raise NotADirectoryError(f"Not a directory: {root}")

        files_analyzed = 0
        nodes_created = 0

        for file_path in self.iter_source_files(root, extensions or DEFAULT_EXTENSIONS):
            try:
                _, analysis = self.analyze_and_add_code(file_path)
            except (OSError, UnicodeDecodeError) as e:
                logger.error(f"Failed to analyze {file_path}: {e}")
                continue
            files_analyzed += 1
            nodes_created += 1 + len(analysis.symbols) + len(analysis.dependencies)

        logger.info(f"Analyzed {files_analyzed} files under {root} ({nodes_created} nodes)")
        return {"files_analyzed": files_analyzed, "nodes_created": nodes_created}

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def search(self,
               query: str,
               kind: Optional[Union[NodeKind, str]] = None,
               limit: int = 10,
               threshold: float = 0.7,
               include_related: bool = True,
               depth: int = 2) -> MemoryContext:
        return self.graph.search(query, kind=kind, limit=limit, threshold=threshold,
                                 include_related=include_related, depth=depth)

    def get_related(self, node_id: str, depth: int = 2) -> MemoryContext:
        """
        The node itself plus everything reachable within depth hops.

        Unknown ids give an empty context.
        """
        node = self.graph.get_node(node_id)
        if node is None:
            return MemoryContext()

        related, edges = self.graph.related_nodes(node_id, depth=depth)
        return MemoryContext(
            nodes=[node],
            edges=edges,
            subgraph=Subgraph.build([node] + related, edges),
        )

    def build_context(self,
                      queries: Iterable[str],
                      limit: int = 10,
                      threshold: float = 0.7,
                      depth: int = 2) -> MemoryContext:
        """
        Merge the results of several searches.

        Nodes and edges are deduplicated by id (first occurrence wins) and
        each node keeps the best score it achieved across queries.
        """
        nodes: Dict[str, Node] = {}
        edges: Dict[str, Edge] = {}
        subgraph_nodes: Dict[str, Node] = {}
        scores: Dict[str, float] = {}

        for query in queries:
            result = self.search(query, limit=limit, threshold=threshold,
                                 include_related=True, depth=depth)
            for node in result.nodes:
                nodes.setdefault(node.id, node)
            for edge in result.edges:
                edges.setdefault(edge.id, edge)
            for node_id, node in result.subgraph.nodes.items():
                subgraph_nodes.setdefault(node_id, node)
            for node_id, score in result.relevance_scores.items():
                scores[node_id] = max(scores.get(node_id, 0.0), score)

        return MemoryContext(
            nodes=list(nodes.values()),
            edges=list(edges.values()),
            relevance_scores=scores,
            subgraph=Subgraph.build(subgraph_nodes.values(), edges.values()),
        )

    def get_node(self, node_id: str) -> Optional[Node]:
        return self.graph.get_node(node_id)

    def get_edges(self, node_id: str, direction: str = "both") -> List[Edge]:
        return self.graph.get_edges(node_id, direction=direction)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def get_stats(self) -> Dict[str, Any]:
        return self.graph.get_stats()

    def export_for_visualization(self) -> Dict[str, List[Dict[str, Any]]]:
        return self.graph.export_for_visualization()

    def clear(self) -> None:
        self.graph.clear()
        logger.info("Cognitive memory cleared")

    def save(self, strict: bool = False) -> bool:
        return self.graph.save(strict=strict)

    def load(self, strict: bool = False) -> bool:
        return self.graph.load(strict=strict)

    def close(self) -> None:
        """Stop auto-save and write a final snapshot."""
        self.graph.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def __repr__(self):
        return f"CognitiveMemory({self.graph!r})"
