"""
Tests for the CognitiveMemory facade

Tests cover:
- Kind-specific add helpers and their metadata conventions
- Code ingestion of single files and directory trees
- get_related, build_context and lifecycle (initialize / close)
"""

import json
import logging
import textwrap

import pytest

from mnemograph import CognitiveMemory, MemoryConfig
from mnemograph.embeddings import HashEmbedder
from mnemograph.exceptions import ConfigError, GraphReferenceError
from mnemograph.storage import EdgeType, NodeKind


@pytest.fixture
def memory():
    return CognitiveMemory()


MODULE_SOURCE = textwrap.dedent('''
    import json
    from pathlib import Path


    class Loader(Base):
        def load(self, path):
            return json.loads(Path(path).read_text())


    def main():
        pass
''')


class TestAddHelpers:
    """add_concept / add_entity / add_memory / add_relationship"""

    def test_add_concept(self, memory):
        node = memory.add_concept("caching", "keep hot data close", {"source": "notes"})
        assert node.kind is NodeKind.CONCEPT
        assert node.importance == 0.5
        assert node.metadata == {"source": "notes"}

    def test_metadata_importance_sets_initial_importance(self, memory):
        node = memory.add_concept("caching", "x", {"importance": 0.8})
        assert node.importance == 0.8

    def test_add_entity_stores_entity_type(self, memory):
        node = memory.add_entity("Redis", "in-memory store", "service")
        assert node.kind is NodeKind.ENTITY
        assert node.metadata["entity_type"] == "service"

    def test_add_memory(self, memory):
        content = "Deployed the cache layer and watched the p99 latency drop by half overnight"
        node = memory.add_memory(content, "ops review")

        assert node.kind is NodeKind.MEMORY
        assert node.name == f"Memory: {content[:50]}..."
        assert node.metadata["context"] == "ops review"
        assert node.importance == 0.6

    def test_add_memory_explicit_zero_importance(self, memory):
        node = memory.add_memory("trivial", "noise", {"importance": 0.0})
        assert node.importance == 0.0

    def test_add_relationship(self, memory):
        a = memory.add_concept("a", "a")
        b = memory.add_concept("b", "b")

        edge = memory.add_relationship(a.id, b.id, "derived_from", weight=0.7)

        assert edge.type is EdgeType.DERIVED_FROM
        assert memory.get_edges(a.id) == [edge]

    def test_add_relationship_missing_node(self, memory):
        a = memory.add_concept("a", "a")
        with pytest.raises(GraphReferenceError):
            memory.add_relationship(a.id, "ghost", "relates_to")


class TestCodeIngestion:
    """analyze_and_add_code / analyze_codebase"""

    def test_analyze_and_add_code(self, memory):
        node, analysis = memory.analyze_and_add_code("pkg/loader.py", MODULE_SOURCE)

        assert node.kind is NodeKind.CODE
        assert node.name == "loader.py"
        assert node.content == MODULE_SOURCE
        assert node.metadata["file_path"] == "pkg/loader.py"
        assert node.metadata["language"] == "py"
        assert node.metadata["symbol_count"] == len(analysis.symbols)
        assert node.metadata["complexity"] == analysis.complexity

        contains = [e for e in memory.get_edges(node.id, "out") if e.type is EdgeType.CONTAINS]
        depends = [e for e in memory.get_edges(node.id, "out") if e.type is EdgeType.DEPENDS_ON]
        assert len(contains) == len(analysis.symbols)
        assert len(depends) == len(analysis.dependencies)
        assert all(e.weight == 0.8 for e in contains)
        assert all(e.weight == 0.6 for e in depends)

        symbol_nodes = {memory.get_node(e.target).name: memory.get_node(e.target) for e in contains}
        assert symbol_nodes["Loader"].metadata["symbol_type"] == "class"
        assert symbol_nodes["Loader"].metadata["entity_type"] == "code-symbol"
        dependency_names = {memory.get_node(e.target).name for e in depends}
        assert {"json", "pathlib", "Base"} <= dependency_names

    def test_code_node_importance_grows_with_symbols(self, memory):
        node, analysis = memory.analyze_and_add_code("empty.py", "")
        assert analysis.symbols == []
        assert node.importance == 0.5

    def test_reads_file_when_content_omitted(self, memory, tmp_path):
        source = tmp_path / "main.py"
        source.write_text("def main():\n    pass\n")

        node, analysis = memory.analyze_and_add_code(source)

        assert node.content == "def main():\n    pass\n"
        assert [s.name for s in analysis.symbols] == ["main"]

    def test_analyze_codebase(self, memory, tmp_path):
        (tmp_path / "app").mkdir()
        (tmp_path / "app" / "one.py").write_text("def a():\n    pass\n")
        (tmp_path / "app" / "two.ts").write_text("export function b() {}\n")
        (tmp_path / "app" / "notes.md").write_text("# not code\n")
        (tmp_path / "node_modules" / "dep").mkdir(parents=True)
        (tmp_path / "node_modules" / "dep" / "index.js").write_text("function c() {}\n")
        (tmp_path / "__pycache__").mkdir()
        (tmp_path / "__pycache__" / "cached.py").write_text("x = 1\n")

        summary = memory.analyze_codebase(tmp_path)

        assert summary["files_analyzed"] == 2
        assert summary["nodes_created"] == memory.graph.node_count
        code_names = {n.name for n in memory.graph.nodes_of_kind("code")}
        assert code_names == {"one.py", "two.ts"}

    def test_analyze_codebase_extension_filter(self, memory, tmp_path):
        (tmp_path / "one.py").write_text("def a():\n    pass\n")
        (tmp_path / "two.ts").write_text("function b() {}\n")

        summary = memory.analyze_codebase(tmp_path, extensions=[".ts"])

        assert summary["files_analyzed"] == 1

    def test_analyze_codebase_skips_unreadable(self, memory, tmp_path, caplog):
        (tmp_path / "good.py").write_text("def a():\n    pass\n")
        (tmp_path / "bad.py").write_bytes(b"\xff\xfe\x00bad")

        with caplog.at_level(logging.ERROR, logger="mnemograph"):
            summary = memory.analyze_codebase(tmp_path)

        assert summary["files_analyzed"] == 1
        assert "bad.py" in caplog.text

    def test_pruned_endpoints_are_skipped(self):
        memory = CognitiveMemory(MemoryConfig(max_nodes=2, prune_threshold=0.5, auto_save=False))

        node, analysis = memory.analyze_and_add_code("m.py", "import os\nimport sys\n")

        assert len(analysis.dependencies) == 2
        assert node.id in memory.graph
        assert all(e.source in memory.graph and e.target in memory.graph
                   for e in memory.graph.edges.values())
        assert memory.graph.indices_consistent()

    def test_codebase_ingest_survives_tight_capacity(self, tmp_path):
        (tmp_path / "one.py").write_text("import os\nimport sys\n")
        (tmp_path / "two.py").write_text("import json\n")
        memory = CognitiveMemory(MemoryConfig(max_nodes=2, prune_threshold=0.5, auto_save=False))

        summary = memory.analyze_codebase(tmp_path)

        assert summary["files_analyzed"] == 2

    def test_analyze_codebase_requires_directory(self, memory, tmp_path):
        with pytest.raises(NotADirectoryError):
            memory.analyze_codebase(tmp_path / "missing")


class TestRetrieval:
    """get_related and build_context"""

    def test_get_related(self, memory):
        a = memory.add_concept("a", "a")
        b = memory.add_concept("b", "b")
        c = memory.add_concept("c", "c")
        memory.add_relationship(a.id, b.id, "relates_to")
        memory.add_relationship(b.id, c.id, "relates_to")

        context = memory.get_related(a.id, depth=2)

        assert [n.id for n in context.nodes] == [a.id]
        assert set(context.subgraph.nodes) == {a.id, b.id, c.id}
        assert len(context.edges) == 2
        assert a.access_count == 0

    def test_get_related_unknown(self, memory):
        context = memory.get_related("ghost")
        assert context.nodes == []
        assert context.subgraph.nodes == {}

    def test_build_context_merges_and_keeps_max_score(self, memory):
        cache = memory.add_concept("cache", "cache")
        evict = memory.add_concept("evict", "evict")
        both = memory.add_concept("cache evict", "cache evict")

        context = memory.build_context(["cache", "evict", "cache evict"], threshold=0.1)

        ids = [n.id for n in context.nodes]
        assert len(ids) == len(set(ids)) == 3
        assert set(ids) == {cache.id, evict.id, both.id}
        # "cache evict" matches its own query exactly
        assert context.relevance_scores[both.id] == pytest.approx(0.5, abs=0.01)
        assert context.relevance_scores[cache.id] > 0.4

    def test_build_context_dedupes_edges(self, memory):
        a = memory.add_concept("cache", "cache")
        b = memory.add_concept("store", "store")
        edge = memory.add_relationship(a.id, b.id, "relates_to")

        context = memory.build_context(["cache", "cache"], threshold=0.1)

        assert [e.id for e in context.edges] == [edge.id]
        assert set(context.subgraph.nodes) == {a.id, b.id}
        assert a.access_count == 2

    def test_stats_and_export_delegate(self, memory):
        memory.add_concept("a", "a")
        assert memory.get_stats()["total_nodes"] == 1
        assert len(memory.export_for_visualization()["nodes"]) == 1

    def test_clear_keeps_embedder(self):
        embedder = HashEmbedder(dimensions=8)
        memory = CognitiveMemory(embedder=embedder)
        memory.add_concept("a", "a")

        memory.clear()

        assert memory.get_stats()["total_nodes"] == 0
        assert memory.embedder is embedder
        assert memory.add_concept("b", "b").embedding is not None


class TestLifecycle:
    """from_config, initialize, close"""

    def test_from_config_local_provider(self):
        memory = CognitiveMemory.from_config(MemoryConfig(embedding_provider="local", embedding_dimensions=16))
        assert isinstance(memory.embedder, HashEmbedder)
        assert len(memory.add_concept("a", "a").embedding) == 16

    def test_from_config_openai_without_key_falls_back(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        memory = CognitiveMemory.from_config(MemoryConfig(embedding_provider="openai"))
        assert isinstance(memory.embedder, HashEmbedder)

    def test_from_config_unknown_provider(self):
        with pytest.raises(ConfigError):
            CognitiveMemory.from_config(MemoryConfig(embedding_provider="bogus"))

    def test_invalid_config_rejected(self):
        with pytest.raises(ConfigError):
            CognitiveMemory(MemoryConfig(max_nodes=0))

    def test_persist_and_reload(self, snapshot_path):
        config = MemoryConfig(persistence_path=str(snapshot_path), auto_save=True)
        with CognitiveMemory(config).initialize() as memory:
            assert memory.graph.auto_save_running
            node = memory.add_concept("caching", "keep hot data close")

        assert json.loads(snapshot_path.read_text())["nodes"][0]["id"] == node.id

        reloaded = CognitiveMemory(MemoryConfig(persistence_path=str(snapshot_path), auto_save=False))
        reloaded.initialize()
        assert reloaded.get_node(node.id).name == "caching"
        assert not reloaded.graph.auto_save_running
