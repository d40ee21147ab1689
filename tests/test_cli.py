"""Tests for the Mnemograph CLI

Uses Click's test runner for command testing.
"""

import json

import pytest
import yaml
from click.testing import CliRunner

from mnemograph import __version__
from mnemograph.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def invoke(runner, data_dir):
    """Run a CLI command against the test data directory."""
    def _invoke(*args, **kwargs):
        return runner.invoke(cli, ["--data-dir", str(data_dir), *args], **kwargs)
    return _invoke


@pytest.fixture
def initialized(invoke):
    result = invoke("init")
    assert result.exit_code == 0, result.output
    return invoke


def add_node(invoke, kind, name, content, *extra):
    result = invoke("add-node", kind, name, content, "--json-output", *extra)
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


class TestInit:
    """'mnemograph init'"""

    def test_creates_config_and_graph(self, invoke, data_dir):
        result = invoke("init")

        assert result.exit_code == 0
        config = yaml.safe_load((data_dir / "config.yaml").read_text())
        assert config["graph"]["max_nodes"] == 10000
        assert config["persistence"]["path"] == "graph.json"
        graph = json.loads((data_dir / "graph.json").read_text())
        assert graph["nodes"] == []

    def test_second_init_keeps_files(self, initialized, data_dir):
        (data_dir / "config.yaml").write_text("graph:\n  max_nodes: 42\n")

        result = initialized("init")

        assert result.exit_code == 0
        assert "Config exists" in result.output
        assert "max_nodes: 42" in (data_dir / "config.yaml").read_text()

    def test_data_dir_from_environment(self, runner, tmp_path):
        home = tmp_path / "from-env"
        result = runner.invoke(cli, ["init"], env={"MNEMOGRAPH_HOME": str(home)})

        assert result.exit_code == 0
        assert (home / "config.yaml").exists()

    def test_commands_require_init(self, invoke):
        result = invoke("stats")
        assert result.exit_code == 1
        assert "not initialized" in result.output


class TestGraphCommands:
    """add-node, add-edge, clear"""

    def test_add_node(self, initialized, data_dir):
        node = add_node(initialized, "concept", "caching", "keep hot data close",
                        "--importance", "0.7", "--metadata", '{"source": "notes"}')

        assert node["kind"] == "concept"
        assert node["importance"] == 0.7
        assert node["metadata"] == {"source": "notes"}
        assert "embedding" not in node

        saved = json.loads((data_dir / "graph.json").read_text())
        assert [n["id"] for n in saved["nodes"]] == [node["id"]]

    def test_add_node_quiet_prints_only_id(self, initialized, data_dir):
        result = initialized("--quiet", "add-node", "entity", "redis", "store")

        assert result.exit_code == 0
        node_id = result.output.strip()
        saved = json.loads((data_dir / "graph.json").read_text())
        assert saved["nodes"][0]["id"] == node_id

    def test_add_node_rejects_bad_kind(self, initialized):
        result = initialized("add-node", "opinion", "x", "y")
        assert result.exit_code == 2

    def test_add_node_rejects_bad_metadata(self, initialized):
        result = initialized("add-node", "concept", "x", "y", "--metadata", "{nope")
        assert result.exit_code == 1
        assert "not valid JSON" in result.output

    def test_add_edge(self, initialized, data_dir):
        a = add_node(initialized, "concept", "caching", "caching")
        b = add_node(initialized, "concept", "eviction", "eviction")

        result = initialized("add-edge", a["id"], b["id"], "relates_to", "--weight", "0.8", "--json-output")

        assert result.exit_code == 0, result.output
        edge = json.loads(result.output)
        assert edge["source"] == a["id"]
        assert edge["weight"] == 0.8
        saved = json.loads((data_dir / "graph.json").read_text())
        assert len(saved["edges"]) == 1

    def test_add_edge_missing_node(self, initialized, data_dir):
        b = add_node(initialized, "concept", "eviction", "eviction")

        result = initialized("add-edge", "missing-id", b["id"], "relates_to")

        assert result.exit_code == 1
        assert "does not exist" in result.output
        saved = json.loads((data_dir / "graph.json").read_text())
        assert saved["edges"] == []

    def test_clear(self, initialized, data_dir):
        add_node(initialized, "concept", "a", "a")

        result = initialized("clear", "--yes")

        assert result.exit_code == 0
        saved = json.loads((data_dir / "graph.json").read_text())
        assert saved["nodes"] == []

    def test_clear_needs_confirmation(self, initialized, data_dir):
        add_node(initialized, "concept", "a", "a")

        result = initialized("clear", input="n\n")

        assert result.exit_code == 1
        saved = json.loads((data_dir / "graph.json").read_text())
        assert len(saved["nodes"]) == 1


class TestQueryCommands:
    """search, related, context, stats, export"""

    def test_search_updates_access_count(self, initialized, data_dir):
        a = add_node(initialized, "concept", "caching", "caching")
        b = add_node(initialized, "concept", "eviction", "eviction")
        initialized("add-edge", a["id"], b["id"], "relates_to", "--weight", "0.8")

        result = initialized("search", "eviction", "--threshold", "0.3", "--json-output")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [n["id"] for n in data["nodes"]] == [b["id"]]
        assert data["nodes"][0]["score"] > 0
        saved = {n["id"]: n for n in json.loads((data_dir / "graph.json").read_text())["nodes"]}
        assert saved[b["id"]]["access_count"] == 1
        assert saved[a["id"]]["access_count"] == 0

    def test_search_human_output(self, initialized):
        add_node(initialized, "concept", "eviction", "eviction")

        result = initialized("search", "eviction", "--threshold", "0.3")

        assert result.exit_code == 0
        assert "Search Results (1 found)" in result.output
        assert "eviction" in result.output

    def test_related(self, initialized):
        a = add_node(initialized, "concept", "caching", "caching")
        b = add_node(initialized, "concept", "eviction", "eviction")
        initialized("add-edge", a["id"], b["id"], "relates_to")

        result = initialized("related", a["id"], "--json-output")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [n["id"] for n in data["nodes"]] == [a["id"]]
        assert [n["id"] for n in data["related"]] == [b["id"]]

    def test_related_unknown_node(self, initialized):
        result = initialized("related", "ghost")
        assert result.exit_code == 1
        assert "Node not found" in result.output

    def test_context(self, initialized):
        add_node(initialized, "concept", "cache", "cache")
        add_node(initialized, "concept", "evict", "evict")

        result = initialized("context", "cache", "evict", "--threshold", "0.1", "--json-output")

        assert result.exit_code == 0, result.output
        assert sorted(n["name"] for n in json.loads(result.output)["nodes"]) == ["cache", "evict"]

    def test_stats(self, initialized):
        add_node(initialized, "concept", "a", "a")
        add_node(initialized, "entity", "b", "b")

        result = initialized("stats", "--json-output")

        assert result.exit_code == 0
        stats = json.loads(result.output)
        assert stats["total_nodes"] == 2
        assert stats["nodes_by_type"] == {"concept": 1, "entity": 1}

    def test_export_to_file(self, initialized, tmp_path):
        add_node(initialized, "concept", "a", "a")
        target = tmp_path / "viz.json"

        result = initialized("export", "--output", str(target))

        assert result.exit_code == 0
        data = json.loads(target.read_text())
        assert data["nodes"][0]["label"] == "a"
        assert data["edges"] == []

    def test_export_to_stdout(self, initialized):
        add_node(initialized, "memory", "note", "text")
        result = initialized("export")
        assert json.loads(result.output)["nodes"][0]["type"] == "memory"


class TestIngest:
    """'mnemograph ingest'"""

    def test_ingest_directory(self, initialized, tmp_path):
        project = tmp_path / "project"
        project.mkdir()
        (project / "app.py").write_text("import os\n\ndef main():\n    pass\n")
        (project / "util.js").write_text("function helper() {}\n")

        result = initialized("ingest", str(project), "--json-output")

        assert result.exit_code == 0, result.output
        summary = json.loads(result.output)
        assert summary["files_analyzed"] == 2

        stats = json.loads(initialized("stats", "--json-output").output)
        assert stats["nodes_by_type"]["code"] == 2
        assert stats["edges_by_type"]["contains"] == 3

    def test_ingest_single_file_with_extension_filter(self, initialized, tmp_path):
        source = tmp_path / "mod.py"
        source.write_text("class A:\n    pass\n")

        result = initialized("ingest", str(source), "--json-output")

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"files_analyzed": 1, "nodes_created": 2}

    def test_ingest_directory_ext_option(self, initialized, tmp_path):
        project = tmp_path / "project"
        project.mkdir()
        (project / "app.py").write_text("def main():\n    pass\n")
        (project / "util.js").write_text("function helper() {}\n")

        result = initialized("ingest", str(project), "--ext", "js", "--json-output")

        assert json.loads(result.output)["files_analyzed"] == 1


class TestConfigCommands:
    """'mnemograph config'"""

    def test_set_and_get(self, initialized, data_dir):
        result = initialized("config", "set", "graph.max_nodes", "500")
        assert result.exit_code == 0, result.output

        raw = yaml.safe_load((data_dir / "config.yaml").read_text())
        assert raw["graph"]["max_nodes"] == 500

        result = initialized("config", "get", "graph.max_nodes")
        assert result.output.strip() == "500"

    def test_set_invalid_value(self, initialized, data_dir):
        result = initialized("config", "set", "graph.prune_threshold", "7")

        assert result.exit_code == 1
        raw = yaml.safe_load((data_dir / "config.yaml").read_text())
        assert raw["graph"]["prune_threshold"] == 0.1

    def test_set_unknown_provider(self, initialized):
        result = initialized("config", "set", "embedding.provider", "word2vec")
        assert result.exit_code == 1

    def test_get_missing_key(self, initialized):
        result = initialized("config", "get", "graph.nope")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_show(self, initialized):
        result = initialized("config", "show")
        assert result.exit_code == 0
        assert "embedding:" in result.output
        assert "persistence:" in result.output

    def test_local_provider_embeds_nodes(self, initialized, data_dir):
        initialized("config", "set", "embedding.provider", "local")
        initialized("config", "set", "embedding.dimensions", "16")

        add_node(initialized, "concept", "a", "a")

        saved = json.loads((data_dir / "graph.json").read_text())
        assert len(saved["nodes"][0]["embedding"]) == 16


class TestGlobalOptions:
    """Group-level flags"""

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_verbose_and_quiet_are_exclusive(self, invoke):
        result = invoke("--verbose", "--quiet", "stats")
        assert result.exit_code == 2
        assert "mutually exclusive" in result.output
