"""Graph editing commands for Mnemograph CLI."""
import json
from pathlib import Path
from typing import Optional, Tuple

import click

from ..config import CONFIG_FILENAME, GRAPH_FILENAME, MemoryConfig, write_config
from ..exceptions import GraphReferenceError
from ..memory import DEFAULT_EXTENSIONS, CognitiveMemory
from ..storage import EdgeType, NodeKind

from .common import (
    echo_normal,
    echo_quiet,
    echo_verbose,
    fail,
    node_summary,
    open_memory,
    resolve_base_path,
    save_memory,
)

NODE_KINDS = [kind.value for kind in NodeKind]
EDGE_TYPES = [edge_type.value for edge_type in EdgeType]


@click.group()
def graph_group():
    """Graph editing commands."""
    pass


@graph_group.command("init")
@click.pass_context
def init(ctx) -> None:
    """Initialize the data directory.

    Creates:
    - the data directory (default ~/.mnemograph)
    - config.yaml with default settings
    - an empty graph.json snapshot
    """
    base_path = resolve_base_path(ctx)
    verbosity = ctx.obj.get('verbosity', 1)

    echo_normal(click.style("Initializing Mnemograph...", fg="cyan", bold=True), verbosity)
    base_path.mkdir(parents=True, exist_ok=True)
    echo_normal(f" ✓ Data directory: {base_path}", verbosity)

    config_path = base_path / CONFIG_FILENAME
    if config_path.exists():
        echo_normal(f" ⚠ Config exists: {config_path}", verbosity)
    else:
        write_config(MemoryConfig(persistence_path=GRAPH_FILENAME), base_path)
        echo_normal(f" ✓ Created config: {config_path}", verbosity)

    graph_path = base_path / GRAPH_FILENAME
    if graph_path.exists():
        echo_normal(f" ⚠ Graph exists: {graph_path}", verbosity)
    else:
        memory = open_memory(ctx)
        save_memory(memory)
        echo_normal(f" ✓ Created graph: {graph_path}", verbosity)


@graph_group.command("add-node")
@click.argument('kind', type=click.Choice(NODE_KINDS))
@click.argument('name')
@click.argument('content')
@click.option('--importance', '-i', type=click.FloatRange(0.0, 1.0), default=None,
              help='Initial importance (0.0-1.0, default 0.5)')
@click.option('--metadata', '-m', default=None,
              help='Metadata as a JSON object')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_context
def add_node(ctx, kind: str, name: str, content: str, importance: Optional[float],
             metadata: Optional[str], json_output: bool) -> None:
    """Add a node to the knowledge graph.

    Examples:
        mnemograph add-node concept caching "Keep hot data close"
        mnemograph add-node entity Redis "In-memory store" -m '{"entity_type": "service"}'
    """
    verbosity = ctx.obj.get('verbosity', 1)

    meta = {}
    if metadata:
        try:
            meta = json.loads(metadata)
        except json.JSONDecodeError as e:
            fail(f"--metadata is not valid JSON: {e}")
        if not isinstance(meta, dict):
            fail("--metadata must be a JSON object")

    memory = open_memory(ctx)
    node = memory.graph.add_node(kind, name, content, metadata=meta, importance=importance)
    save_memory(memory)

    if json_output:
        echo_quiet(json.dumps(node_summary(node), indent=2), verbosity)
        return

    echo_normal(click.style("✓ Node added", fg="green", bold=True), verbosity)
    echo_quiet(node.id, verbosity)
    echo_verbose(f"  Kind: {node.kind.value}  Importance: {node.importance:.2f}", verbosity)


@graph_group.command("add-edge")
@click.argument('source')
@click.argument('target')
@click.argument('edge_type', type=click.Choice(EDGE_TYPES))
@click.option('--weight', '-w', type=click.FloatRange(0.0, 1.0), default=0.5,
              help='Relationship strength (0.0-1.0)')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_context
def add_edge(ctx, source: str, target: str, edge_type: str, weight: float, json_output: bool) -> None:
    """Connect two existing nodes.

    Examples:
        mnemograph add-edge <source-id> <target-id> relates_to --weight 0.8
    """
    verbosity = ctx.obj.get('verbosity', 1)
    memory = open_memory(ctx)

    try:
        edge = memory.add_relationship(source, target, edge_type, weight=weight)
    except GraphReferenceError as e:
        fail(str(e))

    save_memory(memory)

    if json_output:
        echo_quiet(json.dumps(edge.to_dict(), indent=2), verbosity)
        return

    echo_normal(click.style("✓ Edge added", fg="green", bold=True), verbosity)
    echo_quiet(edge.id, verbosity)


@graph_group.command("ingest")
@click.argument('path', type=click.Path(exists=True, path_type=Path))
@click.option('--ext', 'extensions', multiple=True,
              help='File extension to include (repeatable, default: .py .js .ts .jsx .tsx)')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_context
def ingest(ctx, path: Path, extensions: Tuple[str, ...], json_output: bool) -> None:
    """Analyze source code and add it to the graph.

    PATH may be a single file or a directory tree.

    Examples:
        mnemograph ingest src/
        mnemograph ingest app.py
        mnemograph ingest web/ --ext .ts --ext .tsx
    """
    verbosity = ctx.obj.get('verbosity', 1)
    memory: CognitiveMemory = open_memory(ctx)

    if path.is_dir():
        exts = [e if e.startswith(".") else f".{e}" for e in extensions] or list(DEFAULT_EXTENSIONS)
        summary = memory.analyze_codebase(path, exts)
    else:
        try:
            _, analysis = memory.analyze_and_add_code(path)
        except (OSError, UnicodeDecodeError) as e:
            fail(f"Failed to read {path}: {e}")
        summary = {
            "files_analyzed": 1,
            "nodes_created": 1 + len(analysis.symbols) + len(analysis.dependencies),
        }

    save_memory(memory)

    if json_output:
        echo_quiet(json.dumps(summary, indent=2), verbosity)
        return

    echo_normal(click.style("✓ Ingested code", fg="green", bold=True), verbosity)
    echo_normal(f"  Files analyzed: {summary['files_analyzed']}", verbosity)
    echo_normal(f"  Nodes created:  {summary['nodes_created']}", verbosity)


@graph_group.command("clear")
@click.confirmation_option(prompt='Remove every node and edge from the graph?')
@click.pass_context
def clear(ctx) -> None:
    """Remove every node and edge."""
    verbosity = ctx.obj.get('verbosity', 1)
    memory = open_memory(ctx)
    memory.clear()
    save_memory(memory)
    echo_normal(click.style("✓ Graph cleared", fg="green", bold=True), verbosity)
