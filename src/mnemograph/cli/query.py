"""Query and reporting commands for Mnemograph CLI."""
import json
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import click

from ..storage import MemoryContext, NodeKind

from .common import (
    echo_normal,
    echo_quiet,
    edge_summary,
    fail,
    format_node_line,
    node_summary,
    open_memory,
    save_memory,
    truncate,
)

NODE_KINDS = [kind.value for kind in NodeKind]


def context_to_dict(context: MemoryContext) -> Dict[str, Any]:
    return {
        "nodes": [node_summary(n, context.relevance_scores.get(n.id)) for n in context.nodes],
        "related": [node_summary(n) for n in context.related_nodes],
        "edges": [edge_summary(e) for e in context.edges],
    }


def echo_context(context: MemoryContext, title: str, verbosity: int) -> None:
    echo_normal(click.style(f"{title} ({len(context.nodes)} found)", fg="cyan", bold=True), verbosity)
    echo_normal("=" * 60, verbosity)

    for i, node in enumerate(context.nodes, 1):
        echo_quiet(format_node_line(i, node, context.relevance_scores.get(node.id)), verbosity)
        echo_normal(f"   {truncate(node.content)}", verbosity)

    related = context.related_nodes
    if related:
        echo_normal(click.style(f"\nRelated ({len(related)})", fg="cyan"), verbosity)
        for node in related:
            echo_normal(f"  - [{node.kind.value}] {node.name} ({node.id})", verbosity)


@click.group()
def query_group():
    """Query and reporting commands."""
    pass


@query_group.command("search")
@click.argument('query')
@click.option('--kind', '-k', type=click.Choice(NODE_KINDS), default=None,
              help='Only return nodes of this kind')
@click.option('--limit', '-l', default=10, help='Maximum number of results')
@click.option('--threshold', '-t', type=click.FloatRange(0.0, 1.0), default=0.7,
              help='Minimum relevance score')
@click.option('--depth', '-d', default=2, help='Traversal depth for related nodes')
@click.option('--no-related', is_flag=True, help='Skip related-node expansion')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_context
def search(ctx, query: str, kind: Optional[str], limit: int, threshold: float,
           depth: int, no_related: bool, json_output: bool) -> None:
    """Search the knowledge graph.

    Examples:
        mnemograph search "cache eviction"
        mnemograph search "auth" --kind code --threshold 0.2
        mnemograph search "retry policy" --json-output
    """
    verbosity = ctx.obj.get('verbosity', 1)
    memory = open_memory(ctx)
    context = memory.search(query, kind=kind, limit=limit, threshold=threshold,
                            include_related=not no_related, depth=depth)
    # Search updates access statistics
    save_memory(memory)

    if json_output:
        echo_quiet(json.dumps(context_to_dict(context), indent=2, default=str), verbosity)
    else:
        echo_context(context, "Search Results", verbosity)


@query_group.command("related")
@click.argument('node_id')
@click.option('--depth', '-d', default=2, help='Maximum number of hops')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_context
def related(ctx, node_id: str, depth: int, json_output: bool) -> None:
    """Show a node and everything reachable from it."""
    verbosity = ctx.obj.get('verbosity', 1)
    memory = open_memory(ctx)

    if memory.get_node(node_id) is None:
        fail(f"Node not found: {node_id}")

    context = memory.get_related(node_id, depth=depth)

    if json_output:
        echo_quiet(json.dumps(context_to_dict(context), indent=2, default=str), verbosity)
    else:
        echo_context(context, "Node", verbosity)


@query_group.command("context")
@click.argument('queries', nargs=-1, required=True)
@click.option('--limit', '-l', default=10, help='Maximum results per query')
@click.option('--threshold', '-t', type=click.FloatRange(0.0, 1.0), default=0.7,
              help='Minimum relevance score')
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_context
def context(ctx, queries: Tuple[str, ...], limit: int, threshold: float, json_output: bool) -> None:
    """Merge several searches into one context.

    Examples:
        mnemograph context "database" "connection pool" --threshold 0.2
    """
    verbosity = ctx.obj.get('verbosity', 1)
    memory = open_memory(ctx)
    result = memory.build_context(list(queries), limit=limit, threshold=threshold)
    save_memory(memory)

    if json_output:
        echo_quiet(json.dumps(context_to_dict(result), indent=2, default=str), verbosity)
    else:
        echo_context(result, "Context", verbosity)


@query_group.command("stats")
@click.option('--json-output', is_flag=True, help='Output as JSON')
@click.pass_context
def stats(ctx, json_output: bool) -> None:
    """Show node and edge counts."""
    verbosity = ctx.obj.get('verbosity', 1)
    memory = open_memory(ctx)
    data = memory.get_stats()

    if json_output:
        echo_quiet(json.dumps(data, indent=2), verbosity)
        return

    echo_normal(click.style("Knowledge Graph", fg="cyan", bold=True), verbosity)
    echo_normal("=" * 60, verbosity)
    echo_quiet(f"Nodes: {data['total_nodes']}", verbosity)
    for kind, count in sorted(data['nodes_by_type'].items()):
        echo_normal(f"  {kind}: {count}", verbosity)
    echo_quiet(f"Edges: {data['total_edges']}", verbosity)
    for edge_type, count in sorted(data['edges_by_type'].items()):
        echo_normal(f"  {edge_type}: {count}", verbosity)
    echo_normal(f"Average importance: {data['average_importance']:.3f}", verbosity)


@query_group.command("export")
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Write to a file instead of stdout')
@click.pass_context
def export(ctx, output: Optional[Path]) -> None:
    """Export the graph as node/edge lists for visualization."""
    verbosity = ctx.obj.get('verbosity', 1)
    memory = open_memory(ctx)
    payload = json.dumps(memory.export_for_visualization(), indent=2)

    if output is None:
        echo_quiet(payload, verbosity)
        return

    try:
        output.write_text(payload)
    except OSError as e:
        fail(f"Failed to write {output}: {e}")
    echo_normal(click.style(f"✓ Exported to {output}", fg="green"), verbosity)
