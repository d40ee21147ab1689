"""Mnemograph CLI - knowledge graph memory from the command line

Command groups are organized into separate modules:
- graph.py: init, add-node, add-edge, ingest, clear
- query.py: search, related, context, stats, export
- config.py: config set, get, show
- common.py: shared utilities
"""
from pathlib import Path

import click

from .. import __version__
from .common import (
    VERBOSITY_NORMAL,
    VERBOSITY_QUIET,
    VERBOSITY_VERBOSE,
    configure_logging,
    get_base_path,
)
from .config import config_group
from .graph import graph_group
from .query import query_group


@click.group()
@click.version_option(version=__version__, prog_name="mnemograph")
@click.option('--data-dir', type=click.Path(), default=None, envvar='MNEMOGRAPH_HOME',
              help='Data directory (default: ~/.mnemograph)')
@click.option('--verbose', '-v', is_flag=True, default=False,
              help='Enable verbose output')
@click.option('--quiet', '-q', is_flag=True, default=False,
              help='Suppress non-essential output')
@click.pass_context
def cli(ctx, data_dir, verbose, quiet):
    """Mnemograph - cognitive memory on a knowledge graph

    \b
    Key Commands:
        init              Create config.yaml and an empty graph
        add-node          Add a concept, entity, memory, ...
        add-edge          Connect two nodes
        ingest            Analyze source code into the graph
        search            Importance-weighted similarity search
        related           Traverse from a node
        context           Merge several searches
        stats             Node and edge counts
        export            Visualization export
        config            Configuration management

    \b
    Examples:
        mnemograph init
        mnemograph add-node concept caching "Keep hot data close"
        mnemograph search "hot data" --threshold 0.2
        mnemograph ingest src/
    """
    ctx.ensure_object(dict)

    if verbose and quiet:
        raise click.UsageError("--verbose and --quiet are mutually exclusive")

    if quiet:
        ctx.obj['verbosity'] = VERBOSITY_QUIET
    elif verbose:
        ctx.obj['verbosity'] = VERBOSITY_VERBOSE
    else:
        ctx.obj['verbosity'] = VERBOSITY_NORMAL

    ctx.obj['data_dir'] = Path(data_dir) if data_dir else None
    configure_logging(ctx.obj['verbosity'])


for name in ('init', 'add-node', 'add-edge', 'ingest', 'clear'):
    cli.add_command(graph_group.commands[name])

for name in ('search', 'related', 'context', 'stats', 'export'):
    cli.add_command(query_group.commands[name])

cli.add_command(config_group, name='config')


def main():
    """Entry point for the CLI."""
    cli()


__all__ = [
    '__version__',
    'cli',
    'main',
    'get_base_path',
]
