"""Shared utilities for Mnemograph CLI commands."""
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from ..config import CONFIG_FILENAME, GRAPH_FILENAME, get_base_path, load_config
from ..exceptions import ConfigError, PersistenceError
from ..memory import CognitiveMemory
from ..storage import Edge, Node

# Verbosity levels
VERBOSITY_QUIET = 0
VERBOSITY_NORMAL = 1
VERBOSITY_VERBOSE = 2

LOG_LEVELS = {
    VERBOSITY_QUIET: logging.ERROR,
    VERBOSITY_NORMAL: logging.WARNING,
    VERBOSITY_VERBOSE: logging.DEBUG,
}

EMBEDDING_CACHE_DIRNAME = "embeddings"


def configure_logging(verbosity: int) -> None:
    logging.basicConfig(
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("mnemograph").setLevel(LOG_LEVELS.get(verbosity, logging.WARNING))


def should_print(verbosity: int, message_level: int) -> bool:
    """Determine if a message should be printed based on verbosity settings.

    Args:
        verbosity: Current verbosity level (0=quiet, 1=normal, 2=verbose).
        message_level: Minimum verbosity level required for this message.
    """
    return verbosity >= message_level


def echo_verbose(message: str, verbosity: int) -> None:
    """Print a message only in verbose mode."""
    if should_print(verbosity, VERBOSITY_VERBOSE):
        click.echo(message)


def echo_normal(message: str, verbosity: int) -> None:
    """Print a message in normal and verbose modes."""
    if should_print(verbosity, VERBOSITY_NORMAL):
        click.echo(message)


def echo_quiet(message: Any, verbosity: int) -> None:
    """Print a message that is shown even in quiet mode."""
    click.echo(message)


def fail(message: str) -> None:
    """Print an error and exit with status 1."""
    click.echo(click.style(f"Error: {message}", fg="red"))
    sys.exit(1)


def resolve_base_path(ctx: click.Context) -> Path:
    return get_base_path(ctx.obj.get('data_dir'))


def open_memory(ctx: click.Context) -> CognitiveMemory:
    """Load config and graph from the data directory, exiting on failure.

    Auto-save is disabled: every command saves explicitly before exiting.
    """
    base_path = resolve_base_path(ctx)
    if not (base_path / CONFIG_FILENAME).exists():
        fail("Mnemograph not initialized. Run 'mnemograph init' first.")

    try:
        config = load_config(base_path)
    except ConfigError as e:
        fail(str(e))

    config.auto_save = False
    if not config.persistence_path:
        config.persistence_path = str(base_path / GRAPH_FILENAME)

    cache_dir = None
    if config.embedding_provider in ("ollama", "openai"):
        cache_dir = base_path / EMBEDDING_CACHE_DIRNAME

    try:
        memory = CognitiveMemory.from_config(config, cache_dir=cache_dir)
        memory.load(strict=True)
    except (ConfigError, PersistenceError) as e:
        fail(str(e))

    return memory


def save_memory(memory: CognitiveMemory) -> None:
    try:
        memory.save(strict=True)
    except PersistenceError as e:
        fail(str(e))


def node_summary(node: Node, score: Optional[float] = None) -> Dict[str, Any]:
    """JSON-friendly node view without the embedding vector."""
    data = node.to_dict()
    data.pop("embedding", None)
    if score is not None:
        data["score"] = score
    return data


def edge_summary(edge: Edge) -> Dict[str, Any]:
    return edge.to_dict()


def truncate(text: str, width: int = 80) -> str:
    text = " ".join(text.split())
    if len(text) > width:
        return text[:width - 3] + "..."
    return text


def format_node_line(index: int, node: Node, score: Optional[float] = None) -> str:
    kind = click.style(node.kind.value.upper(), fg="cyan")
    line = f"{index}. [{kind}] {node.name} ({node.id})"
    if score is not None:
        line += f"  score={score:.3f}"
    return line
