"""Configuration management commands for Mnemograph CLI."""
import click
import yaml

from ..config import CONFIG_FILENAME, MemoryConfig
from ..exceptions import ConfigError

from .common import echo_normal, echo_quiet, fail, resolve_base_path


def _read_config_data(ctx) -> dict:
    config_path = resolve_base_path(ctx) / CONFIG_FILENAME
    if not config_path.exists():
        fail("Mnemograph not initialized. Run 'mnemograph init' first.")
    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except yaml.YAMLError as e:
        fail(f"Failed to read {config_path}: {e}")
    if not isinstance(data, dict):
        fail(f"{config_path} must contain a mapping")
    return data


@click.group()
def config_group():
    """Configuration management commands."""
    pass


@config_group.command('set')
@click.argument('key')
@click.argument('value')
@click.pass_context
def config_set(ctx, key: str, value: str) -> None:
    """Set a configuration value.

    VALUE is parsed as YAML, so numbers and booleans keep their type.

    Examples:
        mnemograph config set graph.max_nodes 5000
        mnemograph config set embedding.provider ollama
        mnemograph config set persistence.auto_save false
    """
    verbosity = ctx.obj.get('verbosity', 1)
    base_path = resolve_base_path(ctx)
    config_data = _read_config_data(ctx)

    keys = key.split('.')
    current = config_data
    for k in keys[:-1]:
        if not isinstance(current.get(k), dict):
            current[k] = {}
        current = current[k]

    try:
        parsed = yaml.safe_load(value)
    except yaml.YAMLError:
        parsed = value
    current[keys[-1]] = parsed

    try:
        MemoryConfig.from_dict(config_data)
    except ConfigError as e:
        fail(f"Invalid value for {key}: {e}")

    (base_path / CONFIG_FILENAME).write_text(
        yaml.safe_dump(config_data, default_flow_style=False, sort_keys=False)
    )
    echo_normal(click.style(f"✓ Set {key} = {parsed}", fg="green"), verbosity)


@config_group.command('get')
@click.argument('key')
@click.pass_context
def config_get(ctx, key: str) -> None:
    """Get a configuration value.

    Examples:
        mnemograph config get embedding.provider
    """
    verbosity = ctx.obj.get('verbosity', 1)
    current = _read_config_data(ctx)

    for k in key.split('.'):
        if not isinstance(current, dict) or k not in current:
            echo_quiet(click.style(f"Key '{key}' not found", fg="yellow"), verbosity)
            ctx.exit(1)
        current = current[k]

    echo_quiet(current, verbosity)


@config_group.command('show')
@click.pass_context
def config_show(ctx) -> None:
    """Display full configuration."""
    verbosity = ctx.obj.get('verbosity', 1)
    config_path = resolve_base_path(ctx) / CONFIG_FILENAME
    if not config_path.exists():
        fail("Mnemograph not initialized. Run 'mnemograph init' first.")

    echo_normal(click.style("Current configuration:", fg="cyan", bold=True), verbosity)
    echo_quiet(config_path.read_text(), verbosity)
