"""
Configuration for Mnemograph

Settings live in config.yaml under the data directory:

    graph:
      max_nodes: 10000
      max_edges: 50000
      prune_threshold: 0.1
    embedding:
      provider: none        # none | local | ollama | openai
      model: null
      base_url: null
      dimensions: 384
    persistence:
      path: graph.json      # relative paths resolve against the data directory
      auto_save: true
      auto_save_interval: 60

API keys are read from the environment (OPENAI_API_KEY), never from this file.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .embeddings import PROVIDERS
from .exceptions import ConfigError

DEFAULT_BASE_PATH = Path.home() / ".mnemograph"
CONFIG_FILENAME = "config.yaml"
GRAPH_FILENAME = "graph.json"

# YAML section -> {yaml key: MemoryConfig field}
_SECTIONS = {
    "graph": {
        "max_nodes": "max_nodes",
        "max_edges": "max_edges",
        "prune_threshold": "prune_threshold",
    },
    "embedding": {
        "provider": "embedding_provider",
        "model": "embedding_model",
        "base_url": "embedding_base_url",
        "dimensions": "embedding_dimensions",
    },
    "persistence": {
        "path": "persistence_path",
        "auto_save": "auto_save",
        "auto_save_interval": "auto_save_interval",
    },
}


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "yes", "on", "1"):
            return True
        if lowered in ("false", "no", "off", "0", ""):
            return False
        raise ValueError(f"not a boolean: {value!r}")
    return bool(value)


def get_base_path(data_dir: Optional[Union[str, Path]] = None) -> Path:
    """Get the data directory.

    Priority: explicit data_dir > MNEMOGRAPH_HOME env var > ~/.mnemograph
    """
    if data_dir:
        return Path(data_dir).expanduser()
    env_path = os.getenv("MNEMOGRAPH_HOME")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_BASE_PATH


@dataclass
class MemoryConfig:
    """Knowledge graph configuration"""
    max_nodes: int = 10000
    max_edges: int = 50000
    prune_threshold: float = 0.1
    embedding_dimensions: int = 384
    persistence_path: Optional[str] = None
    auto_save: bool = True
    auto_save_interval: float = 60.0  # seconds
    embedding_provider: str = "none"
    embedding_model: Optional[str] = None
    embedding_base_url: Optional[str] = None

    def validate(self) -> "MemoryConfig":
        """Check value ranges; returns self for chaining."""
        if self.max_nodes <= 0:
            raise ConfigError("max_nodes must be positive")
        if self.max_edges <= 0:
            raise ConfigError("max_edges must be positive")
        if not 0.0 <= self.prune_threshold <= 1.0:
            raise ConfigError("prune_threshold must be between 0.0 and 1.0")
        if self.embedding_dimensions <= 0:
            raise ConfigError("embedding_dimensions must be positive")
        if self.auto_save_interval <= 0:
            raise ConfigError("auto_save_interval must be positive")
        if self.embedding_provider not in PROVIDERS:
            raise ConfigError(f"embedding provider must be one of: {', '.join(PROVIDERS)}")
        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_path: Optional[Path] = None) -> "MemoryConfig":
        """
        Build from the nested config.yaml structure.

        Unknown sections and keys are ignored. A relative persistence path is
        resolved against base_path when given.
        """
        values: Dict[str, Any] = {}
        for section, keys in _SECTIONS.items():
            section_data = data.get(section) or {}
            if not isinstance(section_data, dict):
                raise ConfigError(f"'{section}' must be a mapping")
            for yaml_key, field_name in keys.items():
                if yaml_key in section_data:
                    values[field_name] = section_data[yaml_key]

        try:
            config = cls(**values)
            config.max_nodes = int(config.max_nodes)
            config.max_edges = int(config.max_edges)
            config.prune_threshold = float(config.prune_threshold)
            config.embedding_dimensions = int(config.embedding_dimensions)
            config.auto_save_interval = float(config.auto_save_interval)
            config.auto_save = _as_bool(config.auto_save)
            config.embedding_provider = str(config.embedding_provider or "none")
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration value: {e}") from e

        if config.persistence_path and base_path is not None:
            path = Path(config.persistence_path).expanduser()
            if not path.is_absolute():
                path = base_path / path
            config.persistence_path = str(path)

        return config.validate()

    def to_dict(self) -> Dict[str, Any]:
        """Nested structure suitable for yaml.safe_dump."""
        return {
            section: {yaml_key: getattr(self, field_name) for yaml_key, field_name in keys.items()}
            for section, keys in _SECTIONS.items()
        }


def load_config(base_path: Optional[Union[str, Path]] = None) -> MemoryConfig:
    """Load configuration from config.yaml.

    Args:
        base_path: Data directory containing config.yaml

    Returns:
        MemoryConfig; defaults (persisting to graph.json in the data
        directory) when the file does not exist
    """
    base_path = get_base_path(base_path)
    config_path = base_path / CONFIG_FILENAME

    if not config_path.exists():
        config = MemoryConfig(persistence_path=str(base_path / GRAPH_FILENAME))
        return config.validate()

    try:
        data = yaml.safe_load(config_path.read_text()) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to read {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a mapping")

    return MemoryConfig.from_dict(data, base_path=base_path)


def write_config(config: MemoryConfig, base_path: Union[str, Path]) -> Path:
    """Write config.yaml into base_path and return its location."""
    base_path = Path(base_path)
    base_path.mkdir(parents=True, exist_ok=True)
    config_path = base_path / CONFIG_FILENAME
    config_path.write_text(yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False))
    return config_path
