"""
Error taxonomy for the Mnemograph knowledge graph.

- GraphReferenceError: structural violations (edge endpoint missing), raised
  synchronously to the caller
- PersistenceError: snapshot save/load failures, logged and absorbed by the store
- ProviderError: embedding provider failures, absorbed and degraded to text overlap
"""

from typing import Iterable


class MnemographError(Exception):
    """Base exception for Mnemograph errors"""
    pass


class GraphReferenceError(MnemographError, ReferenceError):
    """Raised when an edge references a node id that does not exist"""

    def __init__(self, missing_ids: Iterable[str]):
        self.missing_ids = list(missing_ids)
        super().__init__(
            f"Source or target node does not exist: {', '.join(self.missing_ids)}"
        )


class PersistenceError(MnemographError):
    """Raised when a graph snapshot cannot be written or read"""
    pass


class ProviderError(MnemographError):
    """Raised when the embedding provider fails or is unavailable"""
    pass


class ConfigError(MnemographError, ValueError):
    """Raised for invalid configuration values"""
    pass
