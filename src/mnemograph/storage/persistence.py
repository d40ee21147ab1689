"""
Graph Persistence - JSON snapshots of the knowledge graph

Snapshot layout:
    {
        "version": 1,
        "saved_at": ISO-8601,
        "nodes": [node records],
        "edges": [edge records],
        "node_index": [[kind, [node ids]], ...],
        "edge_index": [[source id, [edge ids]], ...]
    }

The indices are advisory: loaders rebuild them from the node and edge records.
Writes go to a temporary sibling file that is then renamed over the target, so
a crash mid-write never leaves a truncated snapshot behind.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from ..exceptions import PersistenceError
from .models import utcnow

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class GraphPersistence:
    """
    File-backed snapshot storage for a knowledge graph.

    Raises PersistenceError for every I/O or decoding failure; deciding
    whether that is fatal is left to the caller.
    """

    def __init__(self, path: Union[str, Path]):
        """
        Args:
            path: Snapshot file location (parent directories are created on save)
        """
        self.path = Path(path).expanduser()

    def exists(self) -> bool:
        return self.path.exists()

    def save(self, snapshot: Dict[str, Any]) -> None:
        """
        Write a snapshot atomically.

        Args:
            snapshot: Dict with nodes, edges, node_index, edge_index
        """
        document = {
            "version": SNAPSHOT_VERSION,
            "saved_at": utcnow().isoformat(),
            **snapshot,
        }

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"Failed to save graph to {self.path}: {e}") from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.debug(
            f"Saved {len(snapshot.get('nodes', []))} nodes and "
            f"{len(snapshot.get('edges', []))} edges to {self.path}"
        )

    def load(self) -> Optional[Dict[str, Any]]:
        """
        Read a snapshot.

        Returns:
            Snapshot dict, or None when no snapshot file exists
        """
        if not self.path.exists():
            return None

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to load graph from {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise PersistenceError(f"Malformed snapshot in {self.path}: expected an object")

        version = data.get("version", SNAPSHOT_VERSION)
        if version > SNAPSHOT_VERSION:
            raise PersistenceError(
                f"Snapshot version {version} is newer than supported version {SNAPSHOT_VERSION}"
            )

        for key in ("nodes", "edges"):
            if not isinstance(data.get(key, []), list):
                raise PersistenceError(f"Malformed snapshot in {self.path}: '{key}' must be a list")

        return data

    def __repr__(self):
        return f"GraphPersistence(path={str(self.path)!r})"


class AutoSaver:
    """
    Background timer that calls a save function every `interval` seconds.

    The save function is responsible for its own locking and error handling;
    exceptions that escape it are logged and the timer keeps running.
    """

    def __init__(self, save: Callable[[], Any], interval: float = 60.0,
                 name: str = "mnemograph-autosave"):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._save = save
        self.interval = interval
        self.name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the timer thread (no-op if already running)."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True, name=self.name)
        self._thread.start()
        logger.info(f"Auto-save started (every {self.interval:g}s)")

    def stop(self, timeout: float = 10.0) -> None:
        """Signal the timer thread to stop and wait for it."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.info("Auto-save stopped")

    def _loop(self) -> None:
        while not self._stop_event.wait(timeout=self.interval):
            try:
                self._save()
            except Exception as e:
                logger.error(f"Auto-save failed: {e}", exc_info=True)
