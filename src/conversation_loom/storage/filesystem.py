"""Filesystem storage backend.

Writes each graph to its own file, ``<storage_dir>/<graph_id>.json``, and
its ``StoredGraph`` record to ``<storage_dir>/index/<graph_id>.json``.
The default directory is ``~/.conversation-loom/``.

Classes
-------
- FilesystemBackend  — one payload file and one record file per graph
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

from conversation_loom.storage.base import StorageBackend, StoredGraph, newest_first

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_DIR: Path = Path.home() / ".conversation-loom"
_FILE_EXTENSION = ".json"
_INDEX_DIR = "index"


class FilesystemBackend(StorageBackend):
    """Stores graphs as individual files with a record per graph.

    Parameters
    ----------
    storage_dir:
        Directory holding the graph files.  Defaults to
        ``~/.conversation-loom/``.  Created on first save.
    """

    def __init__(self, storage_dir: str | Path | None = None) -> None:
        self._storage_dir: Path = (
            Path(storage_dir) if storage_dir is not None else DEFAULT_STORAGE_DIR
        )

    @property
    def storage_dir(self) -> Path:
        return self._storage_dir

    @property
    def index_dir(self) -> Path:
        return self._storage_dir / _INDEX_DIR

    @staticmethod
    def _file_name(graph_id: str) -> str:
        # Strip directory components so ids cannot escape storage_dir.
        safe_name = os.path.basename(graph_id)
        if not safe_name:
            raise ValueError(f"Invalid graph id {graph_id!r}.")
        return f"{safe_name}{_FILE_EXTENSION}"

    def _payload_path(self, graph_id: str) -> Path:
        return self._storage_dir / self._file_name(graph_id)

    def _entry_path(self, graph_id: str) -> Path:
        return self.index_dir / self._file_name(graph_id)

    # ------------------------------------------------------------------
    # StorageBackend interface
    # ------------------------------------------------------------------

    def save(self, entry: StoredGraph, payload: str) -> None:
        """Write the payload file and its record."""
        self.index_dir.mkdir(parents=True, exist_ok=True)
        path = self._payload_path(entry.graph_id)
        path.write_text(payload, encoding="utf-8")
        self._entry_path(entry.graph_id).write_text(
            entry.model_dump_json(indent=2), encoding="utf-8"
        )
        logger.debug("FilesystemBackend: wrote %s (%d node(s))", path, entry.node_count)

    def load(self, graph_id: str) -> str:
        """Return the contents of the payload file for ``graph_id``.

        Raises
        ------
        KeyError
            If the file does not exist.
        """
        path = self._payload_path(graph_id)
        if not path.exists():
            raise KeyError(f"Graph {graph_id!r} not found at {path}")
        return path.read_text(encoding="utf-8")

    def describe(self, graph_id: str) -> StoredGraph:
        path = self._entry_path(graph_id)
        if not path.exists():
            raise KeyError(f"Graph {graph_id!r} has no record at {path}")
        return StoredGraph.model_validate_json(path.read_text(encoding="utf-8"))

    def entries(self) -> list[StoredGraph]:
        """Return every record in the index directory; empty if it is missing."""
        if not self.index_dir.exists():
            return []
        return newest_first(
            StoredGraph.model_validate_json(path.read_text(encoding="utf-8"))
            for path in self.index_dir.glob(f"*{_FILE_EXTENSION}")
            if path.is_file()
        )

    def delete(self, graph_id: str) -> None:
        """Remove the payload file and record for ``graph_id``.

        Raises
        ------
        KeyError
            If the payload file does not exist.
        """
        path = self._payload_path(graph_id)
        if not path.exists():
            raise KeyError(f"Graph {graph_id!r} not found at {path}")
        path.unlink()
        self._entry_path(graph_id).unlink(missing_ok=True)

    def exists(self, graph_id: str) -> bool:
        return self._payload_path(graph_id).exists()

    def __repr__(self) -> str:
        return f"FilesystemBackend(storage_dir={str(self._storage_dir)!r})"
