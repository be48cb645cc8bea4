"""In-memory storage backend.

Keeps payloads and their records in a dict for the lifetime of the object.
Used by tests, demos, and the CLI's ``--storage memory`` mode.

Classes
-------
- InMemoryBackend  — dict-backed ephemeral storage
"""
from __future__ import annotations

from conversation_loom.storage.base import StorageBackend, StoredGraph, newest_first


class InMemoryBackend(StorageBackend):
    """Ephemeral storage backed by a Python dict."""

    def __init__(self) -> None:
        self._graphs: dict[str, tuple[StoredGraph, str]] = {}

    def _lookup(self, graph_id: str) -> tuple[StoredGraph, str]:
        try:
            return self._graphs[graph_id]
        except KeyError:
            raise KeyError(f"Graph {graph_id!r} not found in InMemoryBackend.") from None

    def save(self, entry: StoredGraph, payload: str) -> None:
        self._graphs[entry.graph_id] = (entry, payload)

    def load(self, graph_id: str) -> str:
        return self._lookup(graph_id)[1]

    def describe(self, graph_id: str) -> StoredGraph:
        return self._lookup(graph_id)[0]

    def entries(self) -> list[StoredGraph]:
        return newest_first(entry for entry, _ in self._graphs.values())

    def delete(self, graph_id: str) -> None:
        self._lookup(graph_id)
        del self._graphs[graph_id]

    def exists(self, graph_id: str) -> bool:
        return graph_id in self._graphs

    def clear(self) -> None:
        """Remove every stored graph."""
        self._graphs.clear()

    def __len__(self) -> int:
        return len(self._graphs)

    def __repr__(self) -> str:
        return f"InMemoryBackend(graphs={len(self._graphs)})"
