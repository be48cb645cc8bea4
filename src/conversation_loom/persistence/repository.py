"""Graph persistence facade.

Provides ``GraphRepository``, which saves, loads, lists, describes, and deletes
conversation graphs through a pluggable storage backend.

Classes
-------
- GraphNotFoundError  — requested graph id is not stored
- GraphRepository     — CRUD facade over a StorageBackend
"""
from __future__ import annotations

import logging

from conversation_loom.config import GraphConfig
from conversation_loom.errors import LoomError
from conversation_loom.graph.models import GraphSnapshot
from conversation_loom.graph.store import ConversationGraph
from conversation_loom.persistence.serializer import GraphSerializer, SerializationFormat
from conversation_loom.storage.base import StorageBackend, StoredGraph

logger = logging.getLogger(__name__)


class GraphNotFoundError(LoomError, KeyError):
    """Raised when a requested graph does not exist in the backend."""

    def __init__(self, graph_id: str) -> None:
        self.graph_id = graph_id
        super().__init__(f"Graph {graph_id!r} not found.")

    def __str__(self) -> str:
        return str(self.args[0])


class GraphRepository:
    """Save, load, list, and delete conversation graphs.

    Parameters
    ----------
    backend:
        Where payloads are stored.
    serializer:
        Snapshot codec.  Defaults to a ``GraphSerializer`` with checksum
        validation enabled.
    format:
        Payload format, ``"json"`` (default) or ``"yaml"``.
    config:
        Configuration handed to graphs rebuilt by ``load``.
    """

    def __init__(
        self,
        backend: StorageBackend,
        serializer: GraphSerializer | None = None,
        format: SerializationFormat = "json",
        config: GraphConfig | None = None,
    ) -> None:
        self._backend = backend
        self._serializer = serializer or GraphSerializer()
        self._format: SerializationFormat = format
        self._config = config

    @property
    def backend(self) -> StorageBackend:
        return self._backend

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, graph: ConversationGraph) -> str:
        """Persist ``graph`` and return its id."""
        return self.save_snapshot(graph.snapshot())

    def save_snapshot(self, snapshot: GraphSnapshot) -> str:
        """Persist an already-taken snapshot and return its graph id."""
        raw = self._serializer.serialize(snapshot, self._format)
        self._backend.save(StoredGraph.from_snapshot(snapshot), raw)
        logger.debug(
            "GraphRepository: saved graph %r (%d node(s))",
            snapshot.graph_id,
            len(snapshot.nodes),
        )
        return snapshot.graph_id

    def load_snapshot(self, graph_id: str) -> GraphSnapshot:
        """Load and verify the stored snapshot for ``graph_id``.

        Raises
        ------
        GraphNotFoundError
            If ``graph_id`` is not stored.
        """
        if not self._backend.exists(graph_id):
            raise GraphNotFoundError(graph_id)
        raw = self._backend.load(graph_id)
        return self._serializer.deserialize(raw, self._format)

    def load(self, graph_id: str) -> ConversationGraph:
        """Load ``graph_id`` and rebuild a ``ConversationGraph``.

        The rebuilt graph has an empty undo history.

        Raises
        ------
        GraphNotFoundError
            If ``graph_id`` is not stored.
        GraphIntegrityError
            If the stored nodes and edges are inconsistent.
        """
        return ConversationGraph.from_snapshot(self.load_snapshot(graph_id), self._config)

    def delete(self, graph_id: str) -> None:
        """Remove ``graph_id`` from the backend.

        Raises
        ------
        GraphNotFoundError
            If ``graph_id`` is not stored.
        """
        if not self._backend.exists(graph_id):
            raise GraphNotFoundError(graph_id)
        self._backend.delete(graph_id)
        logger.debug("GraphRepository: deleted graph %r", graph_id)

    def exists(self, graph_id: str) -> bool:
        return self._backend.exists(graph_id)

    def list(self) -> list[str]:
        """Return the ids of every stored graph, sorted."""
        return sorted(self._backend.list())

    def describe(self, graph_id: str) -> StoredGraph:
        """Return the stored record for ``graph_id`` without loading the graph.

        Raises
        ------
        GraphNotFoundError
            If ``graph_id`` is not stored.
        """
        try:
            return self._backend.describe(graph_id)
        except KeyError:
            raise GraphNotFoundError(graph_id) from None

    def entries(self) -> list[StoredGraph]:
        """Return the record of every stored graph, most recently saved first."""
        return self._backend.entries()

    def __repr__(self) -> str:
        return f"GraphRepository(backend={self._backend!r}, format={self._format!r})"
