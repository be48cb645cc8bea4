"""Abstract base class for graph storage backends.

A backend keeps two things per graph: the serialised ``GraphSnapshot``
payload and a small ``StoredGraph`` record describing it (title, node and
merge counts, checksum, save time).  Listings read only the records, so
browsing a store never deserialises a snapshot.

Classes
-------
- StoredGraph     — catalogue record saved alongside each payload
- StorageBackend  — abstract base for all backends
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from pydantic import BaseModel

from conversation_loom.graph.models import GraphSnapshot


class StoredGraph(BaseModel):
    """What a backend knows about a stored graph without loading it.

    Parameters
    ----------
    graph_id:
        Key of the stored payload.
    title:
        Title of the first root conversation, or empty.
    node_count / edge_count / merge_count:
        Size of the graph when it was saved.
    schema_version:
        Snapshot schema version of the payload.
    checksum:
        Checksum embedded in the payload.
    saved_at:
        When the snapshot was taken (UTC).
    """

    graph_id: str
    title: str = ""
    node_count: int = 0
    edge_count: int = 0
    merge_count: int = 0
    schema_version: str = ""
    checksum: str = ""
    saved_at: datetime

    model_config = {"frozen": True}

    @classmethod
    def from_snapshot(cls, snapshot: GraphSnapshot) -> "StoredGraph":
        title = next((node.metadata.title for node in snapshot.nodes if node.is_root), "")
        return cls(
            graph_id=snapshot.graph_id,
            title=title,
            node_count=len(snapshot.nodes),
            edge_count=len(snapshot.edges),
            merge_count=sum(1 for node in snapshot.nodes if node.is_merge_node),
            schema_version=snapshot.schema_version,
            checksum=snapshot.checksum,
            saved_at=snapshot.saved_at,
        )


def newest_first(entries: Iterable[StoredGraph]) -> list[StoredGraph]:
    """Order ``entries`` by ``saved_at`` descending, ties by graph id."""
    by_id = sorted(entries, key=lambda entry: entry.graph_id)
    return sorted(by_id, key=lambda entry: entry.saved_at, reverse=True)


class StorageBackend(ABC):
    """Save, load, describe, and delete stored graphs.

    Implementations are safe for sequential use.  Callers that save from a
    timer thread (see ``AutoSaver``) serialise access themselves.
    """

    @abstractmethod
    def save(self, entry: StoredGraph, payload: str) -> None:
        """Persist ``payload`` and its record under ``entry.graph_id``.

        Any previous payload and record for that id are replaced.
        """

    @abstractmethod
    def load(self, graph_id: str) -> str:
        """Return the payload stored under ``graph_id``.

        Raises
        ------
        KeyError
            If nothing is stored under ``graph_id``.
        """

    @abstractmethod
    def describe(self, graph_id: str) -> StoredGraph:
        """Return the record stored under ``graph_id``.

        Raises
        ------
        KeyError
            If nothing is stored under ``graph_id``.
        """

    @abstractmethod
    def entries(self) -> list[StoredGraph]:
        """Return every stored record, most recently saved first."""

    @abstractmethod
    def delete(self, graph_id: str) -> None:
        """Remove the payload and record stored under ``graph_id``.

        Raises
        ------
        KeyError
            If nothing is stored under ``graph_id``.
        """

    @abstractmethod
    def exists(self, graph_id: str) -> bool:
        """Return True if a payload is stored under ``graph_id``."""

    def list(self) -> list[str]:
        """Return stored graph ids, most recently saved first."""
        return [entry.graph_id for entry in self.entries()]
