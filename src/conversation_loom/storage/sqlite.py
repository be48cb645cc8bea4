"""SQLite storage backend.

Keeps every graph as one row of a ``graphs`` table in a single database
file, using the standard library ``sqlite3`` module.  The record columns
sit beside the payload so listings never read payloads.

Classes
-------
- SQLiteBackend  — SQLite-backed graph storage
"""
from __future__ import annotations

import sqlite3
from pathlib import Path

from conversation_loom.storage.base import StorageBackend, StoredGraph

DEFAULT_DB_PATH: Path = Path.home() / ".conversation-loom" / "graphs.db"
_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS graphs (
    graph_id       TEXT PRIMARY KEY,
    payload        TEXT NOT NULL,
    title          TEXT NOT NULL DEFAULT '',
    node_count     INTEGER NOT NULL DEFAULT 0,
    edge_count     INTEGER NOT NULL DEFAULT 0,
    merge_count    INTEGER NOT NULL DEFAULT 0,
    schema_version TEXT NOT NULL DEFAULT '',
    checksum       TEXT NOT NULL DEFAULT '',
    saved_at       TEXT NOT NULL
)
"""
_UPSERT_SQL = """
INSERT INTO graphs (
    graph_id, payload, title, node_count, edge_count, merge_count,
    schema_version, checksum, saved_at
)
VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(graph_id) DO UPDATE SET
    payload        = excluded.payload,
    title          = excluded.title,
    node_count     = excluded.node_count,
    edge_count     = excluded.edge_count,
    merge_count    = excluded.merge_count,
    schema_version = excluded.schema_version,
    checksum       = excluded.checksum,
    saved_at       = excluded.saved_at
"""
_SELECT_ENTRIES_SQL = """
SELECT graph_id, title, node_count, edge_count, merge_count,
       schema_version, checksum, saved_at
FROM graphs
"""


class SQLiteBackend(StorageBackend):
    """Persists graphs in a local SQLite database.

    Parameters
    ----------
    db_path:
        Path to the database file.  Defaults to
        ``~/.conversation-loom/graphs.db``.  The parent directory and the
        table are created on first use.
    """

    def __init__(self, db_path: str | Path | None = None) -> None:
        self._db_path: Path = Path(db_path) if db_path is not None else DEFAULT_DB_PATH

    def _get_connection(self) -> sqlite3.Connection:
        """Open a connection and make sure the table exists."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self._db_path))
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(_CREATE_TABLE_SQL)
        conn.commit()
        return conn

    @staticmethod
    def _entry_from_row(row: sqlite3.Row) -> StoredGraph:
        return StoredGraph.model_validate(dict(row))

    # ------------------------------------------------------------------
    # StorageBackend interface
    # ------------------------------------------------------------------

    def save(self, entry: StoredGraph, payload: str) -> None:
        """Insert or replace the row for ``entry.graph_id``."""
        params = (
            entry.graph_id,
            payload,
            entry.title,
            entry.node_count,
            entry.edge_count,
            entry.merge_count,
            entry.schema_version,
            entry.checksum,
            entry.saved_at.isoformat(),
        )
        conn = self._get_connection()
        try:
            with conn:
                conn.execute(_UPSERT_SQL, params)
        finally:
            conn.close()

    def load(self, graph_id: str) -> str:
        """Return the payload for ``graph_id``.

        Raises
        ------
        KeyError
            If no row exists for ``graph_id``.
        """
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT payload FROM graphs WHERE graph_id = ?", (graph_id,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise KeyError(f"Graph {graph_id!r} not found in SQLiteBackend.")
        return str(row["payload"])

    def describe(self, graph_id: str) -> StoredGraph:
        conn = self._get_connection()
        try:
            row = conn.execute(
                f"{_SELECT_ENTRIES_SQL} WHERE graph_id = ?", (graph_id,)
            ).fetchone()
        finally:
            conn.close()
        if row is None:
            raise KeyError(f"Graph {graph_id!r} not found in SQLiteBackend.")
        return self._entry_from_row(row)

    def entries(self) -> list[StoredGraph]:
        """Return records, most recently saved first."""
        conn = self._get_connection()
        try:
            rows = conn.execute(
                f"{_SELECT_ENTRIES_SQL} ORDER BY saved_at DESC, graph_id"
            ).fetchall()
        finally:
            conn.close()
        return [self._entry_from_row(row) for row in rows]

    def delete(self, graph_id: str) -> None:
        """Remove the row for ``graph_id``.

        Raises
        ------
        KeyError
            If no row exists for ``graph_id``.
        """
        conn = self._get_connection()
        try:
            with conn:
                cursor = conn.execute("DELETE FROM graphs WHERE graph_id = ?", (graph_id,))
        finally:
            conn.close()
        if cursor.rowcount == 0:
            raise KeyError(f"Graph {graph_id!r} not found in SQLiteBackend.")

    def exists(self, graph_id: str) -> bool:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT 1 FROM graphs WHERE graph_id = ?", (graph_id,)
            ).fetchone()
        finally:
            conn.close()
        return row is not None

    def __repr__(self) -> str:
        return f"SQLiteBackend(db_path={str(self._db_path)!r})"
