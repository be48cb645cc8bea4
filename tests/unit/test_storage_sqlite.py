"""Unit tests for conversation_loom.storage.sqlite.SQLiteBackend.

Uses tmp_path so every test gets an isolated, ephemeral SQLite file.
"""
from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from conversation_loom.storage.base import StoredGraph
from conversation_loom.storage.sqlite import SQLiteBackend

_EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _entry(graph_id: str, minutes: int = 0, **fields: object) -> StoredGraph:
    return StoredGraph(graph_id=graph_id, saved_at=_EPOCH + timedelta(minutes=minutes), **fields)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "nested" / "test_graphs.db"


@pytest.fixture()
def backend(db_path: Path) -> SQLiteBackend:
    return SQLiteBackend(db_path=db_path)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestSQLiteBackendConstruction:
    def test_default_path(self) -> None:
        assert "graphs.db" in repr(SQLiteBackend())

    def test_creates_parent_and_table(self, backend: SQLiteBackend, db_path: Path) -> None:
        backend.list()
        assert db_path.exists()
        conn = sqlite3.connect(str(db_path))
        try:
            tables = {
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
            }
        finally:
            conn.close()
        assert "graphs" in tables


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class TestSQLiteBackendOperations:
    def test_save_and_load(self, backend: SQLiteBackend) -> None:
        backend.save(_entry("g1"), '{"key": "value"}')
        assert backend.load("g1") == '{"key": "value"}'

    def test_describe_returns_record(self, backend: SQLiteBackend) -> None:
        backend.save(_entry("g1", title="Trip", node_count=4, edge_count=3, merge_count=1), "{}")
        entry = backend.describe("g1")
        assert entry.title == "Trip"
        assert (entry.node_count, entry.edge_count, entry.merge_count) == (4, 3, 1)
        assert entry.saved_at == _EPOCH

    def test_upsert(self, backend: SQLiteBackend) -> None:
        backend.save(_entry("g1", node_count=1), "v1")
        backend.save(_entry("g1", node_count=2), "v2")
        assert backend.load("g1") == "v2"
        assert backend.describe("g1").node_count == 2
        assert backend.list() == ["g1"]

    def test_missing_graph(self, backend: SQLiteBackend) -> None:
        with pytest.raises(KeyError):
            backend.load("absent")
        with pytest.raises(KeyError):
            backend.describe("absent")

    def test_entries_newest_first(self, backend: SQLiteBackend) -> None:
        backend.save(_entry("g1", minutes=1), "{}")
        backend.save(_entry("g2", minutes=9), "{}")
        backend.save(_entry("g3", minutes=4), "{}")
        assert backend.list() == ["g2", "g3", "g1"]

    def test_exists_and_delete(self, backend: SQLiteBackend) -> None:
        backend.save(_entry("g1"), "{}")
        assert backend.exists("g1")
        backend.delete("g1")
        assert not backend.exists("g1")
        with pytest.raises(KeyError):
            backend.delete("g1")

    def test_persists_across_instances(self, db_path: Path) -> None:
        SQLiteBackend(db_path=db_path).save(_entry("g1", title="Kept"), "kept")
        reopened = SQLiteBackend(db_path=db_path)
        assert reopened.load("g1") == "kept"
        assert reopened.describe("g1").title == "Kept"
