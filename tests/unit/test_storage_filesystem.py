"""Unit tests for conversation_loom.storage.filesystem.FilesystemBackend.

Uses pytest's tmp_path fixture to isolate all file I/O.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from conversation_loom.storage.base import StoredGraph
from conversation_loom.storage.filesystem import DEFAULT_STORAGE_DIR, FilesystemBackend

_EPOCH = datetime(2026, 1, 1, tzinfo=timezone.utc)


def _entry(graph_id: str, minutes: int = 0, **fields: object) -> StoredGraph:
    return StoredGraph(graph_id=graph_id, saved_at=_EPOCH + timedelta(minutes=minutes), **fields)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def storage_dir(tmp_path: Path) -> Path:
    return tmp_path / "graphs"


@pytest.fixture()
def backend(storage_dir: Path) -> FilesystemBackend:
    return FilesystemBackend(storage_dir=storage_dir)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


class TestFilesystemBackendConstruction:
    def test_accepts_string_path(self, tmp_path: Path) -> None:
        backend = FilesystemBackend(storage_dir=str(tmp_path / "str-path"))
        assert isinstance(backend.storage_dir, Path)

    def test_default_dir(self) -> None:
        assert FilesystemBackend().storage_dir == DEFAULT_STORAGE_DIR

    def test_directory_created_lazily(self, backend: FilesystemBackend, storage_dir: Path) -> None:
        assert not storage_dir.exists()
        backend.save(_entry("g1"), "{}")
        assert storage_dir.is_dir()
        assert backend.index_dir.is_dir()

    def test_repr_contains_dir(self, backend: FilesystemBackend) -> None:
        assert "graphs" in repr(backend)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class TestFilesystemBackendOperations:
    def test_save_writes_payload_and_record(
        self, backend: FilesystemBackend, storage_dir: Path
    ) -> None:
        backend.save(_entry("g1", title="Trip"), '{"a": 1}')
        assert (storage_dir / "g1.json").read_text(encoding="utf-8") == '{"a": 1}'
        assert '"title": "Trip"' in (storage_dir / "index" / "g1.json").read_text(
            encoding="utf-8"
        )

    def test_load_roundtrip(self, backend: FilesystemBackend) -> None:
        backend.save(_entry("g1"), "payload ✓")
        assert backend.load("g1") == "payload ✓"

    def test_describe_survives_new_instance(self, storage_dir: Path) -> None:
        FilesystemBackend(storage_dir).save(_entry("g1", node_count=7, merge_count=1), "{}")
        entry = FilesystemBackend(storage_dir).describe("g1")
        assert (entry.node_count, entry.merge_count) == (7, 1)
        assert entry.saved_at == _EPOCH

    def test_missing_graph(self, backend: FilesystemBackend) -> None:
        with pytest.raises(KeyError):
            backend.load("absent")
        with pytest.raises(KeyError):
            backend.describe("absent")

    def test_entries_empty_when_dir_missing(self, backend: FilesystemBackend) -> None:
        assert backend.entries() == []
        assert backend.list() == []

    def test_entries_newest_first(self, backend: FilesystemBackend) -> None:
        backend.save(_entry("g1", minutes=1), "{}")
        backend.save(_entry("g2", minutes=9), "{}")
        assert backend.list() == ["g2", "g1"]

    def test_entries_do_not_read_payloads(
        self, backend: FilesystemBackend, storage_dir: Path
    ) -> None:
        backend.save(_entry("g1", title="Kept"), "{}")
        (storage_dir / "g1.json").write_text("garbage", encoding="utf-8")
        assert [e.title for e in backend.entries()] == ["Kept"]

    def test_delete_removes_record(self, backend: FilesystemBackend, storage_dir: Path) -> None:
        backend.save(_entry("g1"), "{}")
        backend.delete("g1")
        assert not backend.exists("g1")
        assert not (storage_dir / "index" / "g1.json").exists()
        with pytest.raises(KeyError):
            backend.delete("g1")

    def test_path_components_stripped(self, backend: FilesystemBackend, storage_dir: Path) -> None:
        backend.save(_entry("../escape"), "{}")
        assert (storage_dir / "escape.json").exists()
        assert not (storage_dir.parent / "escape.json").exists()

    def test_empty_id_rejected(self, backend: FilesystemBackend) -> None:
        with pytest.raises(ValueError):
            backend.save(_entry("nested/"), "{}")
