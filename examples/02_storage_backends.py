#!/usr/bin/env python3
"""Example: Storage Backends

Demonstrates saving and restoring conversation graphs using the in-memory,
filesystem, and SQLite storage backends, plus debounced auto-save.

Usage:
    python examples/02_storage_backends.py

Requirements:
    pip install conversation-loom
"""
from __future__ import annotations

import tempfile
from pathlib import Path

import conversation_loom
from conversation_loom import (
    AutoSaver,
    ConversationGraph,
    FilesystemBackend,
    GraphRepository,
    InMemoryBackend,
    SQLiteBackend,
)


def create_graph(graph_id: str) -> ConversationGraph:
    graph = ConversationGraph(graph_id=graph_id)
    root = graph.create_root(title="Deployment status")
    graph.append_message(root.id, "user", "Is the release pipeline green?")
    graph.append_message(root.id, "assistant", "Two jobs failed on the integration stage.")
    graph.create_branch(root.id, 1, branch_reason="Investigate failures")
    return graph


def demo_backend(label: str, repository: GraphRepository, graph_id: str) -> None:
    repository.save(create_graph(graph_id))
    loaded = repository.load(graph_id)
    print(f"  [{label}] saved + loaded: {len(loaded)} nodes, {len(loaded.edges())} edges")
    entry = repository.describe(graph_id)
    print(f"  [{label}] record: {entry.title!r}, saved {entry.saved_at:%H:%M:%S}")


def main() -> None:
    print(f"conversation-loom version: {conversation_loom.__version__}")

    print("\nIn-memory backend:")
    demo_backend("memory", GraphRepository(InMemoryBackend()), "g-mem-001")

    print("\nFilesystem backend (YAML payloads):")
    with tempfile.TemporaryDirectory() as tmpdir:
        fs_backend = FilesystemBackend(storage_dir=Path(tmpdir))
        demo_backend("filesystem", GraphRepository(fs_backend, format="yaml"), "g-fs-001")
        files = sorted(p.name for p in Path(tmpdir).rglob("*") if p.is_file())
        print(f"  Files written: {files}")

    print("\nSQLite backend:")
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "graphs.db"
        demo_backend("sqlite", GraphRepository(SQLiteBackend(db_path=db_path)), "g-sq-001")
        print(f"  DB size: {db_path.stat().st_size} bytes")

    print("\nAuto-save:")
    repository = GraphRepository(InMemoryBackend())
    graph = ConversationGraph(graph_id="g-auto")
    with AutoSaver(graph, repository, delay=0.2) as saver:
        root = graph.create_root(title="Notes")
        for i in range(5):
            graph.append_message(root.id, "user", f"note {i}")
    print(f"  6 changes written in {saver.save_count} save(s)")


if __name__ == "__main__":
    main()
