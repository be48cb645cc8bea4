"""Unit tests for conversation_loom.persistence.autosave.AutoSaver."""
from __future__ import annotations

import logging
import threading
import time

import pytest

from conversation_loom.graph.store import ConversationGraph
from conversation_loom.persistence.autosave import AutoSaver
from conversation_loom.persistence.repository import GraphRepository
from conversation_loom.storage.base import StoredGraph
from conversation_loom.storage.memory import InMemoryBackend


class _FailingBackend(InMemoryBackend):
    def save(self, entry: StoredGraph, payload: str) -> None:
        raise OSError("disk full")


class _SlowBackend(InMemoryBackend):
    """Blocks inside save until released."""

    def __init__(self) -> None:
        super().__init__()
        self.writing = threading.Event()
        self.release = threading.Event()

    def save(self, entry: StoredGraph, payload: str) -> None:
        self.writing.set()
        self.release.wait(timeout=5)
        super().save(entry, payload)


@pytest.fixture()
def graph() -> ConversationGraph:
    return ConversationGraph(graph_id="g-auto")


@pytest.fixture()
def repository() -> GraphRepository:
    return GraphRepository(InMemoryBackend())


class TestAutoSaver:
    def test_negative_delay_rejected(
        self, graph: ConversationGraph, repository: GraphRepository
    ) -> None:
        with pytest.raises(ValueError):
            AutoSaver(graph, repository, delay=-1)

    def test_zero_delay_saves_every_change(
        self, graph: ConversationGraph, repository: GraphRepository
    ) -> None:
        saver = AutoSaver(graph, repository, delay=0)
        root = graph.create_root()
        graph.append_message(root.id, "user", "hi")
        assert saver.save_count == 2
        assert len(repository.load("g-auto")) == 1

    def test_changes_are_debounced(
        self, graph: ConversationGraph, repository: GraphRepository
    ) -> None:
        saver = AutoSaver(graph, repository, delay=60)
        root = graph.create_root()
        graph.append_message(root.id, "user", "one")
        graph.append_message(root.id, "user", "two")
        assert saver.pending
        assert saver.save_count == 0
        saver.flush()
        assert saver.save_count == 1
        assert not saver.pending
        assert repository.load("g-auto").get_node(root.id).metadata.message_count == 2

    def test_timer_writes_after_delay(
        self, graph: ConversationGraph, repository: GraphRepository
    ) -> None:
        saver = AutoSaver(graph, repository, delay=0.01)
        graph.create_root()
        deadline = time.monotonic() + 5
        while saver.save_count == 0 and time.monotonic() < deadline:
            time.sleep(0.01)
        assert saver.save_count == 1
        saver.close()

    def test_cancel_drops_pending(
        self, graph: ConversationGraph, repository: GraphRepository
    ) -> None:
        saver = AutoSaver(graph, repository, delay=60)
        graph.create_root()
        saver.cancel()
        saver.flush()
        assert saver.save_count == 0
        assert not repository.exists("g-auto")

    def test_close_flushes_and_unsubscribes(
        self, graph: ConversationGraph, repository: GraphRepository
    ) -> None:
        with AutoSaver(graph, repository, delay=60) as saver:
            graph.create_root()
        assert saver.save_count == 1
        graph.create_root()
        saver.flush()
        assert saver.save_count == 1
        assert len(repository.load("g-auto")) == 1

    def test_failed_save_is_logged_and_graph_kept(
        self, graph: ConversationGraph, caplog: pytest.LogCaptureFixture
    ) -> None:
        saver = AutoSaver(graph, GraphRepository(_FailingBackend()), delay=0)
        with caplog.at_level(logging.ERROR, logger="conversation_loom.persistence.autosave"):
            root = graph.create_root()
        assert saver.failure_count == 1
        assert saver.save_count == 0
        assert root.id in graph
        assert any("failed to save" in r.message for r in caplog.records)

    def test_undo_is_saved(self, graph: ConversationGraph, repository: GraphRepository) -> None:
        AutoSaver(graph, repository, delay=0)
        graph.create_root()
        graph.undo()
        assert len(repository.load("g-auto")) == 0

    def test_changes_do_not_wait_for_a_slow_write(self, graph: ConversationGraph) -> None:
        backend = _SlowBackend()
        saver = AutoSaver(graph, GraphRepository(backend), delay=0.01)
        root = graph.create_root()
        assert backend.writing.wait(timeout=5)

        began = time.monotonic()
        graph.append_message(root.id, "user", "while saving")
        assert saver.pending
        assert time.monotonic() - began < 1

        backend.release.set()
        saver.close()
        assert saver.save_count == 2
        assert saver.failure_count == 0
        restored = GraphRepository(backend).load("g-auto")
        assert restored.get_node(root.id).metadata.message_count == 1
