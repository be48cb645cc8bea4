"""Unit tests for conversation_loom.history."""
from __future__ import annotations

import pytest

from conversation_loom.graph.models import ConversationNode, Edge, NodeMetadata, RelationType
from conversation_loom.history import GraphCommand, UndoHistory


def _command(label: str = "cmd") -> GraphCommand:
    node = ConversationNode(id=label)
    return GraphCommand(label=label, before_nodes={label: None}, after_nodes={label: node})


class TestGraphCommand:
    def test_apply_and_revert(self) -> None:
        node = ConversationNode(id="n")
        edge = Edge.connect("p", "n", RelationType.BRANCH)
        command = GraphCommand(
            label="create",
            before_nodes={"n": None},
            after_nodes={"n": node},
            before_edges={edge.id: None},
            after_edges={edge.id: edge},
        )
        nodes: dict[str, ConversationNode] = {}
        edges: dict[str, Edge] = {}
        command.apply(nodes, edges)
        assert set(nodes) == {"n"}
        assert set(edges) == {edge.id}
        command.revert(nodes, edges)
        assert nodes == {}
        assert edges == {}

    def test_images_are_snapshots(self) -> None:
        node = ConversationNode(id="n", metadata=NodeMetadata(title="before"))
        command = GraphCommand(label="x", before_nodes={"n": None}, after_nodes={"n": node})
        node.metadata.title = "mutated"
        nodes: dict[str, ConversationNode] = {}
        command.apply(nodes, {})
        assert nodes["n"].metadata.title == "before"

    def test_applied_nodes_are_independent_copies(self) -> None:
        command = _command("n")
        nodes: dict[str, ConversationNode] = {}
        command.apply(nodes, {})
        nodes["n"].metadata.title = "live edit"
        fresh: dict[str, ConversationNode] = {}
        command.apply(fresh, {})
        assert fresh["n"].metadata.title == ""

    def test_mismatched_node_keys_rejected(self) -> None:
        with pytest.raises(ValueError):
            GraphCommand(label="bad", before_nodes={"a": None}, after_nodes={})

    def test_mismatched_edge_keys_rejected(self) -> None:
        with pytest.raises(ValueError):
            GraphCommand(label="bad", before_edges={}, after_edges={"e": None})

    def test_affected_node_ids(self) -> None:
        assert _command("n").affected_node_ids == ["n"]


class TestUndoHistory:
    def test_rejects_zero_capacity(self) -> None:
        with pytest.raises(ValueError):
            UndoHistory(capacity=0)

    def test_empty_stacks_are_no_ops(self) -> None:
        history = UndoHistory()
        assert history.undo() is None
        assert history.redo() is None
        assert not history.can_undo()
        assert not history.can_redo()

    def test_undo_then_redo(self) -> None:
        history = UndoHistory()
        command = _command()
        history.record(command)
        assert history.undo() is command
        assert history.can_redo()
        assert history.redo() is command
        assert history.undo_depth == 1
        assert history.redo_depth == 0

    def test_record_clears_redo(self) -> None:
        history = UndoHistory()
        history.record(_command("a"))
        history.undo()
        history.record(_command("b"))
        assert not history.can_redo()
        assert history.labels() == ["b"]

    def test_capacity_evicts_oldest(self) -> None:
        history = UndoHistory(capacity=3)
        for label in "abcd":
            history.record(_command(label))
        assert history.labels() == ["b", "c", "d"]
        assert len(history) == 3

    def test_peek_does_not_pop(self) -> None:
        history = UndoHistory()
        history.record(_command("a"))
        assert history.peek_undo() is not None
        assert history.peek_redo() is None
        assert history.undo_depth == 1

    def test_clear(self) -> None:
        history = UndoHistory()
        history.record(_command("a"))
        history.undo()
        history.clear()
        assert history.undo_depth == 0
        assert history.redo_depth == 0
