"""Test that the short quickstart API works for conversation-loom."""
from __future__ import annotations


def test_quickstart_import() -> None:
    from conversation_loom import ConversationGraph

    graph = ConversationGraph()
    assert len(graph) == 0


def test_quickstart_version() -> None:
    import conversation_loom

    assert conversation_loom.__version__ == "0.1.0"


def test_quickstart_branch_and_merge() -> None:
    from conversation_loom import ConversationGraph, InheritanceMode

    graph = ConversationGraph()
    root = graph.create_root(title="Trip planning")
    graph.append_message(root.id, "user", "Where should we go in spring?")
    graph.append_message(root.id, "assistant", "Kyoto or Lisbon both work well.")

    kyoto = graph.create_branch(root.id, 1, branch_reason="Kyoto")
    lisbon = graph.create_branch(
        root.id, 1, InheritanceMode.SUMMARY, summary_text="Spring trip options."
    )
    merged = graph.create_merge_node([kyoto.id, lisbon.id], synthesis_prompt="Compare")
    assert merged.is_merge_node
    graph.check_integrity()


def test_quickstart_save_and_load() -> None:
    from conversation_loom import ConversationGraph, GraphRepository, InMemoryBackend

    repository = GraphRepository(InMemoryBackend())
    graph = ConversationGraph()
    graph.create_root(title="Saved")
    graph_id = repository.save(graph)

    restored = repository.load(graph_id)
    assert restored.graph_id == graph_id
    assert len(restored) == 1


def test_quickstart_undo() -> None:
    from conversation_loom import ConversationGraph

    graph = ConversationGraph()
    graph.create_root()
    assert graph.undo()
    assert len(graph) == 0


def test_quickstart_repr() -> None:
    from conversation_loom import ConversationGraph

    graph = ConversationGraph(graph_id="my-graph")
    text = repr(graph)
    assert "ConversationGraph" in text
    assert "my-graph" in text
