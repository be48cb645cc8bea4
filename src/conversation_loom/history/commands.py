"""Invertible graph commands.

Every structural mutation of the graph is captured as a ``GraphCommand``
holding before/after images of exactly the nodes and edges it touched.
Applying the after-images replays the mutation; applying the
before-images inverts it.  ``None`` in an image means "absent".

Images are deep copies taken at command construction time, so later
mutations of live nodes never leak into the history.

Classes
-------
- GraphCommand  — before/after images of affected nodes and edges
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone

from conversation_loom.graph.models import ConversationNode, Edge


def _copy_node(node: ConversationNode | None) -> ConversationNode | None:
    return None if node is None else node.model_copy(deep=True)


def _apply_images(
    nodes: dict[str, ConversationNode],
    edges: dict[str, Edge],
    node_images: dict[str, ConversationNode | None],
    edge_images: dict[str, Edge | None],
) -> None:
    for node_id, image in node_images.items():
        if image is None:
            nodes.pop(node_id, None)
        else:
            nodes[node_id] = image.model_copy(deep=True)
    for edge_id, edge in edge_images.items():
        if edge is None:
            edges.pop(edge_id, None)
        else:
            edges[edge_id] = edge


@dataclass
class GraphCommand:
    """A recorded, invertible mutation.

    Parameters
    ----------
    label:
        Human-readable name such as ``"create_branch"``.
    before_nodes / after_nodes:
        Node images keyed by node id, ``None`` when the node is absent.
    before_edges / after_edges:
        Edge images keyed by edge id, ``None`` when the edge is absent.
    created_at:
        When the command was recorded (UTC).
    """

    label: str
    before_nodes: dict[str, ConversationNode | None] = field(default_factory=dict)
    after_nodes: dict[str, ConversationNode | None] = field(default_factory=dict)
    before_edges: dict[str, Edge | None] = field(default_factory=dict)
    after_edges: dict[str, Edge | None] = field(default_factory=dict)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        self.before_nodes = {k: _copy_node(v) for k, v in self.before_nodes.items()}
        self.after_nodes = {k: _copy_node(v) for k, v in self.after_nodes.items()}
        if set(self.before_nodes) != set(self.after_nodes):
            raise ValueError("before_nodes and after_nodes must cover the same node ids.")
        if set(self.before_edges) != set(self.after_edges):
            raise ValueError("before_edges and after_edges must cover the same edge ids.")

    @property
    def affected_node_ids(self) -> list[str]:
        """Ids of every node this command touches, in recording order."""
        return list(self.after_nodes)

    def apply(self, nodes: dict[str, ConversationNode], edges: dict[str, Edge]) -> None:
        """Replay the mutation onto ``nodes`` and ``edges`` in place."""
        _apply_images(nodes, edges, self.after_nodes, self.after_edges)

    def revert(self, nodes: dict[str, ConversationNode], edges: dict[str, Edge]) -> None:
        """Undo the mutation on ``nodes`` and ``edges`` in place."""
        _apply_images(nodes, edges, self.before_nodes, self.before_edges)

    def __repr__(self) -> str:
        return (
            f"GraphCommand(label={self.label!r}, "
            f"nodes={len(self.after_nodes)}, edges={len(self.after_edges)})"
        )
