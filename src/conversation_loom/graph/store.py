"""Conversation graph store.

``ConversationGraph`` is the sole owner of every node and edge.  Branch,
merge, delete, summary regeneration, message append, and metadata edits
are computed in full before anything is committed: either the node,
edges, and history entry are all applied, or an error is raised and the
graph is left untouched.

Every structural mutation is recorded as a ``GraphCommand`` so it can be
undone and redone.  Selection and expansion are plain set bookkeeping and
never enter the history.

Usage
-----
::

    from conversation_loom.graph.store import ConversationGraph
    from conversation_loom.graph.models import InheritanceMode

    graph = ConversationGraph()
    root = graph.create_root(title="Research")
    graph.append_message(root.id, "user", "What is a DAG?")
    graph.append_message(root.id, "assistant", "A directed acyclic graph.")
    branch = graph.create_branch(root.id, message_index=1)
    graph.undo()

Classes
-------
- GraphEventKind     — enum of change notifications
- GraphEvent         — payload delivered to subscribers
- ConversationGraph  — the store
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Collection, Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from conversation_loom.config import DeletePolicy, GraphConfig
from conversation_loom.context.selector import (
    build_summary_message,
    resolve_inherited_context,
)
from conversation_loom.errors import (
    CycleError,
    DuplicateSourceError,
    GraphIntegrityError,
    InsufficientSourcesError,
    MergeLimitError,
    MergeOfMergeError,
    MissingSummaryError,
    NodeHasDependentsError,
    NodeNotFoundError,
    ParentNotFoundError,
    SourceNotFoundError,
)
from conversation_loom.graph.models import (
    Attachment,
    BranchPoint,
    ConversationNode,
    Edge,
    GraphSnapshot,
    InheritanceMode,
    InheritedContextEntry,
    MergeMetadata,
    Message,
    MessageRole,
    NodeMetadata,
    Position,
    RelationType,
    RenderEdge,
    RenderGraph,
    RenderNode,
)
from conversation_loom.history.commands import GraphCommand
from conversation_loom.history.undo import UndoHistory
from conversation_loom.layout.tree import (
    RandomFn,
    create_seeded_random,
    generate_tree_layout,
    generate_vertical_layout,
    place_branch_child,
    place_merge_node,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class GraphEventKind(str, Enum):
    """Kind of change a subscriber is notified about."""

    NODE_CREATED = "node_created"
    NODE_UPDATED = "node_updated"
    NODE_DELETED = "node_deleted"
    NODE_MOVED = "node_moved"
    UNDO = "undo"
    REDO = "redo"
    SELECTION = "selection"


@dataclass(frozen=True)
class GraphEvent:
    """Change notification delivered to subscribers.

    Attributes
    ----------
    kind:
        What happened.
    node_ids:
        Ids of the nodes touched by the change.
    """

    kind: GraphEventKind
    node_ids: tuple[str, ...] = ()


Subscriber = Callable[[GraphEvent], None]


# ---------------------------------------------------------------------------
# ConversationGraph
# ---------------------------------------------------------------------------


class ConversationGraph:
    """In-memory DAG of conversation nodes with undo/redo.

    Parameters
    ----------
    config:
        Merge, delete, history, and layout policies.  Defaults to
        ``GraphConfig()``.
    graph_id:
        Identifier used by persistence.  A fresh UUID when omitted.
    """

    def __init__(
        self,
        config: GraphConfig | None = None,
        graph_id: str | None = None,
    ) -> None:
        self._config = config or GraphConfig()
        self._graph_id = graph_id or str(uuid4())
        self._nodes: dict[str, ConversationNode] = {}
        self._edges: dict[str, Edge] = {}
        self._selected: set[str] = set()
        self._expanded: set[str] = set()
        self._history = UndoHistory(capacity=self._config.history_capacity)
        self._subscribers: list[Subscriber] = []
        self._random: RandomFn | None = (
            create_seeded_random(self._config.layout_seed)
            if self._config.layout_seed is not None
            else None
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def graph_id(self) -> str:
        return self._graph_id

    @property
    def config(self) -> GraphConfig:
        return self._config

    @property
    def history(self) -> UndoHistory:
        """The undo/redo history.  Read it; mutate through ``undo``/``redo``."""
        return self._history

    @property
    def selected_node_ids(self) -> frozenset[str]:
        return frozenset(self._selected)

    @property
    def expanded_node_ids(self) -> frozenset[str]:
        return frozenset(self._expanded)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __repr__(self) -> str:
        return (
            f"ConversationGraph(graph_id={self._graph_id!r}, "
            f"nodes={len(self._nodes)}, edges={len(self._edges)})"
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require(self, node_id: str) -> ConversationNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def _require_source(self, node_id: str) -> ConversationNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise SourceNotFoundError(node_id)
        return node

    def _child_ids(self, node_id: str) -> list[str]:
        return [
            child.id for child in self._nodes.values() if node_id in child.parent_card_ids
        ]

    def _branch_positions(self, node_id: str) -> list[Position]:
        return [
            self._nodes[edge.target].position
            for edge in self._edges.values()
            if edge.source == node_id and edge.relation_type == RelationType.BRANCH
        ]

    def _commit(self, command: GraphCommand, kind: GraphEventKind) -> None:
        """Validate, apply, record, and announce ``command``."""
        problems: list[str] = []
        for image in command.after_nodes.values():
            if image is not None:
                problems.extend(image.invariant_problems())
        if problems:
            raise GraphIntegrityError(problems)
        command.apply(self._nodes, self._edges)
        self._history.record(command)
        logger.debug("ConversationGraph: committed %r", command)
        self._notify(kind, command.affected_node_ids)

    def _notify(self, kind: GraphEventKind, node_ids: Iterable[str] = ()) -> None:
        event = GraphEvent(kind=kind, node_ids=tuple(node_ids))
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:  # noqa: BLE001
                logger.exception(
                    "ConversationGraph: subscriber %r failed on %s", callback, kind.value
                )

    def _drop_stale_view_state(self) -> None:
        self._selected &= self._nodes.keys()
        self._expanded &= self._nodes.keys()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for change events.

        Returns
        -------
        Callable[[], None]
            Call it to unsubscribe.  Calling it twice is harmless.
        """
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_root(
        self,
        title: str = "",
        messages: Iterable[Message] | None = None,
        position: Position | None = None,
        tags: Iterable[str] | None = None,
    ) -> ConversationNode:
        """Seed the graph with a parentless conversation.

        Without ``position`` the root takes the first free slot of a
        vertical column at ``start_x``.
        """
        content = list(messages or [])
        if position is None:
            layout = self._config.layout
            roots = [node.position for node in self._nodes.values() if node.is_root]
            # A root card covers at most two slots of the column.
            slots = generate_vertical_layout(2 * len(roots) + 1, config=layout).positions
            position = next(
                slot
                for slot in slots
                if not any(
                    abs(slot.x - root.x) < layout.card_width
                    and abs(slot.y - root.y) < layout.card_height
                    for root in roots
                )
            )

        now = _utcnow()
        node = ConversationNode(
            content=content,
            position=position,
            metadata=NodeMetadata(
                title=title,
                created_at=now,
                updated_at=now,
                message_count=len(content),
                tags=list(tags or []),
            ),
        )
        self._commit(
            GraphCommand(
                label="create_root",
                before_nodes={node.id: None},
                after_nodes={node.id: node},
            ),
            GraphEventKind.NODE_CREATED,
        )
        logger.debug("ConversationGraph: created root %r", node.id)
        return node.model_copy(deep=True)

    def create_branch(
        self,
        source_card_id: str,
        message_index: int,
        inheritance_mode: InheritanceMode = InheritanceMode.FULL,
        custom_message_ids: Collection[str] | None = None,
        branch_reason: str = "",
        summary_text: str | None = None,
        position: Position | None = None,
    ) -> ConversationNode:
        """Fork ``source_card_id`` at ``message_index`` into a new node.

        Context is resolved against the source's own content, never its
        inherited context, so long branch chains do not drift.  The new node
        starts with empty content.

        Parameters
        ----------
        source_card_id:
            Node to branch from.
        message_index:
            Inclusive index of the last source message that may be inherited.
        inheritance_mode:
            ``full``, ``summary``, or ``custom``.
        custom_message_ids:
            Selected ids for custom mode.
        branch_reason:
            Used as the new node's title when given.
        summary_text:
            Finished summary for summary mode.
        position:
            Explicit position; otherwise placed by the layout engine.

        Returns
        -------
        ConversationNode
            A copy of the created node.

        Raises
        ------
        SourceNotFoundError
            If ``source_card_id`` does not exist.
        InvalidMessageIndexError
            If ``message_index`` is outside the source's content.
        MissingSummaryError
            If summary mode is requested without summary text.
        EmptySelectionError
            If custom mode is requested with no selected ids.
        """
        source = self._require_source(source_card_id)
        entry = resolve_inherited_context(
            InheritanceMode(inheritance_mode),
            source.content,
            message_index,
            custom_ids=custom_message_ids,
            summary_text=summary_text,
            source_id=source_card_id,
        )
        if position is None:
            position = place_branch_child(
                source.position,
                self._branch_positions(source_card_id),
                self._config.layout,
                self._random,
            )

        now = _utcnow()
        node = ConversationNode(
            parent_card_ids=[source_card_id],
            is_merge_node=False,
            branch_point=BranchPoint(parent_card_id=source_card_id, message_index=message_index),
            inherited_context={source_card_id: entry},
            position=position,
            metadata=NodeMetadata(
                title=branch_reason or f"Branch from message {message_index + 1}",
                created_at=now,
                updated_at=now,
            ),
        )
        edge = Edge.connect(source_card_id, node.id, RelationType.BRANCH)
        self._commit(
            GraphCommand(
                label="create_branch",
                before_nodes={node.id: None},
                after_nodes={node.id: node},
                before_edges={edge.id: None},
                after_edges={edge.id: edge},
            ),
            GraphEventKind.NODE_CREATED,
        )
        logger.debug(
            "ConversationGraph: branched %r from %r at message %d (%s)",
            node.id,
            source_card_id,
            message_index,
            entry.mode.value,
        )
        return node.model_copy(deep=True)

    def create_merge_node(
        self,
        source_card_ids: Iterable[str],
        synthesis_prompt: str | None = None,
        inheritance_modes: Mapping[str, InheritanceMode] | None = None,
        summary_texts: Mapping[str, str] | None = None,
        position: Position | None = None,
    ) -> ConversationNode:
        """Join two or more conversations into a new merge node.

        Each source contributes its whole own content, either in full or
        as a summary, according to its entry in ``inheritance_modes``
        (default ``full``).  Parent order is preserved.

        Parameters
        ----------
        source_card_ids:
            Nodes to merge, in display order.
        synthesis_prompt:
            Optional opening user message and title for the merge node.
        inheritance_modes:
            Per-source ``full`` or ``summary``.
        summary_texts:
            Per-source summary text, required for summary-mode sources.
        position:
            Explicit position; otherwise placed right of and between the
            sources.

        Returns
        -------
        ConversationNode
            A copy of the created node.

        Raises
        ------
        InsufficientSourcesError
            Fewer than two sources.
        DuplicateSourceError
            A source id is repeated.
        MergeLimitError
            More sources than ``config.max_merge_sources``.
        SourceNotFoundError
            A source does not exist.
        MergeOfMergeError
            A source is itself a merge node.
        MissingSummaryError
            A summary-mode source has no summary text.
        ValueError
            A source is given ``custom`` mode, or a mode is given for an id
            that is not a source.
        """
        source_ids = list(source_card_ids)
        modes = dict(inheritance_modes or {})
        texts = dict(summary_texts or {})

        if len(source_ids) < 2:
            raise InsufficientSourcesError(len(source_ids))
        seen: set[str] = set()
        for source_id in source_ids:
            if source_id in seen:
                raise DuplicateSourceError(source_id)
            seen.add(source_id)
        limit = self._config.max_merge_sources
        if limit is not None and len(source_ids) > limit:
            raise MergeLimitError(len(source_ids), limit)
        unknown = set(modes) - seen
        if unknown:
            raise ValueError(
                f"inheritance_modes references non-source node(s): {sorted(unknown)}."
            )

        sources = [self._require_source(source_id) for source_id in source_ids]
        for source in sources:
            if source.is_merge_node:
                raise MergeOfMergeError(source.id)

        inherited: dict[str, InheritedContextEntry] = {}
        for source in sources:
            mode = InheritanceMode(modes.get(source.id, InheritanceMode.FULL))
            inherited[source.id] = self._merge_entry(source, mode, texts.get(source.id))

        if len(source_ids) >= self._config.merge_warning_threshold:
            logger.warning(
                "ConversationGraph: merging %d sources; consider intermediate merges "
                "to keep context manageable.",
                len(source_ids),
            )

        if position is None:
            position = place_merge_node(
                [source.position for source in sources], self._config.layout
            )

        now = _utcnow()
        content = (
            [Message(role=MessageRole.USER, content=synthesis_prompt, timestamp=now)]
            if synthesis_prompt
            else []
        )
        node = ConversationNode(
            content=content,
            parent_card_ids=source_ids,
            is_merge_node=True,
            inherited_context=inherited,
            merge_metadata=MergeMetadata(
                source_card_ids=source_ids,
                synthesis_prompt=synthesis_prompt,
                created_at=now,
            ),
            position=position,
            metadata=NodeMetadata(
                title=synthesis_prompt or f"Merge of {len(source_ids)} threads",
                created_at=now,
                updated_at=now,
                message_count=len(content),
                tags=["merge"],
            ),
        )
        edges = [Edge.connect(source_id, node.id, RelationType.MERGE) for source_id in source_ids]
        self._commit(
            GraphCommand(
                label="create_merge_node",
                before_nodes={node.id: None},
                after_nodes={node.id: node},
                before_edges={edge.id: None for edge in edges},
                after_edges={edge.id: edge for edge in edges},
            ),
            GraphEventKind.NODE_CREATED,
        )
        logger.debug(
            "ConversationGraph: merged %d source(s) into %r", len(source_ids), node.id
        )
        return node.model_copy(deep=True)

    @staticmethod
    def _merge_entry(
        source: ConversationNode,
        mode: InheritanceMode,
        summary_text: str | None,
    ) -> InheritedContextEntry:
        if mode == InheritanceMode.CUSTOM:
            raise ValueError(
                f"Merge source {source.id!r}: custom mode is only supported for branches."
            )
        if source.content:
            return resolve_inherited_context(
                mode,
                source.content,
                len(source.content) - 1,
                summary_text=summary_text,
                source_id=source.id,
            )
        # An empty source still contributes an entry so the parent keys match.
        if mode == InheritanceMode.SUMMARY:
            if summary_text is None or not summary_text.strip():
                raise MissingSummaryError(source.id)
            messages = [build_summary_message(summary_text, 0)]
        else:
            messages = []
        return InheritedContextEntry(mode=mode, messages=messages, total_parent_messages=0)

    # ------------------------------------------------------------------
    # Deletion
    # ------------------------------------------------------------------

    def delete_conversation(self, node_id: str) -> None:
        """Remove ``node_id``, its incident edges, and its view state.

        Under the ``cascade`` policy each child loses the deleted parent
        from ``parent_card_ids`` and ``inherited_context``; a branch point
        that referenced it is cleared, and a merge node left with a single
        parent becomes a plain node.  Under ``block`` a node with children
        cannot be deleted.

        Raises
        ------
        NodeNotFoundError
            If ``node_id`` does not exist.
        NodeHasDependentsError
            Under the ``block`` policy when the node has children.
        """
        node = self._require(node_id)
        child_ids = self._child_ids(node_id)
        if child_ids and self._config.delete_policy == DeletePolicy.BLOCK:
            raise NodeHasDependentsError(node_id, child_ids)

        before_nodes: dict[str, ConversationNode | None] = {node_id: node}
        after_nodes: dict[str, ConversationNode | None] = {node_id: None}
        now = _utcnow()
        for child_id in child_ids:
            child = self._nodes[child_id]
            pruned = child.model_copy(deep=True)
            pruned.parent_card_ids = [p for p in child.parent_card_ids if p != node_id]
            pruned.inherited_context.pop(node_id, None)
            if pruned.branch_point is not None and pruned.branch_point.parent_card_id == node_id:
                pruned.branch_point = None
            if pruned.is_merge_node and len(pruned.parent_card_ids) < 2:
                pruned.is_merge_node = False
                pruned.merge_metadata = None
            elif pruned.merge_metadata is not None:
                pruned.merge_metadata.source_card_ids = list(pruned.parent_card_ids)
            pruned.metadata.updated_at = now
            before_nodes[child_id] = child
            after_nodes[child_id] = pruned

        incident = {
            edge_id: edge
            for edge_id, edge in self._edges.items()
            if node_id in (edge.source, edge.target)
        }
        self._commit(
            GraphCommand(
                label="delete_conversation",
                before_nodes=before_nodes,
                after_nodes=after_nodes,
                before_edges=dict(incident),
                after_edges={edge_id: None for edge_id in incident},
            ),
            GraphEventKind.NODE_DELETED,
        )
        self._selected.discard(node_id)
        self._expanded.discard(node_id)
        logger.debug(
            "ConversationGraph: deleted %r (%d dependent(s) pruned)", node_id, len(child_ids)
        )

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def update_inherited_summary(
        self, node_id: str, parent_id: str, new_summary_text: str
    ) -> ConversationNode:
        """Replace the inherited context from ``parent_id`` with a new summary.

        The entry's mode becomes ``summary`` and its timestamp is refreshed.

        Raises
        ------
        NodeNotFoundError
            If ``node_id`` does not exist.
        ParentNotFoundError
            If the node has no inherited entry for ``parent_id``.
        MissingSummaryError
            If ``new_summary_text`` is blank.
        """
        node = self._require(node_id)
        entry = node.inherited_context.get(parent_id)
        if entry is None:
            raise ParentNotFoundError(node_id, parent_id)
        if not new_summary_text or not new_summary_text.strip():
            raise MissingSummaryError(parent_id)

        covered = len(entry.messages)
        for message in entry.messages:
            if message.is_summary:
                covered = int(message.metadata.get("original_message_count", covered))
                break

        now = _utcnow()
        updated = node.model_copy(deep=True)
        updated.inherited_context[parent_id] = InheritedContextEntry(
            mode=InheritanceMode.SUMMARY,
            messages=[build_summary_message(new_summary_text, covered)],
            timestamp=now,
            total_parent_messages=entry.total_parent_messages,
        )
        updated.metadata.updated_at = now
        self._commit(
            GraphCommand(
                label="update_inherited_summary",
                before_nodes={node_id: node},
                after_nodes={node_id: updated},
            ),
            GraphEventKind.NODE_UPDATED,
        )
        logger.debug(
            "ConversationGraph: regenerated summary of %r inherited by %r", parent_id, node_id
        )
        return updated.model_copy(deep=True)

    def append_message(
        self,
        node_id: str,
        role: MessageRole | str,
        content: str,
        attachments: Iterable[Attachment] | None = None,
        metadata: Mapping[str, object] | None = None,
    ) -> Message:
        """Append a message to ``node_id``'s own content.

        Returns
        -------
        Message
            The appended message.

        Raises
        ------
        NodeNotFoundError
            If ``node_id`` does not exist.
        """
        node = self._require(node_id)
        message = Message(
            role=MessageRole(role),
            content=content,
            attachments=tuple(attachments or ()),
            metadata=dict(metadata or {}),
        )
        updated = node.model_copy(deep=True)
        updated.content.append(message)
        updated.metadata.message_count = len(updated.content)
        updated.metadata.updated_at = message.timestamp
        self._commit(
            GraphCommand(
                label="append_message",
                before_nodes={node_id: node},
                after_nodes={node_id: updated},
            ),
            GraphEventKind.NODE_UPDATED,
        )
        return message

    def update_node_metadata(
        self,
        node_id: str,
        title: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> ConversationNode:
        """Change a node's title and/or tags.  Nothing is recorded if both are None."""
        node = self._require(node_id)
        if title is None and tags is None:
            return node.model_copy(deep=True)
        updated = node.model_copy(deep=True)
        if title is not None:
            updated.metadata.title = title
        if tags is not None:
            updated.metadata.tags = list(tags)
        updated.metadata.updated_at = _utcnow()
        self._commit(
            GraphCommand(
                label="update_node_metadata",
                before_nodes={node_id: node},
                after_nodes={node_id: updated},
            ),
            GraphEventKind.NODE_UPDATED,
        )
        return updated.model_copy(deep=True)

    def move_node(self, node_id: str, position: Position) -> ConversationNode:
        """Set a node's position explicitly (user drag)."""
        node = self._require(node_id)
        updated = node.model_copy(deep=True)
        updated.position = position
        self._commit(
            GraphCommand(
                label="move_node",
                before_nodes={node_id: node},
                after_nodes={node_id: updated},
            ),
            GraphEventKind.NODE_MOVED,
        )
        return updated.model_copy(deep=True)

    def apply_layout(self, positions: Mapping[str, Position]) -> None:
        """Move several nodes at once as a single undoable step.

        Raises
        ------
        NodeNotFoundError
            If any id in ``positions`` does not exist.
        """
        before: dict[str, ConversationNode | None] = {}
        after: dict[str, ConversationNode | None] = {}
        for node_id, position in positions.items():
            node = self._require(node_id)
            updated = node.model_copy(deep=True)
            updated.position = position
            before[node_id] = node
            after[node_id] = updated
        if not after:
            return
        self._commit(
            GraphCommand(label="apply_layout", before_nodes=before, after_nodes=after),
            GraphEventKind.NODE_MOVED,
        )

    def compute_layout(self, seed: int | None = None) -> dict[str, Position]:
        """Return tree-layout positions for every node, without applying them."""
        ids = list(self._nodes)
        index = {node_id: i for i, node_id in enumerate(ids)}
        branch_edges: list[tuple[int, int]] = []
        merge_edges: list[tuple[int, int]] = []
        for node in self._nodes.values():
            target = index[node.id]
            for parent_id in node.parent_card_ids:
                pair = (index[parent_id], target)
                (merge_edges if node.is_merge_node else branch_edges).append(pair)
        result = generate_tree_layout(
            branch_edges,
            len(ids),
            seed=seed,
            config=self._config.layout,
            merge_edges=merge_edges,
        )
        return {node_id: result.positions[i] for i, node_id in enumerate(ids)}

    # ------------------------------------------------------------------
    # Undo / redo
    # ------------------------------------------------------------------

    def can_undo(self) -> bool:
        return self._history.can_undo()

    def can_redo(self) -> bool:
        return self._history.can_redo()

    def undo(self) -> bool:
        """Revert the most recent command.  Returns False when there is none."""
        command = self._history.undo()
        if command is None:
            return False
        command.revert(self._nodes, self._edges)
        self._drop_stale_view_state()
        logger.debug("ConversationGraph: undid %r", command.label)
        self._notify(GraphEventKind.UNDO, command.affected_node_ids)
        return True

    def redo(self) -> bool:
        """Re-apply the most recently undone command.  Returns False when there is none."""
        command = self._history.redo()
        if command is None:
            return False
        command.apply(self._nodes, self._edges)
        self._drop_stale_view_state()
        logger.debug("ConversationGraph: redid %r", command.label)
        self._notify(GraphEventKind.REDO, command.affected_node_ids)
        return True

    # ------------------------------------------------------------------
    # Selection / expansion (not recorded)
    # ------------------------------------------------------------------

    def set_selected(self, node_ids: Iterable[str]) -> None:
        """Replace the selection with ``node_ids``."""
        ids = set(node_ids)
        for node_id in ids:
            self._require(node_id)
        self._selected = ids
        self._notify(GraphEventKind.SELECTION, sorted(ids))

    def clear_selection(self) -> None:
        self._selected.clear()
        self._notify(GraphEventKind.SELECTION)

    def toggle_expanded(self, node_id: str) -> bool:
        """Flip the expanded state of ``node_id`` and return the new state."""
        self._require(node_id)
        if node_id in self._expanded:
            self._expanded.discard(node_id)
        else:
            self._expanded.add(node_id)
        self._notify(GraphEventKind.SELECTION, [node_id])
        return node_id in self._expanded

    def set_expanded(self, node_id: str, expanded: bool) -> None:
        self._require(node_id)
        if expanded:
            self._expanded.add(node_id)
        else:
            self._expanded.discard(node_id)
        self._notify(GraphEventKind.SELECTION, [node_id])

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_node(self, node_id: str) -> ConversationNode:
        """Return a copy of ``node_id``.

        Raises
        ------
        NodeNotFoundError
            If ``node_id`` does not exist.
        """
        return self._require(node_id).model_copy(deep=True)

    def nodes(self) -> list[ConversationNode]:
        """Return copies of every node in insertion order."""
        return [node.model_copy(deep=True) for node in self._nodes.values()]

    def edges(self) -> list[Edge]:
        return list(self._edges.values())

    def children_of(self, node_id: str) -> list[str]:
        """Ids of the nodes that list ``node_id`` as a parent."""
        self._require(node_id)
        return self._child_ids(node_id)

    def parents_of(self, node_id: str) -> list[str]:
        return list(self._require(node_id).parent_card_ids)

    def ancestors_of(self, node_id: str) -> list[str]:
        """Every node reachable by following parent links, nearest first."""
        start = self._require(node_id)
        seen: set[str] = set()
        order: list[str] = []
        queue = list(start.parent_card_ids)
        while queue:
            current = queue.pop(0)
            if current in seen or current not in self._nodes:
                continue
            seen.add(current)
            order.append(current)
            queue.extend(self._nodes[current].parent_card_ids)
        return order

    def roots(self) -> list[str]:
        return [node.id for node in self._nodes.values() if node.is_root]

    def get_conversation_messages(
        self, node_id: str, include_inherited: bool = True
    ) -> list[dict[str, str]]:
        """Return the messages a model would see for ``node_id``.

        Inherited context of each parent (in parent order) comes first,
        followed by the node's own content.
        """
        node = self._require(node_id)
        messages: list[Message] = []
        if include_inherited:
            for parent_id in node.parent_card_ids:
                entry = node.inherited_context.get(parent_id)
                if entry is not None:
                    messages.extend(entry.messages)
        messages.extend(node.content)
        return [{"role": m.role.value, "content": m.content} for m in messages]

    def merge_parent_count(self, node_id: str) -> int:
        """Number of parents of a merge node; 0 for any other node."""
        node = self._require(node_id)
        return len(node.parent_card_ids) if node.is_merge_node else 0

    def can_add_merge_parent(self, node_id: str) -> bool:
        """True when ``node_id`` is a merge node below the source limit."""
        node = self._require(node_id)
        if not node.is_merge_node:
            return False
        limit = self._config.max_merge_sources
        return limit is None or len(node.parent_card_ids) < limit

    def would_create_cycle(self, source_id: str, target_id: str) -> bool:
        """True if an edge ``source_id -> target_id`` would close a cycle."""
        self._require(source_id)
        self._require(target_id)
        return source_id == target_id or target_id in self.ancestors_of(source_id)

    def ensure_acyclic_edge(self, source_id: str, target_id: str) -> None:
        """Raise ``CycleError`` if ``source_id -> target_id`` would close a cycle."""
        if self.would_create_cycle(source_id, target_id):
            raise CycleError(source_id, target_id)

    # ------------------------------------------------------------------
    # Integrity
    # ------------------------------------------------------------------

    def integrity_problems(self) -> list[str]:
        """Return every node, edge, and acyclicity problem in the graph."""
        problems: list[str] = []
        expected: set[tuple[str, str]] = set()
        for node in self._nodes.values():
            problems.extend(node.invariant_problems())
            for parent_id in node.parent_card_ids:
                if parent_id not in self._nodes:
                    problems.append(f"node {node.id!r} references missing parent {parent_id!r}")
                expected.add((parent_id, node.id))

        actual: dict[tuple[str, str], int] = {}
        for edge_id, edge in self._edges.items():
            pair = (edge.source, edge.target)
            actual[pair] = actual.get(pair, 0) + 1
            if edge_id != edge.id:
                problems.append(f"edge stored under {edge_id!r} has id {edge.id!r}")
            target = self._nodes.get(edge.target)
            if target is not None and target.is_merge_node and edge.relation_type != RelationType.MERGE:
                problems.append(f"edge {edge.id!r} into merge node is not a merge edge")
        for pair, count in actual.items():
            if count > 1:
                problems.append(f"{count} edges connect {pair[0]!r} -> {pair[1]!r}")
        for source, target in sorted(expected - actual.keys()):
            problems.append(f"missing edge {source!r} -> {target!r}")
        for source, target in sorted(actual.keys() - expected):
            problems.append(f"edge {source!r} -> {target!r} has no matching parent link")

        if self._has_cycle():
            problems.append("parent relation contains a cycle")
        return problems

    def check_integrity(self) -> None:
        """Raise ``GraphIntegrityError`` if any invariant is broken."""
        problems = self.integrity_problems()
        if problems:
            raise GraphIntegrityError(problems)

    def _has_cycle(self) -> bool:
        indegree = {
            node_id: sum(1 for p in node.parent_card_ids if p in self._nodes)
            for node_id, node in self._nodes.items()
        }
        ready = [node_id for node_id, degree in indegree.items() if degree == 0]
        visited = 0
        while ready:
            current = ready.pop()
            visited += 1
            for child_id in self._child_ids(current):
                indegree[child_id] -= 1
                if indegree[child_id] == 0:
                    ready.append(child_id)
        return visited != len(self._nodes)

    # ------------------------------------------------------------------
    # Snapshots and rendering
    # ------------------------------------------------------------------

    def snapshot(self) -> GraphSnapshot:
        """Return a deep copy of the full graph state for persistence."""
        return GraphSnapshot(
            graph_id=self._graph_id,
            nodes=self.nodes(),
            edges=self.edges(),
            selected_node_ids=sorted(self._selected),
            expanded_node_ids=sorted(self._expanded),
        )

    @classmethod
    def from_snapshot(
        cls, snapshot: GraphSnapshot, config: GraphConfig | None = None
    ) -> "ConversationGraph":
        """Rebuild a graph from ``snapshot``.  The history starts empty.

        Raises
        ------
        GraphIntegrityError
            If the snapshot's nodes and edges are inconsistent.
        """
        graph = cls(config=config, graph_id=snapshot.graph_id)
        for node in snapshot.nodes:
            graph._nodes[node.id] = node.model_copy(deep=True)
        for edge in snapshot.edges:
            graph._edges[edge.id] = edge
        graph._selected = set(snapshot.selected_node_ids) & graph._nodes.keys()
        graph._expanded = set(snapshot.expanded_node_ids) & graph._nodes.keys()
        graph.check_integrity()
        logger.debug(
            "ConversationGraph: restored %r with %d node(s)", graph.graph_id, len(graph)
        )
        return graph

    def render_graph(self) -> RenderGraph:
        """Derive the nodes/edges schema consumed by a visualisation layer."""
        return RenderGraph(
            nodes=[
                RenderNode(id=node.id, position=node.position, data=node.model_copy(deep=True))
                for node in self._nodes.values()
            ],
            edges=[
                RenderEdge(
                    id=edge.id,
                    source=edge.source,
                    target=edge.target,
                    relation_type=edge.relation_type,
                )
                for edge in self._edges.values()
            ],
        )
