"""Conversation graph domain models.

All types are Pydantic BaseModel subclasses to enable runtime validation,
JSON serialisation, and schema versioning.

Classes
-------
- MessageRole            — enum of message authors
- InheritanceMode        — enum: FULL, SUMMARY, CUSTOM
- RelationType           — enum of edge kinds: BRANCH, MERGE
- Attachment             — file or link attached to a message
- Message                — one immutable conversation turn
- InheritedContextEntry  — what a child inherited from one parent
- BranchPoint            — where a single-parent branch forked
- Position               — 2D canvas coordinate
- NodeMetadata           — title, timestamps, message count, tags
- MergeMetadata          — provenance of a merge node
- ConversationNode       — one conversation thread (card)
- Edge                   — parent -> child link used for rendering
- GraphSnapshot          — full persisted graph state
- RenderNode / RenderEdge / RenderGraph — generic visualisation schema
"""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar
from uuid import uuid4

from pydantic import BaseModel, Field, model_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageRole(str, Enum):
    """Author of a conversation message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class InheritanceMode(str, Enum):
    """Policy governing which parent messages a child inherits."""

    FULL = "full"
    SUMMARY = "summary"
    CUSTOM = "custom"


class RelationType(str, Enum):
    """Kind of parent -> child edge."""

    BRANCH = "branch"
    MERGE = "merge"


class Attachment(BaseModel):
    """A file or link attached to a message.

    Parameters
    ----------
    attachment_id:
        Unique identifier for this attachment.
    name:
        Display name (usually the file name).
    mime_type:
        MIME type of the payload.
    size_bytes:
        Payload size in bytes.
    url:
        Optional location of the payload.
    """

    attachment_id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    mime_type: str = "application/octet-stream"
    size_bytes: int = Field(default=0, ge=0)
    url: str | None = None

    model_config = {"frozen": True}


class Message(BaseModel):
    """A single conversation turn.

    Messages are immutable once created; a conversation grows by appending
    new messages, never by editing old ones.

    Parameters
    ----------
    id:
        Unique identifier for this message.
    role:
        Author role.
    content:
        Message text (may contain markdown and code fences).
    timestamp:
        When the message was created (UTC).
    attachments:
        Files or links attached to the message.
    metadata:
        Opaque key-value data (model name, summary markers, ...).
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=_utcnow)
    attachments: tuple[Attachment, ...] = ()
    metadata: dict[str, object] = Field(default_factory=dict)

    model_config = {"frozen": True}

    @property
    def has_code_block(self) -> bool:
        """True when the content contains a fenced code block marker."""
        return "```" in self.content

    @property
    def is_summary(self) -> bool:
        """True for synthetic summary messages produced during inheritance."""
        return bool(self.metadata.get("is_summary", False))


class InheritedContextEntry(BaseModel):
    """The slice of one parent's conversation carried into a child.

    Parameters
    ----------
    mode:
        Inheritance mode used to build ``messages``.
    messages:
        Inherited messages (a single synthetic system message in summary mode).
    timestamp:
        When the entry was resolved or last regenerated (UTC).
    total_parent_messages:
        Size of the parent's content at resolution time, for display.
    """

    mode: InheritanceMode
    messages: list[Message] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)
    total_parent_messages: int = Field(default=0, ge=0)


class BranchPoint(BaseModel):
    """Where a single-parent branch forked from its parent."""

    parent_card_id: str
    message_index: int = Field(ge=0)

    model_config = {"frozen": True}


class Position(BaseModel):
    """A point on the 2D canvas."""

    x: float = 0.0
    y: float = 0.0

    model_config = {"frozen": True}


class NodeMetadata(BaseModel):
    """Descriptive metadata for a conversation node."""

    title: str = ""
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    message_count: int = Field(default=0, ge=0)
    tags: list[str] = Field(default_factory=list)


class MergeMetadata(BaseModel):
    """Provenance recorded on a merge node."""

    source_card_ids: list[str]
    synthesis_prompt: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class ConversationNode(BaseModel):
    """One conversation thread in the graph.

    This is the central domain object.  A node's own ``content`` holds the
    messages exchanged in this thread; anything seeded from parents lives in
    ``inherited_context`` and is never duplicated into ``content``.

    Parameters
    ----------
    id:
        Unique identifier, stable for the node's lifetime.
    content:
        Ordered messages (insertion order is conversation order).
    parent_card_ids:
        Ordered parent ids: empty for a root, one for a branch, two or
        more for a merge node.
    is_merge_node:
        True only for nodes with two or more parents.
    branch_point:
        Set only for single-parent branches.
    inherited_context:
        Per-parent inherited slice; keyed by exactly ``parent_card_ids``.
    merge_metadata:
        Provenance of a merge node.
    position:
        Canvas position, assigned at creation or by an explicit move.
    metadata:
        Title, timestamps, message count, and tags.
    """

    id: str = Field(default_factory=lambda: str(uuid4()))
    content: list[Message] = Field(default_factory=list)
    parent_card_ids: list[str] = Field(default_factory=list)
    is_merge_node: bool = False
    branch_point: BranchPoint | None = None
    inherited_context: dict[str, InheritedContextEntry] = Field(default_factory=dict)
    merge_metadata: MergeMetadata | None = None
    position: Position = Field(default_factory=Position)
    metadata: NodeMetadata = Field(default_factory=NodeMetadata)

    model_config = {"frozen": False}

    @property
    def is_root(self) -> bool:
        """True when the node has no parents."""
        return not self.parent_card_ids

    def invariant_problems(self) -> list[str]:
        """Return a description of every per-node invariant this node breaks."""
        problems: list[str] = []
        parent_count = len(self.parent_card_ids)
        if self.is_merge_node and parent_count < 2:
            problems.append(
                f"node {self.id!r} is a merge node with {parent_count} parent(s)"
            )
        if not self.is_merge_node and parent_count > 1:
            problems.append(
                f"node {self.id!r} has {parent_count} parents but is not a merge node"
            )
        if len(set(self.parent_card_ids)) != parent_count:
            problems.append(f"node {self.id!r} lists a parent more than once")
        if set(self.inherited_context) != set(self.parent_card_ids):
            problems.append(
                f"node {self.id!r} inherited_context keys do not match parent_card_ids"
            )
        if self.branch_point is not None:
            if self.is_merge_node or parent_count != 1:
                problems.append(
                    f"node {self.id!r} has a branch point but is not a single-parent branch"
                )
            elif self.branch_point.parent_card_id != self.parent_card_ids[0]:
                problems.append(
                    f"node {self.id!r} branch point does not reference its parent"
                )
        if self.merge_metadata is not None:
            if not self.is_merge_node:
                problems.append(f"node {self.id!r} has merge metadata but is not a merge node")
            elif self.merge_metadata.source_card_ids != self.parent_card_ids:
                problems.append(
                    f"node {self.id!r} merge metadata sources do not match parent_card_ids"
                )
        if self.id in self.parent_card_ids:
            problems.append(f"node {self.id!r} is its own parent")
        if self.metadata.message_count != len(self.content):
            problems.append(
                f"node {self.id!r} message_count {self.metadata.message_count} "
                f"!= {len(self.content)}"
            )
        return problems

    @model_validator(mode="after")
    def _check_invariants(self) -> "ConversationNode":
        problems = self.invariant_problems()
        if problems:
            raise ValueError("; ".join(problems))
        return self


class Edge(BaseModel):
    """A directed parent -> child link, kept alongside ``parent_card_ids``."""

    id: str
    source: str
    target: str
    relation_type: RelationType

    model_config = {"frozen": True}

    @staticmethod
    def make_id(source: str, target: str, relation_type: RelationType) -> str:
        """Return the deterministic edge id for a relation."""
        return f"edge-{relation_type.value}-{source}-{target}"

    @classmethod
    def connect(cls, source: str, target: str, relation_type: RelationType) -> "Edge":
        """Build an edge with its deterministic id."""
        return cls(
            id=cls.make_id(source, target, relation_type),
            source=source,
            target=target,
            relation_type=relation_type,
        )


class GraphSnapshot(BaseModel):
    """Full persisted graph state: nodes, edges, and selection state.

    Parameters
    ----------
    graph_id:
        Identifier of the graph (workspace) this snapshot belongs to.
    schema_version:
        Schema version string used for forward/backward compatibility.
    nodes:
        Every node in the graph.
    edges:
        Every edge in the graph.
    selected_node_ids:
        Currently selected node ids.
    expanded_node_ids:
        Currently expanded node ids.
    saved_at:
        When the snapshot was taken (UTC).
    checksum:
        SHA-256 of the snapshot's canonical JSON (excluding this field).
    """

    SCHEMA_VERSION: ClassVar[str] = "1.0"

    graph_id: str = Field(default_factory=lambda: str(uuid4()))
    schema_version: str = "1.0"
    nodes: list[ConversationNode] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)
    selected_node_ids: list[str] = Field(default_factory=list)
    expanded_node_ids: list[str] = Field(default_factory=list)
    saved_at: datetime = Field(default_factory=_utcnow)
    checksum: str = ""

    @model_validator(mode="after")
    def _ensure_schema_version(self) -> "GraphSnapshot":
        if not self.schema_version:
            self.schema_version = self.SCHEMA_VERSION
        return self


class RenderNode(BaseModel):
    """Node record consumed by a graph-visualisation layer."""

    id: str
    position: Position
    data: ConversationNode


class RenderEdge(BaseModel):
    """Edge record consumed by a graph-visualisation layer."""

    id: str
    source: str
    target: str
    relation_type: RelationType


class RenderGraph(BaseModel):
    """Generic nodes/edges schema derived from the graph on every change."""

    nodes: list[RenderNode] = Field(default_factory=list)
    edges: list[RenderEdge] = Field(default_factory=list)
