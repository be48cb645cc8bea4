"""Conversation graph domain models.

The store lives in :mod:`conversation_loom.graph.store` and is imported
from there (or from the top-level package) so that importing the models
alone stays cheap.
"""
from __future__ import annotations

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

__all__ = [
    "Attachment",
    "BranchPoint",
    "ConversationNode",
    "Edge",
    "GraphSnapshot",
    "InheritanceMode",
    "InheritedContextEntry",
    "MergeMetadata",
    "Message",
    "MessageRole",
    "NodeMetadata",
    "Position",
    "RelationType",
    "RenderEdge",
    "RenderGraph",
    "RenderNode",
]
