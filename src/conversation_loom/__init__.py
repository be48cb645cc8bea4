"""conversation-loom — Branch and merge AI conversations as a DAG.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import conversation_loom
>>> conversation_loom.__version__
'0.1.0'
"""
from __future__ import annotations

# Errors
from conversation_loom.errors import (
    CycleError,
    DuplicateSourceError,
    EmptySelectionError,
    GraphIntegrityError,
    InsufficientSourcesError,
    InvalidMessageIndexError,
    LoomError,
    MergeLimitError,
    MergeOfMergeError,
    MissingSummaryError,
    NodeHasDependentsError,
    NodeNotFoundError,
    ParentNotFoundError,
    SourceNotFoundError,
)

# Domain models
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

# Configuration
from conversation_loom.config import DeletePolicy, GraphConfig, LayoutConfig, load_config

# Context selection and summarization
from conversation_loom.context.selector import (
    ContextStats,
    TruncationPreview,
    TruncationStrategy,
    TruncationStrategyType,
    ValidationResult,
    context_stats,
    resolve_inherited_context,
    smart_initial_selection,
    truncation_preview,
    validate_branch_data,
)
from conversation_loom.context.summarizer import (
    ExtractiveSummarizer,
    Summarizer,
    SummaryRequest,
    SummaryResponse,
    build_summary_request,
)
from conversation_loom.context.tokens import estimate_tokens

# Layout
from conversation_loom.layout.tree import (
    LayoutResult,
    create_seeded_random,
    generate_cascade_layout,
    generate_grid_layout,
    generate_horizontal_layout,
    generate_tree_layout,
    generate_vertical_layout,
)

# Graph store and history
from conversation_loom.graph.store import ConversationGraph, GraphEvent, GraphEventKind
from conversation_loom.history.commands import GraphCommand
from conversation_loom.history.undo import UndoHistory

# Storage and persistence
from conversation_loom.storage.base import StorageBackend, StoredGraph
from conversation_loom.storage.memory import InMemoryBackend
from conversation_loom.storage.filesystem import FilesystemBackend
from conversation_loom.storage.sqlite import SQLiteBackend
from conversation_loom.persistence.serializer import GraphSerializer, SchemaVersionError
from conversation_loom.persistence.repository import GraphNotFoundError, GraphRepository
from conversation_loom.persistence.autosave import AutoSaver

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Errors
    "CycleError",
    "DuplicateSourceError",
    "EmptySelectionError",
    "GraphIntegrityError",
    "InsufficientSourcesError",
    "InvalidMessageIndexError",
    "LoomError",
    "MergeLimitError",
    "MergeOfMergeError",
    "MissingSummaryError",
    "NodeHasDependentsError",
    "NodeNotFoundError",
    "ParentNotFoundError",
    "SourceNotFoundError",
    # Domain models
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
    # Configuration
    "DeletePolicy",
    "GraphConfig",
    "LayoutConfig",
    "load_config",
    # Context
    "ContextStats",
    "ExtractiveSummarizer",
    "Summarizer",
    "SummaryRequest",
    "SummaryResponse",
    "TruncationPreview",
    "TruncationStrategy",
    "TruncationStrategyType",
    "ValidationResult",
    "build_summary_request",
    "context_stats",
    "estimate_tokens",
    "resolve_inherited_context",
    "smart_initial_selection",
    "truncation_preview",
    "validate_branch_data",
    # Layout
    "LayoutResult",
    "create_seeded_random",
    "generate_cascade_layout",
    "generate_grid_layout",
    "generate_horizontal_layout",
    "generate_tree_layout",
    "generate_vertical_layout",
    # Graph store and history
    "ConversationGraph",
    "GraphCommand",
    "GraphEvent",
    "GraphEventKind",
    "UndoHistory",
    # Storage and persistence
    "AutoSaver",
    "FilesystemBackend",
    "GraphNotFoundError",
    "GraphRepository",
    "GraphSerializer",
    "InMemoryBackend",
    "SQLiteBackend",
    "SchemaVersionError",
    "StorageBackend",
    "StoredGraph",
]
