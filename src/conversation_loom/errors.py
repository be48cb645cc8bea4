"""Exception hierarchy for conversation-loom.

Structural errors are raised by graph operations when a caller violates a
precondition.  They indicate misuse rather than a recoverable user state, so
they fail loudly; user-facing input checks go through
:func:`conversation_loom.context.selector.validate_branch_data` instead and
return a ``ValidationResult``.

Classes
-------
- LoomError                 — base for every error raised by this package
- NodeNotFoundError         — a referenced node does not exist
- SourceNotFoundError       — a branch/merge source does not exist
- ParentNotFoundError       — a node has no inherited entry for a parent
- InvalidMessageIndexError  — branch point outside the source's content
- InsufficientSourcesError  — merge requested with fewer than two sources
- DuplicateSourceError      — merge requested with a repeated source id
- MergeOfMergeError         — merge requested with a merge node as a source
- MergeLimitError           — merge exceeds the configured source limit
- MissingSummaryError       — summary mode without summary text
- EmptySelectionError       — custom mode without selected messages
- NodeHasDependentsError    — blocked delete of a node with children
- CycleError                — an edge would close a cycle
- GraphIntegrityError       — node/edge invariants do not hold
"""
from __future__ import annotations


class LoomError(Exception):
    """Base class for all conversation-loom errors."""


class NodeNotFoundError(LoomError, KeyError):
    """Raised when a requested node does not exist in the graph."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Node {node_id!r} not found.")

    def __str__(self) -> str:
        return str(self.args[0])


class SourceNotFoundError(NodeNotFoundError):
    """Raised when a branch or merge source node does not exist."""

    def __init__(self, node_id: str) -> None:
        super().__init__(node_id)
        self.args = (f"Source node {node_id!r} not found.",)


class ParentNotFoundError(LoomError, KeyError):
    """Raised when a node carries no inherited context for ``parent_id``."""

    def __init__(self, node_id: str, parent_id: str) -> None:
        self.node_id = node_id
        self.parent_id = parent_id
        super().__init__(
            f"Node {node_id!r} has no inherited context from parent {parent_id!r}."
        )

    def __str__(self) -> str:
        return str(self.args[0])


class InvalidMessageIndexError(LoomError, IndexError):
    """Raised when a branch point lies outside the source's content."""

    def __init__(self, node_id: str, message_index: int, message_count: int) -> None:
        self.node_id = node_id
        self.message_index = message_index
        self.message_count = message_count
        super().__init__(
            f"Message index {message_index} is out of range for node {node_id!r} "
            f"with {message_count} message(s)."
        )


class InsufficientSourcesError(LoomError, ValueError):
    """Raised when a merge is requested with fewer than two sources."""

    def __init__(self, count: int) -> None:
        self.count = count
        super().__init__(f"A merge node needs at least 2 sources, got {count}.")


class DuplicateSourceError(LoomError, ValueError):
    """Raised when the same source id appears twice in a merge request."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Source {node_id!r} appears more than once in the merge.")


class MergeOfMergeError(LoomError, ValueError):
    """Raised when a merge node is used as the source of another merge."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(
            f"Node {node_id!r} is a merge node and cannot be merged again."
        )


class MergeLimitError(LoomError, ValueError):
    """Raised when a merge exceeds the configured maximum number of sources."""

    def __init__(self, count: int, limit: int) -> None:
        self.count = count
        self.limit = limit
        super().__init__(
            f"Merge node limit reached ({count} sources, max {limit}). "
            "Consider creating intermediate merge nodes."
        )


class MissingSummaryError(LoomError, ValueError):
    """Raised when summary mode is requested without summary text."""

    def __init__(self, node_id: str | None = None) -> None:
        self.node_id = node_id
        target = f" for source {node_id!r}" if node_id else ""
        super().__init__(f"Summary mode requires summary text{target}.")


class EmptySelectionError(LoomError, ValueError):
    """Raised when custom mode is resolved with no selected message ids."""

    def __init__(self) -> None:
        super().__init__("Custom mode requires at least one selected message id.")


class NodeHasDependentsError(LoomError):
    """Raised when deleting a parent node under the ``block`` delete policy."""

    def __init__(self, node_id: str, dependents: list[str]) -> None:
        self.node_id = node_id
        self.dependents = list(dependents)
        super().__init__(
            f"Node {node_id!r} is a parent of {len(self.dependents)} node(s): "
            f"{', '.join(self.dependents)}."
        )


class CycleError(LoomError, ValueError):
    """Raised when adding ``source -> target`` would create a cycle."""

    def __init__(self, source: str, target: str) -> None:
        self.source = source
        self.target = target
        super().__init__(
            f"Connecting {source!r} -> {target!r} would create a circular dependency."
        )


class GraphIntegrityError(LoomError):
    """Raised when node or edge invariants are violated."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = list(problems)
        super().__init__("Graph integrity check failed: " + "; ".join(self.problems))
