"""Bounded undo/redo history.

Classes
-------
- UndoHistory  — undo and redo stacks of ``GraphCommand`` objects
"""
from __future__ import annotations

import logging
from collections import deque

from conversation_loom.history.commands import GraphCommand

logger = logging.getLogger(__name__)


class UndoHistory:
    """Undo and redo stacks with a bounded capacity.

    Recording a new command clears the redo stack.  When the undo stack is
    full the oldest command is evicted.  Undo or redo on an empty stack is
    a no-op and returns ``None``.

    The history only moves commands between stacks; applying them to graph
    state is the caller's job.

    Parameters
    ----------
    capacity:
        Maximum number of undoable commands retained.  Default: 50.
    """

    def __init__(self, capacity: int = 50) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity!r}.")
        self._capacity = capacity
        self._undo: deque[GraphCommand] = deque(maxlen=capacity)
        self._redo: list[GraphCommand] = []

    @property
    def capacity(self) -> int:
        """Maximum number of undoable commands."""
        return self._capacity

    def record(self, command: GraphCommand) -> None:
        """Push ``command`` onto the undo stack and clear the redo stack."""
        if len(self._undo) == self._capacity:
            logger.debug("UndoHistory: evicting oldest command %r", self._undo[0].label)
        self._undo.append(command)
        self._redo.clear()

    def undo(self) -> GraphCommand | None:
        """Pop the most recent command and move it to the redo stack."""
        if not self._undo:
            return None
        command = self._undo.pop()
        self._redo.append(command)
        return command

    def redo(self) -> GraphCommand | None:
        """Pop the most recently undone command and move it back."""
        if not self._redo:
            return None
        command = self._redo.pop()
        self._undo.append(command)
        return command

    def can_undo(self) -> bool:
        return bool(self._undo)

    def can_redo(self) -> bool:
        return bool(self._redo)

    def peek_undo(self) -> GraphCommand | None:
        """Return the command ``undo()`` would pop, without popping it."""
        return self._undo[-1] if self._undo else None

    def peek_redo(self) -> GraphCommand | None:
        """Return the command ``redo()`` would pop, without popping it."""
        return self._redo[-1] if self._redo else None

    def labels(self) -> list[str]:
        """Labels on the undo stack, oldest first."""
        return [command.label for command in self._undo]

    def clear(self) -> None:
        """Drop every recorded command."""
        self._undo.clear()
        self._redo.clear()

    @property
    def undo_depth(self) -> int:
        return len(self._undo)

    @property
    def redo_depth(self) -> int:
        return len(self._redo)

    def __len__(self) -> int:
        return len(self._undo)

    def __repr__(self) -> str:
        return (
            f"UndoHistory(undo={len(self._undo)}, redo={len(self._redo)}, "
            f"capacity={self._capacity})"
        )
