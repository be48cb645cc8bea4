"""Undo/redo history subpackage.

Public surface
--------------
- GraphCommand  — invertible before/after images of a mutation
- UndoHistory   — bounded undo and redo stacks
"""
from __future__ import annotations

from conversation_loom.history.commands import GraphCommand
from conversation_loom.history.undo import UndoHistory

__all__ = ["GraphCommand", "UndoHistory"]
