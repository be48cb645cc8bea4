"""Layout engine subpackage.

Public surface
--------------
- generate_tree_layout        — deterministic seeded layout from an edge list
- generate_grid_layout        — cards in rows
- generate_horizontal_layout  — cards in one row
- generate_vertical_layout    — cards in one column
- generate_cascade_layout     — cards stepped diagonally
- place_branch_child          — position for a new branch
- place_merge_node            — position for a new merge node
- create_seeded_random        — reproducible random source
- LayoutResult / LayoutBounds
"""
from __future__ import annotations

from conversation_loom.layout.tree import (
    LayoutBounds,
    LayoutResult,
    create_seeded_random,
    generate_cascade_layout,
    generate_grid_layout,
    generate_horizontal_layout,
    generate_tree_layout,
    generate_vertical_layout,
    get_jitter,
    place_branch_child,
    place_merge_node,
)

__all__ = [
    "LayoutBounds",
    "LayoutResult",
    "create_seeded_random",
    "generate_cascade_layout",
    "generate_grid_layout",
    "generate_horizontal_layout",
    "generate_tree_layout",
    "generate_vertical_layout",
    "get_jitter",
    "place_branch_child",
    "place_merge_node",
]
