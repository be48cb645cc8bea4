"""Deterministic layouts for conversation graphs.

Positions nodes on the canvas from an index-based edge list, or arranges a
flat list of cards in a grid, row, column, or cascade.  Given the same
inputs, seed, and configuration the output is identical, which keeps tests
and demo graphs reproducible.

Tree algorithm
--------------
1. Depth follows branch edges only.  A root has depth 0 and a branch sits
   one level past its single parent.
2. A node with two or more parents is a merge node.  It starts a new
   track: its own depth is 0 and its branch descendants are measured from
   it, so a merge never shifts the depth of the nodes around its parents.
3. ``x = origin_x + depth * level_spacing_x`` plus seeded horizontal
   jitter, where ``origin_x`` is ``start_x`` on the main track and the
   merge node's x on a merge track.
4. Each leaf takes the next vertical slot (``level_spacing_y`` apart) and a
   parent is centred between its first and last child.  Subtrees occupy
   disjoint slot ranges, so two nodes on the same track and depth are
   always at least one slot apart.
5. A merge node is placed once all its parents are placed:
   ``x = max(parent.x) + merge_offset_x``, ``y = mean(parent.y)``.  Its
   branch subtree is laid out after it, in fresh slots.

Classes
-------
- LayoutBounds  — bounding box of a layout
- LayoutResult  — positions, depths, tracks, and bounds

Functions
---------
- create_seeded_random        — reproducible ``() -> float`` in [0, 1]
- get_jitter                  — symmetric offset within ±amount
- generate_tree_layout        — full layout from an edge list
- generate_grid_layout        — cards in rows of ``columns``
- generate_horizontal_layout  — cards in a single row
- generate_vertical_layout    — cards in a single column
- generate_cascade_layout     — cards stepped diagonally
- place_branch_child          — position for a new single-parent branch
- place_merge_node            — position for a new merge node
"""
from __future__ import annotations

import logging
import random as _random
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from conversation_loom.config import LayoutConfig
from conversation_loom.graph.models import Position

logger = logging.getLogger(__name__)

RandomFn = Callable[[], float]

_LCG_MULTIPLIER = 1103515245
_LCG_INCREMENT = 12345
_LCG_MASK = 0x7FFFFFFF


def create_seeded_random(seed: int) -> RandomFn:
    """Return a linear congruential generator yielding floats in [0, 1].

    The same seed always produces the same sequence.
    """
    state = seed & _LCG_MASK

    def _next() -> float:
        nonlocal state
        state = (state * _LCG_MULTIPLIER + _LCG_INCREMENT) & _LCG_MASK
        return state / _LCG_MASK

    return _next


def get_jitter(amount: float, random: RandomFn | None = None) -> float:
    """Return an offset in ``[-amount, amount]``.

    Without ``random`` the module-level generator is used, so the result
    is not reproducible.
    """
    value = random() if random is not None else _random.random()
    return (value - 0.5) * 2 * amount


@dataclass(frozen=True)
class LayoutBounds:
    """Bounding box covering every card in a layout."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y


@dataclass(frozen=True)
class LayoutResult:
    """Output of a layout function.

    Attributes
    ----------
    positions:
        One position per node index.
    depths:
        Depth per node index, counted along branch edges from the start of
        the node's track.  Always 0 for flat arrangements.
    tracks:
        Track per node index: 0 for nodes reached from a root by branch
        edges alone, otherwise the track started by the nearest merge node
        above it.
    bounds:
        Bounding box including card dimensions.
    """

    positions: list[Position]
    depths: list[int]
    tracks: list[int]
    bounds: LayoutBounds


def _check_edges(edges: Sequence[tuple[int, int]], count: int, kind: str) -> None:
    for source, target in edges:
        if not (0 <= source < count and 0 <= target < count):
            raise ValueError(
                f"{kind} edge ({source}, {target}) is out of range for {count} node(s)."
            )
        if source == target:
            raise ValueError(f"{kind} edge ({source}, {target}) is a self-loop.")


def _topological_order(
    count: int, parents: dict[int, list[int]], children: dict[int, list[int]]
) -> list[int]:
    """Kahn's algorithm over all edges; raises ``ValueError`` on a cycle."""
    indegree = {index: len(parents.get(index, [])) for index in range(count)}
    ready = [index for index in range(count) if indegree[index] == 0]
    order: list[int] = []
    while ready:
        node = ready.pop(0)
        order.append(node)
        for child in children.get(node, []):
            indegree[child] -= 1
            if indegree[child] == 0:
                ready.append(child)
    if len(order) != count:
        raise ValueError("Layout edges contain a cycle.")
    return order


def generate_tree_layout(
    branch_edges: Sequence[tuple[int, int]],
    count: int,
    seed: int | None = None,
    config: LayoutConfig | None = None,
    merge_edges: Sequence[tuple[int, int]] | None = None,
) -> LayoutResult:
    """Lay out ``count`` nodes connected by branch and merge edges.

    Parameters
    ----------
    branch_edges:
        ``(source_index, target_index)`` pairs for single-parent branches.
    count:
        Number of nodes; indices run from 0 to ``count - 1``.
    seed:
        Seed for horizontal jitter.  ``None`` disables jitter so the
        layout stays deterministic.
    config:
        Spacing constants.  Defaults to ``LayoutConfig()``.
    merge_edges:
        ``(source_index, target_index)`` pairs into merge nodes.  Any
        target with two or more parents overall is treated as a merge node.

    Returns
    -------
    LayoutResult

    Raises
    ------
    ValueError
        If ``count`` is negative, an edge is out of range or a self-loop,
        or the edges contain a cycle.
    """
    _check_count(count)
    cfg = config or LayoutConfig()
    merge_edges = list(merge_edges or [])
    _check_edges(branch_edges, count, "branch")
    _check_edges(merge_edges, count, "merge")

    random = create_seeded_random(seed) if seed is not None else None
    jitter_amount = cfg.jitter if random is not None else 0.0

    parents: dict[int, list[int]] = {}
    children: dict[int, list[int]] = {}
    for source, target in [*branch_edges, *merge_edges]:
        if source in parents.get(target, []):
            continue
        parents.setdefault(target, []).append(source)
        children.setdefault(source, []).append(target)

    order = _topological_order(count, parents, children)
    merge_nodes = {index for index, plist in parents.items() if len(plist) >= 2}

    # Branch children only: merge nodes are positioned from their parents.
    tree_children: dict[int, list[int]] = {
        node: [c for c in kids if c not in merge_nodes] for node, kids in children.items()
    }

    positions: list[Position | None] = [None] * count
    depths = [0] * count
    tracks = [0] * count
    next_slot = 0
    next_track = 1

    def _layout_subtree(node: int, origin_x: float, depth: int, track: int) -> float:
        """Place ``node`` and its branch descendants; return its y."""
        nonlocal next_slot
        depths[node] = depth
        tracks[node] = track
        x = origin_x + depth * cfg.level_spacing_x + get_jitter(jitter_amount, random)
        kids = tree_children.get(node, [])
        if not kids:
            y = cfg.start_y + next_slot * cfg.level_spacing_y
            next_slot += 1
        else:
            child_ys = [_layout_subtree(child, origin_x, depth + 1, track) for child in kids]
            y = (child_ys[0] + child_ys[-1]) / 2
        positions[node] = Position(x=round(x, 2), y=round(y, 2))
        return y

    def _place_merge(node: int, track: int) -> None:
        placed = [positions[p] for p in parents[node]]
        x = max(p.x for p in placed if p is not None) + cfg.merge_offset_x
        y = sum(p.y for p in placed if p is not None) / len(placed)
        positions[node] = Position(x=round(x, 2), y=round(y, 2))
        tracks[node] = track
        for child in tree_children.get(node, []):
            _layout_subtree(child, x, 1, track)

    for node in order:
        if node not in parents:
            _layout_subtree(node, cfg.start_x, 0, 0)

    pending = [node for node in order if node in merge_nodes]
    while pending:
        progressed = False
        for node in list(pending):
            if all(positions[p] is not None for p in parents[node]):
                _place_merge(node, next_track)
                next_track += 1
                pending.remove(node)
                progressed = True
        if not progressed:
            raise ValueError("Merge nodes reference parents that cannot be placed.")

    final = [p for p in positions if p is not None]
    if len(final) != count:
        raise ValueError("Layout could not place every node.")

    logger.debug(
        "generate_tree_layout: placed %d node(s), %d merge node(s), seed=%r",
        count,
        len(merge_nodes),
        seed,
    )
    return LayoutResult(
        positions=final, depths=depths, tracks=tracks, bounds=_bounds(final, cfg)
    )


def _bounds(positions: Sequence[Position], cfg: LayoutConfig) -> LayoutBounds:
    if not positions:
        return LayoutBounds(0.0, 0.0, 0.0, 0.0)
    return LayoutBounds(
        min_x=min(p.x for p in positions),
        min_y=min(p.y for p in positions),
        max_x=max(p.x for p in positions) + cfg.card_width,
        max_y=max(p.y for p in positions) + cfg.card_height,
    )


# ---------------------------------------------------------------------------
# Flat arrangements
# ---------------------------------------------------------------------------


def _flat_result(positions: list[Position], cfg: LayoutConfig) -> LayoutResult:
    return LayoutResult(
        positions=positions,
        depths=[0] * len(positions),
        tracks=[0] * len(positions),
        bounds=_bounds(positions, cfg),
    )


def _check_count(count: int) -> None:
    if count < 0:
        raise ValueError(f"count must be non-negative, got {count!r}.")


def generate_grid_layout(
    count: int,
    columns: int | None = None,
    seed: int | None = None,
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Arrange ``count`` cards left to right in rows of ``columns``.

    Cards are one card size plus ``gap_x`` / ``gap_y`` apart.  With a seed
    every card is nudged on both axes by up to ``jitter``.

    Parameters
    ----------
    count:
        Number of cards.
    columns:
        Cards per row.  Defaults to ``config.columns``.
    seed:
        Seed for jitter.  ``None`` disables jitter.
    config:
        Spacing constants.  Defaults to ``LayoutConfig()``.

    Raises
    ------
    ValueError
        If ``count`` is negative or ``columns`` is less than 1.
    """
    _check_count(count)
    cfg = config or LayoutConfig()
    columns = cfg.columns if columns is None else columns
    if columns < 1:
        raise ValueError(f"columns must be at least 1, got {columns!r}.")
    random = create_seeded_random(seed) if seed is not None else None
    jitter_amount = cfg.jitter if random is not None else 0.0

    positions: list[Position] = []
    for index in range(count):
        row, column = divmod(index, columns)
        x = cfg.start_x + column * (cfg.card_width + cfg.gap_x)
        y = cfg.start_y + row * (cfg.card_height + cfg.gap_y)
        positions.append(
            Position(
                x=round(x + get_jitter(jitter_amount, random), 2),
                y=round(y + get_jitter(jitter_amount, random), 2),
            )
        )
    logger.debug("generate_grid_layout: %d card(s) in %d column(s)", count, columns)
    return _flat_result(positions, cfg)


def generate_horizontal_layout(
    count: int,
    seed: int | None = None,
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Arrange ``count`` cards in a single row."""
    return generate_grid_layout(count, columns=max(count, 1), seed=seed, config=config)


def generate_vertical_layout(
    count: int,
    seed: int | None = None,
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Arrange ``count`` cards in a single column."""
    return generate_grid_layout(count, columns=1, seed=seed, config=config)


def generate_cascade_layout(
    count: int,
    seed: int | None = None,
    config: LayoutConfig | None = None,
) -> LayoutResult:
    """Step ``count`` cards down and to the right, like stacked windows."""
    _check_count(count)
    cfg = config or LayoutConfig()
    random = create_seeded_random(seed) if seed is not None else None
    jitter_amount = cfg.jitter if random is not None else 0.0
    positions = [
        Position(
            x=round(
                cfg.start_x + index * cfg.cascade_offset_x + get_jitter(jitter_amount, random), 2
            ),
            y=round(
                cfg.start_y + index * cfg.cascade_offset_y + get_jitter(jitter_amount, random), 2
            ),
        )
        for index in range(count)
    ]
    return _flat_result(positions, cfg)


# ---------------------------------------------------------------------------
# Single-node placement
# ---------------------------------------------------------------------------


def place_branch_child(
    parent: Position,
    siblings: Sequence[Position] = (),
    config: LayoutConfig | None = None,
    random: RandomFn | None = None,
) -> Position:
    """Return a position for a new branch of ``parent``.

    The child sits one level to the right.  The first branch is level with
    its parent; later ones go one ``level_spacing_y`` below the lowest
    existing branch, so a new sibling never lands on a surviving one.

    Parameters
    ----------
    parent:
        Position of the source node.
    siblings:
        Positions of the branches ``parent`` already has.
    config:
        Spacing constants.
    random:
        Seeded generator for horizontal jitter; ``None`` disables jitter.
    """
    cfg = config or LayoutConfig()
    jitter = get_jitter(cfg.jitter, random) if random is not None else 0.0
    y = max(s.y for s in siblings) + cfg.level_spacing_y if siblings else parent.y
    return Position(
        x=round(parent.x + cfg.level_spacing_x + jitter, 2),
        y=round(y, 2),
    )


def place_merge_node(
    parent_positions: Sequence[Position],
    config: LayoutConfig | None = None,
) -> Position:
    """Return a position to the right of and between ``parent_positions``.

    Raises
    ------
    ValueError
        If ``parent_positions`` is empty.
    """
    if not parent_positions:
        raise ValueError("A merge node needs at least one parent position.")
    cfg = config or LayoutConfig()
    return Position(
        x=round(max(p.x for p in parent_positions) + cfg.merge_offset_x, 2),
        y=round(sum(p.y for p in parent_positions) / len(parent_positions), 2),
    )
