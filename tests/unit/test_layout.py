"""Unit tests for conversation_loom.layout.tree."""
from __future__ import annotations

import pytest

from conversation_loom.config import LayoutConfig
from conversation_loom.graph.models import Position
from conversation_loom.layout.tree import (
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


def _assert_levels_separated(result: LayoutResult) -> None:
    levels: dict[tuple[int, int], list[float]] = {}
    for track, depth, position in zip(result.tracks, result.depths, result.positions):
        levels.setdefault((track, depth), []).append(position.y)
    for ys in levels.values():
        ys.sort()
        assert all(b - a >= 400 for a, b in zip(ys, ys[1:]))


# ---------------------------------------------------------------------------
# Seeded random
# ---------------------------------------------------------------------------


class TestCreateSeededRandom:
    def test_first_value_follows_lcg(self) -> None:
        random = create_seeded_random(1)
        assert random() == pytest.approx(1103527590 / 0x7FFFFFFF)

    def test_same_seed_same_sequence(self) -> None:
        a = create_seeded_random(42)
        b = create_seeded_random(42)
        assert [a() for _ in range(10)] == [b() for _ in range(10)]

    def test_values_in_unit_interval(self) -> None:
        random = create_seeded_random(7)
        assert all(0.0 <= random() <= 1.0 for _ in range(200))

    def test_jitter_within_amount(self) -> None:
        random = create_seeded_random(3)
        assert all(abs(get_jitter(20, random)) <= 20 for _ in range(200))


# ---------------------------------------------------------------------------
# generate_tree_layout
# ---------------------------------------------------------------------------


class TestGenerateTreeLayout:
    def test_single_root_at_origin(self) -> None:
        result = generate_tree_layout([], 1)
        assert result.positions == [Position(x=100, y=100)]
        assert result.depths == [0]

    def test_empty_graph(self) -> None:
        result = generate_tree_layout([], 0)
        assert result.positions == []
        assert result.bounds.width == 0

    def test_chain_moves_right_by_depth(self) -> None:
        result = generate_tree_layout([(0, 1), (1, 2)], 3)
        assert [p.x for p in result.positions] == [100, 660, 1220]
        assert result.depths == [0, 1, 2]

    def test_siblings_separated_and_parent_centred(self) -> None:
        result = generate_tree_layout([(0, 1), (0, 2)], 3)
        root, first, second = result.positions
        assert first.y == 100
        assert second.y == 500
        assert root.y == 300

    def test_multiple_roots_stack(self) -> None:
        result = generate_tree_layout([], 2)
        assert result.positions[1].y - result.positions[0].y == 400

    def test_merge_node_right_of_and_between_parents(self) -> None:
        result = generate_tree_layout([(0, 1), (0, 2)], 4, merge_edges=[(1, 3), (2, 3)])
        merge = result.positions[3]
        assert merge.x == 660 + 300
        assert merge.y == (100 + 500) / 2
        assert result.depths[3] == 0
        assert result.tracks[3] != result.tracks[0]

    def test_branch_off_merge_node_placed_to_its_right(self) -> None:
        result = generate_tree_layout(
            [(0, 1), (0, 2), (3, 4)], 5, merge_edges=[(1, 3), (2, 3)]
        )
        assert result.positions[4].x == 960 + 560
        assert result.depths[4] == 1
        assert result.tracks[4] == result.tracks[3]

    def test_same_depth_nodes_never_overlap(self) -> None:
        edges = [(0, 1), (0, 2), (0, 3), (1, 4), (1, 5), (2, 6), (3, 7), (3, 8)]
        _assert_levels_separated(generate_tree_layout(edges, 9, seed=11))

    def test_merge_does_not_deepen_neighbours(self) -> None:
        result = generate_tree_layout([(0, 1), (0, 2), (1, 4)], 5, merge_edges=[(1, 3), (2, 3)])
        assert result.depths == [0, 1, 1, 0, 2]
        assert result.positions[4] == Position(x=1220, y=100)
        assert result.positions[3] == Position(x=960, y=300)
        _assert_levels_separated(result)

    def test_nodes_under_merges_never_overlap(self) -> None:
        edges = [(0, 1), (0, 2), (1, 4), (3, 5), (3, 6), (5, 7)]
        merges = [(1, 3), (2, 3), (4, 8), (6, 8)]
        result = generate_tree_layout(edges, 9, seed=4, merge_edges=merges)
        assert len(set(result.tracks)) == 3
        _assert_levels_separated(result)

    def test_deterministic_for_seed(self) -> None:
        edges = [(0, 1), (0, 2), (1, 3)]
        assert generate_tree_layout(edges, 4, seed=5) == generate_tree_layout(edges, 4, seed=5)

    def test_seeded_jitter_is_bounded_and_horizontal(self) -> None:
        edges = [(0, 1), (0, 2), (1, 3)]
        plain = generate_tree_layout(edges, 4)
        jittered = generate_tree_layout(edges, 4, seed=99)
        for a, b in zip(plain.positions, jittered.positions):
            assert a.y == b.y
            assert abs(a.x - b.x) <= 20

    def test_custom_spacing(self) -> None:
        config = LayoutConfig(start_x=0, start_y=0, level_spacing_x=100, level_spacing_y=50)
        result = generate_tree_layout([(0, 1), (0, 2)], 3, config=config)
        assert result.positions[1] == Position(x=100, y=0)
        assert result.positions[2] == Position(x=100, y=50)

    def test_bounds_include_card_size(self) -> None:
        result = generate_tree_layout([(0, 1)], 2)
        assert result.bounds.min_x == 100
        assert result.bounds.max_x == 660 + 280
        assert result.bounds.height == 120

    def test_cycle_rejected(self) -> None:
        with pytest.raises(ValueError, match="cycle"):
            generate_tree_layout([(0, 1), (1, 0)], 2)

    @pytest.mark.parametrize("edge", [(0, 5), (-1, 0), (1, 1)])
    def test_bad_edges_rejected(self, edge: tuple[int, int]) -> None:
        with pytest.raises(ValueError):
            generate_tree_layout([edge], 2)

    def test_negative_count_rejected(self) -> None:
        with pytest.raises(ValueError):
            generate_tree_layout([], -1)


# ---------------------------------------------------------------------------
# Flat arrangements
# ---------------------------------------------------------------------------

_NO_JITTER = LayoutConfig(jitter=0)


class TestGridLayout:
    def test_one_position_per_card(self) -> None:
        assert len(generate_grid_layout(10, seed=1).positions) == 10

    def test_rows_of_columns(self) -> None:
        result = generate_grid_layout(8, columns=4, seed=1, config=_NO_JITTER)
        assert len({p.y for p in result.positions}) == 2
        assert result.positions[4] == Position(x=100, y=500)

    def test_pitch_is_card_plus_gap(self) -> None:
        result = generate_grid_layout(2, config=_NO_JITTER)
        assert result.positions[1].x - result.positions[0].x == 280 + 280

    def test_columns_default_from_config(self) -> None:
        result = generate_grid_layout(6, config=LayoutConfig(jitter=0, columns=3))
        assert result.positions[3] == Position(x=100, y=500)

    def test_deterministic_for_seed(self) -> None:
        assert generate_grid_layout(5, seed=42) == generate_grid_layout(5, seed=42)

    def test_different_seeds_differ(self) -> None:
        first = generate_grid_layout(5, seed=1).positions
        assert first != generate_grid_layout(5, seed=2).positions

    def test_jitter_moves_both_axes(self) -> None:
        plain = generate_grid_layout(6)
        jittered = generate_grid_layout(6, seed=9)
        assert any(a.x != b.x for a, b in zip(plain.positions, jittered.positions))
        assert any(a.y != b.y for a, b in zip(plain.positions, jittered.positions))
        for a, b in zip(plain.positions, jittered.positions):
            assert abs(a.x - b.x) <= 20
            assert abs(a.y - b.y) <= 20

    def test_bounds(self) -> None:
        bounds = generate_grid_layout(4, seed=1, config=_NO_JITTER).bounds
        assert (bounds.min_x, bounds.min_y) == (100, 100)
        assert bounds.max_x == 100 + 3 * 560 + 280
        assert bounds.max_y == 100 + 120

    def test_empty(self) -> None:
        assert generate_grid_layout(0).positions == []

    def test_bad_arguments_rejected(self) -> None:
        with pytest.raises(ValueError):
            generate_grid_layout(-1)
        with pytest.raises(ValueError):
            generate_grid_layout(3, columns=0)


class TestLineLayouts:
    def test_horizontal_is_one_row(self) -> None:
        result = generate_horizontal_layout(5, seed=1, config=_NO_JITTER)
        xs = [p.x for p in result.positions]
        assert len({p.y for p in result.positions}) == 1
        assert xs == sorted(xs) and len(set(xs)) == 5

    def test_vertical_is_one_column(self) -> None:
        result = generate_vertical_layout(5, seed=1, config=_NO_JITTER)
        ys = [p.y for p in result.positions]
        assert len({p.x for p in result.positions}) == 1
        assert ys == sorted(ys) and len(set(ys)) == 5

    def test_cascade_steps_down_and_right(self) -> None:
        result = generate_cascade_layout(5, seed=1, config=_NO_JITTER)
        assert result.positions[1] == Position(x=160, y=140)
        xs = [p.x for p in result.positions]
        ys = [p.y for p in result.positions]
        assert xs == sorted(xs) and ys == sorted(ys)

    def test_flat_layouts_have_no_depth(self) -> None:
        result = generate_cascade_layout(3)
        assert result.depths == [0, 0, 0]
        assert result.tracks == [0, 0, 0]

    def test_horizontal_empty(self) -> None:
        assert generate_horizontal_layout(0).positions == []


# ---------------------------------------------------------------------------
# Single-node placement
# ---------------------------------------------------------------------------


class TestPlacement:
    def test_first_child_beside_parent(self) -> None:
        assert place_branch_child(Position(x=100, y=100), []) == Position(x=660, y=100)

    def test_later_children_go_below_lowest_sibling(self) -> None:
        siblings = [Position(x=660, y=100), Position(x=660, y=500)]
        assert place_branch_child(Position(x=100, y=100), siblings) == Position(x=660, y=900)

    def test_gap_left_by_deleted_sibling_not_reused(self) -> None:
        siblings = [Position(x=660, y=500)]
        assert place_branch_child(Position(x=100, y=100), siblings) == Position(x=660, y=900)

    def test_child_jitter_bounded(self) -> None:
        position = place_branch_child(Position(x=0, y=0), random=create_seeded_random(4))
        assert abs(position.x - 560) <= 20
        assert position.y == 0

    def test_merge_position(self) -> None:
        parents = [Position(x=660, y=100), Position(x=1220, y=500)]
        assert place_merge_node(parents) == Position(x=1520, y=300)

    def test_merge_needs_parents(self) -> None:
        with pytest.raises(ValueError):
            place_merge_node([])


@pytest.mark.parametrize("seed", [1, 7, 2024])
def test_random_trees_never_overlap_within_a_depth(seed: int) -> None:
    random = create_seeded_random(seed)
    count = 50
    edges = [(int(random() * child), child) for child in range(1, count)]
    result = generate_tree_layout(edges, count, seed=seed)
    assert result == generate_tree_layout(edges, count, seed=seed)
    _assert_levels_separated(result)
