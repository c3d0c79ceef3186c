"""Tests for town generation."""

import pytest
from pydantic import ValidationError

from hamlet.core import Position, TileCategory
from hamlet.generation import TownLayout, build_constraints, generate_town
from hamlet.generation.constraints import force
from hamlet.generation.wfc import FailureKind, SolverConfig


class TestTownLayout:
    """Layout settings."""

    def test_defaults(self):
        layout = TownLayout()
        assert not layout.walls
        assert layout.town_center
        assert layout.center_radius == 2

    def test_center_defaults_to_middle(self):
        assert TownLayout().resolve_center(9, 6) == Position(4, 3)

    def test_explicit_center(self):
        assert TownLayout(center=Position(1, 2)).resolve_center(9, 6) == Position(1, 2)

    def test_negative_radius_rejected(self):
        with pytest.raises(ValidationError):
            TownLayout(center_radius=-1)


class TestBuildConstraints:

    def test_default_layout(self):
        assert len(build_constraints(TownLayout(), 10, 10)) == 4

    def test_everything_off(self):
        layout = TownLayout(town_center=False, use_distance_rules=False, use_border_rules=False)
        # Wall tiles are still kept out
        assert len(build_constraints(layout, 10, 10)) == 1

    def test_walls_add_perimeter(self):
        layout = TownLayout(walls=True, town_center=False, use_distance_rules=False, use_border_rules=False)
        assert len(build_constraints(layout, 10, 10)) == 2


class TestGenerateTown:
    """End-to-end generation with the bundled tiles."""

    def test_open_town(self, town_catalog):
        result = generate_town(SolverConfig(width=12, depth=12, seed=5), catalog=town_catalog)

        assert result.succeeded
        assert result.unresolved == []
        assert result.assignment((6, 6)).tile_id == "road_cross"
        categories = {town_catalog[a.tile_id].category for a in result.assignments.values()}
        assert TileCategory.WALL not in categories

    def test_walled_town(self, town_catalog):
        result = generate_town(
            SolverConfig(width=10, depth=10, seed=9),
            layout=TownLayout(walls=True),
            catalog=town_catalog,
        )
        assert result.succeeded

        for (x, z), assignment in result.assignments.items():
            on_border = x in (0, 9) or z in (0, 9)
            is_wall = town_catalog[assignment.tile_id].category == TileCategory.WALL
            assert on_border == is_wall, (x, z)
        assert result.stats.forced_collapses == 36 + 9

    def test_small_walled_town_clamps_center(self, town_catalog):
        result = generate_town(
            SolverConfig(width=5, depth=5, seed=2),
            layout=TownLayout(walls=True, center_radius=5),
            catalog=town_catalog,
        )
        assert result.succeeded
        assert result.assignment((2, 2)).tile_id == "road_cross"

    def test_unique_buildings_respect_rules(self, town_catalog):
        result = generate_town(SolverConfig(width=14, depth=14, seed=17), catalog=town_catalog)
        assert result.succeeded

        center = Position(7, 7)
        for position, assignment in result.assignments.items():
            tile = town_catalog[assignment.tile_id]
            if position.x in (0, 13) or position.z in (0, 13):
                assert tile.can_place_at_border, position
            assert tile.allows_distance(position.distance_to(center)), position

    def test_defaults_to_bundled_catalog(self):
        result = generate_town(SolverConfig(width=6, depth=6, seed=1))
        assert result.succeeded

    def test_reproducible(self, town_catalog):
        config = SolverConfig(width=8, depth=8, seed=33)
        first = generate_town(config, catalog=town_catalog)
        second = generate_town(config, catalog=town_catalog)
        assert first.assignments == second.assignments
        assert first.seed == second.seed == 33

    def test_progress_callback(self, town_catalog):
        calls = []
        generate_town(
            SolverConfig(width=6, depth=6, seed=4),
            catalog=town_catalog,
            progress_callback=lambda current, total: calls.append((current, total)),
        )
        assert calls
        assert all(total == 36 for _, total in calls)
        assert calls[-1][0] == 36

    def test_walls_on_tiny_grid_fail_once(self, town_catalog):
        result = generate_town(
            SolverConfig(width=2, depth=2, seed=1),
            layout=TownLayout(walls=True),
            catalog=town_catalog,
            max_retries=5,
        )
        assert not result.succeeded
        assert result.failure == FailureKind.INITIAL_CONSTRAINTS
        # Not retried with a new seed
        assert result.seed == 1

    def test_retries_use_next_seed(self, dead_end_catalog, dead_end_table):
        """A failed attempt is retried with seed + 1."""
        layout = TownLayout(town_center=False, use_distance_rules=False, use_border_rules=False)
        for seed in range(100):
            first = generate_town(
                SolverConfig(width=3, depth=1, seed=seed, use_backtracking=False),
                layout=layout,
                catalog=dead_end_catalog,
                compatibility=dead_end_table,
                max_retries=1,
            )
            if first.succeeded:
                continue

            retried = generate_town(
                SolverConfig(width=3, depth=1, seed=seed, use_backtracking=False),
                layout=layout,
                catalog=dead_end_catalog,
                compatibility=dead_end_table,
                max_retries=50,
            )
            assert retried.succeeded
            assert retried.seed > seed
            return
        pytest.fail("Expected a failing first attempt")


@pytest.mark.slow
class TestLargeTowns:
    """Bigger grids (run with --run-slow)."""

    @pytest.mark.parametrize("seed", [1, 2, 3])
    def test_large_walled_town(self, town_catalog, seed):
        result = generate_town(
            SolverConfig(width=40, depth=40, seed=seed),
            layout=TownLayout(walls=True, center_radius=6),
            catalog=town_catalog,
        )
        assert result.succeeded
