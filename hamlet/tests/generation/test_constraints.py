"""Tests for the pre-solve constraint phase."""

import random

import pytest

from hamlet.core import (
    ConstraintContradictionError,
    Position,
    SocketType,
    TileCatalog,
    TileCategory,
    TOWN_COMPATIBILITY,
)
from hamlet.generation.constraints import (
    ConstraintPhase,
    border_rules,
    distance_band,
    exclude_categories,
    force,
    only_categories,
    tile_distance_rules,
    town_center,
    town_walls,
)
from hamlet.generation.wfc import Grid, PropagationEngine

N = SocketType.NO_ROAD


def make_phase(catalog, width, depth, seed=0) -> ConstraintPhase:
    rng = random.Random(seed)
    grid = Grid(width, depth, catalog, rng)
    engine = PropagationEngine(grid, TOWN_COMPATIBILITY)
    return ConstraintPhase(grid, engine, rng)


def categories_at(phase, position):
    catalog = phase.catalog
    return {catalog[t].category for t in phase.grid.cell(position).possibilities}


class TestForceCollapse:
    """Fixing single cells."""

    def test_force_propagates(self, town_catalog):
        phase = make_phase(town_catalog, 5, 5)
        phase.force_collapse(Position(2, 2), "road_cross")

        north = phase.grid.cell(Position(2, 3))
        assert "garden" not in north.possibilities
        assert "road_straight" in north.possibilities
        assert phase.forced_collapses == 1

    def test_rotation_must_fit_collapsed_neighbor(self, town_catalog):
        phase = make_phase(town_catalog, 5, 5)
        phase.force_collapse(Position(2, 2), "road_cross")
        with pytest.raises(ConstraintContradictionError, match="clashes"):
            phase.force_collapse(Position(2, 3), "road_straight", 1)

    def test_same_assignment_twice_is_a_no_op(self, town_catalog):
        phase = make_phase(town_catalog, 3, 3)
        phase.force_collapse(Position(1, 1), "plaza")
        phase.force_collapse(Position(1, 1), "plaza")
        assert phase.forced_collapses == 1

    def test_different_assignment_on_collapsed_cell(self, town_catalog):
        phase = make_phase(town_catalog, 3, 3)
        phase.force_collapse(Position(1, 1), "plaza")
        with pytest.raises(ConstraintContradictionError, match="already holds"):
            phase.force_collapse(Position(1, 1), "well")

    @pytest.mark.parametrize("position,tile_id,rotation", [
        (Position(5, 0), "plaza", 0),
        (Position(-1, 0), "plaza", 0),
        (Position(0, 0), "castle", 0),
        (Position(0, 0), "road_corner", 4),
    ])
    def test_rejects_bad_requests(self, town_catalog, position, tile_id, rotation):
        phase = make_phase(town_catalog, 3, 3)
        with pytest.raises(ConstraintContradictionError):
            phase.force_collapse(position, tile_id, rotation)

    def test_tile_no_longer_possible(self, town_catalog):
        phase = make_phase(town_catalog, 3, 1)
        phase.force_collapse(Position(0, 0), "road_cross")
        with pytest.raises(ConstraintContradictionError, match="no longer possible"):
            phase.force_collapse(Position(1, 0), "garden")

    def test_contradiction_carries_position(self, tile_factory):
        catalog = TileCatalog([
            tile_factory("stub", SocketType.EMPTY, SocketType.ROAD, SocketType.EMPTY, SocketType.EMPTY,
                         allow_rotation=False),
            tile_factory("grass", SocketType.EMPTY, SocketType.EMPTY, SocketType.EMPTY, SocketType.EMPTY,
                         allow_rotation=False),
        ])
        phase = make_phase(catalog, 2, 1)
        with pytest.raises(ConstraintContradictionError) as exc_info:
            phase.force_collapse(Position(0, 0), "stub")
        assert exc_info.value.position == Position(1, 0)


class TestRestrictions:
    """Removing possibilities without collapsing."""

    def test_restrict_by_category(self, town_catalog):
        phase = make_phase(town_catalog, 4, 4)
        removed = phase.restrict_by_category(lambda c: c != TileCategory.WALL)

        assert removed == 16 * 3
        for cell in phase.grid.all_cells():
            assert not cell.collapsed
            assert TileCategory.WALL not in categories_at(phase, cell.position)

    def test_restrict_at_positions(self, town_catalog):
        phase = make_phase(town_catalog, 3, 3)
        phase.restrict_by_category(lambda c: c == TileCategory.OPEN_SPACE, [Position(0, 0)])

        assert categories_at(phase, Position(0, 0)) == {TileCategory.OPEN_SPACE}
        assert TileCategory.ROAD in categories_at(phase, Position(2, 2))

    def test_emptying_a_cell_raises(self, town_catalog):
        phase = make_phase(town_catalog, 3, 3)
        with pytest.raises(ConstraintContradictionError) as exc_info:
            phase.restrict_by_category(lambda c: False, [Position(1, 1)])
        assert exc_info.value.position == Position(1, 1)

    def test_position_off_the_grid_raises(self, town_catalog):
        phase = make_phase(town_catalog, 3, 3)
        with pytest.raises(ConstraintContradictionError, match="outside the grid") as exc_info:
            phase.restrict_by_category(lambda c: True, [Position(5, 5)])
        assert exc_info.value.position == Position(5, 5)

    def test_border_rules(self, town_catalog):
        phase = make_phase(town_catalog, 5, 5)
        phase.apply_border_rules()

        for position in phase.grid.border_positions():
            cell = phase.grid.cell(position)
            assert "town_hall" not in cell.possibilities
            assert "well" not in cell.possibilities
        assert "town_hall" in phase.grid.cell(Position(2, 2)).possibilities

    def test_tile_distance_rules(self, town_catalog):
        phase = make_phase(town_catalog, 12, 12)
        phase.apply_tile_distance_rules(Position(0, 0))

        # town_hall allows at most 4 cells from the center
        assert "town_hall" in phase.grid.cell(Position(3, 0)).possibilities
        assert "town_hall" not in phase.grid.cell(Position(4, 4)).possibilities
        # shop allows at most 8
        assert "shop" in phase.grid.cell(Position(8, 0)).possibilities
        assert "shop" not in phase.grid.cell(Position(11, 11)).possibilities

    def test_restrict_by_distance_with_predicate(self, town_catalog):
        phase = make_phase(town_catalog, 9, 9)
        phase.restrict_by_distance(
            Position(4, 4), 0.0, 2.0,
            predicate=lambda tile: tile.category == TileCategory.SPECIAL,
        )
        assert "well" in phase.grid.cell(Position(4, 5)).possibilities
        assert "well" not in phase.grid.cell(Position(0, 0)).possibilities
        assert "garden" in phase.grid.cell(Position(0, 0)).possibilities

    def test_minimum_distance(self, town_catalog):
        phase = make_phase(town_catalog, 9, 9)
        phase.restrict_by_distance(
            Position(4, 4), 3.0, None,
            predicate=lambda tile: tile.id == "garden",
        )
        assert "garden" not in phase.grid.cell(Position(4, 4)).possibilities
        assert "garden" in phase.grid.cell(Position(0, 0)).possibilities


class TestTownWalls:
    """Perimeter walls with four gates."""

    def test_perimeter_is_forced(self, town_catalog):
        phase = make_phase(town_catalog, 7, 7)
        phase.build_town_walls()

        assert phase.forced_collapses == 24
        for position in phase.grid.border_positions():
            cell = phase.grid.cell(position)
            assert cell.collapsed
            assert town_catalog[cell.tile_id].category == TileCategory.WALL
        assert not phase.grid.cell(Position(3, 3)).collapsed

    def test_corners_and_gates(self, town_catalog):
        phase = make_phase(town_catalog, 7, 5)
        phase.build_town_walls()
        grid = phase.grid

        for corner in (Position(0, 0), Position(6, 0), Position(6, 4), Position(0, 4)):
            assert grid.cell(corner).tile_id == "wall_corner"
        for gate in (Position(3, 0), Position(3, 4), Position(0, 2), Position(6, 2)):
            assert grid.cell(gate).tile_id == "wall_gate"
        assert grid.cell(Position(1, 0)).tile_id == "wall_straight"
        assert grid.cell(Position(1, 0)).rotation == 0
        assert grid.cell(Position(0, 1)).rotation == 1

    def test_gates_face_inward(self, town_catalog):
        phase = make_phase(town_catalog, 7, 7)
        phase.build_town_walls()
        catalog = phase.catalog

        inward = {
            Position(3, 0): 0,   # south edge, gate opens north
            Position(3, 6): 2,
            Position(0, 3): 1,
            Position(6, 3): 3,
        }
        for position, direction in inward.items():
            cell = phase.grid.cell(position)
            sockets = catalog.rotated_sockets(cell.tile_id, cell.rotation)
            assert sockets[direction] == SocketType.TOWN_GATE

    def test_inner_ring_can_meet_the_gate(self, town_catalog):
        """The cell inside a gate must be able to show a road."""
        phase = make_phase(town_catalog, 7, 7)
        phase.build_town_walls()
        inside = phase.grid.cell(Position(3, 1))
        assert "garden" not in inside.possibilities
        assert "road_straight" in inside.possibilities

    def test_too_small(self, town_catalog):
        phase = make_phase(town_catalog, 2, 2)
        with pytest.raises(ConstraintContradictionError, match="too small"):
            phase.build_town_walls()


class TestTownCenter:
    """Crossroads with straight arms."""

    def test_cross_and_arms(self, town_catalog):
        phase = make_phase(town_catalog, 9, 9)
        phase.build_town_center(Position(4, 4), 2)

        grid = phase.grid
        assert phase.forced_collapses == 9
        assert grid.cell(Position(4, 4)).tile_id == "road_cross"
        for position in (Position(4, 6), Position(6, 4), Position(4, 2), Position(2, 4)):
            assert grid.cell(position).tile_id == "road_straight"
        assert not grid.cell(Position(4, 7)).collapsed

    def test_arms_clipped_at_edge(self, town_catalog):
        phase = make_phase(town_catalog, 5, 5)
        phase.build_town_center(Position(0, 0), 3)
        assert phase.forced_collapses == 7

    def test_radius_zero(self, town_catalog):
        phase = make_phase(town_catalog, 5, 5)
        phase.build_town_center(Position(2, 2), 0)
        assert phase.forced_collapses == 1

    def test_arms_carry_road_outward(self, town_catalog):
        phase = make_phase(town_catalog, 7, 7)
        phase.build_town_center(Position(3, 3), 1)
        east_arm = phase.grid.cell(Position(4, 3))
        sockets = town_catalog.rotated_sockets(east_arm.tile_id, east_arm.rotation)
        assert sockets[1] == SocketType.ROAD
        assert sockets[3] == SocketType.ROAD

    def test_fallback_road_tile(self, tile_factory):
        """Without a tile named like 'cross', some road tile is used."""
        catalog = TileCatalog([
            tile_factory("paving", SocketType.ROAD, SocketType.ROAD, SocketType.ROAD, SocketType.ROAD,
                         allow_rotation=False, category=TileCategory.ROAD),
            tile_factory("lawn", N, N, N, N, allow_rotation=False, category=TileCategory.OPEN_SPACE),
        ])
        phase = make_phase(catalog, 3, 3)
        phase.build_town_center(Position(1, 1), 1)
        assert phase.grid.cell(Position(1, 1)).tile_id == "paving"

    def test_no_road_tiles(self, open_catalog):
        phase = make_phase(open_catalog, 3, 3)
        with pytest.raises(ConstraintContradictionError, match="No road tile"):
            phase.build_town_center(Position(1, 1), 1)


class TestConstraintFactories:
    """The callables handed to the solver."""

    def test_force(self, town_catalog):
        phase = make_phase(town_catalog, 3, 3)
        force((1, 1), "well")(phase)
        assert phase.grid.cell(Position(1, 1)).tile_id == "well"

    def test_only_and_exclude(self, town_catalog):
        phase = make_phase(town_catalog, 3, 3)
        exclude_categories(TileCategory.WALL)(phase)
        only_categories(TileCategory.ROAD, TileCategory.OPEN_SPACE, positions=[Position(0, 0)])(phase)

        assert categories_at(phase, Position(0, 0)) <= {TileCategory.ROAD, TileCategory.OPEN_SPACE}
        assert TileCategory.WALL not in categories_at(phase, Position(2, 2))

    def test_rule_factories(self, town_catalog):
        phase = make_phase(town_catalog, 11, 11)
        border_rules()(phase)
        tile_distance_rules(Position(5, 5))(phase)
        distance_band(Position(5, 5), 0.0, 3.0, lambda tile: tile.id == "well")(phase)

        assert "well" not in phase.grid.cell(Position(1, 1)).possibilities
        assert "well" in phase.grid.cell(Position(5, 6)).possibilities

    def test_layout_factories(self, town_catalog):
        phase = make_phase(town_catalog, 9, 9)
        town_walls()(phase)
        town_center(Position(4, 4), 2)(phase)
        assert phase.forced_collapses == 32 + 9
