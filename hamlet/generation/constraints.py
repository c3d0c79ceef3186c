"""
Initial constraints applied before the main WFC loop.

A ConstraintPhase is handed to each pre-solve callback. Callbacks can force
cells to specific tiles (town walls, the crossroads at the center) or strip
possibilities from cells without collapsing them (border rules, distance
windows, category exclusions). Every change is propagated straight away, and
anything that empties a cell raises ConstraintContradictionError so the
solver can report it instead of solving an impossible grid.

Usage:
    solver = WFCSolver(catalog, config, constraints=[
        town_walls(),
        town_center(Position(10, 10), radius=3),
        border_rules(),
    ])
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING

from hamlet.core.errors import ConstraintContradictionError
from hamlet.core.tiles import TileCategory, TileDefinition
from hamlet.core.types import Position, HORIZONTAL_DIRECTIONS
from hamlet.logging_config import log_constraint

if TYPE_CHECKING:
    from .wfc.grid import Grid
    from .wfc.propagation import PropagationEngine

logger = logging.getLogger(__name__)

InitialConstraint = Callable[["ConstraintPhase"], object]
CategoryPredicate = Callable[[TileCategory], bool]
TilePredicate = Callable[[TileDefinition], bool]

# Rotation steps for the perimeter, clockwise from north
SW_CORNER_ROTATION = 3
SE_CORNER_ROTATION = 2
NE_CORNER_ROTATION = 1
NW_CORNER_ROTATION = 0


class ConstraintPhase:
    """
    Pre-solve operations on a fresh grid.

    Removing possibilities never collapses a cell; only force_collapse does.
    """

    def __init__(self, grid: Grid, engine: PropagationEngine, rng: random.Random):
        self.grid = grid
        self.engine = engine
        self.catalog = grid.catalog
        self.rng = rng
        self.forced_collapses = 0

    # =========================================================================
    # Primitive operations
    # =========================================================================

    def force_collapse(self, position: Position, tile_id: str, rotation: int = 0):
        """
        Collapse a cell to a fixed tile and propagate.

        Forcing the same assignment twice is a no-op.

        Raises:
            ConstraintContradictionError: If the position is off the grid, the
                tile is unknown or no longer possible there, the cell already
                holds something else, the rotation clashes with a collapsed
                neighbor, or propagation empties a cell.
        """
        position = Position(*position)
        if not self.grid.in_bounds(position):
            raise ConstraintContradictionError(
                f"Cannot force {tile_id} outside the grid", position=position
            )
        if tile_id not in self.catalog:
            raise ConstraintContradictionError(
                f"Cannot force unknown tile '{tile_id}'", position=position
            )
        if not 0 <= rotation < 4:
            raise ConstraintContradictionError(
                f"Rotation must be 0..3 quarter turns, got {rotation}", position=position
            )

        cell = self.grid.cell(position)
        if cell.collapsed:
            if cell.tile_id == tile_id and cell.rotation == rotation:
                return
            raise ConstraintContradictionError(
                f"Cell {position} already holds {cell.tile_id}@{cell.rotation * 90}, "
                f"cannot force {tile_id}@{rotation * 90}",
                position=position,
            )
        if tile_id not in cell.possibilities:
            raise ConstraintContradictionError(
                f"{tile_id} is no longer possible at {position}", position=position
            )
        if not self.engine.fits_collapsed_neighbors(position, tile_id, rotation):
            raise ConstraintContradictionError(
                f"{tile_id}@{rotation * 90} clashes with a collapsed neighbor of {position}",
                position=position,
            )

        self.grid.collapse(position, tile_id, rotation)
        self.forced_collapses += 1

        if not self.engine.propagate(position):
            raise ConstraintContradictionError(
                f"Forcing {tile_id} at {position} emptied {self.engine.last_contradiction}",
                position=self.engine.last_contradiction,
            )

    def restrict_by_category(
        self,
        predicate: CategoryPredicate,
        positions: Iterable[Position] | None = None,
    ) -> int:
        """
        Remove tiles whose category fails the predicate.

        Applies to every cell unless positions is given. Returns how many
        possibilities were removed.
        """
        return self._remove_where(
            positions,
            lambda position, tile: not predicate(tile.category),
        )

    def restrict_by_distance(
        self,
        center: Position,
        min_distance: float,
        max_distance: float | None,
        predicate: TilePredicate | None = None,
    ) -> int:
        """
        Keep matching tiles only within [min_distance, max_distance] of center.

        Tiles the predicate selects (all tiles by default) are removed from
        cells outside the window. Returns how many possibilities were removed.
        """
        center = Position(*center)

        def outside(position: Position, tile: TileDefinition) -> bool:
            if predicate is not None and not predicate(tile):
                return False
            distance = position.distance_to(center)
            if distance < min_distance:
                return True
            return max_distance is not None and distance > max_distance

        return self._remove_where(None, outside)

    def apply_tile_distance_rules(self, center: Position) -> int:
        """Apply each tile's own min/max distance from the center."""
        center = Position(*center)
        return self._remove_where(
            None,
            lambda position, tile: not tile.allows_distance(position.distance_to(center)),
        )

    def apply_border_rules(self) -> int:
        """Strip tiles that may not sit on the grid edge from border cells."""
        return self._remove_where(
            self.grid.border_positions(),
            lambda position, tile: not tile.can_place_at_border,
        )

    # =========================================================================
    # Town features
    # =========================================================================

    def build_town_walls(
        self,
        straight: str = "wall_straight",
        gate: str = "wall_gate",
        corner: str = "wall_corner",
    ):
        """
        Surround the grid with a town wall.

        Corners first, then a gate at the middle of each edge, then straight
        segments everywhere else. Straight walls run east-west on the south
        and north edges and north-south on the west and east edges.
        """
        width, depth = self.grid.width, self.grid.depth
        if width < 3 or depth < 3:
            raise ConstraintContradictionError(
                f"A {width}x{depth} grid is too small for town walls"
            )

        last_x, last_z = width - 1, depth - 1
        mid_x, mid_z = width // 2, depth // 2

        self.force_collapse(Position(0, 0), corner, SW_CORNER_ROTATION)
        self.force_collapse(Position(last_x, 0), corner, SE_CORNER_ROTATION)
        self.force_collapse(Position(last_x, last_z), corner, NE_CORNER_ROTATION)
        self.force_collapse(Position(0, last_z), corner, NW_CORNER_ROTATION)

        self.force_collapse(Position(mid_x, 0), gate, 0)
        self.force_collapse(Position(mid_x, last_z), gate, 2)
        self.force_collapse(Position(0, mid_z), gate, 1)
        self.force_collapse(Position(last_x, mid_z), gate, 3)

        for x in range(1, last_x):
            for z in (0, last_z):
                if not self.grid.cell(Position(x, z)).collapsed:
                    self.force_collapse(Position(x, z), straight, 0)
        for z in range(1, last_z):
            for x in (0, last_x):
                if not self.grid.cell(Position(x, z)).collapsed:
                    self.force_collapse(Position(x, z), straight, 1)

        log_constraint(logger, "town_walls", details=f"{2 * (width + depth) - 4} segments")

    def build_town_center(
        self,
        center: Position,
        radius: int,
        cross: str | None = None,
        straight: str | None = None,
    ):
        """
        Place a crossroads at the center with straight roads leading out.

        Each arm is `radius` cells long and is clipped at the grid edge.
        Tiles default to the road tiles named like "cross" and "straight",
        falling back to a random road tile.
        """
        center = Position(*center)
        cross = cross or self._find_road_tile("cross")
        straight = straight or self._find_road_tile("straight")

        self.force_collapse(center, cross, 0)
        for direction in HORIZONTAL_DIRECTIONS:
            dx, dz = direction.offset
            for i in range(1, radius + 1):
                position = center + (dx * i, dz * i)
                if not self.grid.in_bounds(position):
                    break
                self.force_collapse(position, straight, int(direction))

        log_constraint(logger, "town_center", details=f"{cross}/{straight} at {center} r={radius}")

    def _find_road_tile(self, keyword: str) -> str:
        roads = self.catalog.by_category(TileCategory.ROAD)
        for tile in roads:
            if keyword in tile.id.lower() or keyword in tile.name.lower():
                return tile.id
        if not roads:
            raise ConstraintContradictionError(f"No road tile available for '{keyword}'")
        fallback = self.rng.choice(roads).id
        logger.warning(f"No road tile matching '{keyword}', using {fallback}")
        return fallback

    # =========================================================================
    # Helpers
    # =========================================================================

    def _remove_where(
        self,
        positions: Iterable[Position] | None,
        should_remove: Callable[[Position, TileDefinition], bool],
    ) -> int:
        """Remove matching tiles from open cells, then propagate the changes."""
        if positions is None:
            positions = list(self.grid.positions())

        removed = 0
        changed: list[Position] = []
        for position in positions:
            position = Position(*position)
            if not self.grid.in_bounds(position):
                raise ConstraintContradictionError(
                    f"Cannot restrict {position} outside the grid", position=position
                )
            cell = self.grid.cell(position)
            if cell.collapsed:
                continue

            doomed = {
                tile_id for tile_id in cell.possibilities
                if should_remove(cell.position, self.catalog[tile_id])
            }
            if not doomed:
                continue

            cell.constrain_to(cell.possibilities - doomed)
            removed += len(doomed)
            if not cell.is_valid():
                raise ConstraintContradictionError(
                    f"No tile left at {cell.position}", position=cell.position
                )
            changed.append(cell.position)

        if changed and not self.engine.propagate_many(changed):
            raise ConstraintContradictionError(
                f"Restriction emptied {self.engine.last_contradiction}",
                position=self.engine.last_contradiction,
            )
        return removed


# =============================================================================
# Constraint factories
# =============================================================================


def force(position: Position, tile_id: str, rotation: int = 0) -> InitialConstraint:
    """Force one cell to a tile."""
    def apply(phase: ConstraintPhase):
        phase.force_collapse(position, tile_id, rotation)
        log_constraint(logger, "force", details=f"{tile_id}@{rotation * 90} at {Position(*position)}")
    return apply


def border_rules() -> InitialConstraint:
    """Respect each tile's can_place_at_border flag."""
    def apply(phase: ConstraintPhase):
        removed = phase.apply_border_rules()
        log_constraint(logger, "border_rules", details=f"removed={removed}")
    return apply


def tile_distance_rules(center: Position) -> InitialConstraint:
    """Respect each tile's distance-from-center window."""
    def apply(phase: ConstraintPhase):
        removed = phase.apply_tile_distance_rules(center)
        log_constraint(logger, "tile_distance_rules", details=f"removed={removed}")
    return apply


def distance_band(
    center: Position,
    min_distance: float,
    max_distance: float | None,
    predicate: TilePredicate | None = None,
) -> InitialConstraint:
    """Keep selected tiles within a ring around center."""
    def apply(phase: ConstraintPhase):
        removed = phase.restrict_by_distance(center, min_distance, max_distance, predicate)
        log_constraint(logger, "distance_band", details=f"removed={removed}")
    return apply


def only_categories(
    *categories: TileCategory,
    positions: Iterable[Position] | None = None,
) -> InitialConstraint:
    """Allow only the given categories (optionally at a subset of positions)."""
    allowed = frozenset(categories)

    def apply(phase: ConstraintPhase):
        removed = phase.restrict_by_category(lambda category: category in allowed, positions)
        log_constraint(logger, "only_categories", details=f"removed={removed}")
    return apply


def exclude_categories(
    *categories: TileCategory,
    positions: Iterable[Position] | None = None,
) -> InitialConstraint:
    """Forbid the given categories (optionally at a subset of positions)."""
    excluded = frozenset(categories)

    def apply(phase: ConstraintPhase):
        removed = phase.restrict_by_category(lambda category: category not in excluded, positions)
        log_constraint(logger, "exclude_categories", details=f"removed={removed}")
    return apply


def town_walls(
    straight: str = "wall_straight",
    gate: str = "wall_gate",
    corner: str = "wall_corner",
) -> InitialConstraint:
    def apply(phase: ConstraintPhase):
        phase.build_town_walls(straight, gate, corner)
    return apply


def town_center(
    center: Position,
    radius: int,
    cross: str | None = None,
    straight: str | None = None,
) -> InitialConstraint:
    def apply(phase: ConstraintPhase):
        phase.build_town_center(center, radius, cross, straight)
    return apply
