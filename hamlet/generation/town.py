"""
Town generation using Wave Function Collapse.

This module provides the main entry point for generating a town. It turns a
TownLayout (walls, a crossroads at the center, placement rules) into initial
constraints, runs the solver, and retries with a fresh seed when a run
fails.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, Field

from hamlet.core.sockets import CompatibilityTable, TOWN_COMPATIBILITY
from hamlet.core.tiles import TileCatalog, TileCategory
from hamlet.core.types import Position

from .constraints import (
    InitialConstraint,
    border_rules,
    exclude_categories,
    tile_distance_rules,
    town_center,
    town_walls,
)
from .tileset import create_town_catalog
from .wfc import FailureKind, SolveResult, SolverConfig, SolverState, WFCSolver

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class TownLayout(BaseModel):
    """
    Large-scale shape of the town, applied before solving.

    Attributes:
        walls: Surround the town with walls and four gates
        town_center: Force a crossroads with straight roads at the center
        center: Center position (None = middle of the grid)
        center_radius: Length of each road arm leaving the center
        use_distance_rules: Honor each tile's distance-from-center window
        use_border_rules: Keep tiles flagged can_place_at_border=False off the edge
    """

    model_config = ConfigDict(frozen=True)

    walls: bool = False
    town_center: bool = True
    center: Position | None = None
    center_radius: int = Field(default=2, ge=0)
    use_distance_rules: bool = True
    use_border_rules: bool = True

    def resolve_center(self, width: int, depth: int) -> Position:
        if self.center is not None:
            return Position(*self.center)
        return Position(width // 2, depth // 2)


def build_constraints(layout: TownLayout, width: int, depth: int) -> list[InitialConstraint]:
    """
    Turn a layout into the ordered list of pre-solve constraints.

    Walls go first so the other rules see the finished perimeter. With walls
    on, wall tiles are kept off the interior; with walls off, they are
    removed everywhere.
    """
    constraints: list[InitialConstraint] = []
    center = layout.resolve_center(width, depth)

    if layout.walls:
        interior = [
            Position(x, z)
            for z in range(1, depth - 1)
            for x in range(1, width - 1)
        ]
        constraints.append(town_walls())
        constraints.append(exclude_categories(TileCategory.WALL, positions=interior))
    else:
        constraints.append(exclude_categories(TileCategory.WALL))

    if layout.town_center:
        radius = layout.center_radius
        if layout.walls:
            # Arms stop one cell short of the wall
            room = min(center.x, center.z, width - 1 - center.x, depth - 1 - center.z) - 1
            radius = max(0, min(radius, room))
        constraints.append(town_center(center, radius))

    if layout.use_distance_rules:
        constraints.append(tile_distance_rules(center))

    if layout.use_border_rules:
        constraints.append(border_rules())

    return constraints


def generate_town(
    config: SolverConfig,
    layout: TownLayout | None = None,
    catalog: TileCatalog | None = None,
    compatibility: CompatibilityTable = TOWN_COMPATIBILITY,
    max_retries: int = 3,
    progress_callback: ProgressCallback | None = None,
) -> SolveResult:
    """
    Generate a town using Wave Function Collapse.

    Args:
        config: Grid size, seed and search flags
        layout: Walls, center and placement rules (None = defaults)
        catalog: Tile catalog (None = bundled town tiles)
        compatibility: Socket rules
        max_retries: Total attempts; attempt N runs with seed + N
        progress_callback: Optional callback(collapsed_cells, total_cells)

    Returns:
        The first successful result, or the last failed one. Failure is
        reported in the result, never raised.
    """
    layout = layout or TownLayout()
    catalog = catalog or create_town_catalog()
    constraints = build_constraints(layout, config.width, config.depth)

    base_seed = config.seed if config.seed is not None else secrets.randbits(32)
    total_cells = config.width * config.depth
    attempts = max(1, max_retries)

    result: SolveResult | None = None
    for attempt in range(attempts):
        attempt_config = config.model_copy(update={"seed": base_seed + attempt})
        solver = WFCSolver(catalog, attempt_config, compatibility, constraints)

        solver.start()
        while solver.state == SolverState.RUNNING:
            solver.step()
            if progress_callback is not None:
                progress_callback(solver.collapsed_count, total_cells)

        result = solver.result()
        if result.succeeded:
            return result

        if result.failure == FailureKind.INITIAL_CONSTRAINTS:
            # Same constraints on a fresh seed fail the same way
            break

        if attempt + 1 < attempts:
            logger.info(f"Town generation failed ({result.message}), restart {attempt + 2}/{attempts}")

    logger.warning(f"Town generation failed after {attempt + 1} attempt(s): {result.message}")
    return result
