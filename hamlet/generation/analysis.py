"""
Post-generation reports on a solved town.

These only read a SolveResult; nothing here changes the grid.
"""

from __future__ import annotations

import logging
from collections import deque

from pydantic import BaseModel, ConfigDict

from hamlet.core.tiles import BUILDING_CATEGORIES, TileCatalog, TileCategory
from hamlet.core.types import Position, HORIZONTAL_DIRECTIONS

from .wfc.result import SolveResult

logger = logging.getLogger(__name__)


class RoadNetworkReport(BaseModel):
    """
    How well the road cells hang together.

    Attributes:
        total: Number of road cells
        connected: Size of the largest group of orthogonally adjacent roads
        components: Number of separate road groups
        is_connected: True when all roads form at most one group
    """

    model_config = ConfigDict(frozen=True)

    total: int
    connected: int
    components: int

    @property
    def is_connected(self) -> bool:
        return self.components <= 1

    @property
    def isolated(self) -> int:
        """Road cells outside the largest group."""
        return self.total - self.connected


def road_positions(result: SolveResult, catalog: TileCatalog) -> set[Position]:
    return {
        position
        for position, assignment in result.assignments.items()
        if assignment is not None and catalog[assignment.tile_id].category == TileCategory.ROAD
    }


def road_connectivity(result: SolveResult, catalog: TileCatalog) -> RoadNetworkReport:
    """Flood fill over road cells and report the groups found."""
    roads = road_positions(result, catalog)
    if not roads:
        logger.warning("No roads found in the generated town")
        return RoadNetworkReport(total=0, connected=0, components=0)

    visited: set[Position] = set()
    sizes: list[int] = []

    # Row-by-row start order keeps the walk deterministic
    for start in sorted(roads, key=lambda p: (p.z, p.x)):
        if start in visited:
            continue

        size = 0
        queue = deque([start])
        visited.add(start)
        while queue:
            current = queue.popleft()
            size += 1
            for direction in HORIZONTAL_DIRECTIONS:
                neighbor = current + direction
                if neighbor in roads and neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)
        sizes.append(size)

    report = RoadNetworkReport(total=len(roads), connected=max(sizes), components=len(sizes))
    if not report.is_connected:
        logger.info(
            f"Road network split into {report.components} groups, "
            f"{report.isolated}/{report.total} cells outside the largest"
        )
    return report


def category_counts(result: SolveResult, catalog: TileCatalog) -> dict[TileCategory, int]:
    """Placed tiles per category (every category present, zeros included)."""
    counts = {category: 0 for category in TileCategory}
    for assignment in result.assignments.values():
        if assignment is not None:
            counts[catalog[assignment.tile_id].category] += 1
    return counts


def town_summary(result: SolveResult, catalog: TileCatalog) -> dict[str, int]:
    """Coarse counts for display: roads, buildings, open ground, walls."""
    counts = category_counts(result, catalog)
    return {
        "roads": counts[TileCategory.ROAD],
        "buildings": sum(counts[c] for c in BUILDING_CATEGORIES),
        "open": counts[TileCategory.OPEN_SPACE] + counts[TileCategory.SPECIAL],
        "walls": counts[TileCategory.WALL],
        "unresolved": len(result.unresolved),
    }
