"""
Constraint propagation for Wave Function Collapse.

When a cell changes, every neighbor may lose possibilities. Those neighbors
may in turn constrain their own neighbors, and so on. The engine walks this
wavefront breadth-first until the grid is stable or some cell is emptied.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable

from hamlet.core.sockets import CompatibilityTable, SocketType
from hamlet.core.types import Direction, Position, HORIZONTAL_DIRECTIONS

from .grid import Cell, Grid

logger = logging.getLogger(__name__)

CellNarrowedCallback = Callable[[Position], object]


class PropagationEngine:
    """
    Breadth-first arc-consistency over a Grid.

    A neighbor keeps a tile only if some rotation of it presents a socket
    that the source cell accepts, where "accepts" ranges over every
    (tile, rotation) the source could still be. A collapsed source counts
    only its committed rotation.

    The grid edge is an open boundary: nothing outside constrains anything.
    """

    def __init__(self, grid: Grid, compatibility: CompatibilityTable):
        self.grid = grid
        self.catalog = grid.catalog
        self.compatibility = compatibility
        self._observers: list[CellNarrowedCallback] = []

        # Position of the cell emptied by the last failed propagation
        self.last_contradiction: Position | None = None

        # (tile_id, direction) -> sockets that face could show over the
        # tile's allowed rotations
        self._facing: dict[tuple[str, Direction], frozenset[SocketType]] = {}
        for tile in self.catalog:
            for direction in HORIZONTAL_DIRECTIONS:
                self._facing[(tile.id, direction)] = frozenset(
                    self.catalog.rotated_socket(tile.id, direction, rotation)
                    for rotation in tile.rotations()
                )

    def on_cell_narrowed(self, callback: CellNarrowedCallback):
        """
        Register an observer called with each position propagation narrows.

        Observers are informational; their return value is ignored and they
        must not touch the grid.
        """
        self._observers.append(callback)

    def propagate(self, start: Position) -> bool:
        """
        Propagate constraints outward from one changed cell.

        Returns True on success, False on contradiction.
        """
        return self.propagate_many([start])

    def propagate_many(self, starts: Iterable[Position]) -> bool:
        """
        Propagate from several changed cells at once.

        All start cells go into the initial queue, so their wavefronts merge
        instead of being walked one after another.

        Returns True on success, False on contradiction.
        """
        self.last_contradiction = None

        queue: deque[Position] = deque()
        in_queue: set[Position] = set()
        for position in starts:
            if position not in in_queue:
                queue.append(position)
                in_queue.add(position)

        while queue:
            position = queue.popleft()
            in_queue.discard(position)
            source = self.grid.cell(position)

            for direction, neighbor_pos in self.grid.neighbors(position):
                neighbor = self.grid.cell(neighbor_pos)
                if neighbor.collapsed:
                    continue

                allowed = self._allowed_neighbors(source, neighbor, direction)
                if not neighbor.constrain_to(allowed):
                    continue

                if not neighbor.is_valid():
                    self.last_contradiction = neighbor_pos
                    logger.debug(f"Propagation emptied {neighbor_pos} (from {position})")
                    return False

                if neighbor_pos not in in_queue:
                    queue.append(neighbor_pos)
                    in_queue.add(neighbor_pos)
                    self._notify(neighbor_pos)

        return True

    def fits_collapsed_neighbors(self, position: Position, tile_id: str, rotation: int) -> bool:
        """
        Check a placement against every already-collapsed neighbor.

        Open neighbors impose nothing here; propagation deals with them.
        """
        for direction, neighbor_pos in self.grid.neighbors(position):
            neighbor = self.grid.cell(neighbor_pos)
            if not neighbor.collapsed:
                continue
            ours = self.catalog.rotated_socket(tile_id, direction, rotation)
            theirs = self.catalog.rotated_socket(neighbor.tile_id, direction.opposite, neighbor.rotation)
            if not self.compatibility.compatible(ours, theirs):
                return False
        return True

    def accepted_sockets(self, cell: Cell, direction: Direction) -> set[SocketType]:
        """Every socket type the cell's face in `direction` could accept."""
        if cell.collapsed:
            source_sockets = {
                self.catalog.rotated_socket(cell.tile_id, direction, cell.rotation)
            }
        else:
            source_sockets = set()
            for tile_id in cell.possibilities:
                source_sockets |= self._facing[(tile_id, direction)]

        accepted: set[SocketType] = set()
        for socket in source_sockets:
            accepted |= self.compatibility.accepted_by(socket)
        return accepted

    def _allowed_neighbors(self, source: Cell, neighbor: Cell, direction: Direction) -> set[str]:
        """Subset of the neighbor's tiles that can sit against the source."""
        accepted = self.accepted_sockets(source, direction)
        facing_back = direction.opposite
        return {
            tile_id for tile_id in neighbor.possibilities
            if not accepted.isdisjoint(self._facing[(tile_id, facing_back)])
        }

    def _notify(self, position: Position):
        for callback in self._observers:
            callback(position)
