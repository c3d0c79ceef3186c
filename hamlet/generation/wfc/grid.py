"""
Grid representation for Wave Function Collapse.

The Grid is the "wave function" - a 2D array of cells where each cell
is in superposition (multiple possible tiles) until it collapses to a
single tile at a single rotation.

This is where we track the mutable state of one solve: the cells, the
per-tile instance counts, and the order in which cells were committed.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Iterator

from hamlet.core.tiles import TileCatalog
from hamlet.core.types import Direction, Position, HORIZONTAL_DIRECTIONS

# Entropy of a cell with no possibilities left
ENTROPY_CONTRADICTION = math.inf

# Upper bound of the random tie-breaking noise added to entropy
ENTROPY_JITTER = 0.001

# Relative tolerance when deciding two entropies are tied
ENTROPY_TIE_TOLERANCE = 1e-6


@dataclass(frozen=True)
class CellState:
    """Immutable copy of everything a Cell knows."""

    position: Position
    possibilities: frozenset[str]
    collapsed: bool
    tile_id: str | None
    rotation: int
    entropy: float


@dataclass(eq=False)
class Cell:
    """
    A single cell in the WFC grid.

    Before collapse: holds a set of possible tile IDs
    After collapse: holds exactly one tile ID plus the chosen rotation

    The "entropy" of a cell is how uncertain we are about it.
    Lower entropy = more constrained = collapsed first.
    """
    position: Position
    catalog: TileCatalog = field(repr=False)
    rng: random.Random = field(repr=False)
    possibilities: set[str] = field(default_factory=set)
    collapsed: bool = False
    tile_id: str | None = None
    rotation: int = 0
    entropy: float = 0.0

    def __hash__(self):
        """Hash by position - cells are unique by their grid location."""
        return hash(self.position)

    def __eq__(self, other):
        """Two cells are equal if they have the same position."""
        if not isinstance(other, Cell):
            return False
        return self.position == other.position

    def collapse(self, tile_id: str, rotation: int):
        """
        Commit this cell to one tile at one rotation.

        The rotation is not checked against neighbors here; callers
        choose a valid one first.
        """
        if tile_id is None:
            raise ValueError(f"Cannot collapse cell at {self.position} to no tile")

        self.possibilities = {tile_id}
        self.collapsed = True
        self.tile_id = tile_id
        self.rotation = rotation
        self.entropy = 0.0

    def remove_possibility(self, tile_id: str) -> bool:
        """
        Remove a possibility from this cell.

        Returns True if the possibility was actually removed (cell changed).
        Returns False if the tile wasn't a possibility anyway.
        """
        if tile_id in self.possibilities:
            self.possibilities.discard(tile_id)
            self.update_entropy()
            return True
        return False

    def constrain_to(self, allowed: set[str]) -> bool:
        """
        Constrain this cell to only the given possibilities.

        Returns True if the cell changed (lost possibilities).
        """
        old_count = len(self.possibilities)
        self.possibilities &= allowed
        if len(self.possibilities) < old_count:
            self.update_entropy()
            return True
        return False

    def update_entropy(self):
        """
        Recompute Shannon entropy over the remaining possibilities.

        Weights are normalized over the possibility set. A small random
        jitter breaks ties between otherwise equal cells; it comes from the
        solve's own seeded generator so runs stay reproducible.
        """
        if not self.possibilities:
            self.entropy = ENTROPY_CONTRADICTION
            return

        if len(self.possibilities) == 1:
            self.entropy = 0.0
            return

        # Catalog order keeps the floating point sum identical between runs
        weights = [self.catalog.weight(t) for t in self.catalog.ordered(self.possibilities)]
        total_weight = sum(weights)

        if total_weight == 0:
            # Fall back to count-based entropy
            self.entropy = float(len(weights))
            return

        entropy = 0.0
        for weight in weights:
            probability = weight / total_weight
            if probability > 0:
                entropy -= probability * math.log2(probability)

        # (0, ENTROPY_JITTER], never exactly zero
        self.entropy = entropy + ENTROPY_JITTER * (1.0 - self.rng.random())

    def is_valid(self) -> bool:
        """A cell is valid while it still has at least one possibility."""
        return len(self.possibilities) > 0

    def clone(self) -> Cell:
        """Deep, independent copy (shares only the read-only catalog and the RNG)."""
        return Cell(
            position=self.position,
            catalog=self.catalog,
            rng=self.rng,
            possibilities=set(self.possibilities),
            collapsed=self.collapsed,
            tile_id=self.tile_id,
            rotation=self.rotation,
            entropy=self.entropy,
        )

    def state(self) -> CellState:
        return CellState(
            position=self.position,
            possibilities=frozenset(self.possibilities),
            collapsed=self.collapsed,
            tile_id=self.tile_id,
            rotation=self.rotation,
            entropy=self.entropy,
        )

    def restore(self, state: CellState):
        """Overwrite this cell with a captured state."""
        self.possibilities = set(state.possibilities)
        self.collapsed = state.collapsed
        self.tile_id = state.tile_id
        self.rotation = state.rotation
        self.entropy = state.entropy


@dataclass(frozen=True)
class GridSnapshot:
    """
    Immutable capture of a whole grid, taken right before a collapse.

    Cells are stored row by row (z outer, x inner), matching Grid.all_cells().
    """

    width: int
    depth: int
    cells: tuple[CellState, ...]
    instance_counts: tuple[tuple[str, int], ...]
    collapse_order_length: int


class Grid:
    """
    The 2D grid of cells representing the wave function.

    Initially all cells can be any tile (maximum superposition).
    As the solver runs, cells collapse and constrain their neighbors
    until every cell has exactly one tile.

    Instance counts live here, not in any process-wide table, so two
    grids never see each other's placements.
    """

    def __init__(self, width: int, depth: int, catalog: TileCatalog, rng: random.Random):
        """
        Create a grid with all cells in maximum superposition.

        Args:
            width: Number of cells along x
            depth: Number of cells along z
            catalog: Every tile a cell may become (initial superposition)
            rng: The solve's random generator (entropy jitter, tie breaks)
        """
        if width < 1 or depth < 1:
            raise ValueError(f"Grid must be at least 1x1, got {width}x{depth}")

        self.width = width
        self.depth = depth
        self.catalog = catalog
        self.rng = rng

        # How many times each tile has been committed in this grid
        self.instance_counts: dict[str, int] = {}

        # Positions in the order they were committed (for staggered reveal)
        self.collapse_order: list[Position] = []

        all_ids = set(catalog.ids)
        self.cells: list[list[Cell]] = [
            [
                Cell(position=Position(x, z), catalog=catalog, rng=rng, possibilities=set(all_ids))
                for x in range(width)
            ]
            for z in range(depth)
        ]
        for cell in self.all_cells():
            cell.update_entropy()

    def get_cell(self, position: Position) -> Cell | None:
        """Get cell at position, or None if out of bounds."""
        if self.in_bounds(position):
            return self.cells[position.z][position.x]
        return None

    def cell(self, position: Position) -> Cell:
        """Get cell at position; out of bounds is an error."""
        if not self.in_bounds(position):
            raise IndexError(f"Position {position} outside {self.width}x{self.depth} grid")
        return self.cells[position.z][position.x]

    def in_bounds(self, position: Position) -> bool:
        return position.in_bounds(self.width, self.depth)

    def neighbors(self, position: Position) -> Iterator[tuple[Direction, Position]]:
        """
        Yield all in-bounds horizontal neighbors of a position.

        Direction is FROM the input position TO the neighbor.
        """
        for direction in HORIZONTAL_DIRECTIONS:
            neighbor = position + direction
            if self.in_bounds(neighbor):
                yield direction, neighbor

    def all_cells(self) -> Iterator[Cell]:
        """Iterate over all cells in the grid, row by row."""
        for row in self.cells:
            yield from row

    def positions(self) -> Iterator[Position]:
        for cell in self.all_cells():
            yield cell.position

    def is_border(self, position: Position) -> bool:
        return (
            position.x == 0
            or position.z == 0
            or position.x == self.width - 1
            or position.z == self.depth - 1
        )

    def border_positions(self) -> list[Position]:
        """All positions on the grid edge, row by row."""
        return [p for p in self.positions() if self.is_border(p)]

    def collapse(self, position: Position, tile_id: str, rotation: int):
        """Collapse a cell and count the placement against the tile's cap."""
        self.cell(position).collapse(tile_id, rotation)
        self.instance_counts[tile_id] = self.instance_counts.get(tile_id, 0) + 1
        self.collapse_order.append(position)

    def instance_count(self, tile_id: str) -> int:
        return self.instance_counts.get(tile_id, 0)

    def is_fully_collapsed(self) -> bool:
        """Check if all cells have collapsed."""
        return all(cell.collapsed for cell in self.all_cells())

    def min_entropy_cell(self) -> Cell | None:
        """
        Find the uncollapsed, still-valid cell with minimum entropy.

        Returns None if no such cell exists.

        Ties are broken uniformly at random. The entropy jitter already
        makes exact ties rare; this mostly matters for cells narrowed down
        to a single possibility (entropy 0).
        """
        candidates = [
            cell for cell in self.all_cells()
            if not cell.collapsed and cell.is_valid()
        ]
        if not candidates:
            return None

        min_entropy = min(cell.entropy for cell in candidates)
        tied = [
            cell for cell in candidates
            if cell.entropy == min_entropy
            or math.isclose(cell.entropy, min_entropy, rel_tol=ENTROPY_TIE_TOLERANCE)
        ]
        return self.rng.choice(tied)

    def snapshot(self) -> GridSnapshot:
        """Capture the full grid state, independent of the live cells."""
        return GridSnapshot(
            width=self.width,
            depth=self.depth,
            cells=tuple(cell.state() for cell in self.all_cells()),
            instance_counts=tuple(sorted(self.instance_counts.items())),
            collapse_order_length=len(self.collapse_order),
        )

    def restore(self, snapshot: GridSnapshot):
        """Overwrite the live grid with a snapshot, discarding later changes."""
        if (snapshot.width, snapshot.depth) != (self.width, self.depth):
            raise ValueError(
                f"Snapshot is {snapshot.width}x{snapshot.depth}, "
                f"grid is {self.width}x{self.depth}"
            )

        for cell, state in zip(self.all_cells(), snapshot.cells):
            cell.restore(state)
        self.instance_counts = dict(snapshot.instance_counts)
        del self.collapse_order[snapshot.collapse_order_length:]
