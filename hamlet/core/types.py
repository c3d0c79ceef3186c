"""Foundational types for Hamlet.

This module defines the spatial types shared by the solver and its callers:
- Position: Grid coordinates (x, z)
- Direction: The six tile faces, four horizontal plus top and bottom
"""

from __future__ import annotations

import math
from enum import IntEnum
from typing import NamedTuple


class Direction(IntEnum):
    """Tile faces, in socket-array order.

    The integer value doubles as the index into a tile's socket array, so the
    order here is load-bearing: North, East, South, West, Top, Bottom.
    """

    NORTH = 0
    EAST = 1
    SOUTH = 2
    WEST = 3
    TOP = 4
    BOTTOM = 5

    @property
    def offset(self) -> tuple[int, int]:
        """Get the (dx, dz) offset for this direction.

        Coordinate system: x increases east, z increases north.
        Vertical faces have no planar offset.
        """
        return _DIRECTION_OFFSETS[self]

    @property
    def opposite(self) -> Direction:
        """Get the facing direction on the adjacent tile."""
        return _DIRECTION_OPPOSITES[self]

    @property
    def is_horizontal(self) -> bool:
        return self < Direction.TOP


# Lookup tables for Direction properties
_DIRECTION_OFFSETS: dict[Direction, tuple[int, int]] = {
    Direction.NORTH: (0, 1),
    Direction.EAST: (1, 0),
    Direction.SOUTH: (0, -1),
    Direction.WEST: (-1, 0),
    Direction.TOP: (0, 0),
    Direction.BOTTOM: (0, 0),
}

_DIRECTION_OPPOSITES: dict[Direction, Direction] = {
    Direction.NORTH: Direction.SOUTH,
    Direction.EAST: Direction.WEST,
    Direction.SOUTH: Direction.NORTH,
    Direction.WEST: Direction.EAST,
    Direction.TOP: Direction.BOTTOM,
    Direction.BOTTOM: Direction.TOP,
}

HORIZONTAL_DIRECTIONS: tuple[Direction, ...] = (
    Direction.NORTH,
    Direction.EAST,
    Direction.SOUTH,
    Direction.WEST,
)


class Position(NamedTuple):
    """A cell position in the town grid.

    - x increases to the east
    - z increases to the north
    - (0, 0) is the southwest corner
    """

    x: int
    z: int

    def __add__(self, other: object) -> Position:
        """Step one cell in a direction, or add a (dx, dz) tuple."""
        if isinstance(other, Direction):
            dx, dz = other.offset
            return Position(self.x + dx, self.z + dz)
        if isinstance(other, tuple) and len(other) == 2:
            return Position(self.x + other[0], self.z + other[1])
        return NotImplemented

    def distance_to(self, other: Position) -> float:
        """Euclidean distance to another position."""
        return math.hypot(self.x - other.x, self.z - other.z)

    def in_bounds(self, width: int, depth: int) -> bool:
        """Check if position is within grid bounds (0 to width-1, 0 to depth-1)."""
        return 0 <= self.x < width and 0 <= self.z < depth

    def __str__(self) -> str:
        return f"({self.x}, {self.z})"
