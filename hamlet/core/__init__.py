"""Core domain models for Hamlet.

This module contains the static, I/O-free vocabulary of the generator:
positions and faces, socket types and their compatibility rules, tile
definitions, and the exception taxonomy.

Usage:
    from hamlet.core import Position, Direction, SocketType, TileCatalog
"""

# Types
from .types import Position, Direction, HORIZONTAL_DIRECTIONS

# Sockets
from .sockets import (
    SocketType,
    CompatibilityTable,
    TOWN_COMPATIBILITY,
    compatible,
)

# Tiles
from .tiles import (
    TileCategory,
    TileDefinition,
    TileCatalog,
    BUILDING_CATEGORIES,
)

# Errors
from .errors import (
    HamletError,
    InvalidCatalogError,
    InvalidCompatibilityTableError,
    ContradictionError,
    ConstraintContradictionError,
    BacktrackExhaustedError,
)

__all__ = [
    # Types
    "Position",
    "Direction",
    "HORIZONTAL_DIRECTIONS",
    # Sockets
    "SocketType",
    "CompatibilityTable",
    "TOWN_COMPATIBILITY",
    "compatible",
    # Tiles
    "TileCategory",
    "TileDefinition",
    "TileCatalog",
    "BUILDING_CATEGORIES",
    # Errors
    "HamletError",
    "InvalidCatalogError",
    "InvalidCompatibilityTableError",
    "ContradictionError",
    "ConstraintContradictionError",
    "BacktrackExhaustedError",
]
