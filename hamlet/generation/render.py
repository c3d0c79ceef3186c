"""Plain-text map of a solve result, north at the top."""

from __future__ import annotations

from hamlet.core.sockets import SocketType
from hamlet.core.tiles import TileCatalog, TileCategory
from hamlet.core.types import Direction, Position

from .wfc.result import SolveResult, TileAssignment

UNRESOLVED_SYMBOL = "?"

# Road glyphs keyed by which faces carry a road socket
_ROAD_GLYPHS: dict[frozenset[Direction], str] = {
    frozenset({Direction.NORTH, Direction.SOUTH}): "|",
    frozenset({Direction.EAST, Direction.WEST}): "-",
}


def road_glyph(catalog: TileCatalog, assignment: TileAssignment) -> str:
    """Pick a character for a road cell from its rotated sockets."""
    sockets = catalog.rotated_sockets(assignment.tile_id, assignment.rotation)
    faces = frozenset(
        Direction(i) for i, socket in enumerate(sockets) if socket == SocketType.ROAD
    )
    if len(faces) == 1:
        return "o"
    return _ROAD_GLYPHS.get(faces, "+")


def cell_glyph(catalog: TileCatalog, assignment: TileAssignment | None) -> str:
    if assignment is None:
        return UNRESOLVED_SYMBOL
    tile = catalog[assignment.tile_id]
    if tile.category == TileCategory.ROAD:
        return road_glyph(catalog, assignment)
    return tile.symbol


def render_ascii(result: SolveResult, catalog: TileCatalog) -> str:
    """One character per cell; the top line is the northmost row."""
    lines = []
    for z in reversed(range(result.depth)):
        lines.append("".join(
            cell_glyph(catalog, result.assignment(Position(x, z)))
            for x in range(result.width)
        ))
    return "\n".join(lines)
