"""Socket types and the compatibility rules between them.

Every horizontal tile face carries a socket. Two tiles may sit side by side
only when the socket on one face accepts the socket on the facing side of the
other. Acceptance is directional: compatible(a, b) says what a source socket
accepts, and nothing here assumes compatible(a, b) == compatible(b, a) unless
a table explicitly declares itself symmetric.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum

from .errors import InvalidCompatibilityTableError


class SocketType(Enum):
    """Types of socket that can appear on a tile face."""

    ROAD = "road"
    NO_ROAD = "no_road"
    EMPTY = "empty"
    BUILDING_WALL = "building_wall"
    BUILDING_DOOR = "building_door"
    TOWN_WALL = "town_wall"
    TOWN_GATE = "town_gate"


class CompatibilityTable:
    """An exhaustive, directional socket compatibility table.

    Every SocketType must appear as a source, even if it accepts nothing,
    so a lookup never falls through to an implicit "incompatible".

    Usage:
        table = CompatibilityTable({SocketType.ROAD: {SocketType.ROAD}, ...})
        table.compatible(SocketType.ROAD, SocketType.BUILDING_DOOR)
    """

    def __init__(
        self,
        rules: Mapping[SocketType, Iterable[SocketType]],
        symmetric: bool = False,
    ):
        """
        Build and validate the table.

        Args:
            rules: For each source socket type, the target types it accepts.
            symmetric: Declare that compatible(a, b) == compatible(b, a).
                       Checked here; a false declaration is rejected.

        Raises:
            InvalidCompatibilityTableError: If a socket type has no entry, or
                the symmetry declaration does not hold.
        """
        missing = [socket for socket in SocketType if socket not in rules]
        if missing:
            names = ", ".join(socket.name for socket in missing)
            raise InvalidCompatibilityTableError(f"No compatibility entry for: {names}")

        self._accepts: dict[SocketType, frozenset[SocketType]] = {
            source: frozenset(targets) for source, targets in rules.items()
        }
        self._symmetric = symmetric

        if symmetric and not self.is_symmetric():
            raise InvalidCompatibilityTableError(
                "Table declared symmetric but compatible(a, b) != compatible(b, a) "
                "for at least one pair"
            )

    @property
    def declared_symmetric(self) -> bool:
        """Whether the table was declared symmetric at construction."""
        return self._symmetric

    def compatible(self, source: SocketType, target: SocketType) -> bool:
        """Does a `source` face accept a facing `target` socket?"""
        return target in self._accepts[source]

    def accepted_by(self, source: SocketType) -> frozenset[SocketType]:
        """All socket types a source socket accepts."""
        return self._accepts[source]

    def is_symmetric(self) -> bool:
        """Check whether the rules happen to be symmetric for every pair."""
        return all(
            self.compatible(a, b) == self.compatible(b, a)
            for a in SocketType
            for b in SocketType
        )


# The medieval town rules. Roads meet roads, doors and gates; walls and open
# ground mix freely; doors need something walkable in front of them.
TOWN_COMPATIBILITY = CompatibilityTable(
    {
        SocketType.ROAD: {
            SocketType.ROAD,
            SocketType.BUILDING_DOOR,
            SocketType.TOWN_GATE,
        },
        SocketType.NO_ROAD: {
            SocketType.NO_ROAD,
            SocketType.EMPTY,
            SocketType.BUILDING_WALL,
            SocketType.TOWN_WALL,
            SocketType.BUILDING_DOOR,
        },
        SocketType.EMPTY: {
            SocketType.EMPTY,
            SocketType.NO_ROAD,
            SocketType.BUILDING_WALL,
            SocketType.TOWN_WALL,
        },
        SocketType.BUILDING_WALL: {
            SocketType.BUILDING_WALL,
            SocketType.EMPTY,
            SocketType.NO_ROAD,
        },
        SocketType.BUILDING_DOOR: {
            SocketType.ROAD,
            SocketType.NO_ROAD,
        },
        SocketType.TOWN_WALL: {
            SocketType.TOWN_WALL,
            SocketType.EMPTY,
            SocketType.NO_ROAD,
            SocketType.TOWN_GATE,
        },
        SocketType.TOWN_GATE: {
            SocketType.TOWN_WALL,
            SocketType.ROAD,
        },
    },
    symmetric=True,
)


def compatible(source: SocketType, target: SocketType) -> bool:
    """Check two sockets against the town rules."""
    return TOWN_COMPATIBILITY.compatible(source, target)
