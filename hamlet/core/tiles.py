"""Tile definitions and the catalog that holds them.

A TileDefinition is a discrete unit that can occupy a grid cell: six sockets,
a sampling weight, a rotation policy, and generation constraints. The catalog
is the immutable, ordered set of definitions a solve runs against.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from enum import Enum

from pydantic import BaseModel, ConfigDict

from .errors import InvalidCatalogError
from .sockets import SocketType
from .types import Direction, HORIZONTAL_DIRECTIONS

SOCKET_COUNT = 6
MIN_WEIGHT_AFTER_MULTIPLIER = 0.1


class TileCategory(Enum):
    """Broad role of a tile in the town."""

    ROAD = "road"
    RESIDENTIAL_BUILDING = "residential_building"
    COMMERCIAL_BUILDING = "commercial_building"
    PUBLIC_BUILDING = "public_building"
    OPEN_SPACE = "open_space"
    WALL = "wall"
    SPECIAL = "special"


BUILDING_CATEGORIES = frozenset({
    TileCategory.RESIDENTIAL_BUILDING,
    TileCategory.COMMERCIAL_BUILDING,
    TileCategory.PUBLIC_BUILDING,
})


class TileDefinition(BaseModel):
    """
    A tile type that can appear in the generated town.

    Attributes:
        id: Unique identifier within a catalog (e.g., "road_straight")
        name: Display name
        weight: Sampling weight - higher means more common in output
        allow_rotation: Whether the tile may be turned in 90 degree steps
        rotation_steps: How many 90 degree steps are allowed (1..4)
        sockets: Sockets for each face, indexed by Direction:
                 North, East, South, West, Top, Bottom.
                 Vertical faces may be None.
        category: Role of the tile in the town
        max_instances: Cap on placements in one solve (None = unlimited)
        min_distance_from_center: Closest allowed Euclidean distance to the town center
        max_distance_from_center: Farthest allowed distance (None = unbounded)
        can_place_at_border: Whether the tile may sit on the grid edge
        symbol: Single character used by the text renderer
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    weight: float = 1.0
    allow_rotation: bool = True
    rotation_steps: int = 4
    sockets: tuple[SocketType | None, ...] = ()
    category: TileCategory = TileCategory.OPEN_SPACE
    max_instances: int | None = None
    min_distance_from_center: float = 0.0
    max_distance_from_center: float | None = None
    can_place_at_border: bool = True
    symbol: str = "?"

    def rotations(self) -> range:
        """Rotation steps this tile may be placed at."""
        return range(self.rotation_steps if self.allow_rotation else 1)

    def socket(self, direction: Direction, rotation: int = 0) -> SocketType | None:
        """
        The socket presented on a face once the tile is rotated.

        Rotating by `rotation` steps clockwise maps a requested horizontal face
        d to the unrotated face (d - rotation) mod 4. Top and Bottom never rotate.
        """
        if not self.allow_rotation or rotation == 0 or not direction.is_horizontal:
            return self.sockets[direction]
        return self.sockets[(direction - rotation) % 4]

    def allows_distance(self, distance: float) -> bool:
        """Is a cell at `distance` from the center inside this tile's window?"""
        if distance < self.min_distance_from_center:
            return False
        if self.max_distance_from_center is not None and distance > self.max_distance_from_center:
            return False
        return True

    def validation_problems(self) -> list[str]:
        """List everything wrong with this definition (empty if valid)."""
        problems = []
        if len(self.sockets) != SOCKET_COUNT:
            problems.append(
                f"expected {SOCKET_COUNT} sockets, but has {len(self.sockets)}"
            )
        else:
            for direction in HORIZONTAL_DIRECTIONS:
                if self.sockets[direction] is None:
                    problems.append(f"missing socket for {direction.name.lower()}")
        if not 1 <= self.rotation_steps <= 4:
            problems.append(f"rotation_steps must be 1..4, got {self.rotation_steps}")
        if self.weight < 0:
            problems.append(f"weight must not be negative, got {self.weight}")
        if self.max_instances is not None and self.max_instances < 0:
            problems.append(f"max_instances must not be negative, got {self.max_instances}")
        return problems


class TileCatalog:
    """
    Immutable, ordered collection of validated tile definitions.

    Catalog order is the canonical iteration order for every randomized
    decision, so results never depend on set or hash ordering.
    """

    def __init__(self, tiles: Iterable[TileDefinition]):
        """
        Validate and index the tiles.

        Raises:
            InvalidCatalogError: On an empty catalog, duplicate ids, or any
                malformed tile (sockets, rotation steps, weight).
        """
        self._tiles: tuple[TileDefinition, ...] = tuple(tiles)
        if not self._tiles:
            raise InvalidCatalogError("Tile catalog is empty")

        self._by_id: dict[str, TileDefinition] = {}
        for tile in self._tiles:
            if tile.id in self._by_id:
                raise InvalidCatalogError(f"Duplicate tile id '{tile.id}'", tile_id=tile.id)
            problems = tile.validation_problems()
            if problems:
                raise InvalidCatalogError(
                    f"Tile '{tile.id}' is invalid: {'; '.join(problems)}",
                    tile_id=tile.id,
                )
            self._by_id[tile.id] = tile

        self._index: dict[str, int] = {tile.id: i for i, tile in enumerate(self._tiles)}

        # Rotated horizontal sockets for all four quarter turns, so forced
        # placements outside rotation_steps still resolve:
        # _rotated[tile_id][rotation][direction] -> socket
        self._rotated: dict[str, tuple[tuple[SocketType, ...], ...]] = {
            tile.id: tuple(
                tuple(tile.socket(d, rotation) for d in HORIZONTAL_DIRECTIONS)
                for rotation in range(4)
            )
            for tile in self._tiles
        }

    def __iter__(self) -> Iterator[TileDefinition]:
        return iter(self._tiles)

    def __len__(self) -> int:
        return len(self._tiles)

    def __contains__(self, tile_id: object) -> bool:
        return tile_id in self._by_id

    def __getitem__(self, tile_id: str) -> TileDefinition:
        return self._by_id[tile_id]

    def get(self, tile_id: str) -> TileDefinition | None:
        """Get a tile by id, or None if unknown."""
        return self._by_id.get(tile_id)

    @property
    def ids(self) -> tuple[str, ...]:
        """All tile ids, in catalog order."""
        return tuple(tile.id for tile in self._tiles)

    def index_of(self, tile_id: str) -> int:
        return self._index[tile_id]

    def ordered(self, tile_ids: Iterable[str]) -> list[str]:
        """Sort tile ids into catalog order."""
        return sorted(tile_ids, key=self._index.__getitem__)

    def weight(self, tile_id: str) -> float:
        return self._by_id[tile_id].weight

    def by_category(self, category: TileCategory) -> list[TileDefinition]:
        """All tiles of a category, in catalog order."""
        return [tile for tile in self._tiles if tile.category == category]

    def rotated_socket(self, tile_id: str, direction: Direction, rotation: int) -> SocketType:
        """Cached horizontal socket lookup for a tile at a rotation."""
        return self._rotated[tile_id][rotation][direction]

    def rotated_sockets(self, tile_id: str, rotation: int) -> tuple[SocketType, ...]:
        """The four horizontal sockets (N, E, S, W) of a tile at a rotation."""
        return self._rotated[tile_id][rotation]

    def with_weight_multipliers(self, multipliers: Mapping[TileCategory, float]) -> TileCatalog:
        """
        Return a new catalog with weights scaled per category.

        Weights never drop below 0.1 after scaling, so a multiplier cannot
        silently remove a tile from the sampling pool.
        """
        scaled = []
        for tile in self._tiles:
            factor = multipliers.get(tile.category, 1.0)
            weight = max(MIN_WEIGHT_AFTER_MULTIPLIER, tile.weight * factor)
            scaled.append(tile.model_copy(update={"weight": weight}))
        return TileCatalog(scaled)
