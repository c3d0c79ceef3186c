"""
Load tile catalogs from YAML.

File format:

    weight_multipliers:          # optional, per category
      residential_building: 1.5
    tiles:
      - id: road_straight
        category: road
        weight: 3.0
        rotation_steps: 2
        sockets: {north: road, east: no_road, south: road, west: no_road}

Sockets may also be given as a list in North, East, South, West, Top, Bottom
order. Missing top/bottom faces default to empty.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from hamlet.core.errors import InvalidCatalogError
from hamlet.core.sockets import SocketType
from hamlet.core.tiles import TileCatalog, TileCategory, TileDefinition
from hamlet.core.types import Direction

logger = logging.getLogger(__name__)

FACE_NAMES = ("north", "east", "south", "west", "top", "bottom")


def load_catalog(path: Path | str) -> TileCatalog:
    """
    Load and validate a catalog from a YAML file.

    Raises:
        InvalidCatalogError: If the file is missing, is not valid YAML, or
            describes an invalid catalog.
    """
    path = Path(path)
    if not path.exists():
        raise InvalidCatalogError(f"Tile file not found: {path}")

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidCatalogError(f"Could not parse {path}: {e}") from e

    catalog = catalog_from_dict(data)
    logger.debug(f"Loaded {len(catalog)} tiles from {path}")
    return catalog


def catalog_from_dict(data: Any) -> TileCatalog:
    """Build a catalog from already-parsed YAML data."""
    if not isinstance(data, dict) or not isinstance(data.get("tiles"), list):
        raise InvalidCatalogError("Tile data must be a mapping with a 'tiles' list")

    tiles = [_parse_tile(raw, index) for index, raw in enumerate(data["tiles"])]
    catalog = TileCatalog(tiles)

    multipliers = _parse_multipliers(data.get("weight_multipliers") or {})
    if multipliers:
        catalog = catalog.with_weight_multipliers(multipliers)
    return catalog


def _parse_tile(raw: Any, index: int) -> TileDefinition:
    if not isinstance(raw, dict):
        raise InvalidCatalogError(f"Tile #{index} must be a mapping")

    tile_id = raw.get("id")
    if not tile_id:
        raise InvalidCatalogError(f"Tile #{index} has no id")

    fields = dict(raw)
    fields["sockets"] = _parse_sockets(raw.get("sockets"), tile_id)

    if "category" in fields:
        try:
            fields["category"] = TileCategory(fields["category"])
        except ValueError:
            raise InvalidCatalogError(
                f"Tile '{tile_id}' has unknown category '{fields['category']}'",
                tile_id=tile_id,
            ) from None

    try:
        return TileDefinition(**fields)
    except ValidationError as e:
        raise InvalidCatalogError(f"Tile '{tile_id}' is invalid: {e}", tile_id=tile_id) from e


def _parse_sockets(raw: Any, tile_id: str) -> tuple[SocketType | None, ...]:
    if raw is None:
        raise InvalidCatalogError(f"Tile '{tile_id}' has no sockets", tile_id=tile_id)

    if isinstance(raw, dict):
        unknown = set(raw) - set(FACE_NAMES)
        if unknown:
            raise InvalidCatalogError(
                f"Tile '{tile_id}' has unknown faces: {', '.join(sorted(unknown))}",
                tile_id=tile_id,
            )
        names = [raw.get(face) for face in FACE_NAMES]
        # Vertical faces are optional in the mapping form
        for face in (Direction.TOP, Direction.BOTTOM):
            if names[face] is None:
                names[face] = SocketType.EMPTY.value
    elif isinstance(raw, list):
        names = list(raw)
    else:
        raise InvalidCatalogError(
            f"Tile '{tile_id}' sockets must be a mapping or a list", tile_id=tile_id
        )

    sockets: list[SocketType | None] = []
    for name in names:
        if name is None:
            sockets.append(None)
            continue
        try:
            sockets.append(SocketType(name))
        except ValueError:
            raise InvalidCatalogError(
                f"Tile '{tile_id}' has unknown socket type '{name}'", tile_id=tile_id
            ) from None
    return tuple(sockets)


def _parse_multipliers(raw: Any) -> dict[TileCategory, float]:
    if not isinstance(raw, dict):
        raise InvalidCatalogError("weight_multipliers must be a mapping of category to factor")

    multipliers = {}
    for name, factor in raw.items():
        try:
            category = TileCategory(name)
        except ValueError:
            raise InvalidCatalogError(f"Unknown category in weight_multipliers: '{name}'") from None
        if not isinstance(factor, (int, float)) or factor < 0:
            raise InvalidCatalogError(f"Weight multiplier for '{name}' must be a non-negative number")
        multipliers[category] = float(factor)
    return multipliers
