"""
Hamlet town tileset for Wave Function Collapse.

Fourteen tiles in seven categories make up a small medieval town:
roads (straight, corner, T, cross, dead end), three kinds of building,
open ground (plaza, garden), a well, and the town wall pieces.

The key insight: doors need something walkable in front of them and roads
only continue into roads, doors or gates, so streets and frontages emerge
from purely local socket rules.
"""

from __future__ import annotations

from pathlib import Path

from hamlet.core.tiles import TileCatalog

from .catalog_loader import load_catalog

DEFAULT_TILES_PATH = Path(__file__).parent.parent / "config" / "town_tiles.yaml"


def create_town_catalog(path: Path | str | None = None) -> TileCatalog:
    """
    Load the town catalog.

    Args:
        path: YAML tile file. If None, uses the bundled default set.
    """
    return load_catalog(path if path is not None else DEFAULT_TILES_PATH)
