"""Shared test fixtures for Hamlet."""

import logging
import random
import tempfile
from pathlib import Path

import pytest

from hamlet.core import (
    CompatibilityTable,
    SocketType,
    TileCatalog,
    TileCategory,
    TileDefinition,
)
from hamlet.generation import create_town_catalog
from hamlet.logging_config import ROOT_LOGGER_NAME


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "slow: marks tests as slow (skipped by default, run with --run-slow)")


def pytest_addoption(parser):
    """Add --run-slow option to pytest."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests (skipped by default)",
    )


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is passed."""
    if config.getoption("--run-slow"):
        return

    skip_slow = pytest.mark.skip(reason="Slow test (use --run-slow to run)")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


# =============================================================================
# Tile helpers
# =============================================================================

def make_tile(
    tile_id: str,
    north: SocketType,
    east: SocketType,
    south: SocketType,
    west: SocketType,
    **kwargs,
) -> TileDefinition:
    """Build a tile with the given horizontal sockets and empty top/bottom."""
    return TileDefinition(
        id=tile_id,
        name=kwargs.pop("name", tile_id),
        sockets=(north, east, south, west, SocketType.EMPTY, SocketType.EMPTY),
        **kwargs,
    )


@pytest.fixture
def tile_factory():
    """The make_tile helper, as a fixture."""
    return make_tile


@pytest.fixture
def rng() -> random.Random:
    """A seeded random generator."""
    return random.Random(1234)


@pytest.fixture
def open_catalog() -> TileCatalog:
    """Two tiles that may sit next to each other in every direction."""
    e, n = SocketType.EMPTY, SocketType.NO_ROAD
    return TileCatalog([
        make_tile("grass", e, e, e, e, allow_rotation=False, weight=2.0),
        make_tile("plaza", n, n, n, n, allow_rotation=False, category=TileCategory.OPEN_SPACE),
    ])


@pytest.fixture
def road_catalog() -> TileCatalog:
    """A rotatable straight road and plain grass."""
    r, n, e = SocketType.ROAD, SocketType.NO_ROAD, SocketType.EMPTY
    return TileCatalog([
        make_tile("road", r, n, r, n, rotation_steps=2, category=TileCategory.ROAD),
        make_tile("grass", e, e, e, e, allow_rotation=False),
    ])


@pytest.fixture
def dead_end_table() -> CompatibilityTable:
    """
    Rules where a town gate accepts nothing at all.

    Roads and town walls accept each other; every other socket accepts only
    itself.
    """
    rules = {socket: {socket} for socket in SocketType}
    rules[SocketType.ROAD] = {SocketType.ROAD, SocketType.TOWN_WALL}
    rules[SocketType.TOWN_WALL] = {SocketType.TOWN_WALL, SocketType.ROAD}
    rules[SocketType.TOWN_GATE] = set()
    return CompatibilityTable(rules)


@pytest.fixture
def dead_end_catalog() -> TileCatalog:
    """
    Tile A has a dead east face, so it only fits on the east edge.
    Tile B fits anywhere. Use with dead_end_table.
    """
    e = SocketType.EMPTY
    return TileCatalog([
        make_tile("A", e, SocketType.TOWN_GATE, e, SocketType.TOWN_WALL, allow_rotation=False),
        make_tile("B", e, SocketType.ROAD, e, SocketType.ROAD, allow_rotation=False),
    ])


@pytest.fixture
def town_catalog() -> TileCatalog:
    """The bundled medieval town tiles."""
    return create_town_catalog()


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop handlers setup_logging() attached during a test."""
    yield
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()


@pytest.fixture
def temp_dir() -> Path:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory(prefix="hamlet_test_") as tmpdir:
        yield Path(tmpdir)
