"""Town generation for Hamlet."""

from .wfc import SolveResult, SolverConfig, SolverState, WFCSolver
from .constraints import ConstraintPhase
from .catalog_loader import load_catalog, catalog_from_dict
from .tileset import create_town_catalog, DEFAULT_TILES_PATH
from .town import TownLayout, build_constraints, generate_town
from .analysis import RoadNetworkReport, road_connectivity, category_counts, town_summary
from .render import render_ascii

__all__ = [
    "SolveResult",
    "SolverConfig",
    "SolverState",
    "WFCSolver",
    "ConstraintPhase",
    "load_catalog",
    "catalog_from_dict",
    "create_town_catalog",
    "DEFAULT_TILES_PATH",
    "TownLayout",
    "build_constraints",
    "generate_town",
    "RoadNetworkReport",
    "road_connectivity",
    "category_counts",
    "town_summary",
    "render_ascii",
]
