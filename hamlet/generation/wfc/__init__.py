"""
Wave Function Collapse (WFC) implementation for town generation.

WFC is a constraint-satisfaction algorithm that generates layouts by:
1. Starting with all cells in "superposition" (could be any tile)
2. Collapsing the most constrained cell to a single tile and rotation
3. Propagating socket constraints to neighbors
4. Backtracking to a snapshot when a cell runs out of options
5. Repeating until all cells are determined

Usage:
    from hamlet.generation.wfc import WFCSolver, SolverConfig

    solver = WFCSolver(catalog, SolverConfig(width=16, depth=16, seed=42))
    result = solver.solve()
"""

from .grid import Cell, CellState, Grid, GridSnapshot, ENTROPY_CONTRADICTION
from .history import History
from .propagation import PropagationEngine
from .result import (
    FailureKind,
    SolveResult,
    SolverState,
    SolverStats,
    TileAssignment,
)
from .solver import SolverConfig, WFCSolver

__all__ = [
    # Grid
    "Cell",
    "CellState",
    "Grid",
    "GridSnapshot",
    "ENTROPY_CONTRADICTION",
    # Engine
    "History",
    "PropagationEngine",
    # Solver
    "SolverConfig",
    "WFCSolver",
    # Result
    "FailureKind",
    "SolveResult",
    "SolverState",
    "SolverStats",
    "TileAssignment",
]
