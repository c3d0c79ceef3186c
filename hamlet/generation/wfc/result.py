"""
Outcome of a solve.

Failures are values here, not exceptions: a SolveResult always carries the
grid as it stood when the run stopped, plus the run statistics. Callers that
prefer exceptions can call raise_for_failure().
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Any

from pydantic import BaseModel, ConfigDict

from hamlet.core.errors import (
    BacktrackExhaustedError,
    ConstraintContradictionError,
    HamletError,
)
from hamlet.core.types import Position


class SolverState(Enum):
    """The current state of the WFC solver."""
    IDLE = auto()         # Constructed, start() not called yet
    RUNNING = auto()      # Still solving, more steps needed
    COMPLETE = auto()     # All cells collapsed successfully
    FAILED = auto()       # Stopped on an unrecoverable contradiction or cancel


class FailureKind(Enum):
    """Why a run ended in FAILED."""
    INITIAL_CONSTRAINTS = "initial_constraints"
    BACKTRACKING_DISABLED = "backtracking_disabled"
    BACKTRACK_EXHAUSTED = "backtrack_exhausted"
    HISTORY_EMPTY = "history_empty"
    CANCELLED = "cancelled"


class TileAssignment(BaseModel):
    """A committed tile and its rotation (in 90 degree steps)."""

    model_config = ConfigDict(frozen=True)

    tile_id: str
    rotation: int = 0

    @property
    def degrees(self) -> int:
        return self.rotation * 90


class SolverStats(BaseModel):
    """Counters accumulated over one run."""

    model_config = ConfigDict(frozen=True)

    collapses: int = 0
    forced_collapses: int = 0
    contradictions: int = 0
    backtracks: int = 0
    elapsed_ms: float = 0.0


class SolveResult(BaseModel):
    """
    Final (or current) state of a solve.

    Attributes:
        outcome: COMPLETE or FAILED for a finished run; RUNNING if read mid-solve
        failure: Why the run failed (None unless outcome is FAILED)
        message: Human-readable description of the outcome
        seed: The seed actually used (drawn from the OS if none was given)
        width: Grid width
        depth: Grid depth
        assignments: Every position, mapped to its tile or None if unresolved
        collapse_order: Positions in commit order, surviving backtracks only
        stats: Run counters
    """

    model_config = ConfigDict(frozen=True)

    outcome: SolverState
    failure: FailureKind | None = None
    message: str = ""
    seed: int
    width: int
    depth: int
    assignments: dict[Position, TileAssignment | None]
    collapse_order: tuple[Position, ...] = ()
    stats: SolverStats = SolverStats()

    @property
    def succeeded(self) -> bool:
        return self.outcome == SolverState.COMPLETE

    def assignment(self, position: Position) -> TileAssignment | None:
        """The tile at a position, or None if unresolved."""
        return self.assignments.get(Position(*position))

    @property
    def unresolved(self) -> list[Position]:
        return [pos for pos, assignment in self.assignments.items() if assignment is None]

    def to_rows(self) -> list[list[TileAssignment | None]]:
        """Assignments as rows indexed [z][x], south row first."""
        return [
            [self.assignments.get(Position(x, z)) for x in range(self.width)]
            for z in range(self.depth)
        ]

    def to_json_dict(self) -> dict[str, Any]:
        """Plain JSON-serializable form, used by the CLI's --output."""
        cells = []
        for z in range(self.depth):
            for x in range(self.width):
                assignment = self.assignments.get(Position(x, z))
                cells.append({
                    "x": x,
                    "z": z,
                    "tile": assignment.tile_id if assignment else None,
                    "rotation": assignment.degrees if assignment else None,
                })

        return {
            "outcome": self.outcome.name.lower(),
            "failure": self.failure.value if self.failure else None,
            "message": self.message,
            "seed": self.seed,
            "width": self.width,
            "depth": self.depth,
            "stats": self.stats.model_dump(),
            "cells": cells,
            "collapse_order": [[p.x, p.z] for p in self.collapse_order],
        }

    def raise_for_failure(self):
        """Raise the matching HamletError if the run failed; no-op otherwise."""
        if self.outcome != SolverState.FAILED:
            return

        if self.failure == FailureKind.INITIAL_CONSTRAINTS:
            raise ConstraintContradictionError(self.message)
        if self.failure == FailureKind.CANCELLED:
            raise HamletError(self.message or "Solve was cancelled")
        raise BacktrackExhaustedError(self.message, backtracks=self.stats.backtracks)
