"""
Wave Function Collapse solver.

This is the heart of WFC - the algorithm that observes (collapses) cells
and propagates constraints until the entire grid is determined.

The algorithm:
1. Find the cell with lowest entropy (most constrained)
2. Pick a tile for it (weighted random, respecting instance caps)
3. Pick a rotation that fits the already-collapsed neighbors
4. Snapshot, commit, then propagate: update neighbors based on sockets
5. On contradiction, restore the latest snapshot and try again
6. Repeat until complete or out of options
"""

from __future__ import annotations

import asyncio
import logging
import random
import secrets
import time
from collections.abc import Callable, Sequence

from pydantic import BaseModel, ConfigDict, Field

from hamlet.core.errors import ConstraintContradictionError
from hamlet.core.sockets import CompatibilityTable, TOWN_COMPATIBILITY
from hamlet.core.tiles import TileCatalog
from hamlet.core.types import Position
from hamlet.logging_config import (
    log_backtrack,
    log_collapse,
    log_contradiction,
    log_run_summary,
)

from ..constraints import ConstraintPhase, InitialConstraint
from .grid import Cell, Grid
from .history import History
from .propagation import CellNarrowedCallback, PropagationEngine
from .result import (
    FailureKind,
    SolveResult,
    SolverState,
    SolverStats,
    TileAssignment,
)

logger = logging.getLogger(__name__)

StepCallback = Callable[["WFCSolver"], object]


class SolverConfig(BaseModel):
    """
    Construction parameters for one solve.

    Attributes:
        width: Grid width in cells
        depth: Grid depth in cells
        seed: RNG seed; None draws one from the OS and records it in the result
        max_backtrack_attempts: Backtracks allowed before giving up
        use_backtracking: Snapshot before every commit and rewind on contradiction
        propagate_immediately: Propagate after every commit (off = rotation
                               checks against collapsed neighbors only)
        history_capacity: Max snapshots kept (None = width * depth * 2)
    """

    model_config = ConfigDict(frozen=True)

    width: int = Field(ge=1)
    depth: int = Field(ge=1)
    seed: int | None = None
    max_backtrack_attempts: int = Field(default=1000, ge=0)
    use_backtracking: bool = True
    propagate_immediately: bool = True
    history_capacity: int | None = Field(default=None, ge=1)

    @property
    def effective_history_capacity(self) -> int:
        if self.history_capacity is not None:
            return self.history_capacity
        return self.width * self.depth * 2


class WFCSolver:
    """
    The WFC algorithm implementation.

    Usage:
        solver = WFCSolver(catalog, SolverConfig(width=20, depth=20, seed=7))
        result = solver.solve()

    Or step by step (e.g. to animate):
        solver.start()
        while solver.step() == SolverState.RUNNING:
            ...
        result = solver.result()

    Or cooperatively inside an event loop:
        result = await solver.solve_async()

    Each solver owns its RNG, grid, instance counts and history, so any
    number of solvers can run side by side without interfering.
    """

    def __init__(
        self,
        catalog: TileCatalog,
        config: SolverConfig,
        compatibility: CompatibilityTable = TOWN_COMPATIBILITY,
        constraints: Sequence[InitialConstraint] = (),
    ):
        """
        Initialize the solver.

        Args:
            catalog: Validated tile catalog (read-only during the solve)
            config: Grid size, seed and search flags
            compatibility: Socket rules to solve against
            constraints: Callbacks run against a ConstraintPhase before the
                         main loop (forced tiles, exclusions)
        """
        self.catalog = catalog
        self.config = config
        self.compatibility = compatibility
        self.constraints = tuple(constraints)

        self.seed = config.seed if config.seed is not None else secrets.randbits(32)
        self.rng = random.Random(self.seed)

        self.state = SolverState.IDLE
        self.grid: Grid | None = None
        self.engine: PropagationEngine | None = None
        self.history = History(config.effective_history_capacity)

        self.step_count = 0
        self.collapses = 0
        self.forced_collapses = 0
        self.contradictions = 0
        self.backtracks = 0
        self.failure: FailureKind | None = None
        self.message = ""

        # Last cell committed (for visualization/debugging)
        self.last_collapsed: Position | None = None

        self._narrowed_observers: list[CellNarrowedCallback] = []
        self._step_observers: list[StepCallback] = []
        self._cancel_requested = False
        self._started_at: float | None = None
        self._elapsed = 0.0

    # =========================================================================
    # Observers
    # =========================================================================

    def on_cell_narrowed(self, callback: CellNarrowedCallback):
        """Observe each position propagation narrows (visualization only)."""
        self._narrowed_observers.append(callback)
        if self.engine is not None:
            self.engine.on_cell_narrowed(callback)

    def on_step(self, callback: StepCallback):
        """Observe the solver after every complete loop iteration."""
        self._step_observers.append(callback)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> SolverState:
        """
        Build the grid and run the initial-constraints phase (Idle -> Running).

        A constraint contradiction ends the run in FAILED right here; it is
        reported through result(), never raised.
        """
        if self.state != SolverState.IDLE:
            raise RuntimeError(f"Solver already started (state={self.state.name})")

        self._started_at = time.perf_counter()
        self.grid = Grid(self.config.width, self.config.depth, self.catalog, self.rng)
        self.engine = PropagationEngine(self.grid, self.compatibility)
        for callback in self._narrowed_observers:
            self.engine.on_cell_narrowed(callback)
        self.state = SolverState.RUNNING

        logger.debug(
            f"Solve started: {self.config.width}x{self.config.depth}, "
            f"{len(self.catalog)} tiles, seed={self.seed}"
        )

        if self.constraints:
            phase = ConstraintPhase(self.grid, self.engine, self.rng)
            try:
                for constraint in self.constraints:
                    constraint(phase)
            except ConstraintContradictionError as e:
                self.contradictions += 1
                self.forced_collapses = phase.forced_collapses
                log_contradiction(logger, self.step_count, e.position, str(e))
                self._fail(FailureKind.INITIAL_CONSTRAINTS, str(e))
                self._log_summary()
                return self.state
            self.forced_collapses = phase.forced_collapses

        return self.state

    def step(self) -> SolverState:
        """
        Run exactly one iteration of the main loop.

        Returns the solver state after this iteration.
        """
        if self.state == SolverState.IDLE:
            self.start()
        if self.state != SolverState.RUNNING:
            return self.state

        self.step_count += 1
        self._iterate()
        self._mark_time()

        for callback in self._step_observers:
            callback(self)

        if self.state != SolverState.RUNNING:
            self._log_summary()
        return self.state

    def solve(self) -> SolveResult:
        """Run the solver to completion and return the result."""
        if self.state == SolverState.IDLE:
            self.start()
        while self.state == SolverState.RUNNING:
            self.step()
        return self.result()

    async def solve_async(self) -> SolveResult:
        """
        Run the solver, yielding to the event loop between iterations.

        cancel() is only looked at here, between iterations, so a cancelled
        run always stops on a consistent grid.
        """
        if self.state == SolverState.IDLE:
            self.start()
        while self.state == SolverState.RUNNING:
            await asyncio.sleep(0)
            if self._cancel_requested:
                self._fail(FailureKind.CANCELLED, "Solve cancelled")
                self._log_summary()
                break
            self.step()
        return self.result()

    def cancel(self):
        """Ask a cooperative solve to stop at its next yield point."""
        self._cancel_requested = True

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def result(self) -> SolveResult:
        """Snapshot of the run so far (call between iterations)."""
        assignments: dict[Position, TileAssignment | None] = {}
        collapse_order: tuple[Position, ...] = ()
        if self.grid is not None:
            for cell in self.grid.all_cells():
                assignments[cell.position] = (
                    TileAssignment(tile_id=cell.tile_id, rotation=cell.rotation)
                    if cell.collapsed else None
                )
            collapse_order = tuple(self.grid.collapse_order)
        else:
            for z in range(self.config.depth):
                for x in range(self.config.width):
                    assignments[Position(x, z)] = None

        return SolveResult(
            outcome=self.state,
            failure=self.failure,
            message=self.message,
            seed=self.seed,
            width=self.config.width,
            depth=self.config.depth,
            assignments=assignments,
            collapse_order=collapse_order,
            stats=self.stats(),
        )

    def stats(self) -> SolverStats:
        return SolverStats(
            collapses=self.collapses,
            forced_collapses=self.forced_collapses,
            contradictions=self.contradictions,
            backtracks=self.backtracks,
            elapsed_ms=self._elapsed * 1000.0,
        )

    @property
    def collapsed_count(self) -> int:
        """Number of cells currently collapsed."""
        if self.grid is None:
            return 0
        return sum(1 for cell in self.grid.all_cells() if cell.collapsed)

    # =========================================================================
    # Main loop
    # =========================================================================

    def _iterate(self):
        grid = self.grid

        # 1. Done?
        if grid.is_fully_collapsed():
            self.state = SolverState.COMPLETE
            self.message = "All cells collapsed"
            return

        # 2. Lowest-entropy cell
        cell = grid.min_entropy_cell()
        if cell is None:
            self._handle_contradiction(None, "no valid uncollapsed cell left")
            return

        # 3-4. Tile and rotation
        choice = self._choose_tile_and_rotation(cell)
        if choice is None:
            self._handle_contradiction(cell.position, "no tile has a valid rotation")
            return
        tile_id, rotation = choice

        # 5. Snapshot the pre-commit state
        if self.config.use_backtracking:
            self.history.push(grid.snapshot())

        # 6. Commit
        grid.collapse(cell.position, tile_id, rotation)
        self.collapses += 1
        self.last_collapsed = cell.position
        log_collapse(logger, self.step_count, cell.position, tile_id, rotation)

        # 7. Propagate
        if self.config.propagate_immediately and not self.engine.propagate(cell.position):
            self._handle_contradiction(
                self.engine.last_contradiction,
                f"propagation from {cell.position} emptied a neighbor",
            )

    def _choose_tile_and_rotation(self, cell: Cell) -> tuple[str, int] | None:
        """
        Pick a tile and a rotation for a cell, dropping tiles that can't fit.

        A tile with no rotation compatible with the collapsed neighbors is
        removed from the cell and selection is retried. The loop runs at
        most once per possibility. If every tile is dropped the cell ends up
        empty, which the caller treats as a contradiction.
        """
        for _ in range(len(cell.possibilities)):
            tile_id = self._select_tile(cell)
            if tile_id is None:
                break

            rotations = self._valid_rotations(cell.position, tile_id)
            if rotations:
                return tile_id, self.rng.choice(rotations)

            logger.debug(f"No valid rotation for {tile_id} at {cell.position}, trying another tile")
            cell.remove_possibility(tile_id)

        return None

    def _select_tile(self, cell: Cell) -> str | None:
        """
        Weighted random tile choice, honoring per-tile instance caps.

        Tiles at their cap are filtered out; if that leaves nothing, the cap is
        ignored rather than stalling. All-zero weights fall back to a uniform
        choice.
        """
        possibilities = self.catalog.ordered(cell.possibilities)
        if not possibilities:
            return None

        available = [
            tile_id for tile_id in possibilities
            if self._under_cap(tile_id)
        ]
        if not available:
            available = possibilities

        weights = [self.catalog.weight(tile_id) for tile_id in available]
        if sum(weights) <= 0:
            return self.rng.choice(available)
        return self.rng.choices(available, weights=weights, k=1)[0]

    def _under_cap(self, tile_id: str) -> bool:
        cap = self.catalog[tile_id].max_instances
        return cap is None or self.grid.instance_count(tile_id) < cap

    def _valid_rotations(self, position: Position, tile_id: str) -> list[int]:
        """Rotations of a tile whose sockets suit every collapsed neighbor."""
        return [
            rotation for rotation in self.catalog[tile_id].rotations()
            if self.engine.fits_collapsed_neighbors(position, tile_id, rotation)
        ]

    # =========================================================================
    # Contradictions and backtracking
    # =========================================================================

    def _handle_contradiction(self, position: Position | None, reason: str):
        """Backtrack to the latest snapshot, or fail if that isn't possible."""
        self.contradictions += 1
        log_contradiction(logger, self.step_count, position, reason)

        if not self.config.use_backtracking:
            self._fail(FailureKind.BACKTRACKING_DISABLED, f"Contradiction with backtracking disabled: {reason}")
            return

        if self.backtracks >= self.config.max_backtrack_attempts:
            self._fail(
                FailureKind.BACKTRACK_EXHAUSTED,
                f"Max backtracks ({self.config.max_backtrack_attempts}) reached: {reason}",
            )
            return

        snapshot = self.history.pop()
        if snapshot is None:
            self._fail(FailureKind.HISTORY_EMPTY, f"Contradiction with no snapshots to restore: {reason}")
            return

        self.grid.restore(snapshot)
        self.backtracks += 1
        log_backtrack(
            logger,
            self.step_count,
            self.backtracks,
            self.config.max_backtrack_attempts,
            len(self.history),
        )

    def _fail(self, kind: FailureKind, message: str) -> SolverState:
        self.state = SolverState.FAILED
        self.failure = kind
        self.message = message
        self._mark_time()
        return self.state

    def _mark_time(self):
        if self._started_at is not None:
            self._elapsed = time.perf_counter() - self._started_at

    def _log_summary(self):
        log_run_summary(
            logger,
            self.state.name.lower(),
            self.seed,
            self.collapses,
            self.contradictions,
            self.backtracks,
            self._elapsed * 1000.0,
            details=self.failure.value if self.failure else None,
        )
