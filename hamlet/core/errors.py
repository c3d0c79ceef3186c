"""Exception types for Hamlet.

InvalidCatalogError is fatal and raised before a solve starts. The
contradiction errors are recoverable signals used inside a solve; the solver
turns them (and exhausted backtracking) into a reported outcome instead of
letting them escape.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import Position


class HamletError(Exception):
    """Base exception for Hamlet errors."""

    pass


class InvalidCatalogError(HamletError):
    """A tile definition or catalog is malformed; the solver refuses to start."""

    def __init__(self, message: str, tile_id: str | None = None):
        super().__init__(message)
        self.tile_id = tile_id


class InvalidCompatibilityTableError(HamletError):
    """A socket compatibility table is incomplete or mis-declared."""

    pass


class ContradictionError(HamletError):
    """A cell was driven to zero viable possibilities."""

    def __init__(self, message: str, position: Position | None = None):
        super().__init__(message)
        self.position = position


class ConstraintContradictionError(ContradictionError):
    """An initial constraint could not be applied to the grid."""

    pass


class BacktrackExhaustedError(HamletError):
    """A contradiction occurred with no backtracking budget left."""

    def __init__(self, message: str, backtracks: int = 0):
        super().__init__(message)
        self.backtracks = backtracks
