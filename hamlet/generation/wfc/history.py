"""Bounded stack of grid snapshots used for backtracking."""

from __future__ import annotations

from collections import deque

from .grid import GridSnapshot


class History:
    """
    Most-recent-first stack of GridSnapshots.

    Pushing past capacity silently evicts the oldest snapshot, which bounds
    memory at the cost of how far back a long run can rewind.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"History capacity must be at least 1, got {capacity}")
        self.capacity = capacity
        self._snapshots: deque[GridSnapshot] = deque(maxlen=capacity)
        self.evicted = 0

    def push(self, snapshot: GridSnapshot):
        if len(self._snapshots) == self.capacity:
            self.evicted += 1
        self._snapshots.append(snapshot)

    def pop(self) -> GridSnapshot | None:
        """Remove and return the most recent snapshot, or None if empty."""
        if not self._snapshots:
            return None
        return self._snapshots.pop()

    def peek(self) -> GridSnapshot | None:
        if not self._snapshots:
            return None
        return self._snapshots[-1]

    def clear(self):
        self._snapshots.clear()

    def __len__(self) -> int:
        return len(self._snapshots)

    def __bool__(self) -> bool:
        return bool(self._snapshots)
