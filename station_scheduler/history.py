"""
history.py — Bounded undo/redo over grid snapshots

The caller pushes a snapshot before and after each generate_schedule() call
or hand edit; the engine itself never touches history. Snapshots are
copies, so later edits to a live grid do not leak into the history.
"""

import logging
from typing import List, Optional

from station_scheduler.models import AssignmentGrid
from station_scheduler.schedule_config import HISTORY_LIMIT

logger = logging.getLogger(__name__)


class ScheduleHistory:

    def __init__(self, limit: int = HISTORY_LIMIT):
        if limit < 1:
            raise ValueError(f"history limit must be ≥ 1, got {limit}")
        self.limit = limit
        self._undo: List[AssignmentGrid] = []
        self._redo: List[AssignmentGrid] = []

    @property
    def current(self) -> Optional[AssignmentGrid]:
        return self._undo[-1].copy() if self._undo else None

    def push(self, grid: AssignmentGrid) -> None:
        """Record a new state. Clears the redo stack; drops the oldest past the limit."""
        if self._undo and self._undo[-1] == grid:
            return
        self._undo.append(grid.copy())
        self._redo.clear()
        if len(self._undo) > self.limit:
            del self._undo[0]
            logger.debug(f"History limit {self.limit} reached — oldest snapshot dropped")

    def can_undo(self) -> bool:
        return len(self._undo) > 1

    def can_redo(self) -> bool:
        return bool(self._redo)

    def undo(self) -> AssignmentGrid:
        """Step back one state and return it."""
        if not self.can_undo():
            raise IndexError("nothing to undo")
        self._redo.append(self._undo.pop())
        return self._undo[-1].copy()

    def redo(self) -> AssignmentGrid:
        """Re-apply the most recently undone state and return it."""
        if not self.can_redo():
            raise IndexError("nothing to redo")
        self._undo.append(self._redo.pop())
        return self._undo[-1].copy()

    def __len__(self) -> int:
        return len(self._undo)
