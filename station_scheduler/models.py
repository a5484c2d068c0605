"""
models.py — Domain model for the weekly station scheduler

Value types (immutable for the duration of one run):
  - Worker:   profile (tier, bounds, eligibility, availability, requests)
  - Position: a work station (small integer id + display name)
  - Request:  (date, position) wish attached to a worker
  - Slot:     (date, position) pair, the unit of assignment

AssignmentGrid is the one mutable type: a total mapping from every slot of
one week to a worker id or None (empty). The pipeline fills it; callers may
hand-edit it afterwards (assign / clear / swap) before the next run.

Validation failures are raised as ScheduleValidationError before the
pipeline runs. The pipeline itself never raises for infeasibility.
"""

import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import (
    Any, Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Optional,
    Sequence, Tuple,
)

from station_scheduler import schedule_config

logger = logging.getLogger(__name__)


class ScheduleValidationError(ValueError):
    """Invalid input shape, reported before any scheduling happens."""

    def __init__(self, errors: Iterable[str]):
        self.errors: List[str] = list(errors)
        super().__init__("; ".join(self.errors) or "invalid schedule input")


class Tier(Enum):
    STARRED = schedule_config.STARRED
    NORMAL = schedule_config.NORMAL


class Slot(NamedTuple):
    date: date
    position_id: int

    def __str__(self) -> str:
        return f"{self.date.isoformat()}#{self.position_id}"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# ---------------------------------------------------------------------------
# Request / Position
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Request:
    date: date
    position_id: int

    def __post_init__(self):
        if not isinstance(self.date, date):
            raise ScheduleValidationError([f"request date must be a date, got {self.date!r}"])
        if not _is_int(self.position_id):
            raise ScheduleValidationError(
                [f"request position id must be an int, got {self.position_id!r}"]
            )

    @property
    def slot(self) -> Slot:
        return Slot(self.date, self.position_id)


@dataclass(frozen=True)
class Position:
    id: int
    name: str = ""

    def __post_init__(self):
        if not _is_int(self.id):
            raise ScheduleValidationError([f"position id must be an int, got {self.id!r}"])
        if not self.name:
            object.__setattr__(self, "name", f"Position {self.id}")


# ---------------------------------------------------------------------------
# Worker
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Worker:
    """
    A schedulable person.

    min_weekly_shifts is a soft floor and is only pursued for starred
    workers. max_weekly_shifts is a hard ceiling for every tier (None means
    unbounded). An empty eligible_positions tuple means "every position".
    """

    id: str
    name: str = ""
    tier: Tier = Tier.NORMAL
    min_weekly_shifts: int = 0
    max_weekly_shifts: Optional[int] = None
    eligible_positions: Tuple[int, ...] = ()
    multi_position: bool = False
    unavailable_dates: FrozenSet[date] = frozenset()
    requests: Tuple[Request, ...] = ()

    def __post_init__(self):
        errors: List[str] = []

        if not isinstance(self.id, str) or not self.id.strip():
            raise ScheduleValidationError([f"worker id must be a non-empty string, got {self.id!r}"])
        if not self.name:
            object.__setattr__(self, "name", self.id)

        if not isinstance(self.tier, Tier):
            try:
                object.__setattr__(self, "tier", Tier(str(self.tier).strip().lower()))
            except ValueError:
                errors.append(f"{self.id}: unknown tier {self.tier!r}")

        # Normalise collection fields so callers may pass lists / sets.
        object.__setattr__(self, "eligible_positions", tuple(self.eligible_positions))
        object.__setattr__(self, "unavailable_dates", frozenset(self.unavailable_dates))
        object.__setattr__(self, "requests", tuple(
            r if isinstance(r, Request) else Request(*r) for r in self.requests
        ))

        if not _is_int(self.min_weekly_shifts) or self.min_weekly_shifts < 0:
            errors.append(f"{self.id}: min_weekly_shifts must be an int ≥ 0, got {self.min_weekly_shifts!r}")
        if self.max_weekly_shifts is not None:
            if not _is_int(self.max_weekly_shifts) or self.max_weekly_shifts < 0:
                errors.append(
                    f"{self.id}: max_weekly_shifts must be an int ≥ 0, got {self.max_weekly_shifts!r}"
                )
            elif _is_int(self.min_weekly_shifts) and self.max_weekly_shifts < self.min_weekly_shifts:
                errors.append(
                    f"{self.id}: max_weekly_shifts={self.max_weekly_shifts} is below "
                    f"min_weekly_shifts={self.min_weekly_shifts}"
                )
        bad_ids = [p for p in self.eligible_positions if not _is_int(p)]
        if bad_ids:
            errors.append(f"{self.id}: eligible position ids must be ints, got {bad_ids}")
        bad_dates = [d for d in self.unavailable_dates if not isinstance(d, date)]
        if bad_dates:
            errors.append(f"{self.id}: unavailable dates must be dates, got {bad_dates}")

        if errors:
            raise ScheduleValidationError(errors)

    @property
    def starred(self) -> bool:
        return self.tier is Tier.STARRED


# ---------------------------------------------------------------------------
# Boundary validation (runs before the pipeline)
# ---------------------------------------------------------------------------

def validate_inputs(
    workers: Sequence[Worker],
    positions: Sequence[Position],
) -> List[str]:
    """
    Reject malformed worker/position sets.

    Raises ScheduleValidationError for duplicate ids and for requests that
    reference a position not in `positions`. Eligible-position ids that are
    not in `positions` are only warned about (they are ignored by the
    eligibility resolver). Returns the warnings.
    """
    errors: List[str] = []
    warnings: List[str] = []

    for w in workers:
        if not isinstance(w, Worker):
            errors.append(f"expected Worker, got {type(w).__name__}")
    for p in positions:
        if not isinstance(p, Position):
            errors.append(f"expected Position, got {type(p).__name__}")
    if errors:
        raise ScheduleValidationError(errors)

    position_ids = [p.id for p in positions]
    dupes = sorted({pid for pid in position_ids if position_ids.count(pid) > 1})
    if dupes:
        errors.append(f"Duplicate position ids: {dupes}")

    worker_ids = [w.id for w in workers]
    dupe_workers = sorted({wid for wid in worker_ids if worker_ids.count(wid) > 1})
    if dupe_workers:
        errors.append(f"Duplicate worker ids: {dupe_workers}")

    known = set(position_ids)
    for w in workers:
        for r in w.requests:
            if r.position_id not in known:
                errors.append(
                    f"{w.id}: request for {r.date.isoformat()} references unknown position {r.position_id}"
                )
        unknown = [p for p in w.eligible_positions if p not in known]
        if unknown:
            warnings.append(f"{w.id}: eligible positions {unknown} are not defined and will be ignored")

    if errors:
        raise ScheduleValidationError(errors)
    for msg in warnings:
        logger.warning(msg)
    return warnings


# ---------------------------------------------------------------------------
# Assignment grid
# ---------------------------------------------------------------------------

class AssignmentGrid:
    """
    Total mapping {Slot: worker_id | None} for one week.

    Slots are kept in date-then-position order, which is also the order the
    residual and last-resort passes sweep them in.
    """

    def __init__(
        self,
        week: Sequence[date],
        position_ids: Sequence[int],
        cells: Optional[Mapping[Tuple[date, int], Optional[str]]] = None,
    ):
        self.week: Tuple[date, ...] = tuple(week)
        self.position_ids: Tuple[int, ...] = tuple(position_ids)
        self._cells: Dict[Slot, Optional[str]] = {
            Slot(d, p): None for d in self.week for p in self.position_ids
        }
        for key, worker_id in (cells or {}).items():
            self._cells[self._slot(*key)] = worker_id or None

    def _slot(self, day: date, position_id: int) -> Slot:
        slot = Slot(day, position_id)
        if slot not in self._cells:
            raise KeyError(f"slot {slot} is not part of this grid")
        return slot

    # -- read access --------------------------------------------------------

    def get(self, day: date, position_id: int) -> Optional[str]:
        return self._cells[self._slot(day, position_id)]

    def __getitem__(self, slot: Tuple[date, int]) -> Optional[str]:
        return self.get(*slot)

    def __contains__(self, slot: object) -> bool:
        return slot in self._cells

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self):
        return iter(self._cells)

    def slots(self) -> List[Slot]:
        return list(self._cells)

    def items(self) -> List[Tuple[Slot, Optional[str]]]:
        return list(self._cells.items())

    def filled_slots(self) -> List[Slot]:
        return [s for s, w in self._cells.items() if w is not None]

    def unfilled_slots(self) -> List[Slot]:
        return [s for s, w in self._cells.items() if w is None]

    def slots_of(self, worker_id: str) -> List[Slot]:
        return [s for s, w in self._cells.items() if w == worker_id]

    def day(self, day: date) -> Dict[int, Optional[str]]:
        """Return {position_id: worker_id | None} for one date."""
        return {p: self._cells[Slot(day, p)] for p in self.position_ids if Slot(day, p) in self._cells}

    # -- hand edits ---------------------------------------------------------

    def assign(self, day: date, position_id: int, worker_id: Optional[str]) -> None:
        self._cells[self._slot(day, position_id)] = worker_id or None

    def clear(self, day: date, position_id: int) -> None:
        self.assign(day, position_id, None)

    def swap(self, first: Tuple[date, int], second: Tuple[date, int]) -> None:
        """Exchange the occupants of two slots."""
        a, b = self._slot(*first), self._slot(*second)
        self._cells[a], self._cells[b] = self._cells[b], self._cells[a]

    def copy(self) -> "AssignmentGrid":
        return AssignmentGrid(self.week, self.position_ids, self._cells)

    # -- comparison / serialization ----------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AssignmentGrid):
            return NotImplemented
        return (
            self.week == other.week
            and self.position_ids == other.position_ids
            and self._cells == other._cells
        )

    def __repr__(self) -> str:
        filled = len(self.filled_slots())
        start = self.week[0].isoformat() if self.week else "-"
        return f"AssignmentGrid(week={start}, slots={len(self)}, filled={filled})"

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        """JSON-friendly form: {iso_date: {position_id: worker_id or ""}}."""
        return {
            d.isoformat(): {str(p): self._cells[Slot(d, p)] or "" for p in self.position_ids}
            for d in self.week
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Mapping[Any, Optional[str]]],
        position_ids: Optional[Sequence[int]] = None,
    ) -> "AssignmentGrid":
        """Inverse of to_dict(). Position order defaults to first appearance."""
        week = sorted(date.fromisoformat(str(d)) for d in data)
        if position_ids is None:
            seen: List[int] = []
            for day_cells in data.values():
                for raw in day_cells:
                    pid = int(raw)
                    if pid not in seen:
                        seen.append(pid)
            position_ids = seen
        cells: Dict[Tuple[date, int], Optional[str]] = {}
        for date_str, day_cells in data.items():
            d = date.fromisoformat(str(date_str))
            for raw_pid, worker_id in day_cells.items():
                pid = int(raw_pid)
                if pid in position_ids:
                    cells[(d, pid)] = worker_id or None
        return cls(week, position_ids, cells)
