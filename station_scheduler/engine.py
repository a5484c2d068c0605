"""
engine.py — Weekly Station Scheduling Engine

Core algorithm: six ordered relaxation passes over one 5-day week.
Each pass only fills slots that are still open (empty and not locked):

  1. committed_requests       starred requests are commitments
  2. minimum_floor            starred workers up to their weekly minimum
  3. opportunistic_requests   normal requests, best effort
  4. daily_fill               normal workers, one slot per day
  5. residual_sweep           first free normal worker per open slot
  6. multi_position_fallback  multi-position workers may double up on a day

Workers are visited in caller order, positions in caller order (or the
worker's own eligible order), dates chronologically. No search and no
backtracking: identical inputs always give the identical grid, and
unfillable slots are simply left empty.

State lives in an explicit AssignmentState threaded through the passes,
so any single pass can be run in isolation with run_pass().
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import (
    Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Set,
    Tuple,
)

from station_scheduler.eligibility import (
    eligible_positions,
    is_available,
    remaining_capacity,
)
from station_scheduler.locks import seed_locked_grid
from station_scheduler.models import (
    AssignmentGrid,
    Position,
    ScheduleValidationError,
    Slot,
    Worker,
    validate_inputs,
)
from station_scheduler.schedule_config import (
    PASS_NAMES,
    WEEK_START_WEEKDAY,
    WORK_DAYS_PER_WEEK,
)

logger = logging.getLogger(__name__)

LOCKED_SOURCE = "locked"


# ---------------------------------------------------------------------------
# Week helpers
# ---------------------------------------------------------------------------

def get_week_start(anchor: date, week_start_weekday: int = WEEK_START_WEEKDAY) -> date:
    """Round `anchor` forward to the next week start (kept if already on it)."""
    if isinstance(anchor, datetime):
        anchor = anchor.date()
    return anchor + timedelta(days=(week_start_weekday - anchor.weekday()) % 7)


def get_week_dates(
    anchor: date,
    days: int = WORK_DAYS_PER_WEEK,
    week_start_weekday: int = WEEK_START_WEEKDAY,
) -> List[date]:
    """Return the `days` consecutive working dates of the week containing/after `anchor`."""
    start = get_week_start(anchor, week_start_weekday)
    return [start + timedelta(days=i) for i in range(days)]


# ---------------------------------------------------------------------------
# Pipeline state
# ---------------------------------------------------------------------------

@dataclass
class PassContext:
    """Read-only inputs shared by every pass."""

    workers: Tuple[Worker, ...]
    positions: Tuple[Position, ...]
    week: Tuple[date, ...]
    _eligible: Dict[str, Tuple[int, ...]] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self.workers = tuple(self.workers)
        self.positions = tuple(self.positions)
        self.week = tuple(self.week)
        self._eligible = {w.id: eligible_positions(w, self.positions) for w in self.workers}

    def eligible(self, worker: Worker) -> Tuple[int, ...]:
        if worker.id not in self._eligible:
            self._eligible[worker.id] = eligible_positions(worker, self.positions)
        return self._eligible[worker.id]

    def in_week(self, day: date) -> bool:
        return day in self.week


@dataclass
class AssignmentState:
    """
    Mutable bookkeeping carried across passes.

    held and assigned_days always agree with the grid; they are only
    updated through place().
    """

    grid: AssignmentGrid
    locked: FrozenSet[Slot] = frozenset()
    held: Dict[str, int] = field(default_factory=dict)
    assigned_days: Dict[str, Set[date]] = field(default_factory=dict)
    sources: Dict[Slot, str] = field(default_factory=dict)

    @classmethod
    def from_seed(
        cls,
        grid: AssignmentGrid,
        locked: Iterable[Slot] = (),
    ) -> "AssignmentState":
        """
        Build state from a (possibly pre-seeded) grid.

        Every occupant already in the grid consumes one unit of capacity and
        marks its date as assigned, locked occupants included.
        """
        state = cls(grid=grid, locked=frozenset(locked))
        for slot, worker_id in grid.items():
            if worker_id is None:
                continue
            state.held[worker_id] = state.held.get(worker_id, 0) + 1
            state.assigned_days.setdefault(worker_id, set()).add(slot.date)
            state.sources[slot] = LOCKED_SOURCE if slot in state.locked else "seed"
        return state

    def is_open(self, slot: Slot) -> bool:
        return slot in self.grid and slot not in self.locked and self.grid[slot] is None

    def held_by(self, worker_id: str) -> int:
        return self.held.get(worker_id, 0)

    def assigned_on(self, worker_id: str, day: date) -> bool:
        return day in self.assigned_days.get(worker_id, ())

    def capacity(self, worker: Worker) -> float:
        return remaining_capacity(worker, self.held_by(worker.id))

    def has_capacity(self, worker: Worker) -> bool:
        return self.capacity(worker) > 0

    def place(self, worker: Worker, slot: Slot, source: str) -> None:
        if not self.is_open(slot):
            raise RuntimeError(f"slot {slot} is not open")
        self.grid.assign(slot.date, slot.position_id, worker.id)
        self.held[worker.id] = self.held_by(worker.id) + 1
        self.assigned_days.setdefault(worker.id, set()).add(slot.date)
        self.sources[slot] = source
        logger.debug(f"{slot} → {worker.id} [{source}] (held={self.held[worker.id]})")


# ---------------------------------------------------------------------------
# Pass rules
# ---------------------------------------------------------------------------

PassRule = Callable[[PassContext, AssignmentState, List[Worker], str], int]


def _first_open_slot(
    ctx: PassContext,
    state: AssignmentState,
    worker: Worker,
    day: date,
) -> Optional[Slot]:
    for position_id in ctx.eligible(worker):
        slot = Slot(day, position_id)
        if state.is_open(slot):
            return slot
    return None


def _request_feasible(
    ctx: PassContext,
    state: AssignmentState,
    worker: Worker,
    slot: Slot,
) -> bool:
    return (
        ctx.in_week(slot.date)
        and is_available(worker, slot.date)
        and slot.position_id in ctx.eligible(worker)
        and state.is_open(slot)
        and not state.assigned_on(worker.id, slot.date)
        and state.has_capacity(worker)
    )


def _honor_requests(
    ctx: PassContext,
    state: AssignmentState,
    workers: List[Worker],
    source: str,
) -> int:
    """Passes 1 and 3: place each feasible request; the first claim on a slot wins."""
    filled = 0
    for worker in workers:
        for request in worker.requests:
            slot = request.slot
            if not _request_feasible(ctx, state, worker, slot):
                if ctx.in_week(slot.date):
                    logger.debug(f"{worker.id}: request {slot} not honored in {source}")
                continue
            state.place(worker, slot, source)
            filled += 1
    return filled


def _fill_minimum_floor(
    ctx: PassContext,
    state: AssignmentState,
    workers: List[Worker],
    source: str,
) -> int:
    """Pass 2: highest minimum first (stable), one slot per day until the floor is met."""
    filled = 0
    for worker in sorted(workers, key=lambda w: -w.min_weekly_shifts):
        for day in ctx.week:
            if state.held_by(worker.id) >= worker.min_weekly_shifts:
                break
            if not state.has_capacity(worker):
                break
            if state.assigned_on(worker.id, day) or not is_available(worker, day):
                continue
            slot = _first_open_slot(ctx, state, worker, day)
            if slot is not None:
                state.place(worker, slot, source)
                filled += 1
        if state.held_by(worker.id) < worker.min_weekly_shifts:
            logger.info(
                f"{worker.id}: minimum {worker.min_weekly_shifts} not reached "
                f"(holds {state.held_by(worker.id)})"
            )
    return filled


def _fill_one_per_day(
    ctx: PassContext,
    state: AssignmentState,
    workers: List[Worker],
    source: str,
) -> int:
    """Pass 4: each worker takes at most one open slot on each free day."""
    filled = 0
    for worker in workers:
        for day in ctx.week:
            if not state.has_capacity(worker):
                break
            if state.assigned_on(worker.id, day) or not is_available(worker, day):
                continue
            slot = _first_open_slot(ctx, state, worker, day)
            if slot is not None:
                state.place(worker, slot, source)
                filled += 1
    return filled


def _sweep_open_slots(allow_same_day: bool) -> PassRule:
    """Passes 5 and 6: walk open slots date-then-position, take the first fitting worker."""

    def rule(
        ctx: PassContext,
        state: AssignmentState,
        workers: List[Worker],
        source: str,
    ) -> int:
        filled = 0
        for slot in state.grid.slots():
            if not state.is_open(slot):
                continue
            for worker in workers:
                if slot.position_id not in ctx.eligible(worker):
                    continue
                if not allow_same_day and state.assigned_on(worker.id, slot.date):
                    continue
                if not is_available(worker, slot.date) or not state.has_capacity(worker):
                    continue
                state.place(worker, slot, source)
                filled += 1
                break
        return filled

    return rule


# ---------------------------------------------------------------------------
# Pass descriptors
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AssignmentPass:
    number: int
    name: str
    description: str
    applies_to: Callable[[Worker], bool]
    rule: PassRule


def _is_starred(worker: Worker) -> bool:
    return worker.starred


def _is_normal(worker: Worker) -> bool:
    return not worker.starred


def _is_multi_position(worker: Worker) -> bool:
    return worker.multi_position


PIPELINE_PASSES: Tuple[AssignmentPass, ...] = (
    AssignmentPass(1, PASS_NAMES[0], "Committed requests (starred)", _is_starred, _honor_requests),
    AssignmentPass(2, PASS_NAMES[1], "Minimum-floor fill (starred)", _is_starred, _fill_minimum_floor),
    AssignmentPass(3, PASS_NAMES[2], "Opportunistic requests (normal)", _is_normal, _honor_requests),
    AssignmentPass(4, PASS_NAMES[3], "One-slot-per-day fill (normal)", _is_normal, _fill_one_per_day),
    AssignmentPass(5, PASS_NAMES[4], "Residual sweep (normal)", _is_normal, _sweep_open_slots(False)),
    AssignmentPass(6, PASS_NAMES[5], "Multi-position last resort", _is_multi_position, _sweep_open_slots(True)),
)


def get_pass(name: str) -> AssignmentPass:
    for p in PIPELINE_PASSES:
        if p.name == name:
            return p
    raise KeyError(f"unknown pass: {name}")


def run_pass(
    assignment_pass: AssignmentPass,
    ctx: PassContext,
    state: AssignmentState,
) -> int:
    """Run one pass against `state`. Returns the number of slots it filled."""
    candidates = [w for w in ctx.workers if assignment_pass.applies_to(w)]
    filled = assignment_pass.rule(ctx, state, candidates, assignment_pass.name)
    logger.info(
        f"Pass {assignment_pass.number} ({assignment_pass.name}): "
        f"{filled} slot(s) filled from {len(candidates)} candidate(s)"
    )
    return filled


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def run_pipeline(
    workers: Sequence[Worker],
    positions: Sequence[Position],
    week_anchor: date,
    previous_grid: Optional[AssignmentGrid] = None,
    locked_slots: Optional[Iterable[Any]] = None,
    passes: Sequence[AssignmentPass] = PIPELINE_PASSES,
) -> AssignmentState:
    """
    Validate, seed and run the passes. Returns the final state, whose
    `sources` record which pass filled each slot.
    """
    if not isinstance(week_anchor, date):
        raise ScheduleValidationError([f"week anchor must be a date, got {week_anchor!r}"])
    validate_inputs(workers, positions)

    week = get_week_dates(week_anchor)
    position_ids = [p.id for p in positions]
    grid, locked = seed_locked_grid(week, position_ids, previous_grid, locked_slots)

    state = AssignmentState.from_seed(grid, locked)
    ctx = PassContext(workers=tuple(workers), positions=tuple(positions), week=tuple(week))

    logger.info(
        f"Scheduling week {week[0].isoformat()} → {week[-1].isoformat()}: "
        f"{len(workers)} workers, {len(positions)} positions, {len(locked)} locked"
    )
    for assignment_pass in passes:
        run_pass(assignment_pass, ctx, state)

    unfilled = grid.unfilled_slots()
    if unfilled:
        logger.warning(f"{len(unfilled)} of {len(grid)} slot(s) left unfilled")
    return state


def generate_schedule(
    workers: Sequence[Worker],
    positions: Sequence[Position],
    week_anchor: date,
    previous_grid: Optional[AssignmentGrid] = None,
    locked_slots: Optional[Iterable[Any]] = None,
    passes: Sequence[AssignmentPass] = PIPELINE_PASSES,
) -> AssignmentGrid:
    """
    Assign workers to positions for the working week at/after `week_anchor`.

    Args:
        workers:       Worker profiles. ORDER is the tie-break order of every pass.
        positions:     Positions. ORDER is the sweep order within a day.
        week_anchor:   Any date; rounded forward to the week start.
        previous_grid: Grid the locked occupants are copied from (not mutated).
        locked_slots:  Slots whose previous occupant must be kept.
        passes:        Pass list (defaults to the six standard passes).

    Returns:
        A new AssignmentGrid; empty cells are None.

    Raises:
        ScheduleValidationError: malformed workers/positions/anchor.
    """
    state = run_pipeline(workers, positions, week_anchor, previous_grid, locked_slots, passes)
    return state.grid


# ---------------------------------------------------------------------------
# Workload
# ---------------------------------------------------------------------------

def workload(grid: AssignmentGrid) -> Dict[str, int]:
    """Assigned slot count per worker id (workers with no slot are absent)."""
    counts: Dict[str, int] = {}
    for _slot, worker_id in grid.items():
        if worker_id is None:
            continue
        counts[worker_id] = counts.get(worker_id, 0) + 1
    return counts


def calculate_workload_metrics(
    grid: AssignmentGrid,
    workers: Sequence[Worker],
) -> Dict[str, Any]:
    """
    Per-worker counts plus balance and coverage figures.

    Returns:
        {
          counts: {worker_id: int},   (zeros included, roster order)
          mean, std, cv, min, max,
          filled, total, unfilled, fill_rate,
          min_shortfall: {worker_id: missing slots}   (starred only)
          over_capacity: {worker_id: excess slots}
        }
    """
    raw = workload(grid)
    counts: Dict[str, int] = {w.id: raw.get(w.id, 0) for w in workers}
    for worker_id, n in raw.items():
        if worker_id not in counts:
            # Occupant not in the current roster (e.g. a locked former worker)
            counts[worker_id] = n

    values = [counts[w.id] for w in workers]
    mean_val = sum(values) / len(values) if values else 0.0
    variance = sum((v - mean_val) ** 2 for v in values) / len(values) if values else 0.0
    std_val = math.sqrt(variance)
    cv = (std_val / mean_val * 100) if mean_val > 0 else 0.0

    total = len(grid)
    filled = len(grid.filled_slots())

    min_shortfall = {
        w.id: w.min_weekly_shifts - counts[w.id]
        for w in workers
        if w.starred and counts[w.id] < w.min_weekly_shifts
    }
    over_capacity = {
        w.id: counts[w.id] - w.max_weekly_shifts
        for w in workers
        if w.max_weekly_shifts is not None and counts[w.id] > w.max_weekly_shifts
    }

    return {
        "counts": counts,
        "mean": mean_val,
        "std": std_val,
        "cv": cv,
        "min": min(values) if values else 0,
        "max": max(values) if values else 0,
        "filled": filled,
        "total": total,
        "unfilled": total - filled,
        "fill_rate": (filled / total * 100) if total else 0.0,
        "min_shortfall": min_shortfall,
        "over_capacity": over_capacity,
    }
