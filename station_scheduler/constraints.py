"""
constraints.py — Constraint checks for a weekly assignment grid

Hard constraints (must NOT violate):
  - UNAVAILABLE:        No assignment on a worker's unavailable date
  - DOUBLE_BOOKING:     No worker in two slots on one date (unless multi-position)
  - NOT_ELIGIBLE:       Worker only in positions they are eligible for
  - CAPACITY_EXCEEDED:  Assigned slots ≤ max_weekly_shifts
  - LOCK_CHANGED:       Locked slots keep their previous occupant
  - UNKNOWN_WORKER:     Every occupant is in the roster

Soft constraints (reported, expected when infeasible):
  - UNFILLED_SLOT:       Slot left empty
  - MINIMUM_SHORTFALL:   Starred worker below min_weekly_shifts
  - REQUEST_NOT_HONORED: In-week request not granted
  - CV_EXCEEDED:         Workload CV above target

Usage:
  checker = ConstraintChecker(workers, positions)
  hard, soft = checker.check_all(grid)

Hand-edited grids can break hard constraints; the generator never does.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from station_scheduler.eligibility import eligible_positions, get_position_coverage_summary
from station_scheduler.engine import workload
from station_scheduler.locks import normalize_locks
from station_scheduler.models import AssignmentGrid, Position, Worker
from station_scheduler.schedule_config import FAIRNESS_TARGETS

logger = logging.getLogger(__name__)


class ConstraintSeverity(Enum):
    HARD = "hard"
    SOFT = "soft"


@dataclass
class ConstraintViolation:
    severity: ConstraintSeverity
    constraint_type: str
    description: str
    date: Optional[date] = None
    worker: Optional[str] = None
    position: Optional[int] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        parts = [f"[{self.severity.value.upper()}] {self.constraint_type}"]
        if self.date:
            parts.append(f"date={self.date.isoformat()}")
        if self.worker:
            parts.append(f"worker={self.worker}")
        if self.position is not None:
            parts.append(f"position={self.position}")
        parts.append(f"→ {self.description}")
        return " | ".join(parts)


class ConstraintChecker:
    """Validates an AssignmentGrid against the worker profiles it was built from."""

    def __init__(
        self,
        workers: Sequence[Worker],
        positions: Sequence[Position],
        fairness_targets: Optional[Dict[str, Any]] = None,
    ):
        self.workers = list(workers)
        self.positions = list(positions)
        self.fairness_targets = fairness_targets or FAIRNESS_TARGETS

        self._by_id: Dict[str, Worker] = {w.id: w for w in self.workers}
        self._eligible: Dict[str, Tuple[int, ...]] = {
            w.id: eligible_positions(w, self.positions) for w in self.workers
        }
        self._position_names: Dict[int, str] = {p.id: p.name for p in self.positions}

    # -----------------------------------------------------------------------
    # HARD checks
    # -----------------------------------------------------------------------

    def check_unavailable(self, grid: AssignmentGrid) -> List[ConstraintViolation]:
        """Hard: No assignment on an unavailable date."""
        violations = []
        for slot, worker_id in grid.items():
            worker = self._by_id.get(worker_id) if worker_id else None
            if worker and slot.date in worker.unavailable_dates:
                violations.append(ConstraintViolation(
                    severity=ConstraintSeverity.HARD,
                    constraint_type="UNAVAILABLE",
                    description=f"{worker_id} is unavailable but was assigned position {slot.position_id}",
                    date=slot.date,
                    worker=worker_id,
                    position=slot.position_id,
                ))
        return violations

    def check_double_booking(self, grid: AssignmentGrid) -> List[ConstraintViolation]:
        """Hard: At most one slot per worker per date unless multi_position is set."""
        violations = []
        seen: Dict[Tuple[str, date], int] = {}
        for slot, worker_id in grid.items():
            if worker_id is None:
                continue
            key = (worker_id, slot.date)
            if key not in seen:
                seen[key] = slot.position_id
                continue
            worker = self._by_id.get(worker_id)
            if worker and worker.multi_position:
                continue
            violations.append(ConstraintViolation(
                severity=ConstraintSeverity.HARD,
                constraint_type="DOUBLE_BOOKING",
                description=(
                    f"{worker_id} assigned to both position {seen[key]} "
                    f"and position {slot.position_id} on {slot.date.isoformat()}"
                ),
                date=slot.date,
                worker=worker_id,
                position=slot.position_id,
                details={"first_position": seen[key]},
            ))
        return violations

    def check_eligibility(self, grid: AssignmentGrid) -> List[ConstraintViolation]:
        """Hard: Workers only fill positions they are eligible for."""
        violations = []
        for slot, worker_id in grid.items():
            if worker_id is None or worker_id not in self._eligible:
                continue
            if slot.position_id not in self._eligible[worker_id]:
                violations.append(ConstraintViolation(
                    severity=ConstraintSeverity.HARD,
                    constraint_type="NOT_ELIGIBLE",
                    description=(
                        f"{worker_id} assigned to {self._position_names.get(slot.position_id, slot.position_id)} "
                        f"but is only eligible for {list(self._eligible[worker_id])}"
                    ),
                    date=slot.date,
                    worker=worker_id,
                    position=slot.position_id,
                ))
        return violations

    def check_capacity(self, grid: AssignmentGrid) -> List[ConstraintViolation]:
        """Hard: Weekly slot count never exceeds max_weekly_shifts."""
        violations = []
        counts = workload(grid)
        for worker in self.workers:
            held = counts.get(worker.id, 0)
            if worker.max_weekly_shifts is not None and held > worker.max_weekly_shifts:
                violations.append(ConstraintViolation(
                    severity=ConstraintSeverity.HARD,
                    constraint_type="CAPACITY_EXCEEDED",
                    description=f"{worker.id} holds {held} slots, maximum is {worker.max_weekly_shifts}",
                    worker=worker.id,
                    details={"held": held, "max": worker.max_weekly_shifts},
                ))
        return violations

    def check_locks(
        self,
        grid: AssignmentGrid,
        previous_grid: AssignmentGrid,
        locked_slots: Iterable[Any],
    ) -> List[ConstraintViolation]:
        """Hard: Every locked slot present in both grids kept its occupant."""
        violations = []
        for slot in sorted(normalize_locks(locked_slots)):
            if slot not in grid or slot not in previous_grid:
                continue
            before, after = previous_grid[slot], grid[slot]
            if before != after:
                violations.append(ConstraintViolation(
                    severity=ConstraintSeverity.HARD,
                    constraint_type="LOCK_CHANGED",
                    description=f"locked slot changed from {before or '(empty)'} to {after or '(empty)'}",
                    date=slot.date,
                    worker=after,
                    position=slot.position_id,
                    details={"previous": before},
                ))
        return violations

    def check_unknown_workers(self, grid: AssignmentGrid) -> List[ConstraintViolation]:
        """Hard: Occupants must be known workers."""
        violations = []
        for slot, worker_id in grid.items():
            if worker_id is not None and worker_id not in self._by_id:
                violations.append(ConstraintViolation(
                    severity=ConstraintSeverity.HARD,
                    constraint_type="UNKNOWN_WORKER",
                    description=f"{worker_id} is not in the worker roster",
                    date=slot.date,
                    worker=worker_id,
                    position=slot.position_id,
                ))
        return violations

    # -----------------------------------------------------------------------
    # SOFT checks
    # -----------------------------------------------------------------------

    def check_unfilled(self, grid: AssignmentGrid) -> List[ConstraintViolation]:
        """Soft: Flag empty slots — pool exhausted for that date/position."""
        return [
            ConstraintViolation(
                severity=ConstraintSeverity.SOFT,
                constraint_type="UNFILLED_SLOT",
                description=(
                    f"{self._position_names.get(slot.position_id, slot.position_id)} "
                    f"on {slot.date.isoformat()} could not be filled"
                ),
                date=slot.date,
                position=slot.position_id,
            )
            for slot in grid.unfilled_slots()
        ]

    def check_minimums(self, grid: AssignmentGrid) -> List[ConstraintViolation]:
        """Soft: Starred workers below their weekly floor."""
        counts = workload(grid)
        violations = []
        for worker in self.workers:
            held = counts.get(worker.id, 0)
            if worker.starred and held < worker.min_weekly_shifts:
                violations.append(ConstraintViolation(
                    severity=ConstraintSeverity.SOFT,
                    constraint_type="MINIMUM_SHORTFALL",
                    description=f"{worker.id} holds {held} slots, minimum is {worker.min_weekly_shifts}",
                    worker=worker.id,
                    details={"held": held, "min": worker.min_weekly_shifts},
                ))
        return violations

    def check_requests(self, grid: AssignmentGrid) -> List[ConstraintViolation]:
        """Soft: In-week requests that did not end up in the grid."""
        violations = []
        for worker in self.workers:
            for request in worker.requests:
                slot = request.slot
                if slot not in grid or grid[slot] == worker.id:
                    continue
                violations.append(ConstraintViolation(
                    severity=ConstraintSeverity.SOFT,
                    constraint_type="REQUEST_NOT_HONORED",
                    description=(
                        f"{worker.id} ({worker.tier.value}) requested position {slot.position_id}; "
                        f"slot holds {grid[slot] or '(empty)'}"
                    ),
                    date=slot.date,
                    worker=worker.id,
                    position=slot.position_id,
                ))
        return violations

    def check_cv_target(self, metrics: Dict[str, Any]) -> List[ConstraintViolation]:
        """Soft: Warn if workload CV exceeds target."""
        violations = []
        target = self.fairness_targets.get("cv_target", 0.25)
        cv = metrics.get("cv", 0) / 100  # cv stored as percentage
        if cv > target:
            violations.append(ConstraintViolation(
                severity=ConstraintSeverity.SOFT,
                constraint_type="CV_EXCEEDED",
                description=(
                    f"workload CV={cv:.1%} exceeds target {target:.1%}. "
                    f"Mean={metrics.get('mean', 0):.2f}, Std={metrics.get('std', 0):.2f}"
                ),
                details={"cv": cv, "target": target},
            ))
        return violations

    # -----------------------------------------------------------------------
    # Run all checks
    # -----------------------------------------------------------------------

    def check_all(
        self,
        grid: AssignmentGrid,
        previous_grid: Optional[AssignmentGrid] = None,
        locked_slots: Optional[Iterable[Any]] = None,
        metrics: Optional[Dict[str, Any]] = None,
    ) -> Tuple[List[ConstraintViolation], List[ConstraintViolation]]:
        """
        Run all hard and soft constraint checks.

        Returns:
            (hard_violations, soft_violations)
        """
        hard: List[ConstraintViolation] = []
        soft: List[ConstraintViolation] = []

        hard.extend(self.check_unavailable(grid))
        hard.extend(self.check_double_booking(grid))
        hard.extend(self.check_eligibility(grid))
        hard.extend(self.check_capacity(grid))
        hard.extend(self.check_unknown_workers(grid))
        if previous_grid is not None and locked_slots:
            hard.extend(self.check_locks(grid, previous_grid, locked_slots))

        soft.extend(self.check_unfilled(grid))
        soft.extend(self.check_minimums(grid))
        soft.extend(self.check_requests(grid))
        if metrics:
            soft.extend(self.check_cv_target(metrics))

        return hard, soft

    # -----------------------------------------------------------------------
    # Input validation (roster / positions)
    # -----------------------------------------------------------------------

    def validate_roster(self) -> Tuple[List[str], List[str]]:
        """
        Validate roster for structural integrity without raising.

        Returns:
            (errors, warnings) as lists of strings
        """
        errors = []
        warnings = []

        ids = [w.id for w in self.workers]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            errors.append(f"Duplicate worker ids: {dupes}")

        position_ids = [p.id for p in self.positions]
        dupe_positions = sorted({i for i in position_ids if position_ids.count(i) > 1})
        if dupe_positions:
            errors.append(f"Duplicate position ids: {dupe_positions}")

        known = set(position_ids)
        for w in self.workers:
            bad = [r.position_id for r in w.requests if r.position_id not in known]
            if bad:
                errors.append(f"{w.id}: requests reference unknown positions {bad}")
            unknown = [p for p in w.eligible_positions if p not in known]
            if unknown:
                warnings.append(f"{w.id}: eligible positions {unknown} are not defined")
            if w.eligible_positions and not self._eligible[w.id]:
                warnings.append(f"{w.id}: no defined position left in eligible list")
            if not w.starred and w.min_weekly_shifts:
                warnings.append(f"{w.id}: min_weekly_shifts is only pursued for starred workers")

        for position_id, eligible in get_position_coverage_summary(self.workers, self.positions).items():
            if not eligible:
                warnings.append(f"Position {position_id}: no eligible worker")

        if not self.positions:
            warnings.append("No positions defined — grid will be empty")

        return errors, warnings
