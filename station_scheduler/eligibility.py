"""
eligibility.py — Which positions a worker may fill, and when

Functions:
  - eligible_positions: explicit list, or every position when the list is empty
  - is_available:       False on the worker's unavailable dates
  - remaining_capacity: weekly ceiling minus slots already held (inf if unbounded)
  - qualified_workers:  workers eligible for one position (caller order kept)

An empty eligible list means "eligible for every position". This follows the
current position set, so adding a position silently widens such workers.
"""

import math
from datetime import date
from typing import Dict, List, Optional, Sequence, Tuple, Union

from station_scheduler.models import AssignmentGrid, Position, Worker

Capacity = Union[int, float]    # float only ever as math.inf


def eligible_positions(
    worker: Worker,
    positions: Sequence[Position],
) -> Tuple[int, ...]:
    """
    Return the position ids `worker` may fill, in the order they are tried.

    Explicit lists keep the worker's own order and drop ids that are not in
    `positions`. An empty list yields every position in caller order.
    """
    all_ids = [p.id for p in positions]
    if not worker.eligible_positions:
        return tuple(all_ids)
    known = set(all_ids)
    return tuple(pid for pid in worker.eligible_positions if pid in known)


def is_available(worker: Worker, day: date) -> bool:
    """False iff `day` is one of the worker's unavailable dates."""
    return day not in worker.unavailable_dates


def remaining_capacity(
    worker: Worker,
    held: Union[AssignmentGrid, int],
) -> Capacity:
    """
    Slots the worker may still take this week.

    `held` is either a grid (slots counted from it) or a precomputed count.
    Returns math.inf when the worker has no maximum.
    """
    if worker.max_weekly_shifts is None:
        return math.inf
    count = len(held.slots_of(worker.id)) if isinstance(held, AssignmentGrid) else int(held)
    return max(worker.max_weekly_shifts - count, 0)


def qualified_workers(
    workers: Sequence[Worker],
    position_id: int,
    positions: Sequence[Position],
) -> List[Worker]:
    """Workers eligible for `position_id`, original order preserved."""
    return [w for w in workers if position_id in eligible_positions(w, positions)]


def get_position_coverage_summary(
    workers: Sequence[Worker],
    positions: Sequence[Position],
) -> Dict[int, List[str]]:
    """Return {position_id: [worker ids eligible for it]} for audit output."""
    return {
        p.id: [w.id for w in qualified_workers(workers, p.id, positions)]
        for p in positions
    }


def validate_position_coverage(
    workers: Sequence[Worker],
    positions: Sequence[Position],
    days_per_week: Optional[int] = None,
) -> List[str]:
    """
    Warn about positions nobody can fill, or that cannot be covered every
    day without the multi-position fallback.

    Returns:
        List of warning strings (empty = all OK)
    """
    from station_scheduler.schedule_config import WORK_DAYS_PER_WEEK

    days = days_per_week or WORK_DAYS_PER_WEEK
    warnings = []
    for p in positions:
        qualified = qualified_workers(workers, p.id, positions)
        if not qualified:
            warnings.append(f"Position '{p.name}' ({p.id}) has NO eligible worker")
            continue
        weekly = sum(
            days if w.max_weekly_shifts is None else min(w.max_weekly_shifts, days)
            for w in qualified
        )
        if weekly < days:
            warnings.append(
                f"Position '{p.name}' ({p.id}): eligible workers can cover at most "
                f"{weekly} of {days} days"
            )
    return warnings
