"""
locks.py — Locked-slot overlay

Pre-seeds a fresh grid before the pipeline runs, so a week can be
regenerated without disturbing cells the caller pinned by hand.

Rules:
  - A locked slot carries its occupant from previous_grid unchanged
    (an empty occupant stays empty and is never filled by the pipeline).
  - A lock only takes effect when the slot exists in BOTH the new week and
    previous_grid; anything else is dropped with a warning.
  - No previous_grid or no locks → entirely empty seed, nothing locked.
  - Locked occupants count as "assigned that day" and consume weekly
    capacity for the same run (see AssignmentState.from_seed).
"""

import logging
from datetime import date
from typing import Any, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from station_scheduler.models import AssignmentGrid, ScheduleValidationError, Slot

logger = logging.getLogger(__name__)


def normalize_locks(raw: Optional[Iterable[Any]]) -> FrozenSet[Slot]:
    """
    Coerce lock entries to Slots.

    Accepts Slot / (date, position_id) tuples and {"date", "position"} dicts
    (the on-disk form written by config.save_locks). Malformed entries are
    collected and raised together as ScheduleValidationError.
    """
    if not raw:
        return frozenset()
    out = set()
    errors: List[str] = []
    for i, entry in enumerate(raw):
        try:
            if isinstance(entry, dict):
                day, position_id = entry["date"], entry["position"]
            else:
                day, position_id = entry
            if not isinstance(day, date):
                day = date.fromisoformat(str(day))
            out.add(Slot(day, int(position_id)))
        except KeyError as e:
            errors.append(f"lock #{i}: missing key {e}")
        except (TypeError, ValueError) as e:
            errors.append(f"lock #{i}: {entry!r} is not a (date, position) pair ({e})")
    if errors:
        raise ScheduleValidationError(errors)
    return frozenset(out)


def seed_locked_grid(
    week: Sequence[date],
    position_ids: Sequence[int],
    previous_grid: Optional[AssignmentGrid] = None,
    locked_slots: Optional[Iterable[Any]] = None,
) -> Tuple[AssignmentGrid, FrozenSet[Slot]]:
    """
    Build the seed grid for one run.

    Returns:
        (seed_grid, effective_locks)
    """
    grid = AssignmentGrid(week, position_ids)
    locks = normalize_locks(locked_slots)

    if previous_grid is None or not locks:
        if locks:
            logger.warning(f"{len(locks)} locked slot(s) ignored — no previous grid supplied")
        return grid, frozenset()

    effective = set()
    for slot in sorted(locks):
        if slot not in grid:
            logger.warning(f"Lock {slot} is outside the scheduled week/positions — dropped")
            continue
        if slot not in previous_grid:
            logger.warning(f"Lock {slot} has no cell in the previous grid — dropped")
            continue
        occupant = previous_grid[slot]
        grid.assign(slot.date, slot.position_id, occupant)
        effective.add(slot)
        logger.debug(f"Locked {slot} → {occupant or '(empty)'}")

    if effective:
        logger.info(f"Seeded {len(effective)} locked slot(s) from previous grid")
    return grid, frozenset(effective)
