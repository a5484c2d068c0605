"""
reporting.py — Read-only reporting over saved weekly grids

  - SavedSchedule:         one archived week (name, week start, grid, timestamp)
  - aggregate_workload:    slot counts per worker over a date range
  - build_monthly_report:  per-worker shift list for one calendar month
  - export_monthly_report: Excel workbook (Summary + Detail sheets)
  - diff_grids:            per-slot changes between two grids

Nothing here calls back into the pipeline.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from station_scheduler.models import AssignmentGrid, Position

logger = logging.getLogger(__name__)


@dataclass
class SavedSchedule:
    name: str
    week_start: date
    grid: AssignmentGrid
    saved_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "week_start": self.week_start.isoformat(),
            "positions": list(self.grid.position_ids),
            "grid": self.grid.to_dict(),
            "saved_at": self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SavedSchedule":
        return cls(
            name=data["name"],
            week_start=date.fromisoformat(data["week_start"]),
            grid=AssignmentGrid.from_dict(data["grid"], position_ids=data.get("positions")),
            saved_at=data.get("saved_at", ""),
        )


@dataclass
class ShiftEntry:
    date: date
    position_id: int
    position_name: str


@dataclass
class WorkerMonthlyReport:
    worker_id: str
    shifts: List[ShiftEntry] = field(default_factory=list)

    @property
    def total_shifts(self) -> int:
        return len(self.shifts)


@dataclass
class SlotChange:
    date: date
    position_id: int
    position_name: str
    previous: Optional[str]
    current: Optional[str]


def aggregate_workload(
    grids: Iterable[AssignmentGrid],
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Dict[str, int]:
    """
    Count filled slots per worker across grids, limited to [start, end].

    Slots repeated across grids (the same week saved twice) count once.
    """
    seen = set()
    counts: Dict[str, int] = {}
    for grid in grids:
        for slot, worker_id in grid.items():
            if worker_id is None:
                continue
            if (start and slot.date < start) or (end and slot.date > end):
                continue
            key = (slot, worker_id)
            if key in seen:
                continue
            seen.add(key)
            counts[worker_id] = counts.get(worker_id, 0) + 1
    return counts


def build_monthly_report(
    saved: Sequence[SavedSchedule],
    positions: Sequence[Position],
    year: int,
    month: int,
) -> List[WorkerMonthlyReport]:
    """
    Per-worker shifts falling in (year, month), sorted by total descending.

    Duplicate (date, position) entries for the same worker count once.
    Positions no longer defined are labelled "Position <id>".
    """
    names = {p.id: p.name for p in positions}
    reports: Dict[str, WorkerMonthlyReport] = {}
    seen = set()

    for entry in saved:
        for slot, worker_id in entry.grid.items():
            if worker_id is None:
                continue
            if slot.date.year != year or slot.date.month != month:
                continue
            key = (worker_id, slot.date, slot.position_id)
            if key in seen:
                continue
            seen.add(key)
            report = reports.setdefault(worker_id, WorkerMonthlyReport(worker_id))
            report.shifts.append(ShiftEntry(
                date=slot.date,
                position_id=slot.position_id,
                position_name=names.get(slot.position_id, f"Position {slot.position_id}"),
            ))

    for report in reports.values():
        report.shifts.sort(key=lambda s: (s.date, s.position_id))
    result = sorted(reports.values(), key=lambda r: r.total_shifts, reverse=True)
    logger.info(f"Monthly report {year}-{month:02d}: {len(result)} workers, "
                f"{sum(r.total_shifts for r in result)} shifts")
    return result


def export_monthly_report(
    report: Sequence[WorkerMonthlyReport],
    output_path: Path,
    year: int,
    month: int,
    worker_names: Optional[Dict[str, str]] = None,
) -> None:
    """Write the monthly report as an Excel workbook: Summary + Detail sheets."""
    import pandas as pd

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    names = worker_names or {}

    summary = pd.DataFrame(
        [{"Worker": names.get(r.worker_id, r.worker_id), "Total Shifts": r.total_shifts} for r in report],
        columns=["Worker", "Total Shifts"],
    )
    total_row = pd.DataFrame(
        [{"Worker": "TOTAL", "Total Shifts": int(summary["Total Shifts"].sum()) if len(summary) else 0}]
    )
    summary = pd.concat([summary, total_row], ignore_index=True)

    detail = pd.DataFrame(
        [
            {
                "Worker": names.get(r.worker_id, r.worker_id),
                "Date": s.date.isoformat(),
                "Position": s.position_name,
            }
            for r in report
            for s in r.shifts
        ],
        columns=["Worker", "Date", "Position"],
    )

    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        summary.to_excel(writer, sheet_name="Summary", index=False)
        detail.to_excel(writer, sheet_name="Detail", index=False)
        writer.sheets["Summary"].column_dimensions["A"].width = 24
        for col, width in zip("ABC", (24, 14, 24)):
            writer.sheets["Detail"].column_dimensions[col].width = width

    logger.info(f"Monthly report {year}-{month:02d} exported → {output_path}")


def diff_grids(
    current: AssignmentGrid,
    previous: Optional[AssignmentGrid],
    positions: Sequence[Position] = (),
) -> List[SlotChange]:
    """
    Slots whose occupant differs between `previous` and `current`.

    Only slots of `current` are compared; a slot missing from `previous`
    counts as previously empty. No previous grid → no changes.
    """
    if previous is None:
        return []
    names = {p.id: p.name for p in positions}
    changes = []
    for slot, worker_id in current.items():
        before = previous[slot] if slot in previous else None
        if before != worker_id:
            changes.append(SlotChange(
                date=slot.date,
                position_id=slot.position_id,
                position_name=names.get(slot.position_id, f"Position {slot.position_id}"),
                previous=before,
                current=worker_id,
            ))
    return changes
