"""
exporter.py — Export Layer for the Station Scheduler

Outputs:
  - Excel (.xlsx): formatted position × date grid with worker names
  - CSV: flat (date, position, worker) for programmatic review
  - Workload report (.txt): per-worker slot counts, CV, coverage,
    starred minimum shortfalls

Usage:
  from station_scheduler.exporter import export_to_csv, export_to_excel, export_workload_report
"""

import csv
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from station_scheduler.models import AssignmentGrid, Position
from station_scheduler.schedule_config import UNFILLED_LABEL

logger = logging.getLogger(__name__)


def _position_names(grid: AssignmentGrid, positions: Optional[Sequence[Position]]) -> Dict[int, str]:
    names = {p.id: p.name for p in (positions or [])}
    return {pid: names.get(pid, f"Position {pid}") for pid in grid.position_ids}


# ---------------------------------------------------------------------------
# CSV Export
# ---------------------------------------------------------------------------

def export_to_csv(
    grid: AssignmentGrid,
    output_path: Path,
    positions: Optional[Sequence[Position]] = None,
    worker_names: Optional[Dict[str, str]] = None,
) -> None:
    """
    Export grid to flat CSV: date, position_id, position, worker_id, worker.

    Empty slots are written with worker_id "" and worker UNFILLED.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    names = _position_names(grid, positions)
    people = worker_names or {}

    with open(output_path, "w", newline="") as f:
        writer = csv.DictWriter(
            f, fieldnames=["date", "position_id", "position", "worker_id", "worker"]
        )
        writer.writeheader()
        for slot, worker_id in grid.items():
            writer.writerow({
                "date": slot.date.isoformat(),
                "position_id": slot.position_id,
                "position": names[slot.position_id],
                "worker_id": worker_id or "",
                "worker": people.get(worker_id, worker_id) if worker_id else UNFILLED_LABEL,
            })

    logger.info(f"CSV exported → {output_path}")


# ---------------------------------------------------------------------------
# Excel Export
# ---------------------------------------------------------------------------

def grid_to_frame(
    grid: AssignmentGrid,
    positions: Optional[Sequence[Position]] = None,
    worker_names: Optional[Dict[str, str]] = None,
) -> Any:
    """Return a DataFrame: rows = position names, columns = ISO dates."""
    import pandas as pd

    names = _position_names(grid, positions)
    people = worker_names or {}
    data = {
        d.isoformat(): [
            people.get(grid.get(d, pid), grid.get(d, pid)) if grid.get(d, pid) else UNFILLED_LABEL
            for pid in grid.position_ids
        ]
        for d in grid.week
    }
    frame = pd.DataFrame(data, index=[names[pid] for pid in grid.position_ids])
    frame.index.name = "Position"
    return frame


def export_to_excel(
    grid: AssignmentGrid,
    output_path: Path,
    positions: Optional[Sequence[Position]] = None,
    worker_names: Optional[Dict[str, str]] = None,
    sheet_name: str = "Weekly Schedule",
) -> None:
    """
    Export grid to a formatted Excel sheet.

    Rows = positions (caller order), columns = week dates, cells = worker
    name (or id) and UNFILLED for empty slots.
    """
    import pandas as pd

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    frame = grid_to_frame(grid, positions, worker_names)
    with pd.ExcelWriter(output_path, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=sheet_name)
        _format_excel_grid(writer, sheet_name)

    logger.info(f"Excel exported → {output_path}")


def _format_excel_grid(writer: Any, sheet_name: str) -> None:
    """Apply basic formatting to Excel grid: column widths, header bold, unfilled in red."""
    from openpyxl.styles import Alignment, Font, PatternFill

    ws = writer.sheets[sheet_name]
    header_fill = PatternFill("solid", fgColor="1F4E79")
    header_font = Font(bold=True, color="FFFFFF")
    unfilled_font = Font(color="C00000", italic=True)
    alt = PatternFill("solid", fgColor="EBF3FB")

    for cell in ws[1]:
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = Alignment(horizontal="center")

    for col in ws.columns:
        max_len = max((len(str(c.value)) for c in col if c.value), default=8)
        ws.column_dimensions[col[0].column_letter].width = min(max_len + 2, 30)

    for i, row in enumerate(ws.iter_rows(min_row=2), start=2):
        for cell in row:
            if i % 2 == 0:
                cell.fill = alt
            if cell.value == UNFILLED_LABEL:
                cell.font = unfilled_font


# ---------------------------------------------------------------------------
# Workload Report
# ---------------------------------------------------------------------------

def export_workload_report(
    metrics: Dict[str, Any],
    output_path: Path,
    worker_names: Optional[Dict[str, str]] = None,
    label: str = "",
    target_cv: float = 25.0,
) -> str:
    """
    Export the workload audit report (text format).

    Args:
        metrics:      Output of engine.calculate_workload_metrics()
        output_path:  .txt file path
        worker_names: worker_id → display name
        label:        Title suffix (e.g. the week)
        target_cv:    CV target in percent

    Returns the report text.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    names = worker_names or {}

    counts = metrics.get("counts", {})
    mean_val = metrics.get("mean", 0)
    cv = metrics.get("cv", 0)
    shortfall = metrics.get("min_shortfall", {})
    pass_fail = "✓ PASS" if cv <= target_cv else "✗ FAIL"
    sep = "=" * 62

    lines: List[str] = [
        sep,
        f"  WORKLOAD REPORT{(' — ' + label) if label else ''}",
        sep,
        "",
        f"  Slots filled:        {metrics.get('filled', 0)} / {metrics.get('total', 0)}"
        f"  ({metrics.get('fill_rate', 0):.1f}%)",
        f"  Unfilled slots:      {metrics.get('unfilled', 0)}",
        f"  Workload CV:         {cv:.2f}%  (target ≤{target_cv:.0f}%)  {pass_fail}",
        f"  Mean slots/worker:   {mean_val:.2f}",
        f"  Std Dev:             {metrics.get('std', 0):.2f}",
        f"  Min / Max:           {metrics.get('min', 0)} / {metrics.get('max', 0)}",
        "",
        "─" * 62,
        "  Per-Worker Slots",
        "─" * 62,
        f"  {'Worker':<28} {'Slots':>6} {'Δ Mean':>8}",
    ]

    for worker_id in sorted(counts, key=lambda w: counts[w], reverse=True):
        n = counts[worker_id]
        flag = f"  ← {shortfall[worker_id]} below minimum" if worker_id in shortfall else ""
        lines.append(f"  {names.get(worker_id, worker_id):<28} {n:>6d} {n - mean_val:>+8.2f}{flag}")

    if shortfall:
        lines += ["", f"  Starred workers below minimum: {len(shortfall)}"]

    lines += ["", sep]
    report_text = "\n".join(lines)
    with open(output_path, "w") as f:
        f.write(report_text)

    logger.info(f"Workload report exported → {output_path}")
    return report_text
