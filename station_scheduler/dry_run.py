"""
dry_run.py — Generate one week and write review outputs

Full orchestration:
  1. Load workers, positions, optional previous grid + locked slots
  2. Validate inputs (duplicate ids, unknown positions, coverage)
  3. Derive the week from the anchor date
  4. Run the six-pass pipeline
  5. Check constraints (hard + soft)
  6. Export CSV, Excel, workload report, violations report; archive on --save
  7. Print summary to console

Usage:
  python -m station_scheduler.dry_run --week 2026-10-18
  python -m station_scheduler.dry_run --week 2026-10-18 --previous outputs/grid.json --locks config/locked_slots.json
  python -m station_scheduler.dry_run --monthly 2026-10 --archive config/saved_schedules.json
"""

import argparse
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, Optional

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from station_scheduler.config import (
    load_grid,
    load_locks,
    load_positions,
    load_saved_schedules,
    load_workers,
    save_grid,
    save_saved_schedules,
)
from station_scheduler.constraints import ConstraintChecker
from station_scheduler.eligibility import validate_position_coverage
from station_scheduler.engine import (
    PIPELINE_PASSES,
    calculate_workload_metrics,
    get_week_dates,
    run_pipeline,
)
from station_scheduler.exporter import export_to_csv, export_to_excel, export_workload_report
from station_scheduler.models import ScheduleValidationError
from station_scheduler.reporting import (
    SavedSchedule,
    build_monthly_report,
    diff_grids,
    export_monthly_report,
)
from station_scheduler.schedule_config import FAIRNESS_TARGETS

logger = logging.getLogger(__name__)

OUTPUTS_DIR = PROJECT_ROOT / "outputs"


def run_dry_run(
    week_anchor: date,
    workers_path: Optional[Path] = None,
    positions_path: Optional[Path] = None,
    previous_path: Optional[Path] = None,
    locks_path: Optional[Path] = None,
    output_dir: Path = OUTPUTS_DIR,
    save: bool = False,
    archive_path: Optional[Path] = None,
) -> Dict[str, Any]:
    """
    Generate the week containing/after `week_anchor` and export review files.

    Returns:
        Dict with grid, metrics, violations, pass counts, changes, output paths

    Raises:
        ScheduleValidationError: roster/position errors (nothing is scheduled)
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    week = get_week_dates(week_anchor)
    prefix = f"week_{week[0].isoformat()}"
    sep = "=" * 62

    print(f"\n{sep}")
    print(f"  DRY RUN — week {week[0].isoformat()} → {week[-1].isoformat()}")
    print(f"{sep}\n")

    # ── 1. Load inputs ─────────────────────────────────────────────────────
    print("Step 1/6: Loading inputs...")
    workers = load_workers(workers_path)
    positions = load_positions(positions_path)
    previous_grid = load_grid(previous_path) if previous_path else None
    locked = load_locks(locks_path) if locks_path else frozenset()
    print(f"  ✓ {len(workers)} workers | {len(positions)} positions | {len(locked)} locked slots")

    # ── 2. Validate ────────────────────────────────────────────────────────
    print("\nStep 2/6: Validating inputs...")
    checker = ConstraintChecker(workers, positions, fairness_targets=FAIRNESS_TARGETS)
    roster_errors, roster_warnings = checker.validate_roster()
    coverage_warnings = validate_position_coverage(workers, positions)

    for err in roster_errors:
        print(f"  ✗ ROSTER ERROR: {err}")
    for w in roster_warnings + coverage_warnings:
        print(f"  ⚠ WARNING: {w}")
    if roster_errors:
        raise ScheduleValidationError(roster_errors)
    if not roster_warnings and not coverage_warnings:
        print("  ✓ Inputs valid")

    # ── 3. Pipeline ─────────────────────────────────────────────────────────
    print("\nStep 3/6: Running assignment passes...")
    state = run_pipeline(workers, positions, week_anchor, previous_grid, locked)
    grid = state.grid

    pass_counts = {p.name: 0 for p in PIPELINE_PASSES}
    for source in state.sources.values():
        pass_counts[source] = pass_counts.get(source, 0) + 1
    for p in PIPELINE_PASSES:
        print(f"  {p.number}. {p.description:<36} {pass_counts[p.name]:>3}")
    if pass_counts.get("locked"):
        print(f"     {'Locked from previous grid':<36} {pass_counts['locked']:>3}")

    metrics = calculate_workload_metrics(grid, workers)

    # ── 4. Constraint checking ─────────────────────────────────────────────
    print("\nStep 4/6: Checking constraints...")
    hard_violations, soft_violations = checker.check_all(
        grid,
        previous_grid=previous_grid,
        locked_slots=locked,
        metrics=metrics,
    )
    h_count = len(hard_violations)
    s_count = len(soft_violations)
    status = "✓" if h_count == 0 else "✗"
    print(f"  {status} Hard violations: {h_count}")
    print(f"    Soft violations: {s_count}")

    changes = diff_grids(grid, previous_grid, positions)
    if previous_grid is not None:
        print(f"  {len(changes)} slot(s) changed from previous grid")

    # ── 5. Export ──────────────────────────────────────────────────────────
    print("\nStep 5/6: Exporting outputs...")
    names = {w.id: w.name for w in workers}
    csv_path        = output_dir / f"{prefix}_schedule.csv"
    xlsx_path       = output_dir / f"{prefix}_schedule.xlsx"
    report_path     = output_dir / f"{prefix}_workload_report.txt"
    violations_path = output_dir / f"{prefix}_violations.txt"
    grid_path       = output_dir / f"{prefix}_grid.json"

    export_to_csv(grid, csv_path, positions=positions, worker_names=names)
    export_to_excel(grid, xlsx_path, positions=positions, worker_names=names)
    export_workload_report(
        metrics, report_path,
        worker_names=names,
        label=f"week of {week[0].isoformat()}",
        target_cv=FAIRNESS_TARGETS["cv_target"] * 100,
    )
    with open(violations_path, "w") as f:
        f.write("=== Constraint Violations ===\n\n")
        f.write(f"HARD ({h_count}):\n")
        for v in hard_violations:
            f.write(f"  {v}\n")
        f.write(f"\nSOFT ({s_count}):\n")
        for v in soft_violations:
            f.write(f"  {v}\n")
    save_grid(grid, grid_path)

    print(f"  ✓ CSV:        {csv_path.name}")
    print(f"  ✓ Excel:      {xlsx_path.name}")
    print(f"  ✓ Report:     {report_path.name}")
    print(f"  ✓ Violations: {violations_path.name}")
    print(f"  ✓ Grid:       {grid_path.name}")

    if save:
        print("\nStep 6/6: Archiving schedule...")
        saved = load_saved_schedules(archive_path)
        saved.append(SavedSchedule(name=prefix, week_start=week[0], grid=grid.copy()))
        save_saved_schedules(saved, archive_path)
        print(f"  ✓ {len(saved)} schedule(s) in archive")
    else:
        print("\nStep 6/6: Archive skipped (use --save)")

    # ── Summary ────────────────────────────────────────────────────────────
    print(f"\n{sep}")
    print("  SUMMARY")
    print(f"{sep}")
    print(f"  Filled slots:    {metrics['filled']} / {metrics['total']}  ({metrics['fill_rate']:.1f}%)")
    print(f"  Unfilled slots:  {metrics['unfilled']}")
    print(f"  Workload CV:     {metrics['cv']:.2f}%")
    print(f"  Hard violations: {h_count}  {status}")
    print(f"  Soft violations: {s_count}")
    for worker_id, missing in metrics["min_shortfall"].items():
        print(f"  ⚠ {names.get(worker_id, worker_id)} is {missing} below minimum")
    print(f"\n{sep}\n")

    return {
        "grid":            grid,
        "metrics":         metrics,
        "pass_counts":     pass_counts,
        "hard_violations": hard_violations,
        "soft_violations": soft_violations,
        "changes":         changes,
        "outputs": {
            "csv":        csv_path,
            "excel":      xlsx_path,
            "report":     report_path,
            "violations": violations_path,
            "grid":       grid_path,
        },
    }


def run_monthly_report(
    year: int,
    month: int,
    archive_path: Optional[Path] = None,
    workers_path: Optional[Path] = None,
    positions_path: Optional[Path] = None,
    output_dir: Path = OUTPUTS_DIR,
) -> Dict[str, Any]:
    """
    Build the per-worker shift report for one month from the saved-schedule
    archive and export it as an Excel workbook.

    Returns:
        Dict with report (list of WorkerMonthlyReport) and output path
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    label = f"{year}-{month:02d}"

    print(f"\nMonthly report {label}")
    saved = load_saved_schedules(archive_path)
    positions = load_positions(positions_path)
    names = {w.id: w.name for w in load_workers(workers_path)}
    print(f"  ✓ {len(saved)} saved schedule(s) | {len(positions)} positions")

    report = build_monthly_report(saved, positions, year, month)
    xlsx_path = output_dir / f"monthly_{label}.xlsx"
    export_monthly_report(report, xlsx_path, year, month, worker_names=names)

    for entry in report:
        print(f"  {names.get(entry.worker_id, entry.worker_id):<28} {entry.total_shifts:>3}")
    print(f"  ✓ Excel: {xlsx_path.name}\n")

    return {"report": report, "output": xlsx_path}


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main(argv=None):
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    parser = argparse.ArgumentParser(description="Generate one working week (dry run) or a monthly report")
    parser.add_argument("--week",       default=None,  help="Any date in or before the week, YYYY-MM-DD")
    parser.add_argument("--monthly",    default=None,  help="Export the YYYY-MM shift report from the archive instead")
    parser.add_argument("--workers",    default=None,  help="Workers CSV (default: config/workers.csv)")
    parser.add_argument("--positions",  default=None,  help="Positions CSV (default: config/positions.csv)")
    parser.add_argument("--previous",   default=None,  help="Previous grid JSON to copy locked slots from")
    parser.add_argument("--locks",      default=None,  help="Locked slots JSON")
    parser.add_argument("--output-dir", default=None,  help="Output directory (default: outputs/)")
    parser.add_argument("--save",       action="store_true", help="Append the result to the schedule archive")
    parser.add_argument("--archive",    default=None,  help="Schedule archive JSON (default: config/saved_schedules.json)")
    args = parser.parse_args(argv)
    output_dir = Path(args.output_dir) if args.output_dir else OUTPUTS_DIR
    archive_path = Path(args.archive) if args.archive else None

    if args.monthly:
        try:
            month_start = datetime.strptime(args.monthly, "%Y-%m")
        except ValueError as e:
            print(f"Invalid month format: {e}")
            sys.exit(1)
        try:
            run_monthly_report(
                month_start.year,
                month_start.month,
                archive_path=archive_path,
                workers_path=Path(args.workers) if args.workers else None,
                positions_path=Path(args.positions) if args.positions else None,
                output_dir=output_dir,
            )
        except (FileNotFoundError, ScheduleValidationError) as e:
            print(f"\n  ✗ Cannot proceed: {e}")
            sys.exit(1)
        return

    if not args.week:
        parser.error("--week is required unless --monthly is given")

    try:
        anchor = datetime.strptime(args.week, "%Y-%m-%d").date()
    except ValueError as e:
        print(f"Invalid date format: {e}")
        sys.exit(1)

    try:
        run_dry_run(
            anchor,
            workers_path=Path(args.workers) if args.workers else None,
            positions_path=Path(args.positions) if args.positions else None,
            previous_path=Path(args.previous) if args.previous else None,
            locks_path=Path(args.locks) if args.locks else None,
            output_dir=output_dir,
            save=args.save,
            archive_path=archive_path,
        )
    except (FileNotFoundError, ScheduleValidationError) as e:
        print(f"\n  ✗ Cannot proceed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
