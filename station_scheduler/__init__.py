"""
Weekly Station Scheduler

Modules:
- models: Worker, Position, Request, Slot, AssignmentGrid, input validation
- eligibility: eligible positions, availability, remaining capacity
- locks: locked-slot overlay (seed grid from a previous run)
- engine: six-pass assignment pipeline, week helpers, workload
- constraints: hard/soft checks over a finished grid
- config: CSV/JSON loaders and persistence
- exporter: CSV / Excel / workload report
- reporting: monthly aggregation, grid diff, saved schedules
- history: bounded undo/redo of grid snapshots
"""

from .models import (
    AssignmentGrid,
    Position,
    Request,
    ScheduleValidationError,
    Slot,
    Tier,
    Worker,
    validate_inputs,
)

from .engine import (
    PIPELINE_PASSES,
    AssignmentPass,
    AssignmentState,
    PassContext,
    calculate_workload_metrics,
    generate_schedule,
    get_week_dates,
    get_week_start,
    run_pass,
    run_pipeline,
    workload,
)

from .history import ScheduleHistory

__all__ = [
    "AssignmentGrid",
    "Position",
    "Request",
    "ScheduleValidationError",
    "Slot",
    "Tier",
    "Worker",
    "validate_inputs",
    "PIPELINE_PASSES",
    "AssignmentPass",
    "AssignmentState",
    "PassContext",
    "calculate_workload_metrics",
    "generate_schedule",
    "get_week_dates",
    "get_week_start",
    "run_pass",
    "run_pipeline",
    "workload",
    "ScheduleHistory",
]
