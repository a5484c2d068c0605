"""
schedule_config.py — Week layout, tiers and reporting constants

WEEK
────
  The working week starts on Sunday and runs five days (Sun–Thu).
  Any anchor date is rounded FORWARD to the next week start; an anchor
  that already falls on the week start is kept as-is.
  Weekend days (Fri/Sat) are never scheduled.

TIERS
─────
  starred: served first. Requests are commitments (pass 1) and the
           minimum weekly floor is actively pursued (pass 2).
  normal:  requests are best-effort (pass 3); filled one slot per day
           (pass 4) and by the residual sweep (pass 5).

  Any tier may be used by the multi-position last resort (pass 6) when
  the worker's multi_position flag is set.

CSV INPUT (config/workers.csv, config/positions.csv)
──────────────────────────────────────────────────
  workers:   id, name, starred, min_weekly_shifts, max_weekly_shifts,
             eligible_positions, multi_position, unavailable_dates, requests
  positions: id, name

  List columns accept ';', ',' or '|' as delimiters.
  Requests are 'YYYY-MM-DD@<position id>' tokens.
"""

from typing import Any, Dict

# ---------------------------------------------------------------------------
# Week layout
# ---------------------------------------------------------------------------
WEEK_START_WEEKDAY = 6      # date.weekday(): Monday=0 … Sunday=6
WORK_DAYS_PER_WEEK = 5

# ---------------------------------------------------------------------------
# Tier labels (CSV / JSON values)
# ---------------------------------------------------------------------------
STARRED = "starred"
NORMAL = "normal"

# ---------------------------------------------------------------------------
# Grid / export markers
# ---------------------------------------------------------------------------
UNFILLED_LABEL = "UNFILLED"
REQUEST_SEPARATOR = "@"
LIST_DELIMITERS = (",", ";", "|")

# ---------------------------------------------------------------------------
# Workload balance target (CV as a fraction, e.g. 0.25 = 25%)
# ---------------------------------------------------------------------------
FAIRNESS_TARGETS: Dict[str, Any] = {
    "cv_target": 0.25,
}

# ---------------------------------------------------------------------------
# Undo/redo depth kept by ScheduleHistory
# ---------------------------------------------------------------------------
HISTORY_LIMIT = 20

# ---------------------------------------------------------------------------
# Pass order (names used in logs and by run_pass lookups)
# ---------------------------------------------------------------------------
PASS_NAMES = (
    "committed_requests",
    "minimum_floor",
    "opportunistic_requests",
    "daily_fill",
    "residual_sweep",
    "multi_position_fallback",
)
