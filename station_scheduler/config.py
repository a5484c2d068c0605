"""
config.py — Configuration Module for the Station Scheduler

Loads worker and position records (CSV), previous grids and locked-slot
sets (JSON), and the saved-schedule archive used by monthly reports.
Re-exports schedule_config constants.

List columns are tolerant of the usual spreadsheet mess: ';', ',' and '|'
delimiters, stray quotes, blank cells read back by pandas as NaN.
"""

import json
import logging
import math
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from station_scheduler.models import (
    AssignmentGrid,
    Position,
    Request,
    ScheduleValidationError,
    Slot,
    Tier,
    Worker,
)

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_DIR = PROJECT_ROOT / "config"
DEFAULT_WORKERS_PATH   = DEFAULT_CONFIG_DIR / "workers.csv"
DEFAULT_POSITIONS_PATH = DEFAULT_CONFIG_DIR / "positions.csv"
DEFAULT_LOCKS_PATH     = DEFAULT_CONFIG_DIR / "locked_slots.json"
DEFAULT_ARCHIVE_PATH   = DEFAULT_CONFIG_DIR / "saved_schedules.json"


# ---------------------------------------------------------------------------
# Re-export from schedule_config
# ---------------------------------------------------------------------------
from station_scheduler.schedule_config import (    # noqa: E402
    FAIRNESS_TARGETS,
    HISTORY_LIMIT,
    LIST_DELIMITERS,
    PASS_NAMES,
    REQUEST_SEPARATOR,
    UNFILLED_LABEL,
    WEEK_START_WEEKDAY,
    WORK_DAYS_PER_WEEK,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return str(value).strip() in ("", "nan", "None")


def _parse_yes_no(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if _is_blank(value):
        return False
    return str(value).strip().lower() in ("yes", "true", "1", "y", "starred", "*")


def _parse_optional_int(value: Any) -> Optional[int]:
    if _is_blank(value):
        return None
    return int(float(str(value).strip()))


def _split_list(raw: Any) -> List[str]:
    """
    Split a delimited cell into stripped tokens.
    Handles "1;2;3", "1,2,3", "1|2|3", '"1" "2"' and single values.
    """
    if _is_blank(raw):
        return []
    s = str(raw).strip().strip('"').strip("'")
    sep = LIST_DELIMITERS[0]
    s = s.replace('" "', sep)
    for delim in LIST_DELIMITERS[1:]:
        s = s.replace(delim, sep)
    parts = [p.strip().strip('"').strip("'") for p in s.split(sep)]
    return [p for p in parts if p]


def _parse_int_list(raw: Any) -> List[int]:
    return [int(float(p)) for p in _split_list(raw)]


def _parse_position_id(raw: Any) -> int:
    if _is_blank(raw):
        raise ValueError("position row has no id")
    try:
        return int(float(str(raw).strip()))
    except ValueError:
        raise ValueError(f"position id must be a number, got {str(raw).strip()!r}") from None


def _parse_date(raw: Any) -> date:
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    return datetime.strptime(str(raw).strip(), "%Y-%m-%d").date()


def _parse_requests(raw: Any) -> List[Request]:
    """Parse 'YYYY-MM-DD@<position>' tokens into Requests."""
    requests = []
    for token in _split_list(raw):
        if REQUEST_SEPARATOR not in token:
            raise ValueError(f"request '{token}' must look like YYYY-MM-DD{REQUEST_SEPARATOR}<position>")
        day, position = token.split(REQUEST_SEPARATOR, 1)
        requests.append(Request(_parse_date(day), int(position)))
    return requests


# ---------------------------------------------------------------------------
# Worker / position loaders
# ---------------------------------------------------------------------------

def parse_worker_row(row: Dict[str, Any]) -> Worker:
    """Build a Worker from one CSV/dict row (see schedule_config for columns)."""
    tier_raw = row.get("tier")
    if _is_blank(tier_raw):
        tier = Tier.STARRED if _parse_yes_no(row.get("starred")) else Tier.NORMAL
    else:
        tier = Tier(str(tier_raw).strip().lower())

    if _is_blank(row.get("id")):
        raise ValueError("worker row has no id")
    min_shifts = _parse_optional_int(row.get("min_weekly_shifts"))
    return Worker(
        id=str(row["id"]).strip(),
        name="" if _is_blank(row.get("name")) else str(row["name"]).strip(),
        tier=tier,
        min_weekly_shifts=min_shifts or 0,
        max_weekly_shifts=_parse_optional_int(row.get("max_weekly_shifts")),
        eligible_positions=tuple(_parse_int_list(row.get("eligible_positions"))),
        multi_position=_parse_yes_no(row.get("multi_position")),
        unavailable_dates=frozenset(_parse_date(d) for d in _split_list(row.get("unavailable_dates"))),
        requests=tuple(_parse_requests(row.get("requests"))),
    )


def load_workers(workers_path: Optional[Path] = None) -> List[Worker]:
    """
    Load worker profiles from workers.csv.

    Expected columns:
      id, name, starred, min_weekly_shifts, max_weekly_shifts,
      eligible_positions, multi_position, unavailable_dates, requests

    Returns workers in file order (file order is the scheduling tie-break).
    """
    import pandas as pd

    path = Path(workers_path or DEFAULT_WORKERS_PATH)
    if not path.exists():
        raise FileNotFoundError(f"Workers file not found: {path}")

    df = pd.read_csv(path, dtype=str)
    if "id" not in df.columns:
        raise ScheduleValidationError([f"{path.name}: missing required column 'id'"])

    workers: List[Worker] = []
    errors: List[str] = []
    for line_no, (_, row) in enumerate(df.iterrows(), start=2):
        try:
            workers.append(parse_worker_row(row.to_dict()))
        except ScheduleValidationError as e:
            errors.extend(f"{path.name}:{line_no}: {msg}" for msg in e.errors)
        except (KeyError, ValueError) as e:
            errors.append(f"{path.name}:{line_no}: {e}")
    if errors:
        raise ScheduleValidationError(errors)

    logger.info(f"Loaded {len(workers)} workers from {path}")
    return workers


def load_positions(positions_path: Optional[Path] = None) -> List[Position]:
    """
    Load positions from positions.csv (columns: id, name). File order is kept.

    Bad rows are collected as "file:line: message" and raised together as
    ScheduleValidationError.
    """
    import pandas as pd

    path = Path(positions_path or DEFAULT_POSITIONS_PATH)
    if not path.exists():
        raise FileNotFoundError(f"Positions file not found: {path}")

    df = pd.read_csv(path, dtype=str)
    if "id" not in df.columns:
        raise ScheduleValidationError([f"{path.name}: missing required column 'id'"])

    positions: List[Position] = []
    errors: List[str] = []
    for line_no, (_, row) in enumerate(df.iterrows(), start=2):
        name = row.get("name")
        try:
            positions.append(Position(
                id=_parse_position_id(row["id"]),
                name="" if _is_blank(name) else str(name).strip(),
            ))
        except ScheduleValidationError as e:
            errors.extend(f"{path.name}:{line_no}: {msg}" for msg in e.errors)
        except (KeyError, ValueError) as e:
            errors.append(f"{path.name}:{line_no}: {e}")
    if errors:
        raise ScheduleValidationError(errors)

    logger.info(f"Loaded {len(positions)} positions from {path}")
    return positions


# ---------------------------------------------------------------------------
# Grid / lock persistence
# ---------------------------------------------------------------------------

def _read_json(path: Path) -> Any:
    try:
        with open(path) as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ScheduleValidationError([f"{path.name}: invalid JSON ({e})"]) from e


def save_grid(grid: AssignmentGrid, grid_path: Path) -> None:
    """Persist a grid as JSON with metadata."""
    path = Path(grid_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "week_start": grid.week[0].isoformat() if grid.week else None,
        "positions": list(grid.position_ids),
        "grid": grid.to_dict(),
        "last_updated": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    logger.info(f"Grid saved to {path}")


def load_grid(grid_path: Path) -> AssignmentGrid:
    """Load a grid written by save_grid() (a bare to_dict() mapping also works)."""
    path = Path(grid_path)
    if not path.exists():
        raise FileNotFoundError(f"Grid file not found: {path}")
    data = _read_json(path)
    try:
        if "grid" in data:
            grid = AssignmentGrid.from_dict(data["grid"], position_ids=data.get("positions"))
        else:
            grid = AssignmentGrid.from_dict(data)
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ScheduleValidationError([f"{path.name}: malformed grid ({e})"]) from e
    logger.info(f"Loaded grid from {path}: {len(grid.filled_slots())}/{len(grid)} filled")
    return grid


def save_locks(locks: Iterable[Slot], locks_path: Optional[Path] = None) -> None:
    path = Path(locks_path or DEFAULT_LOCKS_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = [{"date": s.date.isoformat(), "position": s.position_id} for s in sorted(locks)]
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    logger.info(f"{len(data)} locked slot(s) saved to {path}")


def load_locks(locks_path: Optional[Path] = None) -> FrozenSet[Slot]:
    """Load locked slots. Returns an empty set if the file is missing."""
    from station_scheduler.locks import normalize_locks

    path = Path(locks_path or DEFAULT_LOCKS_PATH)
    if not path.exists():
        logger.warning(f"Locked slots not found: {path}. Nothing locked.")
        return frozenset()
    data = _read_json(path)
    if not isinstance(data, list):
        raise ScheduleValidationError([f"{path.name}: expected a JSON list of locked slots"])
    try:
        return normalize_locks(data)
    except ScheduleValidationError as e:
        raise ScheduleValidationError(f"{path.name}: {msg}" for msg in e.errors) from e


# ---------------------------------------------------------------------------
# Saved-schedule archive (input to monthly reports)
# ---------------------------------------------------------------------------

def load_saved_schedules(archive_path: Optional[Path] = None) -> List[Any]:
    """Load the archive of saved weekly schedules. Missing file → empty list."""
    from station_scheduler.reporting import SavedSchedule

    path = Path(archive_path or DEFAULT_ARCHIVE_PATH)
    if not path.exists():
        logger.warning(f"Schedule archive not found: {path}. Returning empty list.")
        return []
    data = _read_json(path)
    try:
        return [SavedSchedule.from_dict(entry) for entry in data]
    except (AttributeError, KeyError, TypeError, ValueError) as e:
        raise ScheduleValidationError([f"{path.name}: malformed archive entry ({e})"]) from e


def save_saved_schedules(saved: Iterable[Any], archive_path: Optional[Path] = None) -> None:
    path = Path(archive_path or DEFAULT_ARCHIVE_PATH)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = [s.to_dict() for s in saved]
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
    logger.info(f"{len(data)} saved schedule(s) written to {path}")


# ---------------------------------------------------------------------------
# Full config dict
# ---------------------------------------------------------------------------

def get_config() -> Dict[str, Any]:
    return {
        "week_start_weekday":  WEEK_START_WEEKDAY,
        "work_days_per_week":  WORK_DAYS_PER_WEEK,
        "unfilled_label":      UNFILLED_LABEL,
        "fairness_targets":    FAIRNESS_TARGETS.copy(),
        "history_limit":       HISTORY_LIMIT,
        "passes":              list(PASS_NAMES),
    }


# ---------------------------------------------------------------------------
# Quick check of the default config directory
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    positions = load_positions()
    print(f"Loaded {len(positions)} positions")
    for p in positions:
        print(f"  [{p.id:2d}] {p.name}")

    workers = load_workers()
    print(f"\nLoaded {len(workers)} workers")
    for w in workers:
        star = "★" if w.starred else " "
        limits = f"min={w.min_weekly_shifts} max={w.max_weekly_shifts if w.max_weekly_shifts is not None else '-'}"
        eligible = ", ".join(str(p) for p in w.eligible_positions) or "(all)"
        print(f"  {star} {w.id:<10} {w.name:<22} {limits} | {eligible}")
