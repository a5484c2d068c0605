"""
Tests for CSV / JSON loaders and persistence
"""

import json
import sys
from datetime import date
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from station_scheduler.config import (
    DEFAULT_POSITIONS_PATH,
    DEFAULT_WORKERS_PATH,
    get_config,
    load_grid,
    load_locks,
    load_positions,
    load_workers,
    parse_worker_row,
    save_grid,
    save_locks,
)
from station_scheduler.engine import get_week_dates
from station_scheduler.models import AssignmentGrid, Request, ScheduleValidationError, Slot, Tier

SUNDAY = date(2026, 10, 18)

WORKERS_CSV = """id,name,starred,min_weekly_shifts,max_weekly_shifts,eligible_positions,multi_position,unavailable_dates,requests
w01,Dana,yes,2,4,1;2,no,,2026-10-20@1
w02,Avi,no,,,,yes,2026-10-21|2026-10-22,
"""


@pytest.fixture
def workers_csv(tmp_path):
    path = tmp_path / "workers.csv"
    path.write_text(WORKERS_CSV)
    return path


class TestLoadWorkers:

    def test_fields_parsed(self, workers_csv):
        dana, avi = load_workers(workers_csv)
        assert dana.tier is Tier.STARRED
        assert dana.min_weekly_shifts == 2
        assert dana.max_weekly_shifts == 4
        assert dana.eligible_positions == (1, 2)
        assert dana.requests == (Request(date(2026, 10, 20), 1),)
        assert not avi.starred
        assert avi.max_weekly_shifts is None
        assert avi.eligible_positions == ()
        assert avi.multi_position
        assert avi.unavailable_dates == {date(2026, 10, 21), date(2026, 10, 22)}

    def test_file_order_kept(self, workers_csv):
        assert [w.id for w in load_workers(workers_csv)] == ["w01", "w02"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_workers(tmp_path / "nope.csv")

    def test_row_errors_collected(self, tmp_path):
        path = tmp_path / "workers.csv"
        path.write_text("id,min_weekly_shifts,max_weekly_shifts,requests\n"
                        "a,3,1,\n"
                        "b,,,tomorrow\n")
        with pytest.raises(ScheduleValidationError) as exc:
            load_workers(path)
        assert len(exc.value.errors) == 2
        assert exc.value.errors[0].startswith("workers.csv:2:")

    def test_tier_column(self):
        worker = parse_worker_row({"id": "x", "tier": "Starred"})
        assert worker.starred

    def test_sample_config_loads(self):
        """The bundled config/ files are valid"""
        workers = load_workers(DEFAULT_WORKERS_PATH)
        positions = load_positions(DEFAULT_POSITIONS_PATH)
        assert workers and positions


class TestLoadPositions:

    def test_order_and_default_name(self, tmp_path):
        path = tmp_path / "positions.csv"
        path.write_text("id,name\n3,Warehouse\n1,\n")
        positions = load_positions(path)
        assert [p.id for p in positions] == [3, 1]
        assert positions[1].name == "Position 1"


class TestPersistence:

    def test_grid_save_load(self, tmp_path):
        grid = AssignmentGrid(get_week_dates(SUNDAY), [2, 1])
        grid.assign(SUNDAY, 1, "w01")
        path = tmp_path / "grid.json"
        save_grid(grid, path)
        data = json.loads(path.read_text())
        assert data["week_start"] == "2026-10-18"
        assert load_grid(path) == grid

    def test_bare_grid_dict(self, tmp_path):
        path = tmp_path / "grid.json"
        path.write_text(json.dumps({"2026-10-18": {"1": "a"}}))
        assert load_grid(path).get(SUNDAY, 1) == "a"

    def test_locks_save_load(self, tmp_path):
        path = tmp_path / "locks.json"
        locks = {Slot(SUNDAY, 2), Slot(SUNDAY, 1)}
        save_locks(locks, path)
        assert load_locks(path) == frozenset(locks)

    def test_missing_locks_file(self, tmp_path):
        assert load_locks(tmp_path / "none.json") == frozenset()

    def test_get_config(self):
        cfg = get_config()
        assert cfg["work_days_per_week"] == 5
        assert len(cfg["passes"]) == 6


class TestMalformedInputs:
    """Bad files are reported as ScheduleValidationError, never a raw parse error"""

    def test_bad_position_rows_collected(self, tmp_path):
        path = tmp_path / "positions.csv"
        path.write_text("id,name\nabc,Reception\n2,Cashier\n,Warehouse\n")
        with pytest.raises(ScheduleValidationError) as exc:
            load_positions(path)
        assert len(exc.value.errors) == 2
        assert exc.value.errors[0].startswith("positions.csv:2:")
        assert exc.value.errors[1].startswith("positions.csv:4:")

    def test_positions_missing_id_column(self, tmp_path):
        path = tmp_path / "positions.csv"
        path.write_text("name\nReception\n")
        with pytest.raises(ScheduleValidationError):
            load_positions(path)

    def test_workers_missing_id_column(self, tmp_path):
        path = tmp_path / "workers.csv"
        path.write_text("name\nDana\n")
        with pytest.raises(ScheduleValidationError):
            load_workers(path)

    @pytest.mark.parametrize("content", [
        '[{"date": "18/10/2026", "position": 1}]',
        '[{"date": "2026-10-18"}]',
        '[{"date": "2026-10-18", "position": "front"}]',
        '{"date": "2026-10-18", "position": 1}',
        "[{",
    ])
    def test_bad_lock_files(self, tmp_path, content):
        path = tmp_path / "locks.json"
        path.write_text(content)
        with pytest.raises(ScheduleValidationError):
            load_locks(path)

    @pytest.mark.parametrize("content", ["{not json", '{"18/10/2026": {"1": "a"}}', "[1, 2]"])
    def test_bad_grid_files(self, tmp_path, content):
        path = tmp_path / "grid.json"
        path.write_text(content)
        with pytest.raises(ScheduleValidationError):
            load_grid(path)

    def test_comma_delimited_lists(self):
        worker = parse_worker_row({"id": "x", "eligible_positions": "3, 1"})
        assert worker.eligible_positions == (3, 1)
