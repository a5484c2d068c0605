"""
Tests for domain types, input validation and eligibility
"""

import math
import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from station_scheduler.eligibility import (
    eligible_positions,
    get_position_coverage_summary,
    is_available,
    qualified_workers,
    remaining_capacity,
    validate_position_coverage,
)
from station_scheduler.engine import get_week_dates
from station_scheduler.models import (
    AssignmentGrid,
    Position,
    Request,
    ScheduleValidationError,
    Slot,
    Tier,
    Worker,
    validate_inputs,
)

SUNDAY = date(2026, 10, 18)
WEEK = get_week_dates(SUNDAY)


class TestWorker:
    """Test Worker construction and validation"""

    def test_defaults(self):
        w = Worker("w1")
        assert w.name == "w1"
        assert w.tier is Tier.NORMAL
        assert w.max_weekly_shifts is None
        assert not w.starred

    def test_coercion(self):
        """Lists, sets, string tiers and request tuples are normalised"""
        w = Worker("w1", tier="Starred", eligible_positions=[2, 1],
                   unavailable_dates=[SUNDAY], requests=[(SUNDAY, 1)])
        assert w.starred
        assert w.eligible_positions == (2, 1)
        assert w.unavailable_dates == frozenset({SUNDAY})
        assert w.requests == (Request(SUNDAY, 1),)

    @pytest.mark.parametrize("kwargs", [
        {"min_weekly_shifts": -1},
        {"max_weekly_shifts": -2},
        {"min_weekly_shifts": 3, "max_weekly_shifts": 2},
        {"eligible_positions": ("a",)},
        {"unavailable_dates": {"2026-10-18"}},
        {"tier": "gold"},
    ])
    def test_invalid_fields(self, kwargs):
        with pytest.raises(ScheduleValidationError):
            Worker("w1", **kwargs)

    def test_blank_id(self):
        with pytest.raises(ScheduleValidationError):
            Worker("  ")

    def test_error_lists_all_problems(self):
        with pytest.raises(ScheduleValidationError) as exc:
            Worker("w1", min_weekly_shifts=-1, eligible_positions=("x",))
        assert len(exc.value.errors) == 2


class TestPositionAndRequest:

    def test_default_name(self):
        assert Position(4).name == "Position 4"

    def test_bool_id_rejected(self):
        with pytest.raises(ScheduleValidationError):
            Position(True)

    def test_request_types(self):
        with pytest.raises(ScheduleValidationError):
            Request("2026-10-18", 1)
        with pytest.raises(ScheduleValidationError):
            Request(SUNDAY, "1")

    def test_request_slot(self):
        assert Request(SUNDAY, 2).slot == Slot(SUNDAY, 2)
        assert str(Slot(SUNDAY, 2)) == "2026-10-18#2"


class TestValidateInputs:
    """Boundary validation before the pipeline"""

    def test_clean_input(self):
        assert validate_inputs([Worker("a")], [Position(1)]) == []

    def test_unknown_eligible_is_warning(self):
        warnings = validate_inputs([Worker("a", eligible_positions=(1, 7))], [Position(1)])
        assert len(warnings) == 1
        assert "7" in warnings[0]

    def test_wrong_types(self):
        with pytest.raises(ScheduleValidationError):
            validate_inputs([{"id": "a"}], [Position(1)])

    def test_duplicates_reported_together(self):
        with pytest.raises(ScheduleValidationError) as exc:
            validate_inputs([Worker("a"), Worker("a")], [Position(1), Position(1)])
        assert len(exc.value.errors) == 2


class TestAssignmentGrid:
    """Test the week grid container"""

    @pytest.fixture
    def grid(self):
        return AssignmentGrid(WEEK, [1, 2])

    def test_total_and_empty(self, grid):
        assert len(grid) == 10
        assert len(grid.unfilled_slots()) == 10
        assert grid.slots()[0] == Slot(SUNDAY, 1)
        assert grid.slots()[1] == Slot(SUNDAY, 2)

    def test_assign_and_clear(self, grid):
        grid.assign(SUNDAY, 2, "a")
        assert grid.get(SUNDAY, 2) == "a"
        assert grid[(SUNDAY, 2)] == "a"
        grid.clear(SUNDAY, 2)
        assert grid.get(SUNDAY, 2) is None

    def test_empty_string_is_empty(self, grid):
        grid.assign(SUNDAY, 1, "")
        assert grid.get(SUNDAY, 1) is None

    def test_outside_slot_raises(self, grid):
        with pytest.raises(KeyError):
            grid.assign(SUNDAY, 9, "a")
        with pytest.raises(KeyError):
            grid.get(SUNDAY + timedelta(days=7), 1)

    def test_swap(self, grid):
        grid.assign(SUNDAY, 1, "a")
        grid.assign(WEEK[1], 2, "b")
        grid.swap((SUNDAY, 1), (WEEK[1], 2))
        assert grid.get(SUNDAY, 1) == "b"
        assert grid.get(WEEK[1], 2) == "a"

    def test_copy_is_independent(self, grid):
        grid.assign(SUNDAY, 1, "a")
        clone = grid.copy()
        clone.assign(SUNDAY, 1, "b")
        assert grid.get(SUNDAY, 1) == "a"
        assert clone != grid

    def test_dict_form(self, grid):
        grid.assign(SUNDAY, 1, "a")
        data = grid.to_dict()
        assert data["2026-10-18"] == {"1": "a", "2": ""}
        assert AssignmentGrid.from_dict(data) == grid

    def test_from_dict_explicit_positions(self):
        data = {"2026-10-18": {"2": "a", "1": ""}}
        grid = AssignmentGrid.from_dict(data, position_ids=[1, 2])
        assert grid.position_ids == (1, 2)
        assert grid.get(SUNDAY, 2) == "a"

    def test_slots_of_and_day(self, grid):
        grid.assign(SUNDAY, 1, "a")
        grid.assign(WEEK[2], 2, "a")
        assert grid.slots_of("a") == [Slot(SUNDAY, 1), Slot(WEEK[2], 2)]
        assert grid.day(SUNDAY) == {1: "a", 2: None}


class TestEligibility:
    """Test eligibility resolution"""

    @pytest.fixture
    def positions(self):
        return [Position(1), Position(2), Position(3)]

    def test_empty_list_means_all(self, positions):
        assert eligible_positions(Worker("a"), positions) == (1, 2, 3)

    def test_explicit_order_kept(self, positions):
        assert eligible_positions(Worker("a", eligible_positions=(3, 1)), positions) == (3, 1)

    def test_unknown_ids_dropped(self, positions):
        assert eligible_positions(Worker("a", eligible_positions=(9, 2)), positions) == (2,)

    def test_availability(self):
        w = Worker("a", unavailable_dates={SUNDAY})
        assert not is_available(w, SUNDAY)
        assert is_available(w, WEEK[1])

    def test_remaining_capacity(self):
        grid = AssignmentGrid(WEEK, [1])
        grid.assign(SUNDAY, 1, "a")
        assert remaining_capacity(Worker("a"), grid) == math.inf
        assert remaining_capacity(Worker("a", max_weekly_shifts=3), grid) == 2
        assert remaining_capacity(Worker("a", max_weekly_shifts=3), 5) == 0

    def test_qualified_workers(self, positions):
        workers = [Worker("a", eligible_positions=(1,)), Worker("b"), Worker("c", eligible_positions=(2,))]
        assert [w.id for w in qualified_workers(workers, 1, positions)] == ["a", "b"]
        assert get_position_coverage_summary(workers, positions) == {1: ["a", "b"], 2: ["b", "c"], 3: ["b"]}

    def test_coverage_warnings(self, positions):
        workers = [Worker("a", eligible_positions=(1,), max_weekly_shifts=2)]
        warnings = validate_position_coverage(workers, positions)
        assert any("(1)" in w and "2 of 5" in w for w in warnings)
        assert sum("NO eligible" in w for w in warnings) == 2
