"""
Tests for individual assignment passes run in isolation against synthetic grids
"""

import sys
from datetime import date, timedelta
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from station_scheduler.engine import (
    PIPELINE_PASSES,
    AssignmentState,
    PassContext,
    get_pass,
    get_week_dates,
    run_pass,
)
from station_scheduler.models import AssignmentGrid, Position, Request, Slot, Tier, Worker
from station_scheduler.schedule_config import PASS_NAMES

SUNDAY = date(2026, 10, 18)
WEEK = get_week_dates(SUNDAY)
MONDAY = WEEK[1]


def _run(name, workers, positions, seed=None, locked=()):
    """Run one named pass on a fresh (or seeded) grid; return (filled, state)."""
    grid = seed or AssignmentGrid(WEEK, [p.id for p in positions])
    state = AssignmentState.from_seed(grid, locked)
    ctx = PassContext(workers=workers, positions=positions, week=WEEK)
    filled = run_pass(get_pass(name), ctx, state)
    return filled, state


class TestPassList:
    """Test the ordered pass descriptors"""

    def test_six_passes_in_order(self):
        assert [p.name for p in PIPELINE_PASSES] == list(PASS_NAMES)
        assert [p.number for p in PIPELINE_PASSES] == [1, 2, 3, 4, 5, 6]

    def test_unknown_pass(self):
        with pytest.raises(KeyError):
            get_pass("nonexistent")

    def test_predicates(self):
        starred = Worker("s", tier=Tier.STARRED)
        normal = Worker("n")
        multi = Worker("m", multi_position=True)
        assert get_pass("committed_requests").applies_to(starred)
        assert not get_pass("committed_requests").applies_to(normal)
        assert get_pass("daily_fill").applies_to(normal)
        assert get_pass("multi_position_fallback").applies_to(multi)
        assert not get_pass("multi_position_fallback").applies_to(normal)


class TestCommittedRequests:
    """Pass 1: starred requests"""

    def test_request_placed(self):
        worker = Worker("s", tier=Tier.STARRED, requests=(Request(MONDAY, 2),))
        filled, state = _run("committed_requests", [worker], [Position(1), Position(2)])
        assert filled == 1
        assert state.grid.get(MONDAY, 2) == "s"
        assert state.sources[Slot(MONDAY, 2)] == "committed_requests"

    def test_normal_worker_ignored(self):
        worker = Worker("n", requests=(Request(MONDAY, 1),))
        filled, state = _run("committed_requests", [worker], [Position(1)])
        assert filled == 0
        assert state.grid.filled_slots() == []

    def test_first_claim_wins(self):
        a = Worker("a", tier=Tier.STARRED, requests=(Request(MONDAY, 1),))
        b = Worker("b", tier=Tier.STARRED, requests=(Request(MONDAY, 1),))
        filled, state = _run("committed_requests", [b, a], [Position(1)])
        assert filled == 1
        assert state.grid.get(MONDAY, 1) == "b"

    def test_infeasible_requests_skipped(self):
        """Unavailable date, ineligible position and out-of-week requests are dropped"""
        worker = Worker(
            "s", tier=Tier.STARRED,
            eligible_positions=(1,),
            unavailable_dates={SUNDAY},
            requests=(
                Request(SUNDAY, 1),
                Request(MONDAY, 2),
                Request(SUNDAY + timedelta(days=7), 1),
            ),
        )
        filled, _ = _run("committed_requests", [worker], [Position(1), Position(2)])
        assert filled == 0

    def test_one_request_per_day(self):
        worker = Worker("s", tier=Tier.STARRED,
                        requests=(Request(MONDAY, 1), Request(MONDAY, 2)))
        filled, state = _run("committed_requests", [worker], [Position(1), Position(2)])
        assert filled == 1
        assert state.grid.get(MONDAY, 2) is None

    def test_locked_slot_not_overwritten(self):
        seed = AssignmentGrid(WEEK, [1])
        worker = Worker("s", tier=Tier.STARRED, requests=(Request(MONDAY, 1),))
        filled, state = _run("committed_requests", [worker], [Position(1)],
                             seed=seed, locked={Slot(MONDAY, 1)})
        assert filled == 0
        assert state.grid.get(MONDAY, 1) is None


class TestMinimumFloor:
    """Pass 2: starred weekly minimums"""

    def test_highest_minimum_goes_first(self):
        low = Worker("low", tier=Tier.STARRED, min_weekly_shifts=1)
        high = Worker("high", tier=Tier.STARRED, min_weekly_shifts=3)
        filled, state = _run("minimum_floor", [low, high], [Position(1)])
        assert filled == 4
        assert [s.date for s in state.grid.slots_of("high")] == WEEK[:3]
        assert [s.date for s in state.grid.slots_of("low")] == [WEEK[3]]

    def test_stops_at_capacity(self):
        worker = Worker("s", tier=Tier.STARRED, min_weekly_shifts=2, max_weekly_shifts=2)
        seed = AssignmentGrid(WEEK, [1])
        seed.assign(SUNDAY, 1, "s")
        filled, state = _run("minimum_floor", [worker], [Position(1)], seed=seed)
        assert filled == 1
        assert state.held_by("s") == 2

    def test_skips_unavailable_days(self):
        worker = Worker("s", tier=Tier.STARRED, min_weekly_shifts=2,
                        unavailable_dates={SUNDAY, MONDAY})
        _, state = _run("minimum_floor", [worker], [Position(1)])
        assert [s.date for s in state.grid.slots_of("s")] == WEEK[2:4]


class TestOpportunisticRequests:
    """Pass 3: normal requests, best effort"""

    def test_request_placed(self):
        worker = Worker("n", requests=(Request(MONDAY, 1),))
        filled, state = _run("opportunistic_requests", [worker], [Position(1)])
        assert filled == 1
        assert state.grid.get(MONDAY, 1) == "n"

    def test_occupied_slot_not_taken(self):
        seed = AssignmentGrid(WEEK, [1])
        seed.assign(MONDAY, 1, "starred")
        worker = Worker("n", requests=(Request(MONDAY, 1),))
        filled, state = _run("opportunistic_requests", [worker], [Position(1)], seed=seed)
        assert filled == 0
        assert state.grid.get(MONDAY, 1) == "starred"

    def test_respects_capacity(self):
        worker = Worker("n", max_weekly_shifts=0, requests=(Request(MONDAY, 1),))
        filled, _ = _run("opportunistic_requests", [worker], [Position(1)])
        assert filled == 0


class TestDailyFill:
    """Pass 4: one slot per day for normal workers"""

    def test_one_slot_each_day(self):
        worker = Worker("n", eligible_positions=(2, 1))
        filled, state = _run("daily_fill", [worker], [Position(1), Position(2)])
        assert filled == 5
        assert all(s.position_id == 2 for s in state.grid.slots_of("n"))

    def test_caller_order_is_priority(self):
        a = Worker("a", max_weekly_shifts=2)
        b = Worker("b")
        _, state = _run("daily_fill", [a, b], [Position(1)])
        assert [s.date for s in state.grid.slots_of("a")] == WEEK[:2]
        assert [s.date for s in state.grid.slots_of("b")] == WEEK[2:]

    def test_starred_not_included(self):
        worker = Worker("s", tier=Tier.STARRED)
        filled, _ = _run("daily_fill", [worker], [Position(1)])
        assert filled == 0


class TestResidualSweep:
    """Pass 5: first free normal worker per open slot"""

    def test_slots_swept_in_order(self):
        a = Worker("a", max_weekly_shifts=1)
        b = Worker("b")
        filled, state = _run("residual_sweep", [a, b], [Position(1)])
        assert filled == 5
        assert state.grid.get(SUNDAY, 1) == "a"
        assert len(state.grid.slots_of("b")) == 4

    def test_no_same_day_double_up(self):
        seed = AssignmentGrid(WEEK, [1, 2])
        seed.assign(SUNDAY, 1, "a")
        worker = Worker("a", multi_position=True)
        _, state = _run("residual_sweep", [worker], [Position(1), Position(2)], seed=seed)
        assert state.grid.get(SUNDAY, 2) is None


class TestMultiPositionFallback:
    """Pass 6: multi-position workers may take several slots on one day"""

    def test_doubles_up(self):
        multi = Worker("m", multi_position=True)
        filled, state = _run("multi_position_fallback", [multi], [Position(1), Position(2)])
        assert filled == 10
        assert state.grid.day(SUNDAY) == {1: "m", 2: "m"}

    def test_single_position_worker_excluded(self):
        worker = Worker("n")
        filled, _ = _run("multi_position_fallback", [worker], [Position(1)])
        assert filled == 0

    def test_capacity_still_applies(self):
        multi = Worker("m", multi_position=True, max_weekly_shifts=3)
        filled, _ = _run("multi_position_fallback", [multi], [Position(1), Position(2)])
        assert filled == 3


class TestAssignmentState:
    """Test the explicit bookkeeping object"""

    def test_seed_counts_occupants(self):
        seed = AssignmentGrid(WEEK, [1])
        seed.assign(SUNDAY, 1, "a")
        seed.assign(MONDAY, 1, "b")
        state = AssignmentState.from_seed(seed, {Slot(SUNDAY, 1)})
        assert state.held_by("a") == 1
        assert state.assigned_on("b", MONDAY)
        assert state.sources[Slot(SUNDAY, 1)] == "locked"
        assert state.sources[Slot(MONDAY, 1)] == "seed"

    def test_place_on_closed_slot_raises(self):
        seed = AssignmentGrid(WEEK, [1])
        state = AssignmentState.from_seed(seed, {Slot(SUNDAY, 1)})
        with pytest.raises(RuntimeError):
            state.place(Worker("a"), Slot(SUNDAY, 1), "test")

    def test_unbounded_capacity(self):
        state = AssignmentState.from_seed(AssignmentGrid(WEEK, [1]))
        assert state.has_capacity(Worker("a"))
        assert not state.has_capacity(Worker("b", max_weekly_shifts=0))
