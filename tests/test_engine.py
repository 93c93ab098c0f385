from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from custom_components.history_tracker.engine import apply_reading, record_reading
from custom_components.history_tracker.exceptions import StorageWriteError
from custom_components.history_tracker.history_file import load_state
from custom_components.history_tracker.models import AggregateState, GoalConfig
from custom_components.history_tracker.periods import Granularity

START = datetime(2024, 1, 1, 10, 15)


def _current_values(state: AggregateState) -> list[float | None]:
    return [state.current(granularity).value for granularity in Granularity]


def _all_values(state: AggregateState) -> list[float]:
    values = []
    for granularity in Granularity:
        entries = [state.current(granularity), *state.history(granularity)]
        values += [entry.value for entry in entries if entry.value is not None]
    return values


def test_first_reading_starts_every_period_at_zero(tmp_path: Path) -> None:
    state = record_reading(tmp_path / "history.txt", 100.0, "Liter", now=START)

    assert state.last_value.value == 100.0
    assert _current_values(state) == [0.0, 0.0, 0.0, 0.0]
    assert state.current_hour.period == "2024-01-01_10"
    assert state.current_year.period == "2024"


def test_second_reading_adds_delta_everywhere(tmp_path: Path) -> None:
    path = tmp_path / "history.txt"
    record_reading(path, 100.0, "Liter", now=START)

    state = record_reading(path, 110.0, "Liter", now=START + timedelta(minutes=20))

    assert state.last_value.value == 110.0
    assert _current_values(state) == [10.0, 10.0, 10.0, 10.0]
    assert _current_values(load_state(path)) == [10.0, 10.0, 10.0, 10.0]


def test_counter_reset_adds_nothing(tmp_path: Path) -> None:
    path = tmp_path / "history.txt"
    record_reading(path, 100.0, "Liter", now=START)

    state = record_reading(path, 90.0, "Liter", now=START + timedelta(minutes=5))

    assert state.last_value.value == 90.0
    assert _current_values(state) == [0.0, 0.0, 0.0, 0.0]


def test_written_file_uses_current_layout(tmp_path: Path) -> None:
    path = tmp_path / "history.txt"
    record_reading(path, 100.0, "Liter", now=START)

    text = path.read_text(encoding="utf-8")

    assert "T: 2024-01-01T10:15:00  -  V: 100.00 Liter" in text
    assert "T: 2024-01-01T10:15:00  -  P: 2024-01-01_10  -  V: 0.00 Liter" in text


def test_hour_rollover_moves_hour_to_history() -> None:
    state = AggregateState()
    apply_reading(state, 100.0, START)
    apply_reading(state, 105.0, START + timedelta(minutes=30))

    apply_reading(state, 112.0, datetime(2024, 1, 1, 11, 5))

    assert [(e.period, e.value) for e in state.hour_history] == [("2024-01-01_10", 5.0)]
    assert state.current_hour.period == "2024-01-01_11"
    assert state.current_hour.value == 7.0
    assert state.current_hour.timestamp == "2024-01-01T11:05:00"
    assert state.current_day.value == 12.0


def test_hour_gap_is_filled_with_zero_entries() -> None:
    state = AggregateState()
    apply_reading(state, 100.0, START)
    apply_reading(state, 105.0, START + timedelta(minutes=15))
    before = len(state.hour_history)

    apply_reading(state, 110.0, datetime(2024, 1, 1, 13, 10))

    assert len(state.hour_history) - before == 3
    assert [(e.period, e.value) for e in state.hour_history] == [
        ("2024-01-01_12", 0.0),
        ("2024-01-01_11", 0.0),
        ("2024-01-01_10", 5.0),
    ]
    assert state.hour_history[0].timestamp == "2024-01-01T12:59:59"
    assert state.hour_history[0].min is None
    assert state.current_hour.value == 5.0


def test_day_close_takes_min_max_from_hour_history() -> None:
    state = AggregateState()
    apply_reading(state, 100.0, datetime(2024, 1, 1, 22, 10))
    apply_reading(state, 103.0, datetime(2024, 1, 1, 22, 50))
    apply_reading(state, 110.0, datetime(2024, 1, 1, 23, 20))

    apply_reading(state, 111.0, datetime(2024, 1, 2, 0, 5))

    assert [e.value for e in state.hour_history] == [7.0, 3.0]
    closed_day = state.day_history[0]
    assert closed_day.period == "2024-01-01"
    assert closed_day.value == 10.0
    assert (closed_day.min, closed_day.max) == (3.0, 7.0)
    assert state.current_day.value == 1.0
    assert state.current_day.min is None
    assert state.month_history == []


def test_month_gap_gets_zero_entries_with_min_max() -> None:
    state = AggregateState()
    apply_reading(state, 100.0, datetime(2024, 1, 15, 12, 0))

    apply_reading(state, 150.0, datetime(2024, 4, 2, 8, 0))

    assert [(e.period, e.value) for e in state.month_history] == [
        ("2024-03", 0.0),
        ("2024-02", 0.0),
        ("2024-01", 0.0),
    ]
    gap = state.month_history[0]
    assert (gap.min, gap.max) == (0.0, 0.0)
    assert gap.timestamp == "2024-03-31T23:59:59"
    assert (state.month_history[2].min, state.month_history[2].max) == (0.0, 0.0)
    assert len(state.day_history) == 78
    assert state.current_month.value == 50.0
    assert state.year_history == []


def test_year_gap_is_filled() -> None:
    state = AggregateState()
    apply_reading(state, 10.0, datetime(2021, 6, 1, 12, 0))

    apply_reading(state, 20.0, datetime(2024, 2, 1, 12, 0))

    assert [e.period for e in state.year_history] == ["2023", "2022", "2021"]
    assert state.year_history[0].timestamp == "2023-12-31T23:59:59"
    assert state.current_year.value == 10.0


def test_new_periods_carry_goal() -> None:
    goal = GoalConfig(yearly_goal=1200.0)
    state = AggregateState()
    apply_reading(state, 100.0, datetime(2023, 12, 31, 23, 30), goal)

    apply_reading(state, 130.0, datetime(2024, 1, 1, 0, 30), goal)

    assert state.current_day.goal == pytest.approx(1200.0 / 366)
    assert state.current_month.goal == pytest.approx(100.0)
    assert state.current_year.goal == 1200.0
    assert state.current_hour.goal is None
    assert state.day_history[0].goal is None
    assert state.goal_projection is not None
    assert state.goal_projection.total_consumed == 30.0
    assert state.goal_projection.remaining_goal == 1170.0


def test_goal_projection_is_dropped_without_goal() -> None:
    state = AggregateState()

    apply_reading(state, 1.0, START)

    assert state.goal_projection is None
    assert state.current_day.goal is None


def test_unparseable_period_closes_without_gap_fill() -> None:
    state = AggregateState()
    apply_reading(state, 100.0, START)
    state.current_hour.period = "garbage"

    apply_reading(state, 101.0, START + timedelta(hours=3))

    assert [e.period for e in state.hour_history] == ["garbage"]
    assert state.current_hour.period == "2024-01-01_13"


def test_clock_going_back_closes_without_gap_fill() -> None:
    state = AggregateState()
    apply_reading(state, 100.0, START)

    apply_reading(state, 101.0, START - timedelta(hours=5))

    assert [e.period for e in state.hour_history] == ["2024-01-01_10"]
    assert state.current_hour.period == "2024-01-01_05"


def test_history_stays_newest_first_and_non_negative() -> None:
    state = AggregateState()
    readings = [100.0, 120.0, 80.0, 95.0, 95.0, 300.0, 10.0, 12.5]

    for step, value in enumerate(readings):
        apply_reading(state, value, START + timedelta(hours=7 * step))

    for granularity in Granularity:
        periods = [e.period for e in state.history(granularity)]
        assert periods == sorted(periods, reverse=True)
    assert all(value >= 0 for value in _all_values(state))
    assert state.current_day.period == "2024-01-03"


def test_write_failure_returns_state_on_error(tmp_path: Path) -> None:
    blocker = tmp_path / "file.txt"
    blocker.write_text("", encoding="utf-8")

    with pytest.raises(StorageWriteError) as err:
        record_reading(blocker / "history.txt", 100.0, "Liter", now=START)

    assert err.value.state is not None
    assert err.value.state.last_value.value == 100.0
