from __future__ import annotations

import asyncio
import os
from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace
from typing import Any

import pytest
import voluptuous as vol
from homeassistant.exceptions import HomeAssistantError
from homeassistant.util import dt as dt_util

from custom_components.history_tracker import tracker as tracker_module
from custom_components.history_tracker.config_flow import validate_options
from custom_components.history_tracker.const import (
    CONF_FILEPATH,
    CONF_GOAL_END_MONTH,
    CONF_GOAL_START_MONTH,
    CONF_MAX_HOUR_HISTORY,
    CONF_OUTPUT_MODE,
    CONF_SOURCE_ENTITY,
    CONF_YEARLY_GOAL,
)
from custom_components.history_tracker.engine import apply_reading
from custom_components.history_tracker.exceptions import (
    HistoryTrackerError,
    InvalidReadingError,
    StorageWriteError,
)
from custom_components.history_tracker.history_file import load_state, save_state
from custom_components.history_tracker.models import (
    AggregateState,
    GoalConfig,
    PeriodEntry,
)
from custom_components.history_tracker.services import (
    SERVICE_GET_HISTORY_SCHEMA,
    SERVICE_RECORD_READING_SCHEMA,
)
from custom_components.history_tracker.tracker import (
    HistoryTracker,
    build_output,
    parse_reading,
    resolve_path,
)


def _state() -> AggregateState:
    state = AggregateState()
    apply_reading(state, 100.0, datetime(2024, 1, 1, 10, 15))
    apply_reading(state, 104.5, datetime(2024, 1, 1, 11, 5))
    return state


class _Hass:
    """Just enough of Home Assistant to record readings."""

    def __init__(self, tmp_path: Path) -> None:
        self.config = SimpleNamespace(path=lambda name: str(tmp_path / name))
        self.events: list[tuple[str, dict[str, Any]]] = []
        self.bus = SimpleNamespace(
            async_fire=lambda event, data: self.events.append((event, data))
        )

    async def async_add_executor_job(self, target: Any, *args: Any) -> Any:
        return await asyncio.get_running_loop().run_in_executor(None, target, *args)


def _tracker(tmp_path: Path, **options: Any) -> HistoryTracker:
    hass = _Hass(tmp_path)
    entry = SimpleNamespace(
        entry_id="abc123",
        data={"name": "Garden", CONF_SOURCE_ENTITY: "sensor.garden_meter"},
        options=options,
    )
    return HistoryTracker(hass, entry)


@pytest.mark.parametrize(
    ("raw", "expected"), [("12.5", 12.5), (" 7 ", 7.0), (3, 3.0), (0.25, 0.25)]
)
def test_parse_reading_accepts_numbers(raw: Any, expected: float) -> None:
    assert parse_reading(raw) == expected


@pytest.mark.parametrize("raw", ["abc", "", None, True, "nan", "inf", [1]])
def test_parse_reading_rejects_non_numbers(raw: Any) -> None:
    with pytest.raises(InvalidReadingError) as err:
        parse_reading(raw)

    assert err.value.raw == raw


def test_errors_are_distinct_home_assistant_errors() -> None:
    assert issubclass(InvalidReadingError, HistoryTrackerError)
    assert issubclass(StorageWriteError, HistoryTrackerError)
    assert issubclass(HistoryTrackerError, HomeAssistantError)
    assert not issubclass(InvalidReadingError, StorageWriteError)
    assert "abc" in str(InvalidReadingError("abc"))


def test_build_output_modes() -> None:
    state = _state()

    assert build_output(state, "none") is None
    assert build_output(state, "last") == {
        "value": 104.5,
        "timestamp": "2024-01-01T11:05:00",
        "timestampMs": state.last_value.epoch_ms,
    }
    current = build_output(state, "current")
    assert set(current) == {
        "lastValue",
        "currentHour",
        "currentDay",
        "currentMonth",
        "currentYear",
    }
    assert current["currentHour"]["period"] == "2024-01-01_11"
    assert build_output(state, "hour_history") == {
        "hourHistory": [
            {
                "period": "2024-01-01_10",
                "value": 0.0,
                "timestamp": "2024-01-01T10:15:00",
                "timestampMs": state.hour_history[0].epoch_ms,
            }
        ]
    }
    assert build_output(state, "year_history") == {"yearHistory": []}
    everything = build_output(state, "all")
    assert everything["currentDay"]["value"] == 4.5
    assert "monthHistory" in everything
    assert "goal" not in everything


def test_period_entry_dict_keeps_absent_fields_absent() -> None:
    data = {"period": "2024-01", "value": 12.0, "timestamp": "2024-01-31T23:59:59"}

    entry = PeriodEntry.from_dict(data)

    assert entry.min is None
    assert entry.goal is None
    assert entry.to_dict() == data


def test_build_output_rejects_unknown_mode() -> None:
    with pytest.raises(ValueError, match="Unknown output mode"):
        build_output(AggregateState(), "weekly")


def test_resolve_path_places_bare_names_in_config_dir() -> None:
    def config_path(name: str) -> str:
        return f"/config/{name}"

    assert resolve_path(config_path, "water.txt") == "/config/water.txt"
    assert resolve_path(config_path, "/data/water.txt") == "/data/water.txt"
    assert resolve_path(config_path, f"meters{os.sep}water.txt") == (
        f"meters{os.sep}water.txt"
    )


def test_tracker_reads_entry_config(tmp_path: Path) -> None:
    tracker = _tracker(
        tmp_path,
        **{
            CONF_FILEPATH: "garden.txt",
            CONF_OUTPUT_MODE: "current",
            CONF_YEARLY_GOAL: 900,
            CONF_GOAL_START_MONTH: 4,
            CONF_GOAL_END_MONTH: 9,
        },
    )

    assert tracker.name == "Garden"
    assert tracker.source_entity == "sensor.garden_meter"
    assert tracker.unit == "Liter"
    assert tracker.output_mode == "current"
    assert tracker.filepath == str(tmp_path / "garden.txt")
    assert tracker.goal_config == GoalConfig(900.0, 4, 9)
    assert tracker.signal == "history_tracker_updated_abc123"


def test_tracker_record_applies_retention(tmp_path: Path) -> None:
    tracker = _tracker(tmp_path, **{CONF_MAX_HOUR_HISTORY: 1})
    start = dt_util.now() - timedelta(hours=3)
    state = AggregateState()
    for hour in range(3):
        apply_reading(state, float(hour), start + timedelta(hours=hour))
    assert len(state.hour_history) == 2

    save_state(tracker.filepath, state, tracker.unit)

    recorded = tracker._record(4.0)

    assert len(recorded.hour_history) == 1
    assert len(load_state(tracker.filepath).hour_history) == 1


def test_record_schema_accepts_numbers_as_text() -> None:
    data = SERVICE_RECORD_READING_SCHEMA({"entry_id": "abc", "value": 12.5})

    assert data["value"] == "12.5"


def test_get_history_schema() -> None:
    assert SERVICE_GET_HISTORY_SCHEMA({"entry_id": "abc"})["output"] == "all"
    with pytest.raises(vol.Invalid):
        SERVICE_GET_HISTORY_SCHEMA({"entry_id": "abc", "output": "weekly"})


def test_validate_options() -> None:
    assert validate_options({CONF_YEARLY_GOAL: 100, CONF_GOAL_START_MONTH: 10}) == {}
    assert validate_options({CONF_YEARLY_GOAL: -1, CONF_GOAL_END_MONTH: 13}) == {
        CONF_YEARLY_GOAL: "negative_goal",
        CONF_GOAL_END_MONTH: "invalid_month",
    }


def test_overlapping_readings_keep_the_history(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(tracker_module, "async_dispatcher_send", lambda *args: None)
    start = dt_util.now() - timedelta(hours=30)
    state = AggregateState()
    for hour in range(30):
        apply_reading(state, float(hour), start + timedelta(hours=hour))
    before = len(state.hour_history)

    async def record_together() -> HistoryTracker:
        tracker = _tracker(tmp_path, **{CONF_OUTPUT_MODE: "last"})
        save_state(tracker.filepath, state, tracker.unit)
        await asyncio.gather(
            *(tracker.async_record(str(100 + step)) for step in range(4))
        )
        return tracker

    tracker = asyncio.run(record_together())

    stored = load_state(tracker.filepath)
    assert len(stored.hour_history) >= before
    assert stored.last_value.value == 103.0
    assert tracker.state.last_value.value == 103.0
    assert [data["payload"]["value"] for _, data in tracker.hass.events] == [
        100.0,
        101.0,
        102.0,
        103.0,
    ]


def test_invalid_reading_is_reported_and_not_recorded(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(tracker_module, "async_dispatcher_send", lambda *args: None)
    tracker = _tracker(tmp_path)

    with pytest.raises(InvalidReadingError):
        asyncio.run(tracker.async_record("lots"))

    assert tracker.last_error == "invalid_value"
    assert not (tmp_path / "history.txt").exists()
