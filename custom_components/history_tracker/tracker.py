"""Home Assistant side of History Tracker.

A ``HistoryTracker`` belongs to one config entry. It follows a source entity
(a water or energy meter), records every new counter value into the history
file and tells the sensors about the new state.
"""

from __future__ import annotations

import asyncio
import logging
import math
import os
from typing import TYPE_CHECKING, Any

from homeassistant.const import (
    CONF_NAME,
    CONF_UNIT_OF_MEASUREMENT,
    STATE_UNAVAILABLE,
    STATE_UNKNOWN,
)
from homeassistant.core import Event, EventStateChangedData, callback
from homeassistant.helpers.dispatcher import async_dispatcher_send
from homeassistant.helpers.event import async_track_state_change_event

from .const import (
    CONF_FILEPATH,
    CONF_OUTPUT_MODE,
    CONF_SOURCE_ENTITY,
    CONF_VALUE_ATTRIBUTE,
    DEFAULT_FILEPATH,
    DEFAULT_NAME,
    DEFAULT_UNIT,
    ERROR_INVALID_VALUE,
    ERROR_STORAGE,
    EVENT_UPDATED,
    OUTPUT_ALL,
    OUTPUT_CURRENT,
    OUTPUT_DAY_HISTORY,
    OUTPUT_HOUR_HISTORY,
    OUTPUT_LAST,
    OUTPUT_MONTH_HISTORY,
    OUTPUT_NONE,
    OUTPUT_YEAR_HISTORY,
    SIGNAL_UPDATED,
)
from .engine import record_reading
from .exceptions import HistoryTrackerError, InvalidReadingError, StorageWriteError
from .goal import project_goal
from .history_file import load_state, save_state
from .models import AggregateState, GoalConfig, GoalProjection, RetentionLimits
from .periods import Granularity
from .retention import trim_history

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.core import HomeAssistant

    from .data import HistoryTrackerConfigEntry

_LOGGER = logging.getLogger(__name__)

_HISTORY_OUTPUTS = {
    OUTPUT_HOUR_HISTORY: Granularity.HOUR,
    OUTPUT_DAY_HISTORY: Granularity.DAY,
    OUTPUT_MONTH_HISTORY: Granularity.MONTH,
    OUTPUT_YEAR_HISTORY: Granularity.YEAR,
}


def parse_reading(raw: Any) -> float:
    """Convert an inbound value to a float.

    Raises InvalidReadingError for anything that is not a finite number.
    """
    if raw is None or isinstance(raw, bool):
        raise InvalidReadingError(raw)
    try:
        value = float(raw.strip() if isinstance(raw, str) else raw)
    except (TypeError, ValueError) as err:
        raise InvalidReadingError(raw) from err
    if not math.isfinite(value):
        raise InvalidReadingError(raw)
    return value


def build_output(state: AggregateState, mode: str) -> dict[str, Any] | None:
    """Return the part of the state an output mode asks for."""
    if mode == OUTPUT_NONE:
        return None
    if mode == OUTPUT_LAST:
        return state.last_value.to_dict()
    if mode == OUTPUT_CURRENT:
        return state.current_to_dict()
    if mode == OUTPUT_ALL:
        return state.to_dict()
    if (granularity := _HISTORY_OUTPUTS.get(mode)) is not None:
        return {
            f"{granularity.value}History": [
                entry.to_dict() for entry in state.history(granularity)
            ]
        }

    msg = f"Unknown output mode: {mode}"
    raise ValueError(msg)


def resolve_path(config_dir_path: Callable[[str], str], filepath: str) -> str:
    """Place bare file names in the config directory."""
    if os.sep not in filepath and "/" not in filepath:
        return config_dir_path(filepath)
    return filepath


class HistoryTracker:
    """Records counter readings of one source entity."""

    def __init__(self, hass: HomeAssistant, entry: HistoryTrackerConfigEntry) -> None:
        """Initialize the tracker."""
        self.hass = hass
        self.entry_id = entry.entry_id

        config = {**entry.data, **entry.options}
        self.name: str = config.get(CONF_NAME, DEFAULT_NAME)
        self.source_entity: str | None = config.get(CONF_SOURCE_ENTITY)
        self.value_attribute: str | None = config.get(CONF_VALUE_ATTRIBUTE) or None
        self.unit: str = config.get(CONF_UNIT_OF_MEASUREMENT) or DEFAULT_UNIT
        self.output_mode: str = config.get(CONF_OUTPUT_MODE, OUTPUT_NONE)
        self.filepath = resolve_path(
            hass.config.path, config.get(CONF_FILEPATH) or DEFAULT_FILEPATH
        )
        self.limits = RetentionLimits.from_options(config)
        self.goal_config = GoalConfig.from_options(config)

        self.state = AggregateState()
        self.last_error: str | None = None
        self._unsub_source: Callable[[], None] | None = None
        # One load, compute and save cycle on the file at a time
        self._record_lock = asyncio.Lock()

    @property
    def signal(self) -> str:
        """Dispatcher signal sent after every update."""
        return SIGNAL_UPDATED.format(self.entry_id)

    async def async_load(self) -> None:
        """Load the history file."""
        self.state = await self.hass.async_add_executor_job(load_state, self.filepath)
        _LOGGER.debug("Loaded history for %s from %s", self.name, self.filepath)

    @callback
    def async_start(self) -> None:
        """Start following the source entity."""
        if not self.source_entity:
            _LOGGER.debug("%s has no source entity, only services record", self.name)
            return

        self._unsub_source = async_track_state_change_event(
            self.hass, [self.source_entity], self._async_source_changed
        )
        _LOGGER.info("%s is following %s", self.name, self.source_entity)

    @callback
    def async_stop(self) -> None:
        """Stop following the source entity."""
        if self._unsub_source is not None:
            self._unsub_source()
            self._unsub_source = None

    @callback
    def _async_source_changed(self, event: Event[EventStateChangedData]) -> None:
        """Record the new value of the source entity."""
        new_state = event.data["new_state"]
        if new_state is None or new_state.state in (STATE_UNKNOWN, STATE_UNAVAILABLE):
            return

        if self.value_attribute:
            raw = new_state.attributes.get(self.value_attribute)
        else:
            raw = new_state.state

        self.hass.async_create_task(self._async_record_quietly(raw))

    async def _async_record_quietly(self, raw: Any) -> None:
        try:
            await self.async_record(raw)
        except HistoryTrackerError:
            # Already logged and reported through last_error
            return

    def _record(self, value: float) -> AggregateState:
        """Record a value and apply retention (runs in the executor)."""
        state = record_reading(self.filepath, value, self.unit, self.goal_config)
        if trim_history(state, self.limits):
            save_state(self.filepath, state, self.unit)
        return state

    async def async_record(self, raw: Any) -> AggregateState:
        """Record a raw counter value."""
        try:
            value = parse_reading(raw)
        except InvalidReadingError:
            self.last_error = ERROR_INVALID_VALUE
            _LOGGER.error("%s: invalid value %r, nothing recorded", self.name, raw)
            self._async_notify()
            raise

        try:
            async with self._record_lock:
                state = await self.hass.async_add_executor_job(self._record, value)
        except StorageWriteError as err:
            self.last_error = ERROR_STORAGE
            if err.state is not None:
                self.state = err.state
            _LOGGER.error("%s: %s", self.name, err)
            self._async_notify()
            raise

        self.state = state
        self.last_error = None
        _LOGGER.debug("%s: %.2f %s saved", self.name, value, self.unit)

        if (output := build_output(state, self.output_mode)) is not None:
            self.hass.bus.async_fire(
                EVENT_UPDATED,
                {"entry_id": self.entry_id, "name": self.name, "payload": output},
            )
        self._async_notify()
        return state

    def project(self) -> GoalProjection:
        """Project the configured goal onto the current state."""
        return project_goal(self.state, self.goal_config)

    @callback
    def _async_notify(self) -> None:
        async_dispatcher_send(self.hass, self.signal)
