"""Sensor platform for History Tracker."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from homeassistant.components.sensor import SensorEntity, SensorStateClass
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.dispatcher import async_dispatcher_connect

from .const import DOMAIN, VERSION
from .periods import Granularity

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .data import HistoryTrackerConfigEntry
    from .tracker import HistoryTracker

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,  # noqa: ARG001
    entry: HistoryTrackerConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the sensor platform."""
    tracker = entry.runtime_data
    entities: list[HistoryTrackerEntity] = [
        PeriodConsumptionSensor(tracker, granularity) for granularity in Granularity
    ]
    entities.append(GoalSensor(tracker))
    async_add_entities(entities)


class HistoryTrackerEntity(SensorEntity):
    """Common base of History Tracker sensors."""

    _attr_has_entity_name = True
    _attr_should_poll = False

    def __init__(self, tracker: HistoryTracker, key: str) -> None:
        """Initialize the sensor."""
        self._tracker = tracker
        self._attr_unique_id = f"{DOMAIN}_{tracker.entry_id}_{key}"
        self._attr_native_unit_of_measurement = tracker.unit
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, tracker.entry_id)},
            name=tracker.name,
            manufacturer="History Tracker",
            model="Consumption History",
            sw_version=VERSION,
        )

    async def async_added_to_hass(self) -> None:
        """Follow tracker updates."""
        await super().async_added_to_hass()
        self.async_on_remove(
            async_dispatcher_connect(
                self.hass, self._tracker.signal, self.async_write_ha_state
            )
        )
        _LOGGER.debug("Sensor %s follows %s", self.entity_id, self._tracker.name)


class PeriodConsumptionSensor(HistoryTrackerEntity):
    """Consumption in the open hour, day, month or year."""

    _attr_state_class = SensorStateClass.TOTAL_INCREASING
    _attr_icon = "mdi:counter"

    def __init__(self, tracker: HistoryTracker, granularity: Granularity) -> None:
        """Initialize the sensor."""
        super().__init__(tracker, f"current_{granularity.value}")
        self._granularity = granularity
        self._attr_name = f"Current {granularity.value}"

    @property
    def native_value(self) -> float | None:
        """Return the consumption of the open period."""
        value = self._tracker.state.current(self._granularity).value
        return round(value, 2) if value is not None else None

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return the open period and the last closed one."""
        current = self._tracker.state.current(self._granularity)
        attributes: dict[str, Any] = {
            "period": current.period,
            "timestamp": current.timestamp,
        }
        if current.goal is not None:
            attributes["goal"] = round(current.goal, 2)

        if history := self._tracker.state.history(self._granularity):
            last = history[0]
            attributes["last_period"] = last.period
            attributes["last_value"] = last.value
            if last.min is not None and last.max is not None:
                attributes["last_min"] = last.min
                attributes["last_max"] = last.max

        if self._tracker.last_error is not None:
            attributes["last_error"] = self._tracker.last_error
        return attributes


class GoalSensor(HistoryTrackerEntity):
    """What is left of the yearly goal."""

    _attr_icon = "mdi:target"
    _attr_name = "Remaining goal"

    def __init__(self, tracker: HistoryTracker) -> None:
        """Initialize the sensor."""
        super().__init__(tracker, "remaining_goal")

    @property
    def available(self) -> bool:
        """Return True when a goal is configured."""
        return self._tracker.goal_config.enabled

    @property
    def native_value(self) -> float | None:
        """Return the remaining goal."""
        return round(self._tracker.project().remaining_goal, 2)

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        """Return the projection."""
        projection = self._tracker.project()
        return {
            "goal_per_day": projection.goal_per_day,
            "goal_per_month": projection.goal_per_month,
            "goal_per_year": projection.goal_per_year,
            "total_consumed": projection.total_consumed,
            "yearly_goal": projection.yearly_goal,
            "goal_start_month": projection.start_month,
            "goal_end_month": projection.end_month,
        }
