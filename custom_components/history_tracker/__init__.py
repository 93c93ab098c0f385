"""
History Tracker integration for Home Assistant.

Turns the readings of a water or energy counter into hourly, daily, monthly
and yearly consumption kept in a plain text history file.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.const import Platform
from homeassistant.helpers import config_validation as cv

from .const import DOMAIN, LOGGER
from .services import async_setup_services
from .tracker import HistoryTracker

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.typing import ConfigType

    from .data import HistoryTrackerConfigEntry

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)

PLATFORMS: list[Platform] = [
    Platform.SENSOR,
]


async def async_setup(hass: HomeAssistant, config: ConfigType) -> bool:  # noqa: ARG001
    """Set up the History Tracker integration."""
    await async_setup_services(hass)
    return True


async def async_setup_entry(
    hass: HomeAssistant, entry: HistoryTrackerConfigEntry
) -> bool:
    """Set up History Tracker from a config entry."""
    tracker = HistoryTracker(hass, entry)
    await tracker.async_load()
    entry.runtime_data = tracker

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    tracker.async_start()
    entry.async_on_unload(tracker.async_stop)
    entry.async_on_unload(entry.add_update_listener(async_reload_entry))

    LOGGER.info("History Tracker %s writing to %s", tracker.name, tracker.filepath)
    return True


async def async_unload_entry(
    hass: HomeAssistant, entry: HistoryTrackerConfigEntry
) -> bool:
    """Unload a config entry."""
    return await hass.config_entries.async_unload_platforms(entry, PLATFORMS)


async def async_reload_entry(
    hass: HomeAssistant, entry: HistoryTrackerConfigEntry
) -> None:
    """Reload the entry after its options changed."""
    await hass.config_entries.async_reload(entry.entry_id)
