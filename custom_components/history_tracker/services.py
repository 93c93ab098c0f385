"""Services for History Tracker integration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import voluptuous as vol
from homeassistant.config_entries import ConfigEntryState
from homeassistant.core import SupportsResponse
from homeassistant.exceptions import HomeAssistantError, ServiceValidationError
from homeassistant.helpers import config_validation as cv

from .const import (
    ATTR_ENTRY_ID,
    ATTR_OUTPUT,
    ATTR_VALUE,
    DOMAIN,
    OUTPUT_ALL,
    OUTPUT_MODES,
)
from .exceptions import InvalidReadingError, StorageWriteError
from .tracker import build_output

if TYPE_CHECKING:
    from homeassistant.core import HomeAssistant, ServiceCall

    from .tracker import HistoryTracker

_LOGGER = logging.getLogger(__name__)

# Service names
SERVICE_RECORD_READING = "record_reading"
SERVICE_GET_HISTORY = "get_history"
SERVICE_PROJECT_GOAL = "project_goal"

# Service schemas
SERVICE_RECORD_READING_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_ENTRY_ID): cv.string,
        vol.Required(ATTR_VALUE): cv.string,
    }
)

SERVICE_GET_HISTORY_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_ENTRY_ID): cv.string,
        vol.Optional(ATTR_OUTPUT, default=OUTPUT_ALL): vol.In(OUTPUT_MODES),
    }
)

SERVICE_PROJECT_GOAL_SCHEMA = vol.Schema(
    {
        vol.Required(ATTR_ENTRY_ID): cv.string,
    }
)


class HistoryTrackerServices:
    """Service handler for History Tracker integration."""

    def __init__(self, hass: HomeAssistant) -> None:
        """Initialize the service handler."""
        self.hass = hass

    async def async_register_services(self) -> None:
        """Register all History Tracker services."""
        self.hass.services.async_register(
            DOMAIN,
            SERVICE_RECORD_READING,
            self._handle_record_reading,
            schema=SERVICE_RECORD_READING_SCHEMA,
            supports_response=SupportsResponse.OPTIONAL,
        )

        self.hass.services.async_register(
            DOMAIN,
            SERVICE_GET_HISTORY,
            self._handle_get_history,
            schema=SERVICE_GET_HISTORY_SCHEMA,
            supports_response=SupportsResponse.ONLY,
        )

        self.hass.services.async_register(
            DOMAIN,
            SERVICE_PROJECT_GOAL,
            self._handle_project_goal,
            schema=SERVICE_PROJECT_GOAL_SCHEMA,
            supports_response=SupportsResponse.ONLY,
        )

        _LOGGER.info("History Tracker services registered successfully")

    def _get_tracker(self, entry_id: str) -> HistoryTracker:
        """Return the tracker of a loaded config entry."""
        entry = self.hass.config_entries.async_get_entry(entry_id)
        if entry is None or entry.domain != DOMAIN:
            msg = f"No History Tracker entry {entry_id}"
            raise ServiceValidationError(msg)
        if entry.state is not ConfigEntryState.LOADED:
            msg = f"History Tracker entry {entry_id} is not loaded"
            raise ServiceValidationError(msg)
        return entry.runtime_data

    async def _handle_record_reading(self, call: ServiceCall) -> dict[str, Any]:
        """Handle record_reading service call."""
        tracker = self._get_tracker(call.data[ATTR_ENTRY_ID])

        try:
            state = await tracker.async_record(call.data[ATTR_VALUE])
        except InvalidReadingError as err:
            raise ServiceValidationError(str(err)) from err
        except StorageWriteError as err:
            raise HomeAssistantError(str(err)) from err

        _LOGGER.info(
            "Recorded %s %s for %s",
            state.last_value.value,
            tracker.unit,
            tracker.name,
        )
        return state.current_to_dict()

    async def _handle_get_history(self, call: ServiceCall) -> dict[str, Any]:
        """Handle get_history service call."""
        tracker = self._get_tracker(call.data[ATTR_ENTRY_ID])
        return build_output(tracker.state, call.data[ATTR_OUTPUT]) or {}

    async def _handle_project_goal(self, call: ServiceCall) -> dict[str, Any]:
        """Handle project_goal service call."""
        tracker = self._get_tracker(call.data[ATTR_ENTRY_ID])
        return tracker.project().to_dict()


async def async_setup_services(hass: HomeAssistant) -> None:
    """Set up History Tracker services."""
    services = HistoryTrackerServices(hass)
    await services.async_register_services()
