"""Support for History Tracker config flow."""

from __future__ import annotations

from typing import Any

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.const import CONF_NAME, CONF_UNIT_OF_MEASUREMENT
from homeassistant.core import callback
from homeassistant.helpers import selector
from homeassistant.helpers.selector import (
    TextSelector,
    TextSelectorConfig,
    TextSelectorType,
)

from .const import (
    CONF_FILEPATH,
    CONF_GOAL_END_MONTH,
    CONF_GOAL_START_MONTH,
    CONF_MAX_DAY_HISTORY,
    CONF_MAX_HOUR_HISTORY,
    CONF_MAX_MONTH_HISTORY,
    CONF_MAX_YEAR_HISTORY,
    CONF_OUTPUT_MODE,
    CONF_SOURCE_ENTITY,
    CONF_VALUE_ATTRIBUTE,
    CONF_YEARLY_GOAL,
    DEFAULT_FILEPATH,
    DEFAULT_GOAL_END_MONTH,
    DEFAULT_GOAL_START_MONTH,
    DEFAULT_NAME,
    DEFAULT_UNIT,
    DOMAIN,
    OUTPUT_MODES,
    OUTPUT_NONE,
)

_OUTPUT_SELECTOR = selector.SelectSelector(
    selector.SelectSelectorConfig(
        options=OUTPUT_MODES,
        mode=selector.SelectSelectorMode.DROPDOWN,
        translation_key=CONF_OUTPUT_MODE,
    )
)

_HISTORY_CAP_SELECTOR = selector.NumberSelector(
    selector.NumberSelectorConfig(
        min=0, step=1, mode=selector.NumberSelectorMode.BOX
    )
)

_MONTH_SELECTOR = selector.NumberSelector(
    selector.NumberSelectorConfig(
        min=1, max=12, step=1, mode=selector.NumberSelectorMode.BOX
    )
)


def options_schema() -> vol.Schema:
    """Return the schema shared by setup and options."""
    return vol.Schema(
        {
            vol.Optional(CONF_OUTPUT_MODE, default=OUTPUT_NONE): _OUTPUT_SELECTOR,
            vol.Optional(CONF_MAX_HOUR_HISTORY, default=0): _HISTORY_CAP_SELECTOR,
            vol.Optional(CONF_MAX_DAY_HISTORY, default=0): _HISTORY_CAP_SELECTOR,
            vol.Optional(CONF_MAX_MONTH_HISTORY, default=0): _HISTORY_CAP_SELECTOR,
            vol.Optional(CONF_MAX_YEAR_HISTORY, default=0): _HISTORY_CAP_SELECTOR,
            vol.Optional(CONF_YEARLY_GOAL, default=0): selector.NumberSelector(
                selector.NumberSelectorConfig(
                    min=0, step="any", mode=selector.NumberSelectorMode.BOX
                )
            ),
            vol.Optional(
                CONF_GOAL_START_MONTH, default=DEFAULT_GOAL_START_MONTH
            ): _MONTH_SELECTOR,
            vol.Optional(
                CONF_GOAL_END_MONTH, default=DEFAULT_GOAL_END_MONTH
            ): _MONTH_SELECTOR,
        }
    )


def validate_options(user_input: dict[str, Any]) -> dict[str, str]:
    """Return form errors for options input."""
    errors: dict[str, str] = {}
    if float(user_input.get(CONF_YEARLY_GOAL) or 0) < 0:
        errors[CONF_YEARLY_GOAL] = "negative_goal"
    for key in (CONF_GOAL_START_MONTH, CONF_GOAL_END_MONTH):
        month = user_input.get(key)
        if month is not None and not 1 <= int(month) <= 12:
            errors[key] = "invalid_month"
    return errors


class HistoryTrackerFlowHandler(config_entries.ConfigFlow, domain=DOMAIN):
    """Config flow for History Tracker."""

    VERSION = 1

    @staticmethod
    @callback
    def async_get_options_flow(
        config_entry: config_entries.ConfigEntry,  # noqa: ARG004
    ) -> HistoryTrackerOptionsFlowHandler:
        """Get the options flow for this handler."""
        return HistoryTrackerOptionsFlowHandler()

    async def async_step_user(
        self,
        user_input: dict[str, Any] | None = None,
    ) -> config_entries.ConfigFlowResult:
        """Handle a flow initialized by the user."""
        _errors: dict[str, str] = {}

        if user_input is not None:
            _errors = validate_options(user_input)
            if not user_input.get(CONF_FILEPATH, "").strip():
                _errors[CONF_FILEPATH] = "empty_filepath"

            if not _errors:
                # One entry per history file
                await self.async_set_unique_id(user_input[CONF_FILEPATH].strip())
                self._abort_if_unique_id_configured()

                return self.async_create_entry(
                    title=user_input[CONF_NAME],
                    data=user_input,
                )

        return self.async_show_form(
            step_id="user",
            data_schema=vol.Schema(
                {
                    vol.Required(CONF_NAME, default=DEFAULT_NAME): TextSelector(
                        TextSelectorConfig(
                            type=TextSelectorType.TEXT, autocomplete="name"
                        )
                    ),
                    vol.Required(CONF_SOURCE_ENTITY): selector.EntitySelector(
                        selector.EntitySelectorConfig(
                            domain=["sensor", "input_number", "number"]
                        )
                    ),
                    vol.Optional(CONF_VALUE_ATTRIBUTE): TextSelector(),
                    vol.Required(CONF_FILEPATH, default=DEFAULT_FILEPATH): TextSelector(),
                    vol.Required(
                        CONF_UNIT_OF_MEASUREMENT, default=DEFAULT_UNIT
                    ): TextSelector(),
                }
            ).extend(options_schema().schema),
            errors=_errors,
        )


class HistoryTrackerOptionsFlowHandler(config_entries.OptionsFlow):
    """Handle History Tracker options."""

    async def async_step_init(
        self, user_input: dict[str, Any] | None = None
    ) -> config_entries.ConfigFlowResult:
        """Manage the options."""
        _errors: dict[str, str] = {}

        if user_input is not None:
            _errors = validate_options(user_input)
            if not _errors:
                return self.async_create_entry(title="", data=user_input)

        # Pre-fill with current values, options winning over setup data
        current = {**self.config_entry.data, **self.config_entry.options}
        suggested_values = {
            str(key): current[str(key)]
            for key in options_schema().schema
            if str(key) in current
        }

        return self.async_show_form(
            step_id="init",
            data_schema=self.add_suggested_values_to_schema(
                options_schema(), suggested_values
            ),
            errors=_errors,
        )
