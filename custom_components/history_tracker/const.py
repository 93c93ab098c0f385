"""Constants for History Tracker."""

from __future__ import annotations

from logging import Logger, getLogger
from typing import Final

LOGGER: Final[Logger] = getLogger(__package__)

DOMAIN: Final[str] = "history_tracker"
VERSION: Final[str] = "3.0.0"

# Configuration (alphabetical order)
CONF_FILEPATH: Final[str] = "filepath"
CONF_GOAL_END_MONTH: Final[str] = "goal_end_month"
CONF_GOAL_START_MONTH: Final[str] = "goal_start_month"
CONF_MAX_DAY_HISTORY: Final[str] = "max_day_history"
CONF_MAX_HOUR_HISTORY: Final[str] = "max_hour_history"
CONF_MAX_MONTH_HISTORY: Final[str] = "max_month_history"
CONF_MAX_YEAR_HISTORY: Final[str] = "max_year_history"
CONF_OUTPUT_MODE: Final[str] = "output_mode"
CONF_SOURCE_ENTITY: Final[str] = "source_entity"
CONF_VALUE_ATTRIBUTE: Final[str] = "value_attribute"
CONF_YEARLY_GOAL: Final[str] = "yearly_goal"

# Service parameters (alphabetical order)
ATTR_ENTRY_ID: Final[str] = "entry_id"
ATTR_OUTPUT: Final[str] = "output"
ATTR_VALUE: Final[str] = "value"

# Default values
DEFAULT_FILEPATH: Final[str] = "history.txt"
DEFAULT_NAME: Final[str] = "Water Meter"
DEFAULT_UNIT: Final[str] = "Liter"
DEFAULT_GOAL_START_MONTH: Final[int] = 1
DEFAULT_GOAL_END_MONTH: Final[int] = 12

# At least two years of month history keep the goal window math intact
MIN_MONTH_HISTORY: Final[int] = 24

# Output modes (alphabetical order)
OUTPUT_ALL: Final[str] = "all"
OUTPUT_CURRENT: Final[str] = "current"
OUTPUT_DAY_HISTORY: Final[str] = "day_history"
OUTPUT_HOUR_HISTORY: Final[str] = "hour_history"
OUTPUT_LAST: Final[str] = "last"
OUTPUT_MONTH_HISTORY: Final[str] = "month_history"
OUTPUT_NONE: Final[str] = "none"
OUTPUT_YEAR_HISTORY: Final[str] = "year_history"

OUTPUT_MODES: Final[list[str]] = [
    OUTPUT_NONE,
    OUTPUT_LAST,
    OUTPUT_CURRENT,
    OUTPUT_ALL,
    OUTPUT_HOUR_HISTORY,
    OUTPUT_DAY_HISTORY,
    OUTPUT_MONTH_HISTORY,
    OUTPUT_YEAR_HISTORY,
]

# Events and dispatcher signals
EVENT_UPDATED: Final[str] = f"{DOMAIN}_updated"
SIGNAL_UPDATED: Final[str] = f"{DOMAIN}_updated_{{}}"

# Error codes reported by the tracker
ERROR_INVALID_VALUE: Final[str] = "invalid_value"
ERROR_STORAGE: Final[str] = "storage_error"
