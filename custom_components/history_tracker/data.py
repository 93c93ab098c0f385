"""Custom types for History Tracker."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry

    from .tracker import HistoryTracker


type HistoryTrackerConfigEntry = ConfigEntry[HistoryTracker]
