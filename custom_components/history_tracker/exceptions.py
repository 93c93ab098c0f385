"""Exceptions for History Tracker."""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.exceptions import HomeAssistantError

if TYPE_CHECKING:
    from .models import AggregateState


class HistoryTrackerError(HomeAssistantError):
    """Base error for History Tracker."""


class InvalidReadingError(HistoryTrackerError):
    """Raised when an inbound reading is not a usable number."""

    def __init__(self, raw: object) -> None:
        """Initialize the error."""
        super().__init__(f"Invalid value: {raw!r}")
        self.raw = raw


class StorageWriteError(HistoryTrackerError):
    """Raised when the history file could not be written.

    The state computed before the failed write is kept on ``state`` so the
    caller can still use it.
    """

    def __init__(
        self,
        path: str,
        err: OSError | HomeAssistantError,
        state: AggregateState | None = None,
    ) -> None:
        """Initialize the error."""
        super().__init__(f"Failed to write history file {path}: {err}")
        self.path = path
        self.state = state
