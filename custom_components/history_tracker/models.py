"""Data models for History Tracker integration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .const import (
    CONF_GOAL_END_MONTH,
    CONF_GOAL_START_MONTH,
    CONF_MAX_DAY_HISTORY,
    CONF_MAX_HOUR_HISTORY,
    CONF_MAX_MONTH_HISTORY,
    CONF_MAX_YEAR_HISTORY,
    CONF_YEARLY_GOAL,
    DEFAULT_GOAL_END_MONTH,
    DEFAULT_GOAL_START_MONTH,
    MIN_MONTH_HISTORY,
)
from .periods import Granularity


@dataclass
class LastValue:
    """Most recent raw counter reading."""

    value: float | None = None
    timestamp: str | None = None
    epoch_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dictionary, leaving out absent fields."""
        data: dict[str, Any] = {}
        if self.value is not None:
            data["value"] = self.value
        if self.timestamp is not None:
            data["timestamp"] = self.timestamp
        if self.epoch_ms is not None:
            data["timestampMs"] = self.epoch_ms
        return data


@dataclass
class PeriodEntry:
    """One open or closed bucket at a given granularity.

    ``min`` and ``max`` are only known for closed periods, ``goal`` only when
    a yearly goal was configured while the period was opened.
    """

    period: str | None = None
    value: float | None = None
    timestamp: str | None = None
    epoch_ms: int | None = None
    min: float | None = None
    max: float | None = None
    goal: float | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert entry to dictionary, leaving out absent fields."""
        data: dict[str, Any] = {}
        for key, value in (
            ("period", self.period),
            ("value", self.value),
            ("timestamp", self.timestamp),
            ("timestampMs", self.epoch_ms),
            ("min", self.min),
            ("max", self.max),
            ("goal", self.goal),
        ):
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PeriodEntry:
        """Create entry from dictionary."""
        return cls(
            period=data.get("period"),
            value=data.get("value"),
            timestamp=data.get("timestamp"),
            epoch_ms=data.get("timestampMs"),
            min=data.get("min"),
            max=data.get("max"),
            goal=data.get("goal"),
        )


@dataclass
class GoalConfig:
    """Yearly consumption goal and the month window it applies to."""

    yearly_goal: float = 0.0
    start_month: int = DEFAULT_GOAL_START_MONTH
    end_month: int = DEFAULT_GOAL_END_MONTH

    @property
    def enabled(self) -> bool:
        """Return True when a goal is configured."""
        return self.yearly_goal > 0

    @property
    def spans_years(self) -> bool:
        """Return True when the window wraps over new year (e.g. Oct-Mar)."""
        return self.start_month > self.end_month

    @classmethod
    def from_options(cls, options: dict[str, Any]) -> GoalConfig:
        """Create goal config from config entry options."""
        return cls(
            yearly_goal=float(options.get(CONF_YEARLY_GOAL) or 0),
            start_month=int(
                options.get(CONF_GOAL_START_MONTH) or DEFAULT_GOAL_START_MONTH
            ),
            end_month=int(options.get(CONF_GOAL_END_MONTH) or DEFAULT_GOAL_END_MONTH),
        )


@dataclass
class GoalProjection:
    """Result of a goal projection."""

    goal_per_day: float | None
    goal_per_month: float | None
    goal_per_year: float | None
    total_consumed: float
    remaining_goal: float
    yearly_goal: float
    start_month: int
    end_month: int

    def to_dict(self) -> dict[str, Any]:
        """Convert projection to dictionary."""
        return {
            "goalPerDay": self.goal_per_day,
            "goalPerMonth": self.goal_per_month,
            "goalPerYear": self.goal_per_year,
            "totalConsumed": self.total_consumed,
            "remainingGoal": self.remaining_goal,
            "yearlyGoal": self.yearly_goal,
            "goalStartMonth": self.start_month,
            "goalEndMonth": self.end_month,
        }


@dataclass
class RetentionLimits:
    """Maximum history length per granularity, 0 meaning unlimited."""

    hour: int = 0
    day: int = 0
    month: int = 0
    year: int = 0

    def for_granularity(self, granularity: Granularity) -> int:
        """Return the cap for a granularity."""
        return getattr(self, granularity.value)

    @classmethod
    def from_options(cls, options: dict[str, Any]) -> RetentionLimits:
        """Create limits from config entry options.

        A month cap below two years is raised to keep goal math working.
        """
        month = int(options.get(CONF_MAX_MONTH_HISTORY) or 0)
        if 0 < month < MIN_MONTH_HISTORY:
            month = MIN_MONTH_HISTORY
        return cls(
            hour=int(options.get(CONF_MAX_HOUR_HISTORY) or 0),
            day=int(options.get(CONF_MAX_DAY_HISTORY) or 0),
            month=month,
            year=int(options.get(CONF_MAX_YEAR_HISTORY) or 0),
        )


@dataclass
class AggregateState:
    """Everything stored in a history file."""

    last_value: LastValue = field(default_factory=LastValue)
    current_hour: PeriodEntry = field(default_factory=PeriodEntry)
    hour_history: list[PeriodEntry] = field(default_factory=list)
    current_day: PeriodEntry = field(default_factory=PeriodEntry)
    day_history: list[PeriodEntry] = field(default_factory=list)
    current_month: PeriodEntry = field(default_factory=PeriodEntry)
    month_history: list[PeriodEntry] = field(default_factory=list)
    current_year: PeriodEntry = field(default_factory=PeriodEntry)
    year_history: list[PeriodEntry] = field(default_factory=list)
    # Written to the file header only, never read back
    goal_projection: GoalProjection | None = None

    def current(self, granularity: Granularity) -> PeriodEntry:
        """Return the open period of a granularity."""
        return getattr(self, f"current_{granularity.value}")

    def set_current(self, granularity: Granularity, entry: PeriodEntry) -> None:
        """Replace the open period of a granularity."""
        setattr(self, f"current_{granularity.value}", entry)

    def history(self, granularity: Granularity) -> list[PeriodEntry]:
        """Return the closed periods of a granularity, newest first."""
        return getattr(self, f"{granularity.value}_history")

    def current_to_dict(self) -> dict[str, Any]:
        """Return the last value and the open periods."""
        return {
            "lastValue": self.last_value.to_dict(),
            "currentHour": self.current_hour.to_dict(),
            "currentDay": self.current_day.to_dict(),
            "currentMonth": self.current_month.to_dict(),
            "currentYear": self.current_year.to_dict(),
        }

    def to_dict(self) -> dict[str, Any]:
        """Convert the whole state to a dictionary."""
        data = self.current_to_dict()
        for granularity in Granularity:
            data[f"{granularity.value}History"] = [
                entry.to_dict() for entry in self.history(granularity)
            ]
        if self.goal_projection is not None:
            data["goal"] = self.goal_projection.to_dict()
        return data
