"""Goal projection for History Tracker.

A yearly consumption goal applies to a window of months. The window may
wrap over new year: start month 10 and end month 3 covers October through
March. What is left of the goal is spread evenly over the days and months
remaining in the window. Consumption is always taken from month data.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from homeassistant.util import dt as dt_util

from .models import GoalConfig, GoalProjection
from .periods import Granularity, last_day_of_month, parse_period_key, to_local

if TYPE_CHECKING:
    from .models import AggregateState, PeriodEntry

_LOGGER = logging.getLogger(__name__)

type YearMonth = tuple[int, int]


def goal_window(goal_config: GoalConfig, now: datetime) -> tuple[YearMonth, YearMonth]:
    """Return the first and last (year, month) of the window around now."""
    year = now.year
    start, end = goal_config.start_month, goal_config.end_month

    if not goal_config.spans_years:
        return (year, start), (year, end)
    if now.month >= start:
        return (year, start), (year + 1, end)
    return (year - 1, start), (year, end)


def in_window(month: YearMonth, window: tuple[YearMonth, YearMonth]) -> bool:
    """Return True if a (year, month) lies inside the window."""
    first, last = window
    return first <= month <= last


def _entry_month(entry: PeriodEntry) -> YearMonth | None:
    start = parse_period_key(entry.period, Granularity.MONTH)
    if start is None:
        return None
    return start.year, start.month


def consumed_in_window(
    state: AggregateState, window: tuple[YearMonth, YearMonth]
) -> float:
    """Sum the current month and month history inside the window."""
    total = 0.0
    for entry in [state.current_month, *state.month_history]:
        month = _entry_month(entry)
        if month is not None and entry.value is not None and in_window(month, window):
            total += entry.value
    return total


def project_goal(
    state: AggregateState,
    goal_config: GoalConfig | None,
    now: datetime | None = None,
) -> GoalProjection:
    """Project a yearly goal onto the remaining days and months."""
    goal_config = goal_config or GoalConfig()

    if not goal_config.enabled:
        return GoalProjection(
            goal_per_day=None,
            goal_per_month=None,
            goal_per_year=None,
            total_consumed=0.0,
            remaining_goal=0.0,
            yearly_goal=0.0,
            start_month=goal_config.start_month,
            end_month=goal_config.end_month,
        )

    local = to_local(now or dt_util.now())
    window = goal_window(goal_config, local)
    total_consumed = consumed_in_window(state, window)
    remaining_goal = max(0.0, goal_config.yearly_goal - total_consumed)

    projection = GoalProjection(
        goal_per_day=None,
        goal_per_month=None,
        goal_per_year=None,
        total_consumed=total_consumed,
        remaining_goal=remaining_goal,
        yearly_goal=goal_config.yearly_goal,
        start_month=goal_config.start_month,
        end_month=goal_config.end_month,
    )

    if not in_window((local.year, local.month), window):
        _LOGGER.debug(
            "%s is outside the goal window %s, no projection", local.date(), window
        )
        return projection

    end_year, end_month = window[1]
    remaining_months = (end_year - local.year) * 12 + (end_month - local.month) + 1
    remaining_days = (
        last_day_of_month(end_year, end_month) - local.date()
    ).days + 1

    projection.goal_per_month = remaining_goal / max(remaining_months, 1)
    projection.goal_per_day = remaining_goal / max(remaining_days, 1)
    projection.goal_per_year = goal_config.yearly_goal
    return projection
