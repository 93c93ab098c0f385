"""Period rollover for History Tracker.

Each reading is turned into a consumption delta against the previous
reading and added to the open hour, day, month and year. When the period
key of a granularity changes, the open period is closed into history
(newest first) and a new one is opened. Periods skipped while no readings
arrived are filled in with zero entries so the history stays contiguous.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from homeassistant.util import dt as dt_util

from .goal import project_goal
from .history_file import load_state, save_state
from .models import AggregateState, GoalConfig, LastValue, PeriodEntry
from .periods import (
    Granularity,
    display_timestamp,
    elapsed_periods,
    epoch_ms,
    period_end,
    period_key,
    periods_between,
)

if TYPE_CHECKING:
    from pathlib import Path

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GranularityRule:
    """How one granularity rolls over."""

    granularity: Granularity
    # Zero entries carry min/max = 0 where closed periods always have them
    synthetic_min_max: bool
    # GoalProjection field handed to a newly opened period
    goal_field: str | None


RULES: tuple[GranularityRule, ...] = (
    GranularityRule(Granularity.HOUR, synthetic_min_max=False, goal_field=None),
    GranularityRule(Granularity.DAY, synthetic_min_max=True, goal_field="goal_per_day"),
    GranularityRule(
        Granularity.MONTH, synthetic_min_max=True, goal_field="goal_per_month"
    ),
    GranularityRule(
        Granularity.YEAR, synthetic_min_max=True, goal_field="goal_per_year"
    ),
)


def consumption_delta(state: AggregateState, value: float) -> float:
    """Return the consumption since the last reading, never negative."""
    previous = state.last_value.value
    if previous is None:
        return 0.0
    return max(0.0, value - previous)


def _close_min_max(
    state: AggregateState, closing: PeriodEntry, rule: GranularityRule
) -> None:
    """Set min/max of a closing period from the finer history inside it."""
    finer = rule.granularity.finer
    if finer is None or not closing.period:
        return

    values = [
        entry.value
        for entry in state.history(finer)
        if entry.value is not None
        and entry.period
        and entry.period.startswith(closing.period)
    ]
    if values:
        closing.min = min(values)
        closing.max = max(values)


def _zero_entry(key: str, rule: GranularityRule) -> PeriodEntry:
    """Return a placeholder for a period without readings."""
    end = period_end(key, rule.granularity)
    return PeriodEntry(
        period=key,
        value=0.0,
        timestamp=display_timestamp(end) if end else None,
        epoch_ms=epoch_ms(end) if end else None,
        min=0.0 if rule.synthetic_min_max else None,
        max=0.0 if rule.synthetic_min_max else None,
    )


def roll_period(
    state: AggregateState,
    rule: GranularityRule,
    delta: float,
    now: datetime,
    goal_config: GoalConfig | None = None,
) -> None:
    """Add a delta to one granularity, rolling over if the period changed."""
    granularity = rule.granularity
    new_key = period_key(now, granularity)
    current = state.current(granularity)
    timestamp = display_timestamp(now)
    stamp_ms = epoch_ms(now)

    if not current.period or current.period == new_key:
        current.period = new_key
        current.value = (current.value or 0.0) + delta
        current.timestamp = timestamp
        current.epoch_ms = stamp_ms
        return

    goal = None
    if goal_config is not None and goal_config.enabled and rule.goal_field:
        # Projected before the history changes; the goal belongs to the new period
        goal = getattr(project_goal(state, goal_config, now), rule.goal_field)

    _close_min_max(state, current, rule)

    elapsed = elapsed_periods(current.period, new_key, granularity)
    if elapsed is None:
        _LOGGER.warning(
            "Unparseable %s period %r, closing it without gap fill",
            granularity,
            current.period,
        )
        elapsed = 1

    gap: list[PeriodEntry] = []
    if elapsed > 1:
        gap = [
            _zero_entry(key, rule)
            for key in periods_between(current.period, new_key, granularity)
        ]
        _LOGGER.debug(
            "Filling %d missing %s periods between %s and %s",
            len(gap),
            granularity,
            current.period,
            new_key,
        )

    state.history(granularity)[:0] = [*gap, current]
    state.set_current(
        granularity,
        PeriodEntry(
            period=new_key,
            value=delta,
            timestamp=timestamp,
            epoch_ms=stamp_ms,
            goal=goal,
        ),
    )


def apply_reading(
    state: AggregateState,
    value: float,
    now: datetime | None = None,
    goal_config: GoalConfig | None = None,
) -> AggregateState:
    """Fold a new counter reading into state."""
    now = now or dt_util.now()
    delta = consumption_delta(state, value)

    state.last_value = LastValue(
        value=value,
        timestamp=display_timestamp(now),
        epoch_ms=epoch_ms(now),
    )

    # Hour first, each coarser period reads the finer history for min/max
    for rule in RULES:
        roll_period(state, rule, delta, now, goal_config)

    if goal_config is not None and goal_config.enabled:
        state.goal_projection = project_goal(state, goal_config, now)
    else:
        state.goal_projection = None

    return state


def record_reading(
    path: str | Path,
    value: float,
    unit: str,
    goal_config: GoalConfig | None = None,
    now: datetime | None = None,
) -> AggregateState:
    """Load the history file, add a reading and write it back.

    Raises StorageWriteError when the file cannot be written; the updated
    state is available on the error.
    """
    now = now or dt_util.now()
    state = load_state(path)
    apply_reading(state, value, now, goal_config)
    save_state(path, state, unit, now)

    _LOGGER.debug(
        "Recorded %.2f %s at %s (hour %.2f, day %.2f)",
        value,
        unit,
        state.last_value.timestamp,
        state.current_hour.value or 0.0,
        state.current_day.value or 0.0,
    )
    return state
