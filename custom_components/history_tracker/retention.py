"""History retention for History Tracker."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .periods import Granularity

if TYPE_CHECKING:
    from .models import AggregateState, RetentionLimits

_LOGGER = logging.getLogger(__name__)


def trim_history(state: AggregateState, limits: RetentionLimits) -> bool:
    """Cap every history list at its configured length.

    History is stored newest first, so the oldest entries are dropped.
    Returns True when anything was removed.
    """
    trimmed = False
    for granularity in Granularity:
        limit = limits.for_granularity(granularity)
        history = state.history(granularity)
        if limit <= 0 or len(history) <= limit:
            continue

        _LOGGER.debug(
            "Trimming %s history from %d to %d entries",
            granularity,
            len(history),
            limit,
        )
        del history[limit:]
        trimmed = True

    return trimmed
