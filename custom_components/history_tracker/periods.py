"""Period keys and display timestamps for History Tracker.

Every aggregate bucket is identified by a period key derived from the local
wall clock:

- hour:  ``YYYY-MM-DD_HH``
- day:   ``YYYY-MM-DD``
- month: ``YYYY-MM``
- year:  ``YYYY``

Display timestamps are written as ``YYYY-MM-DDTHH:MM:SS`` without an offset.
Files written by older releases used the locale form ``DD.MM.YYYY, HH:MM:SS``
which is still accepted when reading.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, timedelta
from enum import StrEnum

from homeassistant.util import dt as dt_util

DISPLAY_FORMAT = "%Y-%m-%dT%H:%M:%S"

_CANONICAL_TIMESTAMP = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})$"
)
_LOCALE_TIMESTAMP = re.compile(
    r"^(\d{1,2})\.(\d{1,2})\.(\d{4}),?\s+(\d{1,2}):(\d{2}):(\d{2})$"
)

_PERIOD_KEYS = {
    "hour": re.compile(r"^(\d{4})-(\d{2})-(\d{2})_(\d{2})$"),
    "day": re.compile(r"^(\d{4})-(\d{2})-(\d{2})$"),
    "month": re.compile(r"^(\d{4})-(\d{2})$"),
    "year": re.compile(r"^(\d{4})$"),
}


class Granularity(StrEnum):
    """Aggregation resolution, finest first."""

    HOUR = "hour"
    DAY = "day"
    MONTH = "month"
    YEAR = "year"

    @property
    def finer(self) -> Granularity | None:
        """Return the next finer granularity."""
        members = list(Granularity)
        index = members.index(self)
        return members[index - 1] if index else None


def to_local(instant: datetime) -> datetime:
    """Return the instant on the local wall clock.

    Naive datetimes are taken to be local already.
    """
    return dt_util.as_local(instant)


def period_key(instant: datetime, granularity: Granularity) -> str:
    """Return the period key of an instant."""
    local = to_local(instant)
    if granularity is Granularity.HOUR:
        return f"{local.year:04d}-{local.month:02d}-{local.day:02d}_{local.hour:02d}"
    if granularity is Granularity.DAY:
        return f"{local.year:04d}-{local.month:02d}-{local.day:02d}"
    if granularity is Granularity.MONTH:
        return f"{local.year:04d}-{local.month:02d}"
    return f"{local.year:04d}"


def display_timestamp(instant: datetime) -> str:
    """Return the canonical display timestamp of an instant."""
    return to_local(instant).strftime(DISPLAY_FORMAT)


def parse_display_timestamp(text: str | None) -> datetime | None:
    """Parse a canonical or legacy display timestamp.

    Returns a naive local datetime, or None when neither form matches.
    """
    if not text:
        return None
    text = text.strip()

    if match := _CANONICAL_TIMESTAMP.match(text):
        year, month, day, hour, minute, second = map(int, match.groups())
    elif match := _LOCALE_TIMESTAMP.match(text):
        day, month, year, hour, minute, second = map(int, match.groups())
    else:
        return None

    try:
        return datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None


def epoch_ms(instant: datetime) -> int:
    """Return milliseconds since the epoch."""
    return int(to_local(instant).timestamp() * 1000)


def epoch_ms_from_display(text: str | None) -> int | None:
    """Return epoch milliseconds for a display timestamp, if it parses."""
    if (parsed := parse_display_timestamp(text)) is None:
        return None
    return epoch_ms(parsed)


def parse_period_key(key: str | None, granularity: Granularity) -> datetime | None:
    """Return the start of the period a key names, or None if malformed."""
    if not key or not (match := _PERIOD_KEYS[granularity].match(key.strip())):
        return None
    fields = [int(group) for group in match.groups()]
    # Year and month keys start on the first day
    fields += [1] * (3 - len(fields))
    try:
        return datetime(*fields)
    except ValueError:
        return None


def _month_index(start: datetime) -> int:
    return start.year * 12 + start.month - 1


def elapsed_periods(
    old_key: str | None, new_key: str | None, granularity: Granularity
) -> int | None:
    """Return how many periods lie between two keys.

    Adjacent periods are one apart. None when either key is malformed.

    Keys name wall-clock periods, so hours are counted on the wall clock
    too: the hour skipped when clocks go forward still counts (and is gap
    filled with zero), the hour repeated when clocks go back shares one key.
    """
    old = parse_period_key(old_key, granularity)
    new = parse_period_key(new_key, granularity)
    if old is None or new is None:
        return None

    if granularity is Granularity.HOUR:
        return int((new - old).total_seconds() // 3600)
    if granularity is Granularity.DAY:
        return (new.date() - old.date()).days
    if granularity is Granularity.MONTH:
        return _month_index(new) - _month_index(old)
    return new.year - old.year


def shift_period(start: datetime, granularity: Granularity, count: int) -> datetime:
    """Return the start of the period ``count`` periods after ``start``."""
    if granularity is Granularity.HOUR:
        return start + timedelta(hours=count)
    if granularity is Granularity.DAY:
        return start + timedelta(days=count)
    if granularity is Granularity.MONTH:
        year, month = divmod(_month_index(start) + count, 12)
        return start.replace(year=year, month=month + 1, day=1)
    return start.replace(year=start.year + count)


def periods_between(
    old_key: str, new_key: str, granularity: Granularity
) -> list[str]:
    """Return the keys strictly between two keys, newest first."""
    count = elapsed_periods(old_key, new_key, granularity)
    old = parse_period_key(old_key, granularity)
    if count is None or old is None or count < 2:
        return []
    return [
        period_key(shift_period(old, granularity, step), granularity)
        for step in range(count - 1, 0, -1)
    ]


def last_day_of_month(year: int, month: int) -> date:
    """Return the last calendar day of a month."""
    return date(year, month, calendar.monthrange(year, month)[1])


def period_end(key: str, granularity: Granularity) -> datetime | None:
    """Return the last second of the period a key names."""
    start = parse_period_key(key, granularity)
    if start is None:
        return None
    if granularity is Granularity.HOUR:
        return start.replace(minute=59, second=59)
    if granularity is Granularity.DAY:
        return start.replace(hour=23, minute=59, second=59)
    if granularity is Granularity.MONTH:
        end = last_day_of_month(start.year, start.month)
        return datetime(end.year, end.month, end.day, 23, 59, 59)
    return datetime(start.year, 12, 31, 23, 59, 59)
