"""Read and write History Tracker files.

A history file is plain UTF-8 text split into sections::

    ============================================================
      CURRENT HOUR
    ============================================================
    T: 2024-03-07T14:12:05  -  P: 2024-03-07_14  -  V: 12.50 Liter

Each data line follows::

    T: <timestamp>  -  [P: <period>  -  ]V: <value> <unit>
        [  -  Min: <min>][  -  Max: <max>][  -  G: <goal>]

Two older layouts are still read: the spelled-out one with one
``Periode:``/``Wert:``/``Zeitstempel:`` field per line under German section
titles, and the compact one with ``DD.MM.YYYY, HH:MM:SS`` timestamps.
Writing always produces the current layout.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

from homeassistant.exceptions import HomeAssistantError
from homeassistant.util import dt as dt_util
from homeassistant.util.file import write_utf8_file_atomic

from .exceptions import StorageWriteError
from .models import AggregateState, LastValue, PeriodEntry
from .periods import (
    DISPLAY_FORMAT,
    Granularity,
    display_timestamp,
    epoch_ms_from_display,
    parse_display_timestamp,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .models import GoalProjection

_LOGGER = logging.getLogger(__name__)

FORMAT_VERSION = 3
RULE = "=" * 60
SEPARATOR = "  -  "

LAST_VALUE = "last"

_RULE_LINE = re.compile(r"^={3,}$")
_ENTRY_BREAK = re.compile(r"^(-{3,}|\w+ \d+:)$")
_TITLE = re.compile(r"^[A-ZÄÖÜ ]+$")
_TOKEN_SPLIT = re.compile(r"\s+-\s+")
_TOKEN = re.compile(r"^(T|P|V|Min|Max|G):\s*(.*)$")
_NUMBER = re.compile(r"^[-+]?(\d+(\.\d*)?|\.\d+)$")
_SPELLED_OUT = re.compile(
    r"^(Periode|Period|Wert|Value|Zeitstempel|Timestamp):\s*(.*)$"
)

_SPELLED_OUT_FIELDS = {
    "Periode": "P",
    "Period": "P",
    "Wert": "V",
    "Value": "V",
    "Zeitstempel": "T",
    "Timestamp": "T",
}

# Section title -> (granularity or LAST_VALUE, is_history)
_SECTIONS: dict[str, tuple[Granularity | str, bool]] = {
    "LAST VALUE": (LAST_VALUE, False),
    "CURRENT HOUR": (Granularity.HOUR, False),
    "HOUR HISTORY": (Granularity.HOUR, True),
    "CURRENT DAY": (Granularity.DAY, False),
    "DAY HISTORY": (Granularity.DAY, True),
    "CURRENT MONTH": (Granularity.MONTH, False),
    "MONTH HISTORY": (Granularity.MONTH, True),
    "CURRENT YEAR": (Granularity.YEAR, False),
    "YEAR HISTORY": (Granularity.YEAR, True),
    # Layout of the first releases
    "LETZTER WERT": (LAST_VALUE, False),
    "AKTUELLE STUNDE": (Granularity.HOUR, False),
    "LETZTE STUNDE": (Granularity.HOUR, True),
    "AKTUELLER TAG": (Granularity.DAY, False),
    "LETZTER TAG": (Granularity.DAY, True),
    "AKTUELLER MONAT": (Granularity.MONTH, False),
    "MONATSHISTORY": (Granularity.MONTH, True),
    "AKTUELLES JAHR": (Granularity.YEAR, False),
    "JAHRESHISTORY": (Granularity.YEAR, True),
}

_SECTION_TITLES: list[tuple[str, Granularity | str, bool]] = [
    ("LAST VALUE", LAST_VALUE, False),
    ("CURRENT HOUR", Granularity.HOUR, False),
    ("HOUR HISTORY (All past hours)", Granularity.HOUR, True),
    ("CURRENT DAY", Granularity.DAY, False),
    ("DAY HISTORY (All past days)", Granularity.DAY, True),
    ("CURRENT MONTH", Granularity.MONTH, False),
    ("MONTH HISTORY (All past months)", Granularity.MONTH, True),
    ("CURRENT YEAR", Granularity.YEAR, False),
    ("YEAR HISTORY (All past years)", Granularity.YEAR, True),
]


def _section_for(title: str) -> tuple[Granularity | str, bool] | None:
    """Return the section a title line opens, ignoring a trailing note."""
    name = title.split("(", 1)[0].strip()
    if not _TITLE.match(name):
        return None
    return _SECTIONS.get(name)


def _to_float(text: str | None) -> float | None:
    if text is None or not _NUMBER.match(text.strip()):
        return None
    return float(text)


def _parse_value(text: str) -> float | None:
    """Parse ``<value> <unit>``, the unit being free text."""
    number = text.split(None, 1)[0] if text.strip() else ""
    return _to_float(number)


def parse_line(line: str) -> dict[str, str] | None:
    """Split a compact data line into its tokens.

    Returns None unless the line starts with a timestamp token and carries
    a value token.
    """
    tokens: dict[str, str] = {}
    last_key = None
    for part in _TOKEN_SPLIT.split(line.strip()):
        match = _TOKEN.match(part.strip())
        if not match and last_key == "V":
            # Free text units may contain the separator
            tokens["V"] = f"{tokens['V']}{SEPARATOR}{part.strip()}"
            continue
        if not match or match.group(1) in tokens:
            return None
        last_key = match.group(1)
        tokens[last_key] = match.group(2).strip()

    if not line.lstrip().startswith("T:") or "V" not in tokens:
        return None
    return tokens


def _canonical_timestamp(text: str | None) -> str | None:
    """Rewrite a legacy timestamp in the canonical form, keeping unknown text."""
    parsed = parse_display_timestamp(text)
    return parsed.strftime(DISPLAY_FORMAT) if parsed is not None else text


def _entry_from_tokens(tokens: dict[str, str]) -> PeriodEntry | None:
    value = _parse_value(tokens.get("V", ""))
    if value is None:
        return None
    timestamp = tokens.get("T") or None
    return PeriodEntry(
        period=tokens.get("P") or None,
        value=value,
        timestamp=_canonical_timestamp(timestamp),
        epoch_ms=epoch_ms_from_display(timestamp),
        min=_to_float(tokens.get("Min")),
        max=_to_float(tokens.get("Max")),
        goal=_to_float(tokens.get("G")),
    )


@dataclass
class _Decoder:
    """Walks the lines of a history file and fills a state."""

    state: AggregateState = field(default_factory=AggregateState)
    section: tuple[Granularity | str, bool] | None = None
    # Fields collected from the spelled-out layout
    pending: dict[str, str] = field(default_factory=dict)
    seen: set[tuple[Granularity | str, bool]] = field(default_factory=set)

    def feed(self, lines: Iterable[str]) -> AggregateState:
        after_rule = False
        for raw in lines:
            line = raw.strip()
            if not line:
                continue

            if _RULE_LINE.match(line):
                after_rule = True
                continue

            if after_rule:
                after_rule = False
                if (section := _section_for(line)) is not None or _TITLE.match(
                    line.split("(", 1)[0].strip()
                ):
                    self._flush()
                    self.section = section
                    continue

            if line.startswith("#") or self.section is None:
                continue

            if _ENTRY_BREAK.match(line):
                self._flush()
            elif match := _SPELLED_OUT.match(line):
                key = _SPELLED_OUT_FIELDS[match.group(1)]
                if key in self.pending:
                    self._flush()
                self.pending[key] = match.group(2).strip()
            elif (tokens := parse_line(line)) is not None:
                self._flush()
                self._add(_entry_from_tokens(tokens))
            else:
                _LOGGER.debug("Skipping unrecognised line: %s", line)

        self._flush()
        return self.state

    def _flush(self) -> None:
        if not self.pending:
            return
        tokens, self.pending = self.pending, {}
        self._add(_entry_from_tokens(tokens))

    def _add(self, entry: PeriodEntry | None) -> None:
        if entry is None or self.section is None:
            return

        target, is_history = self.section
        if is_history:
            if entry.period:
                self.state.history(target).append(entry)
            return

        # Single-entry sections keep the first matching line
        if self.section in self.seen:
            return
        self.seen.add(self.section)

        if target == LAST_VALUE:
            self.state.last_value = LastValue(
                value=entry.value,
                timestamp=entry.timestamp,
                epoch_ms=entry.epoch_ms,
            )
        else:
            self.state.set_current(target, entry)


def decode(text: str) -> AggregateState:
    """Build a state from the text of a history file."""
    return _Decoder().feed(text.splitlines())


def _format_number(value: float) -> str:
    return f"{value:.2f}"


def format_entry(entry: PeriodEntry, unit: str) -> str | None:
    """Return the data line of an entry, or None if it holds no value."""
    if entry.value is None:
        return None

    parts = [f"T: {entry.timestamp or ''}"]
    if entry.period:
        parts.append(f"P: {entry.period}")
    parts.append(f"V: {_format_number(entry.value)} {unit}".rstrip())
    if entry.min is not None:
        parts.append(f"Min: {_format_number(entry.min)}")
    if entry.max is not None:
        parts.append(f"Max: {_format_number(entry.max)}")
    if entry.goal is not None:
        parts.append(f"G: {_format_number(entry.goal)}")
    return SEPARATOR.join(parts)


def _header(projection: GoalProjection | None, unit: str, now: datetime) -> list[str]:
    lines = [
        f"# History Tracker file format v{FORMAT_VERSION}",
        f"# Generated: {display_timestamp(now)}",
    ]
    if projection is not None and projection.yearly_goal > 0:
        lines += [
            f"# Goal: {_format_number(projection.yearly_goal)} {unit} per year "
            f"(months {projection.start_month}-{projection.end_month})",
            f"# Consumed: {_format_number(projection.total_consumed)} {unit}",
            f"# Remaining: {_format_number(projection.remaining_goal)} {unit}",
        ]
    return lines


def encode(state: AggregateState, unit: str, now: datetime | None = None) -> str:
    """Render a state in the current file layout."""
    lines = _header(state.goal_projection, unit, now or dt_util.now())
    lines.append("")

    for title, target, is_history in _SECTION_TITLES:
        lines += [RULE, f"  {title}", RULE]
        if target == LAST_VALUE:
            entries = [
                PeriodEntry(
                    value=state.last_value.value,
                    timestamp=state.last_value.timestamp,
                )
            ]
        elif is_history:
            entries = state.history(target)
        else:
            entries = [state.current(target)]

        for entry in entries:
            if (line := format_entry(entry, unit)) is not None:
                lines.append(line)
        lines += ["", ""]

    return "\n".join(lines)


def load_state(path: str | Path) -> AggregateState:
    """Load the state stored at path.

    A missing or unreadable file gives an empty state.
    """
    try:
        with open(path, encoding="utf-8") as file:
            text = file.read()
    except FileNotFoundError:
        _LOGGER.debug("No history file at %s, starting empty", path)
        return AggregateState()
    except (OSError, UnicodeDecodeError) as err:
        _LOGGER.warning("Could not read history file %s: %s", path, err)
        return AggregateState()

    try:
        return decode(text)
    except ValueError as err:
        _LOGGER.warning("Corrupt history file %s, starting empty: %s", path, err)
        return AggregateState()


def save_state(
    path: str | Path,
    state: AggregateState,
    unit: str,
    now: datetime | None = None,
) -> None:
    """Write state to path in the current layout.

    The file is replaced atomically, a failed write leaves the old file.
    """
    content = encode(state, unit, now)
    try:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        write_utf8_file_atomic(str(path), content)
    except (OSError, HomeAssistantError) as err:
        raise StorageWriteError(str(path), err, state) from err

    _LOGGER.debug("Saved history file %s", path)
