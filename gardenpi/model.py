"""
Core data types shared by the store, the evaluator and the HTTP layer.

The controller drives a fixed bank of eight valves.  Valves are addressed
either by index (0-7) or by name (``valve1`` .. ``valve8``); anything else is
rejected with :class:`~gardenpi.errors.InvalidValve`.  Times of day are kept
at minute precision and travel over the wire as ``HH:MM`` strings, the same
format the schedule editor has always used.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import time
from typing import Any, Dict, Iterable, List, Tuple

from .errors import InvalidSchedule, InvalidValve

VALVE_COUNT = 8


class Mode(enum.Enum):
    """Selects which source of truth drives the valve outputs."""

    SCHEDULED = "scheduled"
    MANUAL = "manual"

    @classmethod
    def parse(cls, value: Any) -> "Mode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown mode: {value!r}") from None


class ValveState(enum.Enum):
    ON = "on"
    OFF = "off"

    @classmethod
    def parse(cls, value: Any) -> "ValveState":
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.ON if value else cls.OFF
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown valve state: {value!r}") from None

    @property
    def is_on(self) -> bool:
        return self is ValveState.ON


class Valve(enum.IntEnum):
    VALVE1 = 0
    VALVE2 = 1
    VALVE3 = 2
    VALVE4 = 3
    VALVE5 = 4
    VALVE6 = 5
    VALVE7 = 6
    VALVE8 = 7

    @property
    def key(self) -> str:
        """Wire name, e.g. ``valve3``."""
        return self.name.lower()

    @classmethod
    def parse(cls, value: Any) -> "Valve":
        """Resolve an index, enum member or ``valveN`` name to a Valve.

        Raises InvalidValve for anything outside the fixed set; values are
        never clamped into range.
        """
        if isinstance(value, cls):
            return value
        # bool is an int subclass; True must not silently become valve 2
        if isinstance(value, bool):
            raise InvalidValve(value)
        if isinstance(value, int):
            if 0 <= value < VALVE_COUNT:
                return cls(value)
            raise InvalidValve(value)
        if isinstance(value, str):
            s = value.strip().lower()
            if s.isascii() and s.isdecimal():
                return cls.parse(int(s))
            for member in cls:
                if member.key == s:
                    return member
        raise InvalidValve(value)


def parse_time(value: Any) -> time:
    """Parse an ``H:MM`` or ``HH:MM`` (24h) string into a time of day."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0, tzinfo=None)
    if not isinstance(value, str):
        raise ValueError("Times must be HH:MM (24h)")
    parts = value.strip().split(":")
    if len(parts) != 2:
        raise ValueError("Times must be HH:MM (24h)")
    try:
        h = int(parts[0])
        m = int(parts[1])
    except ValueError:
        raise ValueError("Times must be HH:MM (24h)") from None
    if not (0 <= h < 24 and 0 <= m < 60):
        raise ValueError(f"Time out of range: {value!r}")
    return time(h, m)


def format_time(t: time) -> str:
    return t.strftime("%H:%M")


@dataclass(frozen=True)
class Timespan:
    """A window during which a scheduled valve should be on.

    ``start > end`` denotes an overnight window (e.g. 22:00-06:00).
    """

    start: time
    end: time

    def __post_init__(self):
        object.__setattr__(self, "start", parse_time(self.start))
        object.__setattr__(self, "end", parse_time(self.end))

    @property
    def overnight(self) -> bool:
        return self.start > self.end

    def to_dict(self) -> Dict[str, str]:
        return {"start": format_time(self.start), "end": format_time(self.end)}

    @classmethod
    def from_dict(cls, data: Any) -> "Timespan":
        if not isinstance(data, dict):
            raise InvalidSchedule(f"Timespan must be an object, got {type(data).__name__}")
        try:
            return cls(parse_time(data["start"]), parse_time(data["end"]))
        except KeyError as e:
            raise InvalidSchedule(f"Timespan missing {e.args[0]!r}") from None
        except ValueError as e:
            raise InvalidSchedule(str(e)) from None


def _empty_spans() -> Dict[Valve, List[Timespan]]:
    return {v: [] for v in Valve}


@dataclass
class Schedule:
    """Per-valve lists of timespans.

    Every valve always has an entry, possibly empty.  Overlapping spans are
    allowed; a valve is on when any of its spans covers the current time.
    """

    spans: Dict[Valve, List[Timespan]] = field(default_factory=_empty_spans)

    def __post_init__(self):
        filled = _empty_spans()
        for valve, spans in self.spans.items():
            filled[Valve.parse(valve)] = list(spans)
        self.spans = filled

    def for_valve(self, valve: Any) -> Tuple[Timespan, ...]:
        return tuple(self.spans[Valve.parse(valve)])

    def copy(self) -> "Schedule":
        # Timespans are frozen so copying the lists is enough.
        return Schedule({v: list(s) for v, s in self.spans.items()})

    def is_empty(self) -> bool:
        return not any(self.spans.values())

    def to_dict(self) -> Dict[str, List[Dict[str, str]]]:
        return {v.key: [ts.to_dict() for ts in self.spans[v]] for v in Valve}

    @classmethod
    def from_dict(cls, data: Any) -> "Schedule":
        """Build a schedule from its wire form.

        Missing valves read as empty lists.  Unknown keys are rejected so a
        typo like ``valve9`` never silently drops a caller's timespans.
        """
        if not isinstance(data, dict):
            raise InvalidSchedule("Schedule must be an object keyed by valve1..valve8")
        spans = _empty_spans()
        for key, entries in data.items():
            try:
                valve = Valve.parse(key)
            except InvalidValve:
                raise InvalidSchedule(f"Unknown schedule key: {key!r}") from None
            if entries is None:
                entries = []
            if not isinstance(entries, list):
                raise InvalidSchedule(f"{valve.key} must be a list of timespans")
            spans[valve] = [Timespan.from_dict(e) for e in entries]
        return cls(spans)

    @classmethod
    def from_pairs(cls, pairs: Iterable[Tuple[Any, str, str]]) -> "Schedule":
        """Convenience constructor from ``(valve, "HH:MM", "HH:MM")`` triples."""
        spans = _empty_spans()
        for valve, start, end in pairs:
            spans[Valve.parse(valve)].append(Timespan(parse_time(start), parse_time(end)))
        return cls(spans)


def states_to_list(states: Iterable[ValveState]) -> List[str]:
    return [s.value for s in states]
