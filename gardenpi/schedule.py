"""Schedule evaluation.

Pure functions only: nothing here touches the store or the clock, so the
same (schedule, valve, now) always yields the same answer.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta
from typing import Any, Iterable, List, Optional, Tuple, Union

from .model import Schedule, Timespan, Valve, ValveState, parse_time

MINUTES_PER_DAY = 24 * 60

TimeLike = Union[datetime, time]


def _time_of_day(now: TimeLike) -> time:
    """Reduce ``now`` to a minute-precision time of day."""
    if isinstance(now, datetime):
        now = now.time()
    return now.replace(second=0, microsecond=0, tzinfo=None)


def span_covers(span: Timespan, now: TimeLike) -> bool:
    """Return True if ``now`` falls inside ``span`` (boundaries inclusive).

    A span whose start is later than its end wraps past midnight.
    """
    t = _time_of_day(now)
    if span.start <= span.end:
        return span.start <= t <= span.end
    return t >= span.start or t <= span.end


def evaluate(schedule: Schedule, valve: Any, now: TimeLike) -> ValveState:
    """Desired state of one valve at ``now``; Off when it has no spans."""
    for span in schedule.for_valve(valve):
        if span_covers(span, now):
            return ValveState.ON
    return ValveState.OFF


def evaluate_all(schedule: Schedule, now: TimeLike) -> Tuple[ValveState, ...]:
    return tuple(evaluate(schedule, v, now) for v in Valve)


def _minutes_since_midnight(t: time) -> int:
    return t.hour * 60 + t.minute


def _from_minutes(total: int) -> time:
    total %= MINUTES_PER_DAY
    return time(total // 60, total % 60)


def build_sequential_schedule(start: Any, minutes: int, valves: Optional[Iterable[Any]] = None) -> Schedule:
    """Run each valve in turn for ``minutes`` starting at ``start``.

    Each slot ends one minute before the next begins, since span ends are
    inclusive.  Slots that cross midnight become overnight spans.
    """
    order: List[Valve] = [Valve.parse(v) for v in valves] if valves is not None else list(Valve)
    if minutes < 1:
        raise ValueError("minutes must be at least 1")
    if minutes * len(order) > MINUTES_PER_DAY:
        raise ValueError("Sequence does not fit in one day")
    base = _minutes_since_midnight(parse_time(start))
    spans = {}
    for i, valve in enumerate(order):
        on = base + i * minutes
        off = on + minutes - 1
        spans.setdefault(valve, []).append(Timespan(_from_minutes(on), _from_minutes(off)))
    return Schedule(spans)


def next_change(schedule: Schedule, valve: Any, now: datetime, horizon: timedelta = timedelta(days=1)) -> Optional[datetime]:
    """Return the first minute after ``now`` at which ``valve`` flips state.

    Used for status views.  Returns None if nothing changes within ``horizon``.
    """
    current = evaluate(schedule, valve, now)
    t = now.replace(second=0, microsecond=0)
    end = now + horizon
    while t < end:
        t += timedelta(minutes=1)
        if evaluate(schedule, valve, t) is not current:
            return t
    return None
