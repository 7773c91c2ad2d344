"""
Control interface.

:class:`GardenController` is what request handlers call.  Each operation maps
onto one store call and reports its outcome as a :class:`Result`; store
exceptions are translated here and never leak to the caller.  The one rule
added on top of the store is that manual valve writes are refused unless the
controller is in manual mode.
"""

from __future__ import annotations

import enum
import functools
import logging
from dataclasses import dataclass
from typing import Any, Optional

from .errors import InvalidSchedule, InvalidValve, PoisonedState
from .model import Mode, Schedule, Valve, ValveState, format_time
from .reconciler import Reconciler
from .schedule import next_change
from .store import OUTPUT_STRATEGIES, ValveStateStore

logger = logging.getLogger(__name__)


class ErrorKind(enum.Enum):
    INVALID_VALVE = "invalid_valve"
    INVALID_STATE = "invalid_state"
    INVALID_MODE = "invalid_mode"
    INVALID_SCHEDULE = "invalid_schedule"
    REJECTED_BY_MODE = "rejected_by_mode"
    POISONED_STATE = "poisoned_state"
    NO_RECONCILER = "no_reconciler"


@dataclass(frozen=True)
class Result:
    ok: bool
    value: Any = None
    error: Optional[ErrorKind] = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None) -> "Result":
        return cls(True, value)

    @classmethod
    def failure(cls, error: ErrorKind, message: str = "") -> "Result":
        return cls(False, None, error, message)


def _guard(fn):
    """Translate store exceptions into failed Results."""

    @functools.wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except InvalidValve as e:
            return Result.failure(ErrorKind.INVALID_VALVE, str(e))
        except InvalidSchedule as e:
            return Result.failure(ErrorKind.INVALID_SCHEDULE, str(e))
        except PoisonedState as e:
            return Result.failure(ErrorKind.POISONED_STATE, str(e))

    return wrapper


class GardenController:
    def __init__(self, store: ValveStateStore, reconciler: Optional[Reconciler] = None):
        self.store = store
        self.reconciler = reconciler

    @_guard
    def set_mode(self, mode: Any) -> Result:
        try:
            mode = Mode.parse(mode)
        except ValueError as e:
            return Result.failure(ErrorKind.INVALID_MODE, str(e))
        self.store.set_mode(mode)
        return Result.success()

    @_guard
    def get_mode(self) -> Result:
        return Result.success(self.store.get_mode())

    @_guard
    def set_schedule(self, schedule: Any) -> Result:
        """Replace the whole schedule.  Accepts a Schedule or its wire form."""
        if not isinstance(schedule, Schedule):
            schedule = Schedule.from_dict(schedule)
        self.store.set_schedule(schedule)
        return Result.success()

    @_guard
    def get_schedule(self) -> Result:
        return Result.success(self.store.get_schedule())

    @_guard
    def set_valve_state(self, valve: Any, state: Any) -> Result:
        """Manual-mode command; rejected without effect in scheduled mode."""
        v = Valve.parse(valve)
        try:
            state = ValveState.parse(state)
        except ValueError as e:
            return Result.failure(ErrorKind.INVALID_STATE, str(e))
        if not self.store.set_manual_state_if_manual(v, state):
            logger.info("Rejected %s -> %s: controller is in scheduled mode", v.key, state.value)
            return Result.failure(ErrorKind.REJECTED_BY_MODE, "Valve states can only be set in manual mode")
        return Result.success()

    @_guard
    def get_valve_state(self, valve: Any) -> Result:
        v = Valve.parse(valve)
        return Result.success(self.store.compute_output_states()[v])

    @_guard
    def get_valve_states(self) -> Result:
        return Result.success(self.store.compute_output_states())

    # ---------- reconciler control ----------

    def pause_reconciler(self) -> Result:
        if self.reconciler is None:
            return Result.failure(ErrorKind.NO_RECONCILER, "No reconciler attached")
        self.reconciler.pause()
        return Result.success()

    def resume_reconciler(self) -> Result:
        if self.reconciler is None:
            return Result.failure(ErrorKind.NO_RECONCILER, "No reconciler attached")
        self.reconciler.resume()
        return Result.success()

    @_guard
    def status(self) -> Result:
        """Combined view used by the status endpoint and CLI."""
        snap = self.store.snapshot()
        now = self.store.clock()
        outputs = OUTPUT_STRATEGIES[snap.mode](snap, now)
        valves = []
        for v in Valve:
            entry = {"valve": v.key, "state": outputs[v].value, "manual": snap.manual_valve_states[v].value}
            if snap.mode is Mode.SCHEDULED:
                nc = next_change(snap.schedule, v, now)
                entry["next_change"] = format_time(nc.time()) if nc else None
            valves.append(entry)
        rec = self.reconciler
        return Result.success({
            "mode": snap.mode.value,
            "valves": valves,
            "schedule": snap.schedule.to_dict(),
            "server_time": now.strftime("%Y-%m-%d %H:%M:%S"),
            "reconciler": {
                "attached": rec is not None,
                "running": bool(rec and rec.running),
                "paused": bool(rec and rec.paused),
                "interval": rec.interval if rec else None,
                "ticks": rec.ticks if rec else 0,
            },
        })
