"""
Authoritative valve state.

One :class:`ValveStateStore` exists per process and is passed by reference to
the controller and the reconciler.  Every read and write goes through its
methods, each of which holds a single lock only for the in-memory work.  If a
mutating block fails part-way, the store marks itself poisoned and refuses
further operations rather than hand out a half-written state.
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from .errors import PoisonedState
from .model import VALVE_COUNT, Mode, Schedule, Valve, ValveState
from .schedule import evaluate_all

logger = logging.getLogger(__name__)


def _all_off() -> List[ValveState]:
    return [ValveState.OFF] * VALVE_COUNT


@dataclass
class GardenState:
    mode: Mode = Mode.SCHEDULED
    # Kept while in scheduled mode so switching back to manual resumes them.
    manual_valve_states: List[ValveState] = field(default_factory=_all_off)
    schedule: Schedule = field(default_factory=Schedule)


OutputStrategy = Callable[[GardenState, datetime], Tuple[ValveState, ...]]


def scheduled_outputs(state: GardenState, now: datetime) -> Tuple[ValveState, ...]:
    return evaluate_all(state.schedule, now)


def manual_outputs(state: GardenState, now: datetime) -> Tuple[ValveState, ...]:
    return tuple(state.manual_valve_states)


OUTPUT_STRATEGIES: Dict[Mode, OutputStrategy] = {
    Mode.SCHEDULED: scheduled_outputs,
    Mode.MANUAL: manual_outputs,
}


class ValveStateStore:
    """Lock-guarded owner of the single GardenState aggregate."""

    def __init__(self, state: Optional[GardenState] = None, clock: Callable[[], datetime] = datetime.now):
        self._state = state or GardenState()
        self._lock = threading.Lock()
        self._poisoned = False
        self.clock = clock

    @contextmanager
    def _locked(self, mutating: bool = False):
        with self._lock:
            if self._poisoned:
                raise PoisonedState("Valve state store is poisoned by an earlier failed update")
            try:
                yield self._state
            except BaseException:
                if mutating:
                    self._poisoned = True
                    logger.error("Update failed mid-write; valve state store is now poisoned")
                raise

    @property
    def poisoned(self) -> bool:
        return self._poisoned

    # ---------- mode ----------

    def get_mode(self) -> Mode:
        with self._locked() as st:
            return st.mode

    def set_mode(self, mode: Mode) -> None:
        mode = Mode.parse(mode)
        with self._locked(mutating=True) as st:
            previous, st.mode = st.mode, mode
        if previous is not mode:
            logger.info("Mode changed: %s -> %s", previous.value, mode.value)

    # ---------- schedule ----------

    def get_schedule(self) -> Schedule:
        with self._locked() as st:
            return st.schedule.copy()

    def set_schedule(self, schedule: Schedule) -> None:
        """Replace the whole schedule; there are no per-valve updates."""
        if not isinstance(schedule, Schedule):
            raise TypeError(f"Expected Schedule, got {type(schedule).__name__}")
        new = schedule.copy()
        with self._locked(mutating=True) as st:
            st.schedule = new
        logger.info("Schedule replaced (%d timespans)", sum(len(s) for s in new.spans.values()))

    # ---------- manual states ----------

    def get_manual_state(self, valve: Any) -> ValveState:
        v = Valve.parse(valve)
        with self._locked() as st:
            return st.manual_valve_states[v]

    def set_manual_state(self, valve: Any, state: ValveState) -> None:
        """Store a manual state regardless of the current mode."""
        v = Valve.parse(valve)
        state = ValveState.parse(state)
        with self._locked(mutating=True) as st:
            st.manual_valve_states[v] = state

    def set_manual_state_if_manual(self, valve: Any, state: ValveState) -> bool:
        """Write a manual state only when in manual mode.

        The mode check and the write happen under one lock span so the mode
        cannot flip in between.  Returns False, without writing, in
        scheduled mode.
        """
        v = Valve.parse(valve)
        state = ValveState.parse(state)
        with self._locked(mutating=True) as st:
            if st.mode is not Mode.MANUAL:
                return False
            st.manual_valve_states[v] = state
            return True

    # ---------- outputs ----------

    def compute_output_states(self, now: Optional[datetime] = None) -> Tuple[ValveState, ...]:
        """Return the eight desired valve outputs from one consistent read."""
        with self._locked() as st:
            if now is None:
                now = self.clock()
            return OUTPUT_STRATEGIES[st.mode](st, now)

    def snapshot(self) -> GardenState:
        with self._locked() as st:
            return copy.deepcopy(st)
