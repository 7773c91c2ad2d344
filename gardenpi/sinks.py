"""Output sinks for computed valve states.

A sink receives all eight states once per reconciler tick.  Applying the same
states twice must be harmless.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, TextIO

from gpiozero import DigitalOutputDevice

from .model import VALVE_COUNT, Valve, ValveState

logger = logging.getLogger(__name__)


class ValveSink:
    """Base class for anything that consumes the eight valve outputs."""

    def apply(self, states: Sequence[ValveState]) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass


class ConsoleSink(ValveSink):
    """Render the outputs as a framed one-line table.

    ::

        ----------------------------------------------------
        | On  | Off | Off | Off | Off | Off | Off | Off | 19 Oct 2026 [06:00:00]
        ----------------------------------------------------
    """

    def __init__(self, stream: Optional[TextIO] = None, clock: Callable[[], datetime] = datetime.now):
        self.stream = stream or sys.stdout
        self.clock = clock

    def render(self, states: Sequence[ValveState]) -> str:
        line = "".join("| On  " if s.is_on else "| Off " for s in states)
        # Separator width is taken before the timestamp is appended.
        separator = "-" * (len(line) + 1)
        line += "| " + self.clock().strftime("%d %b %Y [%H:%M:%S]")
        return f"{separator}\n{line}\n{separator}\n"

    def apply(self, states: Sequence[ValveState]) -> None:
        self.stream.write(self.render(states) + "\n")
        self.stream.flush()


class GpioValveSink(ValveSink):
    """Drive one gpiozero DigitalOutputDevice per valve.

    ``pins`` lists BCM pin numbers in valve order (valve1 first).  Pass a
    gpiozero ``MockFactory`` as ``pin_factory`` to run off-Pi.
    """

    def __init__(self, pins: Sequence[int], active_high: bool = True, pin_factory=None):
        if len(pins) != VALVE_COUNT:
            raise ValueError(f"Expected {VALVE_COUNT} pins, got {len(pins)}")
        if len(set(pins)) != VALVE_COUNT:
            raise ValueError("Valve pins must be distinct")
        self.pins: List[int] = [int(p) for p in pins]
        self.devices: Dict[Valve, DigitalOutputDevice] = {}
        for valve, pin in zip(Valve, self.pins):
            self.devices[valve] = DigitalOutputDevice(
                pin,
                active_high=active_high,
                initial_value=False,
                pin_factory=pin_factory,
            )

    def apply(self, states: Sequence[ValveState]) -> None:
        if len(states) != VALVE_COUNT:
            raise ValueError(f"Expected {VALVE_COUNT} states, got {len(states)}")
        for valve, state in zip(Valve, states):
            dev = self.devices[valve]
            if state.is_on:
                dev.on()
            else:
                dev.off()

    def read(self) -> List[ValveState]:
        """Read back the logical state of each device."""
        return [ValveState.ON if self.devices[v].value else ValveState.OFF for v in Valve]

    def close(self) -> None:
        """Switch every valve off and release its pin.

        A failing device does not stop the others from being released; the
        first error is re-raised once all devices have been handled.
        """
        first_error: Optional[Exception] = None
        for valve, dev in self.devices.items():
            for step in (dev.off, dev.close):
                try:
                    step()
                except Exception as e:
                    logger.error("Failed to release %s: %s", valve.key, e)
                    if first_error is None:
                        first_error = e
        logger.debug("Released GPIO pins %s", self.pins)
        if first_error is not None:
            raise first_error
