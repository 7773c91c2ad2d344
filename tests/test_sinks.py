import io
from datetime import datetime

import pytest
from gpiozero.pins.mock import MockFactory

from gardenpi.model import Valve, ValveState
from gardenpi.sinks import ConsoleSink, GpioValveSink

PINS = [5, 6, 12, 13, 16, 19, 20, 26]


def test_console_sink_renders_table():
    out = io.StringIO()
    sink = ConsoleSink(out, clock=lambda: datetime(2026, 10, 19, 6, 0, 5))
    sink.apply([ValveState.ON] + [ValveState.OFF] * 7)
    lines = out.getvalue().splitlines()
    assert lines[1] == "| On  " + "| Off " * 7 + "| 19 Oct 2026 [06:00:05]"
    assert lines[0] == "-" * 49
    assert lines[2] == lines[0]


@pytest.fixture
def factory():
    f = MockFactory()
    yield f
    f.reset()


def test_gpio_sink_drives_pins(factory):
    sink = GpioValveSink(PINS, pin_factory=factory)
    states = [ValveState.ON, ValveState.OFF] * 4
    sink.apply(states)
    assert sink.read() == states
    assert factory.pin(5).state
    assert not factory.pin(6).state
    # applying twice is harmless
    sink.apply(states)
    assert sink.read() == states
    sink.close()


def test_gpio_sink_active_low(factory):
    sink = GpioValveSink(PINS, active_high=False, pin_factory=factory)
    sink.apply([ValveState.ON] + [ValveState.OFF] * 7)
    assert sink.read()[0] is ValveState.ON
    # an active-low relay is energised by driving the pin low
    assert not factory.pin(5).state
    assert factory.pin(6).state
    sink.close()


def test_gpio_sink_validates_pins(factory):
    with pytest.raises(ValueError):
        GpioValveSink(PINS[:7], pin_factory=factory)
    with pytest.raises(ValueError):
        GpioValveSink([5] * 8, pin_factory=factory)


def test_gpio_sink_requires_eight_states(factory):
    sink = GpioValveSink(PINS, pin_factory=factory)
    with pytest.raises(ValueError):
        sink.apply([ValveState.ON])
    sink.close()


class StuckDevice:
    """Wraps a real device whose off() fails."""

    def __init__(self, dev):
        self.dev = dev

    def off(self):
        raise RuntimeError("relay stuck")

    def close(self):
        self.dev.close()


def test_gpio_sink_close_releases_all_devices_after_failure(factory):
    sink = GpioValveSink(PINS, pin_factory=factory)
    real = dict(sink.devices)
    sink.devices[Valve.VALVE1] = StuckDevice(real[Valve.VALVE1])
    with pytest.raises(RuntimeError):
        sink.close()
    assert all(dev.closed for dev in real.values())
