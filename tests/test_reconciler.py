import logging
import threading
from datetime import datetime

import pytest

from gardenpi.model import Mode, Schedule, Valve, ValveState
from gardenpi.reconciler import Reconciler
from gardenpi.sinks import ValveSink


class RecordingSink(ValveSink):
    def __init__(self):
        self.applied = []
        self.event = threading.Event()

    def apply(self, states):
        self.applied.append(tuple(states))
        self.event.set()


class FlakySink(RecordingSink):
    """Fails on the first call only."""

    def __init__(self):
        super().__init__()
        self.calls = 0

    def apply(self, states):
        self.calls += 1
        if self.calls == 1:
            raise IOError("relay board not responding")
        super().apply(states)


def test_tick_sends_current_outputs(store, clock):
    sink = RecordingSink()
    rec = Reconciler(store, sink, interval=5)
    store.set_schedule(Schedule.from_pairs([(Valve.VALVE1, "06:00", "06:30")]))

    clock.now = datetime(2026, 10, 19, 6, 0)
    assert rec.tick()[0] is ValveState.ON
    clock.now = datetime(2026, 10, 19, 6, 31)
    rec.tick()
    assert [a[0] for a in sink.applied] == [ValveState.ON, ValveState.OFF]
    assert rec.ticks == 2
    assert rec.last_applied == sink.applied[-1]


def test_tick_sees_latest_write(store):
    sink = RecordingSink()
    rec = Reconciler(store, sink)
    rec.tick()
    store.set_mode(Mode.MANUAL)
    store.set_manual_state(6, ValveState.ON)
    rec.tick()
    assert sink.applied[0][6] is ValveState.OFF
    assert sink.applied[1][6] is ValveState.ON
    assert all(len(a) == 8 for a in sink.applied)


def test_sink_failure_is_logged_and_next_tick_runs(store, caplog):
    sink = FlakySink()
    rec = Reconciler(store, sink)
    with caplog.at_level(logging.ERROR, logger="gardenpi.reconciler"):
        assert rec.tick() is None
    assert "Sink failed" in caplog.text
    assert rec.tick() == (ValveState.OFF,) * 8
    assert len(sink.applied) == 1


def test_paused_tick_does_nothing(store):
    sink = RecordingSink()
    rec = Reconciler(store, sink)
    rec.pause()
    assert rec.tick() is None
    assert sink.applied == []
    rec.resume()
    assert rec.tick() is not None
    assert len(sink.applied) == 1


def test_poisoned_store_skips_tick(store, caplog):
    sink = RecordingSink()
    rec = Reconciler(store, sink)
    with pytest.raises(RuntimeError):
        with store._locked(mutating=True):
            raise RuntimeError("boom")
    with caplog.at_level(logging.ERROR):
        assert rec.tick() is None
    assert sink.applied == []
    assert "poisoned" in caplog.text


def test_background_loop_runs_and_stops(store):
    sink = RecordingSink()
    rec = Reconciler(store, sink, interval=0.05)
    rec.start()
    try:
        assert sink.event.wait(2.0)
        assert rec.running
    finally:
        rec.stop(timeout=2.0)
    assert not rec.running
    count = len(sink.applied)
    assert count >= 1
    # no ticks after stop
    sink.event.clear()
    assert not sink.event.wait(0.2)
    assert len(sink.applied) == count


def test_start_is_idempotent(store):
    rec = Reconciler(store, RecordingSink(), interval=0.05)
    rec.start()
    first = rec._thread
    rec.start()
    assert rec._thread is first
    rec.stop(timeout=2.0)


def test_invalid_interval(store):
    with pytest.raises(ValueError):
        Reconciler(store, RecordingSink(), interval=0)


class SlowSink(ValveSink):
    """Blocks inside apply() until released."""

    def __init__(self):
        self.entered = threading.Event()
        self.release = threading.Event()

    def apply(self, states):
        self.entered.set()
        self.release.wait(5.0)


def _loop_threads():
    return [t for t in threading.enumerate() if t.name == "gardenpi-reconciler" and t.is_alive()]


def test_restart_while_old_loop_is_stopping(store):
    sink = SlowSink()
    rec = Reconciler(store, sink, interval=0.05)
    rec.start()
    old = rec._thread
    try:
        assert sink.entered.wait(2.0)
        rec.stop(timeout=0.05)
        # the loop is still stuck in the sink
        assert old.is_alive()
        with pytest.raises(RuntimeError):
            rec.start()
        assert _loop_threads() == [old]
    finally:
        sink.release.set()
    old.join(2.0)
    assert not old.is_alive()

    # once the old loop has exited a fresh one can start
    rec.start()
    try:
        assert rec._thread is not old
        assert len(_loop_threads()) == 1
    finally:
        rec.stop(timeout=2.0)
