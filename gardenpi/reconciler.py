from __future__ import annotations

import logging
import threading
from typing import Optional, Tuple

from .errors import PoisonedState
from .model import ValveState
from .sinks import ValveSink
from .store import ValveStateStore

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 5.0


class Reconciler:
    """Periodically push the store's computed outputs to a sink.

    Each tick reads ``compute_output_states()`` once and hands the result to
    the sink.  Sink failures are logged and the next tick runs as usual.
    ``pause()`` and ``resume()`` flip a flag that the loop checks once per
    tick, so they take effect within one interval.
    """

    def __init__(self, store: ValveStateStore, sink: ValveSink, interval: float = DEFAULT_INTERVAL):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.store = store
        self.sink = sink
        self.interval = float(interval)
        self.ticks = 0
        self.last_applied: Optional[Tuple[ValveState, ...]] = None
        self._paused = threading.Event()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    # ---------- control ----------

    @property
    def paused(self) -> bool:
        return self._paused.is_set()

    def pause(self) -> None:
        if not self._paused.is_set():
            logger.info("Reconciler paused")
        self._paused.set()

    def resume(self) -> None:
        if self._paused.is_set():
            logger.info("Reconciler resumed")
        self._paused.clear()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Spawn the loop thread.

        A no-op while a loop is already running.  Raises RuntimeError if an
        earlier loop was told to stop but has not exited yet, so two loops
        never drive the sink at once.
        """
        if self.running:
            if not self._stop.is_set():
                return
            raise RuntimeError("Previous reconciler loop is still stopping")
        # Each loop gets its own stop event; an old loop can never be revived.
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._loop, args=(self._stop,), name="gardenpi-reconciler", daemon=True
        )
        self._thread.start()
        logger.info("Reconciler started (interval %.1fs)", self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        t = self._thread
        if t and t.is_alive():
            t.join(timeout=timeout if timeout is not None else self.interval + 1.0)
        if t and t.is_alive():
            logger.warning("Reconciler loop did not exit within the stop timeout")
        else:
            self._thread = None

    # ---------- work ----------

    def tick(self) -> Optional[Tuple[ValveState, ...]]:
        """Run one measure-then-act cycle.

        Returns the states sent to the sink, or None if the tick was skipped
        (paused, poisoned store, or sink failure).
        """
        if self._paused.is_set():
            return None
        try:
            states = self.store.compute_output_states()
        except PoisonedState:
            logger.error("Skipping tick: valve state store is poisoned")
            return None
        try:
            self.sink.apply(states)
        except Exception:
            logger.exception("Sink failed to apply valve states; retrying next tick")
            return None
        self.ticks += 1
        self.last_applied = states
        return states

    def _loop(self, stop: threading.Event) -> None:
        # Event.wait uses a monotonic clock, so wall-clock jumps do not
        # stretch or skip intervals.
        while not stop.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("Unexpected error during reconcile tick")
            if stop.wait(self.interval):
                break
        logger.info("Reconciler stopped")
