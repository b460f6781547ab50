"""
Session timers driven by the host's own refresh loop: a 1 s display clock, a 30 s
autosave tick, and a debouncer that coalesces rapid free-text input.

Nothing here sleeps or spawns threads. The host (a Streamlit fragment rerunning every
second, a CLI loop, a test) calls `poll()`; whatever is due fires then. Time comes from
an injectable monotonic clock.
"""
import logging
import time
from datetime import timedelta
from typing import Any, Callable, Optional, Tuple

from engine import AUTOSAVE_INTERVAL_SECONDS, CLOCK_TICK_SECONDS, INPUT_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)

Monotonic = Callable[[], float]


def _run_tick(name: str, callback: Callable[..., Any], *args: Any) -> None:
    try:
        callback(*args)
    except Exception:
        logger.exception("%s tick failed", name)


class PeriodicTask:
    """Fires `callback()` on the first poll at least `interval` seconds after the previous firing."""

    def __init__(self, interval: float, callback: Callable[[], Any], name: str = "periodic",
                 monotonic: Monotonic = time.monotonic) -> None:
        self.interval = interval
        self.callback = callback
        self.name = name
        self._monotonic = monotonic
        self._next_at: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._next_at is not None

    def start(self) -> None:
        if not self.running:
            self._next_at = self._monotonic() + self.interval

    def poll(self) -> bool:
        """Fire if due. Missed periods collapse into one firing."""
        if not self.running:
            return False
        now = self._monotonic()
        if now < self._next_at:
            return False
        self._next_at = now + self.interval
        _run_tick(self.name, self.callback)
        return True

    def cancel(self) -> None:
        self._next_at = None


class SessionTimers:
    """
    The two background timers of a running session, started and cancelled together.

    Args:
        elapsed: returns the session's elapsed time (read-only clock source).
        on_clock: receives the elapsed time every clock tick.
        autosave: persists progress; called every autosave tick when `should_autosave()` is true.
    """

    def __init__(self, elapsed: Callable[[], timedelta], on_clock: Callable[[timedelta], Any],
                 autosave: Callable[[], Any], should_autosave: Callable[[], bool],
                 clock_interval: float = CLOCK_TICK_SECONDS,
                 autosave_interval: float = AUTOSAVE_INTERVAL_SECONDS,
                 monotonic: Monotonic = time.monotonic) -> None:
        self._elapsed = elapsed
        self._on_clock = on_clock
        self._autosave = autosave
        self._should_autosave = should_autosave
        self.clock = PeriodicTask(clock_interval, self._clock_tick, name="exam-clock", monotonic=monotonic)
        self.autosaver = PeriodicTask(autosave_interval, self._autosave_tick, name="exam-autosave",
                                      monotonic=monotonic)

    def _clock_tick(self) -> None:
        self._on_clock(self._elapsed())

    def _autosave_tick(self) -> None:
        if self._should_autosave():
            logger.debug("Autosave tick")
            self._autosave()

    @property
    def running(self) -> bool:
        return self.clock.running or self.autosaver.running

    def start(self) -> None:
        self.clock.start()
        self.autosaver.start()

    def poll(self) -> None:
        self.clock.poll()
        self.autosaver.poll()

    def cancel(self) -> None:
        self.clock.cancel()
        self.autosaver.cancel()


class Debouncer:
    """
    Holds the latest `call(*args)` until `delay` seconds pass without another call,
    then forwards it to `callback` on the next poll. `flush()` forwards it immediately.
    """

    def __init__(self, callback: Callable[..., Any], delay: float = INPUT_DEBOUNCE_SECONDS,
                 monotonic: Monotonic = time.monotonic) -> None:
        self.callback = callback
        self.delay = delay
        self._monotonic = monotonic
        self._args: Optional[Tuple[Any, ...]] = None
        self._due_at = 0.0

    @property
    def pending(self) -> bool:
        return self._args is not None

    def call(self, *args: Any) -> None:
        self._args = args
        self._due_at = self._monotonic() + self.delay

    def poll(self) -> bool:
        if self.pending and self._monotonic() >= self._due_at:
            return self.flush()
        return False

    def flush(self) -> bool:
        if not self.pending:
            return False
        args, self._args = self._args, None
        self.callback(*args)
        return True

    def cancel(self) -> None:
        self._args = None
