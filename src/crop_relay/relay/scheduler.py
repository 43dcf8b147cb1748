"""
Publish Scheduler
=================

Owns the recurring publish timer for PERIODIC requests and the cap on
its frequency.

Design Rules:
    - Zero or one timer is active at any time
    - Arming always cancels the previous timer first
    - Effective frequency = min(max_frequency, requested); <= 0 arms nothing
    - Cancellation is best-effort: a timer may fire once more after
      cancel() returns, so tick handlers must check they are still wanted
"""

import asyncio
import logging
import threading
from typing import Callable, Optional, Protocol


logger = logging.getLogger(__name__)


class RecurringTimer(Protocol):
    """Handle of a running recurring timer."""

    def cancel(self) -> None:
        ...


TimerFactory = Callable[[float, Callable[[], None]], RecurringTimer]


class AsyncioTimer:
    """
    Recurring timer on the running asyncio event loop.

    Ticks are scheduled on absolute deadlines (start + n * period) so the
    rate does not drift with callback latency. If the loop falls behind,
    missed deadlines are skipped rather than fired in a burst.
    """

    def __init__(self, period: float, callback: Callable[[], None]) -> None:
        if period <= 0:
            raise ValueError("period must be > 0")

        self.period = period
        self.callback = callback
        self._loop = asyncio.get_running_loop()
        self._cancelled = False
        self._next_deadline = self._loop.time() + period
        self._handle: Optional[asyncio.TimerHandle] = self._loop.call_at(
            self._next_deadline, self._fire
        )

    def _fire(self) -> None:
        if self._cancelled:
            return

        now = self._loop.time()
        self._next_deadline += self.period
        if self._next_deadline <= now:
            missed = int((now - self._next_deadline) // self.period) + 1
            self._next_deadline += missed * self.period
        # Re-armed before the callback so a failing tick keeps the timer alive
        self._handle = self._loop.call_at(self._next_deadline, self._fire)
        self.callback()

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class PublishScheduler:
    """
    Rate-capped owner of the periodic publish timer.

    Attributes:
        max_frequency: Upper bound on the timer frequency (Hz)
        frequency: Frequency of the active timer, or None when idle
        timers_armed: Number of timers started so far

    Example:
        scheduler = PublishScheduler(max_frequency=5.0)
        scheduler.arm(10.0, on_tick)   # runs at 5 Hz
        scheduler.cancel()
    """

    def __init__(
        self,
        max_frequency: float = 100.0,
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self.max_frequency = max_frequency
        self._timer_factory: TimerFactory = timer_factory or AsyncioTimer
        self._lock = threading.Lock()
        self._timer: Optional[RecurringTimer] = None
        self._frequency: Optional[float] = None
        self.timers_armed: int = 0

    @property
    def active(self) -> bool:
        with self._lock:
            return self._timer is not None

    @property
    def frequency(self) -> Optional[float]:
        with self._lock:
            return self._frequency

    def effective_frequency(self, requested: float) -> float:
        """Requested frequency limited by max_frequency."""
        return min(self.max_frequency, requested)

    def arm(self, requested: float, on_tick: Callable[[], None]) -> Optional[float]:
        """
        Replace the current timer with one at the capped frequency.

        Args:
            requested: Requested frequency (Hz)
            on_tick: Callback for every tick

        Returns:
            The effective frequency, or None if no timer was started
        """
        effective = self.effective_frequency(requested)
        with self._lock:
            self._cancel_locked()
            if effective <= 0:
                logger.debug(f"Not arming timer (effective frequency {effective} Hz)")
                return None

            self._timer = self._timer_factory(1.0 / effective, on_tick)
            self._frequency = effective
            self.timers_armed += 1

        if effective < requested:
            logger.info(f"Publish timer armed at {effective} Hz (requested {requested} Hz, capped)")
        else:
            logger.info(f"Publish timer armed at {effective} Hz")
        return effective

    def cancel(self) -> None:
        """Cancel the active timer, if any."""
        with self._lock:
            self._cancel_locked()

    def _cancel_locked(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
            self._frequency = None
