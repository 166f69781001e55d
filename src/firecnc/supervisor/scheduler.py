"""
Supervisor: Single-Context Timer Scheduler.

Every timer in the supervisor core (heartbeat poll, ICMP delay/interval,
reboot and shutdown delays, the uptime ticker) is owned by one Scheduler and
dispatched on one logical execution context. Nothing blocks: callbacks are
short and run to completion in deadline order.

Two drivers exist:
    - Tests advance a ManualClock explicitly with ``Scheduler.advance()``,
      which makes every timeout deterministic.
    - ``SchedulerThread`` pumps the scheduler against ``time.monotonic`` from
      a daemon thread that sleeps on a stop event until the next deadline.

Cancellation:
    ``TimerHandle.cancel()`` marks the handle dead; a dead handle still in
    the queue is dropped when popped, so a timer cancelled between being
    scheduled and becoming due never runs.

Usage:
    >>> clock = ManualClock()
    >>> scheduler = Scheduler(clock)
    >>> handle = scheduler.call_later(5.0, print, "fired")
    >>> scheduler.advance(5.0)
    fired
"""
from __future__ import annotations

import heapq
import itertools
import logging
import threading
import time
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def monotonic(self) -> float: ...


class SystemClock:
    """Wall-clock source backed by ``time.monotonic``."""

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock:
    """Virtual clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def monotonic(self) -> float:
        return self._now

    def advance_to(self, when: float) -> None:
        if when < self._now:
            raise ValueError(f"ManualClock cannot move backwards ({when} < {self._now})")
        self._now = float(when)


class TimerHandle:
    """Owned reference to a scheduled one-shot or recurring callback."""

    __slots__ = ("callback", "args", "deadline", "interval", "name", "_cancelled")

    def __init__(
        self,
        callback: Callable[..., Any],
        args: tuple,
        deadline: float,
        interval: Optional[float],
        name: str,
    ) -> None:
        self.callback = callback
        self.args = args
        self.deadline = deadline
        self.interval = interval
        self.name = name
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"<TimerHandle {self.name} deadline={self.deadline:.3f} {state}>"


class Scheduler:
    """Deadline-ordered timer queue dispatched on a single context."""

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self.clock = clock or SystemClock()
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()
        self._lock = threading.Lock()

    def now(self) -> float:
        return self.clock.monotonic()

    def _push(self, handle: TimerHandle) -> None:
        with self._lock:
            heapq.heappush(self._queue, (handle.deadline, next(self._seq), handle))

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any, name: str | None = None) -> TimerHandle:
        handle = TimerHandle(callback, args, self.now() + max(0.0, float(delay)), None, name or callback.__name__)
        self._push(handle)
        return handle

    def call_every(self, interval: float, callback: Callable[..., Any], *args: Any, name: str | None = None) -> TimerHandle:
        """Run ``callback`` every ``interval`` seconds; the first run is one interval from now."""
        interval = float(interval)
        if interval <= 0:
            raise ValueError("Recurring timer interval must be positive")
        handle = TimerHandle(callback, args, self.now() + interval, interval, name or callback.__name__)
        self._push(handle)
        return handle

    def call_soon(self, callback: Callable[..., Any], *args: Any, name: str | None = None) -> TimerHandle:
        """Queue ``callback`` for the next dispatch pass; safe to call from other threads."""
        return self.call_later(0.0, callback, *args, name=name)

    def next_deadline(self) -> Optional[float]:
        with self._lock:
            while self._queue and not self._queue[0][2].active:
                heapq.heappop(self._queue)
            return self._queue[0][0] if self._queue else None

    def pending(self) -> int:
        with self._lock:
            return sum(1 for _, _, handle in self._queue if handle.active)

    def _pop_due(self, now: float) -> Optional[TimerHandle]:
        with self._lock:
            while self._queue:
                deadline, _, handle = self._queue[0]
                if deadline > now:
                    return None
                heapq.heappop(self._queue)
                if handle.active:
                    return handle
            return None

    def _dispatch(self, handle: TimerHandle) -> None:
        if handle.interval is not None:
            # Reschedule before running so the callback may cancel its own handle.
            handle.deadline += handle.interval
            self._push(handle)
        else:
            handle.cancel()
        try:
            handle.callback(*handle.args)
        except Exception:
            logger.exception("Timer callback %s failed; schedule continues", handle.name)

    def run_due(self) -> int:
        """Run every callback due at the current clock reading. Returns the count run."""
        ran = 0
        while True:
            handle = self._pop_due(self.now())
            if handle is None:
                return ran
            self._dispatch(handle)
            ran += 1

    def advance(self, seconds: float) -> int:
        """Move a ManualClock forward, firing timers at their exact deadlines."""
        if not isinstance(self.clock, ManualClock):
            raise TypeError("Scheduler.advance() requires a ManualClock")
        target = self.now() + float(seconds)
        ran = self.run_due()
        while True:
            deadline = self.next_deadline()
            if deadline is None or deadline > target:
                break
            self.clock.advance_to(max(deadline, self.now()))
            ran += self.run_due()
        self.clock.advance_to(target)
        return ran + self.run_due()


class SchedulerThread:
    """Pumps a Scheduler against the real clock from a background daemon thread."""

    def __init__(self, scheduler: Scheduler, max_idle_seconds: float = 0.25) -> None:
        self.scheduler = scheduler
        self.max_idle_seconds = max_idle_seconds
        self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._pump_loop, name="firecnc-scheduler", daemon=True)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> None:
        if self._thread.is_alive():
            logger.info("Scheduler thread already running.")
            return
        if self._stop_event.is_set():
            self._stop_event = threading.Event()
        self._thread = threading.Thread(target=self._pump_loop, name="firecnc-scheduler", daemon=True)
        self._thread.start()
        logger.info("Scheduler thread started.")

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread.is_alive():
            self._thread.join(timeout=1)

    def _pump_loop(self) -> None:
        while not self._stop_event.is_set():
            self.scheduler.run_due()
            deadline = self.scheduler.next_deadline()
            wait = self.max_idle_seconds
            if deadline is not None:
                wait = min(wait, max(0.0, deadline - self.scheduler.now()))
            self._stop_event.wait(wait)
