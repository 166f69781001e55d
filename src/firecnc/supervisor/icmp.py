"""
Supervisor: ICMP Liveness Watchdog.

Checks that an external endpoint stays reachable. After an initial delay the
watchdog probes the target once, then every ``interval`` seconds. Failed
probes are counted; a success resets the count. Reaching the failure
threshold stops the session and requests an ``IcmpWatchdogTimeout`` reboot.

Sessions are never adjusted in place: a change to target, delay, interval or
threshold tears the session down (``stop``) and builds a new one
(``start``), so a failure count is never carried across two probe cadences.

No packets are sent. Reachability comes from a ``Prober``; the default
``SimulatedProber`` answers from a scripted outcome queue and otherwise
from its ``reachable`` flag.
"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Iterable, Optional, Protocol

from firecnc.supervisor import metrics
from firecnc.supervisor.notifications import NotificationSink
from firecnc.supervisor.scheduler import Scheduler, TimerHandle
from firecnc.supervisor.types import LogLevel, RestartReason

logger = logging.getLogger("watchdog")


class Prober(Protocol):
    def probe(self, target: str) -> bool: ...


class SimulatedProber:
    """Reachability oracle for the simulator and tests."""

    def __init__(self, reachable: bool = True, outcomes: Iterable[bool] = ()) -> None:
        self.reachable = reachable
        self._outcomes: Deque[bool] = deque(outcomes)
        self.probed: list[str] = []

    def queue(self, *outcomes: bool) -> None:
        self._outcomes.extend(outcomes)

    def probe(self, target: str) -> bool:
        self.probed.append(target)
        if self._outcomes:
            return self._outcomes.popleft()
        return self.reachable


@dataclass(frozen=True)
class IcmpSettings:
    target: str
    delay_seconds: float
    interval_seconds: float
    fail_threshold: int


class IcmpWatchdog:
    """Owns one probe session at a time; see module docstring for the lifecycle."""

    def __init__(
        self,
        scheduler: Scheduler,
        sink: NotificationSink,
        reboot: Callable[[RestartReason], None],
        prober: Optional[Prober] = None,
    ) -> None:
        self.scheduler = scheduler
        self.sink = sink
        self._reboot = reboot
        self.prober = prober or SimulatedProber()
        self.settings: Optional[IcmpSettings] = None
        self.failure_count = 0
        self._delay_handle: Optional[TimerHandle] = None
        self._interval_handle: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def running(self) -> bool:
        return self.settings is not None

    def start(self, target: str, delay_seconds: float, interval_seconds: float, fail_threshold: int) -> None:
        self.stop()
        self.settings = IcmpSettings(
            target=target,
            delay_seconds=float(delay_seconds),
            interval_seconds=float(interval_seconds),
            fail_threshold=max(1, int(fail_threshold)),
        )
        generation = self._generation
        logger.info(
            "ICMP Watchdog will start pinging %s after a delay of %s seconds.", target, self.settings.delay_seconds
        )
        self._delay_handle = self.scheduler.call_later(
            self.settings.delay_seconds, self._begin_probing, generation, name="icmp-delay"
        )

    def restart(self, settings: IcmpSettings) -> None:
        self.start(settings.target, settings.delay_seconds, settings.interval_seconds, settings.fail_threshold)

    def stop(self) -> None:
        self._generation += 1
        if self._delay_handle is not None:
            self._delay_handle.cancel()
            self._delay_handle = None
        if self._interval_handle is not None:
            self._interval_handle.cancel()
            self._interval_handle = None
        if self.failure_count > 0:
            logger.info("ICMP Watchdog stopped. Failure count reset.")
        self.failure_count = 0
        self.settings = None

    def _begin_probing(self, generation: int) -> None:
        if generation != self._generation or self.settings is None:
            return
        self._delay_handle = None
        logger.info(
            "ICMP Watchdog initial delay finished. Starting periodic pings every %s seconds.",
            self.settings.interval_seconds,
        )
        self._interval_handle = self.scheduler.call_every(
            self.settings.interval_seconds, self._probe_once, generation, name="icmp-interval"
        )
        self._probe_once(generation)

    def _probe_once(self, generation: int) -> None:
        if generation != self._generation or self.settings is None:
            return
        settings = self.settings
        try:
            reachable = bool(self.prober.probe(settings.target))
        except Exception:
            logger.exception("ICMP probe to %s raised; counting as a failure", settings.target)
            reachable = False

        if reachable:
            metrics.ICMP_PROBES.labels(result="success").inc()
            self.sink.log(LogLevel.DEBUG, f"ICMP Ping to {settings.target}: Success.")
            if self.failure_count > 0:
                self.sink.log(LogLevel.INFO, f"ICMP Watchdog target {settings.target} is responsive again.")
            self.failure_count = 0
            return

        metrics.ICMP_PROBES.labels(result="failure").inc()
        self.failure_count += 1
        self.sink.log(
            LogLevel.WARN,
            f"ICMP Ping to {settings.target}: Failed (Attempt {self.failure_count}/{settings.fail_threshold}).",
        )
        if self.failure_count >= settings.fail_threshold:
            self.sink.log(LogLevel.ERROR, f"ICMP Watchdog: Target {settings.target} unresponsive. Rebooting device.")
            self.stop()
            metrics.WATCHDOG_REBOOTS.labels(source="icmp").inc()
            self._reboot(RestartReason.ICMP_WATCHDOG_TIMEOUT)
