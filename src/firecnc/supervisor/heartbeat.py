"""
Supervisor: Heartbeat Watchdog.

Detects a stalled device. Normal operation records a heartbeat once per
simulated second (the uptime ticker); while the watchdog is running it polls
once per second and, if no heartbeat has been recorded for longer than the
configured timeout, requests a ``WatchdogTimeout`` reboot.

Watchdog Behavior:
    - start(): idempotent, never creates a second poller
    - each poll reads the *current* timeout, so a reconfiguration takes
      effect on the next tick without restarting the poller
    - on timeout: stop, count the watchdog reboot (durably), then reboot
    - stop(): no-op when not running

Usage:
    >>> watchdog = HeartbeatWatchdog(scheduler, stats, sink, reboot=orchestrator.reboot_device)
    >>> watchdog.start(timeout_seconds=120)
    >>> watchdog.record_heartbeat()
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from firecnc.supervisor import metrics
from firecnc.supervisor.health import HealthStatsAccumulator
from firecnc.supervisor.notifications import NotificationSink
from firecnc.supervisor.scheduler import Scheduler, TimerHandle
from firecnc.supervisor.types import LogLevel, RestartReason

# Dedicated logger for watchdog events
logger = logging.getLogger("watchdog")

POLL_INTERVAL_SECONDS = 1.0


class HeartbeatWatchdog:
    """Polls for heartbeat staleness and escalates to a reboot."""

    def __init__(
        self,
        scheduler: Scheduler,
        stats: HealthStatsAccumulator,
        sink: NotificationSink,
        reboot: Callable[[RestartReason], None],
        timeout_source: Optional[Callable[[], float]] = None,
    ) -> None:
        self.scheduler = scheduler
        self.stats = stats
        self.sink = sink
        self._reboot = reboot
        self._timeout_source = timeout_source
        self.timeout_seconds: float = 0.0
        self.last_heartbeat_at: float = scheduler.now()
        self._poll_handle: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._poll_handle is not None

    def current_timeout(self) -> float:
        if self._timeout_source is not None:
            return float(self._timeout_source())
        return self.timeout_seconds

    def start(self, timeout_seconds: float) -> None:
        if self._poll_handle is not None:
            return
        self.timeout_seconds = float(timeout_seconds)
        self._generation += 1
        logger.info("Hardware Watchdog started with a timeout of %s seconds.", self.current_timeout())
        self._poll_handle = self.scheduler.call_every(
            POLL_INTERVAL_SECONDS, self._poll, self._generation, name="heartbeat-poll"
        )

    def stop(self) -> None:
        if self._poll_handle is None:
            return
        self._generation += 1
        self._poll_handle.cancel()
        self._poll_handle = None
        logger.info("Hardware Watchdog stopped.")

    def record_heartbeat(self) -> None:
        self.last_heartbeat_at = self.scheduler.now()

    def _poll(self, generation: int) -> None:
        if generation != self._generation:
            return
        elapsed = self.scheduler.now() - self.last_heartbeat_at
        if elapsed > self.current_timeout():
            self.sink.log(LogLevel.ERROR, f"Hardware Watchdog timeout after {elapsed:.0f}s! Device unresponsive. Rebooting...")
            self.stop()
            self.stats.record_watchdog_reboot()
            metrics.WATCHDOG_REBOOTS.labels(source="heartbeat").inc()
            self._reboot(RestartReason.WATCHDOG_TIMEOUT)
