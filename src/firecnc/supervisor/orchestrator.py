"""
Supervisor: Reboot/Shutdown Orchestrator.

Owns ``SupervisorState`` and sequences every restart of the simulated board.

Lifecycle:
    Running -> Restarting -> Running                  (reboot_device)
    Running -> ShuttingDown -> Restarting -> Running  (shutdown_device)

Reboot Sequence:
    1. Persist the restart reason (before the link changes state)
    2. Three alert beeps
    3. Link goes to ``restarting``; uptime ticker stops
    4. After REBOOT_DELAY_SECONDS: uptime resets to 0, shutdown flag clears,
       the heartbeat clock restarts from that instant and the link returns
       to ``connected``
    5. The restarting -> connected transition of a reboot we started counts
       one more startup in the health stats

Boot Sequence:
    The persisted restart reason is read once. Normal power-up and user
    reboots log at INFO, every other cause at WARN. The record is then
    cleared so it is consumed at most once.

Only one reboot can be in flight. A reboot requested while another is
pending is logged and ignored, which keeps the persisted reason
write-once per reboot cycle.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from firecnc.errors import PersistenceReadError
from firecnc.supervisor import metrics
from firecnc.supervisor.connectivity import ConnectivityLink
from firecnc.supervisor.health import HealthStatsAccumulator
from firecnc.supervisor.notifications import NotificationSink
from firecnc.supervisor.persistence import RESTART_REASON_KEY, KeyValueStore
from firecnc.supervisor.scheduler import Scheduler, TimerHandle
from firecnc.supervisor.signals import Signal, Subscription
from firecnc.supervisor.types import (
    ConnectivityStatus,
    LogLevel,
    RestartReason,
    SdCardInfo,
    SupervisorState,
    SystemInfo,
    format_uptime,
)
from firecnc.utils.config import WatchdogConfig

logger = logging.getLogger(__name__)

REBOOT_DELAY_SECONDS = 5.0
SHUTDOWN_DELAY_SECONDS = 5.5
SD_MOUNT_DELAY_SECONDS = 1.0
UPTIME_TICK_SECONDS = 1.0
REBOOT_ALERT_COUNT = 3
POWER_UP_ALERT_COUNT = 2
SD_ERROR_ALERT_COUNT = 3

_QUIET_REASONS = (RestartReason.NORMAL_POWER_UP, RestartReason.USER_REBOOT)


class Phase(str, Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    RESTARTING = "restarting"


def read_restart_reason(store: KeyValueStore) -> RestartReason:
    """Return the persisted restart reason, ``NORMAL_POWER_UP`` when absent or unreadable."""
    try:
        raw = store.get(RESTART_REASON_KEY)
    except PersistenceReadError as exc:
        logger.warning("Restart reason unreadable, assuming normal power-up: %s", exc)
        return RestartReason.NORMAL_POWER_UP
    if raw is None:
        return RestartReason.NORMAL_POWER_UP
    try:
        return RestartReason(raw)
    except ValueError:
        logger.warning("Unknown restart reason %r, assuming normal power-up", raw)
        return RestartReason.NORMAL_POWER_UP


class RebootOrchestrator:
    """Sequences boot, reboot, shutdown and SD-failure handling."""

    def __init__(
        self,
        scheduler: Scheduler,
        store: KeyValueStore,
        sink: NotificationSink,
        link: ConnectivityLink,
        stats: HealthStatsAccumulator,
        watchdog_config: Callable[[], WatchdogConfig],
        *,
        firmware_version: str = "v1.0.0",
        ip_address: str = "192.168.1.20",
    ) -> None:
        self.scheduler = scheduler
        self.store = store
        self.sink = sink
        self.link = link
        self.stats = stats
        self._watchdog_config = watchdog_config
        self.state = SupervisorState()
        self.system_info: Signal[SystemInfo] = Signal(
            SystemInfo(firmware_version=firmware_version, ip_address=ip_address), name="system_info"
        )
        self.sd_card_info: Signal[SdCardInfo] = Signal(SdCardInfo(), name="sd_card_info")

        self._heartbeat = None
        self._reboot_in_progress = False
        self._uptime_handle: Optional[TimerHandle] = None
        self._reboot_handle: Optional[TimerHandle] = None
        self._shutdown_handle: Optional[TimerHandle] = None
        self._sd_reboot_handle: Optional[TimerHandle] = None
        self._sd_mount_handle: Optional[TimerHandle] = None
        self._link_subscription: Optional[Subscription] = None

    # -- wiring -----------------------------------------------------------

    def attach_heartbeat(self, heartbeat) -> None:
        """Second construction phase: the heartbeat watchdog needs ``reboot_device`` first."""
        self._heartbeat = heartbeat

    # -- read-only views --------------------------------------------------

    @property
    def is_shutting_down(self) -> bool:
        return self.state.is_shutting_down

    @property
    def sd_card_error_active(self) -> bool:
        return self.state.sd_card_error_active

    @property
    def reboot_in_progress(self) -> bool:
        return self._reboot_in_progress

    @property
    def phase(self) -> Phase:
        if self._reboot_in_progress:
            return Phase.RESTARTING
        if self.state.is_shutting_down:
            return Phase.SHUTTING_DOWN
        return Phase.RUNNING

    # -- boot -------------------------------------------------------------

    def boot(self) -> RestartReason:
        reason = read_restart_reason(self.store)
        level = LogLevel.INFO if reason in _QUIET_REASONS else LogLevel.WARN
        self.sink.log(level, f"System startup detected. Reason: {reason.value}.")
        if reason != RestartReason.NORMAL_POWER_UP:
            self.store.set(RESTART_REASON_KEY, None)
        self.state.restart_reason = reason

        if self._link_subscription is None:
            self._link_subscription = self.link.status.subscribe(self._on_link_change)

        self._start_uptime()
        self._record_heartbeat()
        self.sink.emit_alert_signal(POWER_UP_ALERT_COUNT)
        self.stats.record_startup()
        self._schedule_sd_mount()
        return reason

    def teardown(self) -> None:
        for handle in (
            self._uptime_handle,
            self._reboot_handle,
            self._shutdown_handle,
            self._sd_reboot_handle,
            self._sd_mount_handle,
        ):
            if handle is not None:
                handle.cancel()
        self._uptime_handle = None
        self._reboot_handle = None
        self._shutdown_handle = None
        self._sd_reboot_handle = None
        self._sd_mount_handle = None
        if self._link_subscription is not None:
            self._link_subscription.unsubscribe()
            self._link_subscription = None

    # -- reboot / shutdown ------------------------------------------------

    def reboot_device(self, reason: RestartReason = RestartReason.USER_REBOOT) -> bool:
        reason = RestartReason(reason)
        if self._reboot_in_progress:
            logger.warning("Reboot (%s) ignored: a reboot is already in progress.", reason.value)
            return False

        try:
            self.store.set(RESTART_REASON_KEY, reason.value)
        except Exception:
            # Reboot anyway; only the recorded cause is lost.
            logger.exception("Failed to persist restart reason %s; rebooting without it.", reason.value)
        self._reboot_in_progress = True
        self.state.restart_reason = reason
        level = LogLevel.INFO if reason in _QUIET_REASONS + (RestartReason.SHUTDOWN_PIN,) else LogLevel.WARN
        self.sink.log(level, f"Reboot initiated. Reason: {reason.value}.")
        metrics.REBOOTS.labels(reason=reason.value).inc()
        self.sink.emit_alert_signal(REBOOT_ALERT_COUNT)
        self._stop_uptime()
        self.link.set_restarting()
        if self._reboot_handle is not None:
            self._reboot_handle.cancel()
        self._reboot_handle = self.scheduler.call_later(
            REBOOT_DELAY_SECONDS, self._complete_reboot, reason, name="reboot-delay"
        )
        return True

    def _complete_reboot(self, reason: RestartReason) -> None:
        self._reboot_handle = None
        logger.info("Simulating device reboot (Reason: %s): resetting state and reconnecting.", reason.value)
        self.state.is_shutting_down = False
        if self._shutdown_handle is not None:
            # A completed reboot supersedes a shutdown still counting down.
            self._shutdown_handle.cancel()
            self._shutdown_handle = None
        metrics.SHUTDOWN_PENDING.set(0)
        self.state.uptime_seconds = 0
        self.system_info.update(lambda info: info.model_copy(update={"uptime_seconds": 0, "uptime": format_uptime(0)}))
        metrics.UPTIME_SECONDS.set(0)
        self._start_uptime()
        self._record_heartbeat()
        self._schedule_sd_mount()
        self.link.connect()
        # A link that was already connected produces no transition to observe.
        if self._reboot_in_progress:
            self._finish_reboot_cycle()

    def _on_link_change(self, new: ConnectivityStatus, old: ConnectivityStatus) -> None:
        if new == ConnectivityStatus.CONNECTED and old == ConnectivityStatus.RESTARTING and self._reboot_in_progress:
            self._finish_reboot_cycle()

    def _finish_reboot_cycle(self) -> None:
        self._reboot_in_progress = False
        self.stats.record_startup()

    def shutdown_device(self) -> bool:
        if self.state.is_shutting_down:
            return False
        self.sink.send_trap("Shutdown Initiated via GPIO pin.")
        self.state.is_shutting_down = True
        metrics.SHUTDOWN_PENDING.set(1)
        if self._shutdown_handle is not None:
            self._shutdown_handle.cancel()
        self._shutdown_handle = self.scheduler.call_later(
            SHUTDOWN_DELAY_SECONDS, self._shutdown_elapsed, name="shutdown-delay"
        )
        return True

    def _shutdown_elapsed(self) -> None:
        self._shutdown_handle = None
        logger.info("Simulating device reboot from shutdown pin.")
        self.reboot_device(RestartReason.SHUTDOWN_PIN)

    # -- SD card ----------------------------------------------------------

    def trigger_sd_error_visual(self, reason: str) -> bool:
        if self.state.sd_card_error_active:
            return False

        logger.error("SD Card Error Triggered: %s", reason)
        self.state.sd_card_error_active = True
        self.state.sd_card_error_at = self.scheduler.now()
        self.sd_card_info.update(lambda info: info.model_copy(update={"status": "Error"}))
        self.sink.emit_alert_signal(SD_ERROR_ALERT_COUNT)
        self.sink.send_trap(reason)

        config = self._watchdog_config()
        if config.sd_reboot_enabled and self._sd_reboot_handle is not None:
            logger.info("SD card failure reboot already scheduled; keeping the earlier deadline.")
        elif config.sd_reboot_enabled:
            logger.info(
                "Scheduling reboot in %s seconds due to SD card failure.", config.sd_reboot_timeout_seconds
            )
            self._sd_reboot_handle = self.scheduler.call_later(
                config.sd_reboot_timeout_seconds,
                self._sd_reboot_elapsed,
                name="sd-failure-reboot",
            )
        return True

    def _sd_reboot_elapsed(self) -> None:
        self._sd_reboot_handle = None
        self.reboot_device(RestartReason.SD_CARD_FAILURE)

    def mount_sd_card(self) -> None:
        """Start a new mount cycle; this is what re-arms the SD error guard."""
        self._sd_mount_handle = None
        self.state.sd_card_error_active = False
        self.state.sd_card_error_at = None
        self.sd_card_info.update(lambda info: info.model_copy(update={"status": "Mounted"}))
        self.sink.send_trap("SD Card initialized and mounted successfully.")

    def simulate_sd_write_failure(self) -> None:
        self.sink.send_trap("SD Card Error: Failed to write to file.")
        logger.error("Simulated SD Card Write Failure.")

    def _schedule_sd_mount(self) -> None:
        if self._sd_mount_handle is not None:
            self._sd_mount_handle.cancel()
        self._sd_mount_handle = self.scheduler.call_later(
            SD_MOUNT_DELAY_SECONDS, self.mount_sd_card, name="sd-mount"
        )

    # -- liveness ---------------------------------------------------------

    def simulate_hang(self) -> None:
        """Freeze the uptime ticker, and with it the heartbeat, until the next reboot completes."""
        logger.warning("Simulating a hung main loop: heartbeats suspended.")
        self._stop_uptime()

    def _start_uptime(self) -> None:
        if self._uptime_handle is None:
            self._uptime_handle = self.scheduler.call_every(UPTIME_TICK_SECONDS, self._tick_uptime, name="uptime")

    def _stop_uptime(self) -> None:
        if self._uptime_handle is not None:
            self._uptime_handle.cancel()
            self._uptime_handle = None

    def _tick_uptime(self) -> None:
        self.state.uptime_seconds += 1
        seconds = self.state.uptime_seconds
        self._record_heartbeat()
        self.system_info.update(
            lambda info: info.model_copy(update={"uptime_seconds": seconds, "uptime": format_uptime(seconds)})
        )
        metrics.UPTIME_SECONDS.set(seconds)

    def _record_heartbeat(self) -> None:
        if self._heartbeat is not None:
            self._heartbeat.record_heartbeat()
