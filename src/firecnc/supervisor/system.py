"""
Supervisor: Composition Root.

Builds every supervisor component with explicit handles, wires the one
cyclic edge (orchestrator <-> heartbeat watchdog) in a second phase, and
subscribes the watchdogs and the IP resolver to the reactive inputs that
drive them.

Watchdog Activation:
    - heartbeat watchdog polls  iff  watchdog.enabled and link connected
    - ICMP watchdog probes      iff  watchdog.icmp_target and link connected
    - any change to the ICMP target/delay/interval/threshold rebuilds the
      probe session

Usage:
    >>> supervisor = build_supervisor(config_path="configs/supervisor.yaml")
    >>> supervisor.boot()
    >>> supervisor.reboot_device()
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from firecnc.supervisor.connectivity import ConnectivityLink
from firecnc.supervisor.gpio import INPUT_COUNT, ShutdownPinMonitor
from firecnc.supervisor.health import HealthStatsAccumulator
from firecnc.supervisor.heartbeat import HeartbeatWatchdog
from firecnc.supervisor.icmp import IcmpSettings, IcmpWatchdog, Prober
from firecnc.supervisor.led import OnboardLedIndicator
from firecnc.supervisor.network import NetworkIdentityResolver
from firecnc.supervisor.notifications import NotificationSink
from firecnc.supervisor.orchestrator import RebootOrchestrator
from firecnc.supervisor.persistence import DuckDBStore, KeyValueStore, MemoryStore
from firecnc.supervisor.scheduler import Clock, Scheduler, SchedulerThread
from firecnc.supervisor.signals import Signal, Subscription
from firecnc.supervisor.types import ConnectivityStatus, HealthStats, RestartReason, SystemInfo
from firecnc.utils.config import (
    NetworkConfig,
    SnmpConfig,
    SupervisorConfig,
    WatchdogConfig,
    WifiConfig,
    WifiStatus,
    load_supervisor_config,
)

logger = logging.getLogger(__name__)


class ConfigStore:
    """Live configuration snapshots, one channel per config section."""

    def __init__(self, config: Optional[SupervisorConfig] = None) -> None:
        config = config or SupervisorConfig()
        self.watchdog: Signal[WatchdogConfig] = Signal(config.watchdog, name="watchdog_config")
        self.network: Signal[NetworkConfig] = Signal(config.network, name="network_config")
        self.wifi: Signal[WifiConfig] = Signal(config.wifi, name="wifi_config")
        self.wifi_status: Signal[WifiStatus] = Signal(config.wifi_status, name="wifi_status")
        self.snmp: Signal[SnmpConfig] = Signal(config.snmp, name="snmp_config")

    @staticmethod
    def _merge(channel: Signal, changes: dict[str, Any]) -> Any:
        current = channel()
        updated = type(current).model_validate({**current.model_dump(), **changes})
        channel.set(updated)
        return updated

    def update_watchdog(self, **changes: Any) -> WatchdogConfig:
        return self._merge(self.watchdog, changes)

    def update_network(self, **changes: Any) -> NetworkConfig:
        return self._merge(self.network, changes)

    def update_wifi(self, **changes: Any) -> WifiConfig:
        return self._merge(self.wifi, changes)

    def update_wifi_status(self, **changes: Any) -> WifiStatus:
        return self._merge(self.wifi_status, changes)


class Supervisor:
    """Owns and wires the device supervisory core."""

    def __init__(
        self,
        config: Optional[SupervisorConfig] = None,
        *,
        store: Optional[KeyValueStore] = None,
        scheduler: Optional[Scheduler] = None,
        prober: Optional[Prober] = None,
    ) -> None:
        config = config or SupervisorConfig()
        self.config = ConfigStore(config)
        self.scheduler = scheduler or Scheduler()
        self.store = store if store is not None else MemoryStore()
        self.sink = NotificationSink(self.config.snmp.get, buzzer_enabled=config.buzzer_enabled)
        self.link = ConnectivityLink(self.scheduler.clock)
        self.stats = HealthStatsAccumulator(self.store)
        self.orchestrator = RebootOrchestrator(
            self.scheduler,
            self.store,
            self.sink,
            self.link,
            self.stats,
            self.config.watchdog.get,
            firmware_version=config.firmware_version,
            ip_address=config.network.static_ip,
        )
        self.heartbeat = HeartbeatWatchdog(
            self.scheduler,
            self.stats,
            self.sink,
            reboot=self.orchestrator.reboot_device,
            timeout_source=lambda: self.config.watchdog().timeout_seconds,
        )
        self.icmp = IcmpWatchdog(self.scheduler, self.sink, reboot=self.orchestrator.reboot_device, prober=prober)
        self.resolver = NetworkIdentityResolver(
            self.orchestrator.system_info,
            self.link.status,
            self.config.network,
            self.config.wifi,
            self.config.wifi_status,
        )
        self.led = OnboardLedIndicator(
            self.scheduler, self.link.status, self.orchestrator.system_info, self.config.network.get
        )
        self.digital_inputs: Signal[tuple[bool, ...]] = Signal((False,) * INPUT_COUNT, name="digital_inputs")
        self.shutdown_pin = ShutdownPinMonitor(self.digital_inputs, self.config.watchdog.get, self.shutdown_device)

        self.orchestrator.attach_heartbeat(self.heartbeat)
        self._subscriptions: list[Subscription] = []
        self.booted = False

    # -- lifecycle --------------------------------------------------------

    def boot(self, *, connect: bool = True) -> RestartReason:
        reason = self.orchestrator.boot()
        if not self._subscriptions:
            sync = lambda _new, _old: self._sync_watchdogs()
            self._subscriptions = [
                self.link.status.subscribe(sync),
                self.config.watchdog.subscribe(sync),
            ]
        self.resolver.attach()
        # After the resolver, so the LED sees the address of the new link state.
        self.led.attach()
        self.shutdown_pin.attach()
        self.booted = True
        if connect:
            self.link.connect()
        self._sync_watchdogs()
        return reason

    def teardown(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        self.resolver.detach()
        self.led.detach()
        self.shutdown_pin.detach()
        self.heartbeat.stop()
        if self.icmp.running:
            self.icmp.stop()
        self.orchestrator.teardown()
        self.booted = False

    def _sync_watchdogs(self) -> None:
        config = self.config.watchdog()
        connected = self.link.status() == ConnectivityStatus.CONNECTED

        if config.enabled and connected:
            self.heartbeat.start(config.timeout_seconds)
        else:
            self.heartbeat.stop()

        if config.icmp_target and connected:
            desired = IcmpSettings(
                target=config.icmp_target,
                delay_seconds=float(config.icmp_delay_seconds),
                interval_seconds=float(config.icmp_interval_seconds),
                fail_threshold=int(config.icmp_fail_threshold),
            )
            if self.icmp.settings != desired:
                self.icmp.restart(desired)
        elif self.icmp.running:
            self.icmp.stop()

    # -- public operations ------------------------------------------------

    def reboot_device(self, reason: RestartReason = RestartReason.USER_REBOOT) -> bool:
        return self.orchestrator.reboot_device(reason)

    def shutdown_device(self) -> bool:
        return self.orchestrator.shutdown_device()

    def trigger_sd_error_visual(self, reason: str) -> bool:
        return self.orchestrator.trigger_sd_error_visual(reason)

    def record_heartbeat(self) -> None:
        self.heartbeat.record_heartbeat()

    def set_digital_input(self, index: int, state: bool) -> None:
        if not 0 <= index < INPUT_COUNT:
            raise IndexError(f"Digital input DI_{index} does not exist")
        inputs = list(self.digital_inputs())
        inputs[index] = bool(state)
        self.digital_inputs.set(tuple(inputs))

    # -- read-only views --------------------------------------------------

    @property
    def system_info(self) -> SystemInfo:
        return self.orchestrator.system_info()

    @property
    def health_stats(self) -> HealthStats:
        return self.stats.stats

    @property
    def is_shutting_down(self) -> bool:
        return self.orchestrator.is_shutting_down

    @property
    def sd_card_error_active(self) -> bool:
        return self.orchestrator.sd_card_error_active

    def snapshot(self) -> dict[str, Any]:
        return {
            "system_info": self.system_info.model_dump(),
            "health_stats": self.health_stats.model_dump(by_alias=True),
            "connectivity": self.link.status().value,
            "phase": self.orchestrator.phase.value,
            "restart_reason": self.orchestrator.state.restart_reason.value,
            "is_shutting_down": self.is_shutting_down,
            "sd_card_error_active": self.sd_card_error_active,
            "sd_card": self.orchestrator.sd_card_info().model_dump(),
            "onboard_led": self.led.state().model_dump(),
            "heartbeat_watchdog_running": self.heartbeat.running,
            "icmp_watchdog_running": self.icmp.running,
            "icmp_failure_count": self.icmp.failure_count,
        }


def build_supervisor(
    config_path: str | Path | None = None,
    *,
    db_path: str | None = None,
    clock: Optional[Clock] = None,
    prober: Optional[Prober] = None,
) -> Supervisor:
    """Assemble a Supervisor from a YAML config and a DuckDB-backed store."""
    config = load_supervisor_config(config_path)
    store = DuckDBStore(db_path)
    return Supervisor(config, store=store, scheduler=Scheduler(clock), prober=prober)


class SupervisorRuntime:
    """Runs a Supervisor against the real clock; other threads hand work in via ``submit``."""

    def __init__(self, supervisor: Supervisor) -> None:
        self.supervisor = supervisor
        self._thread = SchedulerThread(supervisor.scheduler)
        self._queued: set[str] = set()
        self._queued_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread.running

    def submit(self, fn: Callable[..., Any], *args: Any) -> None:
        self.supervisor.scheduler.call_soon(fn, *args, name=getattr(fn, "__name__", "submitted"))

    def submit_once(self, key: str, fn: Callable[..., Any], *args: Any) -> bool:
        """Like ``submit``, but refuses while an earlier request under ``key`` is still queued."""
        with self._queued_lock:
            if key in self._queued:
                return False
            self._queued.add(key)

        def _run() -> None:
            try:
                fn(*args)
            finally:
                with self._queued_lock:
                    self._queued.discard(key)

        self.supervisor.scheduler.call_soon(_run, name=key)
        return True

    def start(self) -> None:
        if self.running:
            return
        if not self.supervisor.booted:
            self.submit(self.supervisor.boot)
        self._thread.start()

    def stop(self) -> None:
        self._thread.stop()
        self.supervisor.teardown()
        store = self.supervisor.store
        if isinstance(store, DuckDBStore):
            store.close()
