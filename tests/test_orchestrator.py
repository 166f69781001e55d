"""Tests for boot, reboot, shutdown and SD-failure sequencing."""
from __future__ import annotations

from firecnc.supervisor.orchestrator import Phase, read_restart_reason
from firecnc.supervisor.persistence import RESTART_REASON_KEY, MemoryStore
from firecnc.supervisor.system import Supervisor
from firecnc.supervisor.types import ConnectivityStatus, LogLevel, RestartReason, format_uptime
from firecnc.utils.config import SupervisorConfig

SD_TRAP = "SD Card Error: Failed to write to file."
SHUTDOWN_TRAP = "Shutdown Initiated via GPIO pin."


def _alert_counts(sup) -> list[int]:
    return [alert.count for alert in sup.sink.alert_signals]


# =============================================================================
# BOOT
# =============================================================================

def test_normal_power_up_logs_info(make_supervisor, store):
    sup = make_supervisor()
    assert sup.boot() == RestartReason.NORMAL_POWER_UP

    assert "System startup detected. Reason: Normal Power-Up." in sup.sink.messages(LogLevel.INFO)
    assert store.get(RESTART_REASON_KEY) is None
    assert sup.health_stats.startups == 1
    assert _alert_counts(sup) == [2]
    sup.teardown()


def test_watchdog_restart_reason_logs_warn_and_is_consumed(make_supervisor, store):
    store.set(RESTART_REASON_KEY, RestartReason.WATCHDOG_TIMEOUT.value)
    sup = make_supervisor()

    assert sup.boot() == RestartReason.WATCHDOG_TIMEOUT
    assert "System startup detected. Reason: Watchdog Timeout." in sup.sink.messages(LogLevel.WARN)
    assert read_restart_reason(store) == RestartReason.NORMAL_POWER_UP
    sup.teardown()


def test_user_reboot_reason_logs_info(make_supervisor, store):
    store.set(RESTART_REASON_KEY, RestartReason.USER_REBOOT.value)
    sup = make_supervisor()
    sup.boot()

    assert "System startup detected. Reason: User Reboot." in sup.sink.messages(LogLevel.INFO)
    assert store.get(RESTART_REASON_KEY) is None
    sup.teardown()


def test_unreadable_restart_reason_falls_back_to_power_up(caplog):
    store = MemoryStore()
    store.put_raw(RESTART_REASON_KEY, "{not json")
    with caplog.at_level("WARNING"):
        assert read_restart_reason(store) == RestartReason.NORMAL_POWER_UP
    assert "Restart reason unreadable" in caplog.text


def test_unknown_restart_reason_falls_back_to_power_up():
    store = MemoryStore({RESTART_REASON_KEY: "Cosmic Ray"})
    assert read_restart_reason(store) == RestartReason.NORMAL_POWER_UP


def test_sd_card_mounts_one_second_after_boot(supervisor, scheduler):
    assert supervisor.orchestrator.sd_card_info().status == "Uninitialized"
    scheduler.advance(1)
    assert supervisor.orchestrator.sd_card_info().status == "Mounted"
    assert "SD Card initialized and mounted successfully." in supervisor.sink.trap_messages()


# =============================================================================
# REBOOT
# =============================================================================

def test_user_reboot_sequence(supervisor, scheduler, store):
    scheduler.advance(30)
    assert supervisor.system_info.uptime_seconds == 30
    assert supervisor.health_stats.startups == 1

    assert supervisor.reboot_device() is True
    assert supervisor.link.status() == ConnectivityStatus.RESTARTING
    assert supervisor.orchestrator.phase == Phase.RESTARTING
    assert store.get(RESTART_REASON_KEY) == RestartReason.USER_REBOOT.value
    assert supervisor.health_stats.startups == 1

    scheduler.advance(4)
    assert supervisor.link.status() == ConnectivityStatus.RESTARTING
    # Uptime is frozen while restarting.
    assert supervisor.system_info.uptime_seconds == 30

    scheduler.advance(1)
    assert supervisor.link.status() == ConnectivityStatus.CONNECTED
    assert supervisor.system_info.uptime_seconds == 0
    assert supervisor.system_info.uptime == "0h 0m 0s"
    assert supervisor.health_stats.startups == 2
    assert supervisor.orchestrator.phase == Phase.RUNNING
    assert supervisor.link.history == [
        ConnectivityStatus.DISCONNECTED,
        ConnectivityStatus.CONNECTED,
        ConnectivityStatus.RESTARTING,
        ConnectivityStatus.CONNECTED,
    ]
    assert _alert_counts(supervisor) == [2, 3]


def test_restart_reason_persisted_before_link_restarts(supervisor, store):
    seen = []

    def _on_change(new, _old):
        if new == ConnectivityStatus.RESTARTING:
            seen.append(store.get(RESTART_REASON_KEY))

    supervisor.link.status.subscribe(_on_change)
    supervisor.reboot_device(RestartReason.WATCHDOG_TIMEOUT)
    assert seen == [RestartReason.WATCHDOG_TIMEOUT.value]


def test_second_reboot_while_pending_is_ignored(supervisor, scheduler, store):
    assert supervisor.reboot_device(RestartReason.USER_REBOOT) is True
    assert supervisor.reboot_device(RestartReason.WATCHDOG_TIMEOUT) is False
    assert store.get(RESTART_REASON_KEY) == RestartReason.USER_REBOOT.value

    scheduler.advance(10)
    assert supervisor.health_stats.startups == 2
    assert supervisor.link.history.count(ConnectivityStatus.RESTARTING) == 1


def test_uptime_formatting():
    assert format_uptime(0) == "0h 0m 0s"
    assert format_uptime(59) == "0h 0m 59s"
    assert format_uptime(3661) == "1h 1m 1s"
    assert format_uptime(90061) == "1d 1h 1m 1s"


# =============================================================================
# SHUTDOWN
# =============================================================================

def test_shutdown_is_guarded_against_repeats(supervisor, scheduler, store):
    assert supervisor.shutdown_device() is True
    assert supervisor.shutdown_device() is False
    assert supervisor.is_shutting_down
    assert supervisor.orchestrator.phase == Phase.SHUTTING_DOWN
    assert supervisor.sink.trap_messages().count(SHUTDOWN_TRAP) == 1

    scheduler.advance(5.5)
    assert supervisor.link.status() == ConnectivityStatus.RESTARTING
    assert store.get(RESTART_REASON_KEY) == RestartReason.SHUTDOWN_PIN.value
    assert supervisor.is_shutting_down

    scheduler.advance(5)
    assert supervisor.link.status() == ConnectivityStatus.CONNECTED
    assert not supervisor.is_shutting_down
    assert supervisor.link.history.count(ConnectivityStatus.RESTARTING) == 1


def test_shutdown_pin_rising_edge(supervisor, scheduler):
    supervisor.set_digital_input(0, True)
    assert supervisor.is_shutting_down

    # Holding or re-pulsing the pin during a pending shutdown does nothing.
    supervisor.set_digital_input(0, False)
    supervisor.set_digital_input(0, True)
    assert supervisor.sink.trap_messages().count(SHUTDOWN_TRAP) == 1

    scheduler.advance(11)
    assert supervisor.health_stats.startups == 2


def test_other_inputs_do_not_trigger_shutdown(supervisor):
    supervisor.set_digital_input(3, True)
    assert not supervisor.is_shutting_down


def test_configured_shutdown_pin_is_honoured(make_supervisor):
    sup = make_supervisor(shutdown_pin_index=6)
    sup.boot()
    sup.set_digital_input(0, True)
    assert not sup.is_shutting_down

    sup.set_digital_input(2, True)
    assert sup.is_shutting_down
    sup.teardown()


# =============================================================================
# SD CARD FAILURE
# =============================================================================

def test_sd_error_is_guarded_and_schedules_reboot(supervisor, scheduler, store):
    scheduler.advance(1)
    assert supervisor.trigger_sd_error_visual(SD_TRAP) is True
    assert supervisor.trigger_sd_error_visual(SD_TRAP) is False

    assert supervisor.sd_card_error_active
    assert supervisor.orchestrator.sd_card_info().status == "Error"
    assert supervisor.sink.trap_messages().count(SD_TRAP) == 1
    assert _alert_counts(supervisor) == [2, 3]

    scheduler.advance(59)
    assert supervisor.link.status() == ConnectivityStatus.CONNECTED

    scheduler.advance(1)
    assert supervisor.link.status() == ConnectivityStatus.RESTARTING
    assert store.get(RESTART_REASON_KEY) == RestartReason.SD_CARD_FAILURE.value


def test_sd_error_rearms_after_remount(supervisor, scheduler):
    scheduler.advance(1)
    supervisor.trigger_sd_error_visual(SD_TRAP)
    scheduler.advance(60 + 5 + 1)

    assert not supervisor.sd_card_error_active
    assert supervisor.orchestrator.sd_card_info().status == "Mounted"
    assert supervisor.trigger_sd_error_visual(SD_TRAP) is True
    assert supervisor.sink.trap_messages().count(SD_TRAP) == 2


def test_sd_error_without_auto_reboot(make_supervisor, scheduler):
    sup = make_supervisor(sd_reboot_enabled=False)
    sup.boot()
    scheduler.advance(1)
    sup.trigger_sd_error_visual(SD_TRAP)

    scheduler.advance(300)
    assert sup.link.history.count(ConnectivityStatus.RESTARTING) == 0
    assert sup.sd_card_error_active
    sup.teardown()


def test_teardown_cancels_all_timers(make_supervisor, scheduler):
    sup = make_supervisor(icmp_target="192.168.1.1")
    sup.boot()
    sup.shutdown_device()
    sup.trigger_sd_error_visual(SD_TRAP)
    assert scheduler.pending() > 0

    sup.teardown()
    assert scheduler.pending() == 0


# =============================================================================
# FAILURE PATHS
# =============================================================================

def _config(**watchdog) -> SupervisorConfig:
    return SupervisorConfig.model_validate({"watchdog": {"icmp_target": None, **watchdog}})


class _FailingOnceStore(MemoryStore):
    """Raises on the first restart-reason write, then behaves normally."""

    def __init__(self):
        super().__init__()
        self.failures = 0

    def set(self, key, value):
        if key == RESTART_REASON_KEY and value is not None and self.failures == 0:
            self.failures += 1
            raise OSError("disk full")
        super().set(key, value)


def test_failed_reason_write_still_reboots(scheduler, caplog):
    store = _FailingOnceStore()
    sup = Supervisor(_config(), store=store, scheduler=scheduler)
    sup.boot()

    with caplog.at_level("ERROR"):
        assert sup.reboot_device() is True
    assert "Failed to persist restart reason" in caplog.text
    assert sup.link.status() == ConnectivityStatus.RESTARTING
    assert store.get(RESTART_REASON_KEY) is None

    scheduler.advance(5)
    assert sup.link.status() == ConnectivityStatus.CONNECTED
    assert sup.health_stats.startups == 2
    assert not sup.orchestrator.reboot_in_progress

    # The next reboot is accepted and its reason recorded.
    assert sup.reboot_device(RestartReason.WATCHDOG_TIMEOUT) is True
    assert store.get(RESTART_REASON_KEY) == RestartReason.WATCHDOG_TIMEOUT.value
    sup.teardown()


def test_failed_reason_write_on_heartbeat_timeout_recovers(scheduler):
    sup = Supervisor(_config(timeout_seconds=10), store=_FailingOnceStore(), scheduler=scheduler)
    sup.boot()
    sup.orchestrator.simulate_hang()

    scheduler.advance(11)
    assert sup.link.status() == ConnectivityStatus.RESTARTING
    assert sup.health_stats.watchdog_reboots == 1

    scheduler.advance(5)
    assert sup.link.status() == ConnectivityStatus.CONNECTED
    assert sup.heartbeat.running
    sup.teardown()


def test_teardown_after_rearmed_sd_error_leaves_no_timers(make_supervisor, scheduler, store):
    sup = make_supervisor()
    sup.boot()
    scheduler.advance(1)
    sup.trigger_sd_error_visual(SD_TRAP)
    sup.reboot_device()
    scheduler.advance(6)
    assert not sup.sd_card_error_active
    assert sup.trigger_sd_error_visual(SD_TRAP) is True

    sup.teardown()
    assert scheduler.pending() == 0

    scheduler.advance(100)
    assert store.get(RESTART_REASON_KEY) == RestartReason.USER_REBOOT.value


def test_rearmed_sd_error_keeps_earlier_reboot_deadline(make_supervisor, scheduler, store):
    sup = make_supervisor()
    sup.boot()
    scheduler.advance(1)
    sup.trigger_sd_error_visual(SD_TRAP)
    sup.reboot_device()
    scheduler.advance(6)
    sup.trigger_sd_error_visual(SD_TRAP)

    # First error at t=1 with a 60 s timeout: reboot at t=61, not t=67.
    scheduler.advance(53)
    assert sup.link.status() == ConnectivityStatus.CONNECTED
    scheduler.advance(1)
    assert sup.link.status() == ConnectivityStatus.RESTARTING
    assert store.get(RESTART_REASON_KEY) == RestartReason.SD_CARD_FAILURE.value

    scheduler.advance(60)
    assert sup.link.history.count(ConnectivityStatus.RESTARTING) == 2
    sup.teardown()


def test_completed_reboot_cancels_pending_shutdown(supervisor, scheduler, store):
    supervisor.shutdown_device()
    supervisor.reboot_device()

    scheduler.advance(20)
    assert not supervisor.is_shutting_down
    assert supervisor.link.history.count(ConnectivityStatus.RESTARTING) == 1
    assert store.get(RESTART_REASON_KEY) == RestartReason.USER_REBOOT.value

    assert supervisor.shutdown_device() is True
