"""
Supervisor: Notification Sink (system log, SNMP traps, buzzer).

Three outward channels the supervisor uses to make its decisions visible:

- ``log(level, message)``: the device system log shown on the control panel.
  Bounded to the most recent 200 entries; entries at or above the configured
  SNMP trap level are also forwarded as a trap.
- ``send_trap(message)``: the SNMP trap log. Traps are only recorded while
  traps are enabled in the SNMP configuration.
- ``emit_alert_signal(count)``: buzzer beeps, recorded only while the buzzer
  is enabled.

Every device log entry is mirrored to the process logger so operators can
follow the simulation from the console.
"""
from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from typing import Callable, Deque, Optional

from pydantic import BaseModel

from firecnc.supervisor.types import LogLevel
from firecnc.utils.config import SnmpConfig
from firecnc.utils.logging import to_logging_level

logger = logging.getLogger("firecnc.device")

MAX_LOG_ENTRIES = 200


class LogEntry(BaseModel):
    timestamp: str
    level: LogLevel
    message: str


class TrapEntry(BaseModel):
    timestamp: str
    message: str


class AlertSignal(BaseModel):
    timestamp: str
    count: int


def _utc_iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class NotificationSink:
    """In-memory system log, trap log and buzzer record."""

    def __init__(
        self,
        snmp_config: Optional[Callable[[], SnmpConfig]] = None,
        *,
        buzzer_enabled: bool = True,
        max_entries: int = MAX_LOG_ENTRIES,
    ) -> None:
        self._snmp_config = snmp_config or SnmpConfig
        self.buzzer_enabled = buzzer_enabled
        self.log_entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self.trap_entries: Deque[TrapEntry] = deque(maxlen=max_entries)
        self.alert_signals: list[AlertSignal] = []

    def log(self, level: LogLevel | str, message: str) -> LogEntry:
        level = LogLevel(level)
        entry = LogEntry(timestamp=_utc_iso_now(), level=level, message=message)
        logger.log(to_logging_level(level.value), message)

        threshold = LogLevel(self._snmp_config().trap_level)
        if level.severity >= threshold.severity:
            self.send_trap(f"{level.value} Detected: {message}")

        self.log_entries.append(entry)
        return entry

    def send_trap(self, message: str) -> Optional[TrapEntry]:
        config = self._snmp_config()
        if not config.traps_enabled:
            logger.info("[SNMP TRAP IGNORED] Traps are disabled in configuration.")
            return None
        logger.info(
            "[SNMP TRAP SENT] To: %s:%s | Community: %s | Message: %s",
            config.trap_target,
            config.trap_port,
            config.trap_community,
            message,
        )
        entry = TrapEntry(timestamp=_utc_iso_now(), message=message)
        self.trap_entries.append(entry)
        return entry

    def emit_alert_signal(self, count: int) -> None:
        if not self.buzzer_enabled:
            return
        logger.info("BEEP x%s", count)
        self.alert_signals.append(AlertSignal(timestamp=_utc_iso_now(), count=int(count)))

    def toggle_buzzer(self) -> bool:
        self.buzzer_enabled = not self.buzzer_enabled
        logger.info("SET BUZZER=%s", "ON" if self.buzzer_enabled else "OFF")
        return self.buzzer_enabled

    def clear_logs(self, levels: Optional[list[LogLevel]] = None) -> None:
        if levels is None:
            self.log_entries.clear()
            return
        drop = {LogLevel(level) for level in levels}
        kept = [entry for entry in self.log_entries if entry.level not in drop]
        self.log_entries.clear()
        self.log_entries.extend(kept)

    def messages(self, level: LogLevel | str | None = None) -> list[str]:
        if level is None:
            return [entry.message for entry in self.log_entries]
        wanted = LogLevel(level)
        return [entry.message for entry in self.log_entries if entry.level == wanted]

    def trap_messages(self) -> list[str]:
        return [entry.message for entry in self.trap_entries]
