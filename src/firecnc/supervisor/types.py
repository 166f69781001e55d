"""Shared state models for the supervisor core."""
from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class RestartReason(str, Enum):
    """Why the most recent reboot happened. Persisted by value."""

    USER_REBOOT = "User Reboot"
    WATCHDOG_TIMEOUT = "Watchdog Timeout"
    SD_CARD_FAILURE = "SD Card Failure"
    SHUTDOWN_PIN = "Shutdown Pin"
    NORMAL_POWER_UP = "Normal Power-Up"
    ICMP_WATCHDOG_TIMEOUT = "ICMP Watchdog Timeout"


class ConnectivityStatus(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    RESTARTING = "restarting"


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {LogLevel.DEBUG: 0, LogLevel.INFO: 1, LogLevel.WARN: 2, LogLevel.ERROR: 3}


class HealthStats(BaseModel):
    """Durable counters; persisted as ``{"startups", "watchdogReboots"}``."""
    startups: int = Field(0, ge=0)
    watchdog_reboots: int = Field(0, ge=0, alias="watchdogReboots")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class SystemInfo(BaseModel):
    """Externally visible identity and liveness of the board."""
    firmware_version: str = "v1.0.0"
    uptime_seconds: int = Field(0, ge=0)
    uptime: str = "0h 0m 0s"
    ip_address: str = "192.168.1.20"

    model_config = ConfigDict(frozen=True)


class SdCardInfo(BaseModel):
    status: Literal["Uninitialized", "Mounted", "Not Present", "Error"] = "Uninitialized"
    used_gb: float = 14.8
    total_gb: float = 15.9

    model_config = ConfigDict(frozen=True)


class SupervisorState(BaseModel):
    """Process-wide state mutated only by the RebootOrchestrator."""
    uptime_seconds: int = Field(0, ge=0)
    is_shutting_down: bool = False
    restart_reason: RestartReason = RestartReason.NORMAL_POWER_UP
    sd_card_error_active: bool = False
    sd_card_error_at: Optional[float] = None

    model_config = ConfigDict(validate_assignment=True)


def format_uptime(seconds: int) -> str:
    """Render uptime like the control panel does: ``1d 2h 3m 4s`` (day part only when non-zero)."""
    days, rem = divmod(int(seconds), 24 * 3600)
    hours, rem = divmod(rem, 3600)
    minutes, secs = divmod(rem, 60)
    prefix = f"{days}d " if days > 0 else ""
    return f"{prefix}{hours}h {minutes}m {secs}s"
