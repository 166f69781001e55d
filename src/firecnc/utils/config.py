"""Utilities: config validation models and helpers."""
from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional, Type

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from firecnc.errors import ConfigError


class WatchdogConfig(BaseModel):
    """Watchdog, ICMP probe, SD-failure and shutdown-pin policy."""
    enabled: bool = True
    timeout_seconds: float = Field(120.0, gt=0)
    icmp_target: Optional[str] = "192.168.1.1"
    icmp_delay_seconds: float = Field(120.0, ge=0)
    icmp_interval_seconds: float = Field(60.0, gt=0)
    icmp_fail_threshold: int = Field(3, ge=1)
    sd_reboot_enabled: bool = True
    sd_reboot_timeout_seconds: float = Field(60.0, ge=0)
    shutdown_pin_index: int = 4

    model_config = ConfigDict(extra="allow")


class NetworkConfig(BaseModel):
    """Wired interface settings."""
    static_ip: str = "192.168.1.20"
    subnet: str = "255.255.255.0"
    gateway_ip: str = "192.168.1.1"
    dns_server: str = "192.168.1.1"
    ap_ip: str = "192.168.4.1"
    ap_subnet: str = "255.255.255.0"

    model_config = ConfigDict(extra="allow")


class WifiConfig(BaseModel):
    """WiFi radio mode."""
    mode: Literal["AP", "Station", "Disabled"] = "Station"
    ssid: str = "your_ssid"
    ap_ssid: str = "fireCNC_AP"
    ip_assignment: Literal["DHCP", "Static"] = "DHCP"

    model_config = ConfigDict(extra="allow")


class WifiStatus(BaseModel):
    """Live WiFi association reported by the radio."""
    status: Literal["connected", "disconnected", "disabled"] = "disconnected"
    signal_strength: int = 0
    allocated_ip: str = "0.0.0.0"

    model_config = ConfigDict(extra="allow")


class SnmpConfig(BaseModel):
    """Trap destination and forwarding threshold."""
    traps_enabled: bool = True
    trap_target: str = "0.0.0.0"
    trap_port: int = 162
    trap_community: str = "SNMP_trap"
    trap_level: Literal["DEBUG", "INFO", "WARN", "ERROR"] = "ERROR"

    model_config = ConfigDict(extra="allow")


class SupervisorConfig(BaseModel):
    """Schema for configs/supervisor.yaml."""
    watchdog: WatchdogConfig = Field(default_factory=WatchdogConfig)
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    wifi: WifiConfig = Field(default_factory=WifiConfig)
    wifi_status: WifiStatus = Field(default_factory=WifiStatus)
    snmp: SnmpConfig = Field(default_factory=SnmpConfig)
    buzzer_enabled: bool = True
    firmware_version: str = "v1.0.0"

    model_config = ConfigDict(extra="allow")


CONFIG_MODELS: dict[str, Type[BaseModel]] = {
    "supervisor.yaml": SupervisorConfig,
}


def _load_yaml(path: Path) -> dict:
    """Read a YAML file into a dict, defaulting to empty."""
    if not path.exists():
        return {}
    payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    return payload or {}


def load_supervisor_config(path: str | Path | None = None) -> SupervisorConfig:
    """Load supervisor settings; a missing file or section falls back to defaults."""
    if path is None:
        return SupervisorConfig()
    cfg_path = Path(path)
    try:
        payload = _load_yaml(cfg_path)
        return SupervisorConfig.model_validate(payload.get("supervisor", payload))
    except (yaml.YAMLError, ValidationError) as exc:
        raise ConfigError(f"Invalid supervisor config {cfg_path}: {exc}") from exc


def validate_config(path: Path) -> None:
    """Validate a config file if a schema is registered."""
    model = CONFIG_MODELS.get(path.name)
    if not model:
        return
    payload = _load_yaml(path)
    model.model_validate(payload.get("supervisor", payload))
