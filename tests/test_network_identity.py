"""Tests for active IP address resolution."""
from __future__ import annotations

from firecnc.supervisor.network import UNASSIGNED_IP, resolve_ip_address
from firecnc.supervisor.types import ConnectivityStatus
from firecnc.utils.config import NetworkConfig, WifiConfig, WifiStatus

CONNECTED = ConnectivityStatus.CONNECTED
DISCONNECTED = ConnectivityStatus.DISCONNECTED

STATION_UP = WifiStatus(status="connected", signal_strength=-60, allocated_ip="10.0.0.5")


def test_wired_link_wins_over_wifi_lease():
    ip = resolve_ip_address(CONNECTED, NetworkConfig(static_ip="192.168.1.20"), WifiConfig(mode="Station"), STATION_UP)
    assert ip == "192.168.1.20"


def test_station_lease_used_when_wire_is_down():
    ip = resolve_ip_address(DISCONNECTED, NetworkConfig(), WifiConfig(mode="Station"), STATION_UP)
    assert ip == "10.0.0.5"


def test_access_point_mode_uses_ap_address():
    ip = resolve_ip_address(DISCONNECTED, NetworkConfig(ap_ip="192.168.4.1"), WifiConfig(mode="AP"), STATION_UP)
    assert ip == "192.168.4.1"


def test_unassigned_when_nothing_is_up():
    assert resolve_ip_address(DISCONNECTED, NetworkConfig(), WifiConfig(mode="Station"), WifiStatus()) == UNASSIGNED_IP
    assert resolve_ip_address(DISCONNECTED, NetworkConfig(), WifiConfig(mode="Disabled"), STATION_UP) == UNASSIGNED_IP
    assert resolve_ip_address(ConnectivityStatus.RESTARTING, None, None, None) == UNASSIGNED_IP


def test_station_without_real_lease_is_unassigned():
    status = WifiStatus(status="connected", allocated_ip="0.0.0.0")
    assert resolve_ip_address(DISCONNECTED, NetworkConfig(), WifiConfig(mode="Station"), status) == UNASSIGNED_IP


def test_empty_static_ip_is_unassigned():
    assert resolve_ip_address(CONNECTED, NetworkConfig(static_ip=""), WifiConfig(), WifiStatus()) == UNASSIGNED_IP


def test_supervisor_tracks_link_and_wifi_changes(supervisor):
    assert supervisor.system_info.ip_address == "192.168.1.20"

    supervisor.config.update_wifi_status(status="connected", allocated_ip="10.0.0.5")
    assert supervisor.system_info.ip_address == "192.168.1.20"

    supervisor.link.disconnect()
    assert supervisor.system_info.ip_address == "10.0.0.5"

    supervisor.config.update_wifi(mode="AP")
    assert supervisor.system_info.ip_address == "192.168.4.1"


def test_identity_written_only_on_change(supervisor):
    writes = []
    supervisor.orchestrator.system_info.subscribe(lambda new, old: writes.append((old.ip_address, new.ip_address)))

    supervisor.resolver.recompute()
    supervisor.config.update_network(subnet="255.255.0.0")
    assert writes == []

    supervisor.config.update_network(static_ip="192.168.1.50")
    assert writes == [("192.168.1.20", "192.168.1.50")]
