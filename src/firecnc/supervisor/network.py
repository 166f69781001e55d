"""Derives the board's single active IP address from link and WiFi state."""
from __future__ import annotations

import logging
from typing import Optional

from firecnc.supervisor.signals import Signal, Subscription
from firecnc.supervisor.types import ConnectivityStatus, SystemInfo
from firecnc.utils.config import NetworkConfig, WifiConfig, WifiStatus

logger = logging.getLogger(__name__)

UNASSIGNED_IP = "0.0.0.0"


def resolve_ip_address(
    eth_status: ConnectivityStatus,
    network: Optional[NetworkConfig],
    wifi: Optional[WifiConfig],
    wifi_status: Optional[WifiStatus],
) -> str:
    """
    Pick the address the board is reachable on.

    Precedence: wired link, then access-point mode, then an associated
    station with a real lease. Anything else is unassigned.
    """
    if eth_status == ConnectivityStatus.CONNECTED:
        return (network.static_ip if network else None) or UNASSIGNED_IP
    if wifi is not None and wifi.mode == "AP":
        return (network.ap_ip if network else None) or UNASSIGNED_IP
    if (
        wifi is not None
        and wifi.mode == "Station"
        and wifi_status is not None
        and wifi_status.status == "connected"
        and wifi_status.allocated_ip
        and wifi_status.allocated_ip != UNASSIGNED_IP
    ):
        return wifi_status.allocated_ip
    return UNASSIGNED_IP


class NetworkIdentityResolver:
    """Recomputes ``system_info.ip_address`` whenever any of its four inputs changes."""

    def __init__(
        self,
        system_info: Signal[SystemInfo],
        connectivity: Signal[ConnectivityStatus],
        network: Signal[NetworkConfig],
        wifi: Signal[WifiConfig],
        wifi_status: Signal[WifiStatus],
    ) -> None:
        self.system_info = system_info
        self._inputs = (connectivity, network, wifi, wifi_status)
        self._subscriptions: list[Subscription] = []

    def attach(self) -> None:
        if self._subscriptions:
            return
        self._subscriptions = [channel.subscribe(lambda _new, _old: self.recompute()) for channel in self._inputs]
        self.recompute()

    def detach(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    def recompute(self) -> str:
        connectivity, network, wifi, wifi_status = (channel() for channel in self._inputs)
        active_ip = resolve_ip_address(connectivity, network, wifi, wifi_status)
        current = self.system_info()
        if current.ip_address != active_ip:
            logger.info("Active IP address changed %s -> %s", current.ip_address, active_ip)
            self.system_info.set(current.model_copy(update={"ip_address": active_ip}))
        return active_ip
