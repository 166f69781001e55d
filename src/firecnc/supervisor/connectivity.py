"""Simulated transport link between the control panel and the board."""
from __future__ import annotations

import logging
from typing import Optional

from firecnc.supervisor.scheduler import Clock, SystemClock
from firecnc.supervisor.signals import Signal
from firecnc.supervisor.types import ConnectivityStatus

logger = logging.getLogger(__name__)


class ConnectivityLink:
    """Tri-state link status observed by the watchdogs and the IP resolver."""

    def __init__(
        self,
        clock: Optional[Clock] = None,
        initial: ConnectivityStatus = ConnectivityStatus.DISCONNECTED,
    ) -> None:
        self.clock = clock or SystemClock()
        self.status: Signal[ConnectivityStatus] = Signal(initial, name="connectivity")
        self.last_connected_at: Optional[float] = None
        self.history: list[ConnectivityStatus] = [initial]
        self.status.subscribe(lambda new, _old: self.history.append(new))

    def connect(self) -> None:
        if self.status.set(ConnectivityStatus.CONNECTED):
            self.last_connected_at = self.clock.monotonic()
            logger.info("--- Simulated link connection established ---")

    def disconnect(self) -> None:
        if self.status() == ConnectivityStatus.RESTARTING:
            return
        if self.status.set(ConnectivityStatus.DISCONNECTED):
            self.last_connected_at = None
            logger.info("--- Simulated link disconnected ---")

    def set_restarting(self) -> None:
        if self.status.set(ConnectivityStatus.RESTARTING):
            self.last_connected_at = None
            logger.info("--- Simulated link restarting ---")
