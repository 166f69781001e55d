"""Onboard LED link indicator."""
from __future__ import annotations

import logging
from typing import Callable, Optional

from pydantic import BaseModel, ConfigDict

from firecnc.supervisor.scheduler import Scheduler, TimerHandle
from firecnc.supervisor.signals import Signal, Subscription
from firecnc.supervisor.types import ConnectivityStatus, SystemInfo
from firecnc.utils.config import NetworkConfig

logger = logging.getLogger(__name__)

LED_OFF = "off"
STATIC_IP_COLOR = "#00FF00"
DHCP_COLOR = "#0000FF"
CONNECT_FLASH_SECONDS = 3.0


class LedState(BaseModel):
    color: str = LED_OFF
    flashing: bool = False
    brightness: int = 255

    model_config = ConfigDict(frozen=True)


class OnboardLedIndicator:
    """
    Shows which address the board came up on.

    On connect the LED flashes green when the active IP is the static IP and
    blue otherwise, then stays lit once the flash period ends. Disconnecting
    turns it off. The restarting state leaves the LED as it is.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        connectivity: Signal[ConnectivityStatus],
        system_info: Signal[SystemInfo],
        network: Callable[[], NetworkConfig],
    ) -> None:
        self.scheduler = scheduler
        self.connectivity = connectivity
        self.system_info = system_info
        self._network = network
        self.state: Signal[LedState] = Signal(LedState(), name="onboard_led")
        self._flash_handle: Optional[TimerHandle] = None
        self._subscription: Optional[Subscription] = None

    def attach(self) -> None:
        if self._subscription is None:
            self._subscription = self.connectivity.subscribe(lambda new, _old: self.observe(new))

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._cancel_flash()

    def observe(self, status: ConnectivityStatus) -> None:
        if status == ConnectivityStatus.CONNECTED:
            static = self.system_info().ip_address == self._network().static_ip
            color = STATIC_IP_COLOR if static else DHCP_COLOR
            self._cancel_flash()
            self.state.set(LedState(color=color, flashing=True))
            logger.debug("Onboard LED flashing %s", color)
            self._flash_handle = self.scheduler.call_later(CONNECT_FLASH_SECONDS, self._end_flash, name="led-flash")
        elif status == ConnectivityStatus.DISCONNECTED:
            self._cancel_flash()
            self.state.set(LedState())

    def _end_flash(self) -> None:
        self._flash_handle = None
        self.state.update(lambda led: led.model_copy(update={"flashing": False}))

    def _cancel_flash(self) -> None:
        if self._flash_handle is not None:
            self._flash_handle.cancel()
            self._flash_handle = None
