"""Shutdown-pin edge detection on the simulated digital inputs."""
from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from firecnc.supervisor.signals import Signal, Subscription
from firecnc.utils.config import WatchdogConfig

logger = logging.getLogger(__name__)

# DI_0 is wired to GPIO4, DI_1 to GPIO5 and so on.
FIRST_INPUT_GPIO = 4
INPUT_COUNT = 8


class ShutdownPinMonitor:
    """Calls ``shutdown`` on a rising edge of the configured shutdown pin."""

    def __init__(
        self,
        digital_inputs: Signal[tuple[bool, ...]],
        watchdog_config: Callable[[], WatchdogConfig],
        shutdown: Callable[[], object],
    ) -> None:
        self.digital_inputs = digital_inputs
        self._watchdog_config = watchdog_config
        self._shutdown = shutdown
        self._previous = False
        self._subscription: Optional[Subscription] = None

    def attach(self) -> None:
        if self._subscription is None:
            self._subscription = self.digital_inputs.subscribe(lambda new, _old: self.observe(new))

    def detach(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def observe(self, inputs: Sequence[bool]) -> bool:
        pin = self._watchdog_config().shutdown_pin_index
        index = pin - FIRST_INPUT_GPIO
        if not 0 <= index < min(INPUT_COUNT, len(inputs)):
            return False
        current = bool(inputs[index])
        fired = current and not self._previous
        self._previous = current
        if fired:
            logger.info("Shutdown pin GPIO%s detected as HIGH. Initiating shutdown.", pin)
            self._shutdown()
        return fired
