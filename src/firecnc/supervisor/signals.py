"""Reactive value channels with explicit subscribe/unsubscribe."""
from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)

Listener = Callable[[T, T], None]


class Subscription:
    """Handle returned by ``Signal.subscribe``; ``unsubscribe`` is idempotent."""

    def __init__(self, signal: "Signal", listener: Listener) -> None:
        self._signal = signal
        self._listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._signal._remove(self._listener)


class Signal(Generic[T]):
    """Holds a value and notifies listeners with ``(new, old)`` when it changes.

    Setting a value equal to the current one is a no-op, so downstream
    listeners only ever see real transitions.
    """

    def __init__(self, value: T, name: str = "signal") -> None:
        self._value = value
        self.name = name
        self._listeners: list[Listener] = []

    def __call__(self) -> T:
        return self._value

    def get(self) -> T:
        return self._value

    def set(self, value: T) -> bool:
        old = self._value
        if value == old:
            return False
        self._value = value
        for listener in list(self._listeners):
            try:
                listener(value, old)
            except Exception:
                logger.exception("Listener on %s failed", self.name)
        return True

    def update(self, fn: Callable[[T], T]) -> bool:
        return self.set(fn(self._value))

    def subscribe(self, listener: Listener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
