"""Durable startup and watchdog-reboot counters."""
from __future__ import annotations

import logging

from pydantic import ValidationError

from firecnc.errors import PersistenceReadError
from firecnc.supervisor import metrics
from firecnc.supervisor.persistence import HEALTH_STATS_KEY, KeyValueStore
from firecnc.supervisor.signals import Signal
from firecnc.supervisor.types import HealthStats

logger = logging.getLogger(__name__)


class HealthStatsAccumulator:
    """Owns ``HealthStats``; every increment is written through before returning."""

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store
        self._stats: Signal[HealthStats] = Signal(self._load(), name="health_stats")

    @property
    def stats(self) -> HealthStats:
        return self._stats()

    def subscribe(self, listener):
        return self._stats.subscribe(listener)

    def _load(self) -> HealthStats:
        try:
            payload = self._store.get(HEALTH_STATS_KEY)
        except PersistenceReadError as exc:
            logger.warning("Health stats unreadable, starting from zero: %s", exc)
            return HealthStats()
        if payload is None:
            return HealthStats()
        try:
            return HealthStats.model_validate(payload)
        except ValidationError as exc:
            logger.warning("Health stats record invalid, starting from zero: %s", exc)
            return HealthStats()

    def _commit(self, stats: HealthStats) -> HealthStats:
        self._store.set(HEALTH_STATS_KEY, stats.model_dump(by_alias=True))
        self._stats.set(stats)
        metrics.STARTUPS.set(stats.startups)
        return stats

    def record_startup(self) -> HealthStats:
        current = self.stats
        return self._commit(current.model_copy(update={"startups": current.startups + 1}))

    def record_watchdog_reboot(self) -> HealthStats:
        current = self.stats
        stats = self._commit(current.model_copy(update={"watchdog_reboots": current.watchdog_reboots + 1}))
        logger.warning("Watchdog reboot triggered! New count: %s", stats.watchdog_reboots)
        return stats
