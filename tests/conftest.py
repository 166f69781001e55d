"""
PyTest Configuration and Fixtures for fireCNC Supervisor Tests.

Every supervisor built here runs on a ManualClock, so timers only fire when
a test calls ``scheduler.advance()``.
"""
from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
sys.path.insert(0, str(Path(__file__).parent.parent))

from firecnc.supervisor.icmp import SimulatedProber
from firecnc.supervisor.persistence import MemoryStore
from firecnc.supervisor.scheduler import ManualClock, Scheduler
from firecnc.supervisor.system import Supervisor
from firecnc.utils.config import SupervisorConfig


# =============================================================================
# CLOCK / SCHEDULER FIXTURES
# =============================================================================

@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def scheduler(clock: ManualClock) -> Scheduler:
    return Scheduler(clock)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def prober() -> SimulatedProber:
    return SimulatedProber(reachable=True)


# =============================================================================
# SUPERVISOR FIXTURES
# =============================================================================

def make_config(**watchdog: Any) -> SupervisorConfig:
    """Default config with ICMP disabled unless asked for, plus watchdog overrides."""
    payload: Dict[str, Any] = {"watchdog": {"icmp_target": None, **watchdog}}
    return SupervisorConfig.model_validate(payload)


@pytest.fixture
def make_supervisor(scheduler: Scheduler, store: MemoryStore, prober: SimulatedProber) -> Callable[..., Supervisor]:
    def _factory(config: SupervisorConfig | None = None, **watchdog: Any) -> Supervisor:
        cfg = config or make_config(**watchdog)
        return Supervisor(cfg, store=store, scheduler=scheduler, prober=prober)

    return _factory


@pytest.fixture
def supervisor(make_supervisor) -> Supervisor:
    sup = make_supervisor()
    sup.boot()
    yield sup
    sup.teardown()


# =============================================================================
# API FIXTURES
# =============================================================================

@pytest.fixture
def api_keys(monkeypatch) -> Dict[str, str]:
    from services.api.config import get_api_keys

    keys = {"read-key": ["read"], "admin-key": ["read", "write"]}
    monkeypatch.setenv("FIRECNC_API_KEYS", json.dumps(keys))
    get_api_keys.cache_clear()
    yield {"read": "read-key", "admin": "admin-key"}
    get_api_keys.cache_clear()
