"""Serving configuration helpers for the API layer."""
from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from firecnc.utils.config import SupervisorConfig, load_supervisor_config


def _load_yaml(path: Path) -> dict:
    if not path.exists():
        return {}
    payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    return payload or {}


@lru_cache(maxsize=1)
def load_serving_config(path: str | Path | None = None) -> dict:
    cfg_path = Path(path or os.getenv("FIRECNC_SERVING_CONFIG", "configs/serving.yaml"))
    return _load_yaml(cfg_path)


def _read_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def get_supervisor_config_path(cfg: Optional[dict] = None) -> str:
    cfg = cfg or load_serving_config()
    return os.getenv("FIRECNC_SUPERVISOR_CONFIG", cfg.get("supervisor", {}).get("config_path", "configs/supervisor.yaml"))


def get_state_db_path(cfg: Optional[dict] = None) -> str:
    cfg = cfg or load_serving_config()
    return os.getenv("FIRECNC_STATE_DB_PATH", cfg.get("supervisor", {}).get("state_db_path", "data/state/firecnc_state.duckdb"))


def get_supervisor_config(cfg: Optional[dict] = None) -> SupervisorConfig:
    """Supervisor config file, with the watchdog timeout overridable from the environment."""
    config = load_supervisor_config(get_supervisor_config_path(cfg))
    timeout = _read_float_env("FIRECNC_WATCHDOG_TIMEOUT_SECONDS", config.watchdog.timeout_seconds)
    if timeout != config.watchdog.timeout_seconds and timeout > 0:
        watchdog = config.watchdog.model_copy(update={"timeout_seconds": timeout})
        config = config.model_copy(update={"watchdog": watchdog})
    return config


def _load_api_keys_from_env() -> Optional[Dict[str, Any]]:
    raw = os.getenv("FIRECNC_API_KEYS")
    if not raw:
        return None
    path = Path(raw)
    if path.exists():
        return _load_yaml(path)
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        return None
    return payload if isinstance(payload, dict) else None


@lru_cache(maxsize=1)
def get_api_keys(cfg: Optional[dict] = None) -> Dict[str, Any]:
    cfg = cfg or load_serving_config()
    env_keys = _load_api_keys_from_env()
    if env_keys is not None:
        return env_keys
    return cfg.get("security", {}).get("api_keys", {})
