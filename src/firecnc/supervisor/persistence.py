"""Durable key/value persistence for records that must survive a restart."""
from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Protocol

import duckdb

from firecnc.errors import PersistenceReadError

RESTART_REASON_KEY = "restart-reason"
HEALTH_STATS_KEY = "health-stats"


def get_state_duckdb_path() -> str:
    """Resolve the device state store path with env override support."""
    return os.environ.get("FIRECNC_STATE_DB_PATH", "data/state/firecnc_state.duckdb")


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...


class MemoryStore:
    """Process-local store. Values round-trip through JSON like the durable store."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._items: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Any | None:
        raw = self._items.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise PersistenceReadError(f"Corrupt record for '{key}'") from exc

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self._items.pop(key, None)
            return
        self._items[key] = json.dumps(value, ensure_ascii=True, sort_keys=True)

    def raw(self, key: str) -> str | None:
        return self._items.get(key)

    def put_raw(self, key: str, raw: str) -> None:
        self._items[key] = raw


class DuckDBStore:
    """DuckDB-backed key/value table; setting ``None`` deletes the record."""

    def __init__(self, duckdb_path: str | None = None) -> None:
        self.duckdb_path = duckdb_path or get_state_duckdb_path()
        db_path = Path(self.duckdb_path)
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = duckdb.connect(str(db_path))
        self._init_tables()

    def close(self) -> None:
        self._conn.close()

    def _init_tables(self) -> None:
        self._conn.execute(
            """
            CREATE TABLE IF NOT EXISTS kv_store (
                key VARCHAR PRIMARY KEY,
                value_json VARCHAR,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
            """
        )

    def get(self, key: str) -> Any | None:
        try:
            row = self._conn.execute("SELECT value_json FROM kv_store WHERE key = ?", [key]).fetchone()
        except duckdb.Error as exc:
            raise PersistenceReadError(f"Failed to read '{key}' from {self.duckdb_path}") from exc
        if row is None or row[0] is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError as exc:
            raise PersistenceReadError(f"Corrupt record for '{key}' in {self.duckdb_path}") from exc

    def set(self, key: str, value: Any) -> None:
        if value is None:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", [key])
            return
        self._conn.execute(
            """
            INSERT OR REPLACE INTO kv_store (key, value_json, updated_at)
            VALUES (?, ?, CURRENT_TIMESTAMP)
            """,
            [key, json.dumps(value, ensure_ascii=True, sort_keys=True)],
        )
