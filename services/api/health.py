"""API health and readiness helpers."""
from __future__ import annotations

from typing import Optional

from firecnc.supervisor.system import SupervisorRuntime


def readiness_check(runtime: Optional[SupervisorRuntime]) -> dict:
    booted = bool(runtime is not None and runtime.supervisor.booted)
    pumping = bool(runtime is not None and runtime.running)
    checks = {
        "supervisor_booted": booted,
        "scheduler_running": pumping,
        "connectivity": runtime.supervisor.link.status().value if runtime is not None else None,
    }
    status = "ok" if booted and pumping else "degraded"
    return {"status": status, "checks": checks}
