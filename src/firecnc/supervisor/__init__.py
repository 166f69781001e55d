"""Device supervisory core: scheduler, watchdogs, reboot orchestration and health stats."""

from .system import Supervisor, SupervisorRuntime, build_supervisor

__all__ = ["Supervisor", "SupervisorRuntime", "build_supervisor"]
