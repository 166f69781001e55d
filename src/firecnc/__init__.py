"""
fireCNC: Supervisory and Watchdog Core for the fireCNC Controller Simulator.

This package provides the device-side supervisory logic of the fireCNC
control-panel simulator:
- Heartbeat watchdog that reboots a stalled device
- ICMP-style liveness watchdog with a failure-count threshold
- Reboot/shutdown orchestration with a persisted restart cause
- Durable health counters (startups, watchdog reboots)
- Resolution of the single active IP address of the board

Main Modules:
    - supervisor: scheduler, reactive channels, watchdogs and orchestrator
    - utils: logging setup and configuration schemas

Example:
    >>> from firecnc.supervisor.system import build_supervisor
    >>> supervisor = build_supervisor()
    >>> supervisor.boot()

Version: 0.1.0
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
