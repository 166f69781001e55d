"""
Prometheus metrics for the supervisor core.

Counters are process-wide and only ever move forward; the authoritative
durable values live in the health-stats record, these are the scrape view.
"""
from __future__ import annotations

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, Counter, Gauge, generate_latest

WATCHDOG_REBOOTS = Counter(
    "firecnc_watchdog_reboots_total",
    "Reboots requested by a watchdog",
    ["source"],
)

REBOOTS = Counter(
    "firecnc_reboots_total",
    "Reboot sequences started",
    ["reason"],
)

ICMP_PROBES = Counter(
    "firecnc_icmp_probes_total",
    "Simulated ICMP probe outcomes",
    ["result"],
)

STARTUPS = Gauge(
    "firecnc_startups",
    "Persisted startup count",
)

UPTIME_SECONDS = Gauge(
    "firecnc_uptime_seconds",
    "Seconds since the last completed boot",
)

SHUTDOWN_PENDING = Gauge(
    "firecnc_shutdown_pending",
    "1 while a shutdown sequence is pending",
)


def render_latest() -> tuple[bytes, str]:
    """Return the exposition payload and its content type."""
    return generate_latest(REGISTRY), CONTENT_TYPE_LATEST
