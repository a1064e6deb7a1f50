"""Prometheus metrics exported by the controller."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from prometheus_client import Counter, Gauge, Histogram, start_http_server

LOG = logging.getLogger(__name__)

reconcile_total = Counter(
    "floater_reconcile_total",
    "Reconciliation passes by outcome",
    ["outcome"],
)

reconcile_duration = Histogram(
    "floater_reconcile_duration_seconds",
    "Duration of a reconciliation pass",
)

assignments_total = Counter(
    "floater_assignments_total",
    "Floating IP assignments issued",
)

reconcile_in_progress = Gauge(
    "floater_reconcile_in_progress",
    "Reconciliation passes currently running",
)


def parse_bind_address(addr: str) -> Optional[Tuple[str, int]]:
    """Parse ``host:port`` or ``:port``; ``"0"`` disables the endpoint."""

    if addr in ("", "0"):
        return None
    host, sep, port = addr.rpartition(":")
    if not sep:
        raise ValueError(f"metrics address must be '<host>:<port>', got '{addr}'")
    host = host.strip("[]") or "0.0.0.0"
    try:
        port_number = int(port)
    except ValueError as exc:
        raise ValueError(f"invalid metrics port in '{addr}'") from exc
    if not 0 < port_number < 65536:
        raise ValueError(f"invalid metrics port in '{addr}'")
    return host, port_number


def start_metrics_server(addr: str) -> bool:
    bind = parse_bind_address(addr)
    if bind is None:
        LOG.info("metrics endpoint disabled")
        return False
    host, port = bind
    start_http_server(port, addr=host)
    LOG.info("serving metrics on %s:%d", host, port)
    return True
