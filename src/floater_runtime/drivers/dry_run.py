"""Assigner that reports instead of mutating."""

from __future__ import annotations

import logging
from typing import List, Tuple

from hcloud_floater.capabilities import FloatingIPAssigner
from hcloud_floater.model import FloatingIP

LOG = logging.getLogger(__name__)


class DryRunAssigner(FloatingIPAssigner):
    """Record assignments the engine would have issued."""

    def __init__(self) -> None:
        self.planned: List[Tuple[int, int]] = []

    def assign(self, floating_ip: FloatingIP, server_id: int) -> None:
        LOG.info(
            "dry-run: would assign floating IP %s to server %s (currently %s)",
            floating_ip.id,
            server_id,
            floating_ip.server_id,
        )
        self.planned.append((floating_ip.id, server_id))
