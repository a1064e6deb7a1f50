"""Assignment engine.

One call to :meth:`AssignmentEngine.reconcile` is one reconciliation pass for
one service: fetch the service, read the MetalLB owner, resolve the owner's
server ID, look up the floating IP behind the service address and re-assign
it if it points at a different server.  Every pass re-reads all state, so the
engine keeps nothing between calls and needs no locking of its own.  Running
passes for the same service concurrently is prevented by the service
reconciler that drives the engine, not by the engine itself.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .capabilities import ClusterReader, FloatingIPAssigner, FloatingIPReader
from .directory import find_floating_ip
from .exceptions import FloaterError
from .model import ServiceKey
from .ownership import extract_ownership
from .provider import parse_provider_id

LOG = logging.getLogger(__name__)


class Outcome(Enum):
    NOT_APPLICABLE = "not-applicable"
    ALREADY_ASSIGNED = "already-assigned"
    ASSIGNED = "assigned"
    FAILED = "failed"


@dataclass(frozen=True)
class ReconcileResult:
    """What a single pass did, with the identifiers it resolved on the way."""

    outcome: Outcome
    service: ServiceKey
    node: Optional[str] = None
    server_id: Optional[int] = None
    floating_ip_id: Optional[int] = None
    error: Optional[FloaterError] = None

    @property
    def ok(self) -> bool:
        return self.outcome is not Outcome.FAILED

    @property
    def changed(self) -> bool:
        return self.outcome is Outcome.ASSIGNED

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error


@dataclass
class _Pass:
    """Identifiers collected while a pass progresses."""

    service: ServiceKey
    node: Optional[str] = None
    server_id: Optional[int] = None
    floating_ip_id: Optional[int] = None

    def result(self, outcome: Outcome, error: Optional[FloaterError] = None) -> ReconcileResult:
        return ReconcileResult(
            outcome=outcome,
            service=self.service,
            node=self.node,
            server_id=self.server_id,
            floating_ip_id=self.floating_ip_id,
            error=error,
        )


class AssignmentEngine:
    """Point floating IPs at the node MetalLB elected for a service."""

    def __init__(
        self,
        cluster: ClusterReader,
        floating_ips: FloatingIPReader,
        assigner: FloatingIPAssigner,
    ) -> None:
        self._cluster = cluster
        self._floating_ips = floating_ips
        self._assigner = assigner

    def reconcile(self, key: ServiceKey) -> ReconcileResult:
        """Run one pass for ``key``.

        Errors raised by the capabilities or by the parsing steps end the
        pass with :attr:`Outcome.FAILED` and are returned untouched in
        :attr:`ReconcileResult.error`; retrying is up to the caller.
        """

        state = _Pass(service=key)
        try:
            return self._reconcile(state)
        except FloaterError as exc:
            return state.result(Outcome.FAILED, exc)

    def _reconcile(self, state: _Pass) -> ReconcileResult:
        service = self._cluster.get_service(state.service)

        ownership = extract_ownership(service)
        if ownership is None:
            LOG.debug("service %s has no layer2 owner annotation", state.service)
            return state.result(Outcome.NOT_APPLICABLE)
        state.node = ownership.node_name

        node = self._cluster.get_node(ownership.node_name)
        state.server_id = parse_provider_id(node)

        floating_ip = find_floating_ip(
            self._floating_ips.list_floating_ips(), ownership.address
        )
        state.floating_ip_id = floating_ip.id

        if floating_ip.is_assigned_to(state.server_id):
            LOG.debug(
                "floating IP %s (%s) of service %s already points to node %s (server %s)",
                floating_ip.id,
                ownership.address,
                state.service,
                state.node,
                state.server_id,
            )
            return state.result(Outcome.ALREADY_ASSIGNED)

        self._assigner.assign(floating_ip, state.server_id)
        LOG.info(
            "assigned floating IP %s (%s) of service %s to node %s (server %s, was %s)",
            floating_ip.id,
            ownership.address,
            state.service,
            state.node,
            state.server_id,
            floating_ip.server_id,
        )
        return state.result(Outcome.ASSIGNED)
