"""Serialised and instrumented reconciliation passes.

kopf runs the change handlers of one object one after another, but resync
timers and node event handlers run beside them.  :class:`ServiceReconciler`
holds one lock per service key so that at most one pass per service is in
flight, whichever handler asked for it.
"""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional

from hcloud_floater.capabilities import ServiceLister
from hcloud_floater.engine import AssignmentEngine, Outcome, ReconcileResult
from hcloud_floater.exceptions import ResourceNotFoundError
from hcloud_floater.model import ServiceKey
from hcloud_floater.ownership import owner_node

from . import metrics

LOG = logging.getLogger(__name__)

DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 300.0


def retry_delay(
    retry: int,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> float:
    """Return the backoff before retry number ``retry`` (counting from 0)."""

    return min(base_delay * (2 ** min(retry, 64)), max_delay)


def service_gone(result: ReconcileResult) -> bool:
    """Whether ``result`` failed because the service itself was deleted."""

    error = result.error
    return isinstance(error, ResourceNotFoundError) and error.kind == "service"


class ServiceReconciler:
    """Run engine passes one service at a time and record their outcome."""

    def __init__(
        self,
        engine: AssignmentEngine,
        services: ServiceLister,
        base_delay: float = DEFAULT_BASE_DELAY,
        max_delay: float = DEFAULT_MAX_DELAY,
    ) -> None:
        self._engine = engine
        self._services = services
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._guard = threading.Lock()
        self._locks: Dict[ServiceKey, threading.Lock] = {}
        self._waiters: Dict[ServiceKey, int] = {}

    @contextmanager
    def _exclusive(self, key: ServiceKey) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._waiters[key] -= 1
                if not self._waiters[key]:
                    del self._waiters[key]
                    del self._locks[key]

    def reconcile(self, key: ServiceKey) -> ReconcileResult:
        with self._exclusive(key), metrics.reconcile_in_progress.track_inprogress():
            started = time.monotonic()
            result = self._engine.reconcile(key)
            metrics.reconcile_duration.observe(time.monotonic() - started)

        metrics.reconcile_total.labels(outcome=result.outcome.value).inc()
        if result.outcome is Outcome.ASSIGNED:
            metrics.assignments_total.inc()
        elif result.outcome is Outcome.FAILED:
            self._log_failure(result)
        return result

    def _log_failure(self, result: ReconcileResult) -> None:
        if service_gone(result):
            LOG.debug("service %s is gone, nothing to reconcile", result.service)
            return
        LOG.warning(
            "reconciling service %s failed (node=%s server=%s floating_ip=%s): %s",
            result.service,
            result.node,
            result.server_id,
            result.floating_ip_id,
            result.error,
        )

    def retry_delay(self, retry: int) -> float:
        return retry_delay(retry, self._base_delay, self._max_delay)

    def owned_by(self, node_name: Optional[str] = None) -> List[ServiceKey]:
        """Keys of the annotated services, restricted to ``node_name`` if given.

        Raises :class:`~hcloud_floater.exceptions.ClusterReadError` when the
        services cannot be listed.
        """

        keys = []
        for service in self._services.list_services():
            owner = owner_node(service)
            if owner is None:
                continue
            if node_name is None or owner == node_name:
                keys.append(service.key)
        return keys


class ProviderIDTracker:
    """Remember the providerID each node was last handled with.

    Nodes are updated every few seconds by kubelet; only a new node or a
    changed providerID can change where a floating IP belongs.
    """

    def __init__(self) -> None:
        self._handled: Dict[str, str] = {}

    def changed(self, node: str, provider_id: str) -> bool:
        return self._handled.get(node) != provider_id

    def record(self, node: str, provider_id: str) -> None:
        self._handled[node] = provider_id

    def forget(self, node: str) -> None:
        self._handled.pop(node, None)
