"""kopf handlers keeping floating IPs on the MetalLB owner node.

Services carrying the owner annotation are reconciled when kopf sees them
created, updated or resumed after a restart, when their load balancer ingress
changes, and every sync period from a timer.  A failed pass raises
:class:`kopf.TemporaryError` so kopf retries it with exponential backoff; kopf
drops the retries of a deleted service together with its handlers.

A node whose providerID appears or changes gets every service it owns
reconciled again.

The handlers find their collaborators in the operator memo:
``memo.reconciler`` is a :class:`~floater_runtime.ServiceReconciler` and
``memo.provider_ids`` a :class:`~floater_runtime.ProviderIDTracker`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import kopf

from floater_runtime import service_gone
from hcloud_floater.model import ServiceKey
from hcloud_floater.ownership import OWNER_NODE_ANNOTATION

LOG = logging.getLogger(__name__)

SERVICES = ("v1", "services")
NODES = ("v1", "nodes")
OWNED = {OWNER_NODE_ANNOTATION: kopf.PRESENT}


def reconcile_service(
    namespace: str, name: str, memo: kopf.Memo, retry: int = 0, **_: Any
) -> None:
    reconciler = memo.reconciler
    result = reconciler.reconcile(ServiceKey(namespace=namespace, name=name))
    if result.ok or service_gone(result):
        return
    raise kopf.TemporaryError(str(result.error), delay=reconciler.retry_delay(retry))


def node_event(
    name: str, spec: Mapping, event: Mapping, memo: kopf.Memo, **_: Any
) -> None:
    """Reconcile the services owned by a node whose providerID changed.

    The providerID is only remembered once every owned service was handled,
    so a failed listing or pass is tried again on the next event for the node.
    """

    tracker = memo.provider_ids
    if event.get("type") == "DELETED":
        tracker.forget(name)
        return

    provider_id = spec.get("providerID") or ""
    if not tracker.changed(name, provider_id):
        return
    LOG.debug("node %s has providerID '%s'", name, provider_id)

    reconciler = memo.reconciler
    results = [reconciler.reconcile(key) for key in reconciler.owned_by(name)]
    if all(result.ok or service_gone(result) for result in results):
        tracker.record(name, provider_id)


def register_handlers(
    registry: kopf.OperatorRegistry, sync_period: float
) -> kopf.OperatorRegistry:
    kopf.on.create(*SERVICES, annotations=OWNED, registry=registry)(reconcile_service)
    kopf.on.update(*SERVICES, annotations=OWNED, registry=registry)(reconcile_service)
    kopf.on.resume(*SERVICES, annotations=OWNED, registry=registry)(reconcile_service)
    kopf.on.field(
        *SERVICES,
        field="status.loadBalancer.ingress",
        annotations=OWNED,
        id="ingress",
        registry=registry,
    )(reconcile_service)
    kopf.timer(
        *SERVICES,
        interval=sync_period,
        initial_delay=sync_period,
        annotations=OWNED,
        id="resync",
        registry=registry,
    )(reconcile_service)
    kopf.on.event(*NODES, registry=registry)(node_event)
    return registry
