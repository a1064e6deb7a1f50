"""Keep Hetzner Cloud floating IPs on the MetalLB layer2 owner node.

MetalLB in layer2 mode elects one node per LoadBalancer service to answer ARP
/ NDP for the service address and records that choice in the
``layer2.metallb.universe.tf/owner-node`` annotation.  When the service
address is backed by a Hetzner floating IP, the floating IP must follow the
elected node or traffic is routed to a server that no longer announces it.

This package holds the reconciliation core:

* :mod:`hcloud_floater.ownership` reads the owner node and address from a
  service;
* :mod:`hcloud_floater.provider` resolves a node's ``hcloud://`` providerID
  into a server ID;
* :mod:`hcloud_floater.directory` finds the floating IP serving an address;
  and
* :class:`hcloud_floater.engine.AssignmentEngine` composes the three and
  re-assigns the floating IP when it points elsewhere.

The core never talks to Kubernetes or the Hetzner API directly.  It is handed
narrow capability objects (see :mod:`hcloud_floater.capabilities`) so it can
be exercised in unit tests without either.
"""

from .engine import AssignmentEngine, Outcome, ReconcileResult  # noqa: F401
from .model import FloatingIP, IPFamily, Node, Service, ServiceKey  # noqa: F401

__all__ = [
    "AssignmentEngine",
    "FloatingIP",
    "IPFamily",
    "Node",
    "Outcome",
    "ReconcileResult",
    "Service",
    "ServiceKey",
]
