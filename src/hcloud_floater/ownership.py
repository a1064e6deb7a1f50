"""Read MetalLB's layer2 ownership marker from a Service."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass
from typing import Optional

from .exceptions import InvalidAddressError, InvalidOwnerError, NoAddressError
from .model import Address, Service

# Set by MetalLB's speaker on the node currently announcing the service.
OWNER_NODE_ANNOTATION = "layer2.metallb.universe.tf/owner-node"


@dataclass(frozen=True)
class Ownership:
    node_name: str
    address: Address


def parse_ip(value: str) -> Address:
    # ipaddress accepts scoped IPv6 literals, a Service IP never has a zone.
    if "%" in value:
        raise InvalidAddressError(value)
    try:
        return ipaddress.ip_address(value)
    except ValueError as exc:
        raise InvalidAddressError(value) from exc


def owner_node(service: Service) -> Optional[str]:
    """Return the marker value, or ``None`` if MetalLB did not set one."""

    if not service.annotations:
        return None
    return service.annotations.get(OWNER_NODE_ANNOTATION)


def extract_ownership(service: Service) -> Optional[Ownership]:
    """Return the owner node and external address of ``service``.

    ``None`` means the service is not announced by MetalLB in layer2 mode and
    there is nothing to do.  A marked service without a usable ingress
    address raises, since no floating IP can be resolved for it.
    """

    node_name = owner_node(service)
    if node_name is None:
        return None
    if not node_name:
        raise InvalidOwnerError(
            f"annotation '{OWNER_NODE_ANNOTATION}' of service '{service.key}' is empty"
        )

    for ingress in service.ingress:
        if not ingress.ip:
            continue
        return Ownership(node_name=node_name, address=parse_ip(ingress.ip))

    raise NoAddressError()
