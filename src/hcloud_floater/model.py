"""Data structures shared by the floater core and its adapters.

These are deliberately plain dataclasses rather than the Kubernetes or
hcloud client models.  The adapters in :mod:`floater_runtime.drivers` convert
API objects into these types so the reconciliation logic only depends on the
handful of fields it actually reads.
"""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Sequence, Union


class IPFamily(Enum):
    """Floating IP address families, valued as the Hetzner API spells them."""

    IPV4 = "ipv4"
    IPV6 = "ipv6"


@dataclass(frozen=True, order=True)
class ServiceKey:
    """Identity of a Service, rendered as ``namespace/name``."""

    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, value: str) -> "ServiceKey":
        namespace, sep, name = value.partition("/")
        if not sep or not namespace or not name or "/" in name:
            raise ValueError(f"service key must be '<namespace>/<name>', got '{value}'")
        return cls(namespace=namespace, name=name)


@dataclass(frozen=True)
class LoadBalancerIngress:
    """One ``status.loadBalancer.ingress`` entry of a Service."""

    ip: str = ""
    hostname: str = ""


@dataclass(frozen=True)
class Service:
    """The parts of a Kubernetes Service the reconciler reads."""

    key: ServiceKey
    annotations: Optional[Mapping[str, str]] = None
    ingress: Sequence[LoadBalancerIngress] = field(default_factory=tuple)


@dataclass(frozen=True)
class Node:
    """The parts of a Kubernetes Node the reconciler reads."""

    name: str
    provider_id: str = ""


Address = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


@dataclass(frozen=True)
class FloatingIP:
    """Hetzner floating IP as seen by the directory lookup.

    Attributes
    ----------
    id:
        Hetzner floating IP ID, used to address the assign call.
    family:
        :class:`IPFamily` of the floating IP.
    address:
        The single address of an IPv4 floating IP, ``None`` for IPv6.
    network:
        The routed subnet of an IPv6 floating IP, ``None`` for IPv4.
    server_id:
        ID of the server the floating IP is currently assigned to, if any.
    name:
        Optional human readable name, only used in log messages.
    """

    id: int
    family: IPFamily
    address: Optional[ipaddress.IPv4Address] = None
    network: Optional[ipaddress.IPv6Network] = None
    server_id: Optional[int] = None
    name: Optional[str] = None

    def is_assigned_to(self, server_id: int) -> bool:
        return self.server_id is not None and self.server_id == server_id
