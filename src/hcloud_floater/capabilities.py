"""Abstract interfaces the assignment engine is built from."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from .model import FloatingIP, Node, Service, ServiceKey


class ClusterReader(ABC):
    """Read access to Kubernetes Services and Nodes."""

    @abstractmethod
    def get_service(self, key: ServiceKey) -> Service:
        """Return the current state of the Service identified by ``key``."""

    @abstractmethod
    def get_node(self, name: str) -> Node:
        """Return the current state of Node ``name``."""


class ServiceLister(ABC):
    """List every Service in the cluster, used for fan-out and resync."""

    @abstractmethod
    def list_services(self) -> Sequence[Service]:
        """Return all Services across all namespaces."""


class FloatingIPReader(ABC):
    """Read access to the project's floating IPs."""

    @abstractmethod
    def list_floating_ips(self) -> Sequence[FloatingIP]:
        """Return every floating IP visible to the configured token."""


class FloatingIPAssigner(ABC):
    """Mutation access to floating IP assignments."""

    @abstractmethod
    def assign(self, floating_ip: FloatingIP, server_id: int) -> None:
        """Assign ``floating_ip`` to ``server_id``, replacing any prior target."""
