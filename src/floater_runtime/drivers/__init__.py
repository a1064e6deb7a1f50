"""Adapters binding the engine capabilities to the client libraries."""

from .dry_run import DryRunAssigner  # noqa: F401
from .hcloud_api import HCloudFloatingIPs, floating_ip_from_api  # noqa: F401
from .kube_cluster import KubernetesClusterReader, node_from_api, service_from_api  # noqa: F401

__all__ = [
    "DryRunAssigner",
    "HCloudFloatingIPs",
    "KubernetesClusterReader",
    "floating_ip_from_api",
    "node_from_api",
    "service_from_api",
]
