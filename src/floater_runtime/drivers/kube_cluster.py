"""Kubernetes adapter for the cluster read capabilities."""

from __future__ import annotations

import logging
from typing import List, Sequence

from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from hcloud_floater.capabilities import ClusterReader, ServiceLister
from hcloud_floater.exceptions import ClusterReadError, ResourceNotFoundError
from hcloud_floater.model import LoadBalancerIngress, Node, Service, ServiceKey

LOG = logging.getLogger(__name__)


def service_from_api(obj) -> Service:
    """Convert a ``V1Service`` into a :class:`Service`."""

    metadata = obj.metadata
    ingress: List[LoadBalancerIngress] = []
    status = obj.status
    load_balancer = status.load_balancer if status is not None else None
    for entry in (load_balancer.ingress if load_balancer is not None else None) or []:
        ingress.append(
            LoadBalancerIngress(ip=entry.ip or "", hostname=entry.hostname or "")
        )

    annotations = metadata.annotations
    return Service(
        key=ServiceKey(namespace=metadata.namespace, name=metadata.name),
        annotations=dict(annotations) if annotations is not None else None,
        ingress=tuple(ingress),
    )


def node_from_api(obj) -> Node:
    """Convert a ``V1Node`` into a :class:`Node`."""

    spec = obj.spec
    provider_id = spec.provider_id if spec is not None else None
    return Node(name=obj.metadata.name, provider_id=provider_id or "")


class KubernetesClusterReader(ClusterReader, ServiceLister):
    """Read Services and Nodes through a ``kubernetes.client.CoreV1Api``."""

    def __init__(self, core_v1, request_timeout: float | None = None) -> None:
        self._core_v1 = core_v1
        self._request_timeout = request_timeout

    def _kwargs(self) -> dict:
        if self._request_timeout is None:
            return {}
        return {"_request_timeout": self._request_timeout}

    def get_service(self, key: ServiceKey) -> Service:
        try:
            obj = self._core_v1.read_namespaced_service(
                name=key.name, namespace=key.namespace, **self._kwargs()
            )
        except ApiException as exc:
            raise _translate(exc, "service", str(key)) from exc
        except HTTPError as exc:
            raise ClusterReadError(f"unable to get service '{key}': {exc}") from exc
        return service_from_api(obj)

    def get_node(self, name: str) -> Node:
        try:
            obj = self._core_v1.read_node(name=name, **self._kwargs())
        except ApiException as exc:
            raise _translate(exc, "node", name) from exc
        except HTTPError as exc:
            raise ClusterReadError(f"unable to get node '{name}': {exc}") from exc
        return node_from_api(obj)

    def list_services(self) -> Sequence[Service]:
        try:
            response = self._core_v1.list_service_for_all_namespaces(**self._kwargs())
        except (ApiException, HTTPError) as exc:
            raise ClusterReadError(f"unable to list services: {exc}") from exc
        return [service_from_api(item) for item in response.items]


def _translate(exc: ApiException, kind: str, name: str) -> ClusterReadError:
    if exc.status == 404:
        return ResourceNotFoundError(kind, name)
    return ClusterReadError(f"unable to get {kind} '{name}': {exc.status} {exc.reason}")
