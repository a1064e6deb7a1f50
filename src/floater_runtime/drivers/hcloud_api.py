"""Hetzner Cloud adapter for the floating IP capabilities."""

from __future__ import annotations

import ipaddress
import logging
from typing import List, Optional, Sequence

import requests
from hcloud import APIException, Client
from hcloud.floating_ips.domain import FloatingIP as APIFloatingIP
from hcloud.servers.domain import Server

from hcloud_floater.capabilities import FloatingIPAssigner, FloatingIPReader
from hcloud_floater.exceptions import CloudAPIError
from hcloud_floater.model import FloatingIP, IPFamily

LOG = logging.getLogger(__name__)


def floating_ip_from_api(obj) -> Optional[FloatingIP]:
    """Convert an hcloud floating IP, or ``None`` if it cannot be matched.

    The API returns a plain address for IPv4 floating IPs and the routed
    subnet (``2001:db8:1:2::/64``) for IPv6 ones.
    """

    server = obj.server
    server_id = server.id if server is not None else None
    try:
        family = IPFamily(obj.type)
    except ValueError:
        LOG.warning("floating IP %s has unknown type '%s'", obj.id, obj.type)
        return None

    try:
        if family is IPFamily.IPV4:
            return FloatingIP(
                id=obj.id,
                family=family,
                address=ipaddress.IPv4Address(obj.ip),
                server_id=server_id,
                name=obj.name,
            )
        return FloatingIP(
            id=obj.id,
            family=family,
            network=ipaddress.IPv6Network(obj.ip, strict=False),
            server_id=server_id,
            name=obj.name,
        )
    except ValueError:
        LOG.warning("floating IP %s has unparsable ip '%s'", obj.id, obj.ip)
        return None


class HCloudFloatingIPs(FloatingIPReader, FloatingIPAssigner):
    """List and assign floating IPs through an ``hcloud.Client``.

    ``get_all`` follows the API's pagination, so floating IPs beyond the
    first page are part of the listing.
    """

    def __init__(self, client: Client) -> None:
        self._client = client

    def list_floating_ips(self) -> Sequence[FloatingIP]:
        try:
            bound = self._client.floating_ips.get_all()
        except (APIException, requests.RequestException) as exc:
            raise CloudAPIError(f"unable to list floating IPs in the api: {exc}") from exc

        floating_ips: List[FloatingIP] = []
        for obj in bound:
            converted = floating_ip_from_api(obj)
            if converted is not None:
                floating_ips.append(converted)
        LOG.debug("listed %d floating IPs", len(floating_ips))
        return floating_ips

    def assign(self, floating_ip: FloatingIP, server_id: int) -> None:
        try:
            self._client.floating_ips.assign(
                APIFloatingIP(id=floating_ip.id), Server(id=server_id)
            )
        except (APIException, requests.RequestException) as exc:
            raise CloudAPIError(
                f"unable to assign floating IP {floating_ip.id} to server {server_id}: {exc}"
            ) from exc
