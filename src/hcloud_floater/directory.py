"""Locate the floating IP that serves a given address."""

from __future__ import annotations

import ipaddress
from typing import Iterable

from .exceptions import FloatingIPNotFoundError
from .model import Address, FloatingIP, IPFamily


def _unmap(address: Address) -> Address:
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped
    return address


def matches(floating_ip: FloatingIP, address: Address) -> bool:
    """IPv4 floating IPs match one address, IPv6 ones a whole subnet."""

    address = _unmap(address)
    if floating_ip.family is IPFamily.IPV4:
        return floating_ip.address is not None and floating_ip.address == address
    if floating_ip.family is IPFamily.IPV6:
        if floating_ip.network is None or address.version != 6:
            return False
        return address in floating_ip.network
    return False


def find_floating_ip(floating_ips: Iterable[FloatingIP], address: Address) -> FloatingIP:
    """Return the first floating IP in ``floating_ips`` serving ``address``.

    First match wins.  That is only unambiguous as long as IPv4 floating IPs
    and IPv6 subnets do not overlap within the project, which Hetzner
    guarantees for the floating IPs it hands out.

    The lookup is only as complete as ``floating_ips``: an entry missing from
    the listing (e.g. beyond a page the caller did not fetch) is reported as
    not found.
    """

    for floating_ip in floating_ips:
        if matches(floating_ip, address):
            return floating_ip
    raise FloatingIPNotFoundError(address)
