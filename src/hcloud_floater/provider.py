"""Resolve a node's providerID into a Hetzner server ID."""

from __future__ import annotations

import re

from .exceptions import MalformedProviderIDError, ProviderIDSchemeError, ProviderIDUnsetError
from .model import Node

PROVIDER_ID_PREFIX = "hcloud://"

SERVER_ID_MIN = -(2**31)
SERVER_ID_MAX = 2**31 - 1

_DECIMAL = re.compile(r"[+-]?[0-9]+")


def parse_provider_id(node: Node) -> int:
    """Return the server ID encoded in ``node.provider_id``.

    The hcloud cloud-controller-manager writes ``hcloud://<server-id>``.
    Anything after the prefix must be a plain base-10 integer that fits into
    a signed 32-bit value.
    """

    provider_id = node.provider_id
    if not provider_id:
        raise ProviderIDUnsetError(node.name)
    if not provider_id.startswith(PROVIDER_ID_PREFIX):
        raise ProviderIDSchemeError(node.name, provider_id, PROVIDER_ID_PREFIX)

    raw = provider_id[len(PROVIDER_ID_PREFIX):]
    # int() would also take whitespace and underscores
    if not _DECIMAL.fullmatch(raw):
        raise MalformedProviderIDError(node.name, provider_id)

    server_id = int(raw)
    if not SERVER_ID_MIN <= server_id <= SERVER_ID_MAX:
        raise MalformedProviderIDError(node.name, provider_id)
    return server_id
