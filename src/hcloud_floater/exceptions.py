"""Error taxonomy for the floater.

The reconciler absorbs exactly one situation locally: a service that is not
annotated by MetalLB.  Everything else is raised as one of the classes below
and handed back to whoever scheduled the pass.
"""

from __future__ import annotations


class FloaterError(Exception):
    """Base class for every error surfaced by a reconciliation pass."""


class ConfigError(FloaterError):
    """Startup configuration is missing or invalid."""


class InputMalformedError(FloaterError):
    """An object carries a value the reconciler cannot interpret."""


class InvalidAddressError(InputMalformedError):
    def __init__(self, address: str) -> None:
        super().__init__(f"invalid Loadbalancer IP: '{address}'")
        self.address = address


class InvalidOwnerError(InputMalformedError):
    pass


class ProviderIDUnsetError(InputMalformedError):
    def __init__(self, node: str) -> None:
        super().__init__(f"providerID of node '{node}' is not set")
        self.node = node


class ProviderIDSchemeError(InputMalformedError):
    def __init__(self, node: str, provider_id: str, prefix: str) -> None:
        super().__init__(
            f"providerID '{provider_id}' of node '{node}' has no '{prefix}' prefix"
        )
        self.node = node
        self.provider_id = provider_id


class MalformedProviderIDError(InputMalformedError):
    def __init__(self, node: str, provider_id: str) -> None:
        super().__init__(
            f"malformed providerID '{provider_id}' of node '{node}': "
            "expected a 32-bit server ID"
        )
        self.node = node
        self.provider_id = provider_id


class NotFoundError(FloaterError):
    """Something the reconciler needs does not exist (yet)."""


class NoAddressError(NotFoundError):
    def __init__(self) -> None:
        super().__init__("no Loadbalancer IP attached")


class FloatingIPNotFoundError(NotFoundError):
    def __init__(self, address) -> None:
        super().__init__(f"no floating IP found for address {address}")
        self.address = address


class ExternalCallError(FloaterError):
    """A call to the Kubernetes or Hetzner API failed."""


class ClusterReadError(ExternalCallError):
    pass


class ResourceNotFoundError(ClusterReadError):
    """The Kubernetes API answered 404 for a Service or Node."""

    def __init__(self, kind: str, name: str) -> None:
        super().__init__(f"{kind} '{name}' not found")
        self.kind = kind
        self.name = name


class CloudAPIError(ExternalCallError):
    pass
