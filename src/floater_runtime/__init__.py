"""Controller runtime for the floater.

:class:`ServiceReconciler` drives the assignment engine for the kopf handlers
of :mod:`floater_agent.handlers`: one pass per service at a time, with
metrics and outcome logging.  The adapters binding the engine to the
Kubernetes and Hetzner client libraries live in :mod:`floater_runtime.drivers`.
"""

from .reconciler import (  # noqa: F401
    ProviderIDTracker,
    ServiceReconciler,
    retry_delay,
    service_gone,
)

__all__ = [
    "ProviderIDTracker",
    "ServiceReconciler",
    "retry_delay",
    "service_gone",
]
