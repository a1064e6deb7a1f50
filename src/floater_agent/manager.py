"""Run the kopf operator and, optionally, the leader election around it."""

from __future__ import annotations

import logging
import socket
import threading
import uuid
from typing import Callable, Optional

import kopf
from kubernetes.leaderelection import electionconfig, leaderelection
from kubernetes.leaderelection.resourcelock.configmaplock import ConfigMapLock

from floater_runtime import ProviderIDTracker, ServiceReconciler
from hcloud_floater.capabilities import ServiceLister
from hcloud_floater.engine import AssignmentEngine

from .config import APP_NAME, AgentConfig, ControllerConfig, LeaderElectionConfig
from .handlers import register_handlers

LOG = logging.getLogger(__name__)

# kopf keeps handler progress and the last handled state in annotations of
# the services it reconciles.
ANNOTATION_PREFIX = APP_NAME


def build_memo(
    config: ControllerConfig, engine: AssignmentEngine, services: ServiceLister
) -> kopf.Memo:
    reconciler = ServiceReconciler(
        engine,
        services,
        base_delay=config.retry_base_delay,
        max_delay=config.retry_max_delay,
    )
    return kopf.Memo(reconciler=reconciler, provider_ids=ProviderIDTracker())


def build_settings(config: AgentConfig) -> kopf.OperatorSettings:
    settings = kopf.OperatorSettings()
    settings.posting.level = logging.WARNING
    settings.execution.max_workers = config.controller.workers
    if config.kubernetes.request_timeout is not None:
        settings.networking.request_timeout = config.kubernetes.request_timeout
    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=ANNOTATION_PREFIX
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix=ANNOTATION_PREFIX, key="last-handled-configuration"
    )
    return settings


def run_operator(
    config: AgentConfig, memo: kopf.Memo, stop_flag: threading.Event
) -> None:
    """Block running the handlers cluster-wide until ``stop_flag`` is set."""

    registry = register_handlers(kopf.OperatorRegistry(), config.controller.sync_period)
    LOG.info(
        "operator starting (workers=%d, sync_period=%ss)",
        config.controller.workers,
        config.controller.sync_period,
    )
    kopf.run(
        registry=registry,
        settings=build_settings(config),
        memo=memo,
        standalone=True,
        clusterwide=True,
        stop_flag=stop_flag,
    )
    LOG.info("operator stopped")


def leader_identity() -> str:
    return f"{socket.gethostname()}_{uuid.uuid4()}"


def run_with_leader_election(
    config: LeaderElectionConfig,
    on_started_leading: Callable[[], None],
    on_stopped_leading: Callable[[], None],
    identity: Optional[str] = None,
) -> None:
    """Block while campaigning for and holding the leader lock.

    Returns after leadership was lost; ``on_stopped_leading`` has been called
    by then.
    """

    identity = identity or leader_identity()
    lock = ConfigMapLock(config.name, config.namespace, identity)
    election = leaderelection.LeaderElection(
        electionconfig.Config(
            lock=lock,
            lease_duration=config.lease_duration,
            renew_deadline=config.renew_deadline,
            retry_period=config.retry_period,
            onstarted_leading=on_started_leading,
            onstopped_leading=on_stopped_leading,
        )
    )
    LOG.info(
        "campaigning for leader lock %s/%s as %s", config.namespace, config.name, identity
    )
    election.run()
