#!/usr/bin/env python3
"""Run a single floater reconciliation pass for the given services."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import List

REPO_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = REPO_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from hcloud import Client  # noqa: E402
from kubernetes import client as kube_client  # noqa: E402
from kubernetes import config as kube_config  # noqa: E402

from floater_agent.config import get_env_required  # noqa: E402
from floater_runtime.drivers import (  # noqa: E402
    DryRunAssigner,
    HCloudFloatingIPs,
    KubernetesClusterReader,
)
from hcloud_floater import AssignmentEngine, Outcome, ServiceKey  # noqa: E402
from hcloud_floater.ownership import owner_node  # noqa: E402

LOG = logging.getLogger(__name__)


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "services",
        nargs="*",
        type=ServiceKey.parse,
        help="Services to reconcile as <namespace>/<name> (default: all annotated)",
    )
    parser.add_argument(
        "--kubeconfig",
        type=Path,
        default=None,
        help="Kubeconfig to use instead of the default lookup",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report the assignments that would be made without issuing them",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    kube_config.load_kube_config(
        config_file=str(args.kubeconfig) if args.kubeconfig else None
    )
    cluster = KubernetesClusterReader(kube_client.CoreV1Api())
    floating_ips = HCloudFloatingIPs(Client(token=get_env_required("HCLOUD_TOKEN")))
    assigner = DryRunAssigner() if args.dry_run else floating_ips
    engine = AssignmentEngine(cluster, floating_ips, assigner)

    keys: List[ServiceKey] = args.services or [
        service.key
        for service in cluster.list_services()
        if owner_node(service) is not None
    ]
    if not keys:
        LOG.warning("No services carry the layer2 owner annotation")

    failures = 0
    for key in keys:
        result = engine.reconcile(key)
        if result.outcome is Outcome.FAILED:
            failures += 1
            LOG.error("%s: %s", key, result.error)
            continue
        LOG.info(
            "%s: %s (node=%s server=%s floating_ip=%s)",
            key,
            result.outcome.value,
            result.node,
            result.server_id,
            result.floating_ip_id,
        )

    return 1 if failures else 0


if __name__ == "__main__":
    sys.exit(main())
