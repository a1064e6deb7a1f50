"""Entry point for the floater controller."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from threading import Event, Thread

import kopf
from hcloud import Client
from kubernetes import client as kube_client
from kubernetes import config as kube_config

from floater_runtime.drivers import HCloudFloatingIPs, KubernetesClusterReader
from floater_runtime.metrics import start_metrics_server
from hcloud_floater import AssignmentEngine
from hcloud_floater.exceptions import ConfigError

from .config import AgentConfig, __version__, get_env_required, load_config, parse_duration
from .manager import build_memo, run_operator, run_with_leader_election

LOG = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    # urllib3 logs every request at debug
    logging.getLogger("urllib3").setLevel(logging.INFO)


def _duration_arg(value: str) -> float:
    try:
        return parse_duration(value)
    except ConfigError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Keep Hetzner floating IPs on the MetalLB layer2 owner node"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to an optional YAML configuration file",
    )
    parser.add_argument(
        "--metrics-addr",
        default=None,
        help="The address the metrics endpoint binds to (default :8585, 0 disables)",
    )
    parser.add_argument(
        "--enable-leader-election",
        action="store_true",
        default=None,
        help="Enable leader election so only one controller is active",
    )
    parser.add_argument(
        "--sync-period",
        type=_duration_arg,
        default=None,
        help="Interval of the full resync, e.g. 5m (default 5m)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Number of threads running handlers concurrently",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def apply_overrides(config: AgentConfig, args: argparse.Namespace) -> AgentConfig:
    if args.metrics_addr is not None:
        config.controller.metrics_addr = args.metrics_addr
    if args.enable_leader_election:
        config.leader_election.enabled = True
    if args.sync_period is not None:
        config.controller.sync_period = args.sync_period
    if args.workers is not None:
        if args.workers < 1:
            raise ConfigError("--workers must be at least 1")
        config.controller.workers = args.workers
    return config


def _load_kube_config() -> None:
    try:
        kube_config.load_incluster_config()
    except kube_config.ConfigException:
        kube_config.load_kube_config()


def build_operator(config: AgentConfig, token: str) -> kopf.Memo:
    _load_kube_config()
    cluster = KubernetesClusterReader(
        kube_client.CoreV1Api(), request_timeout=config.kubernetes.request_timeout
    )

    client_kwargs = {}
    if config.hcloud.endpoint:
        client_kwargs["endpoint"] = config.hcloud.endpoint
    hcloud_client = Client(
        token=token,
        application_name=config.app_name,
        application_version=__version__,
        **client_kwargs,
    )
    floating_ips = HCloudFloatingIPs(hcloud_client)

    engine = AssignmentEngine(cluster, floating_ips, floating_ips)
    return build_memo(config.controller, engine, cluster)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    _setup_logging(args.verbose)

    try:
        config = apply_overrides(load_config(args.config), args)
        token = get_env_required(config.hcloud.token_env)
        memo = build_operator(config, token)
        start_metrics_server(config.controller.metrics_addr)
    except (ConfigError, kube_config.ConfigException, ValueError, OSError) as exc:
        LOG.error("startup failed: %s", exc)
        return 1

    stop_event = Event()

    def _shutdown(signum, frame):  # pragma: no cover - signal handler
        LOG.info("received signal %s, shutting down", signum)
        stop_event.set()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    lost_leadership = Event()
    if config.leader_election.enabled:
        leading = Event()

        def _stopped_leading() -> None:
            LOG.error("leader election lost")
            lost_leadership.set()
            stop_event.set()

        Thread(
            target=run_with_leader_election,
            args=(config.leader_election, leading.set, _stopped_leading),
            daemon=True,
            name="leader-election",
        ).start()
        while not (leading.is_set() or stop_event.is_set()):
            leading.wait(1.0)

    if not stop_event.is_set():
        run_operator(config, memo, stop_event)
    stop_event.set()

    LOG.info("%s stopped", config.app_name)
    return 1 if lost_leadership.is_set() else 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
