"""YAML configuration loader for the floater agent."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import yaml

from hcloud_floater.exceptions import ConfigError

APP_NAME = "hcloud-metallb-floater"
__version__ = "0.1.0"


@dataclass
class ControllerConfig:
    metrics_addr: str = ":8585"
    sync_period: float = 300.0
    workers: int = 1
    retry_base_delay: float = 1.0
    retry_max_delay: float = 300.0


@dataclass
class LeaderElectionConfig:
    enabled: bool = False
    namespace: str = "kube-system"
    name: str = f"{APP_NAME}-controller"
    lease_duration: float = 15.0
    renew_deadline: float = 10.0
    retry_period: float = 2.0


@dataclass
class KubernetesConfig:
    request_timeout: Optional[float] = None


@dataclass
class HCloudConfig:
    token_env: str = "HCLOUD_TOKEN"
    endpoint: Optional[str] = None


@dataclass
class AgentConfig:
    app_name: str = APP_NAME
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    leader_election: LeaderElectionConfig = field(default_factory=LeaderElectionConfig)
    kubernetes: KubernetesConfig = field(default_factory=KubernetesConfig)
    hcloud: HCloudConfig = field(default_factory=HCloudConfig)


_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


def parse_duration(value: Union[str, int, float]) -> float:
    """Return ``value`` in seconds.

    Numbers are taken as seconds; strings may use Go style units such as
    ``5m``, ``90s`` or ``1h30m``.
    """

    if isinstance(value, bool):
        raise ConfigError(f"invalid duration '{value}'")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = value.strip()
        try:
            seconds = float(text)
        except ValueError:
            pos = 0
            seconds = 0.0
            for match in _DURATION_PART.finditer(text):
                if match.start() != pos:
                    break
                seconds += float(match.group(1)) * _UNITS[match.group(2)]
                pos = match.end()
            if pos == 0 or pos != len(text):
                raise ConfigError(f"invalid duration '{value}'") from None
    if seconds <= 0:
        raise ConfigError(f"duration must be positive, got '{value}'")
    return seconds


def get_env_required(key: str) -> str:
    value = os.environ.get(key)
    if value is None:
        raise ConfigError(f"required environment variable missing: {key}")
    return value


def _section(data: dict, name: str) -> dict:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' section must be a mapping")
    return section


def _parse_controller(section: dict) -> ControllerConfig:
    defaults = ControllerConfig()
    workers = int(section.get("workers", defaults.workers))
    if workers < 1:
        raise ConfigError("controller 'workers' must be at least 1")
    config = ControllerConfig(
        metrics_addr=str(section.get("metrics_addr", defaults.metrics_addr)),
        sync_period=parse_duration(section.get("sync_period", defaults.sync_period)),
        workers=workers,
        retry_base_delay=parse_duration(
            section.get("retry_base_delay", defaults.retry_base_delay)
        ),
        retry_max_delay=parse_duration(
            section.get("retry_max_delay", defaults.retry_max_delay)
        ),
    )
    if config.retry_max_delay < config.retry_base_delay:
        raise ConfigError("controller 'retry_max_delay' must not be below 'retry_base_delay'")
    return config


def _parse_leader_election(section: dict) -> LeaderElectionConfig:
    defaults = LeaderElectionConfig()
    config = LeaderElectionConfig(
        enabled=bool(section.get("enabled", defaults.enabled)),
        namespace=str(section.get("namespace", defaults.namespace)),
        name=str(section.get("name", defaults.name)),
        lease_duration=parse_duration(section.get("lease_duration", defaults.lease_duration)),
        renew_deadline=parse_duration(section.get("renew_deadline", defaults.renew_deadline)),
        retry_period=parse_duration(section.get("retry_period", defaults.retry_period)),
    )
    if config.lease_duration <= config.renew_deadline:
        raise ConfigError("leader election 'lease_duration' must exceed 'renew_deadline'")
    return config


def _parse_kubernetes(section: dict) -> KubernetesConfig:
    timeout = section.get("request_timeout")
    return KubernetesConfig(
        request_timeout=parse_duration(timeout) if timeout is not None else None,
    )


def _parse_hcloud(section: dict) -> HCloudConfig:
    defaults = HCloudConfig()
    return HCloudConfig(
        token_env=str(section.get("token_env", defaults.token_env)),
        endpoint=section.get("endpoint") or None,
    )


def load_config(path: Optional[Path]) -> AgentConfig:
    """Load ``path`` or return the defaults when no file is given."""

    if path is None:
        return AgentConfig()

    try:
        data = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"unable to read configuration {path}: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError("Agent configuration must be a mapping")

    try:
        return AgentConfig(
            app_name=str(data.get("app_name", APP_NAME)),
            controller=_parse_controller(_section(data, "controller")),
            leader_election=_parse_leader_election(_section(data, "leader_election")),
            kubernetes=_parse_kubernetes(_section(data, "kubernetes")),
            hcloud=_parse_hcloud(_section(data, "hcloud")),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid configuration {path}: {exc}") from exc
