"""floater agent runtime helpers."""

from .config import APP_NAME, AgentConfig, __version__, load_config  # noqa: F401

__all__ = [
    "APP_NAME",
    "AgentConfig",
    "__version__",
    "load_config",
]
