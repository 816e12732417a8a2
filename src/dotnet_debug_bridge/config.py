"""Bridge configuration.

Values come from environment variables and may be overridden by command
line flags. The active configuration is set once at startup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from .build.policy import CONFIGURATION_PATTERN

logger = logging.getLogger(__name__)

ENV_PREFIX = "DOTNET_DEBUG_BRIDGE_"
DEFAULT_CONFIGURATION = "Debug"
DEFAULT_BUILD_TIMEOUT = 300.0

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def default_cache_dir() -> str:
    """Per-user directory holding downloaded debug adapters."""
    base = os.environ.get("XDG_CACHE_HOME") or os.environ.get("LOCALAPPDATA")
    if not base:
        base = str(Path.home() / ".cache")
    return os.path.join(base, "dotnet-debug-bridge")


@dataclass
class BridgeConfig:
    """Settings shared by every debug scenario."""

    debugger_path: str | None = None
    """Explicit debug adapter executable (skips discovery)."""

    cache_dir: str = field(default_factory=default_cache_dir)
    """Directory searched for <cache_dir>/vsdbg/vsdbg."""

    configuration: str = DEFAULT_CONFIGURATION
    """Build configuration used when a task does not pick one."""

    build_timeout: float = DEFAULT_BUILD_TIMEOUT
    """Seconds before a build is killed."""

    restore: bool = True
    """Whether builds may restore packages."""

    stop_at_entry: bool = False

    def __post_init__(self) -> None:
        if not CONFIGURATION_PATTERN.match(self.configuration):
            raise ValueError(f"Invalid configuration: {self.configuration}")
        if self.build_timeout <= 0:
            raise ValueError(f"Build timeout must be positive: {self.build_timeout}")

    def with_overrides(self, **overrides: Any) -> BridgeConfig:
        """Return a copy with the non-None overrides applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict[str, Any]:
        return {
            "debuggerPath": self.debugger_path,
            "cacheDir": self.cache_dir,
            "configuration": self.configuration,
            "buildTimeout": self.build_timeout,
            "restore": self.restore,
            "stopAtEntry": self.stop_at_entry,
        }


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    logger.warning(f"{name}={raw} is not a boolean, using {default}")
    return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"{name}={raw} is not a number, using {default}")
        return default


def load_config() -> BridgeConfig:
    """Read the configuration from DOTNET_DEBUG_BRIDGE_* environment variables.

    DOTNET_DEBUG_BRIDGE_DEBUGGER is not read here; adapter discovery
    consults it after the explicit path.

    Raises:
        ValueError: If a variable holds an invalid configuration name or timeout
    """
    kwargs: dict[str, Any] = {
        "configuration": os.environ.get(f"{ENV_PREFIX}CONFIGURATION") or DEFAULT_CONFIGURATION,
        "build_timeout": _env_float(f"{ENV_PREFIX}BUILD_TIMEOUT", DEFAULT_BUILD_TIMEOUT),
        "restore": _env_bool(f"{ENV_PREFIX}RESTORE", True),
        "stop_at_entry": _env_bool(f"{ENV_PREFIX}STOP_AT_ENTRY", False),
    }
    cache_dir = os.environ.get(f"{ENV_PREFIX}CACHE_DIR")
    if cache_dir:
        kwargs["cache_dir"] = cache_dir
    return BridgeConfig(**kwargs)


# Global configuration (set at startup)
_config: BridgeConfig | None = None


def configure_bridge(config: BridgeConfig) -> None:
    """Install the active configuration."""
    global _config
    _config = config
    logger.debug(f"Bridge configured: {config.to_dict()}")


def get_config() -> BridgeConfig:
    """Get the active configuration, loading it from the environment on first use."""
    global _config
    if _config is None:
        _config = load_config()
    return _config
