"""Debug adapter binary discovery.

Search order:
1. Explicit path (configuration or --debugger)
2. DOTNET_DEBUG_BRIDGE_DEBUGGER environment variable
3. vsdbg, then netcoredbg, on PATH
4. Adapter cache directory: <cache_dir>/vsdbg/vsdbg[.exe]

The result of the first successful search is cached for the whole process
and never replaced; failed searches are not cached, so installing an adapter
while the bridge runs is picked up on the next attempt.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
from typing import Final

from ..errors import DebuggerUnavailable

logger = logging.getLogger(__name__)

DEBUGGER_ENV_VAR: Final[str] = "DOTNET_DEBUG_BRIDGE_DEBUGGER"
ADAPTER_NAMES: Final[tuple[str, ...]] = ("vsdbg", "netcoredbg")
CACHED_ADAPTER: Final[str] = "vsdbg"


def _binary_name(name: str) -> str:
    return f"{name}.exe" if os.name == "nt" else name


def _is_executable(path: str) -> bool:
    return os.path.isfile(path) and (os.name == "nt" or os.access(path, os.X_OK))


def find_debugger(explicit_path: str | None = None, cache_dir: str | None = None) -> str:
    """Locate a debug adapter executable.

    Args:
        explicit_path: Configured adapter path, tried first
        cache_dir: Directory holding downloaded adapters

    Returns:
        Absolute path to the adapter

    Raises:
        DebuggerUnavailable: If no adapter is found
    """
    if explicit_path:
        if _is_executable(explicit_path):
            logger.info(f"Using configured debugger: {explicit_path}")
            return os.path.abspath(explicit_path)
        raise DebuggerUnavailable(f"Configured debugger not found or not executable: {explicit_path}")

    env_path = os.environ.get(DEBUGGER_ENV_VAR)
    if env_path:
        if _is_executable(env_path):
            logger.info(f"Using debugger from {DEBUGGER_ENV_VAR}: {env_path}")
            return os.path.abspath(env_path)
        logger.warning(f"{DEBUGGER_ENV_VAR}={env_path} - not an executable file, ignoring")

    for name in ADAPTER_NAMES:
        system_path = shutil.which(name)
        if system_path:
            logger.info(f"Found {name} in PATH: {system_path}")
            return system_path

    if cache_dir:
        cached = os.path.join(cache_dir, CACHED_ADAPTER, _binary_name(CACHED_ADAPTER))
        if _is_executable(cached):
            logger.info(f"Found cached {CACHED_ADAPTER} at {cached}")
            return cached

    raise DebuggerUnavailable("No debug adapter (vsdbg or netcoredbg) found")


class DebuggerBinaryCache:
    """Process-wide, write-once holder of the discovered adapter path.

    get() may be called concurrently from any thread. The first successful
    discovery is stored; later calls return it without searching again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._path: str | None = None

    @property
    def path(self) -> str | None:
        """Cached path, or None before the first successful discovery."""
        return self._path

    def get(self, explicit_path: str | None = None, cache_dir: str | None = None) -> str:
        """Return the cached adapter path, discovering it on first use.

        An explicit path bypasses the cache; it belongs to one caller.

        Raises:
            DebuggerUnavailable: If discovery fails
        """
        if explicit_path:
            return find_debugger(explicit_path, cache_dir)

        path = self._path
        if path is not None:
            return path

        with self._lock:
            if self._path is None:
                self._path = find_debugger(None, cache_dir)
            return self._path


# Shared by all debug sessions in this process
debugger_cache = DebuggerBinaryCache()
