"""Workspace and solution discovery.

The workspace root comes from, in order:
1. MCP Roots from client (via Context.list_roots())
2. Environment variables (DOTNET_DEBUG_BRIDGE_PROJECT_ROOT, MCP_PROJECT_ROOT)
3. Explicit --project path
4. Startup CWD, searched upward for .NET markers when --project-from-cwd is used

Solution and project files are located with plain directory listings; nothing
here writes to disk.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

if TYPE_CHECKING:
    from mcp.server.fastmcp import Context

logger = logging.getLogger(__name__)

SOLUTION_PATTERNS: tuple[str, ...] = ("*.sln", "*.slnx")
PROJECT_PATTERNS: tuple[str, ...] = ("*.csproj", "*.fsproj", "*.vbproj")


@dataclass
class ProjectRootConfig:
    """Settings that decide how the workspace root is found."""

    startup_cwd: Path | None = None
    """CWD captured at server startup."""

    use_project_from_cwd: bool = False
    """Whether --project-from-cwd flag was provided."""

    explicit_project_path: Path | None = None
    """Explicit project path from --project flag."""

    env_var_names: tuple[str, ...] = field(
        default_factory=lambda: ("DOTNET_DEBUG_BRIDGE_PROJECT_ROOT", "MCP_PROJECT_ROOT")
    )


# Global configuration (set at startup)
_config: ProjectRootConfig = ProjectRootConfig()


def configure_project_root(
    *,
    use_project_from_cwd: bool = False,
    explicit_project_path: str | Path | None = None,
    startup_cwd: str | Path | None = None,
) -> None:
    """Configure workspace root detection. Called once at startup."""
    global _config
    _config = ProjectRootConfig(
        use_project_from_cwd=use_project_from_cwd,
        explicit_project_path=Path(explicit_project_path) if explicit_project_path else None,
        startup_cwd=Path(startup_cwd) if startup_cwd else None,
    )
    logger.debug(
        f"Project root configured: use_cwd={use_project_from_cwd}, "
        f"explicit={explicit_project_path}, startup_cwd={startup_cwd}"
    )


def get_project_root_config() -> ProjectRootConfig:
    """Get current project root configuration."""
    return _config


def parse_file_uri(uri: str) -> Path | None:
    """Parse a file:// URI to a Path.

    - Unix: file:///home/user/project -> /home/user/project
    - Windows: file:///C:/Users/project -> C:\\Users\\project
    - Windows UNC: file://server/share -> \\\\server\\share

    Returns:
        Path object if parsing succeeds, None otherwise
    """
    parsed = urlparse(str(uri))
    if parsed.scheme != "file":
        logger.warning(f"Not a file URI: {uri}")
        return None

    path_str = unquote(parsed.path)

    if sys.platform == "win32":
        # file:///C:/path gives "/C:/path"
        if path_str.startswith("/") and len(path_str) > 2 and path_str[2] == ":":
            path_str = path_str[1:]
        if parsed.netloc:
            path_str = f"\\\\{parsed.netloc}{path_str}"

    path = Path(path_str)
    if not path.is_absolute():
        logger.warning(f"Parsed path is not absolute: {path}")
        return None
    return path


def _ancestors(start: Path) -> Iterator[Path]:
    yield start
    yield from start.parents


def _first_match(directory: Path, patterns: tuple[str, ...]) -> Path | None:
    try:
        matches = sorted(
            p for pattern in patterns for p in directory.glob(pattern) if p.is_file()
        )
    except OSError as e:
        logger.debug(f"Cannot list {directory}: {e}")
        return None
    return matches[0] if matches else None


def find_project_file(directory: str | Path) -> Path | None:
    """Return the project file directly inside ``directory``, if any.

    With several project files the alphabetically first one is returned.
    """
    return _first_match(Path(directory), PROJECT_PATTERNS)


def find_solution_file(start_dir: str | Path, boundary: str | Path | None = None) -> Path | None:
    """Search ``start_dir`` and its ancestors for a .sln/.slnx file.

    Args:
        start_dir: Directory to start from
        boundary: Optional directory the search must not leave

    Returns:
        The nearest solution file, or None
    """
    current = Path(start_dir).resolve()
    stop = Path(boundary).resolve() if boundary is not None else None
    for directory in _ancestors(current):
        solution = _first_match(directory, SOLUTION_PATTERNS)
        if solution is not None:
            return solution
        if stop is not None and directory == stop:
            break
    return None


def find_dotnet_project_root(start_dir: Path | None = None) -> Path:
    """Find .NET project root by walking up from a directory.

    Markers, by pass: solution file, project file, .git. Falls back to
    start_dir when no marker is found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for directory in _ancestors(current):
        if _first_match(directory, SOLUTION_PATTERNS):
            return directory

    for directory in _ancestors(current):
        if _first_match(directory, PROJECT_PATTERNS):
            return directory

    for directory in _ancestors(current):
        if (directory / ".git").exists():
            return directory

    return current


def _root_without_client() -> Path | None:
    config = get_project_root_config()

    for env_var in config.env_var_names:
        env_value = os.environ.get(env_var)
        if env_value:
            path = Path(env_value)
            if path.is_dir():
                logger.info(f"Using project root from {env_var}: {path}")
                return path
            logger.warning(f"{env_var}={env_value} - path does not exist or is not a directory")

    if config.explicit_project_path:
        if config.explicit_project_path.is_dir():
            return config.explicit_project_path
        logger.warning(f"Explicit project path not valid: {config.explicit_project_path}")

    if config.use_project_from_cwd and config.startup_cwd:
        project_root = find_dotnet_project_root(config.startup_cwd)
        logger.info(f"Using project root from CWD search: {project_root}")
        return project_root

    return config.startup_cwd


async def get_project_root(ctx: Context | None = None) -> Path | None:
    """Determine the workspace root from the client roots or local settings.

    Returns:
        Path to project root, or None if not determinable
    """
    if ctx is not None:
        try:
            roots = await ctx.list_roots()
        except Exception as e:
            # Client may not support roots
            logger.info(f"Could not get roots from client: {e}")
            roots = None
        if roots:
            path = parse_file_uri(str(roots[0].uri))
            if path and path.is_dir():
                logger.info(f"Using project root from MCP client: {path}")
                return path
            logger.warning(f"MCP root path invalid or not accessible: {path}")

    root = _root_without_client()
    if root is None:
        logger.warning("Could not determine project root from any source")
    return root


def get_project_root_sync() -> Path | None:
    """Synchronous variant of get_project_root, without MCP roots."""
    return _root_without_client()
