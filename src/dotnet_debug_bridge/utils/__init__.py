"""Utility modules for dotnet-debug-bridge."""

from .project import (
    ProjectRootConfig,
    configure_project_root,
    find_dotnet_project_root,
    find_project_file,
    find_solution_file,
    get_project_root,
    get_project_root_sync,
    parse_file_uri,
)

__all__ = [
    "ProjectRootConfig",
    "configure_project_root",
    "find_dotnet_project_root",
    "find_project_file",
    "find_solution_file",
    "get_project_root",
    "get_project_root_sync",
    "parse_file_uri",
]
