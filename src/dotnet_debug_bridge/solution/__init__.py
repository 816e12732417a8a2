"""Solution parsing and startup project resolution."""

from .classify import ProjectKind, classify_project, is_test_project
from .parser import ProjectDescriptor, Solution, load_solution, parse
from .resolver import (
    ResolutionRule,
    StartupResolution,
    explain_startup,
    get_all_non_test,
    get_by_identity,
    get_by_name,
    resolve_startup,
)

__all__ = [
    "ProjectDescriptor",
    "ProjectKind",
    "ResolutionRule",
    "Solution",
    "StartupResolution",
    "classify_project",
    "explain_startup",
    "get_all_non_test",
    "get_by_identity",
    "get_by_name",
    "is_test_project",
    "load_solution",
    "parse",
    "resolve_startup",
]
