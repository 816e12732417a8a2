"""Startup project resolution over a parsed solution.

Selection order (first rule with a result wins):
1. explicit startup project declared by the solution (name or identity)
2. first declared project the classifier calls an executable
3. first declared project that is not a test (or a solution folder)
4. first declared project that is not a solution folder, else the first declared

This is a heuristic, not a guarantee. It favors determinism: the same
solution always yields the same project.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from .classify import Classifier, ProjectKind, classify_project
from .parser import ProjectDescriptor, Solution

logger = logging.getLogger(__name__)


class ResolutionRule(str, Enum):
    """Which selection rule produced the startup project."""

    EXPLICIT = "explicit"
    FIRST_EXECUTABLE = "first-executable"
    FIRST_NON_TEST = "first-non-test"
    FIRST_DECLARED = "first-declared"
    NONE = "none"


@dataclass(frozen=True)
class StartupResolution:
    """Outcome of startup resolution, with the rule that fired."""

    project: ProjectDescriptor | None
    rule: ResolutionRule
    ambiguous: bool = False

    @property
    def note(self) -> str | None:
        """Informational note when the choice was a guess."""
        if self.project is None:
            return "Solution declares no projects; no startup project resolvable"
        if not self.ambiguous:
            return None
        return (
            f"No startup project declared; selected '{self.project.name}' "
            f"by rule {self.rule.value}"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "project": self.project.to_dict() if self.project else None,
            "rule": self.rule.value,
            "ambiguous": self.ambiguous,
            "note": self.note,
        }


def get_by_name(solution: Solution, name: str) -> ProjectDescriptor | None:
    """First project with exactly this name."""
    for project in solution.projects:
        if project.name == name:
            return project
    return None


def get_by_identity(solution: Solution, identity: str) -> ProjectDescriptor | None:
    """First project with exactly this identity (braces ignored)."""
    wanted = identity.strip("{}")
    for project in solution.projects:
        if project.identity == wanted:
            return project
    return None


def get_all_non_test(
    solution: Solution, classifier: Classifier = classify_project
) -> list[ProjectDescriptor]:
    """All projects the classifier does not call tests, in declaration order."""
    return [
        p for p in solution.projects if classifier(p.name, p.kind_tag) != ProjectKind.TEST
    ]


def _find_explicit(solution: Solution) -> ProjectDescriptor | None:
    startup = solution.startup_project
    if not startup:
        return None

    project = get_by_name(solution, startup) or get_by_identity(solution, startup)
    if project is not None:
        return project

    # GUIDs are case-insensitive
    wanted = startup.strip("{}").upper()
    for candidate in solution.projects:
        if candidate.identity.upper() == wanted:
            return candidate

    logger.info(f"Declared startup project '{startup}' matches no project, ignoring")
    return None


def explain_startup(
    solution: Solution, classifier: Classifier = classify_project
) -> StartupResolution:
    """Resolve the startup project and report which rule was used."""
    if not solution.projects:
        return StartupResolution(project=None, rule=ResolutionRule.NONE)

    explicit = _find_explicit(solution)
    if explicit is not None:
        return StartupResolution(project=explicit, rule=ResolutionRule.EXPLICIT)

    ambiguous = len(solution.projects) > 1
    kinds = [classifier(p.name, p.kind_tag) for p in solution.projects]

    if ProjectKind.EXECUTABLE in kinds:
        project = solution.projects[kinds.index(ProjectKind.EXECUTABLE)]
        rule = ResolutionRule.FIRST_EXECUTABLE
    elif ProjectKind.LIBRARY in kinds:
        project = solution.projects[kinds.index(ProjectKind.LIBRARY)]
        rule = ResolutionRule.FIRST_NON_TEST
    else:
        # Folders have no project file to build
        index = next((i for i, kind in enumerate(kinds) if kind != ProjectKind.FOLDER), 0)
        project = solution.projects[index]
        rule = ResolutionRule.FIRST_DECLARED

    resolution = StartupResolution(project=project, rule=rule, ambiguous=ambiguous)

    if resolution.note:
        logger.info(resolution.note)
    return resolution


def resolve_startup(
    solution: Solution, classifier: Classifier = classify_project
) -> ProjectDescriptor | None:
    """Select the startup project, or None when the solution has no projects."""
    return explain_startup(solution, classifier).project
