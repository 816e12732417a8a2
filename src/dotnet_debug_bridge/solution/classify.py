"""Project classification heuristic.

Solution files rarely say which project is the application, so the resolver
relies on naming conventions. Everything lives in classify_project so that a
different heuristic can be passed to the resolver without touching it.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Final

from .parser import SOLUTION_FOLDER_TYPE


class ProjectKind(str, Enum):
    """Coarse project categories."""

    EXECUTABLE = "executable"
    LIBRARY = "library"
    TEST = "test"
    FOLDER = "folder"


TEST_TOKENS: Final[tuple[str, ...]] = ("test", "spec", "benchmark")

LIBRARY_TOKENS: Final[tuple[str, ...]] = (
    ".lib",
    "library",
    ".core",
    ".abstractions",
    ".contracts",
    ".shared",
    ".common",
)

Classifier = Callable[[str, str], ProjectKind]


def classify_project(name: str, kind_tag: str) -> ProjectKind:
    """Classify a project from its name and type GUID.

    Matching is case-insensitive substring matching, so "WebApp.Tests",
    "IntegrationTest" and "api.specs" are all tests.
    """
    if kind_tag.strip("{}").upper() == SOLUTION_FOLDER_TYPE:
        return ProjectKind.FOLDER

    lowered = name.lower()
    if any(token in lowered for token in TEST_TOKENS):
        return ProjectKind.TEST
    if any(token in lowered for token in LIBRARY_TOKENS):
        return ProjectKind.LIBRARY
    return ProjectKind.EXECUTABLE


def is_test_project(name: str, kind_tag: str, classifier: Classifier = classify_project) -> bool:
    """Whether the classifier considers a project a test project."""
    return classifier(name, kind_tag) == ProjectKind.TEST
