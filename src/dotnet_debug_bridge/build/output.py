"""Build output interpretation - find the artifact a build produced.

dotnet build prints one line per built project:

    WebApp -> /src/WebApp/bin/Debug/net8.0/WebApp.dll

That line is not a stable contract across SDK versions and verbosity
settings, so when no usable line is found the conventional output
directories are scanned instead.
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

from ..errors import ArtifactNotFound

logger = logging.getLogger(__name__)

ARTIFACT_MARKER: Final[str] = "->"

ARTIFACT_SUFFIXES: Final[frozenset[str]] = frozenset({".dll", ".exe"})

OUTPUT_CONFIGURATIONS: Final[tuple[str, ...]] = ("Debug", "Release")

TARGET_FRAMEWORKS: Final[tuple[str, ...]] = (
    "net9.0",
    "net8.0",
    "net7.0",
    "net6.0",
    "net5.0",
    "netcoreapp3.1",
)

# Reference assemblies and intermediate output are never launchable
SKIPPED_DIRS: Final[frozenset[str]] = frozenset({"ref", "refint", "obj"})

PROJECT_FILE_SUFFIXES: Final[tuple[str, ...]] = (".csproj", ".fsproj", ".vbproj")

# Multi-node MSBuild prefixes lines with the node id: "3>WebApp -> ..."
NODE_PREFIX_PATTERN = re.compile(r"^\s*\d+>")

OUTPUT_TAIL_LINES = 20


class ArtifactSource(str, Enum):
    """Where the artifact path came from."""

    PARSED = "parsed-from-output"
    FALLBACK = "directory-scan-fallback"


@dataclass(frozen=True)
class BuildArtifact:
    """Produced binary of one build invocation."""

    path: str
    source: ArtifactSource

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"path": self.path, "source": self.source.value}


@dataclass(frozen=True)
class ArtifactLine:
    """One 'Project -> path' line with an accepted suffix."""

    project_name: str
    path: str
    line_number: int


def has_artifact_suffix(path: str) -> bool:
    """Whether path ends with a known executable/library suffix."""
    return os.path.splitext(path)[1].lower() in ARTIFACT_SUFFIXES


def parse_artifact_line(line: str, line_number: int = 0) -> ArtifactLine | None:
    """Parse a single 'Project -> path' line.

    Returns None when the line has no marker or the path suffix is not a
    binary (e.g. publish directories or .nupkg files).
    """
    line = NODE_PREFIX_PATTERN.sub("", line.rstrip("\r\n"), count=1)
    if ARTIFACT_MARKER not in line:
        return None

    name, _, path = line.partition(ARTIFACT_MARKER)
    name = name.strip()
    path = path.strip().strip('"')
    if not name or not path or not has_artifact_suffix(path):
        return None
    return ArtifactLine(project_name=name, path=path, line_number=line_number)


def find_artifact_lines(lines: Iterable[str]) -> list[ArtifactLine]:
    """All artifact lines in output order."""
    found: list[ArtifactLine] = []
    for line_number, line in enumerate(lines, start=1):
        parsed = parse_artifact_line(line, line_number)
        if parsed is not None:
            found.append(parsed)
    return found


def select_artifact_line(
    candidates: list[ArtifactLine], startup_name: str | None = None
) -> ArtifactLine | None:
    """Pick the startup project's line, else the last one."""
    if not candidates:
        return None
    if startup_name:
        matching = [c for c in candidates if c.project_name == startup_name]
        if matching:
            return matching[-1]
        logger.debug(f"No artifact line for '{startup_name}', using last artifact line")
    return candidates[-1]


def _candidate_dirs(project_root: str, configuration: str | None) -> list[str]:
    configurations = list(OUTPUT_CONFIGURATIONS)
    if configuration:
        configurations = [configuration] + [c for c in configurations if c != configuration]

    dirs: list[str] = []
    for config in configurations:
        base = os.path.join(project_root, "bin", config)
        dirs.append(base)
        dirs.extend(os.path.join(base, tfm) for tfm in TARGET_FRAMEWORKS)
    return dirs


def _walk_artifacts(directory: str) -> Iterable[str]:
    for root, dirnames, filenames in os.walk(directory):
        dirnames[:] = [d for d in dirnames if d.lower() not in SKIPPED_DIRS]
        for filename in filenames:
            if has_artifact_suffix(filename):
                yield os.path.join(root, filename)


def _project_stems(project_root: str) -> set[str]:
    try:
        entries = os.listdir(project_root)
    except OSError:
        return set()
    return {
        os.path.splitext(entry)[0].lower()
        for entry in entries
        if entry.lower().endswith(PROJECT_FILE_SUFFIXES)
    }


def scan_output_directories(
    project_root: str,
    startup_name: str | None = None,
    configuration: str | None = None,
) -> str | None:
    """Find the most likely artifact under the conventional output directories.

    Files named after the startup project (or the project file in
    project_root) win over dependency assemblies, then files built for
    ``configuration``; among equals the most recently modified file is returned.
    """
    seen: set[str] = set()
    candidates: list[tuple[bool, bool, float, str]] = []
    configuration_dir = (
        os.path.join(project_root, "bin", configuration).lower() if configuration else None
    )
    preferred = _project_stems(project_root)
    if startup_name:
        preferred.add(startup_name.lower())

    for directory in _candidate_dirs(project_root, configuration):
        if not os.path.isdir(directory):
            continue
        for path in _walk_artifacts(directory):
            real = os.path.normcase(os.path.abspath(path))
            if real in seen:
                continue
            seen.add(real)
            try:
                mtime = os.path.getmtime(path)
            except OSError:
                continue
            stem = os.path.splitext(os.path.basename(path))[0].lower()
            in_configuration = configuration_dir is not None and (
                directory.lower() == configuration_dir
                or directory.lower().startswith(configuration_dir + os.sep)
            )
            candidates.append((stem in preferred, in_configuration, mtime, os.path.abspath(path)))

    if not candidates:
        return None
    return max(candidates)[3]


def _output_tail(lines: list[str]) -> str:
    return "\n".join(line.rstrip("\r\n") for line in lines[-OUTPUT_TAIL_LINES:])


def interpret(
    lines: Iterable[str],
    project_root: str,
    startup_name: str | None = None,
    configuration: str | None = None,
) -> BuildArtifact:
    """Extract the produced artifact from build output.

    Args:
        lines: Build output lines (stdout and stderr merged, in order)
        project_root: Directory of the project that was built
        startup_name: Name of the resolved startup project, if any
        configuration: Build configuration, searched first by the fallback

    Returns:
        Artifact with an absolute path

    Raises:
        ArtifactNotFound: If neither the output nor the directory scan names a binary
    """
    lines = list(lines)
    project_root = os.path.abspath(project_root)

    chosen = select_artifact_line(find_artifact_lines(lines), startup_name)
    parsed_path: str | None = None
    if chosen is not None:
        parsed_path = chosen.path
        if not os.path.isabs(parsed_path):
            parsed_path = os.path.join(project_root, parsed_path)
        parsed_path = os.path.normpath(parsed_path)
        if os.path.exists(parsed_path):
            logger.info(f"Artifact from build output: {parsed_path}")
            return BuildArtifact(parsed_path, ArtifactSource.PARSED)
        logger.info(f"Artifact from build output does not exist: {parsed_path}")
    else:
        logger.info("No artifact line in build output, scanning output directories")

    scanned = scan_output_directories(project_root, startup_name, configuration)
    if scanned is not None:
        logger.info(f"Artifact from output directory scan: {scanned}")
        return BuildArtifact(scanned, ArtifactSource.FALLBACK)

    if parsed_path is not None:
        logger.warning(
            f"Using artifact path from build output although it is not on disk: {parsed_path}"
        )
        return BuildArtifact(parsed_path, ArtifactSource.PARSED)

    raise ArtifactNotFound(project_root, _output_tail(lines))
