"""Solution file parsing (.sln text format and .slnx XML format).

The .sln format is hand-edited and carries many sections we do not model
(nested folders, per-project configuration maps, extensibility globals).
Unrecognized lines are ignored; a malformed project declaration is skipped
with a warning instead of failing the whole parse.
"""

from __future__ import annotations

import logging
import os
import re
import uuid
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from ..errors import ParseWarning, SolutionParseError

logger = logging.getLogger(__name__)

SOLUTION_HEADER = "Microsoft Visual Studio Solution File"
DEFAULT_CONFIGURATIONS: tuple[str, ...] = ("Debug", "Release")

# Project type GUIDs
CSHARP_SDK_TYPE = "9A19103F-16F7-4668-BE54-9A1E7A4F7556"
CSHARP_TYPE = "FAE04EC0-301F-11D3-BF4B-00C04F79EFBC"
FSHARP_TYPE = "F2A71F9B-5D33-465A-A702-920D77279786"
VBNET_TYPE = "F184B08F-C81C-45F6-A57F-5ABD9991F28F"
SOLUTION_FOLDER_TYPE = "2150E333-8FDC-42A3-9474-1A3956D46DE8"

_SLNX_KIND_BY_EXTENSION = {
    ".csproj": CSHARP_SDK_TYPE,
    ".fsproj": FSHARP_TYPE,
    ".vbproj": VBNET_TYPE,
}

# Project("{TYPE-GUID}") = "Name", "Path\To\Project.csproj", "{PROJECT-GUID}"
PROJECT_LINE_PATTERN = re.compile(
    r'^Project\(\s*"\{(?P<kind>[^}"]+)\}"\s*\)\s*=\s*'
    r'"(?P<name>[^"]+)"\s*,\s*"(?P<path>[^"]+)"\s*,\s*"\{(?P<identity>[^}"]+)\}"'
)

GLOBAL_SECTION_PATTERN = re.compile(r"^GlobalSection\((?P<name>[^)]+)\)")

# Debug|Any CPU = Debug|Any CPU
CONFIGURATION_LINE_PATTERN = re.compile(r"^(?P<config>[^|=\s][^|=]*)\|[^=]*=")

STARTUP_LINE_PATTERN = re.compile(
    r'^StartupProject\s*=\s*(?:"(?P<quoted>[^"]+)"|\{(?P<guid>[^}]+)\}|(?P<bare>\S.*))$'
)


@dataclass(frozen=True)
class ProjectDescriptor:
    """One buildable unit declared by a solution."""

    name: str
    relative_path: str
    identity: str
    kind_tag: str

    def project_file(self, base_dir: str) -> str:
        """Absolute path of the project file."""
        return os.path.normpath(os.path.join(base_dir, self.relative_path))

    def project_dir(self, base_dir: str) -> str:
        """Absolute directory containing the project file."""
        return os.path.dirname(self.project_file(base_dir))

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {
            "name": self.name,
            "relativePath": self.relative_path,
            "identity": self.identity,
            "kindTag": self.kind_tag,
        }


@dataclass(frozen=True)
class Solution:
    """Parsed solution. Never mutated after construction."""

    base_dir: str
    projects: tuple[ProjectDescriptor, ...] = ()
    configurations: tuple[str, ...] = DEFAULT_CONFIGURATIONS
    startup_project: str | None = None
    warnings: tuple[ParseWarning, ...] = field(default=(), compare=False)
    source_format: str = "sln"

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "baseDir": self.base_dir,
            "format": self.source_format,
            "projects": [p.to_dict() for p in self.projects],
            "configurations": list(self.configurations),
            "startupProject": self.startup_project,
            "warnings": [str(w) for w in self.warnings],
        }


def normalize_relative_path(path: str) -> str:
    """Convert either separator style to the platform separator."""
    return path.replace("\\", os.sep).replace("/", os.sep)


def is_slnx(text: str) -> bool:
    """Whether text is the XML solution format."""
    head = text.lstrip("\ufeff \t\r\n")
    return head.startswith("<?xml") or head.startswith("<Solution")


def parse(text: str, base_dir: str) -> Solution:
    """Parse solution text into a Solution.

    Args:
        text: Solution file contents (.sln or .slnx)
        base_dir: Directory all relative project paths are resolved against

    Returns:
        Parsed solution

    Raises:
        SolutionParseError: If the text is empty or not a solution at all
    """
    if not isinstance(text, str):
        raise SolutionParseError(f"Solution text must be str, got {type(text).__name__}")
    if not text.strip():
        raise SolutionParseError("Solution text is empty")
    if "\x00" in text:
        raise SolutionParseError("Solution text contains binary data")

    base_dir = os.path.abspath(base_dir)
    if is_slnx(text):
        return _parse_slnx(text, base_dir)
    return _parse_sln(text, base_dir)


def _parse_sln(text: str, base_dir: str) -> Solution:
    projects: list[ProjectDescriptor] = []
    configurations: list[str] = []
    warnings: list[ParseWarning] = []
    startup_project: str | None = None
    recognized = False
    section: str | None = None

    for line_number, raw_line in enumerate(text.splitlines(), start=1):
        line = raw_line.strip().lstrip("\ufeff")
        if not line or line.startswith("#"):
            continue

        if line.startswith(SOLUTION_HEADER) or line == "Global":
            recognized = True
            continue

        if line.startswith("Project("):
            recognized = True
            match = PROJECT_LINE_PATTERN.match(line)
            if match is None:
                warning = ParseWarning(line_number, line, "malformed project declaration")
                logger.warning(f"Skipping {warning}")
                warnings.append(warning)
                continue
            projects.append(
                ProjectDescriptor(
                    name=match.group("name").strip(),
                    relative_path=normalize_relative_path(match.group("path").strip()),
                    identity=match.group("identity").strip(),
                    kind_tag=match.group("kind").strip(),
                )
            )
            continue

        section_match = GLOBAL_SECTION_PATTERN.match(line)
        if section_match:
            recognized = True
            section = section_match.group("name").strip()
            continue
        if line == "EndGlobalSection":
            section = None
            continue

        startup_match = STARTUP_LINE_PATTERN.match(line)
        if startup_match:
            startup_project = (
                startup_match.group("quoted")
                or startup_match.group("guid")
                or startup_match.group("bare")
            ).strip()
            continue

        if section == "SolutionConfigurationPlatforms":
            config_match = CONFIGURATION_LINE_PATTERN.match(line)
            if config_match:
                config = config_match.group("config").strip()
                if config not in configurations:
                    configurations.append(config)

    if not recognized:
        first = next(
            ((n, l) for n, l in enumerate(text.splitlines(), start=1) if l.strip()),
            (1, ""),
        )
        raise SolutionParseError("Not a solution file", first[0], first[1].strip())

    _warn_duplicate_identities(projects)
    logger.debug(
        f"Parsed solution in {base_dir}: {len(projects)} projects, "
        f"{len(warnings)} warnings"
    )
    return Solution(
        base_dir=base_dir,
        projects=tuple(projects),
        configurations=tuple(configurations) or DEFAULT_CONFIGURATIONS,
        startup_project=startup_project,
        warnings=tuple(warnings),
        source_format="sln",
    )


def _parse_slnx(text: str, base_dir: str) -> Solution:
    try:
        root = ET.fromstring(text.lstrip("\ufeff"))
    except ET.ParseError as e:
        line_number = e.position[0] if e.position else None
        line = None
        if line_number is not None:
            lines = text.splitlines()
            if 0 < line_number <= len(lines):
                line = lines[line_number - 1].strip()
        raise SolutionParseError(f"Invalid .slnx XML: {e}", line_number, line) from e

    if _local_name(root.tag) != "Solution":
        raise SolutionParseError(f"Unexpected .slnx root element: {root.tag}")

    projects: list[ProjectDescriptor] = []
    configurations: list[str] = []
    warnings: list[ParseWarning] = []

    for element in root.iter():
        tag = _local_name(element.tag)
        if tag == "Project":
            path = element.get("Path")
            if not path:
                # ElementTree keeps no source positions
                warning = ParseWarning(
                    None, ET.tostring(element, encoding="unicode").strip(), "project without Path"
                )
                logger.warning(f"Skipping {warning}")
                warnings.append(warning)
                continue
            relative_path = normalize_relative_path(path.strip())
            stem, extension = os.path.splitext(os.path.basename(relative_path))
            kind_tag = element.get("Type") or _SLNX_KIND_BY_EXTENSION.get(
                extension.lower(), CSHARP_SDK_TYPE
            )
            projects.append(
                ProjectDescriptor(
                    name=stem,
                    relative_path=relative_path,
                    identity=str(uuid.uuid5(uuid.NAMESPACE_URL, path.strip())).upper(),
                    kind_tag=kind_tag.strip("{}"),
                )
            )
        elif tag == "BuildType":
            name = element.get("Name")
            if name and name not in configurations:
                configurations.append(name)

    _warn_duplicate_identities(projects)
    return Solution(
        base_dir=base_dir,
        projects=tuple(projects),
        configurations=tuple(configurations) or DEFAULT_CONFIGURATIONS,
        startup_project=None,
        warnings=tuple(warnings),
        source_format="slnx",
    )


def _local_name(tag: str) -> str:
    """Strip an XML namespace from a tag."""
    return tag.rsplit("}", 1)[-1]


def _warn_duplicate_identities(projects: list[ProjectDescriptor]) -> None:
    seen: set[str] = set()
    for project in projects:
        key = project.identity.upper()
        if key in seen:
            logger.warning(f"Duplicate project identity {project.identity} ({project.name})")
        seen.add(key)


def load_solution(path: str) -> Solution:
    """Read and parse a solution file from disk.

    Raises:
        SolutionParseError: If the file cannot be read or parsed
    """
    try:
        with open(path, encoding="utf-8-sig") as f:
            text = f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SolutionParseError(f"Cannot read solution {path}: {e}") from e
    return parse(text, os.path.dirname(os.path.abspath(path)))
