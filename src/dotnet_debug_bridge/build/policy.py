"""Build policy - argument validation and the build command shape.

Every debug build is emitted as:

    dotnet build <target> [validated options] -c <configuration>
        /p:GenerateFullPaths=true -v:m [--no-restore]

Full paths plus minimal verbosity make the "Project -> path" lines reliable
for the output interpreter.

Security measures:
- Argument whitelisting (task options are user-declared)
- Path canonicalization with symlink rejection
- UNC and device path denial
- Target paths must stay inside the workspace
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final


class BuildCommand(str, Enum):
    """dotnet subcommands the bridge reasons about."""

    BUILD = "build"
    RUN = "run"
    TEST = "test"
    CLEAN = "clean"
    RESTORE = "restore"
    PUBLISH = "publish"


DOTNET_EXECUTABLES: Final[frozenset[str]] = frozenset({"dotnet", "dotnet.exe"})

# Options taking a value: option -> validator pattern name
VALUE_OPTIONS: Final[dict[str, str]] = {
    "-c": "configuration",
    "--configuration": "configuration",
    "-f": "framework",
    "--framework": "framework",
    "-r": "runtime",
    "--runtime": "runtime",
    "-a": "arch",
    "--arch": "arch",
    "--os": "os",
    "-o": "output",
    "--output": "output",
    "-v": "verbosity",
    "--verbosity": "verbosity",
    "--interactive": "boolean",
}

FLAG_OPTIONS: Final[frozenset[str]] = frozenset(
    {
        "--no-restore",
        "--no-dependencies",
        "--no-incremental",
        "--force",
        "--nologo",
        "--self-contained",
        "--no-self-contained",
        "--interactive",
    }
)

PROPERTY_PREFIXES: Final[tuple[str, ...]] = ("-p:", "/p:", "--property:", "-property:", "/property:")

# Custom configurations are allowed, but only plain identifiers
CONFIGURATION_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z][A-Za-z0-9_.-]{0,63}$")

# e.g. net8.0, netstandard2.1, net48, net8.0-windows
FRAMEWORK_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^net(?:standard|coreapp)?[0-9]+(?:\.[0-9]+)?(?:-[a-z0-9.]+)?$", re.IGNORECASE
)

# e.g. win-x64, linux-arm64, linux-musl-x64
RUNTIME_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:win|linux|osx|freebsd|alpine|android|ios|tvos|watchos|browser|wasi)"
    r"(?:-(?:musl-|bionic-)?(?:x64|x86|arm|arm64))?$",
    re.IGNORECASE,
)

ARCH_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(?:x64|x86|arm|arm64)$", re.IGNORECASE)
OS_PATTERN: Final[re.Pattern[str]] = re.compile(r"^(?:win|linux|osx|freebsd)$", re.IGNORECASE)

ALLOWED_VERBOSITY: Final[frozenset[str]] = frozenset(
    {"quiet", "minimal", "normal", "detailed", "diagnostic", "q", "m", "n", "d", "diag"}
)

# Name=Value for MSBuild properties; values may not start a new option
PROPERTY_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[A-Za-z_][A-Za-z0-9_.-]*=[^;\n]*(?:;[A-Za-z_][A-Za-z0-9_.-]*=[^;\n]*)*$")

PROJECT_FILE_SUFFIXES: Final[tuple[str, ...]] = (".csproj", ".fsproj", ".vbproj")
SOLUTION_FILE_SUFFIXES: Final[tuple[str, ...]] = (".sln", ".slnx", ".slnf")

FULL_PATHS_PROPERTY: Final[str] = "/p:GenerateFullPaths=true"
VERBOSITY_FLAG: Final[str] = "-v:m"


def is_dotnet_command(command: str) -> bool:
    """Whether a task command invokes the dotnet driver."""
    return os.path.basename(command).lower() in DOTNET_EXECUTABLES


def is_target_path(arg: str) -> bool:
    """Whether an argument names a project, solution or directory target."""
    return arg.lower().endswith(PROJECT_FILE_SUFFIXES + SOLUTION_FILE_SUFFIXES)


@dataclass
class BuildPolicy:
    """Security policy for build operations.

    Validates:
    - Target paths are within the workspace
    - No symlinks, UNC or device paths
    - Options are whitelisted and their values well-formed
    """

    workspace_root: str
    allow_unc_paths: bool = False
    allow_device_paths: bool = False

    def __post_init__(self) -> None:
        """Validate and canonicalize workspace root."""
        self.workspace_root = self._validate_path(self.workspace_root, context="workspace_root")

    def _validate_path(self, path: str, context: str = "path") -> str:
        """Validate and canonicalize a path.

        Raises:
            ValueError: If path is invalid or violates security policy
        """
        if not path:
            raise ValueError(f"Empty {context}")

        # Device paths (\\?\, \\.\) start with \\ too, so check them first
        if path.startswith(("\\\\.\\", "\\\\?\\")) and not self.allow_device_paths:
            raise ValueError(f"Device paths not allowed in {context}: {path}")
        if path.startswith("\\\\") and not self.allow_unc_paths:
            raise ValueError(f"UNC paths not allowed in {context}: {path}")

        abs_path = os.path.abspath(path)

        if ".." in Path(path).parts:
            resolved = os.path.normpath(abs_path)
            if resolved != abs_path:
                raise ValueError(f"Path traversal detected in {context}: {path}")

        if os.path.islink(abs_path):
            raise ValueError(f"Symlink not allowed in {context}: {path}")

        return abs_path

    def validate_target_path(self, target: str, cwd: str | None = None) -> str:
        """Validate a project/solution target is within the workspace.

        Relative targets are resolved against cwd (or the workspace root).

        Raises:
            ValueError: If path is invalid or outside workspace
        """
        if target.startswith("\\\\"):
            # UNC and device paths are not absolute on POSIX; reject before joining
            self._validate_path(target, context="target")
        if not os.path.isabs(target):
            target = os.path.join(cwd or self.workspace_root, target)
        validated = self._validate_path(target, context="target")

        try:
            common = os.path.commonpath([validated, self.workspace_root])
        except ValueError as e:
            # Different drives on Windows
            raise ValueError(f"Target outside workspace: {target}") from e
        if common != self.workspace_root:
            raise ValueError(f"Target outside workspace: {target}")
        return validated

    def _validate_value(self, option: str, kind: str, value: str, cwd: str | None) -> str:
        if kind == "configuration" and not CONFIGURATION_PATTERN.match(value):
            raise ValueError(f"Invalid configuration: {value}")
        if kind == "framework" and not FRAMEWORK_PATTERN.match(value):
            raise ValueError(f"Invalid framework: {value}")
        if kind == "runtime" and not RUNTIME_PATTERN.match(value):
            raise ValueError(f"Invalid runtime: {value}")
        if kind == "arch" and not ARCH_PATTERN.match(value):
            raise ValueError(f"Invalid architecture: {value}")
        if kind == "os" and not OS_PATTERN.match(value):
            raise ValueError(f"Invalid OS: {value}")
        if kind == "verbosity" and value.lower() not in ALLOWED_VERBOSITY:
            raise ValueError(f"Invalid verbosity: {value}")
        if kind == "boolean" and value.lower() not in ("true", "false"):
            raise ValueError(f"Invalid {option} value: {value}")
        if kind in ("output", "target"):
            return self.validate_target_path(value, cwd)
        return value

    def validate_arguments(self, args: list[str], cwd: str | None = None) -> list[str]:
        """Validate build arguments (everything after the subcommand).

        Positional arguments must be project/solution files or directories
        inside the workspace; they are returned as absolute paths.

        Raises:
            ValueError: If any argument is not allowed
        """
        validated: list[str] = []
        i = 0
        while i < len(args):
            arg = args[i]

            if arg.lower().startswith(PROPERTY_PREFIXES):
                prop = arg.split(":", 1)[1]
                if not PROPERTY_PATTERN.match(prop):
                    raise ValueError(f"Invalid property: {arg}")
                validated.append(arg)
                i += 1
                continue

            if not arg.startswith("-"):
                validated.append(self.validate_target_path(arg, cwd))
                i += 1
                continue

            # --arg=value and -v:q forms
            key, value = arg, None
            for separator in ("=", ":"):
                if separator in arg:
                    key, value = arg.split(separator, 1)
                    break

            if key in VALUE_OPTIONS:
                kind = VALUE_OPTIONS[key]
                if value is None and i + 1 < len(args) and not args[i + 1].startswith("-"):
                    value = args[i + 1]
                    i += 1
                if not value:
                    if key in FLAG_OPTIONS:
                        validated.append(key)
                        i += 1
                        continue
                    raise ValueError(f"Argument {key} requires a value")
                validated.extend([key, self._validate_value(key, kind, value, cwd)])
            elif key in FLAG_OPTIONS and value is None:
                validated.append(key)
            else:
                raise ValueError(f"Argument not allowed: {key}")
            i += 1

        return validated

    def get_build_command(
        self,
        args: list[str],
        configuration: str = "Debug",
        cwd: str | None = None,
        restore: bool = True,
    ) -> list[str]:
        """Build the validated debug build command line.

        Args:
            args: Task arguments after the subcommand
            configuration: Used when the task does not pick one
            cwd: Directory relative targets are resolved against
            restore: Whether the build may restore packages

        Returns:
            Complete command line as list
        """
        validated = self.validate_arguments(args, cwd)
        if not any(a in ("-c", "--configuration") for a in validated):
            if not CONFIGURATION_PATTERN.match(configuration):
                raise ValueError(f"Invalid configuration: {configuration}")
            validated.extend(["-c", configuration])

        command = ["dotnet", BuildCommand.BUILD.value, *validated, FULL_PATHS_PROPERTY, VERBOSITY_FLAG]
        if not restore and "--no-restore" not in validated:
            command.append("--no-restore")
        return command
