"""Build state management and result types.

State machine for build sessions:
IDLE → BUILDING → READY | FAILED | CANCELLED
     ↑__________________________|
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import BridgeError


class BuildState(str, Enum):
    """Build session state machine states."""

    IDLE = "idle"
    BUILDING = "building"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


class BuildErrorSeverity(str, Enum):
    """MSBuild error severity levels."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class BuildDiagnostic:
    """Parsed MSBuild diagnostic (error/warning)."""

    severity: BuildErrorSeverity
    code: str
    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    project: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
        }
        if self.file:
            result["file"] = self.file
        if self.line is not None:
            result["line"] = self.line
        if self.column is not None:
            result["column"] = self.column
        if self.project:
            result["project"] = self.project
        return result


# Format: path(line,col): severity code: message [project]
MSBUILD_DIAGNOSTIC_PATTERN = re.compile(
    r"^(?:\d+>)?(?P<file>[^(]+)\((?P<line>\d+),(?P<col>\d+)\):\s*"
    r"(?P<severity>error|warning|info)\s+(?P<code>\w+):\s*"
    r"(?P<message>.+?)(?:\s+\[(?P<project>[^\]]+)\])?$",
    re.IGNORECASE,
)

# Without location: [MSBUILD : ]severity code: message [project]
MSBUILD_SIMPLE_PATTERN = re.compile(
    r"^(?:\d+>)?(?:[\w.]+\s*:\s*)?(?P<severity>error|warning|info)\s+(?P<code>\w+):\s*"
    r"(?P<message>.+?)(?:\s+\[(?P<project>[^\]]+)\])?$",
    re.IGNORECASE,
)


def parse_msbuild_output(output: str) -> list[BuildDiagnostic]:
    """Parse MSBuild output into structured diagnostics.

    MSBuild repeats every diagnostic in its closing summary, so duplicates
    are dropped.
    """
    diagnostics: list[BuildDiagnostic] = []
    seen: set[tuple[Any, ...]] = set()

    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue

        match = MSBUILD_DIAGNOSTIC_PATTERN.match(line)
        if match:
            diagnostic = BuildDiagnostic(
                severity=BuildErrorSeverity(match.group("severity").lower()),
                code=match.group("code"),
                message=match.group("message"),
                file=match.group("file").strip(),
                line=int(match.group("line")),
                column=int(match.group("col")),
                project=match.group("project"),
            )
        else:
            match = MSBUILD_SIMPLE_PATTERN.match(line)
            if not match:
                continue
            diagnostic = BuildDiagnostic(
                severity=BuildErrorSeverity(match.group("severity").lower()),
                code=match.group("code"),
                message=match.group("message"),
                project=match.group("project"),
            )

        key = (
            diagnostic.severity,
            diagnostic.code,
            diagnostic.message,
            diagnostic.file,
            diagnostic.line,
            diagnostic.column,
        )
        if key not in seen:
            seen.add(key)
            diagnostics.append(diagnostic)

    return diagnostics


class BuildError(BridgeError):
    """Build could not be started (invalid project path or arguments)."""

    kind = "build_error"


@dataclass
class BuildResult:
    """Result of one build invocation."""

    success: bool
    state: BuildState
    command: list[str]
    cwd: str
    exit_code: int | None = None
    output_lines: list[str] = field(default_factory=list)
    diagnostics: list[BuildDiagnostic] = field(default_factory=list)
    duration_ms: float = 0.0
    cancelled: bool = False

    def __post_init__(self) -> None:
        """Parse diagnostics from output if not provided."""
        if not self.diagnostics and self.output_lines:
            self.diagnostics = parse_msbuild_output(self.output)

    @property
    def output(self) -> str:
        """Combined stdout/stderr text."""
        return "\n".join(line.rstrip("\r\n") for line in self.output_lines)

    @property
    def errors(self) -> list[BuildDiagnostic]:
        """Get only error diagnostics."""
        return [d for d in self.diagnostics if d.severity == BuildErrorSeverity.ERROR]

    @property
    def warnings(self) -> list[BuildDiagnostic]:
        """Get only warning diagnostics."""
        return [d for d in self.diagnostics if d.severity == BuildErrorSeverity.WARNING]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "success": self.success,
            "state": self.state.value,
            "command": " ".join(self.command),
            "cwd": self.cwd,
            "errorCount": len(self.errors),
            "warningCount": len(self.warnings),
            "durationMs": round(self.duration_ms, 2),
        }
        if self.exit_code is not None:
            result["exitCode"] = self.exit_code
        if self.diagnostics:
            result["diagnostics"] = [d.to_dict() for d in self.diagnostics]
        if self.cancelled:
            result["cancelled"] = True
        return result

    def to_summary(self) -> str:
        """Generate human-readable summary."""
        status = "[OK] Build succeeded" if self.success else "[FAILED] Build failed"
        if self.cancelled:
            status = "[CANCELLED] Build cancelled"

        parts = [
            status,
            f"  Command: {' '.join(self.command)}",
            f"  Duration: {self.duration_ms:.0f}ms",
        ]
        if self.errors:
            parts.append(f"  Errors: {len(self.errors)}")
        if self.warnings:
            parts.append(f"  Warnings: {len(self.warnings)}")

        for err in self.errors[:5]:
            location = ""
            if err.file:
                location = err.file
                if err.line:
                    location += f"({err.line},{err.column or 0})"
                location += ": "
            parts.append(f"    {location}{err.code}: {err.message}")
        if len(self.errors) > 5:
            parts.append(f"    ... and {len(self.errors) - 5} more errors")

        return "\n".join(parts)
