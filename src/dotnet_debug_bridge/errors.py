"""Error taxonomy for the build-to-debug bridge.

Hard stops derive from BridgeError and abort a debug scenario at the current
step. Recoverable conditions (malformed project lines, startup fallback) are
plain values that get logged, never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .build.state import BuildDiagnostic


class BridgeError(Exception):
    """Base exception for bridge errors."""

    kind = "bridge_error"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"error": str(self), "kind": self.kind}


class SolutionParseError(BridgeError):
    """Solution text could not be read at all."""

    kind = "parse_error"

    def __init__(self, message: str, line_number: int | None = None, line: str | None = None):
        if line_number is not None:
            message = f"{message} (line {line_number}: {line!r})"
        super().__init__(message)
        self.line_number = line_number
        self.line = line

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.line_number is not None:
            result["lineNumber"] = self.line_number
            result["line"] = self.line
        return result


@dataclass(frozen=True)
class ParseWarning:
    """A skipped, malformed project declaration."""

    line_number: int | None
    line: str
    reason: str

    def __str__(self) -> str:
        if self.line_number is None:
            return f"{self.reason}: {self.line}"
        return f"line {self.line_number}: {self.reason}: {self.line}"


class ArtifactNotFound(BridgeError):
    """Neither build output nor the output directories named a binary."""

    kind = "artifact_not_found"

    HINT = (
        "Verify that the build succeeded and produced a .dll or .exe under "
        "bin/<Configuration>/<TargetFramework>."
    )

    def __init__(self, project_root: str, output_tail: str = ""):
        super().__init__(f"No build artifact found for {project_root}. {self.HINT}")
        self.project_root = project_root
        self.output_tail = output_tail

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["projectRoot"] = self.project_root
        if self.output_tail:
            result["output"] = self.output_tail
        return result


class BuildFailed(BridgeError):
    """Build process exited with a non-zero status."""

    kind = "build_failed"

    def __init__(
        self,
        exit_code: int | None,
        output: str,
        diagnostics: list[BuildDiagnostic] | None = None,
    ):
        super().__init__(f"Build failed with exit code {exit_code}\n{output}")
        self.exit_code = exit_code
        self.output = output
        self.diagnostics = diagnostics or []

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": f"Build failed with exit code {self.exit_code}",
            "kind": self.kind,
            "exitCode": self.exit_code,
            "output": self.output,
            "diagnostics": [d.to_dict() for d in self.diagnostics],
        }


class DebuggerUnavailable(BridgeError):
    """Debug adapter binary could not be located or started."""

    kind = "debugger_unavailable"

    GUIDANCE = (
        "Install vsdbg (https://aka.ms/getvsdbgsh) or netcoredbg and put it on PATH, "
        "or set DOTNET_DEBUG_BRIDGE_DEBUGGER to the adapter executable."
    )

    def __init__(self, detail: str = "Debug adapter not found"):
        super().__init__(f"{detail}. {self.GUIDANCE}")


class LaunchRejected(BridgeError):
    """Launch request was invalid or refused by the adapter."""

    kind = "launch_rejected"


class ScenarioError(BridgeError):
    """A debug scenario stopped at a step; wraps the originating error."""

    kind = "scenario_error"

    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"Debug scenario failed while {step}: {cause}")
        self.step = step
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.cause, BridgeError):
            result = self.cause.to_dict()
        else:
            result = {"error": str(self.cause), "kind": type(self.cause).__name__}
        result["step"] = self.step
        return result


class ScenarioCancelled(ScenarioError):
    """Scenario was cancelled before a launch request was produced."""

    kind = "cancelled"
