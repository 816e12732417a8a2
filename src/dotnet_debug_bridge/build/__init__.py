"""Build invocation and build output interpretation for .NET projects.

Provides:
- The fixed debug build command shape with argument whitelisting
- Per-workspace async build session with state machine and cancellation
- MSBuild diagnostic parsing for failure reports
- Artifact extraction from build output with a directory-scan fallback
"""

from .output import ArtifactSource, BuildArtifact, interpret, scan_output_directories
from .policy import BuildCommand, BuildPolicy
from .session import BuildSession
from .state import BuildDiagnostic, BuildError, BuildResult, BuildState

__all__ = [
    "ArtifactSource",
    "BuildArtifact",
    "BuildCommand",
    "BuildDiagnostic",
    "BuildError",
    "BuildPolicy",
    "BuildResult",
    "BuildSession",
    "BuildState",
    "interpret",
    "scan_output_directories",
]
