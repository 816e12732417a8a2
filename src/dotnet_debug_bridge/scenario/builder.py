"""Debug scenario - one build-to-debug attempt.

State machine:
IDLE → RESOLVING → BUILDING → INTERPRETING → READY
  any step → FAILED (carries the step and the original error)
  any step → CANCELLED

A scenario owns its Solution, BuildArtifact and LaunchRequest; nothing is
shared between attempts. The only side effects before READY are those of the
build process itself.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from ..build.output import BuildArtifact, interpret
from ..build.session import BuildSession
from ..build.state import BuildResult
from ..config import BridgeConfig, get_config
from ..debugger.launch import ConsoleKind, LaunchRequest, RequestKind
from ..debugger.session import DebugSession
from ..errors import BridgeError, BuildFailed, ScenarioCancelled, ScenarioError
from ..solution.classify import Classifier, classify_project
from ..solution.parser import Solution, load_solution
from ..solution.resolver import StartupResolution, explain_startup
from .tasks import (
    BuildTarget,
    BuildTask,
    TargetKind,
    locate_build_target,
    rewrite_task,
    task_configuration,
)

logger = logging.getLogger(__name__)


class ScenarioState(str, Enum):
    """Debug scenario states."""

    IDLE = "idle"
    RESOLVING = "resolving"
    BUILDING = "building"
    INTERPRETING = "interpreting"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


# Step names reported in failures
STEP_LAUNCHING = "launching"


@dataclass(frozen=True)
class ScenarioFailure:
    """Why a scenario ended in FAILED."""

    step: str
    error: BaseException

    def to_dict(self) -> dict[str, Any]:
        if isinstance(self.error, BridgeError):
            result = self.error.to_dict()
        else:
            result = {"error": str(self.error), "kind": type(self.error).__name__}
        result["step"] = self.step
        return result


@dataclass(frozen=True)
class ResolvedProject:
    """Where the program lives, once the target is known."""

    target: BuildTarget
    project_root: str
    startup_name: str | None
    solution: Solution | None = None
    resolution: StartupResolution | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "target": self.target.to_dict(),
            "projectRoot": self.project_root,
            "startupProject": self.startup_name,
        }
        if self.resolution is not None:
            result["resolution"] = self.resolution.to_dict()
        return result


class DebugScenario:
    """One attempt at turning a build task into a running debug session."""

    def __init__(
        self,
        task: BuildTask,
        build_session: BuildSession,
        program_args: tuple[str, ...] = (),
        debugger: DebugSession | None = None,
        config: BridgeConfig | None = None,
        classifier: Classifier = classify_project,
    ):
        """Initialize a scenario.

        Args:
            task: Build task, already rewritten to "dotnet build ..."
            build_session: Runs the build subprocess
            program_args: Arguments passed to the program
            debugger: Receives the launch request; None just returns it
            config: Bridge settings (active configuration if omitted)
            classifier: Project classification heuristic
        """
        if task.cwd is None:
            task = replace(task, cwd=build_session.workspace_root)
        self._task = task
        self._build_session = build_session
        self._program_args = program_args
        self._debugger = debugger
        self._config = config or get_config()
        self._classifier = classifier
        self._state = ScenarioState.IDLE
        self._cancel_requested = False
        self._failure: ScenarioFailure | None = None
        self._resolved: ResolvedProject | None = None
        self._build_result: BuildResult | None = None
        self._artifact: BuildArtifact | None = None
        self._launch_request: LaunchRequest | None = None
        self._state_listeners: list[Callable[[ScenarioState], None]] = []

    @property
    def state(self) -> ScenarioState:
        """Current scenario state."""
        return self._state

    @property
    def task(self) -> BuildTask:
        return self._task

    @property
    def failure(self) -> ScenarioFailure | None:
        """Set when the scenario ended in FAILED."""
        return self._failure

    @property
    def resolved(self) -> ResolvedProject | None:
        return self._resolved

    @property
    def build_result(self) -> BuildResult | None:
        return self._build_result

    @property
    def artifact(self) -> BuildArtifact | None:
        return self._artifact

    @property
    def launch_request(self) -> LaunchRequest | None:
        """The launch request, once the scenario is READY."""
        return self._launch_request

    @property
    def is_finished(self) -> bool:
        return self._state in (ScenarioState.READY, ScenarioState.FAILED, ScenarioState.CANCELLED)

    def on_state_change(self, listener: Callable[[ScenarioState], None]) -> None:
        """Register state change listener."""
        self._state_listeners.append(listener)

    def _set_state(self, new_state: ScenarioState) -> None:
        """Update state and notify listeners."""
        old_state = self._state
        self._state = new_state
        if old_state != new_state:
            logger.info(f"Scenario state: {old_state.value} -> {new_state.value}")
            for listener in self._state_listeners:
                try:
                    listener(new_state)
                except Exception:
                    logger.exception("State listener error")

    def _fail(self, step: str, error: BaseException) -> ScenarioError:
        self._failure = ScenarioFailure(step=step, error=error)
        self._launch_request = None
        self._set_state(ScenarioState.FAILED)
        logger.error(f"Debug scenario failed while {step}: {error}")
        return ScenarioError(step, error)

    def _cancelled(self, step: str) -> ScenarioCancelled:
        self._launch_request = None
        self._artifact = None
        self._set_state(ScenarioState.CANCELLED)
        logger.info(f"Debug scenario cancelled while {step}")
        return ScenarioCancelled(step, RuntimeError("cancelled"))

    def _check_cancelled(self, step: str) -> None:
        if self._cancel_requested:
            raise self._cancelled(step)

    def _resolve(self) -> ResolvedProject:
        """Find the project whose binary will be debugged."""
        target = locate_build_target(self._task, boundary=self._build_session.workspace_root)
        logger.info(f"Build target: {target.kind.value} {target.path}")

        if target.kind == TargetKind.PROJECT:
            stem = os.path.splitext(os.path.basename(target.path))[0]
            return ResolvedProject(target=target, project_root=target.base_dir, startup_name=stem)

        if target.kind == TargetKind.DIRECTORY:
            return ResolvedProject(target=target, project_root=target.path, startup_name=None)

        solution = load_solution(target.path)
        resolution = explain_startup(solution, self._classifier)
        project = resolution.project
        if project is None:
            logger.warning(f"Solution {target.path} declares no projects")
            return ResolvedProject(
                target=target,
                project_root=solution.base_dir,
                startup_name=None,
                solution=solution,
                resolution=resolution,
            )
        return ResolvedProject(
            target=target,
            project_root=project.project_dir(solution.base_dir),
            startup_name=project.name,
            solution=solution,
            resolution=resolution,
        )

    def _build_args(self, target: BuildTarget) -> list[str]:
        args = list(self._task.args[1:])
        if not target.explicit and target.kind != TargetKind.DIRECTORY:
            # An upward-found solution is not visible from the task's cwd
            args.insert(0, target.path)
        return args

    def _make_launch_request(self, resolved: ResolvedProject, artifact: BuildArtifact) -> LaunchRequest:
        return LaunchRequest(
            kind=RequestKind.LAUNCH,
            program=artifact.path,
            cwd=resolved.project_root,
            args=list(self._program_args),
            env=dict(self._task.env),
            stop_at_entry=self._config.stop_at_entry,
            console=ConsoleKind.INTEGRATED_TERMINAL,
            name=self._task.label or resolved.startup_name,
        )

    async def run(self) -> LaunchRequest:
        """Run the scenario to READY.

        Returns:
            The launch request handed to the debugger

        Raises:
            ScenarioError: A step failed; ``step`` names it, ``cause`` holds the error
            ScenarioCancelled: cancel() was called before READY
            RuntimeError: The scenario already ran
        """
        if self._state == ScenarioState.CANCELLED:
            raise ScenarioCancelled(ScenarioState.IDLE.value, RuntimeError("cancelled"))
        if self._state != ScenarioState.IDLE:
            raise RuntimeError(f"Scenario already ran (state: {self._state.value})")

        self._set_state(ScenarioState.RESOLVING)
        try:
            resolved = self._resolve()
        except (BridgeError, OSError) as e:
            raise self._fail(ScenarioState.RESOLVING.value, e) from e
        self._resolved = resolved
        self._check_cancelled(ScenarioState.RESOLVING.value)

        self._set_state(ScenarioState.BUILDING)
        try:
            result = await self._build_session.build(
                self._build_args(resolved.target),
                configuration=self._config.configuration,
                cwd=self._task.cwd,
                env=self._task.env or None,
                restore=self._config.restore,
                timeout=self._config.build_timeout,
            )
        except BridgeError as e:
            raise self._fail(ScenarioState.BUILDING.value, e) from e
        self._build_result = result
        if result.cancelled or self._cancel_requested:
            raise self._cancelled(ScenarioState.BUILDING.value)
        if not result.success:
            logger.error(result.to_summary())
            failed = BuildFailed(result.exit_code, result.output, result.diagnostics)
            raise self._fail(ScenarioState.BUILDING.value, failed) from failed

        self._set_state(ScenarioState.INTERPRETING)
        try:
            artifact = interpret(
                result.output_lines,
                resolved.project_root,
                startup_name=resolved.startup_name,
                configuration=task_configuration(self._task.args[1:]) or self._config.configuration,
            )
        except BridgeError as e:
            raise self._fail(ScenarioState.INTERPRETING.value, e) from e
        self._artifact = artifact
        logger.info(f"Build artifact: {artifact.path} ({artifact.source.value})")

        request = self._make_launch_request(resolved, artifact)
        self._check_cancelled(ScenarioState.INTERPRETING.value)
        if self._debugger is not None:
            try:
                await self._debugger.start(request)
            except BridgeError as e:
                raise self._fail(STEP_LAUNCHING, e) from e
            if self._cancel_requested:
                # cancel() arrived while the adapter was starting
                await self._debugger.stop()
                raise self._cancelled(STEP_LAUNCHING)

        self._launch_request = request
        self._set_state(ScenarioState.READY)
        return request

    async def cancel(self) -> bool:
        """Cancel the scenario, killing an in-flight build.

        Returns:
            True if the scenario was still running
        """
        if self.is_finished:
            return False
        self._cancel_requested = True
        if self._state == ScenarioState.BUILDING:
            await self._build_session.cancel()
        elif self._state == ScenarioState.IDLE:
            self._set_state(ScenarioState.CANCELLED)
        return True

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "state": self._state.value,
            "task": self._task.to_dict(),
        }
        if self._resolved is not None:
            result["resolved"] = self._resolved.to_dict()
        if self._build_result is not None:
            result["build"] = self._build_result.to_dict()
        if self._artifact is not None:
            result["artifact"] = self._artifact.to_dict()
        if self._launch_request is not None:
            result["launchRequest"] = self._launch_request.to_dict()
        if self._failure is not None:
            result["failure"] = self._failure.to_dict()
        return result


class DebugScenarioBuilder:
    """Creates scenarios for interceptable tasks."""

    def __init__(
        self,
        build_session: BuildSession,
        debugger: DebugSession | None = None,
        config: BridgeConfig | None = None,
        classifier: Classifier = classify_project,
    ):
        self._build_session = build_session
        self._debugger = debugger
        self._config = config
        self._classifier = classifier

    def create(self, task: BuildTask) -> DebugScenario | None:
        """Build a scenario for ``task``, or None if the task is not a dotnet run/build."""
        rewrite = rewrite_task(task)
        if not rewrite.intercepted:
            logger.debug(f"Task not intercepted: {task.command} {' '.join(task.args)}")
            return None
        return DebugScenario(
            rewrite.task,
            self._build_session,
            program_args=rewrite.program_args,
            debugger=self._debugger,
            config=self._config,
            classifier=self._classifier,
        )
