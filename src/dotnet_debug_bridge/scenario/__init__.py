"""Debug scenarios: task interception and the build-to-launch state machine."""

from .builder import DebugScenario, DebugScenarioBuilder, ScenarioFailure, ScenarioState
from .tasks import BuildTarget, BuildTask, TargetKind, TaskRewrite, locate_build_target, rewrite_task

__all__ = [
    "BuildTarget",
    "BuildTask",
    "DebugScenario",
    "DebugScenarioBuilder",
    "ScenarioFailure",
    "ScenarioState",
    "TargetKind",
    "TaskRewrite",
    "locate_build_target",
    "rewrite_task",
]
