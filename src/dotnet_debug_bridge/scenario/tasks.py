"""Build task interception.

A debug scenario starts from the command an editor would run for a task,
e.g. ``dotnet run --project src/App/App.csproj -- --port 5000``. The debugger
has to own the program's process, so a run becomes a build and the program
arguments after ``--`` move to the launch request.
"""

from __future__ import annotations

import logging
import os
import shlex
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any

from ..build.policy import (
    FLAG_OPTIONS,
    PROJECT_FILE_SUFFIXES,
    PROPERTY_PREFIXES,
    VALUE_OPTIONS,
    BuildCommand,
    is_dotnet_command,
)
from ..utils.project import find_project_file, find_solution_file

logger = logging.getLogger(__name__)

RUN_ALIASES: frozenset[str] = frozenset({BuildCommand.RUN.value, "r"})
INTERCEPTED_COMMANDS: frozenset[str] = RUN_ALIASES | {BuildCommand.BUILD.value}

# dotnet run options that make no sense for a build
RUN_ONLY_VALUE_OPTIONS: frozenset[str] = frozenset({"--launch-profile", "-lp"})
RUN_ONLY_FLAGS: frozenset[str] = frozenset({"--no-launch-profile", "--no-build"})

PROGRAM_ARGS_SEPARATOR = "--"
PROJECT_OPTION = "--project"
CONFIGURATION_OPTIONS: tuple[str, ...] = ("-c", "--configuration")
SOLUTION_SUFFIXES: tuple[str, ...] = (".sln", ".slnx")


@dataclass
class BuildTask:
    """A declared build command."""

    command: str
    args: list[str] = field(default_factory=list)
    cwd: str | None = None
    env: dict[str, str] = field(default_factory=dict)
    label: str | None = None

    @classmethod
    def from_command_line(
        cls,
        command_line: str,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
        label: str | None = None,
    ) -> BuildTask:
        """Split a shell-style command line into a task.

        Raises:
            ValueError: If the command line is empty or badly quoted
        """
        parts = shlex.split(command_line, posix=os.name != "nt")
        if not parts:
            raise ValueError("Empty task command")
        return cls(command=parts[0], args=parts[1:], cwd=cwd, env=dict(env or {}), label=label)

    @property
    def subcommand(self) -> str | None:
        """The dotnet verb (build, run, ...), if any."""
        return self.args[0] if self.args and not self.args[0].startswith("-") else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "command": self.command,
            "args": list(self.args),
            "cwd": self.cwd,
            "env": dict(self.env),
            "label": self.label,
        }


@dataclass(frozen=True)
class TaskRewrite:
    """Outcome of intercepting a task."""

    task: BuildTask
    intercepted: bool
    program_args: tuple[str, ...] = ()


def split_program_args(args: list[str]) -> tuple[list[str], list[str]]:
    """Split arguments at the first ``--`` into (tool args, program args)."""
    if PROGRAM_ARGS_SEPARATOR in args:
        index = args.index(PROGRAM_ARGS_SEPARATOR)
        return args[:index], args[index + 1:]
    return list(args), []


def task_configuration(args: list[str]) -> str | None:
    """The ``-c``/``--configuration`` value a task sets, if any."""
    tool_args, _ = split_program_args(args)
    for i, arg in enumerate(tool_args):
        for option in CONFIGURATION_OPTIONS:
            if arg == option:
                if i + 1 < len(tool_args) and not tool_args[i + 1].startswith("-"):
                    return tool_args[i + 1]
            elif arg.startswith((f"{option}=", f"{option}:")):
                return arg[len(option) + 1:] or None
    return None


def _drop_run_only_options(args: list[str]) -> list[str]:
    kept: list[str] = []
    skip_value = False
    for arg in args:
        if skip_value:
            skip_value = False
            continue
        key = arg.split("=", 1)[0]
        if key in RUN_ONLY_FLAGS:
            continue
        if key in RUN_ONLY_VALUE_OPTIONS:
            # "--launch-profile X" consumes the next argument, "--launch-profile=X" does not
            skip_value = "=" not in arg
            continue
        kept.append(arg)
    return kept


def _project_option_to_positional(args: list[str]) -> list[str]:
    """Turn ``--project X`` into ``X``; dotnet build only takes its target positionally."""
    converted: list[str] = []
    i = 0
    while i < len(args):
        arg = args[i]
        i += 1
        key, _, value = arg.partition("=")
        if key != PROJECT_OPTION:
            converted.append(arg)
            continue
        if not value and i < len(args):
            value = args[i]
            i += 1
        if value:
            converted.insert(0, value)
    return converted


def rewrite_task(task: BuildTask) -> TaskRewrite:
    """Turn a run task into the equivalent build task.

    Only dotnet run/r/build tasks are intercepted. Everything else (test,
    clean, restore, publish, other programs) comes back unchanged with
    ``intercepted=False``.
    """
    subcommand = task.subcommand
    if not is_dotnet_command(task.command) or subcommand not in INTERCEPTED_COMMANDS:
        return TaskRewrite(task=task, intercepted=False)

    tool_args, program_args = split_program_args(task.args[1:])
    if subcommand in RUN_ALIASES:
        tool_args = _project_option_to_positional(_drop_run_only_options(tool_args))
        logger.debug(f"Rewrote '{subcommand}' task to build: {tool_args}")

    rewritten = replace(task, args=[BuildCommand.BUILD.value, *tool_args])
    return TaskRewrite(task=rewritten, intercepted=True, program_args=tuple(program_args))


class TargetKind(str, Enum):
    """What a build task builds."""

    SOLUTION = "solution"
    PROJECT = "project"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class BuildTarget:
    """The solution, project or directory a build task operates on."""

    kind: TargetKind
    path: str
    explicit: bool

    @property
    def base_dir(self) -> str:
        return self.path if self.kind == TargetKind.DIRECTORY else os.path.dirname(self.path)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "path": self.path, "explicit": self.explicit}


def _is_solution(path: str) -> bool:
    return path.lower().endswith(SOLUTION_SUFFIXES)


def _is_project(path: str) -> bool:
    return path.lower().endswith(PROJECT_FILE_SUFFIXES)


def _explicit_target(tool_args: list[str], cwd: str) -> BuildTarget | None:
    positional: list[str] = []
    project_option: str | None = None
    i = 0
    while i < len(tool_args):
        arg = tool_args[i]
        next_arg = tool_args[i + 1] if i + 1 < len(tool_args) else None
        i += 1
        if arg.lower().startswith(PROPERTY_PREFIXES):
            continue
        if not arg.startswith("-"):
            positional.append(arg)
            continue

        key, value, has_inline_value = arg, None, False
        for separator in ("=", ":"):
            if separator in arg:
                key, value = arg.split(separator, 1)
                has_inline_value = True
                break
        if key == PROJECT_OPTION:
            if has_inline_value:
                project_option = value
            elif next_arg is not None:
                project_option = next_arg
                i += 1
            continue
        if key in VALUE_OPTIONS and not has_inline_value and next_arg is not None:
            if next_arg.startswith("-"):
                continue
            if key in FLAG_OPTIONS and next_arg.lower() not in ("true", "false"):
                continue
            i += 1

    for arg in positional:
        if _is_solution(arg):
            return BuildTarget(TargetKind.SOLUTION, os.path.abspath(os.path.join(cwd, arg)), True)

    for arg in [*positional, *([project_option] if project_option else [])]:
        path = os.path.abspath(os.path.join(cwd, arg))
        if _is_project(arg):
            return BuildTarget(TargetKind.PROJECT, path, True)
        if os.path.isdir(path):
            project = find_project_file(path)
            if project is not None:
                return BuildTarget(TargetKind.PROJECT, str(project), True)
            return BuildTarget(TargetKind.DIRECTORY, path, True)
    return None


def locate_build_target(task: BuildTask, boundary: str | None = None) -> BuildTarget:
    """Work out what ``task`` builds.

    Order: an explicit .sln/.slnx argument, an explicit project file (or
    ``--project``), a project file in the task's cwd, a solution in the cwd
    or its ancestors (not above ``boundary``), and finally the cwd itself.
    """
    cwd = os.path.abspath(task.cwd or os.getcwd())
    tool_args, _ = split_program_args(task.args[1:] if task.subcommand else task.args)

    target = _explicit_target(tool_args, cwd)
    if target is not None:
        return target

    project = find_project_file(cwd)
    if project is not None:
        return BuildTarget(TargetKind.PROJECT, str(project), False)

    solution = find_solution_file(cwd, boundary)
    if solution is not None:
        return BuildTarget(TargetKind.SOLUTION, str(solution), False)

    logger.info(f"No solution or project file found from {cwd}, building the directory")
    return BuildTarget(TargetKind.DIRECTORY, str(Path(cwd)), False)
