"""Launch/attach request model for the coreclr debug adapter."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from ..errors import LaunchRejected

ADAPTER_TYPE = "coreclr"


class RequestKind(str, Enum):
    """DAP request used to start the session."""

    LAUNCH = "launch"
    ATTACH = "attach"


class ConsoleKind(str, Enum):
    """Where the debuggee's console goes."""

    INTEGRATED_TERMINAL = "integratedTerminal"
    EXTERNAL_TERMINAL = "externalTerminal"
    INTERNAL_CONSOLE = "internalConsole"


# Launch configuration schema understood by vsdbg / netcoredbg
LAUNCH_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "type": {
            "type": "string",
            "enum": [ADAPTER_TYPE],
            "description": "Type of debugger",
            "default": ADAPTER_TYPE,
        },
        "request": {
            "type": "string",
            "enum": [k.value for k in RequestKind],
            "description": "Launch or attach to a running process",
        },
        "name": {"type": "string", "description": "The name of the debug session"},
        "program": {
            "type": "string",
            "description": "Path to the .NET executable or DLL to debug",
        },
        "args": {
            "type": "array",
            "items": {"type": "string"},
            "description": "Command line arguments to pass to the program",
        },
        "cwd": {"type": "string", "description": "Working directory of the program"},
        "env": {
            "type": "object",
            "additionalProperties": {"type": "string"},
            "description": "Environment variables passed to the program",
        },
        "stopAtEntry": {
            "type": "boolean",
            "description": "Stop at the first line of the program",
            "default": False,
        },
        "console": {
            "type": "string",
            "enum": [k.value for k in ConsoleKind],
            "description": "Which console to use",
        },
        "processId": {
            "type": ["string", "integer"],
            "description": "Process ID to attach to (for attach requests)",
        },
    },
}


@dataclass
class LaunchRequest:
    """Protocol-facing description of how to start or attach a debuggee."""

    kind: RequestKind = RequestKind.LAUNCH
    program: str | None = None
    cwd: str | None = None
    args: list[str] = field(default_factory=list)
    env: dict[str, str] = field(default_factory=dict)
    stop_at_entry: bool = False
    console: ConsoleKind = ConsoleKind.INTEGRATED_TERMINAL
    process_id: int | None = None
    name: str | None = None

    def validate(self) -> None:
        """Check the request is complete for its kind.

        Raises:
            LaunchRejected: If a required field is missing
        """
        if self.kind == RequestKind.LAUNCH and not self.program:
            raise LaunchRejected("'program' is required for launch requests")
        if self.kind == RequestKind.ATTACH and self.process_id is None:
            raise LaunchRejected("'processId' is required for attach requests")

    def to_configuration(self) -> dict[str, Any]:
        """Render the adapter configuration (camelCase keys)."""
        self.validate()
        config: dict[str, Any] = {
            "type": ADAPTER_TYPE,
            "request": self.kind.value,
            "console": self.console.value,
        }
        if self.name:
            config["name"] = self.name
        if self.kind == RequestKind.ATTACH:
            config["processId"] = self.process_id
            return config

        config["program"] = self.program
        config["cwd"] = self.cwd or os.path.dirname(self.program or "")
        config["args"] = list(self.args)
        config["env"] = dict(self.env)
        config["stopAtEntry"] = self.stop_at_entry
        return config

    @classmethod
    def from_configuration(cls, config: dict[str, Any]) -> LaunchRequest:
        """Build a request from a user-provided configuration.

        Missing "request" means launch, missing "console" means the
        integrated terminal.

        Raises:
            LaunchRejected: If the configuration is invalid
        """
        try:
            kind = RequestKind(config.get("request") or RequestKind.LAUNCH.value)
            console = ConsoleKind(config.get("console") or ConsoleKind.INTEGRATED_TERMINAL.value)
        except ValueError as e:
            raise LaunchRejected(f"Invalid launch configuration: {e}") from e

        process_id = config.get("processId")
        if process_id is not None:
            try:
                process_id = int(process_id)
            except (TypeError, ValueError) as e:
                raise LaunchRejected(f"Invalid processId: {process_id!r}") from e

        request = cls(
            kind=kind,
            program=config.get("program"),
            cwd=config.get("cwd"),
            args=[str(a) for a in config.get("args") or []],
            env={str(k): str(v) for k, v in (config.get("env") or {}).items()},
            stop_at_entry=bool(config.get("stopAtEntry", False)),
            console=console,
            process_id=process_id,
            name=config.get("name"),
        )
        request.validate()
        return request

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return self.to_configuration()
