"""DAP Event types and constants."""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class OutputCategory(str, Enum):
    """Output event categories."""
    CONSOLE = "console"
    IMPORTANT = "important"
    STDOUT = "stdout"
    STDERR = "stderr"
    TELEMETRY = "telemetry"


@dataclass
class OutputEventBody:
    """Body of output event."""
    category: OutputCategory
    output: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OutputEventBody":
        try:
            category = OutputCategory(data.get("category", "console"))
        except ValueError:
            category = OutputCategory.CONSOLE
        return cls(category=category, output=data.get("output", ""))


@dataclass
class ProcessEventBody:
    """Body of process event (debuggee started)."""
    name: str
    process_id: int | None = None
    start_method: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProcessEventBody":
        return cls(
            name=data.get("name", ""),
            process_id=data.get("systemProcessId"),
            start_method=data.get("startMethod"),
        )


@dataclass
class ExitedEventBody:
    """Body of exited event."""
    exit_code: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ExitedEventBody":
        return cls(exit_code=data.get("exitCode", 0))
