"""DAP Protocol message types and serialization."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any


@dataclass
class DAPRequest:
    """DAP request message."""
    seq: int
    command: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "seq": self.seq,
            "type": "request",
            "command": self.command,
        }
        if self.arguments:
            d["arguments"] = self.arguments
        return d

    def to_bytes(self) -> bytes:
        content = json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")
        header = f"Content-Length: {len(content)}\r\n\r\n".encode("ascii")
        return header + content


@dataclass
class DAPResponse:
    """DAP response message."""
    seq: int
    request_seq: int
    success: bool
    command: str
    message: str | None = None
    body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DAPResponse:
        return cls(
            seq=data["seq"],
            request_seq=data["request_seq"],
            success=data["success"],
            command=data["command"],
            message=data.get("message"),
            body=data.get("body") or {},
        )


@dataclass
class DAPEvent:
    """DAP event message."""
    seq: int
    event: str
    body: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DAPEvent:
        return cls(
            seq=data["seq"],
            event=data["event"],
            body=data.get("body") or {},
        )


@dataclass
class DAPReverseRequest:
    """Request sent by the adapter to the client (e.g. runInTerminal)."""
    seq: int
    command: str
    arguments: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DAPReverseRequest:
        return cls(
            seq=data["seq"],
            command=data["command"],
            arguments=data.get("arguments") or {},
        )


def parse_message(data: dict[str, Any]) -> DAPResponse | DAPEvent | DAPReverseRequest:
    """Parse a DAP message from dict."""
    msg_type = data.get("type")
    if msg_type == "response":
        return DAPResponse.from_dict(data)
    elif msg_type == "event":
        return DAPEvent.from_dict(data)
    elif msg_type == "request":
        return DAPReverseRequest.from_dict(data)
    else:
        raise ValueError(f"Unknown message type: {msg_type}")


# DAP commands used to start and end a session
class Commands:
    INITIALIZE = "initialize"
    LAUNCH = "launch"
    ATTACH = "attach"
    CONFIGURATION_DONE = "configurationDone"
    SET_EXCEPTION_BREAKPOINTS = "setExceptionBreakpoints"
    DISCONNECT = "disconnect"
    RUN_IN_TERMINAL = "runInTerminal"


# DAP events the session reacts to
class Events:
    INITIALIZED = "initialized"
    OUTPUT = "output"
    PROCESS = "process"
    EXITED = "exited"
    TERMINATED = "terminated"
