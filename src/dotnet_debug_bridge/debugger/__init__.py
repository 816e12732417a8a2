"""Debugger collaborator: launch requests, adapter discovery and the DAP client."""

from .client import DAPClient
from .discovery import DebuggerBinaryCache, debugger_cache, find_debugger
from .launch import LAUNCH_SCHEMA, ConsoleKind, LaunchRequest, RequestKind
from .protocol import DAPEvent, DAPRequest, DAPResponse
from .session import DebugSession, DebugState

__all__ = [
    "LAUNCH_SCHEMA",
    "ConsoleKind",
    "DAPClient",
    "DAPEvent",
    "DAPRequest",
    "DAPResponse",
    "DebugSession",
    "DebugState",
    "DebuggerBinaryCache",
    "LaunchRequest",
    "RequestKind",
    "debugger_cache",
    "find_debugger",
]
