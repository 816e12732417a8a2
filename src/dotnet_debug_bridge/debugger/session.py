"""Debug session - submits a LaunchRequest to the debug adapter."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from ..errors import DebuggerUnavailable, LaunchRejected
from .client import DAPClient
from .discovery import debugger_cache
from .events import ExitedEventBody, OutputEventBody, ProcessEventBody
from .launch import LaunchRequest
from .protocol import DAPEvent, Events

logger = logging.getLogger(__name__)

# Output buffer limits (security: prevent DoS)
MAX_OUTPUT_BYTES = 10_000_000  # 10MB total buffer
MAX_OUTPUT_ENTRY = 100_000  # 100KB per entry
INITIALIZED_TIMEOUT = 10.0


class DebugState(str, Enum):
    """Debug session states."""
    IDLE = "idle"  # No adapter running
    INITIALIZING = "initializing"  # Adapter started, handshake in progress
    RUNNING = "running"  # Debuggee launched or attached
    TERMINATED = "terminated"  # Debuggee ended


@dataclass
class SessionState:
    """Observable state of one debug session."""
    state: DebugState = DebugState.IDLE
    request: LaunchRequest | None = None
    adapter_path: str | None = None
    process_id: int | None = None
    exit_code: int | None = None
    output_buffer: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "state": self.state.value,
            "request": self.request.to_dict() if self.request else None,
            "adapterPath": self.adapter_path,
            "processId": self.process_id,
            "exitCode": self.exit_code,
            "outputLines": len(self.output_buffer),
        }


ClientFactory = Callable[[str], DAPClient]


class DebugSession:
    """Owns one adapter process and the debuggee it launches."""

    def __init__(
        self,
        debugger_path: str | None = None,
        cache_dir: str | None = None,
        client_factory: ClientFactory = DAPClient,
    ):
        self._debugger_path = debugger_path
        self._cache_dir = cache_dir
        self._client_factory = client_factory
        self._client: DAPClient | None = None
        self._state = SessionState()
        self._state_listeners: list[Callable[[DebugState], None]] = []
        self._initialized_event = asyncio.Event()
        self._output_bytes = 0

    @property
    def state(self) -> SessionState:
        """Get current session state."""
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state.state not in (DebugState.IDLE, DebugState.TERMINATED)

    def on_state_change(self, listener: Callable[[DebugState], None]) -> None:
        """Register state change listener."""
        self._state_listeners.append(listener)

    def _set_state(self, new_state: DebugState) -> None:
        """Update state and notify listeners."""
        old_state = self._state.state
        self._state.state = new_state
        if old_state != new_state:
            logger.info(f"Debug state changed: {old_state.value} -> {new_state.value}")
            for listener in self._state_listeners:
                try:
                    listener(new_state)
                except Exception:
                    logger.exception("State listener error")

    def _register_event_handlers(self, client: DAPClient) -> None:
        client.on_event(Events.INITIALIZED, self._on_initialized)
        client.on_event(Events.OUTPUT, self._on_output)
        client.on_event(Events.PROCESS, self._on_process)
        client.on_event(Events.EXITED, self._on_exited)
        client.on_event(Events.TERMINATED, self._on_terminated)

    def _on_initialized(self, event: DAPEvent) -> None:
        logger.info("Debug adapter initialized")
        self._initialized_event.set()

    def _on_process(self, event: DAPEvent) -> None:
        body = ProcessEventBody.from_dict(event.body)
        self._state.process_id = body.process_id
        logger.info(f"Debuggee started: {body.name} (pid {body.process_id})")

    def _on_exited(self, event: DAPEvent) -> None:
        self._state.exit_code = ExitedEventBody.from_dict(event.body).exit_code
        logger.info(f"Debuggee exited with code {self._state.exit_code}")

    def _on_terminated(self, event: DAPEvent) -> None:
        self._set_state(DebugState.TERMINATED)
        logger.info("Debug session terminated")

    def _on_output(self, event: DAPEvent) -> None:
        output = OutputEventBody.from_dict(event.body).output

        if len(output) > MAX_OUTPUT_ENTRY:
            output = output[:MAX_OUTPUT_ENTRY] + "... [truncated]"

        self._state.output_buffer.append(output)
        self._output_bytes += len(output)

        while self._output_bytes > MAX_OUTPUT_BYTES and self._state.output_buffer:
            removed = self._state.output_buffer.pop(0)
            self._output_bytes -= len(removed)

    async def start(self, request: LaunchRequest) -> dict[str, Any]:
        """Start the adapter and submit ``request``.

        Sequence: initialize, wait for the initialized event, launch or
        attach, configurationDone.

        Raises:
            DebuggerUnavailable: If no adapter binary is found
            LaunchRejected: If the request is invalid or the adapter refuses it
        """
        request.validate()
        if self.is_active:
            logger.info("Stopping existing debug session before starting a new one")
            await self.stop()

        adapter_path = debugger_cache.get(self._debugger_path, self._cache_dir)
        client = self._client_factory(adapter_path)
        self._client = client
        self._register_event_handlers(client)
        self._state = SessionState(request=request, adapter_path=adapter_path)
        self._initialized_event.clear()

        try:
            await client.start()
        except OSError as e:
            self._client = None
            raise DebuggerUnavailable(f"Failed to start {adapter_path}: {e}") from e

        self._set_state(DebugState.INITIALIZING)
        try:
            await client.initialize()
            try:
                await asyncio.wait_for(self._initialized_event.wait(), timeout=INITIALIZED_TIMEOUT)
            except asyncio.TimeoutError:
                raise LaunchRejected("Timeout waiting for debug adapter initialization") from None

            await client.set_exception_breakpoints([])
            response = await client.submit(request)
            if not response.success:
                raise LaunchRejected(
                    f"{request.kind.value} failed: {response.message or 'adapter refused the request'}"
                )
            await client.configuration_done()
        except (LaunchRejected, TimeoutError, RuntimeError) as e:
            await self._shutdown_client()
            self._set_state(DebugState.IDLE)
            if isinstance(e, LaunchRejected):
                raise
            raise LaunchRejected(str(e)) from e

        self._set_state(DebugState.RUNNING)
        return {"success": True, "request": request.to_dict(), "adapter": adapter_path}

    async def _shutdown_client(self) -> None:
        client = self._client
        self._client = None
        if client is None:
            return
        if client.is_running:
            try:
                await client.disconnect(terminate=True)
            except (RuntimeError, TimeoutError, asyncio.CancelledError) as e:
                logger.warning(f"Error during disconnect: {e}")
        await client.stop()

    async def stop(self) -> dict[str, Any]:
        """Stop debug session."""
        await self._shutdown_client()
        self._set_state(DebugState.IDLE)
        self._initialized_event.clear()
        self._state = SessionState()
        self._output_bytes = 0
        return {"success": True}

    def get_output(self, clear: bool = False) -> list[str]:
        """Return captured debuggee output."""
        output = list(self._state.output_buffer)
        if clear:
            self._state.output_buffer.clear()
            self._output_bytes = 0
        return output
