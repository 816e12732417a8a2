"""DAP Client - communicates with the coreclr debug adapter process."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from typing import Any

from .launch import ADAPTER_TYPE, LaunchRequest, RequestKind
from .protocol import (
    Commands,
    DAPEvent,
    DAPRequest,
    DAPResponse,
    DAPReverseRequest,
    parse_message,
)

logger = logging.getLogger(__name__)

# Limits for security
MAX_CONTENT_LENGTH = 10_000_000  # 10MB max DAP message size
ADAPTER_ARGS = ("--interpreter=vscode",)


class DAPClient:
    """Async DAP client for a vsdbg/netcoredbg adapter."""

    def __init__(self, adapter_path: str):
        self.adapter_path = adapter_path
        self._seq = 0
        self._request_lock = asyncio.Lock()  # Protect sequence number
        self._pending: dict[int, asyncio.Future[DAPResponse]] = {}
        self._event_handlers: dict[str, list[Callable[[DAPEvent], None]]] = {}
        self._process: asyncio.subprocess.Process | None = None
        self._read_task: asyncio.Task | None = None
        self._capabilities: dict[str, Any] = {}

    @property
    def is_running(self) -> bool:
        """Check if the adapter process is alive."""
        return self._process is not None and self._process.returncode is None

    @property
    def capabilities(self) -> dict[str, Any]:
        return dict(self._capabilities)

    async def start(self) -> None:
        """Start the adapter process."""
        if self.is_running:
            return

        logger.info(f"Starting debug adapter: {self.adapter_path}")
        self._process = await asyncio.create_subprocess_exec(
            self.adapter_path,
            *ADAPTER_ARGS,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        self._read_task = asyncio.create_task(self._read_loop())
        logger.info(f"Debug adapter started with PID {self._process.pid}")

    async def stop(self) -> None:
        """Stop the adapter process."""
        if self._read_task:
            self._read_task.cancel()
            try:
                await self._read_task
            except asyncio.CancelledError:
                pass
            self._read_task = None

        if self._process:
            pid = self._process.pid
            if self._process.returncode is None:
                try:
                    self._process.terminate()
                    await asyncio.wait_for(self._process.wait(), timeout=5.0)
                except ProcessLookupError:
                    pass
                except asyncio.TimeoutError:
                    logger.warning(f"Adapter {pid} did not terminate, killing...")
                    self._process.kill()
                    try:
                        await asyncio.wait_for(self._process.wait(), timeout=2.0)
                    except asyncio.TimeoutError:
                        logger.exception(f"Failed to kill adapter {pid}")
            self._process = None

        self._cancel_pending()
        logger.info("Debug adapter stopped")

    def _cancel_pending(self) -> None:
        for future in self._pending.values():
            if not future.done():
                future.cancel()
        self._pending.clear()

    def on_event(self, event_name: str, handler: Callable[[DAPEvent], None]) -> None:
        """Register event handler."""
        self._event_handlers.setdefault(event_name, []).append(handler)

    def off_event(self, event_name: str, handler: Callable[[DAPEvent], None]) -> None:
        """Unregister event handler."""
        handlers = self._event_handlers.get(event_name, [])
        if handler in handlers:
            handlers.remove(handler)

    async def send_request(
        self, command: str, arguments: dict[str, Any] | None = None, timeout: float = 30.0
    ) -> DAPResponse:
        """Send DAP request and wait for response."""
        if not self.is_running:
            raise RuntimeError("DAP client not running")

        # Atomically increment seq and register future
        async with self._request_lock:
            self._seq += 1
            seq = self._seq
            future: asyncio.Future[DAPResponse] = asyncio.get_running_loop().create_future()
            self._pending[seq] = future

        request = DAPRequest(seq=seq, command=command, arguments=arguments or {})
        await self._write(request.to_bytes(), f">>> {command}: {request.arguments}")

        try:
            return await asyncio.wait_for(future, timeout=timeout)
        except asyncio.TimeoutError:
            self._pending.pop(seq, None)
            raise TimeoutError(f"Request {command} timed out after {timeout}s") from None

    async def _write(self, data: bytes, description: str) -> None:
        if not self._process or not self._process.stdin:
            raise RuntimeError("Process not running")
        logger.debug(description)
        self._process.stdin.write(data)
        await self._process.stdin.drain()

    async def _reject_reverse_request(self, request: DAPReverseRequest) -> None:
        """Answer an adapter-initiated request we do not support."""
        async with self._request_lock:
            self._seq += 1
            seq = self._seq
        body = {
            "seq": seq,
            "type": "response",
            "request_seq": request.seq,
            "success": False,
            "command": request.command,
            "message": f"{request.command} is not supported by this client",
        }
        content = json.dumps(body, separators=(",", ":")).encode("utf-8")
        header = f"Content-Length: {len(content)}\r\n\r\n".encode("ascii")
        await self._write(header + content, f">>> reject reverse request {request.command}")

    async def _read_loop(self) -> None:
        """Read messages from the adapter."""
        assert self._process and self._process.stdout

        try:
            while True:
                try:
                    header_line = await self._process.stdout.readline()
                    if not header_line:
                        logger.warning("Debug adapter stdout closed")
                        break

                    header = header_line.decode("utf-8").strip()
                    if not header.startswith("Content-Length:"):
                        continue

                    content_length = int(header.split(":")[1].strip())
                    if content_length < 0 or content_length > MAX_CONTENT_LENGTH:
                        logger.error(f"Invalid Content-Length: {content_length}")
                        raise ValueError(f"Invalid Content-Length: {content_length}")

                    # Blank separator line
                    await self._process.stdout.readline()

                    content = await self._process.stdout.readexactly(content_length)
                    data = json.loads(content.decode("utf-8"))

                    reverse = self._handle_message(data)
                    if reverse is not None:
                        await self._reject_reverse_request(reverse)

                except asyncio.CancelledError:
                    break
                except Exception:
                    logger.exception("Error reading DAP message")
                    break
        finally:
            # Fail anything still waiting, the adapter is gone
            self._cancel_pending()

    def _handle_message(self, data: dict[str, Any]) -> DAPReverseRequest | None:
        """Dispatch one incoming message. Returns reverse requests for the caller."""
        try:
            message = parse_message(data)
        except (KeyError, ValueError):
            logger.exception(f"Error handling message, data: {data}")
            return None

        if isinstance(message, DAPResponse):
            logger.debug(f"<<< Response {message.command}: success={message.success}")
            future = self._pending.pop(message.request_seq, None)
            if future and not future.done():
                future.set_result(message)
            return None

        if isinstance(message, DAPEvent):
            logger.debug(f"<<< Event {message.event}: {message.body}")
            for handler in list(self._event_handlers.get(message.event, [])):
                try:
                    handler(message)
                except Exception:
                    logger.exception("Event handler error")
            return None

        logger.debug(f"<<< Reverse request {message.command}")
        return message

    # High-level DAP commands

    async def initialize(self) -> dict[str, Any]:
        """Initialize DAP session."""
        response = await self.send_request(
            Commands.INITIALIZE,
            {
                "clientID": "dotnet-debug-bridge",
                "clientName": ".NET Debug Bridge",
                "adapterID": ADAPTER_TYPE,
                "pathFormat": "path",
                "linesStartAt1": True,
                "columnsStartAt1": True,
                "supportsVariableType": True,
                "supportsRunInTerminalRequest": False,
                "supportsProgressReporting": False,
            },
        )
        if response.success:
            self._capabilities = response.body
        return self._capabilities

    async def submit(self, request: LaunchRequest) -> DAPResponse:
        """Send the launch or attach request described by ``request``."""
        command = Commands.ATTACH if request.kind == RequestKind.ATTACH else Commands.LAUNCH
        return await self.send_request(command, request.to_configuration())

    async def set_exception_breakpoints(
        self, filters: list[str] | None = None
    ) -> DAPResponse:
        """Set exception breakpoints."""
        return await self.send_request(
            Commands.SET_EXCEPTION_BREAKPOINTS,
            {"filters": filters or []},
        )

    async def configuration_done(self) -> DAPResponse:
        """Signal that configuration is complete."""
        return await self.send_request(Commands.CONFIGURATION_DONE)

    async def disconnect(self, terminate: bool = True) -> DAPResponse:
        """Disconnect from debuggee."""
        return await self.send_request(
            Commands.DISCONNECT, {"terminateDebuggee": terminate}
        )
