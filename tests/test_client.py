"""Tests for DAP client."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from dotnet_debug_bridge.debugger.client import ADAPTER_ARGS, DAPClient
from dotnet_debug_bridge.debugger.launch import LaunchRequest, RequestKind
from dotnet_debug_bridge.debugger.protocol import DAPEvent, DAPResponse, DAPReverseRequest


def capture_requests(client):
    """Replace send_request with a recorder returning successful responses."""
    calls = []

    async def mock_send(command, arguments=None, timeout=30.0):
        calls.append((command, arguments))
        return DAPResponse(seq=len(calls), request_seq=len(calls), success=True, command=command)

    client.send_request = mock_send
    return calls


class TestDAPClientInit:
    """Tests for DAPClient initialization."""

    def test_init_state(self):
        """Test initial state after init."""
        client = DAPClient("/opt/vsdbg/vsdbg")

        assert client.adapter_path == "/opt/vsdbg/vsdbg"
        assert client._seq == 0
        assert client._pending == {}
        assert client.capabilities == {}
        assert not client.is_running

    def test_is_running_follows_returncode(self):
        """Test is_running reflects the adapter process."""
        client = DAPClient("/path")
        client._process = MagicMock(returncode=None)
        assert client.is_running

        client._process.returncode = 0
        assert not client.is_running


class TestDAPClientStart:
    """Tests for adapter process startup."""

    @pytest.mark.asyncio
    async def test_start_uses_vscode_interpreter(self):
        """Test the adapter is spawned directly with the vscode interpreter."""
        process = AsyncMock()
        process.returncode = None
        process.stdout.readline = AsyncMock(return_value=b"")

        with patch("asyncio.create_subprocess_exec", return_value=process) as mock_exec:
            client = DAPClient("/opt/vsdbg/vsdbg")
            await client.start()
            await asyncio.sleep(0)

        args = mock_exec.call_args[0]
        assert args == ("/opt/vsdbg/vsdbg", *ADAPTER_ARGS)
        assert client.is_running

    @pytest.mark.asyncio
    async def test_send_request_requires_running_adapter(self):
        """Test requests fail before the adapter starts."""
        client = DAPClient("/path")

        with pytest.raises(RuntimeError, match="not running"):
            await client.send_request("initialize")


class TestDAPClientMessages:
    """Tests for message dispatch."""

    def test_event_handlers_called(self, sample_dap_event):
        """Test registered handlers receive events."""
        client = DAPClient("/path")
        handler = MagicMock()
        client.on_event("output", handler)

        assert client._handle_message(sample_dap_event) is None

        received = handler.call_args[0][0]
        assert isinstance(received, DAPEvent)
        assert received.body["category"] == "stdout"

    def test_off_event_removes_handler(self, sample_dap_event):
        """Test unregistered handlers are not called."""
        client = DAPClient("/path")
        handler = MagicMock()
        client.on_event("output", handler)
        client.off_event("output", handler)

        client._handle_message(sample_dap_event)

        handler.assert_not_called()

    def test_handler_exception_doesnt_crash(self, sample_dap_event):
        """Test that handler exceptions don't stop dispatch."""
        client = DAPClient("/path")
        second = MagicMock()
        client.on_event("output", MagicMock(side_effect=Exception("Handler error")))
        client.on_event("output", second)

        client._handle_message(sample_dap_event)

        second.assert_called_once()

    @pytest.mark.asyncio
    async def test_response_resolves_pending_future(self, sample_dap_response):
        """Test responses complete the matching request."""
        client = DAPClient("/path")
        future = asyncio.get_running_loop().create_future()
        client._pending[1] = future

        client._handle_message(sample_dap_response)

        assert future.done()
        assert future.result().command == "initialize"
        assert 1 not in client._pending

    def test_reverse_request_returned(self):
        """Test adapter-initiated requests are handed back to the read loop."""
        client = DAPClient("/path")

        message = client._handle_message(
            {"seq": 7, "type": "request", "command": "runInTerminal", "arguments": {}}
        )

        assert isinstance(message, DAPReverseRequest)

    def test_malformed_message_ignored(self):
        """Test malformed messages are logged and dropped."""
        client = DAPClient("/path")

        assert client._handle_message({"type": "response"}) is None

    @pytest.mark.asyncio
    async def test_reverse_request_rejected(self):
        """Test runInTerminal gets a failed response with the request's seq."""
        client = DAPClient("/path")
        client._process = MagicMock(returncode=None)
        client._process.stdin.drain = AsyncMock()

        await client._reject_reverse_request(DAPReverseRequest(seq=7, command="runInTerminal"))

        written = client._process.stdin.write.call_args[0][0]
        header, content = written.split(b"\r\n\r\n", 1)
        body = json.loads(content)
        assert int(header.decode().split(": ")[1]) == len(content)
        assert body["type"] == "response"
        assert body["request_seq"] == 7
        assert body["success"] is False

    @pytest.mark.asyncio
    async def test_stop_cancels_pending(self):
        """Test stopping the client fails outstanding requests."""
        client = DAPClient("/path")
        future = asyncio.get_running_loop().create_future()
        client._pending[1] = future

        await client.stop()

        assert future.cancelled()
        assert client._pending == {}


class TestDAPClientRequests:
    """Tests for the high-level request helpers."""

    @pytest.mark.asyncio
    async def test_initialize_request_format(self):
        """Test initialize identifies the client and the coreclr adapter."""
        client = DAPClient("/path")

        async def mock_send(command, arguments=None, timeout=30.0):
            mock_send.arguments = arguments
            return DAPResponse(
                seq=1, request_seq=1, success=True, command=command,
                body={"supportsConfigurationDoneRequest": True},
            )

        client.send_request = mock_send
        capabilities = await client.initialize()

        assert mock_send.arguments["adapterID"] == "coreclr"
        assert mock_send.arguments["clientID"] == "dotnet-debug-bridge"
        assert mock_send.arguments["supportsRunInTerminalRequest"] is False
        assert capabilities["supportsConfigurationDoneRequest"] is True

    @pytest.mark.asyncio
    async def test_submit_launch(self):
        """Test submit sends launch with the rendered configuration."""
        client = DAPClient("/path")
        calls = capture_requests(client)

        await client.submit(LaunchRequest(program="/out/App.dll", cwd="/src/App", args=["--port", "5000"]))

        command, arguments = calls[0]
        assert command == "launch"
        assert arguments["program"] == "/out/App.dll"
        assert arguments["args"] == ["--port", "5000"]
        assert arguments["console"] == "integratedTerminal"

    @pytest.mark.asyncio
    async def test_submit_attach(self):
        """Test submit sends attach for attach requests."""
        client = DAPClient("/path")
        calls = capture_requests(client)

        await client.submit(LaunchRequest(kind=RequestKind.ATTACH, process_id=4321))

        assert calls[0] == ("attach", {"type": "coreclr", "request": "attach", "console": "integratedTerminal", "processId": 4321})

    @pytest.mark.asyncio
    async def test_configuration_sequence_commands(self):
        """Test the configuration helpers use the DAP command names."""
        client = DAPClient("/path")
        calls = capture_requests(client)

        await client.set_exception_breakpoints()
        await client.configuration_done()
        await client.disconnect()

        assert calls == [
            ("setExceptionBreakpoints", {"filters": []}),
            ("configurationDone", None),
            ("disconnect", {"terminateDebuggee": True}),
        ]
