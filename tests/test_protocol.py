"""Tests for DAP protocol message types."""

import json

import pytest

from dotnet_debug_bridge.debugger.events import (
    ExitedEventBody,
    OutputCategory,
    OutputEventBody,
    ProcessEventBody,
)
from dotnet_debug_bridge.debugger.protocol import (
    Commands,
    DAPEvent,
    DAPRequest,
    DAPResponse,
    DAPReverseRequest,
    Events,
    parse_message,
)


class TestDAPRequest:
    """Tests for DAPRequest dataclass."""

    def test_to_dict_without_arguments(self):
        """Test converting request to dict without arguments."""
        d = DAPRequest(seq=1, command=Commands.CONFIGURATION_DONE).to_dict()

        assert d == {"seq": 1, "type": "request", "command": "configurationDone"}

    def test_to_dict_with_arguments(self):
        """Test converting request to dict with arguments."""
        d = DAPRequest(seq=3, command=Commands.LAUNCH, arguments={"program": "/out/App.dll"}).to_dict()

        assert d["command"] == "launch"
        assert d["arguments"]["program"] == "/out/App.dll"

    def test_to_bytes(self):
        """Test serializing request to bytes with Content-Length header."""
        data = DAPRequest(seq=1, command=Commands.INITIALIZE, arguments={"clientID": "x"}).to_bytes()

        header, content = data.split(b"\r\n\r\n", 1)
        assert header.startswith(b"Content-Length: ")
        assert int(header.decode().split(": ")[1]) == len(content)
        assert json.loads(content)["command"] == "initialize"
        assert b", " not in content

    def test_to_bytes_counts_utf8_bytes(self):
        """Test Content-Length counts encoded bytes, not characters."""
        data = DAPRequest(seq=1, command="launch", arguments={"cwd": "/srv/Приложение"}).to_bytes()

        header, content = data.split(b"\r\n\r\n", 1)
        assert int(header.decode().split(": ")[1]) == len(content)


class TestParseMessage:
    """Tests for parse_message."""

    def test_parse_response(self, sample_dap_response):
        """Test parsing a response."""
        message = parse_message(sample_dap_response)

        assert isinstance(message, DAPResponse)
        assert message.success is True
        assert message.body["supportsConfigurationDoneRequest"] is True

    def test_parse_failed_response_message(self):
        """Test failed responses keep their message and an empty body."""
        message = parse_message(
            {
                "seq": 4,
                "type": "response",
                "request_seq": 3,
                "success": False,
                "command": "launch",
                "message": "program does not exist",
                "body": None,
            }
        )

        assert message.message == "program does not exist"
        assert message.body == {}

    def test_parse_event(self, sample_dap_event):
        """Test parsing an event."""
        message = parse_message(sample_dap_event)

        assert isinstance(message, DAPEvent)
        assert message.event == Events.OUTPUT

    def test_parse_reverse_request(self):
        """Test adapter-initiated requests are recognized."""
        message = parse_message(
            {"seq": 9, "type": "request", "command": "runInTerminal", "arguments": {"kind": "integrated"}}
        )

        assert isinstance(message, DAPReverseRequest)
        assert message.command == Commands.RUN_IN_TERMINAL

    def test_parse_unknown_type(self):
        """Test unknown message types are rejected."""
        with pytest.raises(ValueError, match="Unknown message type"):
            parse_message({"seq": 1, "type": "bogus"})


class TestEventBodies:
    """Tests for typed event bodies."""

    def test_output_body(self, sample_dap_event):
        """Test output bodies carry category and text."""
        body = OutputEventBody.from_dict(sample_dap_event["body"])

        assert body.category == OutputCategory.STDOUT
        assert body.output.startswith("Now listening")

    def test_output_unknown_category(self):
        """Test unknown categories fall back to console."""
        assert OutputEventBody.from_dict({"category": "custom", "output": "x"}).category == OutputCategory.CONSOLE

    def test_process_body(self):
        """Test process bodies read the system process id."""
        body = ProcessEventBody.from_dict({"name": "App", "systemProcessId": 1234, "startMethod": "launch"})

        assert body.process_id == 1234
        assert body.start_method == "launch"

    def test_exited_body(self):
        """Test exited bodies default to exit code 0."""
        assert ExitedEventBody.from_dict({"exitCode": 3}).exit_code == 3
        assert ExitedEventBody.from_dict({}).exit_code == 0
