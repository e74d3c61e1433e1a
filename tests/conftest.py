"""
Pytest configuration and fixtures for MCP server runtime tests.
"""

import json

import pytest

from mcp_server_runtime.capabilities import (
    CallResult,
    RegistryBuilder,
    ToolError,
    argument,
    completion,
    field,
    message,
    resource_content,
    text,
)
from mcp_server_runtime.config.settings import Config, HttpConfig, ServerConfig, ServerInfoConfig
from mcp_server_runtime.protocol.handlers import RequestDispatcher
from mcp_server_runtime.protocol.session import SessionManager
from mcp_server_runtime.protocol.telemetry import EVENTS, Telemetry


class EventRecorder:
    """Telemetry listener that keeps every event it receives."""

    def __init__(self):
        self.events = []

    def __call__(self, event, measurements, metadata):
        self.events.append((event, measurements, metadata))

    def names(self):
        return [name for name, _, _ in self.events]

    def last(self, name):
        for event, measurements, metadata in reversed(self.events):
            if event == name:
                return measurements, metadata
        raise AssertionError(f"event {name} was not emitted")


class CallCounter:
    """Tool handler that counts invocations and echoes its input."""

    def __init__(self):
        self.calls = 0

    def __call__(self, conn, arguments):
        self.calls += 1
        return [text(arguments.get("message", ""))]


def rpc(method, params=None, request_id=1):
    """Encode a JSON-RPC request body."""
    payload = {"jsonrpc": "2.0", "method": method}
    if params is not None:
        payload["params"] = params
    if request_id is not None:
        payload["id"] = request_id
    return json.dumps(payload)


@pytest.fixture
def test_config():
    """Create a test configuration."""
    return Config(
        version="0.1.0-test",
        server_info=ServerInfoConfig(name="test-server", version="9.9.9"),
        server=ServerConfig(log_level="DEBUG", json_logs=False),
        http=HttpConfig(host="127.0.0.1", port=0),
    )


@pytest.fixture
def echo_counter():
    return CallCounter()


@pytest.fixture
def read_calls():
    """Variables passed to the template resource's read handler."""
    return []


@pytest.fixture
def registry(echo_counter, read_calls):
    """Registry covering every capability kind."""

    def fail(conn, arguments):
        raise ToolError("disk is full", code="io_error")

    def crash(conn, arguments):
        raise RuntimeError("boom")

    def wrong_shape(conn, arguments):
        return "not a list"

    async def structured(conn, arguments):
        return CallResult.text(
            "42", structured_content={"answer": 42}, meta={"source": "test"}
        )

    def whoami(conn, arguments):
        return [text(f"{conn.get_session_id()}:{conn.get_private('user', 'anonymous')}")]

    def greet(conn, arguments):
        return [message("user", "text", f"Hello {arguments['name']}")]

    def complete_greet(conn, argument_name, prefix):
        names = ["alice", "albert", "bob"]
        matches = [name for name in names if name.startswith(prefix)]
        return completion(matches, total=len(matches))

    def read_readme(conn, variables):
        return {
            "contents": [
                resource_content("readme", "file:///readme.md", mime_type="text/markdown", text="# Hi")
            ]
        }

    async def read_user(conn, variables):
        read_calls.append(dict(variables))
        return [resource_content("user", f"https://x/users/{variables['id']}", text="user")]

    def complete_user(conn, argument_name, prefix):
        return {"values": [prefix + "1", prefix + "2"], "hasMore": False}

    def broken_read(conn, variables):
        raise IOError("disk unplugged")

    return (
        RegistryBuilder()
        .tool(
            "echo",
            "Echo a message back",
            echo_counter,
            fields=[field("message", "Text to echo", "string", required=True)],
            hints=["read_only", "idempotent"],
        )
        .tool("fail", "Always reports an error", fail)
        .tool("crash", "Always raises", crash)
        .tool("wrong_shape", "Returns a bare string", wrong_shape)
        .tool("structured", "Returns structured content", structured, ui="ui://dash")
        .tool("whoami", "Reports the connection", whoami)
        .prompt(
            "greet",
            "Greets someone",
            arguments=[argument("name", "Who to greet", required=True)],
            get=greet,
            complete=complete_greet,
        )
        .resource("readme", "file:///readme.md", read=read_readme, mime_type="text/markdown")
        .resource(
            "user",
            "https://x/users/{id}",
            read=read_user,
            complete=complete_user,
            description="A user",
        )
        .resource("broken", "file:///broken", read=broken_read)
        .build()
    )


@pytest.fixture
def recorder():
    return EventRecorder()


@pytest.fixture
def telemetry(recorder):
    telemetry = Telemetry()
    telemetry.attach("recorder", EVENTS, recorder)
    return telemetry


@pytest.fixture
def sessions():
    return SessionManager()


@pytest.fixture
def dispatcher(registry, sessions, telemetry):
    return RequestDispatcher(
        registry,
        sessions=sessions,
        telemetry=telemetry,
        server_info={"name": "test-server", "version": "9.9.9"},
    )


@pytest.fixture
def session_id(sessions):
    return sessions.generate_session_id()


@pytest.fixture
def request_body():
    """Builder for JSON-RPC request bodies."""
    return rpc
