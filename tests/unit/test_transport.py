"""
Unit tests for the HTTP transport and server wiring.
"""

import asyncio
import json

import pytest
from aiohttp import test_utils

from mcp_server_runtime.capabilities import RegistryBuilder
from mcp_server_runtime.protocol.handlers import SESSION_HEADER, RequestDispatcher
from mcp_server_runtime.protocol.transport import HttpTransport, TransportError
from mcp_server_runtime.server import MCPServer


class TestHttpTransport:
    """Test the aiohttp endpoint."""

    @pytest.mark.asyncio
    async def test_post_initialize(self, dispatcher, request_body):
        transport = HttpTransport(dispatcher)

        async with test_utils.TestClient(test_utils.TestServer(transport.app)) as client:
            response = await client.post("/", data=request_body("initialize", {}))
            payload = await response.json()

            assert response.status == 200
            assert response.headers["content-type"] == "application/json; charset=utf-8"
            assert response.headers["cache-control"] == "no-cache"
            assert len(response.headers[SESSION_HEADER]) == 22
            assert payload["result"]["serverInfo"]["name"] == "test-server"

    @pytest.mark.asyncio
    async def test_session_header_is_read(self, dispatcher, request_body, session_id):
        transport = HttpTransport(dispatcher)

        async with test_utils.TestClient(test_utils.TestServer(transport.app)) as client:
            response = await client.post(
                "/",
                data=request_body("tools/call", {"name": "echo", "arguments": {"message": "hey"}}),
                headers={SESSION_HEADER: session_id},
            )
            payload = await response.json()

            assert response.status == 200
            assert payload["result"]["content"] == [{"type": "text", "text": "hey"}]

    @pytest.mark.asyncio
    async def test_missing_session_is_400(self, dispatcher, request_body):
        transport = HttpTransport(dispatcher)

        async with test_utils.TestClient(test_utils.TestServer(transport.app)) as client:
            response = await client.post("/", data=request_body("tools/list"))
            payload = await response.json()

            assert response.status == 400
            assert payload["error"]["message"] == "Session required"

    @pytest.mark.asyncio
    async def test_notification_has_empty_body(self, dispatcher, request_body):
        transport = HttpTransport(dispatcher)

        async with test_utils.TestClient(test_utils.TestServer(transport.app)) as client:
            response = await client.post(
                "/", data=request_body("notifications/initialized", request_id=None)
            )

            assert response.status == 202
            assert await response.read() == b""

    @pytest.mark.asyncio
    async def test_get_is_refused(self, dispatcher):
        transport = HttpTransport(dispatcher)

        async with test_utils.TestClient(test_utils.TestServer(transport.app)) as client:
            response = await client.get("/")

            assert response.status == 405
            assert await response.text() == "SSE not supported. Use POST."

    @pytest.mark.asyncio
    async def test_oversized_body(self, dispatcher, request_body):
        transport = HttpTransport(dispatcher, max_body_bytes=100)
        body = request_body("tools/call", {"name": "echo", "arguments": {"message": "x" * 500}})

        async with test_utils.TestClient(test_utils.TestServer(transport.app)) as client:
            response = await client.post("/", data=body)

            assert response.status == 413

    @pytest.mark.asyncio
    async def test_custom_path(self, dispatcher, request_body):
        transport = HttpTransport(dispatcher, path="/mcp")

        async with test_utils.TestClient(test_utils.TestServer(transport.app)) as client:
            response = await client.post("/mcp", data=request_body("initialize", {}))
            missing = await client.post("/", data=request_body("initialize", {}))

            assert response.status == 200
            assert missing.status == 404

    @pytest.mark.asyncio
    async def test_unserializable_tool_result_is_500(self, sessions, session_id, request_body):
        def opaque(conn, arguments):
            return [object()]

        registry = RegistryBuilder().tool("opaque", "Returns a bare object", opaque).build()
        transport = HttpTransport(RequestDispatcher(registry, sessions=sessions))

        async with test_utils.TestClient(test_utils.TestServer(transport.app)) as client:
            response = await client.post(
                "/",
                data=request_body("tools/call", {"name": "opaque", "arguments": {}}, request_id=5),
                headers={SESSION_HEADER: session_id},
            )
            payload = await response.json()

            assert response.status == 500
            assert response.headers["content-type"] == "application/json; charset=utf-8"
            assert payload["id"] == 5
            assert payload["error"]["code"] == -32603
            assert "not JSON-serializable" in payload["error"]["data"]["message"]

    @pytest.mark.asyncio
    async def test_start_twice(self, dispatcher):
        transport = HttpTransport(dispatcher, port=0)

        await transport.start()
        try:
            assert transport.running
            with pytest.raises(TransportError, match="already running"):
                await transport.start()
        finally:
            await transport.stop()

        assert not transport.running


class TestMCPServer:
    """Test server assembly from a registry and config."""

    @pytest.mark.asyncio
    async def test_handle_uses_configured_server_info(self, registry, test_config, request_body):
        server = MCPServer(registry, test_config)

        result = await server.handle(request_body("initialize", {}))

        assert result.body["result"]["serverInfo"] == {"name": "test-server", "version": "9.9.9"}

    @pytest.mark.asyncio
    async def test_sessions_are_per_server(self, registry, test_config, request_body):
        first = MCPServer(registry, test_config)
        second = MCPServer(registry, test_config)

        init = await first.handle(request_body("initialize", {}))
        session_id = init.headers[SESSION_HEADER]
        await first.handle(
            request_body("logging/setLevel", {"level": "debug"}), session_id=session_id
        )

        assert first.sessions.get_log_level(session_id) == "debug"
        assert second.sessions.get_log_level(session_id) is None

    @pytest.mark.asyncio
    async def test_start_and_stop(self, registry, test_config):
        server = MCPServer(registry, test_config)

        await server.start()
        assert server.running
        assert server.transport.running

        await server.stop()
        assert not server.running
        assert not server.transport.running

    @pytest.mark.asyncio
    async def test_telemetry_is_shared(self, registry, test_config, telemetry, recorder):
        server = MCPServer(registry, test_config, telemetry=telemetry)

        await server.handle(json.dumps({"jsonrpc": "2.0", "id": 1, "method": "initialize"}))

        assert "mcp_server.session.init" in recorder.names()

    @pytest.mark.asyncio
    async def test_request_shutdown_ends_run_http(self, registry, test_config):
        server = MCPServer(registry, test_config)
        task = asyncio.create_task(server.run_http())

        while not server.running and not task.done():
            await asyncio.sleep(0.01)
        server.request_shutdown()
        await asyncio.wait_for(task, timeout=5)

        assert task.exception() is None
        assert not server.running
        assert not server.transport.running

    @pytest.mark.asyncio
    async def test_request_shutdown_before_start_is_ignored(self, registry, test_config):
        server = MCPServer(registry, test_config)

        server.request_shutdown()

        assert not server.running
