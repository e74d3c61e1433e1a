"""
Unit tests for the registry and server test clients.
"""

import pytest

from mcp_server_runtime.capabilities import InvalidArgumentsError, NotFoundError
from mcp_server_runtime.server import MCPServer
from mcp_server_runtime.testing import RegistryClient, RequestError, ServerClient


class TestRegistryClient:
    """Test direct registry calls."""

    def test_listings(self, registry):
        client = RegistryClient(registry)

        assert [tool["name"] for tool in client.list_tools()][:2] == ["echo", "fail"]
        assert client.list_prompts()[0]["name"] == "greet"
        assert [r["name"] for r in client.list_resources()] == ["readme", "broken"]
        assert client.list_resource_templates()[0]["uriTemplate"] == "https://x/users/{id}"

    @pytest.mark.asyncio
    async def test_call_tool(self, registry, echo_counter):
        client = RegistryClient(registry)

        result = await client.call_tool("echo", {"message": "hi"})

        assert result.to_dict() == {"content": [{"type": "text", "text": "hi"}], "isError": False}
        assert echo_counter.calls == 1

    @pytest.mark.asyncio
    async def test_call_tool_missing_argument(self, registry):
        client = RegistryClient(registry)

        with pytest.raises(InvalidArgumentsError):
            await client.call_tool("echo")

    @pytest.mark.asyncio
    async def test_conn_is_shared(self, registry):
        client = RegistryClient(registry, session_id="abcd", private={"user": "ada"})

        result = await client.call_tool("whoami")

        assert result.to_dict()["content"] == [{"type": "text", "text": "abcd:ada"}]

    @pytest.mark.asyncio
    async def test_get_and_complete_prompt(self, registry):
        client = RegistryClient(registry)

        messages = await client.get_prompt("greet", {"name": "bob"})
        completion = await client.complete_prompt("greet", "name", "al")

        assert messages == [{"role": "user", "content": {"type": "text", "text": "Hello bob"}}]
        assert completion.values == ["alice", "albert"]

    @pytest.mark.asyncio
    async def test_read_templated_resource(self, registry, read_calls):
        client = RegistryClient(registry)

        result = await client.read_resource("https://x/users/7")

        assert result["contents"][0]["uri"] == "https://x/users/7"
        assert read_calls == [{"id": "7"}]

    @pytest.mark.asyncio
    async def test_complete_resource(self, registry):
        client = RegistryClient(registry)

        completion = await client.complete_resource("https://x/users/1", "id", "4")

        assert completion.values == ["41", "42"]

    @pytest.mark.asyncio
    async def test_unknown_uri(self, registry):
        client = RegistryClient(registry)

        with pytest.raises(NotFoundError, match="file:///missing"):
            await client.read_resource("file:///missing")


class TestServerClient:
    """Test full request simulation over the aiohttp application."""

    @pytest.mark.asyncio
    async def test_session_and_tool_call(self, registry, test_config):
        async with ServerClient(MCPServer(registry, test_config)) as client:
            session_id = await client.init_session()
            result = await client.request(
                session_id, "tools/call", {"name": "echo", "arguments": {"message": "hey"}}
            )

        assert len(session_id) == 22
        assert result == {"content": [{"type": "text", "text": "hey"}], "isError": False}

    @pytest.mark.asyncio
    async def test_tool_error_is_a_result(self, registry, test_config):
        async with ServerClient(MCPServer(registry, test_config)) as client:
            session_id = await client.init_session()
            result = await client.request(session_id, "tools/call", {"name": "fail"})

        assert result["isError"] is True

    @pytest.mark.asyncio
    async def test_error_envelope_raises(self, registry, test_config):
        async with ServerClient(MCPServer(registry, test_config)) as client:
            session_id = await client.init_session()

            with pytest.raises(RequestError) as exc_info:
                await client.request(session_id, "tools/call", {"name": 3})

        assert exc_info.value.status == 400
        assert exc_info.value.code == -32602
        assert exc_info.value.data == {"message": "Tool name must be a string"}

    @pytest.mark.asyncio
    async def test_request_without_session(self, registry, test_config):
        async with ServerClient(MCPServer(registry, test_config)) as client:
            with pytest.raises(RequestError) as exc_info:
                await client.request(None, "tools/list")

        assert exc_info.value.error["message"] == "Session required"

    @pytest.mark.asyncio
    async def test_notification_status(self, registry, test_config):
        async with ServerClient(MCPServer(registry, test_config)) as client:
            status = await client.notify(None, "notifications/initialized")

        assert status == 202

    @pytest.mark.asyncio
    async def test_raw_post(self, registry, test_config):
        async with ServerClient(MCPServer(registry, test_config)) as client:
            reply = await client.post(b"{not json")

        assert reply.status == 400
        assert reply.body["error"]["code"] == -32700
        assert reply.headers["content-type"] == "application/json; charset=utf-8"

    @pytest.mark.asyncio
    async def test_post_before_start(self, registry, test_config):
        client = ServerClient(MCPServer(registry, test_config))

        with pytest.raises(RuntimeError, match="not started"):
            await client.post({"jsonrpc": "2.0", "id": 1, "method": "initialize"})
