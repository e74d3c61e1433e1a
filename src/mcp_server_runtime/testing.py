"""
Helpers for testing MCP servers.

Two levels are offered:

* ``RegistryClient`` calls the capability registry directly. It skips
  JSON-RPC and HTTP, so it is the quickest way to unit-test handlers.
* ``ServerClient`` drives a full ``MCPServer`` through its aiohttp
  application, including session handling and the response envelope.

Example:
    >>> async with ServerClient(server) as client:
    ...     session_id = await client.init_session()
    ...     result = await client.request(
    ...         session_id, "tools/call", {"name": "echo", "arguments": {"message": "hi"}}
    ...     )
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog
from aiohttp import test_utils

from .capabilities import CallResult, CapabilityRegistry, Completion, Conn, NotFoundError
from .protocol.handlers import SESSION_HEADER
from .protocol.schemas import PROTOCOL_VERSION
from .server import MCPServer

logger = structlog.get_logger(__name__)


class RegistryClient:
    """
    Direct access to a registry's operations.

    Every call shares one ``Conn``, built from ``session_id`` and
    ``private``. Registry errors (``NotFoundError``, ``InvalidArgumentsError``
    and so on) propagate unchanged.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        session_id: Optional[str] = None,
        private: Optional[Dict[Any, Any]] = None,
    ):
        self.registry = registry
        self.conn = Conn(session_id=session_id, private=private)

    def list_tools(self) -> List[Dict[str, Any]]:
        return self.registry.list_tools()

    def list_prompts(self) -> List[Dict[str, Any]]:
        return self.registry.list_prompts()

    def list_resources(self) -> List[Dict[str, Any]]:
        return self.registry.list_resources()

    def list_resource_templates(self) -> List[Dict[str, Any]]:
        return self.registry.list_resource_templates()

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> CallResult:
        return await self.registry.call_tool(self.conn, name, dict(arguments or {}))

    async def get_prompt(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        return await self.registry.get_prompt(self.conn, name, dict(arguments or {}))

    async def complete_prompt(self, name: str, argument: str, prefix: str = "") -> Completion:
        return await self.registry.complete_prompt(self.conn, name, argument, prefix)

    async def read_resource(self, uri: str) -> Dict[str, Any]:
        """Resolve ``uri`` the way ``resources/read`` does and read it."""
        name, variables = self._resolve(uri)
        return await self.registry.read_resource(self.conn, name, variables)

    async def complete_resource(self, uri: str, argument: str, prefix: str = "") -> Completion:
        name, _ = self._resolve(uri)
        return await self.registry.complete_resource(self.conn, name, argument, prefix)

    def _resolve(self, uri: str):
        resolved = self.registry.resolve_resource(uri)
        if resolved is None:
            raise NotFoundError("resource", uri)
        return resolved


@dataclass
class Reply:
    """One HTTP exchange as seen by the client."""

    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Dict[str, Any]] = None


class RequestError(Exception):
    """The server answered with a JSON-RPC error envelope."""

    def __init__(self, status: int, error: Dict[str, Any]):
        super().__init__(f"{error.get('code')}: {error.get('message')}")
        self.status = status
        self.error = error

    @property
    def code(self) -> Optional[int]:
        return self.error.get("code")

    @property
    def data(self) -> Any:
        return self.error.get("data")


class ServerClient:
    """
    In-process HTTP client for an ``MCPServer``.

    Serves the server's aiohttp application on an ephemeral port for the
    lifetime of the ``async with`` block. The server itself does not need
    to be started.
    """

    def __init__(self, server: MCPServer):
        self.server = server
        self._http: Optional[test_utils.TestClient] = None
        self._next_id = 0

    async def __aenter__(self) -> "ServerClient":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def start(self) -> None:
        if self._http is not None:
            return
        self._http = test_utils.TestClient(test_utils.TestServer(self.server.transport.app))
        await self._http.start_server()

    async def close(self) -> None:
        if self._http is None:
            return
        await self._http.close()
        self._http = None

    async def post(self, body: Any, session_id: Optional[str] = None) -> Reply:
        """
        POST a raw body to the MCP endpoint.

        ``body`` is sent as is when it is ``str`` or ``bytes``, otherwise it
        is JSON-encoded first.
        """
        if self._http is None:
            raise RuntimeError("ServerClient is not started")

        if not isinstance(body, (str, bytes)):
            body = json.dumps(body)
        headers = {SESSION_HEADER: session_id} if session_id is not None else {}

        response = await self._http.post(self.server.transport.path, data=body, headers=headers)
        raw = await response.read()
        return Reply(
            status=response.status,
            headers={key.lower(): value for key, value in response.headers.items()},
            body=json.loads(raw) if raw else None,
        )

    async def init_session(
        self,
        protocol_version: str = PROTOCOL_VERSION,
        client_info: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Run the initialize handshake and return the new session id."""
        params = {
            "protocolVersion": protocol_version,
            "capabilities": {},
            "clientInfo": client_info or {"name": "mcp-test-client", "version": "0.0.0"},
        }
        reply = await self.post(self._envelope("initialize", params))
        self._raise_for_error(reply)

        session_id = reply.headers[SESSION_HEADER]
        await self.notify(session_id, "notifications/initialized")
        logger.debug("Test session initialized", session_id=session_id)
        return session_id

    async def request(
        self, session_id: Optional[str], method: str, params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Send a request and return its ``result``.

        Raises:
            RequestError: The server answered with an error envelope
        """
        reply = await self.post(self._envelope(method, params), session_id=session_id)
        self._raise_for_error(reply)
        return reply.body["result"]

    async def notify(
        self, session_id: Optional[str], method: str, params: Optional[Dict[str, Any]] = None
    ) -> int:
        """Send a notification; returns the HTTP status."""
        envelope = self._envelope(method, params, notification=True)
        reply = await self.post(envelope, session_id=session_id)
        return reply.status

    def _envelope(
        self, method: str, params: Optional[Dict[str, Any]], notification: bool = False
    ) -> Dict[str, Any]:
        envelope: Dict[str, Any] = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            envelope["params"] = params
        if not notification:
            self._next_id += 1
            envelope["id"] = self._next_id
        return envelope

    @staticmethod
    def _raise_for_error(reply: Reply) -> None:
        if reply.body is not None and "error" in reply.body:
            raise RequestError(reply.status, reply.body["error"])
        if reply.body is None or "result" not in reply.body:
            raise RequestError(
                reply.status, {"code": None, "message": f"Unexpected HTTP {reply.status}"}
            )
