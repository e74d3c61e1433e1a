"""
MCP Protocol message handlers.

Implements the request dispatcher: decodes JSON-RPC envelopes, enforces
session applicability, routes methods to the capability registry and
builds response envelopes with their HTTP status.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

import structlog

from ..capabilities import (
    CapabilityError,
    CapabilityRegistry,
    Completion,
    Conn,
    UnexpectedResultError,
)
from .schemas import (
    PROTOCOL_VERSION,
    InvalidSessionError,
    JsonRpcRequest,
    JsonRpcResponse,
    MCPError,
    MCPInternalError,
    MCPMethodNotFoundError,
    MCPValidationError,
    SessionRequiredError,
    decode_request,
)
from .session import SessionManager
from .telemetry import Telemetry, event_name, monotonic, system_time

logger = structlog.get_logger(__name__)

SESSION_HEADER = "mcp-session-id"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", PROTOCOL_VERSION)
SESSIONLESS_METHODS = ("initialize", "notifications/initialized")

ConnFactory = Callable[[Optional[str], Any], Conn]


@dataclass
class DispatchResult:
    """What the transport writes back: status, JSON body (if any) and headers."""

    status: int
    body: Optional[Dict[str, Any]] = None
    headers: Dict[str, str] = field(default_factory=dict)
    _payload: Optional[bytes] = field(default=None, init=False, repr=False, compare=False)

    def encode(self) -> bytes:
        """Serialize the body once; raises TypeError or ValueError for non-JSON values."""
        if self.body is None:
            return b""
        if self._payload is None:
            self._payload = json.dumps(self.body).encode("utf-8")
        return self._payload


def default_conn_factory(session_id: Optional[str], raw: Any) -> Conn:
    return Conn(session_id=session_id)


class RequestDispatcher:
    """
    Protocol state machine for one server.

    Stateless per request; the only state shared between requests is the
    session table owned by ``sessions``.
    """

    def __init__(
        self,
        registry: CapabilityRegistry,
        sessions: Optional[SessionManager] = None,
        telemetry: Optional[Telemetry] = None,
        server_info: Optional[Dict[str, Any]] = None,
        protocol_version: str = PROTOCOL_VERSION,
        conn_factory: Optional[ConnFactory] = None,
    ):
        self.registry = registry
        self.sessions = sessions or SessionManager()
        self.telemetry = telemetry or Telemetry()
        self.server_info = server_info or {"name": "mcp-server-runtime", "version": "0.1.0"}
        self.protocol_version = protocol_version
        self.conn_factory = conn_factory or default_conn_factory

        self._routes: Dict[
            str, Callable[[JsonRpcRequest, Conn, Optional[str]], Awaitable[DispatchResult]]
        ] = {
            "initialize": self._handle_initialize,
            "notifications/initialized": self._handle_initialized,
            "logging/setLevel": self._handle_set_level,
            "tools/list": self._handle_list_tools,
            "tools/call": self._handle_call_tool,
            "prompts/list": self._handle_list_prompts,
            "prompts/get": self._handle_get_prompt,
            "resources/list": self._handle_list_resources,
            "resources/templates/list": self._handle_list_resource_templates,
            "resources/read": self._handle_read_resource,
            "completion/complete": self._handle_complete,
        }

    @property
    def methods(self):
        return list(self._routes)

    async def handle(
        self,
        body: Union[bytes, str],
        session_id: Optional[str] = None,
        raw: Any = None,
    ) -> DispatchResult:
        """
        Handle one request body.

        Args:
            body: Raw JSON-RPC request body
            session_id: Value of the ``mcp-session-id`` request header
            raw: Transport request object, handed to the connection factory

        Returns:
            Status, body and headers to send back
        """
        started_at = monotonic()
        self.telemetry.execute(
            event_name("request", "start"),
            {"system_time": system_time()},
            {"session_id": session_id},
        )

        method = None
        try:
            try:
                request = decode_request(body)
            except MCPError as e:
                logger.warning(
                    "Failed to decode request",
                    session_id=session_id,
                    error_code=e.code,
                    error=e.data,
                )
                self.telemetry.execute(
                    event_name("json_rpc", "decode_error"),
                    {"system_time": system_time()},
                    {"session_id": session_id, "error": e.data},
                )
                result = self._error(e, None)
            else:
                method = request.method
                result = await self._dispatch(request, session_id, raw)

        except Exception as e:
            self.telemetry.execute(
                event_name("request", "exception"),
                {"duration": monotonic() - started_at},
                {"session_id": session_id, "kind": "error", "error": str(e)},
            )
            raise

        self.telemetry.execute(
            event_name("request", "stop"),
            {"duration": monotonic() - started_at},
            {
                "session_id": result.headers.get(SESSION_HEADER, session_id),
                "method": method,
                "status": result.status,
            },
        )
        return result

    async def _dispatch(
        self, request: JsonRpcRequest, session_id: Optional[str], raw: Any
    ) -> DispatchResult:
        logger.debug(
            "Handling request",
            method=request.method,
            request_id=request.id,
            session_id=session_id,
        )

        try:
            self._check_session(request, session_id)
        except MCPValidationError as e:
            logger.warning(
                "Session validation failed",
                method=request.method,
                session_id=session_id,
                error_message=e.message,
            )
            self.telemetry.execute(
                event_name("validation", "error"),
                {"system_time": system_time()},
                {"session_id": session_id, "type": "session_validation", "error": e.data},
            )
            return self._error(e, request)

        try:
            handler = self._routes.get(request.method)
            if handler is None:
                return self._handle_unknown(request, session_id)

            conn = self.conn_factory(session_id, raw)
            result = await handler(request, conn, session_id)
            try:
                result.encode()
            except (TypeError, ValueError) as e:
                raise MCPInternalError(
                    data={"message": f"Response is not JSON-serializable: {e}"}
                )
            return result

        except MCPError as e:
            logger.warning(
                "MCP error handling request",
                method=request.method,
                request_id=request.id,
                error_code=e.code,
                error_message=e.message,
            )
            return self._error(e, request)

        except Exception as e:
            logger.error(
                "Unexpected error handling request",
                method=request.method,
                request_id=request.id,
                error=str(e),
                exc_info=True,
            )
            return self._error(MCPInternalError(data={"message": str(e)}), request)

    def _check_session(self, request: JsonRpcRequest, session_id: Optional[str]) -> None:
        if request.method in SESSIONLESS_METHODS:
            return
        if session_id is None:
            raise SessionRequiredError()
        if not self.sessions.validate_session_id(session_id):
            raise InvalidSessionError()

    # Response builders

    def _ok(
        self,
        request: JsonRpcRequest,
        result: Any,
        headers: Optional[Dict[str, str]] = None,
    ) -> DispatchResult:
        if request.is_notification:
            return DispatchResult(202, None, dict(headers or {}))
        body = JsonRpcResponse.success(result, request.id).to_dict()
        return DispatchResult(200, body, dict(headers or {}))

    @staticmethod
    def _error(error: MCPError, request: Optional[JsonRpcRequest]) -> DispatchResult:
        if request is not None and request.is_notification:
            return DispatchResult(error.http_status)
        request_id = request.id if request is not None else None
        return DispatchResult(error.http_status, JsonRpcResponse.failure(error, request_id).to_dict())

    # Lifecycle

    async def _handle_initialize(
        self, request: JsonRpcRequest, conn: Conn, session_id: Optional[str]
    ) -> DispatchResult:
        requested = request.param("protocolVersion")
        if requested is not None and requested not in SUPPORTED_PROTOCOL_VERSIONS:
            logger.warning(
                "Unsupported protocol version",
                requested=requested,
                supported=list(SUPPORTED_PROTOCOL_VERSIONS),
            )

        new_session_id = self.sessions.generate_session_id()
        self.telemetry.execute(
            event_name("session", "init"),
            {"system_time": system_time()},
            {
                "session_id": new_session_id,
                "protocol_version": self.protocol_version,
                "server_info": self.server_info,
            },
        )

        logger.info(
            "Initializing new session",
            session_id=new_session_id,
            client_info=request.param("clientInfo"),
        )
        result = {
            "capabilities": {
                "completions": {},
                "logging": {},
                "prompts": {"listChanged": True},
                "resources": {"listChanged": True},
                "tools": {"listChanged": True},
            },
            "protocolVersion": self.protocol_version,
            "serverInfo": self.server_info,
        }
        return self._ok(request, result, headers={SESSION_HEADER: new_session_id})

    async def _handle_initialized(
        self, request: JsonRpcRequest, conn: Conn, session_id: Optional[str]
    ) -> DispatchResult:
        logger.info("Client initialized", session_id=session_id)
        self.telemetry.execute(
            event_name("session", "initialized"),
            {"system_time": system_time()},
            {"session_id": session_id},
        )
        return DispatchResult(202)

    async def _handle_set_level(
        self, request: JsonRpcRequest, conn: Conn, session_id: Optional[str]
    ) -> DispatchResult:
        level = request.param("level")
        try:
            canonical = self.sessions.set_log_level(session_id, level)
        except ValueError:
            raise MCPValidationError.because(f"Invalid logging level: {level}")

        logger.info("Log level set", session_id=session_id, level=canonical)
        self.telemetry.execute(
            event_name("logging", "set_level"),
            {"system_time": system_time()},
            {"session_id": session_id, "level": canonical},
        )
        return self._ok(request, {})

    def _handle_unknown(self, request: JsonRpcRequest, session_id: Optional[str]) -> DispatchResult:
        if request.is_notification and request.method.startswith("notifications/"):
            logger.debug("Ignoring notification", method=request.method, session_id=session_id)
            return DispatchResult(202)

        logger.warning("Unhandled method", method=request.method, session_id=session_id)
        raise MCPMethodNotFoundError(request.method)

    # Listings

    def _listing(
        self, request: JsonRpcRequest, session_id: Optional[str], key: str, event: str, entries: list
    ) -> DispatchResult:
        self.telemetry.execute(event, {"count": len(entries)}, {"session_id": session_id})
        logger.debug("Sending listing", method=request.method, session_id=session_id, count=len(entries))
        return self._ok(request, {key: entries})

    async def _handle_list_tools(
        self, request: JsonRpcRequest, conn: Conn, session_id: Optional[str]
    ) -> DispatchResult:
        return self._listing(
            request, session_id, "tools", event_name("tool", "list"), self.registry.list_tools()
        )

    async def _handle_list_prompts(
        self, request: JsonRpcRequest, conn: Conn, session_id: Optional[str]
    ) -> DispatchResult:
        return self._listing(
            request, session_id, "prompts", event_name("prompt", "list"), self.registry.list_prompts()
        )

    async def _handle_list_resources(
        self, request: JsonRpcRequest, conn: Conn, session_id: Optional[str]
    ) -> DispatchResult:
        return self._listing(
            request,
            session_id,
            "resources",
            event_name("resource", "list"),
            self.registry.list_resources(),
        )

    async def _handle_list_resource_templates(
        self, request: JsonRpcRequest, conn: Conn, session_id: Optional[str]
    ) -> DispatchResult:
        return self._listing(
            request,
            session_id,
            "resourceTemplates",
            event_name("resource", "templates_list"),
            self.registry.list_resource_templates(),
        )

    # Invocation

    async def _handle_call_tool(
        self, request: JsonRpcRequest, conn: Conn, session_id: Optional[str]
    ) -> DispatchResult:
        tool_name = request.param("name")
        arguments = request.param("arguments") or {}
        if not isinstance(tool_name, str):
            raise MCPValidationError.because("Tool name must be a string")
        if not isinstance(arguments, dict):
            raise MCPValidationError.because("Tool arguments must be an object")

        logger.info("Tool call", session_id=session_id, tool_name=tool_name)
        span = self.telemetry.start_span(
            event_name("tool") + ".",
            {"session_id": session_id, "tool_name": tool_name, "arguments": arguments},
            "call_start",
        )

        try:
            result = await self.registry.call_tool(conn, tool_name, arguments)

        except UnexpectedResultError as e:
            span.exception("call_exception", error=e.message)
            logger.error("Unexpected tool response", tool_name=tool_name, error=e.message)
            raise MCPInternalError(data={"message": e.message})

        except CapabilityError as e:
            span.exception("call_exception", error=e.message)
            logger.warning("Tool call failed", session_id=session_id, tool_name=tool_name, error=e.message)
            return self._ok(
                request,
                {"content": [{"type": "text", "text": f"Error: {e.message}"}], "isError": True},
            )

        span.stop("call_stop", result_count=len(result.content))
        return self._ok(request, result.to_dict())

    async def _handle_get_prompt(
        self, request: JsonRpcRequest, conn: Conn, session_id: Optional[str]
    ) -> DispatchResult:
        prompt_name = request.param("name")
        arguments = request.param("arguments") or {}
        if not isinstance(prompt_name, str):
            raise MCPValidationError.because("Prompt name must be a string")
        if not isinstance(arguments, dict):
            raise MCPValidationError.because("Prompt arguments must be an object")

        span = self.telemetry.start_span(
            event_name("prompt") + ".",
            {"session_id": session_id, "prompt_name": prompt_name, "arguments": arguments},
            "get_start",
        )

        try:
            messages = await self.registry.get_prompt(conn, prompt_name, arguments)
        except CapabilityError as e:
            span.exception("get_exception", error=e.message)
            raise MCPValidationError.because(e.message)

        span.stop("get_stop", message_count=len(messages))
        definition = self.registry.get_prompt_definition(prompt_name)
        description = definition.description if definition and definition.description else None
        return self._ok(
            request, {"description": description or "Prompt response", "messages": messages}
        )

    async def _handle_read_resource(
        self, request: JsonRpcRequest, conn: Conn, session_id: Optional[str]
    ) -> DispatchResult:
        uri = request.param("uri")
        resolved = self.registry.resolve_resource(uri) if isinstance(uri, str) else None

        if resolved is None:
            logger.warning("Resource not found", session_id=session_id, resource_uri=uri)
            self.telemetry.execute(
                event_name("resource", "read_exception"),
                {"duration": 0},
                {
                    "session_id": session_id,
                    "resource_uri": uri,
                    "error": "Resource not found",
                    "kind": "not_found",
                },
            )
            raise MCPValidationError.because("Resource not found")

        resource_name, variables = resolved
        span = self.telemetry.start_span(
            event_name("resource") + ".",
            {
                "session_id": session_id,
                "resource_uri": uri,
                "resource_name": resource_name,
                "template_vars": dict(variables),
            },
            "read_start",
        )

        try:
            result = await self.registry.read_resource(conn, resource_name, variables)
        except CapabilityError as e:
            span.exception("read_exception", error=e.message)
            logger.error("Resource read failed", session_id=session_id, error=e.message)
            raise MCPInternalError(data={"message": e.message})

        contents = result.get("contents")
        span.stop("read_stop", content_count=len(contents) if isinstance(contents, list) else 1)
        return self._ok(request, result)

    async def _handle_complete(
        self, request: JsonRpcRequest, conn: Conn, session_id: Optional[str]
    ) -> DispatchResult:
        ref = request.param("ref")
        argument = request.param("argument")
        ref_type = ref.get("type") if isinstance(ref, dict) else None
        ref_name = (ref.get("name") or ref.get("uri")) if isinstance(ref, dict) else None
        arg_name = argument.get("name") if isinstance(argument, dict) else None
        prefix = argument.get("value") if isinstance(argument, dict) else None

        span = self.telemetry.start_span(
            event_name("completion") + ".",
            {
                "session_id": session_id,
                "ref_type": ref_type,
                "ref_name": ref_name,
                "argument_name": arg_name,
                "prefix": prefix,
            },
        )

        try:
            completion = await self._complete(conn, ref, argument)
        except Exception as e:
            reason = e.data["message"] if isinstance(e, MCPValidationError) else str(e)
            span.exception(error=reason)
            logger.warning("Completion failed", session_id=session_id, error=reason)
            raise

        span.stop(completion_count=len(completion.values))
        return self._ok(request, {"completion": completion.to_dict()})

    async def _complete(self, conn: Conn, ref: Any, argument: Any) -> Completion:
        ref_type = ref.get("type") if isinstance(ref, dict) else None
        well_formed = (
            isinstance(argument, dict) and "name" in argument and "value" in argument
        )

        try:
            if ref_type == "ref/prompt" and "name" in ref:
                if not well_formed:
                    raise MCPValidationError.because("Invalid argument format for prompt completion")
                return await self.registry.complete_prompt(
                    conn, ref["name"], argument["name"], argument["value"]
                )

            if ref_type == "ref/resource" and "uri" in ref:
                if not well_formed:
                    raise MCPValidationError.because(
                        "Invalid argument format for resource completion"
                    )
                uri = ref["uri"]
                resolved = self.registry.resolve_resource(uri) if isinstance(uri, str) else None
                if resolved is None:
                    raise MCPValidationError.because("Resource not found for completion")
                return await self.registry.complete_resource(
                    conn, resolved[0], argument["name"], argument["value"]
                )

        except CapabilityError as e:
            raise MCPValidationError.because(e.message)

        logger.warning("Unsupported completion reference type", ref=ref)
        raise MCPValidationError.because("Unsupported reference type")
