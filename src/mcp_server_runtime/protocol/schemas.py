"""
MCP Protocol message schemas and data structures.

Defines the JSON-RPC 2.0 message formats for the Model Context Protocol,
the protocol error taxonomy and the envelope decoder.
"""

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

JSONRPC_VERSION = "2.0"
PROTOCOL_VERSION = "2025-06-18"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

RequestId = Union[str, int]


class MCPError(Exception):
    """Base exception for MCP protocol errors."""

    http_status = 500

    def __init__(
        self,
        message: str,
        code: int = -32000,
        data: Optional[Any] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to JSON-RPC error format."""
        error_dict = {
            "code": self.code,
            "message": self.message,
        }
        if self.data is not None:
            error_dict["data"] = self.data
        return error_dict


class MCPParseError(MCPError):
    """Request body is not valid JSON."""

    http_status = 400

    def __init__(self, detail: str):
        super().__init__("Parse error", code=PARSE_ERROR, data=detail)


class MCPInvalidRequestError(MCPError):
    """Body is JSON but not a JSON-RPC 2.0 request."""

    http_status = 400

    def __init__(self, detail: str):
        super().__init__("Invalid Request", code=INVALID_REQUEST, data=detail)


class MCPMethodNotFoundError(MCPError):
    """Error for unknown method calls."""

    http_status = 501

    def __init__(self, method: str):
        super().__init__("Method not found", code=METHOD_NOT_FOUND, data={"method": method})
        self.method = method


class MCPValidationError(MCPError):
    """Error for invalid request parameters."""

    http_status = 400

    def __init__(self, message: str = "Invalid params", data: Optional[Any] = None):
        super().__init__(message, code=INVALID_PARAMS, data=data)

    @classmethod
    def because(cls, reason: str) -> "MCPValidationError":
        """``Invalid params`` carrying ``{"message": reason}``."""
        return cls(data={"message": reason})


class SessionRequiredError(MCPValidationError):
    """A session-scoped method was called without a session header."""

    def __init__(self):
        super().__init__("Session required", data={"message": "Session ID required for this request"})


class InvalidSessionError(MCPValidationError):
    """The session header is not a well-formed session id."""

    def __init__(self, detail: str = "Invalid session ID format"):
        super().__init__("Invalid session", data={"message": detail})


class MCPInternalError(MCPError):
    """Error for internal server issues."""

    http_status = 500

    def __init__(self, message: str = "Internal error", data: Optional[Any] = None):
        super().__init__(message, code=INTERNAL_ERROR, data=data)


class JsonRpcRequest(BaseModel):
    """A decoded JSON-RPC request or notification."""

    model_config = ConfigDict(extra="ignore")

    jsonrpc: str = Field(default=JSONRPC_VERSION, description="JSON-RPC version")
    method: str = Field(description="Method name")
    params: Optional[Union[Dict[str, Any], List[Any]]] = Field(
        default=None, description="Method parameters"
    )
    id: Optional[RequestId] = Field(default=None, description="Request ID")

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def param(self, key: str, default: Any = None) -> Any:
        """Read a named parameter; positional params have no names."""
        if isinstance(self.params, dict):
            return self.params.get(key, default)
        return default


class JsonRpcResponse(BaseModel):
    """A JSON-RPC response carrying exactly one of ``result`` and ``error``."""

    jsonrpc: str = Field(default=JSONRPC_VERSION, description="JSON-RPC version")
    id: Optional[RequestId] = Field(default=None, description="Request ID")
    result: Optional[Any] = Field(default=None, description="Response result")
    error: Optional[Dict[str, Any]] = Field(default=None, description="Error information")

    @model_validator(mode="after")
    def _result_or_error(self) -> "JsonRpcResponse":
        if self.error is not None and self.result is not None:
            raise ValueError("Response cannot have both result and error")
        return self

    @classmethod
    def success(cls, result: Any, request_id: Optional[RequestId]) -> "JsonRpcResponse":
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, error: MCPError, request_id: Optional[RequestId]) -> "JsonRpcResponse":
        return cls(id=request_id, error=error.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """Wire form; the unused member of result/error is dropped."""
        response = {"jsonrpc": self.jsonrpc, "id": self.id}
        if self.error is not None:
            response["error"] = self.error
        else:
            response["result"] = self.result if self.result is not None else {}
        return response

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


def decode_request(body: Union[bytes, str]) -> JsonRpcRequest:
    """
    Decode and validate a JSON-RPC request envelope.

    Args:
        body: Raw request body

    Returns:
        The decoded request

    Raises:
        MCPParseError: Body is not valid JSON
        MCPInvalidRequestError: Body is not a JSON-RPC 2.0 request object
    """
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, ValueError) as e:
        raise MCPParseError(str(e)) from e

    if not isinstance(payload, dict):
        raise MCPInvalidRequestError("Invalid request format")

    if "jsonrpc" not in payload:
        raise MCPInvalidRequestError("Missing jsonrpc field")
    if payload["jsonrpc"] != JSONRPC_VERSION:
        raise MCPInvalidRequestError(f"Invalid JSON-RPC version: {payload['jsonrpc']}")

    if "method" not in payload:
        raise MCPInvalidRequestError("Missing method field")
    if not isinstance(payload["method"], str):
        raise MCPInvalidRequestError("Method must be a string")

    params = payload.get("params")
    if params is not None and not isinstance(params, (dict, list)):
        raise MCPInvalidRequestError("Params must be an object or an array")

    request_id = payload.get("id")
    if request_id is not None and (
        isinstance(request_id, bool) or not isinstance(request_id, (str, int))
    ):
        raise MCPInvalidRequestError("Id must be a string or an integer")

    return JsonRpcRequest(
        jsonrpc=payload["jsonrpc"], method=payload["method"], params=params, id=request_id
    )
