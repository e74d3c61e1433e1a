"""
MCP protocol layer: JSON-RPC envelopes, URI templates, sessions and telemetry.

The dispatcher and HTTP transport live in ``protocol.handlers`` and
``protocol.transport``; they depend on ``capabilities`` and are imported
from there directly.
"""

from .schemas import (
    PROTOCOL_VERSION,
    InvalidSessionError,
    JsonRpcRequest,
    JsonRpcResponse,
    MCPError,
    MCPInternalError,
    MCPInvalidRequestError,
    MCPMethodNotFoundError,
    MCPParseError,
    MCPValidationError,
    SessionRequiredError,
    decode_request,
)
from .session import LOG_LEVELS, SessionManager
from .telemetry import Telemetry
from .uri_template import (
    MissingVariableError,
    PrefixTooShortError,
    URITemplate,
    URITemplateError,
)

__all__ = [
    "LOG_LEVELS",
    "PROTOCOL_VERSION",
    "InvalidSessionError",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "MCPError",
    "MCPInternalError",
    "MCPInvalidRequestError",
    "MCPMethodNotFoundError",
    "MCPParseError",
    "MCPValidationError",
    "MissingVariableError",
    "PrefixTooShortError",
    "SessionManager",
    "SessionRequiredError",
    "Telemetry",
    "URITemplate",
    "URITemplateError",
    "decode_request",
]
