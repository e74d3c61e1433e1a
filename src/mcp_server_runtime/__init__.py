"""
MCP Server Runtime

A runtime for Model Context Protocol servers: declare tools, prompts and
resources with a registry builder and serve them to MCP clients over
JSON-RPC 2.0 on HTTP.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .capabilities import (
    CallResult,
    CapabilityRegistry,
    Completion,
    Conn,
    RegistryBuilder,
    ToolError,
    argument,
    field,
    items,
)
from .config.settings import Config, load_config
from .protocol.telemetry import Telemetry
from .protocol.uri_template import URITemplate
from .server import MCPServer

__all__ = [
    "MCPServer",
    "CapabilityRegistry",
    "RegistryBuilder",
    "CallResult",
    "Completion",
    "Conn",
    "ToolError",
    "argument",
    "field",
    "items",
    "Config",
    "load_config",
    "Telemetry",
    "URITemplate",
    "__version__",
    "__license__",
]
