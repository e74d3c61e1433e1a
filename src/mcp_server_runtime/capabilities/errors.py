"""
Exceptions raised by the capability registry and builder.
"""

import json
from typing import Any, Dict, List, Optional


class ToolError(Exception):
    """
    Raised by a tool handler to report a tool-level failure.

    The message is returned to the client as an ``isError`` result.
    """

    def __init__(
        self, message: str, code: str = "tool_error", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class CapabilityError(Exception):
    """Base exception for registry operation failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CapabilityError):
    """No capability of the given kind is registered under the name."""

    def __init__(self, kind: str, name: str, message: Optional[str] = None):
        super().__init__(message or f"{kind.capitalize()} '{name}' not found")
        self.kind = kind
        self.name = name


class InvalidArgumentsError(CapabilityError):
    """Required arguments were not provided."""

    def __init__(self, kind: str, name: str, missing: List[str]):
        super().__init__(f"Missing required arguments for {kind} '{name}': {json.dumps(missing)}")
        self.kind = kind
        self.name = name
        self.missing = missing


class ExecutionFailedError(CapabilityError):
    """A capability handler raised."""


class UnexpectedResultError(CapabilityError):
    """A capability handler returned a value of the wrong shape."""


class RegistryBuildError(Exception):
    """A registry declaration is invalid."""
