"""
Capability declarations, registry and handler result helpers.
"""

from .builder import RegistryBuilder, argument, field, items
from .content import (
    CallResult,
    Completion,
    EmbeddedResource,
    ImageContent,
    TextContent,
    completion,
    embedded_resource,
    image,
    message,
    resource_content,
    text,
)
from .definitions import (
    Conn,
    PromptArgument,
    PromptDefinition,
    PromptHandler,
    ResourceDefinition,
    ResourceHandler,
    ToolAnnotations,
    ToolDefinition,
    ToolHandler,
    ToolUIMeta,
)
from .errors import (
    CapabilityError,
    ExecutionFailedError,
    InvalidArgumentsError,
    NotFoundError,
    RegistryBuildError,
    ToolError,
    UnexpectedResultError,
)
from .registry import CapabilityRegistry, check_arguments, validate_required_arguments
from .schema import FieldSpec, ItemSpec, format_field, format_schema

__all__ = [
    "CallResult",
    "CapabilityError",
    "CapabilityRegistry",
    "Completion",
    "Conn",
    "EmbeddedResource",
    "ExecutionFailedError",
    "FieldSpec",
    "ImageContent",
    "InvalidArgumentsError",
    "ItemSpec",
    "NotFoundError",
    "PromptArgument",
    "PromptDefinition",
    "PromptHandler",
    "RegistryBuildError",
    "RegistryBuilder",
    "ResourceDefinition",
    "ResourceHandler",
    "TextContent",
    "ToolAnnotations",
    "ToolDefinition",
    "ToolError",
    "ToolHandler",
    "ToolUIMeta",
    "UnexpectedResultError",
    "argument",
    "check_arguments",
    "completion",
    "embedded_resource",
    "field",
    "format_field",
    "format_schema",
    "image",
    "items",
    "message",
    "resource_content",
    "text",
    "validate_required_arguments",
]
