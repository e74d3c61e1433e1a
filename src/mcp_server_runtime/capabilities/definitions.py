"""
Capability definitions and handler interfaces.

Definitions are immutable once built. Handlers are opaque to the registry:
any callable (sync or async) works, and the ``*Handler`` base classes offer
a class-based alternative in the style of a controller.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..protocol.uri_template import URITemplate
from .content import Completion
from .schema import FieldSpec, ObjectSchema, format_schema


class Conn:
    """
    Per-request connection context handed to every handler.

    Holds the session id (None before initialization) and a private
    key/value store that a connection-init hook may populate.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        private: Optional[Dict[Any, Any]] = None,
    ):
        self.session_id = session_id
        self.private = dict(private or {})

    def get_session_id(self) -> Optional[str]:
        return self.session_id

    def put_private(self, key: Any, value: Any) -> "Conn":
        self.private[key] = value
        return self

    def get_private(self, key: Any, default: Any = None) -> Any:
        return self.private.get(key, default)

    def __repr__(self) -> str:
        return f"Conn(session_id={self.session_id!r}, private={self.private!r})"


class ToolHandler(ABC):
    """Class-based tool handler."""

    @abstractmethod
    def call(self, conn: Conn, arguments: Dict[str, Any]) -> Any:
        """
        Execute the tool.

        Args:
            conn: Connection context
            arguments: Tool arguments from the request

        Returns:
            A list of content items or a ``CallResult``

        Raises:
            ToolError: To report a tool-level failure
        """

    def __call__(self, conn: Conn, arguments: Dict[str, Any]) -> Any:
        return self.call(conn, arguments)


class PromptHandler(ABC):
    """Class-based prompt handler; prompts must support both get and complete."""

    @abstractmethod
    def get(self, conn: Conn, arguments: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Return the prompt messages for the given arguments."""

    @abstractmethod
    def complete(self, conn: Conn, argument: str, prefix: str) -> Completion:
        """Return completion suggestions for one argument."""


class ResourceHandler(ABC):
    """Class-based resource handler. Completion is optional."""

    @abstractmethod
    def read(self, conn: Conn, variables: Dict[str, str]) -> Any:
        """Return ``{"contents": [...]}`` or a list of resource contents."""

    def complete(self, conn: Conn, argument: str, prefix: str) -> Completion:
        raise NotImplementedError

    @property
    def supports_completion(self) -> bool:
        return type(self).complete is not ResourceHandler.complete


@dataclass(frozen=True)
class ToolAnnotations:
    """Behavioral hints advertised with a tool."""

    title: str
    read_only_hint: bool = False
    destructive_hint: bool = True
    idempotent_hint: bool = False
    open_world_hint: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "readOnlyHint": self.read_only_hint,
            "destructiveHint": self.destructive_hint,
            "idempotentHint": self.idempotent_hint,
            "openWorldHint": self.open_world_hint,
        }


@dataclass(frozen=True)
class ToolUIMeta:
    """Links a tool to a UI resource and controls who may call it."""

    resource_uri: Optional[str] = None
    visibility: Tuple[str, ...] = ("model", "app")

    def to_dict(self) -> Dict[str, Any]:
        ui: Dict[str, Any] = {}
        if self.resource_uri is not None:
            ui["resourceUri"] = self.resource_uri
        ui["visibility"] = list(self.visibility)
        return ui


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    fields: Tuple[FieldSpec, ...]
    handler: Callable[..., Any]
    annotations: ToolAnnotations
    ui: Optional[ToolUIMeta] = None

    @property
    def input_schema(self) -> ObjectSchema:
        return format_schema(self.fields)

    @property
    def required_fields(self) -> List[str]:
        return [spec.name for spec in self.fields if spec.required]

    def to_dict(self) -> Dict[str, Any]:
        entry = {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema.to_dict(),
            "annotations": self.annotations.to_dict(),
        }
        if self.ui is not None:
            entry["_meta"] = {"ui": self.ui.to_dict()}
        return entry


@dataclass(frozen=True)
class PromptArgument:
    name: str
    description: Optional[str] = None
    required: bool = False

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"name": self.name}
        if self.description is not None:
            entry["description"] = self.description
        entry["required"] = self.required
        return entry


@dataclass(frozen=True)
class PromptDefinition:
    name: str
    description: Optional[str]
    arguments: Tuple[PromptArgument, ...]
    get: Callable[..., Any]
    complete: Callable[..., Any]

    @property
    def required_arguments(self) -> List[str]:
        return [arg.name for arg in self.arguments if arg.required]

    def has_argument(self, name: str) -> bool:
        return any(arg.name == name for arg in self.arguments)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "arguments": [arg.to_dict() for arg in self.arguments],
        }


@dataclass(frozen=True)
class ResourceDefinition:
    """
    A resource addressed by a static URI or a URI template.

    Whether the resource is templated is derived from its address: it is
    templated when the parsed address declares at least one variable.
    """

    name: str
    uri: str
    read: Callable[..., Any]
    complete: Optional[Callable[..., Any]] = None
    description: Optional[str] = None
    mime_type: Optional[str] = None
    title: Optional[str] = None
    template: URITemplate = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "template", URITemplate.parse(self.uri))

    @property
    def is_templated(self) -> bool:
        return self.template.is_templated

    def to_dict(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {"name": self.name}
        entry["uriTemplate" if self.is_templated else "uri"] = self.uri
        if self.description is not None:
            entry["description"] = self.description
        if self.mime_type is not None:
            entry["mimeType"] = self.mime_type
        if self.title is not None:
            entry["title"] = self.title
        return entry
