"""
Fluent builder for capability registries.

Declarations are checked eagerly so that a malformed registry fails when
the server is assembled, never while a request is in flight.

Example:
    >>> registry = (
    ...     RegistryBuilder()
    ...     .tool(
    ...         "echo",
    ...         "Echo a message back",
    ...         echo_handler,
    ...         fields=[field("message", "Text to echo", "string", required=True)],
    ...         hints=["read_only", "idempotent"],
    ...     )
    ...     .resource("readme", "file:///readme.md", read=read_readme, mime_type="text/markdown")
    ...     .build()
    ... )
"""

from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Union

import structlog

from .definitions import (
    PromptArgument,
    PromptDefinition,
    PromptHandler,
    ResourceDefinition,
    ResourceHandler,
    ToolAnnotations,
    ToolDefinition,
    ToolUIMeta,
)
from .errors import RegistryBuildError
from .registry import CapabilityRegistry
from .schema import SCHEMA_TYPES, FieldSpec, ItemSpec

logger = structlog.get_logger(__name__)

TOOL_HINTS = ("read_only", "non_destructive", "idempotent", "closed_world")
VISIBILITY_TARGETS = ("model", "app")


def field(
    name: str,
    description: Optional[str] = None,
    type: str = "string",
    required: bool = False,
    enum: Optional[Sequence[Any]] = None,
    default: Any = None,
    fields: Sequence[FieldSpec] = (),
    items: Union[str, ItemSpec, None] = None,
) -> FieldSpec:
    """
    Declare a tool input field.

    Args:
        name: Argument name
        description: Human-readable description
        type: JSON Schema type name
        required: Whether the argument must be supplied
        enum: Allowed values
        default: Default value advertised to clients
        fields: Nested fields, for ``type="object"``
        items: Item type name or ``items(...)`` declaration, for ``type="array"``
    """
    return FieldSpec(
        name=name,
        description=description,
        type=type,
        required=required,
        enum=tuple(enum) if enum is not None else None,
        default=default,
        fields=tuple(fields),
        items=items,
    )


def items(
    type: str,
    fields: Sequence[FieldSpec] = (),
    items: Union[str, ItemSpec, None] = None,
) -> ItemSpec:
    """Declare the item type of an array field."""
    return ItemSpec(type=type, fields=tuple(fields), items=items)


def argument(name: str, description: Optional[str] = None, required: bool = False) -> PromptArgument:
    """Declare a prompt argument."""
    return PromptArgument(name=name, description=description, required=required)


def _check_name(kind: str, name: Any) -> None:
    if not isinstance(name, str) or not name:
        raise RegistryBuildError(f"{kind.capitalize()} name must be a non-empty string, got {name!r}")


def _check_callable(what: str, handler: Any) -> None:
    if not callable(handler):
        raise RegistryBuildError(f"{what} must be callable, got {type(handler).__name__}")


def _check_type(where: str, type_name: str) -> None:
    if type_name not in SCHEMA_TYPES:
        raise RegistryBuildError(
            f"Unknown type '{type_name}' for {where}, expected one of {list(SCHEMA_TYPES)}"
        )


def _check_fields(where: str, specs: Iterable[FieldSpec]) -> None:
    seen = set()
    for spec in specs:
        if spec.name in seen:
            raise RegistryBuildError(f"Field \"{spec.name}\" is already defined in {where}")
        seen.add(spec.name)

        path = f"{where}.{spec.name}"
        _check_type(f"field {path}", spec.type)
        _check_fields(path, spec.fields)
        if spec.items is not None:
            _check_items(path, spec.items)


def _check_items(where: str, declared: Union[str, ItemSpec]) -> None:
    if isinstance(declared, str):
        _check_type(f"items of {where}", declared)
        return

    _check_type(f"items of {where}", declared.type)
    _check_fields(f"{where}[]", declared.fields)
    if declared.items is not None:
        _check_items(f"{where}[]", declared.items)


class RegistryBuilder:
    """Collects capability declarations and builds a ``CapabilityRegistry``."""

    def __init__(self):
        self._tools: Dict[str, ToolDefinition] = {}
        self._prompts: Dict[str, PromptDefinition] = {}
        self._resources: Dict[str, ResourceDefinition] = {}

    def tool(
        self,
        name: str,
        description: str,
        handler: Callable[..., Any],
        fields: Sequence[FieldSpec] = (),
        hints: Iterable[str] = (),
        title: Optional[str] = None,
        ui: Optional[str] = None,
        visibility: Sequence[str] = VISIBILITY_TARGETS,
    ) -> "RegistryBuilder":
        """
        Declare a tool.

        Args:
            name: Unique tool name
            description: Description shown to the model
            handler: ``handler(conn, arguments)``, sync or async, or a
                ``ToolHandler`` instance
            fields: Input fields, see ``field``
            hints: Any of ``read_only``, ``non_destructive``, ``idempotent``,
                ``closed_world``
            title: Display title, defaults to the tool name
            ui: URI of a UI resource linked to the tool
            visibility: Who may call the tool when ``ui`` is set

        Returns:
            The builder, for chaining
        """
        _check_name("tool", name)
        if name in self._tools:
            raise RegistryBuildError(f"Tool \"{name}\" is already defined")
        _check_callable(f"Handler for tool \"{name}\"", handler)
        _check_fields(f"tool \"{name}\"", fields)

        hint_set = set(hints)
        unknown = hint_set.difference(TOOL_HINTS)
        if unknown:
            raise RegistryBuildError(
                f"Unknown hints {sorted(unknown)} for tool \"{name}\", expected any of {list(TOOL_HINTS)}"
            )

        ui_meta = None
        if ui is not None:
            bad_targets = set(visibility).difference(VISIBILITY_TARGETS)
            if bad_targets:
                raise RegistryBuildError(
                    f"Unknown visibility {sorted(bad_targets)} for tool \"{name}\""
                )
            ui_meta = ToolUIMeta(resource_uri=ui, visibility=tuple(visibility))

        annotations = ToolAnnotations(
            title=title if title is not None else name,
            read_only_hint="read_only" in hint_set,
            destructive_hint="non_destructive" not in hint_set,
            idempotent_hint="idempotent" in hint_set,
            open_world_hint="closed_world" not in hint_set,
        )

        self._tools[name] = ToolDefinition(
            name=name,
            description=description,
            fields=tuple(fields),
            handler=handler,
            annotations=annotations,
            ui=ui_meta,
        )
        logger.debug("Declared tool", tool_name=name, field_count=len(fields))
        return self

    def prompt(
        self,
        name: str,
        description: Optional[str] = None,
        arguments: Sequence[PromptArgument] = (),
        get: Optional[Callable[..., Any]] = None,
        complete: Optional[Callable[..., Any]] = None,
        handler: Optional[PromptHandler] = None,
    ) -> "RegistryBuilder":
        """
        Declare a prompt.

        Either ``handler`` (a ``PromptHandler``) or both ``get(conn, arguments)``
        and ``complete(conn, argument, prefix)`` must be given.
        """
        _check_name("prompt", name)
        if name in self._prompts:
            raise RegistryBuildError(f"Prompt \"{name}\" is already defined")

        if handler is not None:
            if not isinstance(handler, PromptHandler):
                raise RegistryBuildError(
                    f"Handler for prompt \"{name}\" must be a PromptHandler, got {type(handler).__name__}"
                )
            get, complete = handler.get, handler.complete

        if get is None:
            raise RegistryBuildError(f"Prompt \"{name}\" needs a get handler")
        if complete is None:
            raise RegistryBuildError(f"Prompt \"{name}\" needs a complete handler")
        _check_callable(f"Get handler for prompt \"{name}\"", get)
        _check_callable(f"Complete handler for prompt \"{name}\"", complete)

        seen = set()
        for arg in arguments:
            if arg.name in seen:
                raise RegistryBuildError(
                    f"Argument \"{arg.name}\" is already defined in prompt \"{name}\""
                )
            seen.add(arg.name)

        self._prompts[name] = PromptDefinition(
            name=name,
            description=description,
            arguments=tuple(arguments),
            get=get,
            complete=complete,
        )
        logger.debug("Declared prompt", prompt_name=name, argument_count=len(arguments))
        return self

    def resource(
        self,
        name: str,
        uri: str,
        read: Optional[Callable[..., Any]] = None,
        complete: Optional[Callable[..., Any]] = None,
        description: Optional[str] = None,
        mime_type: Optional[str] = None,
        title: Optional[str] = None,
        handler: Optional[ResourceHandler] = None,
    ) -> "RegistryBuilder":
        """
        Declare a resource at a static URI or a URI template.

        Either ``handler`` (a ``ResourceHandler``) or ``read(conn, variables)``
        must be given; ``complete(conn, argument, prefix)`` is optional.
        """
        _check_name("resource", name)
        if name in self._resources:
            raise RegistryBuildError(f"Resource \"{name}\" is already defined")
        if not isinstance(uri, str) or not uri:
            raise RegistryBuildError(f"Resource \"{name}\" needs a uri")

        if handler is not None:
            if not isinstance(handler, ResourceHandler):
                raise RegistryBuildError(
                    f"Handler for resource \"{name}\" must be a ResourceHandler, got {type(handler).__name__}"
                )
            read = handler.read
            if handler.supports_completion:
                complete = handler.complete

        if read is None:
            raise RegistryBuildError(f"Resource \"{name}\" needs a read handler")
        _check_callable(f"Read handler for resource \"{name}\"", read)
        if complete is not None:
            _check_callable(f"Complete handler for resource \"{name}\"", complete)

        self._resources[name] = ResourceDefinition(
            name=name,
            uri=uri,
            read=read,
            complete=complete,
            description=description,
            mime_type=mime_type,
            title=title,
        )
        logger.debug("Declared resource", resource_name=name, uri=uri)
        return self

    def build(self) -> CapabilityRegistry:
        """
        Freeze the declarations into a registry.

        Raises:
            RegistryBuildError: Nothing was declared
        """
        if not (self._tools or self._prompts or self._resources):
            raise RegistryBuildError("A registry needs at least one tool, prompt or resource")

        registry = CapabilityRegistry(
            tools=list(self._tools.values()),
            prompts=list(self._prompts.values()),
            resources=list(self._resources.values()),
        )
        logger.info(
            "Built capability registry",
            tools=len(self._tools),
            prompts=len(self._prompts),
            resources=len(self._resources),
        )
        return registry

