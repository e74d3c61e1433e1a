"""
Capability registry.

Owns the immutable tool, prompt and resource definitions of a server,
renders them for the listing methods, validates required arguments and
invokes handlers. Handler faults are contained here: every failure leaves
this module as a ``CapabilityError``.
"""

import inspect
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog

from .content import CallResult, Completion, check_content
from .definitions import Conn, PromptDefinition, ResourceDefinition, ToolDefinition
from .errors import (
    CapabilityError,
    ExecutionFailedError,
    InvalidArgumentsError,
    NotFoundError,
    RegistryBuildError,
    ToolError,
    UnexpectedResultError,
)

logger = structlog.get_logger(__name__)


def validate_required_arguments(provided: Mapping[str, Any], specs: Iterable[Any]) -> List[str]:
    """
    Compute the required argument names absent from ``provided``.

    Args:
        provided: Arguments supplied by the client
        specs: Field or prompt-argument declarations with ``name`` and
            ``required`` attributes

    Returns:
        Missing names in declaration order; empty when all are present
    """
    return [spec.name for spec in specs if spec.required and spec.name not in provided]


def check_arguments(kind: str, name: str, provided: Mapping[str, Any], specs: Iterable[Any]) -> None:
    """Raise ``InvalidArgumentsError`` when required arguments are missing."""
    missing = validate_required_arguments(provided, specs)
    if missing:
        raise InvalidArgumentsError(kind, name, missing)


async def _invoke(handler: Callable[..., Any], *args: Any) -> Any:
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _describe(value: Any) -> str:
    return f"{type(value).__name__}: {value!r}"


def _index(kind: str, definitions: Iterable[Any]) -> Dict[str, Any]:
    indexed: Dict[str, Any] = {}
    for definition in definitions:
        if definition.name in indexed:
            raise RegistryBuildError(f"{kind.capitalize()} \"{definition.name}\" is already defined")
        indexed[definition.name] = definition
    return indexed


class CapabilityRegistry:
    """
    Immutable set of capabilities served by one server.

    Instances are normally produced by ``RegistryBuilder.build()``.
    """

    def __init__(
        self,
        tools: Sequence[ToolDefinition] = (),
        prompts: Sequence[PromptDefinition] = (),
        resources: Sequence[ResourceDefinition] = (),
    ):
        self._tools: Dict[str, ToolDefinition] = _index("tool", tools)
        self._prompts: Dict[str, PromptDefinition] = _index("prompt", prompts)
        self._resources: Dict[str, ResourceDefinition] = _index("resource", resources)

    @property
    def tools(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    @property
    def prompts(self) -> List[PromptDefinition]:
        return list(self._prompts.values())

    @property
    def resources(self) -> List[ResourceDefinition]:
        return list(self._resources.values())

    def get_tool(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def get_prompt_definition(self, name: str) -> Optional[PromptDefinition]:
        return self._prompts.get(name)

    def get_resource(self, name: str) -> Optional[ResourceDefinition]:
        return self._resources.get(name)

    # Listings

    def list_tools(self) -> List[Dict[str, Any]]:
        return [tool.to_dict() for tool in self._tools.values()]

    def list_prompts(self) -> List[Dict[str, Any]]:
        return [prompt.to_dict() for prompt in self._prompts.values()]

    def list_resources(self) -> List[Dict[str, Any]]:
        """Static resources only."""
        return [r.to_dict() for r in self._resources.values() if not r.is_templated]

    def list_resource_templates(self) -> List[Dict[str, Any]]:
        """Templated resources only."""
        return [r.to_dict() for r in self._resources.values() if r.is_templated]

    def resolve_resource(self, uri: str) -> Optional[Tuple[str, Dict[str, str]]]:
        """
        Find the resource serving a concrete URI.

        Static URIs are matched exactly first; otherwise the first template
        (in registration order) that matches wins.

        Returns:
            ``(resource_name, variables)`` or None when nothing matches
        """
        for resource in self._resources.values():
            if not resource.is_templated and resource.uri == uri:
                return resource.name, {}

        for resource in self._resources.values():
            if resource.is_templated:
                variables = resource.template.match(uri)
                if variables is not None:
                    return resource.name, variables

        return None

    # Invocation

    async def call_tool(self, conn: Conn, name: str, arguments: Dict[str, Any]) -> CallResult:
        """
        Invoke a tool handler.

        Args:
            conn: Connection context
            name: Tool name
            arguments: Tool arguments

        Returns:
            The handler's result, normalized to a ``CallResult``

        Raises:
            NotFoundError: No tool with this name
            InvalidArgumentsError: Required arguments are missing
            ExecutionFailedError: The handler raised
            UnexpectedResultError: The handler returned an unsupported value
        """
        tool = self._tools.get(name)
        if tool is None:
            raise NotFoundError("tool", name)

        check_arguments("tool", name, arguments, tool.fields)

        logger.debug("Calling tool", tool_name=name)
        try:
            result = await _invoke(tool.handler, conn, arguments)
        except ToolError as e:
            logger.info("Tool reported an error", tool_name=name, error_code=e.code)
            raise ExecutionFailedError(e.message) from e
        except Exception as e:
            logger.warning("Tool handler raised", tool_name=name, error=str(e), exc_info=True)
            raise ExecutionFailedError(f"Tool execution failed: {e}") from e

        if isinstance(result, CallResult):
            check_content(result.content, name)
            return result
        if isinstance(result, list):
            check_content(result, name)
            return CallResult(result)

        raise UnexpectedResultError(
            f"Invalid tool response from '{name}', expected a list of content items "
            f"or a CallResult, got {_describe(result)}"
        )

    async def get_prompt(
        self, conn: Conn, name: str, arguments: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Invoke a prompt's get handler and return its messages."""
        prompt = self._prompts.get(name)
        if prompt is None:
            raise NotFoundError("prompt", name)

        check_arguments("prompt", name, arguments, prompt.arguments)

        try:
            result = await _invoke(prompt.get, conn, arguments)
        except Exception as e:
            logger.warning("Prompt handler raised", prompt_name=name, error=str(e), exc_info=True)
            raise ExecutionFailedError(f"Prompt execution failed: {e}") from e

        if not isinstance(result, list):
            raise UnexpectedResultError(f"Invalid prompt response: {_describe(result)}")
        return result

    async def complete_prompt(
        self, conn: Conn, name: str, argument: str, prefix: str
    ) -> Completion:
        prompt = self._prompts.get(name)
        if prompt is None:
            raise NotFoundError("prompt", name)

        if not prompt.has_argument(argument):
            raise NotFoundError(
                "argument", argument, f"Argument '{argument}' not found for prompt '{name}'"
            )

        try:
            result = await _invoke(prompt.complete, conn, argument, prefix)
        except Exception as e:
            logger.warning("Prompt completion raised", prompt_name=name, error=str(e), exc_info=True)
            raise ExecutionFailedError(f"Completion execution failed: {e}") from e

        return self._as_completion(result)

    async def read_resource(
        self, conn: Conn, name: str, variables: Dict[str, str]
    ) -> Dict[str, Any]:
        """
        Invoke a resource's read handler.

        Returns:
            ``{"contents": [...]}``; a bare list from the handler is wrapped
        """
        resource = self._resources.get(name)
        if resource is None:
            raise NotFoundError("resource", name)

        try:
            result = await _invoke(resource.read, conn, variables)
        except Exception as e:
            logger.warning("Resource read raised", resource_name=name, error=str(e), exc_info=True)
            raise ExecutionFailedError(f"Resource read failed: {e}") from e

        if isinstance(result, list):
            return {"contents": result}
        if isinstance(result, dict):
            return result
        raise UnexpectedResultError(f"Invalid resource response: {_describe(result)}")

    async def complete_resource(
        self, conn: Conn, name: str, argument: str, prefix: str
    ) -> Completion:
        resource = self._resources.get(name)
        if resource is None or resource.complete is None:
            raise NotFoundError(
                "resource", name, f"Resource '{name}' not found or does not support completion"
            )

        try:
            result = await _invoke(resource.complete, conn, argument, prefix)
        except Exception as e:
            logger.warning(
                "Resource completion raised", resource_name=name, error=str(e), exc_info=True
            )
            raise ExecutionFailedError(f"Resource completion failed: {e}") from e

        return self._as_completion(result)

    @staticmethod
    def _as_completion(result: Any) -> Completion:
        if isinstance(result, Completion):
            return result
        if isinstance(result, dict) and isinstance(result.get("values"), list):
            return Completion(result["values"], result.get("total"), result.get("hasMore"))
        raise UnexpectedResultError(f"Invalid completion response: {_describe(result)}")

    def __repr__(self) -> str:
        return (
            f"CapabilityRegistry(tools={list(self._tools)}, prompts={list(self._prompts)}, "
            f"resources={list(self._resources)})"
        )


__all__ = [
    "CapabilityError",
    "CapabilityRegistry",
    "check_arguments",
    "validate_required_arguments",
]
