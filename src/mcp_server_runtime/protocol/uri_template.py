"""
URI templates for MCP resource addressing.

Supports a small, path-oriented subset of URI templates:

- ``:name`` and ``{name}`` segments bind a whole path segment
- ``{name:N}`` binds a segment of exactly ``N`` characters (prefix modifier)
- a trailing ``{?a,b}`` expression declares optional query variables

Example:
    >>> tpl = URITemplate.parse("/users/:id/posts/{post}")
    >>> tpl.vars
    ['id', 'post']
    >>> tpl.interpolate({"id": 42, "post": "hello"})
    '/users/42/posts/hello'
    >>> tpl.match("/users/42/posts/hello")
    {'id': '42', 'post': 'hello'}
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import quote, unquote

_QUERY_EXPRESSION = re.compile(r"\{\?([^}]+)\}\s*$")
_BRACE_SEGMENT = re.compile(r"^\{([^}]+)\}$")


class URITemplateError(Exception):
    """Base exception for URI template failures."""


class MissingVariableError(URITemplateError):
    """A path variable had no (or a null) value during interpolation."""

    def __init__(self, name: str):
        super().__init__(f"missing variable: {name}")
        self.name = name


class PrefixTooShortError(URITemplateError):
    """A value bound to a ``{name:N}`` segment had fewer than N characters."""

    def __init__(self, name: str, length: int):
        super().__init__(f"variable {name} shorter than prefix {length}")
        self.name = name
        self.length = length


@dataclass(frozen=True)
class Literal:
    value: str


@dataclass(frozen=True)
class Variable:
    name: str


@dataclass(frozen=True)
class PrefixVariable:
    name: str
    length: int


@dataclass(frozen=True)
class QuerySet:
    names: Tuple[str, ...]


Segment = Union[Literal, Variable, PrefixVariable, QuerySet]


def _trim_empty(parts: List[str]) -> List[str]:
    """Drop leading and trailing empty segments, keeping internal ones."""
    start = 0
    end = len(parts)
    while start < end and parts[start] == "":
        start += 1
    while end > start and parts[end - 1] == "":
        end -= 1
    return parts[start:end]


def _parse_segment(raw: str) -> Segment:
    if raw.startswith(":") and len(raw) > 1:
        return Variable(raw[1:])

    brace = _BRACE_SEGMENT.match(raw)
    if brace is None:
        return Literal(raw)

    inner = brace.group(1)
    name, sep, length = inner.partition(":")
    if sep and length.isdigit():
        return PrefixVariable(name, int(length))
    return Variable(inner)


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_query(query: str) -> Dict[str, str]:
    pairs: Dict[str, str] = {}
    for pair in query.split("&"):
        key, _, value = pair.partition("=")
        pairs[unquote(key)] = unquote(value)
    return pairs


@dataclass(frozen=True)
class URITemplate:
    """A parsed URI template."""

    template: str
    segments: Tuple[Segment, ...] = field(default=())
    vars: List[str] = field(default_factory=list)

    @classmethod
    def parse(cls, template: str) -> "URITemplate":
        """
        Parse a template string.

        Args:
            template: Raw template, e.g. ``"file:///{path}{?rev}"``

        Returns:
            Parsed template with its ordered segments and variable names
        """
        path_template = template
        query_vars: List[str] = []

        expression = _QUERY_EXPRESSION.search(template)
        if expression is not None:
            path_template = template[: expression.start()]
            query_vars = [name.strip() for name in expression.group(1).split(",")]

        segments: List[Segment] = [
            _parse_segment(raw) for raw in _trim_empty(path_template.split("/"))
        ]
        if query_vars:
            segments.append(QuerySet(tuple(query_vars)))

        names: List[str] = []
        for segment in segments:
            if isinstance(segment, (Variable, PrefixVariable)):
                names.append(segment.name)
            elif isinstance(segment, QuerySet):
                names.extend(segment.names)

        return cls(template=template, segments=tuple(segments), vars=names)

    @property
    def is_templated(self) -> bool:
        return bool(self.vars)

    def interpolate(self, variables: Mapping[Any, Any]) -> str:
        """
        Build a concrete URI from variable values.

        Path variables are mandatory; query variables are optional and only
        emitted when present.

        Raises:
            MissingVariableError: A path variable is absent or None
            PrefixTooShortError: A prefix-bound value is too short
        """
        values = {_stringify(key): value for key, value in variables.items()}
        parts: List[str] = []

        for segment in self.segments:
            if isinstance(segment, Literal):
                parts.append(segment.value)

            elif isinstance(segment, Variable):
                parts.append(_stringify(self._require(values, segment.name)))

            elif isinstance(segment, PrefixVariable):
                text = _stringify(self._require(values, segment.name))
                if len(text) < segment.length:
                    raise PrefixTooShortError(segment.name, segment.length)
                parts.append(text[: segment.length])

            elif isinstance(segment, QuerySet):
                query = "&".join(
                    f"{quote(name, safe='')}={quote(_stringify(values[name]), safe='')}"
                    for name in segment.names
                    if values.get(name) is not None
                )
                if not query:
                    continue
                if parts:
                    parts[-1] = f"{parts[-1]}?{query}"
                else:
                    parts.append(f"?{query}")

        uri = "/".join(parts)
        if self.template.startswith("/"):
            uri = "/" + uri.lstrip("/")
        return uri

    def match(self, uri: str) -> Optional[Dict[str, str]]:
        """
        Match a concrete URI against this template.

        Returns:
            Mapping of variable name to raw string value, or None when the
            URI does not fit the template
        """
        path, _, query = uri.partition("?")
        uri_segments = _trim_empty(path.split("/"))
        path_segments = [s for s in self.segments if not isinstance(s, QuerySet)]

        if len(path_segments) != len(uri_segments):
            return None

        bound: Dict[str, str] = {}
        for segment, value in zip(path_segments, uri_segments):
            if isinstance(segment, Literal):
                if segment.value != value:
                    return None
            elif isinstance(segment, Variable):
                bound[segment.name] = value
            elif isinstance(segment, PrefixVariable):
                if len(value) != segment.length:
                    return None
                bound[segment.name] = value

        query_names = [
            name for s in self.segments if isinstance(s, QuerySet) for name in s.names
        ]
        if query_names and query:
            parsed = _parse_query(query)
            bound.update({name: parsed[name] for name in query_names if name in parsed})

        return bound

    @staticmethod
    def _require(values: Dict[str, Any], name: str) -> Any:
        value = values.get(name)
        if value is None:
            raise MissingVariableError(name)
        return value
