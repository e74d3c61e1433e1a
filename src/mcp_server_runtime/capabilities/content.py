"""
Content items and result shapes returned by capability handlers.

Tool handlers return a list of content items or a ``CallResult``; prompt
handlers return messages built with ``message``; resource handlers return
contents built with ``resource_content``; completion handlers return a
``Completion``.
"""

import base64
from typing import Any, Dict, List, Optional, Sequence, Union

import structlog

logger = structlog.get_logger(__name__)

CONTENT_TYPES = ("text", "image", "resource")


class TextContent:
    """Plain text content."""

    def __init__(self, text: str):
        self.text = text

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "text", "text": self.text}


class ImageContent:
    """Binary image content, base64-encoded on the wire."""

    def __init__(self, data: bytes, mime_type: str):
        self.data = data
        self.mime_type = mime_type

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "image",
            "data": base64.b64encode(self.data).decode("ascii"),
            "mimeType": self.mime_type,
        }


class EmbeddedResource:
    """A resource embedded in a tool result."""

    def __init__(
        self,
        uri: str,
        text: Optional[str] = None,
        blob: Optional[bytes] = None,
        mime_type: Optional[str] = None,
    ):
        self.uri = uri
        self.text = text
        self.blob = blob
        self.mime_type = mime_type

    def to_dict(self) -> Dict[str, Any]:
        resource: Dict[str, Any] = {"uri": self.uri}
        if self.mime_type is not None:
            resource["mimeType"] = self.mime_type
        if self.text is not None:
            resource["text"] = self.text
        if self.blob is not None:
            resource["blob"] = base64.b64encode(self.blob).decode("ascii")
        return {"type": "resource", "resource": resource}


ContentItem = Union[TextContent, ImageContent, EmbeddedResource, Dict[str, Any]]


class CallResult:
    """
    Extended tool result.

    Carries content items plus optional machine-readable structured content
    and free-form metadata, both passed through to the client unchanged.
    """

    def __init__(
        self,
        content: Sequence[ContentItem],
        structured_content: Optional[Dict[str, Any]] = None,
        meta: Optional[Dict[str, Any]] = None,
    ):
        self.content = list(content)
        self.structured_content = structured_content
        self.meta = meta

    @classmethod
    def text(
        cls,
        text: str,
        structured_content: Optional[Dict[str, Any]] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> "CallResult":
        """Create a result holding a single text item."""
        return cls([TextContent(text)], structured_content=structured_content, meta=meta)

    def to_dict(self, is_error: bool = False) -> Dict[str, Any]:
        """Convert to the ``tools/call`` result format."""
        result: Dict[str, Any] = {
            "content": [content_to_dict(item) for item in self.content],
            "isError": is_error,
        }
        if self.structured_content is not None:
            result["structuredContent"] = self.structured_content
        if self.meta is not None:
            result["_meta"] = self.meta
        return result


class Completion:
    """Completion suggestions for a prompt argument or resource variable."""

    def __init__(
        self,
        values: Sequence[str],
        total: Optional[int] = None,
        has_more: Optional[bool] = None,
    ):
        self.values = list(values)
        self.total = total
        self.has_more = has_more

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"values": self.values}
        if self.total is not None:
            result["total"] = self.total
        if self.has_more is not None:
            result["hasMore"] = self.has_more
        return result


def text(value: str) -> TextContent:
    return TextContent(value)


def image(data: bytes, mime_type: str) -> ImageContent:
    return ImageContent(data, mime_type)


def embedded_resource(
    uri: str,
    text: Optional[str] = None,
    blob: Optional[bytes] = None,
    mime_type: Optional[str] = None,
) -> EmbeddedResource:
    return EmbeddedResource(uri, text=text, blob=blob, mime_type=mime_type)


def completion(
    values: Sequence[str], total: Optional[int] = None, has_more: bool = False
) -> Completion:
    """Build a completion, defaulting ``hasMore`` to false."""
    return Completion(values, total=total, has_more=has_more)


def resource_content(
    name: str,
    uri: str,
    mime_type: Optional[str] = None,
    text: Optional[str] = None,
    blob: Optional[bytes] = None,
    title: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build one entry of a ``resources/read`` result.

    Args:
        name: Resource name
        uri: Concrete URI that was read
        mime_type: Optional MIME type
        text: Text body (mutually exclusive with ``blob``)
        blob: Binary body, base64-encoded on the wire
        title: Optional human-readable title

    Raises:
        ValueError: If both ``text`` and ``blob`` are given
    """
    if text is not None and blob is not None:
        raise ValueError("resource content takes either text or blob, not both")

    content: Dict[str, Any] = {"name": name, "uri": uri}
    if mime_type is not None:
        content["mimeType"] = mime_type
    if text is not None:
        content["text"] = text
    if blob is not None:
        content["blob"] = base64.b64encode(blob).decode("ascii")
    if title is not None:
        content["title"] = title
    return content


def message(role: str, type: str, content: Any) -> Dict[str, Any]:
    """Build a prompt message, e.g. ``message("user", "text", "Hello")``."""
    return {"role": role, "content": {"type": type, type: content}}


def content_to_dict(item: ContentItem) -> Any:
    if isinstance(item, (TextContent, ImageContent, EmbeddedResource)):
        return item.to_dict()
    return item


def check_content(items: Sequence[Any], tool_name: str) -> List[Any]:
    """
    Log a warning for every item that is not a recognised content item.

    Unrecognised items are still passed through to the client.

    Returns:
        The items that were not recognised
    """
    unknown = [item for item in items if not _is_content(item)]
    for item in unknown:
        logger.warning(
            "Unrecognised content item in tool result",
            tool_name=tool_name,
            item_type=type(item).__name__,
        )
    return unknown


def _is_content(item: Any) -> bool:
    if isinstance(item, (TextContent, ImageContent, EmbeddedResource)):
        return True
    return isinstance(item, dict) and item.get("type") in CONTENT_TYPES
