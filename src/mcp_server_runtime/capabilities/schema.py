"""
Input schema model for tools.

Schemas are a closed tagged union of three node kinds (primitive, object,
array) built from field declarations once, at registry build time, and
rendered as JSON Schema fragments for ``tools/list``.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Tuple, Union

SCHEMA_TYPES = ("string", "number", "integer", "boolean", "object", "array", "null")


@dataclass(frozen=True)
class PrimitiveSchema:
    """A leaf schema node."""

    type: str
    description: Optional[str] = None
    enum: Optional[Tuple[Any, ...]] = None
    default: Any = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type}
        _put(result, "description", self.description)
        _put(result, "enum", list(self.enum) if self.enum is not None else None)
        _put(result, "default", self.default)
        return result


@dataclass(frozen=True)
class ObjectSchema:
    """An object node owning its property schemas."""

    properties: Dict[str, "SchemaNode"] = field(default_factory=dict)
    required: Tuple[str, ...] = ()
    description: Optional[str] = None
    enum: Optional[Tuple[Any, ...]] = None
    default: Any = None
    type: str = "object"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "type": self.type,
            "properties": {name: node.to_dict() for name, node in self.properties.items()},
        }
        _put(result, "required", list(self.required) or None)
        _put(result, "description", self.description)
        _put(result, "enum", list(self.enum) if self.enum is not None else None)
        _put(result, "default", self.default)
        return result


@dataclass(frozen=True)
class ArraySchema:
    """An array node owning its item schema."""

    items: "SchemaNode"
    description: Optional[str] = None
    default: Any = None
    type: str = "array"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"type": self.type, "items": self.items.to_dict()}
        _put(result, "description", self.description)
        _put(result, "default", self.default)
        return result


SchemaNode = Union[PrimitiveSchema, ObjectSchema, ArraySchema]


@dataclass(frozen=True)
class ItemSpec:
    """Declaration of an array's item type.

    ``items`` is either a simple type name (``"string"``) or another
    ``ItemSpec`` for arrays of arrays.
    """

    type: str
    fields: Tuple["FieldSpec", ...] = ()
    items: Union[str, "ItemSpec", None] = None


@dataclass(frozen=True)
class FieldSpec:
    """Declaration of a single tool input field."""

    name: str
    description: Optional[str]
    type: str
    required: bool = False
    enum: Optional[Tuple[Any, ...]] = None
    default: Any = None
    fields: Tuple["FieldSpec", ...] = ()
    items: Union[str, ItemSpec, None] = None


def format_schema(fields: Sequence[FieldSpec]) -> ObjectSchema:
    """
    Render a field set as an object schema.

    Args:
        fields: Field declarations, in declaration order

    Returns:
        Object schema whose ``required`` lists every field marked required
    """
    return ObjectSchema(
        properties={spec.name: format_field(spec) for spec in fields},
        required=tuple(spec.name for spec in fields if spec.required),
    )


def format_field(spec: FieldSpec) -> SchemaNode:
    """Render a single field declaration."""
    if spec.type == "object" and spec.fields:
        nested = format_schema(spec.fields)
        return ObjectSchema(
            properties=nested.properties,
            required=nested.required,
            description=spec.description,
            enum=spec.enum,
            default=spec.default,
        )

    if spec.type == "array" and spec.items is not None:
        return ArraySchema(
            items=_format_items(spec.items),
            description=spec.description,
            default=spec.default,
        )

    return PrimitiveSchema(
        type=spec.type,
        description=spec.description,
        enum=spec.enum,
        default=spec.default,
    )


def _format_items(items: Union[str, ItemSpec]) -> SchemaNode:
    if isinstance(items, str):
        return PrimitiveSchema(type=items)

    if items.type == "object" and items.fields:
        nested = format_schema(items.fields)
        return ObjectSchema(properties=nested.properties, required=nested.required)

    if items.type == "array" and items.items is not None:
        return ArraySchema(items=_format_items(items.items))

    return PrimitiveSchema(type=items.type)


def _put(target: Dict[str, Any], key: str, value: Any) -> None:
    if value is not None:
        target[key] = value
