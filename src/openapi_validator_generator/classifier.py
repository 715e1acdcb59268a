"""Shape classification of OpenAPI schema nodes."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Optional, Union

from .json_types import JSONValue, SchemaNode
from .model_types import DiscriminatorConfig


class ShapeKind(Enum):
    """The dispatch case a schema node falls into, in precedence order."""

    REFERENCE = "reference"
    TYPE_LIST = "type_list"
    ENUM = "enum"
    NULLABLE = "nullable"
    ALL_OF = "allOf"
    ANY_OF = "anyOf"
    ONE_OF = "oneOf"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"
    ARRAY = "array"
    OBJECT = "object"
    UNKNOWN = "unknown"


_TYPE_KINDS: dict[str, ShapeKind] = {
    "string": ShapeKind.STRING,
    "number": ShapeKind.NUMBER,
    "integer": ShapeKind.NUMBER,
    "boolean": ShapeKind.BOOLEAN,
    "null": ShapeKind.NULL,
    "array": ShapeKind.ARRAY,
    "object": ShapeKind.OBJECT,
}

_COMPOSITION_KINDS: tuple[tuple[str, ShapeKind], ...] = (
    ("allOf", ShapeKind.ALL_OF),
    ("anyOf", ShapeKind.ANY_OF),
    ("oneOf", ShapeKind.ONE_OF),
)

_SCHEMA_KEYWORDS: frozenset[str] = frozenset(
    {
        "$ref",
        "type",
        "allOf",
        "anyOf",
        "oneOf",
        "properties",
        "additionalProperties",
        "items",
        "enum",
        "const",
        "format",
        "nullable",
        "x-extensible-enum",
    }
)

type EffectiveType = Union[str, tuple[str, ...], None]


def classify_schema(node: SchemaNode) -> ShapeKind:
    """Return the dispatch case for a schema node.

    The order of the checks is the precedence order of the compiler:
    references, type lists, non-string enums, the 3.0 ``nullable`` flag,
    compositions, then the declared or inferred type.

    Args:
        node (SchemaNode): Schema or reference object.

    Returns:
        ShapeKind: The single matching case.
    """
    if is_reference(node):
        return ShapeKind.REFERENCE

    effective_type = infer_effective_type(node)
    if isinstance(effective_type, tuple):
        return ShapeKind.TYPE_LIST
    if enum_values(node) is not None and effective_type != "string":
        return ShapeKind.ENUM
    if node.get("nullable") is True:
        return ShapeKind.NULLABLE
    for keyword, kind in _COMPOSITION_KINDS:
        if isinstance(node.get(keyword), list):
            return kind
    if effective_type is None:
        return ShapeKind.UNKNOWN
    return _TYPE_KINDS.get(effective_type, ShapeKind.UNKNOWN)


def is_reference(node: SchemaNode) -> bool:
    """Return whether the node is a ``$ref`` object."""
    return isinstance(node.get("$ref"), str)


def infer_effective_type(node: SchemaNode) -> EffectiveType:
    """Return the declared type, inferring object/array from structural keywords."""
    declared = node.get("type")
    if isinstance(declared, str):
        return declared
    if isinstance(declared, list):
        return tuple(item for item in declared if isinstance(item, str))
    if "properties" in node or "additionalProperties" in node:
        return "object"
    if "items" in node:
        return "array"
    return None


def analyze_type_array(types: Sequence[str]) -> tuple[tuple[str, ...], bool]:
    """Split a 3.1 type list into its non-null types and a null flag."""
    non_null: list[str] = []
    for item in types:
        if item != "null" and item not in non_null:
            non_null.append(item)
    return tuple(non_null), "null" in types


def enum_values(node: SchemaNode) -> Optional[list[JSONValue]]:
    """Return the closed value set of a node; ``const`` counts as one value."""
    values = node.get("enum")
    if isinstance(values, list) and values:
        return list(values)
    if "const" in node:
        return [node["const"]]
    return None


def clone_with(node: SchemaNode, **overrides: JSONValue) -> dict[str, JSONValue]:
    """Shallow-copy a node with some keywords replaced."""
    clone = dict(node)
    clone.update(overrides)
    return clone


def clone_without_nullable(node: SchemaNode) -> dict[str, JSONValue]:
    """Shallow-copy a node without its ``nullable`` flag."""
    return {key: value for key, value in node.items() if key != "nullable"}


def discriminator_config(node: SchemaNode) -> Optional[DiscriminatorConfig]:
    """Read the discriminator descriptor of a composition node, if any."""
    raw = node.get("discriminator")
    if not isinstance(raw, Mapping):
        return None
    property_name = raw.get("propertyName")
    if not isinstance(property_name, str) or not property_name:
        return None
    raw_mapping = raw.get("mapping")
    mapping: dict[str, str] = {}
    if isinstance(raw_mapping, Mapping):
        mapping = {
            str(tag): target for tag, target in raw_mapping.items() if isinstance(target, str)
        }
    return DiscriminatorConfig(property_name=property_name, mapping=mapping)


def is_plain_schema_object(value: object) -> bool:
    """Return whether a component entry looks like an OpenAPI schema.

    An empty mapping is the unconstrained schema. A non-empty mapping must
    carry at least one schema keyword.
    """
    if not isinstance(value, Mapping):
        return False
    if not value:
        return True
    return any(key in _SCHEMA_KEYWORDS for key in value)
