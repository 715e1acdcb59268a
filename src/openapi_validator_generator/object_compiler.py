"""Compilation of object schemas into dynamically created pydantic models."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional

from .compile_context import CompileContext
from .json_types import SchemaNode
from .model_types import CompilationResult
from .naming import field_identifier, pascal_name, sanitize_identifier

LOOSE_CONFIG_NAME = "LOOSE_MODEL_CONFIG"
STRICT_CONFIG_NAME = "STRICT_MODEL_CONFIG"


def compile_object(node: SchemaNode, context: CompileContext) -> CompilationResult:
    """Compile an object schema.

    Every declared property becomes a model field, in declaration order, and
    properties missing from ``required`` may be omitted. In strict mode
    undeclared keys are rejected, in loose mode they are kept. A
    schema-valued ``additionalProperties`` is not compiled.

    Args:
        node (SchemaNode): Object schema.
        context (CompileContext): Current compilation state.

    Returns:
        CompilationResult: A ``create_model(...)`` expression, or
        ``dict[str, Any]`` for a loose object without properties.
    """
    raw_properties = node.get("properties")
    properties = raw_properties if isinstance(raw_properties, Mapping) else {}
    if not properties and not context.strict_validation:
        return context.result("dict[str, Any]")

    raw_required = node.get("required")
    required = (
        {name for name in raw_required if isinstance(name, str)}
        if isinstance(raw_required, list)
        else set()
    )

    used_names: set[str] = set()
    fields: list[str] = []
    for source_name, property_schema in properties.items():
        schema = property_schema if isinstance(property_schema, Mapping) else {}
        hint_suffix = pascal_name(sanitize_identifier(source_name, lowercase=False))
        field_result = context.child(schema, hint_suffix)
        name = field_identifier(source_name, used_names)
        alias = source_name if name != source_name else None
        definition = _field_definition(
            field_result,
            required=source_name in required,
            alias=alias,
        )
        fields.append(f"{name}={definition}")

    config_name = STRICT_CONFIG_NAME if context.strict_validation else LOOSE_CONFIG_NAME
    arguments = [repr(context.hint), f"__config__={config_name}", *fields]
    return context.result(f"create_model({', '.join(arguments)})")


def _field_definition(
    result: CompilationResult,
    *,
    required: bool,
    alias: Optional[str],
) -> str:
    if result.has_default:
        default = repr(result.default)
    elif required:
        default = "..."
    else:
        default = "None"
    if alias is None:
        return f"({result.code}, {default})"
    return f"({result.code}, Field({default}, alias={alias!r}))"
