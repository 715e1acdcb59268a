"""Compilation of ``allOf``, ``anyOf`` and ``oneOf`` compositions."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from functools import reduce

from .classifier import discriminator_config, enum_values, is_reference
from .compile_context import CompileContext
from .json_types import JSONValue, SchemaNode
from .model_types import CompilationResult, DiscriminatorConfig
from .references import component_name_of


def compile_all_of(node: SchemaNode, context: CompileContext) -> CompilationResult:
    """Intersect every branch, folding pairwise from the left."""
    branches = _branches(node, "allOf")
    codes = [
        context.child(branch, f"AllOf{index}").code
        for index, branch in enumerate(branches, start=1)
    ]
    if not codes:
        return context.result("Any")
    if len(codes) == 1:
        return context.result(codes[0])
    return context.result(reduce(lambda left, right: f"all_of({left}, {right})", codes))


def compile_any_of(node: SchemaNode, context: CompileContext) -> CompilationResult:
    """Compile ``anyOf``: the first matching branch wins."""
    return _compile_alternatives(node, "anyOf", context)


def compile_one_of(node: SchemaNode, context: CompileContext) -> CompilationResult:
    """Compile ``oneOf``: exactly one branch may match."""
    return _compile_alternatives(node, "oneOf", context)


def _compile_alternatives(
    node: SchemaNode,
    keyword: str,
    context: CompileContext,
) -> CompilationResult:
    branches = _branches(node, keyword)
    results = [
        context.child(branch, f"Option{index}")
        for index, branch in enumerate(branches, start=1)
    ]

    discriminator = discriminator_config(node)
    if discriminator is not None:
        if not results:
            return context.result("Any")
        if len(results) == 1:
            return context.result(results[0].code)
        return context.result(
            _discriminated_union_code(branches, results, discriminator, context.components)
        )

    codes = [result.code for result in results]
    if keyword == "anyOf":
        codes = list(dict.fromkeys(codes))
    if not codes:
        return context.result("Any")
    if len(codes) == 1:
        return context.result(codes[0])
    if keyword == "anyOf":
        return context.result(
            f"Annotated[{' | '.join(codes)}, Field(union_mode='left_to_right')]"
        )
    return context.result(f"exactly_one({', '.join(codes)})")


def _branches(node: SchemaNode, keyword: str) -> list[SchemaNode]:
    raw = node.get(keyword)
    if not isinstance(raw, list):
        return []
    return [branch if isinstance(branch, Mapping) else {} for branch in raw]


def _discriminated_union_code(
    branches: Sequence[SchemaNode],
    results: Sequence[CompilationResult],
    discriminator: DiscriminatorConfig,
    components: Mapping[str, JSONValue],
) -> str:
    tagged: list[tuple[JSONValue, str]] = []
    seen_tags: list[JSONValue] = []
    untagged: list[str] = []
    for branch, result in zip(branches, results):
        tags = [
            tag
            for tag in _branch_tags(branch, discriminator, components)
            if tag not in seen_tags
        ]
        if not tags:
            untagged.append(result.code)
            continue
        for tag in tags:
            seen_tags.append(tag)
            tagged.append((tag, result.code))

    mapping_code = "{" + ", ".join(f"{tag!r}: {code}" for tag, code in tagged) + "}"
    arguments = [repr(discriminator.property_name), mapping_code, *untagged]
    return f"discriminated_union({', '.join(arguments)})"


def _branch_tags(
    branch: SchemaNode,
    discriminator: DiscriminatorConfig,
    components: Mapping[str, JSONValue],
) -> list[JSONValue]:
    ref = branch.get("$ref") if is_reference(branch) else None
    component_name = component_name_of(ref) if isinstance(ref, str) else None

    if isinstance(ref, str):
        mapped = [
            tag
            for tag, target in discriminator.mapping.items()
            if target == ref or (component_name is not None and target == component_name)
        ]
        if mapped:
            return list(mapped)

    schema: object = branch
    if component_name is not None:
        schema = components.get(component_name)
    values = _declared_tag_values(schema, discriminator.property_name)
    if values:
        return values
    if component_name is not None:
        return [component_name]
    return []


def _declared_tag_values(schema: object, property_name: str) -> list[JSONValue]:
    if not isinstance(schema, Mapping):
        return []
    candidates: list[object] = [schema]
    all_of = schema.get("allOf")
    if isinstance(all_of, list):
        candidates.extend(all_of)
    for candidate in candidates:
        if not isinstance(candidate, Mapping):
            continue
        properties = candidate.get("properties")
        if not isinstance(properties, Mapping):
            continue
        property_schema = properties.get(property_name)
        if isinstance(property_schema, Mapping):
            values = enum_values(property_schema)
            if values:
                return [value for value in values if isinstance(value, (str, int, bool))]
    return []
