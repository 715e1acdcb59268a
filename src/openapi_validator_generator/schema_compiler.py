"""Recursive compiler from OpenAPI schema nodes to pydantic type expressions."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import replace
from typing import Optional

from .classifier import (
    ShapeKind,
    analyze_type_array,
    classify_schema,
    clone_with,
    clone_without_nullable,
    infer_effective_type,
)
from .compile_context import CompileContext
from .composition_compiler import compile_all_of, compile_any_of, compile_one_of
from .json_types import JSONValue, SchemaNode
from .model_types import CompilationResult
from .object_compiler import compile_object
from .primitive_compiler import (
    compile_array,
    compile_boolean,
    compile_enum,
    compile_null,
    compile_number,
    compile_string,
)
from .references import compile_reference, component_symbol_table

type ShapeHandler = Callable[[SchemaNode, CompileContext], CompilationResult]

_UNWRAPPED_NULLABLE_CODES: frozenset[str] = frozenset({"Any", "None"})


class SchemaCompiler:
    """Compile schema nodes of one document.

    The compiler holds no per-call state: every call gets its own
    :class:`CompileContext`, so one instance may serve several threads as
    long as each call has its own import accumulator.

    With ``components`` the compiler owns the symbol table of the document,
    and references resolve through it. Without them a reference symbol is
    derived from the component name alone.
    """

    def __init__(self, *, components: Optional[Mapping[str, JSONValue]] = None) -> None:
        self._components: Mapping[str, JSONValue] = dict(components or {})
        self.symbols: Optional[dict[str, str]] = (
            component_symbol_table(components) if components is not None else None
        )
        self._handlers: dict[ShapeKind, ShapeHandler] = {
            ShapeKind.TYPE_LIST: self._compile_type_list,
            ShapeKind.ENUM: compile_enum,
            ShapeKind.NULLABLE: self._compile_nullable,
            ShapeKind.ALL_OF: compile_all_of,
            ShapeKind.ANY_OF: compile_any_of,
            ShapeKind.ONE_OF: compile_one_of,
            ShapeKind.STRING: compile_string,
            ShapeKind.NUMBER: compile_number,
            ShapeKind.BOOLEAN: compile_boolean,
            ShapeKind.NULL: compile_null,
            ShapeKind.ARRAY: compile_array,
            ShapeKind.OBJECT: compile_object,
            ShapeKind.UNKNOWN: _compile_unknown,
        }

    def compile(
        self,
        node: SchemaNode,
        *,
        imports: Optional[set[str]] = None,
        is_top_level: bool = False,
        strict_validation: bool = False,
        name: Optional[str] = None,
        lax_scalars: bool = False,
    ) -> CompilationResult:
        """Compile one schema node into a type expression.

        Args:
            node (SchemaNode): Schema or reference object.
            imports (Optional[set[str]]): Accumulator for referenced component
                symbols; a fresh set is used when omitted.
            is_top_level (bool): Whether the node is a named declaration.
            strict_validation (bool): Reject undeclared object keys.
            name (Optional[str]): Name of the declaration, used for models
                created from inline objects.
            lax_scalars (bool): Let scalars coerce from strings, for
                parameter models.

        Returns:
            CompilationResult: The expression and its dependencies.
        """
        hint = name or ("Model" if is_top_level else "Inline")
        context = CompileContext(
            imports=imports if imports is not None else set(),
            strict_validation=strict_validation,
            hint=hint,
            dispatch=self._dispatch,
            components=self._components,
            symbols=self.symbols,
            lax_scalars=lax_scalars,
        )
        return self._dispatch(node, context)

    def _dispatch(self, node: SchemaNode, context: CompileContext) -> CompilationResult:
        kind = classify_schema(node)
        if kind is ShapeKind.REFERENCE:
            return compile_reference(str(node["$ref"]), context.imports, context.symbols)

        result = self._handlers[kind](node, context)
        if "default" in node and not result.has_default:
            result = replace(result, has_default=True, default=node["default"])
        return result

    def _compile_type_list(self, node: SchemaNode, context: CompileContext) -> CompilationResult:
        effective_type = infer_effective_type(node)
        types = effective_type if isinstance(effective_type, tuple) else ()
        non_null, has_null = analyze_type_array(types)

        base = clone_without_nullable(node) if has_null else dict(node)
        if not non_null:
            return context.result("None" if has_null else "Any")

        if len(non_null) == 1:
            inner = context.child(clone_with(base, type=non_null[0]))
            code = _nullable(inner.code) if has_null else inner.code
            return context.result(code, extensible_enum_values=inner.extensible_enum_values)

        codes: list[str] = []
        for type_name in non_null:
            code = context.child(clone_with(base, type=type_name)).code
            if code not in codes:
                codes.append(code)
        union = codes[0] if len(codes) == 1 else " | ".join(codes)
        return context.result(_nullable(union) if has_null else union)

    def _compile_nullable(self, node: SchemaNode, context: CompileContext) -> CompilationResult:
        inner = context.child(clone_without_nullable(node))
        return context.result(
            _nullable(inner.code),
            extensible_enum_values=inner.extensible_enum_values,
        )


def compile_schema(
    node: SchemaNode,
    *,
    imports: Optional[set[str]] = None,
    is_top_level: bool = False,
    strict_validation: bool = False,
    name: Optional[str] = None,
    components: Optional[Mapping[str, JSONValue]] = None,
    lax_scalars: bool = False,
) -> CompilationResult:
    """Compile a schema node with a one-off :class:`SchemaCompiler`."""
    compiler = SchemaCompiler(components=components)
    return compiler.compile(
        node,
        imports=imports,
        is_top_level=is_top_level,
        strict_validation=strict_validation,
        name=name,
        lax_scalars=lax_scalars,
    )


def _compile_unknown(node: SchemaNode, context: CompileContext) -> CompilationResult:
    return context.result("Any")


def _nullable(code: str) -> str:
    if code in _UNWRAPPED_NULLABLE_CODES or code.endswith(" | None"):
        return code
    return f"{code} | None"
