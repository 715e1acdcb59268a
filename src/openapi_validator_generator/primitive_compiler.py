"""Compilation of enum, string, number, boolean, null and array schemas."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from .classifier import enum_values
from .compile_context import CompileContext
from .json_types import JSONValue, SchemaNode
from .model_types import CompilationResult

_STRING_FORMATS: dict[str, str] = {
    "email": "EmailStr",
    "uuid": "UUID",
    "uri": "AnyUrl",
    "date": "date",
    "date-time": "datetime",
    "time": "time",
    "duration": "timedelta",
    "binary": "bytes",
}

# Formats pydantic would also parse from numbers; only text may reach them.
_TEXT_FORMATS: frozenset[str] = frozenset({"date", "date-time", "time", "duration"})

_NUMERIC_BOUNDS: tuple[tuple[str, str], ...] = (
    ("minimum", "ge"),
    ("maximum", "le"),
    ("exclusiveMinimum", "gt"),
    ("exclusiveMaximum", "lt"),
    ("multipleOf", "multiple_of"),
)


def literal_code(values: Sequence[JSONValue]) -> str:
    """Render a closed value set as ``Literal[...]``.

    Values that cannot appear in a ``Literal`` (objects, arrays) make the
    whole set unconstrained.
    """
    if any(isinstance(value, (Mapping, list)) for value in values):
        return "Any"
    unique: list[JSONValue] = []
    for value in values:
        if not any(value == seen and type(value) is type(seen) for seen in unique):
            unique.append(value)
    return f"Literal[{', '.join(repr(value) for value in unique)}]"


def constrained(base: str, constraints: Sequence[tuple[str, JSONValue]]) -> str:
    """Attach ``Field`` constraints to a type expression when there are any."""
    if not constraints:
        return base
    arguments = ", ".join(f"{name}={value!r}" for name, value in constraints)
    return f"Annotated[{base}, Field({arguments})]"


def compile_enum(node: SchemaNode, context: CompileContext) -> CompilationResult:
    """Compile a non-string enum; a 3.0 ``nullable`` flag wraps the result."""
    code = literal_code(enum_values(node) or [])
    if node.get("nullable") is True and code != "Any":
        code = f"{code} | None"
    return context.result(code)


def compile_string(node: SchemaNode, context: CompileContext) -> CompilationResult:
    """Compile a string schema.

    Precedence: extensible enum, then enum, then format, then the length and
    pattern constraints.
    """
    extensible = node.get("x-extensible-enum")
    if isinstance(extensible, list):
        values = tuple(extensible)
        text = _text_type(context)
        code = f"{literal_code(values)} | {text}" if values else text
        return context.result(code, extensible_enum_values=values)

    values = enum_values(node)
    if values is not None:
        return context.result(literal_code(values))

    string_format = node.get("format")
    if isinstance(string_format, str) and string_format in _STRING_FORMATS:
        code = _STRING_FORMATS[string_format]
        if string_format in _TEXT_FORMATS and not context.lax_scalars:
            code = f"text_format({code})"
        return context.result(code)

    constraints: list[tuple[str, JSONValue]] = []
    for keyword, argument in (("minLength", "min_length"), ("maxLength", "max_length")):
        value = node.get(keyword)
        if isinstance(value, int) and not isinstance(value, bool):
            constraints.append((argument, value))
    pattern = node.get("pattern")
    if isinstance(pattern, str):
        constraints.append(("pattern", pattern))
    return context.result(constrained(_text_type(context), constraints))


def compile_number(node: SchemaNode, context: CompileContext) -> CompilationResult:
    """Compile a number or integer schema with its bounds.

    Outside parameter models numeric strings and booleans are rejected.
    """
    base = "int" if node.get("type") == "integer" else "float"
    if not context.lax_scalars:
        base = "StrictInt" if base == "int" else "StrictFloat"
    constraints: list[tuple[str, JSONValue]] = []
    for keyword, argument in _NUMERIC_BOUNDS:
        value = node.get(keyword)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        constraints.append((argument, value))

    # Boolean exclusive flags left over from 3.0 tighten the plain bounds.
    for flag, bound, argument in (
        ("exclusiveMinimum", "ge", "gt"),
        ("exclusiveMaximum", "le", "lt"),
    ):
        if node.get(flag) is True:
            constraints = [
                (argument if name == bound else name, value) for name, value in constraints
            ]
    return context.result(constrained(base, constraints))


def compile_boolean(node: SchemaNode, context: CompileContext) -> CompilationResult:
    """Compile a boolean schema."""
    return context.result("bool" if context.lax_scalars else "StrictBool")


def compile_null(node: SchemaNode, context: CompileContext) -> CompilationResult:
    """Compile ``type: null``."""
    return context.result("None")


def compile_array(node: SchemaNode, context: CompileContext) -> CompilationResult:
    """Compile an array schema.

    ``uniqueItems`` is not enforced.
    """
    items = node.get("items")
    if not isinstance(items, Mapping):
        return context.result("list[Any]")

    item_result = context.child(items, "Item")
    constraints: list[tuple[str, JSONValue]] = []
    for keyword, argument in (("minItems", "min_length"), ("maxItems", "max_length")):
        value = node.get(keyword)
        if isinstance(value, int) and not isinstance(value, bool):
            constraints.append((argument, value))
    return context.result(constrained(f"list[{item_result.code}]", constraints))


def _text_type(context: CompileContext) -> str:
    return "str" if context.lax_scalars else "StrictStr"
