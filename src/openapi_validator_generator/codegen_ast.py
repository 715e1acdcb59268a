"""AST-based Python code generation for validator packages."""

from __future__ import annotations

import ast
from collections.abc import Iterable, Sequence
import textwrap
from typing import Optional

from .json_types import JSONValue
from .model_types import OperationManifestEntry, OperationModule, SchemaDeclaration

RUNTIME_MODULE = "openapi_validator_generator.runtime"
CLIENT_RUNTIME_MODULE = "openapi_validator_generator.client_runtime"
SERVER_RUNTIME_MODULE = "openapi_validator_generator.server_runtime"

_IMPORT_SOURCES: dict[str, str] = {
    "Callable": "collections.abc",
    "Mapping": "collections.abc",
    "date": "datetime",
    "datetime": "datetime",
    "time": "datetime",
    "timedelta": "datetime",
    "Annotated": "typing",
    "Any": "typing",
    "Literal": "typing",
    "UUID": "uuid",
    "AnyUrl": "pydantic",
    "EmailStr": "pydantic",
    "Field": "pydantic",
    "StrictBool": "pydantic",
    "StrictFloat": "pydantic",
    "StrictInt": "pydantic",
    "StrictStr": "pydantic",
    "create_model": "pydantic",
    "LOOSE_MODEL_CONFIG": RUNTIME_MODULE,
    "STRICT_MODEL_CONFIG": RUNTIME_MODULE,
    "OperationContract": RUNTIME_MODULE,
    "all_of": RUNTIME_MODULE,
    "build_validator": RUNTIME_MODULE,
    "discriminated_union": RUNTIME_MODULE,
    "exactly_one": RUNTIME_MODULE,
    "text_format": RUNTIME_MODULE,
    "ApiResponse": CLIENT_RUNTIME_MODULE,
    "ClientConfig": CLIENT_RUNTIME_MODULE,
    "send_request": CLIENT_RUNTIME_MODULE,
    "RequestOutcome": SERVER_RUNTIME_MODULE,
    "ServerRequest": SERVER_RUNTIME_MODULE,
    "wrap_handler": SERVER_RUNTIME_MODULE,
}

_MODULE_ORDER: tuple[str, ...] = (
    "collections.abc",
    "datetime",
    "typing",
    "uuid",
    "pydantic",
    RUNTIME_MODULE,
    CLIENT_RUNTIME_MODULE,
    SERVER_RUNTIME_MODULE,
)

GENERATED_IMPORT_NAMES: frozenset[str] = frozenset(_IMPORT_SOURCES)

_CLIENT_FUNCTION_TEMPLATE = """
def {function_name}(
    *,
    path: Mapping[str, Any] | None = None,
    query: Mapping[str, Any] | None = None,
    headers: Mapping[str, Any] | None = None,
    body: Any = None,
    content_type: str | None = None,
    config: ClientConfig | None = None,
) -> ApiResponse:
    return send_request(
        {contract_name},
        path=path,
        query=query,
        headers=headers,
        body=body,
        content_type=content_type,
        config=config,
    )
"""

_SERVER_FUNCTIONS_TEMPLATE = """
def route() -> dict[str, str]:
    return {{"path": {path!r}, "method": {method!r}}}


def {function_name}(
    handler: Callable[[RequestOutcome], Any],
) -> Callable[[ServerRequest], Any]:
    return wrap_handler({contract_name}, handler)
"""


def validator_name(symbol: str) -> str:
    """Name of the ``TypeAdapter`` declared for a schema symbol."""
    return f"{symbol}Validator"


def values_name(symbol: str) -> str:
    """Name of the suggested-values tuple of an extensible enum."""
    return f"{symbol}Values"


def render_schemas_module(
    declarations: Sequence[SchemaDeclaration],
    *,
    title: Optional[str] = None,
) -> str:
    """Render the schemas module as Python source using AST.

    Every declaration becomes a lazily evaluated ``type`` alias, so aliases
    may refer to each other in any order and recursively. Validators are
    built after all aliases exist.

    Args:
        declarations (Sequence[SchemaDeclaration]): Compiled schemas in order.
        title (Optional[str]): API title for the module docstring.

    Returns:
        str: Generated Python source code.
    """
    docstring = f"Validators for {title}." if title else "Generated validators."
    definitions: list[ast.stmt] = []
    exported: list[str] = []
    for declaration in declarations:
        definitions.append(_type_alias(declaration.name, declaration.code))
        if declaration.description:
            definitions.append(ast.Expr(value=ast.Constant(value=declaration.description)))
        exported.append(declaration.name)

    for declaration in declarations:
        definitions.append(
            _assign(
                validator_name(declaration.name),
                ast.Call(
                    func=ast.Name(id="build_validator", ctx=ast.Load()),
                    args=[ast.Name(id=declaration.name, ctx=ast.Load())],
                    keywords=[],
                ),
            )
        )
        exported.append(validator_name(declaration.name))
        if declaration.extensible_enum_values is not None:
            definitions.append(
                _assign(
                    values_name(declaration.name),
                    _value_expr(tuple(declaration.extensible_enum_values)),
                )
            )
            exported.append(values_name(declaration.name))

    definitions.append(_assign("__all__", _value_expr(exported)))
    return _render_module(docstring=docstring, definitions=definitions, schema_symbols=())


def render_operation_module(module: OperationModule) -> str:
    """Render a client or server module for one operation.

    Args:
        module (OperationModule): Compiled operation payload.

    Returns:
        str: Generated Python source code.
    """
    operation = module.operation
    role = "Client" if module.kind == "client" else "Server-side validation"
    title = f"{operation.method.upper()} {operation.path_key} ({operation.operation_id})"
    lines = [f"{role} for {title}."]
    if module.summary:
        lines.extend(["", *_wrap_summary(module.summary)])
    docstring = "\n".join(lines)

    definitions: list[ast.stmt] = [
        _type_alias(name, code) for name, code in module.declarations
    ]
    definitions.append(_assign(module.contract_name, _expr(module.contract_code)))

    if module.kind == "client":
        source = _CLIENT_FUNCTION_TEMPLATE.format(
            function_name=module.function_name,
            contract_name=module.contract_name,
        )
        functions = _parse_statements(source)
        _add_docstring(functions[0], module.summary or f"Call {operation.operation_id}.")
    else:
        source = _SERVER_FUNCTIONS_TEMPLATE.format(
            function_name=module.function_name,
            contract_name=module.contract_name,
            path=operation.path_key,
            method=operation.method,
        )
        functions = _parse_statements(source)
        _add_docstring(functions[0], "Path template and HTTP method of this operation.")
        _add_docstring(
            functions[1],
            f"Wrap ``handler`` with request validation for {operation.operation_id}.",
        )
    definitions.extend(functions)

    return _render_module(
        docstring=docstring,
        definitions=definitions,
        schema_symbols=module.imports,
    )


def render_subpackage_init(kind: str, modules: Sequence[OperationModule]) -> str:
    """Render ``client/__init__.py`` or ``server/__init__.py`` re-exports."""
    if kind == "client":
        docstring = "Generated API client functions."
    else:
        docstring = "Generated server request-handler wrappers."
    body: list[ast.stmt] = [ast.Expr(value=ast.Constant(value=docstring))]
    exported: list[str] = []
    for module in modules:
        body.append(
            ast.ImportFrom(
                module=module.module_name,
                names=[ast.alias(name=module.function_name)],
                level=1,
            )
        )
        exported.append(module.function_name)
    body.append(_assign("__all__", _value_expr(exported)))
    return _unparse(body)


def render_package_index(
    *,
    title: Optional[str],
    schema_names: Sequence[str],
    entries: Sequence[OperationManifestEntry],
) -> str:
    """Render the root package ``__init__.py`` documentation module.

    Args:
        title (Optional[str]): API title.
        schema_names (Sequence[str]): Declared schema symbols.
        entries (Sequence[OperationManifestEntry]): Operation index entries.

    Returns:
        str: Generated Python source for the package index.
    """
    lines: list[str] = [
        f"Generated validation layer for {title}." if title else "Generated validation layer.",
        "",
        "Modules:",
        "- .schemas: component validators "
        f"({len(schema_names)} schema{'s' if len(schema_names) != 1 else ''})",
    ]
    if any(entry.has_client for entry in entries):
        lines.append("- .client: request functions, one module per operation")
    if any(entry.has_server for entry in entries):
        lines.append("- .server: request-handler wrappers, one module per operation")
    lines.extend(["", "Operation index:"])
    for entry in entries:
        lines.append(f"- {entry.method.upper()} {entry.path} ({entry.operation_id})")
        if entry.summary:
            for summary_line in _wrap_summary(entry.summary):
                lines.append(f"  summary: {summary_line}")
        if entry.has_client:
            lines.append(f"  client: .client.{entry.module_name}")
        if entry.has_server:
            lines.append(f"  server: .server.{entry.module_name}")
    body: list[ast.stmt] = [ast.Expr(value=ast.Constant(value="\n".join(lines)))]
    return _unparse(body)


def _render_module(
    *,
    docstring: str,
    definitions: list[ast.stmt],
    schema_symbols: Iterable[str],
) -> str:
    body: list[ast.stmt] = [
        ast.Expr(value=ast.Constant(value=docstring)),
        ast.ImportFrom(module="__future__", names=[ast.alias(name="annotations")], level=0),
    ]
    body.extend(_build_imports(definitions, schema_symbols=set(schema_symbols)))
    body.extend(definitions)
    return _unparse(body)


def _build_imports(definitions: list[ast.stmt], *, schema_symbols: set[str]) -> list[ast.stmt]:
    loaded = _extract_loaded_names(definitions)
    by_module: dict[str, list[str]] = {}
    for name in sorted(loaded):
        source = _IMPORT_SOURCES.get(name)
        if source is not None:
            by_module.setdefault(source, []).append(name)

    imports: list[ast.stmt] = []
    for module in _MODULE_ORDER:
        names = by_module.get(module)
        if names:
            imports.append(
                ast.ImportFrom(
                    module=module,
                    names=[ast.alias(name=name) for name in names],
                    level=0,
                )
            )

    symbols = sorted(loaded & schema_symbols)
    if symbols:
        imports.append(
            ast.ImportFrom(
                module="schemas",
                names=[ast.alias(name=name) for name in symbols],
                level=2,
            )
        )
    return imports


def _extract_loaded_names(statements: Iterable[ast.stmt]) -> set[str]:
    loaded_names: set[str] = set()
    for statement in statements:
        for node in ast.walk(statement):
            if isinstance(node, ast.Name) and isinstance(node.ctx, ast.Load):
                loaded_names.add(node.id)
    return loaded_names


def _type_alias(name: str, code: str) -> ast.TypeAlias:
    return ast.TypeAlias(
        name=ast.Name(id=name, ctx=ast.Store()),
        type_params=[],
        value=_expr(code),
    )


def _assign(name: str, value: ast.expr) -> ast.Assign:
    return ast.Assign(targets=[ast.Name(id=name, ctx=ast.Store())], value=value)


def _add_docstring(function: ast.stmt, text: str) -> None:
    if isinstance(function, ast.FunctionDef):
        function.body.insert(0, ast.Expr(value=ast.Constant(value=text)))


def _parse_statements(source: str) -> list[ast.stmt]:
    return ast.parse(textwrap.dedent(source)).body


def _expr(code: str) -> ast.expr:
    parsed = ast.parse(code, mode="eval")
    return parsed.body


def _value_expr(value: JSONValue | tuple[JSONValue, ...]) -> ast.expr:
    parsed = ast.parse(repr(value), mode="eval")
    return parsed.body


def _unparse(body: list[ast.stmt]) -> str:
    module = ast.Module(body=body, type_ignores=[])
    ast.fix_missing_locations(module)
    return ast.unparse(module) + "\n"


def _wrap_summary(text: str) -> list[str]:
    wrapped = textwrap.wrap(text, width=84)
    return wrapped if wrapped else [text]
