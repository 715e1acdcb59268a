"""High-level generator orchestration."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import PurePosixPath, Path
from typing import Optional

from .classifier import is_plain_schema_object
from .codegen_ast import (
    render_operation_module,
    render_package_index,
    render_schemas_module,
    render_subpackage_init,
)
from .emitters import CLIENT_KIND, SERVER_KIND, InlineNameKey, OperationEmitter
from .extractors import (
    DocumentResolver,
    InlineBodySchema,
    ResolveError,
    collect_inline_body_schemas,
)
from .json_types import JSONObject, JSONValue
from .loader import OpenAPILoadError, UnsupportedVersionError, load_openapi_document
from .model_types import (
    GeneratedFile,
    GenerationOptions,
    GenerationResult,
    OperationManifestEntry,
    OperationMetadata,
    OperationModule,
    SchemaDeclaration,
)
from .naming import resolve_operations, snake_name, symbol_name
from .references import component_symbol_table, unique_symbol
from .schema_compiler import SchemaCompiler
from .verify import VerificationReport, verify_examples
from .writer import WriteError, format_generated_tree, prepare_output_dir, write_generated_files

logger = logging.getLogger(__name__)


class GenerationError(RuntimeError):
    """Raised when the generated package would be inconsistent."""


@dataclass(frozen=True)
class GenerationRun:
    """Generation result with optional verification report."""

    result: GenerationResult
    verification_report: Optional[VerificationReport]


@dataclass(frozen=True)
class SchemaDeclarations:
    """Declarations of the schemas module and the names given to inline bodies."""

    declarations: tuple[SchemaDeclaration, ...]
    component_count: int
    inline_names: dict[InlineNameKey, str]


def run_generation(*, options: GenerationOptions) -> GenerationRun:
    """Generate a validator package from an OpenAPI document.

    Args:
        options (GenerationOptions): Input, output and feature switches.

    Returns:
        GenerationRun: Generation metadata and optional verification report.

    Raises:
        OpenAPILoadError: If the document cannot be loaded.
        ResolveError: If a parameter, body or response reference is broken.
        GenerationError: If generated names or references would conflict.
        WriteError: If the output cannot be written or formatted.
    """
    if options.concurrency < 1:
        raise GenerationError(f"Concurrency must be at least 1, got {options.concurrency}")

    document = load_openapi_document(options.input)
    output_dir = Path(options.output_dir)
    warnings: list[str] = []

    components = component_schemas(document)
    operations = resolve_operations(_paths(document))
    resolver = DocumentResolver(document)
    compiler = SchemaCompiler(components=components)
    inline_bodies = collect_inline_body_schemas(resolver, operations)

    schemas = build_schema_declarations(
        components,
        inline_bodies,
        compiler=compiler,
        warnings=warnings,
    )
    schema_names = [declaration.name for declaration in schemas.declarations]
    _check_references(
        ((declaration.name, declaration.imports) for declaration in schemas.declarations),
        declared=schema_names,
    )
    logger.info(
        "Compiled %d component schemas and %d inline body schemas",
        schemas.component_count,
        len(schemas.declarations) - schemas.component_count,
    )

    _check_module_names(operations)
    kinds = [CLIENT_KIND] if options.generate_client else []
    if options.generate_server:
        kinds.append(SERVER_KIND)
    emitter = OperationEmitter(
        resolver=resolver,
        compiler=compiler,
        inline_names=schemas.inline_names,
        schema_names=schema_names,
    )
    modules = build_operation_modules(
        emitter,
        operations,
        kinds=kinds,
        concurrency=options.concurrency,
    )
    _check_references(
        ((f"{module.kind}.{module.module_name}", module.imports) for module in modules),
        declared=schema_names,
    )
    logger.info("Compiled %d operations (%s)", len(operations), ", ".join(kinds) or "schemas only")

    title = _title(document)
    entries = [
        OperationManifestEntry(
            operation_id=operation.operation_id,
            method=operation.method,
            path=operation.path_key,
            summary=_summary(operation),
            module_name=module_name,
            has_client=CLIENT_KIND in kinds,
            has_server=SERVER_KIND in kinds,
        )
        for operation, module_name in zip(operations, _module_names(operations))
    ]
    files = render_files(
        title=title,
        declarations=schemas.declarations,
        modules=modules,
        entries=entries,
        kinds=kinds,
    )

    prepare_output_dir(output_dir)
    write_generated_files(output_dir=output_dir, files=files, concurrency=options.concurrency)
    format_generated_tree(output_dir=output_dir)
    logger.info("Generated package written to %s", output_dir)

    result = GenerationResult(
        output_dir=str(output_dir),
        schema_names=tuple(schema_names),
        operations=tuple(entries),
        warnings=tuple(warnings),
    )
    if not options.verify:
        return GenerationRun(result=result, verification_report=None)

    report = verify_examples(
        declarations=schemas.declarations[: schemas.component_count],
        components=components,
        output_dir=output_dir,
    )
    return GenerationRun(result=result, verification_report=report)


def component_schemas(document: JSONObject) -> dict[str, JSONValue]:
    """Return ``components.schemas`` of a document, or an empty mapping."""
    components = document.get("components")
    if not isinstance(components, Mapping):
        return {}
    schemas = components.get("schemas")
    if not isinstance(schemas, Mapping):
        return {}
    return {str(name): schema for name, schema in schemas.items()}


def build_schema_declarations(
    components: Mapping[str, JSONValue],
    inline_bodies: Sequence[InlineBodySchema] = (),
    *,
    compiler: Optional[SchemaCompiler] = None,
    warnings: Optional[list[str]] = None,
) -> SchemaDeclarations:
    """Compile component schemas, then promoted inline bodies, in order.

    Malformed components and names that cannot become identifiers are
    skipped with a warning. Component symbols come from the compiler's
    symbol table, so declarations and references agree on colliding names.

    Args:
        components (Mapping[str, JSONValue]): Component schemas by name.
        inline_bodies (Sequence[InlineBodySchema]): Promoted inline bodies.
        compiler (Optional[SchemaCompiler]): Compiler bound to ``components``.
        warnings (Optional[list[str]]): Accumulator for non-fatal warnings.

    Returns:
        SchemaDeclarations: Declarations in emission order.
    """
    compiler = compiler or SchemaCompiler(components=components)
    symbols = compiler.symbols
    if symbols is None:
        symbols = component_symbol_table(components)
    collected_warnings = warnings if warnings is not None else []
    declarations: list[SchemaDeclaration] = []

    for component_name, schema in components.items():
        if not is_plain_schema_object(schema):
            _warn(collected_warnings, f"Skipping malformed component schema {component_name!r}")
            continue
        try:
            base_name = symbol_name(component_name)
        except ValueError as exc:
            _warn(collected_warnings, f"Skipping component schema {component_name!r}: {exc}")
            continue
        name = symbols[component_name]
        if name != base_name:
            _warn(
                collected_warnings,
                f"Component schema {component_name!r} declared as {name} "
                f"because {base_name} is already taken",
            )
        declarations.append(_declare(compiler, name, component_name, schema))
    component_count = len(declarations)

    used = set(symbols.values())
    inline_names: dict[InlineNameKey, str] = {}
    for body in inline_bodies:
        name = unique_symbol(body.name, used)
        declarations.append(_declare(compiler, name, body.name, body.schema))
        inline_names[(body.operation_id, body.role, body.content_type)] = name

    return SchemaDeclarations(
        declarations=tuple(declarations),
        component_count=component_count,
        inline_names=inline_names,
    )


def build_operation_modules(
    emitter: OperationEmitter,
    operations: Sequence[OperationMetadata],
    *,
    kinds: Sequence[str],
    concurrency: int,
) -> list[OperationModule]:
    """Compile operation modules with a bounded thread pool, in document order."""
    tasks = [(operation, kind) for kind in kinds for operation in operations]
    if not tasks:
        return []
    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        return list(pool.map(lambda task: emitter.build(task[0], kind=task[1]), tasks))


def render_files(
    *,
    title: Optional[str],
    declarations: Sequence[SchemaDeclaration],
    modules: Sequence[OperationModule],
    entries: Sequence[OperationManifestEntry],
    kinds: Sequence[str],
) -> list[GeneratedFile]:
    """Render every generated file of the output package."""
    files = [
        GeneratedFile(
            relative_path=PurePosixPath("__init__.py"),
            source=render_package_index(
                title=title,
                schema_names=[declaration.name for declaration in declarations],
                entries=entries,
            ),
        ),
        GeneratedFile(
            relative_path=PurePosixPath("schemas.py"),
            source=render_schemas_module(declarations, title=title),
        ),
    ]
    for kind in kinds:
        kind_modules = [module for module in modules if module.kind == kind]
        files.append(
            GeneratedFile(
                relative_path=PurePosixPath(kind, "__init__.py"),
                source=render_subpackage_init(kind, kind_modules),
            )
        )
        files.extend(
            GeneratedFile(
                relative_path=PurePosixPath(kind, f"{module.module_name}.py"),
                source=render_operation_module(module),
            )
            for module in kind_modules
        )
    return files


def _declare(
    compiler: SchemaCompiler,
    name: str,
    source_name: str,
    schema: JSONValue,
) -> SchemaDeclaration:
    node = schema if isinstance(schema, Mapping) else {}
    result = compiler.compile(node, imports=set(), is_top_level=True, name=name)
    description = node.get("description")
    if not isinstance(description, str) or not description.strip():
        description = None
    return SchemaDeclaration(
        name=name,
        source_name=source_name,
        code=result.code,
        imports=frozenset(result.imports - {name}),
        description=description.strip() if description else None,
        extensible_enum_values=result.extensible_enum_values,
    )


def _check_module_names(operations: Sequence[OperationMetadata]) -> None:
    owners: dict[str, str] = {}
    for operation, module_name in zip(operations, _module_names(operations)):
        previous = owners.setdefault(module_name, operation.operation_id)
        if previous != operation.operation_id:
            raise GenerationError(
                f"Operations {previous!r} and {operation.operation_id!r} "
                f"both map to module name {module_name!r}"
            )


def _check_references(
    owners: Iterable[tuple[str, frozenset[str]]],
    *,
    declared: Sequence[str],
) -> None:
    known = set(declared)
    for owner, imports in owners:
        missing = sorted(imports - known)
        if missing:
            raise GenerationError(
                f"{owner} references undefined component schema(s): {', '.join(missing)}"
            )


def _module_names(operations: Sequence[OperationMetadata]) -> list[str]:
    return [snake_name(operation.operation_id) for operation in operations]


def _paths(document: JSONObject) -> Mapping[str, JSONValue]:
    raw_paths = document.get("paths")
    if raw_paths is None:
        return {}
    if not isinstance(raw_paths, Mapping):
        raise OpenAPILoadError("OpenAPI document 'paths' must be an object")
    return raw_paths


def _title(document: JSONObject) -> Optional[str]:
    info = document.get("info")
    if isinstance(info, Mapping):
        title = info.get("title")
        if isinstance(title, str) and title.strip():
            return title.strip()
    return None


def _summary(operation: OperationMetadata) -> Optional[str]:
    value = operation.operation.get("summary")
    if isinstance(value, str) and value.strip():
        return " ".join(value.split())
    return None


def _warn(warnings: list[str], message: str) -> None:
    logger.warning(message)
    warnings.append(message)


__all__ = [
    "GenerationError",
    "GenerationRun",
    "OpenAPILoadError",
    "ResolveError",
    "UnsupportedVersionError",
    "WriteError",
    "build_schema_declarations",
    "run_generation",
]
