"""Per-operation client and server module builders."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Optional

from .classifier import is_reference
from .extractors import DocumentResolver, parameters_to_schema
from .json_types import JSONObject
from .model_types import ContentTypeMapping, OperationMetadata, OperationModule
from .naming import pascal_name, snake_name
from .schema_compiler import SchemaCompiler
from .security import operation_auth_headers

logger = logging.getLogger(__name__)

CLIENT_KIND = "client"
SERVER_KIND = "server"

type InlineNameKey = tuple[str, str, str]

_PARAMETER_MODELS: tuple[tuple[str, str, str], ...] = (
    ("path", "Path", "path_model"),
    ("query", "Query", "query_model"),
    ("header", "Headers", "headers_model"),
)


class OperationEmitter:
    """Build the client or server module payload of one operation.

    Args:
        resolver (DocumentResolver): Resolver over the loaded document.
        compiler (SchemaCompiler): Compiler bound to the document components.
        inline_names (Mapping[InlineNameKey, str]): Declared names of promoted
            inline bodies keyed by operation id, role and content type.
        schema_names (Sequence[str]): Symbols declared in the schemas module.
    """

    def __init__(
        self,
        *,
        resolver: DocumentResolver,
        compiler: SchemaCompiler,
        inline_names: Mapping[InlineNameKey, str],
        schema_names: Sequence[str],
    ) -> None:
        self._resolver = resolver
        self._compiler = compiler
        self._inline_names = dict(inline_names)
        self._schema_names = frozenset(schema_names)

    def build(self, operation: OperationMetadata, *, kind: str) -> OperationModule:
        """Compile the parameter models and contract of one operation."""
        imports: set[str] = set()
        prefix = pascal_name(operation.operation_id)
        module_name = snake_name(operation.operation_id)

        declarations: list[tuple[str, str]] = []
        contract_arguments: list[str] = [
            f"method={operation.method!r}",
            f"path_template={operation.path_key!r}",
        ]

        groups = self._resolver.parameter_groups(operation)
        if groups["cookie"]:
            logger.debug("Ignoring cookie parameters of %s", operation.operation_id)
        for location, suffix, argument in _PARAMETER_MODELS:
            schema = parameters_to_schema(
                [self._inline_schema_reference(parameter) for parameter in groups[location]],
                lowercase_names=location == "header",
            )
            if schema is None:
                continue
            name = self._local_name(f"{prefix}{suffix}")
            strict = kind == SERVER_KIND and location != "header"
            result = self._compiler.compile(
                schema,
                imports=imports,
                is_top_level=True,
                strict_validation=strict,
                name=name,
                lax_scalars=True,
            )
            declarations.append((name, result.code))
            contract_arguments.append(f"{argument}={name}")

        body = self._resolver.request_body(operation)
        if body is not None:
            bodies = self._content_code(operation, "request", body.mappings, imports, prefix)
            contract_arguments.append(f"request_bodies={bodies}")
            if body.required:
                contract_arguments.append("body_required=True")

        responses: list[str] = []
        for response in self._resolver.responses(operation):
            role = response.status
            content = self._content_code(operation, role, response.mappings, imports, prefix)
            responses.append(f"{role!r}: {content}")
        if responses:
            contract_arguments.append(f"responses={{{', '.join(responses)}}}")

        auth_headers = operation_auth_headers(operation.operation, self._resolver.document)
        if auth_headers:
            contract_arguments.append(f"auth_headers={auth_headers!r}")

        function_name = module_name if kind == CLIENT_KIND else f"{module_name}_handler"
        return OperationModule(
            kind=kind,
            module_name=module_name,
            function_name=function_name,
            contract_name=module_name.upper(),
            operation=operation,
            declarations=tuple(declarations),
            contract_code=f"OperationContract({', '.join(contract_arguments)})",
            imports=frozenset(imports),
            summary=_summary(operation),
        )

    def _content_code(
        self,
        operation: OperationMetadata,
        role: str,
        mappings: Sequence[ContentTypeMapping],
        imports: set[str],
        prefix: str,
    ) -> str:
        entries: list[str] = []
        for index, mapping in enumerate(mappings, start=1):
            declared = self._inline_names.get((operation.operation_id, role, mapping.content_type))
            if declared is not None:
                imports.add(declared)
                code = declared
            else:
                hint = f"{prefix}Request" if role == "request" else f"{prefix}{pascal_name(role)}"
                code = self._compiler.compile(
                    mapping.schema,
                    imports=imports,
                    name=f"{hint}Body{index}",
                ).code
            entries.append(f"{mapping.content_type!r}: {code}")
        return f"{{{', '.join(entries)}}}"

    def _inline_schema_reference(self, parameter: JSONObject) -> JSONObject:
        # Referenced schemas are copied in so their scalars coerce from text.
        schema = parameter.get("schema")
        if not isinstance(schema, Mapping) or not is_reference(schema):
            return parameter
        resolved = self._resolver.resolve_object(schema)
        if resolved is None:
            return parameter
        return {**parameter, "schema": resolved}

    def _local_name(self, name: str) -> str:
        if name in self._schema_names:
            return f"{name}Parameters"
        return name


def _summary(operation: OperationMetadata) -> Optional[str]:
    for key in ("summary", "description"):
        value = operation.operation.get(key)
        if isinstance(value, str) and value.strip():
            return " ".join(value.split())
    return None
