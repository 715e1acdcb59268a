"""Extraction of parameters, request bodies and responses from operations."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Optional

from .classifier import is_reference
from .json_types import JSONObject, JSONValue, MutableJSONObject, SchemaNode
from .model_types import ContentTypeMapping, OperationMetadata
from .naming import pascal_name
from .references import unescape_pointer_token
from .runtime import is_json_media_type, media_type

logger = logging.getLogger(__name__)

PARAMETER_LOCATIONS: tuple[str, ...] = ("path", "query", "header", "cookie")

_REQUEST_BODY_MEDIA_TYPES: tuple[str, ...] = (
    "multipart/form-data",
    "application/x-www-form-urlencoded",
)


class ResolveError(RuntimeError):
    """Raised when resolving OpenAPI references fails."""


@dataclass(frozen=True)
class RequestBodyInfo:
    """Declared request body of one operation."""

    mappings: tuple[ContentTypeMapping, ...]
    required: bool


@dataclass(frozen=True)
class ResponseInfo:
    """Declared content of one response status."""

    status: str
    mappings: tuple[ContentTypeMapping, ...]


@dataclass(frozen=True)
class InlineBodySchema:
    """An inline request or response schema promoted to a named declaration."""

    name: str
    operation_id: str
    role: str
    content_type: str
    schema: SchemaNode


class DocumentResolver:
    """Follow local references to parameter, request body and response objects.

    Schema references are left untouched; they are compiled symbolically.
    """

    def __init__(self, document: JSONObject) -> None:
        self._document = document

    @property
    def document(self) -> JSONObject:
        """The document references are resolved against."""
        return self._document

    def resolve_object(self, node: JSONValue) -> Optional[JSONObject]:
        """Follow a chain of ``$ref`` objects to the referenced mapping."""
        seen: list[str] = []
        current = node
        while isinstance(current, Mapping) and is_reference(current):
            ref = str(current["$ref"])
            if ref in seen:
                raise ResolveError(f"Reference cycle detected: {' -> '.join([*seen, ref])}")
            seen.append(ref)
            current = self._lookup(ref)
        return current if isinstance(current, Mapping) else None

    def parameter_groups(
        self,
        operation: OperationMetadata,
    ) -> dict[str, tuple[JSONObject, ...]]:
        """Merge path-level and operation-level parameters by location.

        An operation parameter replaces a path-level parameter with the same
        name and location. Declaration order is kept.
        """
        merged: dict[tuple[str, str], JSONObject] = {}
        declared = _list(operation.operation.get("parameters"))
        for raw in (*operation.path_level_parameters, *declared):
            parameter = self.resolve_object(raw)
            if parameter is None:
                continue
            name = parameter.get("name")
            location = parameter.get("in")
            if not isinstance(name, str) or not name or location not in PARAMETER_LOCATIONS:
                continue
            merged[(str(location), name)] = parameter

        groups: dict[str, list[JSONObject]] = {location: [] for location in PARAMETER_LOCATIONS}
        for (location, _), parameter in merged.items():
            groups[location].append(parameter)
        return {location: tuple(items) for location, items in groups.items()}

    def request_body(self, operation: OperationMetadata) -> Optional[RequestBodyInfo]:
        """Return the declared request body content, if any."""
        body = self.resolve_object(operation.operation.get("requestBody"))
        if body is None:
            return None
        mappings = _content_mappings(body.get("content"))
        if not mappings:
            return None
        return RequestBodyInfo(mappings=mappings, required=body.get("required") is True)

    def responses(self, operation: OperationMetadata) -> tuple[ResponseInfo, ...]:
        """Return the declared responses in document order."""
        raw_responses = operation.operation.get("responses")
        if not isinstance(raw_responses, Mapping):
            return ()
        responses: list[ResponseInfo] = []
        for status, raw_response in raw_responses.items():
            response = self.resolve_object(raw_response)
            if response is None:
                continue
            mappings = _content_mappings(response.get("content"))
            responses.append(ResponseInfo(status=str(status), mappings=mappings))
        return tuple(responses)

    def _lookup(self, ref: str) -> JSONValue:
        if not ref.startswith("#/"):
            raise ResolveError(f"Only local references are currently supported: {ref}")
        current: JSONValue = self._document
        for token in ref[2:].split("/"):
            key = unescape_pointer_token(token)
            if not isinstance(current, Mapping) or key not in current:
                raise ResolveError(f"Unresolvable reference: {ref}")
            current = current[key]
        return current


def parameters_to_schema(
    parameters: Sequence[JSONObject],
    *,
    lowercase_names: bool = False,
) -> Optional[MutableJSONObject]:
    """Build an object schema whose properties are the given parameters.

    Args:
        parameters (Sequence[JSONObject]): Parameters of one location.
        lowercase_names (bool): Lower-case property names, for headers.

    Returns:
        Optional[MutableJSONObject]: Object schema, or None without parameters.
    """
    properties: MutableJSONObject = {}
    required: list[JSONValue] = []
    for parameter in parameters:
        raw_name = str(parameter["name"])
        name = raw_name.lower() if lowercase_names else raw_name
        properties[name] = _parameter_schema(parameter)
        if parameter.get("required") is True and name not in required:
            required.append(name)
    if not properties:
        return None
    schema: MutableJSONObject = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


def collect_inline_body_schemas(
    resolver: DocumentResolver,
    operations: Iterable[OperationMetadata],
) -> list[InlineBodySchema]:
    """Name the inline body schemas that get their own declaration.

    For the request body the first JSON, multipart or form mapping counts;
    for every response status except ``default`` the first JSON mapping
    counts. Referenced schemas keep their component name and are skipped.
    """
    collected: list[InlineBodySchema] = []
    for operation in operations:
        prefix = pascal_name(operation.operation_id)
        body = resolver.request_body(operation)
        if body is not None:
            mapping = _first_mapping(
                body.mappings,
                lambda content_type: is_json_media_type(content_type)
                or media_type(content_type) in _REQUEST_BODY_MEDIA_TYPES,
            )
            if mapping is not None and not is_reference(mapping.schema):
                collected.append(
                    InlineBodySchema(
                        name=f"{prefix}Request",
                        operation_id=operation.operation_id,
                        role="request",
                        content_type=mapping.content_type,
                        schema=mapping.schema,
                    )
                )

        for response in resolver.responses(operation):
            if response.status == "default":
                continue
            mapping = _first_mapping(response.mappings, is_json_media_type)
            if mapping is None or is_reference(mapping.schema):
                continue
            collected.append(
                InlineBodySchema(
                    name=f"{prefix}{response.status}Response",
                    operation_id=operation.operation_id,
                    role=response.status,
                    content_type=mapping.content_type,
                    schema=mapping.schema,
                )
            )
    return collected


def _parameter_schema(parameter: JSONObject) -> JSONValue:
    schema = parameter.get("schema")
    if isinstance(schema, Mapping):
        return schema
    content = parameter.get("content")
    if isinstance(content, Mapping):
        for media in content.values():
            if isinstance(media, Mapping) and isinstance(media.get("schema"), Mapping):
                return media["schema"]
    logger.debug("Parameter %s has no schema; treating it as a string", parameter.get("name"))
    return {"type": "string"}


def _content_mappings(content: JSONValue) -> tuple[ContentTypeMapping, ...]:
    if not isinstance(content, Mapping):
        return ()
    mappings: list[ContentTypeMapping] = []
    for content_type, media in content.items():
        if not isinstance(media, Mapping):
            continue
        schema = media.get("schema")
        mappings.append(
            ContentTypeMapping(
                content_type=str(content_type),
                schema=schema if isinstance(schema, Mapping) else {},
            )
        )
    return tuple(mappings)


def _first_mapping(
    mappings: Sequence[ContentTypeMapping],
    predicate: Callable[[str], bool],
) -> Optional[ContentTypeMapping]:
    for mapping in mappings:
        if predicate(mapping.content_type):
            return mapping
    return None


def _list(value: JSONValue) -> list[JSONValue]:
    return list(value) if isinstance(value, list) else []
