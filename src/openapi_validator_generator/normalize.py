"""Upgrade of Swagger 2.0 and OpenAPI 3.0 documents to the 3.1 schema dialect."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from copy import deepcopy
from typing import Any, Optional

from .json_types import JSONObject, JSONValue

logger = logging.getLogger(__name__)

UPGRADED_OPENAPI_VERSION = "3.1.0"

_SCHEMA_LIST_KEYS: tuple[str, ...] = ("allOf", "anyOf", "oneOf", "prefixItems")
_SCHEMA_MAP_KEYS: tuple[str, ...] = ("properties", "patternProperties", "$defs")
_SCHEMA_VALUE_KEYS: tuple[str, ...] = (
    "items",
    "additionalProperties",
    "not",
    "contains",
    "propertyNames",
)
_EXCLUSIVE_BOUNDS: tuple[tuple[str, str], ...] = (
    ("exclusiveMinimum", "minimum"),
    ("exclusiveMaximum", "maximum"),
)


def is_openapi_30(document: JSONObject) -> bool:
    """Whether the document declares an OpenAPI 3.0.x version."""
    version = document.get("openapi")
    return isinstance(version, str) and version.strip().startswith("3.0")


def upgrade_to_31(document: JSONObject) -> JSONObject:
    """Return a 3.1-shaped copy of a 3.0 document.

    Schema objects are rewritten wherever the document can hold them:
    component schemas, and every ``schema`` value of parameters, headers and
    media types. The input document is not modified.

    Args:
        document (JSONObject): OpenAPI 3.0 document.

    Returns:
        JSONObject: Upgraded document with ``openapi`` set to 3.1.0.
    """
    upgraded = _upgrade_container(deepcopy(dict(document)))
    upgraded["openapi"] = UPGRADED_OPENAPI_VERSION
    logger.info(
        "Converted OpenAPI %s document to %s",
        document.get("openapi"),
        UPGRADED_OPENAPI_VERSION,
    )
    return upgraded


def upgrade_schema(schema: JSONValue) -> JSONValue:
    """Rewrite one 3.0 schema object and its sub-schemas in place.

    Returns the rewritten schema. Non-mapping values are returned unchanged.
    """
    if not isinstance(schema, dict):
        return schema

    nullable = schema.pop("nullable", None)
    if nullable is True:
        schema_type = schema.get("type")
        if isinstance(schema_type, str):
            schema["type"] = [schema_type, "null"]
        elif isinstance(schema_type, list):
            if "null" not in schema_type:
                schema["type"] = [*schema_type, "null"]
        else:
            schema["nullable"] = True

    for exclusive_key, bound_key in _EXCLUSIVE_BOUNDS:
        flag = schema.get(exclusive_key)
        if not isinstance(flag, bool):
            continue
        del schema[exclusive_key]
        if flag and bound_key in schema:
            schema[exclusive_key] = schema.pop(bound_key)

    if "example" in schema:
        example = schema.pop("example")
        if "examples" not in schema:
            schema["examples"] = [example]

    for key in _SCHEMA_LIST_KEYS:
        members = schema.get(key)
        if isinstance(members, list):
            schema[key] = [upgrade_schema(member) for member in members]
    for key in _SCHEMA_MAP_KEYS:
        members = schema.get(key)
        if isinstance(members, dict):
            schema[key] = {name: upgrade_schema(member) for name, member in members.items()}
    for key in _SCHEMA_VALUE_KEYS:
        if key in schema:
            schema[key] = upgrade_schema(schema[key])
    return schema


def _upgrade_container(node: Any, *, parent_key: str = "") -> Any:
    if isinstance(node, list):
        return [_upgrade_container(item) for item in node]
    if not isinstance(node, dict):
        return node

    for key, value in node.items():
        if key == "schema":
            node[key] = upgrade_schema(value)
        elif key == "schemas" and parent_key == "components" and isinstance(value, Mapping):
            node[key] = {name: upgrade_schema(member) for name, member in value.items()}
        else:
            node[key] = _upgrade_container(value, parent_key=key)
    return node


SWAGGER_VERSION = "2.0"
CONVERTED_OPENAPI_VERSION = "3.0.3"

_SWAGGER_REF_PREFIXES: tuple[tuple[str, str], ...] = (
    ("#/definitions/", "#/components/schemas/"),
    ("#/parameters/", "#/components/parameters/"),
    ("#/responses/", "#/components/responses/"),
)
_SWAGGER_SCHEMA_KEYS: tuple[str, ...] = (
    "type",
    "format",
    "items",
    "enum",
    "default",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "multipleOf",
    "minLength",
    "maxLength",
    "pattern",
    "minItems",
    "maxItems",
    "uniqueItems",
)
_SWAGGER_PARAMETER_KEYS: tuple[str, ...] = (
    "name",
    "in",
    "description",
    "required",
    "deprecated",
    "allowEmptyValue",
)
_COLLECTION_STYLES: dict[str, tuple[str, bool]] = {
    "csv": ("form", False),
    "multi": ("form", True),
    "ssv": ("spaceDelimited", False),
    "pipes": ("pipeDelimited", False),
}
_OAUTH_FLOWS: dict[str, str] = {
    "implicit": "implicit",
    "password": "password",
    "application": "clientCredentials",
    "accessCode": "authorizationCode",
}
_OPERATION_KEYS: tuple[str, ...] = ("get", "put", "post", "delete", "options", "head", "patch")
_DEFAULT_MEDIA_TYPE = "application/json"
_FORM_MEDIA_TYPE = "application/x-www-form-urlencoded"
_MULTIPART_MEDIA_TYPE = "multipart/form-data"


def is_swagger_20(document: JSONObject) -> bool:
    """Whether the document is a Swagger 2.0 description."""
    return str(document.get("swagger", "")).strip() == SWAGGER_VERSION


def upgrade_from_swagger_20(document: JSONObject) -> JSONObject:
    """Return an OpenAPI 3.0 rendition of a Swagger 2.0 document.

    ``definitions``, shared ``parameters`` and ``responses`` move under
    ``components`` and references to them are rewritten. Body and
    ``formData`` parameters become request bodies whose media types come
    from ``consumes``; response schemas get one entry per ``produces`` media
    type. ``host``, ``basePath`` and ``schemes`` become ``servers``.

    Args:
        document (JSONObject): Swagger 2.0 document.

    Returns:
        JSONObject: OpenAPI 3.0.3 document. The input is not modified.
    """
    source = _rewrite_refs(deepcopy(dict(document)))
    consumes = _media_types(source.get("consumes"))
    produces = _media_types(source.get("produces"))
    shared_parameters = source.get("parameters")
    shared_parameters = shared_parameters if isinstance(shared_parameters, dict) else {}

    converted: dict[str, Any] = {"openapi": CONVERTED_OPENAPI_VERSION}
    for key in ("info", "tags", "externalDocs", "security"):
        if key in source:
            converted[key] = source[key]
    converted.update({key: value for key, value in source.items() if key.startswith("x-")})
    servers = _servers(source)
    if servers:
        converted["servers"] = servers

    paths: dict[str, Any] = {}
    raw_paths = source.get("paths")
    for path, path_item in (raw_paths if isinstance(raw_paths, dict) else {}).items():
        if isinstance(path_item, dict):
            paths[path] = _convert_path_item(
                path_item,
                shared_parameters=shared_parameters,
                consumes=consumes,
                produces=produces,
            )
    converted["paths"] = paths

    components: dict[str, Any] = {}
    definitions = source.get("definitions")
    if isinstance(definitions, dict):
        components["schemas"] = {
            name: _convert_schema(schema) for name, schema in definitions.items()
        }
    parameters = {
        name: _convert_parameter(parameter)
        for name, parameter in shared_parameters.items()
        if isinstance(parameter, dict) and parameter.get("in") not in ("body", "formData")
    }
    if parameters:
        components["parameters"] = parameters
    responses = source.get("responses")
    if isinstance(responses, dict):
        components["responses"] = {
            name: _convert_response(response, produces) for name, response in responses.items()
        }
    schemes = source.get("securityDefinitions")
    if isinstance(schemes, dict):
        components["securitySchemes"] = {
            name: _convert_security_scheme(scheme) for name, scheme in schemes.items()
        }
    if components:
        converted["components"] = components

    logger.info(
        "Converted Swagger %s document to OpenAPI %s",
        SWAGGER_VERSION,
        CONVERTED_OPENAPI_VERSION,
    )
    return converted


def _rewrite_refs(node: Any) -> Any:
    if isinstance(node, list):
        return [_rewrite_refs(item) for item in node]
    if not isinstance(node, dict):
        return node
    for key, value in node.items():
        if key == "$ref" and isinstance(value, str):
            for old_prefix, new_prefix in _SWAGGER_REF_PREFIXES:
                if value.startswith(old_prefix):
                    node[key] = new_prefix + value[len(old_prefix) :]
                    break
        else:
            node[key] = _rewrite_refs(value)
    return node


def _media_types(value: Any, fallback: Optional[list[str]] = None) -> list[str]:
    if isinstance(value, list):
        media = [item for item in value if isinstance(item, str) and item]
        if media:
            return media
    return list(fallback) if fallback else [_DEFAULT_MEDIA_TYPE]


def _servers(source: Mapping[str, Any]) -> list[dict[str, Any]]:
    host = source.get("host")
    base_path = source.get("basePath")
    base_path = base_path if isinstance(base_path, str) else ""
    if not isinstance(host, str) or not host:
        return [{"url": base_path}] if base_path else []
    raw_schemes = source.get("schemes")
    if not isinstance(raw_schemes, list):
        raw_schemes = []
    schemes = [scheme for scheme in raw_schemes if isinstance(scheme, str)] or ["https"]
    return [{"url": f"{scheme}://{host}{base_path}"} for scheme in schemes]


def _convert_schema(schema: Any) -> Any:
    if not isinstance(schema, dict):
        return schema
    if schema.pop("x-nullable", None) is True:
        schema["nullable"] = True
    if schema.get("type") == "file":
        schema["type"] = "string"
        schema["format"] = "binary"
    discriminator = schema.get("discriminator")
    if isinstance(discriminator, str):
        schema["discriminator"] = {"propertyName": discriminator}
    for key in ("allOf", "anyOf", "oneOf"):
        members = schema.get(key)
        if isinstance(members, list):
            schema[key] = [_convert_schema(member) for member in members]
    properties = schema.get("properties")
    if isinstance(properties, dict):
        schema["properties"] = {
            name: _convert_schema(member) for name, member in properties.items()
        }
    for key in ("items", "additionalProperties"):
        if key in schema:
            schema[key] = _convert_schema(schema[key])
    return schema


def _simple_schema(item: Mapping[str, Any]) -> dict[str, Any]:
    # Non-body parameters and headers carry their schema keywords inline.
    schema = {key: item[key] for key in _SWAGGER_SCHEMA_KEYS if key in item}
    if isinstance(schema.get("items"), dict):
        schema["items"] = _simple_schema(schema["items"])
    if item.get("x-nullable") is True:
        schema["nullable"] = True
    return _convert_schema(schema)


def _convert_parameter(parameter: Mapping[str, Any]) -> dict[str, Any]:
    if "$ref" in parameter:
        return dict(parameter)
    converted = {key: parameter[key] for key in _SWAGGER_PARAMETER_KEYS if key in parameter}
    converted.update({key: value for key, value in parameter.items() if key.startswith("x-")})
    if parameter.get("in") == "path":
        converted["required"] = True
    converted["schema"] = _simple_schema(parameter)
    style = _COLLECTION_STYLES.get(str(parameter.get("collectionFormat", "")))
    if parameter.get("type") == "array" and style is not None:
        converted["style"], converted["explode"] = style
        if parameter.get("in") in ("path", "header"):
            converted["style"] = "simple"
    return converted


def _resolve_shared_parameter(
    parameter: Any,
    shared_parameters: Mapping[str, Any],
) -> Any:
    if not isinstance(parameter, dict):
        return parameter
    ref = parameter.get("$ref")
    prefix = "#/components/parameters/"
    if isinstance(ref, str) and ref.startswith(prefix):
        target = shared_parameters.get(ref[len(prefix) :])
        if isinstance(target, dict) and target.get("in") in ("body", "formData"):
            return target
    return parameter


def _convert_path_item(
    path_item: Mapping[str, Any],
    *,
    shared_parameters: Mapping[str, Any],
    consumes: list[str],
    produces: list[str],
) -> dict[str, Any]:
    inherited = [
        _resolve_shared_parameter(parameter, shared_parameters)
        for parameter in path_item.get("parameters") or []
    ]
    converted: dict[str, Any] = {
        key: value
        for key, value in path_item.items()
        if key not in _OPERATION_KEYS and key != "parameters"
    }
    plain = [
        _convert_parameter(parameter)
        for parameter in inherited
        if isinstance(parameter, dict) and parameter.get("in") not in ("body", "formData")
    ]
    if plain:
        converted["parameters"] = plain
    payload = [
        parameter
        for parameter in inherited
        if isinstance(parameter, dict) and parameter.get("in") in ("body", "formData")
    ]
    for method in _OPERATION_KEYS:
        operation = path_item.get(method)
        if isinstance(operation, dict):
            converted[method] = _convert_operation(
                operation,
                inherited_payload=payload,
                shared_parameters=shared_parameters,
                consumes=consumes,
                produces=produces,
            )
    return converted


def _convert_operation(
    operation: Mapping[str, Any],
    *,
    inherited_payload: list[dict[str, Any]],
    shared_parameters: Mapping[str, Any],
    consumes: list[str],
    produces: list[str],
) -> dict[str, Any]:
    operation_consumes = _media_types(operation.get("consumes"), consumes)
    operation_produces = _media_types(operation.get("produces"), produces)
    converted: dict[str, Any] = {
        key: value
        for key, value in operation.items()
        if key not in ("consumes", "produces", "parameters", "responses", "schemes")
    }

    declared = [
        _resolve_shared_parameter(parameter, shared_parameters)
        for parameter in operation.get("parameters") or []
    ]
    parameters: list[dict[str, Any]] = []
    body: Optional[Mapping[str, Any]] = None
    form: list[Mapping[str, Any]] = []
    for parameter in [*inherited_payload, *declared]:
        if not isinstance(parameter, dict):
            continue
        location = parameter.get("in")
        if location == "body":
            body = parameter
        elif location == "formData":
            form = [item for item in form if item.get("name") != parameter.get("name")]
            form.append(parameter)
        else:
            parameters.append(_convert_parameter(parameter))
    if parameters:
        converted["parameters"] = parameters

    if body is not None:
        converted["requestBody"] = _body_request(body, operation_consumes)
    elif form:
        converted["requestBody"] = _form_request(form, operation_consumes)

    responses = operation.get("responses")
    converted["responses"] = {
        str(status): _convert_response(response, operation_produces)
        for status, response in (responses if isinstance(responses, dict) else {}).items()
    }
    return converted


def _body_request(parameter: Mapping[str, Any], consumes: list[str]) -> dict[str, Any]:
    schema = _convert_schema(parameter.get("schema", {}))
    request: dict[str, Any] = {
        "content": {media: {"schema": deepcopy(schema)} for media in consumes},
    }
    if parameter.get("required") is True:
        request["required"] = True
    if isinstance(parameter.get("description"), str):
        request["description"] = parameter["description"]
    return request


def _form_request(parameters: list[Mapping[str, Any]], consumes: list[str]) -> dict[str, Any]:
    properties: dict[str, Any] = {}
    required: list[str] = []
    for parameter in parameters:
        name = str(parameter.get("name"))
        field_schema = _simple_schema(parameter)
        if isinstance(parameter.get("description"), str):
            field_schema["description"] = parameter["description"]
        properties[name] = field_schema
        if parameter.get("required") is True:
            required.append(name)
    schema: dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required

    has_file = any(parameter.get("type") == "file" for parameter in parameters)
    media = [item for item in consumes if item in (_FORM_MEDIA_TYPE, _MULTIPART_MEDIA_TYPE)]
    if not media:
        media = [_MULTIPART_MEDIA_TYPE if has_file else _FORM_MEDIA_TYPE]
    request: dict[str, Any] = {
        "content": {item: {"schema": deepcopy(schema)} for item in media},
    }
    if required:
        request["required"] = True
    return request


def _convert_response(response: Any, produces: list[str]) -> Any:
    if not isinstance(response, dict) or "$ref" in response:
        return response
    converted: dict[str, Any] = {"description": response.get("description", "")}
    converted.update({key: value for key, value in response.items() if key.startswith("x-")})
    if "schema" in response:
        schema = _convert_schema(response["schema"])
        examples = response.get("examples")
        examples = examples if isinstance(examples, dict) else {}
        content: dict[str, Any] = {}
        for media in produces:
            entry: dict[str, Any] = {"schema": deepcopy(schema)}
            if media in examples:
                entry["example"] = examples[media]
            content[media] = entry
        converted["content"] = content
    headers = response.get("headers")
    if isinstance(headers, dict):
        converted["headers"] = {
            name: {
                **({"description": header["description"]} if "description" in header else {}),
                "schema": _simple_schema(header),
            }
            for name, header in headers.items()
            if isinstance(header, dict)
        }
    return converted


def _convert_security_scheme(scheme: Any) -> Any:
    if not isinstance(scheme, dict):
        return scheme
    kind = scheme.get("type")
    description = {"description": scheme["description"]} if "description" in scheme else {}
    if kind == "basic":
        return {"type": "http", "scheme": "basic", **description}
    if kind == "oauth2":
        flow_name = _OAUTH_FLOWS.get(str(scheme.get("flow", "")), "implicit")
        flow = {key: scheme[key] for key in ("authorizationUrl", "tokenUrl") if key in scheme}
        flow["scopes"] = scheme.get("scopes") or {}
        return {"type": "oauth2", "flows": {flow_name: flow}, **description}
    return scheme
