"""HTTP client support for generated request functions."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Optional
from urllib.parse import quote

import httpx

from .runtime import (
    OperationContract,
    dump_value,
    is_json_media_type,
    match_content_schema,
    media_type,
    validator_for,
)

logger = logging.getLogger(__name__)

_PATH_VARIABLE_RE = re.compile(r"\{([^{}]+)\}")


class UnexpectedResponseError(RuntimeError):
    """Raised when a response status is not declared by the operation."""

    def __init__(self, *, status: int, content_type: Optional[str], body: bytes) -> None:
        super().__init__(f"Undeclared response status {status}")
        self.status = status
        self.content_type = content_type
        self.body = body


@dataclass(frozen=True)
class ClientConfig:
    """Connection settings shared by generated request functions.

    When ``client`` is given it is used as-is, otherwise a short-lived
    ``httpx.Client`` is opened per request against ``base_url``. ``auth``
    holds credential header values; only those an operation requires are
    sent with it.
    """

    base_url: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    client: Optional[httpx.Client] = None
    auth: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ApiResponse:
    """A response whose body passed the declared validator."""

    status: int
    data: Any
    headers: httpx.Headers
    content_type: Optional[str]


def send_request(
    contract: OperationContract,
    *,
    path: Optional[Mapping[str, Any]] = None,
    query: Optional[Mapping[str, Any]] = None,
    headers: Optional[Mapping[str, Any]] = None,
    body: Any = None,
    content_type: Optional[str] = None,
    config: Optional[ClientConfig] = None,
) -> ApiResponse:
    """Validate, send and decode one operation call.

    Args:
        contract (OperationContract): Validators of the operation.
        path (Optional[Mapping[str, Any]]): Path parameters.
        query (Optional[Mapping[str, Any]]): Query parameters.
        headers (Optional[Mapping[str, Any]]): Header parameters.
        body (Any): Request payload.
        content_type (Optional[str]): Request media type; defaults to the
            first declared one.
        config (Optional[ClientConfig]): Connection settings.

    Returns:
        ApiResponse: Status, validated data and response headers.

    Raises:
        pydantic.ValidationError: If the request or response data is invalid.
        UnexpectedResponseError: If the status is not declared.
        ValueError: If a required body or credential header is missing.
    """
    config = config or ClientConfig()
    path_values = _validated_parameters(contract.path_model, path)
    query_values = _validated_parameters(contract.query_model, query)
    header_values = _validated_parameters(contract.headers_model, headers)

    request_headers: dict[str, str] = dict(config.headers)
    request_headers.update({name: _header_text(value) for name, value in header_values.items()})
    request_headers.update(_auth_headers(contract, config))
    body_arguments = _encode_body(contract, body, content_type, request_headers)

    url = render_path(contract.path_template, path_values)
    logger.debug("Sending %s %s", contract.method.upper(), url)
    if config.client is not None:
        response = config.client.request(
            contract.method.upper(),
            url,
            params=query_values,
            headers=request_headers,
            **body_arguments,
        )
    else:
        with httpx.Client(base_url=config.base_url) as client:
            response = client.request(
                contract.method.upper(),
                url,
                params=query_values,
                headers=request_headers,
                **body_arguments,
            )
    return parse_response(contract, response)


def render_path(template: str, values: Mapping[str, Any]) -> str:
    """Substitute ``{name}`` path variables with URL-quoted values."""

    def _replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            raise ValueError(f"Missing path parameter {name!r} for {template}")
        return quote(_header_text(values[name]), safe="")

    return _PATH_VARIABLE_RE.sub(_replace, template)


def parse_response(contract: OperationContract, response: httpx.Response) -> ApiResponse:
    """Validate a received response against the schema declared for its status."""
    content_type = response.headers.get("content-type")
    schemas = _responses_for_status(contract.responses, response.status_code)
    if schemas is None:
        raise UnexpectedResponseError(
            status=response.status_code,
            content_type=content_type,
            body=response.content,
        )

    raw = _decode_body(response, content_type)
    _, schema = match_content_schema(schemas, content_type) if schemas else (None, None)
    data = validator_for(schema).validate_python(raw) if schema is not None else raw
    return ApiResponse(
        status=response.status_code,
        data=data,
        headers=response.headers,
        content_type=media_type(content_type),
    )


def _responses_for_status(
    responses: Mapping[str, Mapping[str, Any]],
    status: int,
) -> Optional[Mapping[str, Any]]:
    for key in (str(status), f"{status // 100}XX", f"{status // 100}xx", "default"):
        if key in responses:
            return responses[key]
    return None


def _validated_parameters(model: Any, values: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    supplied = dict(values or {})
    if model is not None:
        supplied = dump_value(validator_for(model).validate_python(supplied), mode="json")
    else:
        supplied = dump_value(supplied, mode="json")
    return {name: value for name, value in supplied.items() if value is not None}


def _auth_headers(contract: OperationContract, config: ClientConfig) -> dict[str, str]:
    supplied = httpx.Headers(config.auth)
    headers: dict[str, str] = {}
    for name in contract.auth_headers:
        value = supplied.get(name)
        if not value:
            raise ValueError(f"Missing required auth header: {name}")
        headers[name] = value
    return headers


def _encode_body(
    contract: OperationContract,
    body: Any,
    content_type: Optional[str],
    request_headers: dict[str, str],
) -> dict[str, Any]:
    if body is None:
        if contract.body_required:
            raise ValueError(f"{contract.method.upper()} {contract.path_template} requires a body")
        return {}

    chosen = content_type or next(iter(contract.request_bodies), "application/json")
    _, schema = match_content_schema(contract.request_bodies, chosen)
    validated = validator_for(schema).validate_python(body) if schema is not None else body
    base = media_type(chosen)

    if is_json_media_type(base):
        request_headers["Content-Type"] = chosen
        return {"json": dump_value(validated, mode="json")}
    if base == "application/x-www-form-urlencoded":
        return {"data": dump_value(validated, mode="json")}
    payload = dump_value(validated)
    if base == "multipart/form-data" and isinstance(payload, dict):
        files = {name: value for name, value in payload.items() if isinstance(value, bytes)}
        data = {
            name: _header_text(value)
            for name, value in payload.items()
            if not isinstance(value, bytes) and value is not None
        }
        return {"data": data, "files": files}

    request_headers["Content-Type"] = chosen
    if isinstance(payload, (bytes, str)):
        return {"content": payload}
    return {"content": json.dumps(dump_value(validated, mode="json"))}


def _decode_body(response: httpx.Response, content_type: Optional[str]) -> Any:
    if not response.content:
        return None
    if is_json_media_type(content_type):
        return response.json()
    base = media_type(content_type)
    if base is not None and base.startswith("text/"):
        return response.text
    return response.content


def _header_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_header_text(item) for item in value)
    return str(value)
