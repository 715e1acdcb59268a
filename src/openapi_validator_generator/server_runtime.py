"""Request validation for generated server handler wrappers."""

from __future__ import annotations

import functools
import inspect
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union

from pydantic import ValidationError
from pydantic_core import InitErrorDetails, PydanticCustomError

from .runtime import OperationContract, match_content_schema, media_type, validator_for

type ValidationFailureKind = Literal["query_error", "path_error", "headers_error", "body_error"]

_FORM_MEDIA_TYPES: frozenset[str] = frozenset(
    {"application/x-www-form-urlencoded", "multipart/form-data"}
)


@dataclass(frozen=True)
class ServerRequest:
    """Framework-neutral view of an incoming request."""

    query: Mapping[str, Any] = field(default_factory=dict)
    path: Mapping[str, Any] = field(default_factory=dict)
    headers: Mapping[str, Any] = field(default_factory=dict)
    body: Any = None
    content_type: Optional[str] = None


@dataclass(frozen=True)
class ParsedRequest:
    """A request whose every part passed validation."""

    query: Any
    path: Any
    headers: Any
    body: Any = None
    content_type: Optional[str] = None


@dataclass(frozen=True)
class RequestValidationFailure:
    """The first request part that failed validation."""

    kind: ValidationFailureKind
    error: ValidationError


type RequestOutcome = Union[ParsedRequest, RequestValidationFailure]


def validate_request(contract: OperationContract, request: ServerRequest) -> RequestOutcome:
    """Validate query, path, headers and body, in that order.

    Args:
        contract (OperationContract): Validators of the operation.
        request (ServerRequest): Incoming request data.

    Returns:
        RequestOutcome: Parsed parts, or the failure of the first invalid part.
    """
    parts: dict[str, Any] = {}
    for part, model, kind in (
        ("query", contract.query_model, "query_error"),
        ("path", contract.path_model, "path_error"),
        ("headers", contract.headers_model, "headers_error"),
    ):
        supplied = dict(getattr(request, part))
        if part == "headers":
            supplied = {str(name).lower(): value for name, value in supplied.items()}
        if model is None:
            parts[part] = supplied
            continue
        try:
            parts[part] = validator_for(model).validate_python(supplied)
        except ValidationError as exc:
            return RequestValidationFailure(kind=kind, error=exc)

    try:
        body = _validate_body(contract, request)
    except ValidationError as exc:
        return RequestValidationFailure(kind="body_error", error=exc)
    return ParsedRequest(
        query=parts["query"],
        path=parts["path"],
        headers=parts["headers"],
        body=body,
        content_type=request.content_type,
    )


def wrap_handler(
    contract: OperationContract,
    handler: Callable[[RequestOutcome], Any],
) -> Callable[[ServerRequest], Any]:
    """Return a callable that validates a request before calling ``handler``.

    Coroutine handlers produce a coroutine wrapper.
    """
    if inspect.iscoroutinefunction(handler):

        @functools.wraps(handler)
        async def _async_wrapper(request: ServerRequest) -> Any:
            return await handler(validate_request(contract, request))

        return _async_wrapper

    @functools.wraps(handler)
    def _wrapper(request: ServerRequest) -> Any:
        return handler(validate_request(contract, request))

    return _wrapper


def _validate_body(contract: OperationContract, request: ServerRequest) -> Any:
    if request.body is None:
        if contract.body_required:
            raise _body_error("missing", "Request body is required", request.body)
        return None
    if not contract.request_bodies:
        return request.body

    _, schema = match_content_schema(contract.request_bodies, request.content_type)
    if schema is None:
        raise _body_error(
            "content_type",
            f"Unsupported content type {request.content_type!r}",
            request.content_type,
        )
    adapter = validator_for(schema)
    if media_type(request.content_type) in _FORM_MEDIA_TYPES and _is_text_form(request.body):
        return adapter.validate_strings(request.body)
    return adapter.validate_python(request.body)


def _is_text_form(body: Any) -> bool:
    # Decoded form fields are text; scalars are parsed from it.
    if not isinstance(body, Mapping):
        return False
    return all(
        isinstance(value, str)
        or (isinstance(value, list) and all(isinstance(item, str) for item in value))
        for value in body.values()
    )


def _body_error(error_type: str, message: str, value: Any) -> ValidationError:
    detail: InitErrorDetails = {
        "type": PydanticCustomError(error_type, message),
        "loc": ("body",),
        "input": value,
    }
    return ValidationError.from_exception_data("RequestBody", [detail])
