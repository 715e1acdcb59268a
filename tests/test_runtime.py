"""Unit tests for the client and server runtime helpers."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import httpx
import pytest
from pydantic import Field, StrictBool, StrictInt, ValidationError, create_model

from openapi_validator_generator.client_runtime import (
    ClientConfig,
    UnexpectedResponseError,
    render_path,
    send_request,
)
from openapi_validator_generator.runtime import (
    LOOSE_MODEL_CONFIG,
    STRICT_MODEL_CONFIG,
    OperationContract,
    dump_value,
    match_content_schema,
)
from openapi_validator_generator.server_runtime import (
    ParsedRequest,
    RequestValidationFailure,
    ServerRequest,
    validate_request,
    wrap_handler,
)

Pet = create_model("Pet", __config__=LOOSE_MODEL_CONFIG, id=(int, ...), name=(str, ...))
NewPet = create_model("NewPet", __config__=LOOSE_MODEL_CONFIG, name=(str, ...))
Avatar = create_model(
    "Avatar",
    __config__=LOOSE_MODEL_CONFIG,
    image=(bytes, ...),
    caption=(Optional[str], None),
)


def _client_contract() -> OperationContract:
    return OperationContract(
        method="get",
        path_template="/pets/{petId}",
        path_model=create_model("ShowPetPath", __config__=LOOSE_MODEL_CONFIG, petId=(int, ...)),
        query_model=create_model(
            "ShowPetQuery", __config__=LOOSE_MODEL_CONFIG, limit=(Optional[int], None)
        ),
        headers_model=create_model(
            "ShowPetHeaders",
            __config__=LOOSE_MODEL_CONFIG,
            x_trace=(Optional[str], Field(None, alias="x-trace")),
        ),
        responses={
            "200": {"application/json": Pet},
            "404": {},
            "5XX": {"text/plain": str},
        },
    )


def _server_contract() -> OperationContract:
    return OperationContract(
        method="post",
        path_template="/pets/{petId}",
        path_model=create_model("PostPath", __config__=STRICT_MODEL_CONFIG, petId=(int, ...)),
        query_model=create_model(
            "PostQuery", __config__=STRICT_MODEL_CONFIG, limit=(Optional[int], None)
        ),
        headers_model=create_model(
            "PostHeaders",
            __config__=LOOSE_MODEL_CONFIG,
            x_trace=(str, Field(alias="x-trace")),
        ),
        request_bodies={"application/json": Pet},
        body_required=True,
    )


def _config(handler: Any) -> ClientConfig:
    client = httpx.Client(transport=httpx.MockTransport(handler), base_url="https://api.test")
    return ClientConfig(client=client)


def test_send_request_validates_parameters_and_response() -> None:
    """Path, query and header values are validated, serialized and sent."""
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": 7, "name": "Rex"})

    response = send_request(
        _client_contract(),
        path={"petId": "7"},
        query={"limit": 5},
        headers={"x-trace": "abc"},
        config=_config(_handler),
    )

    assert response.status == 200
    assert response.content_type == "application/json"
    assert response.data.name == "Rex"
    (request,) = seen
    assert request.method == "GET"
    assert request.url.path == "/pets/7"
    assert request.url.params["limit"] == "5"
    assert request.headers["x-trace"] == "abc"


def test_optional_parameters_are_omitted() -> None:
    """Absent optional query parameters do not reach the wire."""
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(404)

    response = send_request(_client_contract(), path={"petId": 1}, config=_config(_handler))

    assert response.status == 404
    assert response.data is None
    assert "limit" not in seen[0].url.params


def test_invalid_parameters_are_rejected_before_sending() -> None:
    """A parameter that fails validation never produces a request."""

    def _handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("request should not be sent")

    with pytest.raises(ValidationError):
        send_request(_client_contract(), path={"petId": "seven"}, config=_config(_handler))


def test_status_ranges_and_undeclared_statuses() -> None:
    """Ranges like 5XX match; statuses without any entry raise."""

    def _unavailable(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="down", headers={"content-type": "text/plain"})

    def _teapot(request: httpx.Request) -> httpx.Response:
        return httpx.Response(418, content=b"short and stout")

    response = send_request(_client_contract(), path={"petId": 1}, config=_config(_unavailable))
    assert response.status == 503
    assert response.data == "down"

    with pytest.raises(UnexpectedResponseError) as excinfo:
        send_request(_client_contract(), path={"petId": 1}, config=_config(_teapot))
    assert excinfo.value.status == 418
    assert excinfo.value.body == b"short and stout"


def test_invalid_response_bodies_raise() -> None:
    """Response data is validated against the declared schema."""

    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"id": "not a number", "name": "Rex"})

    with pytest.raises(ValidationError):
        send_request(_client_contract(), path={"petId": 1}, config=_config(_handler))


def test_json_request_bodies() -> None:
    """Bodies are validated and sent as JSON; a required body must be present."""
    contract = OperationContract(
        method="post",
        path_template="/pets",
        request_bodies={"application/json": NewPet},
        body_required=True,
        responses={"201": {"application/json": Pet}},
    )
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"id": 2, **json.loads(request.content)})

    response = send_request(contract, body={"name": "Tom"}, config=_config(_handler))

    assert response.data.id == 2
    assert seen[0].headers["content-type"] == "application/json"
    assert json.loads(seen[0].content) == {"name": "Tom"}

    with pytest.raises(ValueError, match="requires a body"):
        send_request(contract, config=_config(_handler))
    with pytest.raises(ValidationError):
        send_request(contract, body={"name": ["Tom"]}, config=_config(_handler))


def test_multipart_request_bodies() -> None:
    """Bytes values of multipart bodies are sent as files."""
    contract = OperationContract(
        method="put",
        path_template="/avatar",
        request_bodies={"multipart/form-data": Avatar},
        responses={"204": {}},
    )
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    send_request(
        contract,
        body={"image": b"\x89PNG", "caption": "me"},
        config=_config(_handler),
    )

    assert seen[0].headers["content-type"].startswith("multipart/form-data")
    assert b"\x89PNG" in seen[0].content
    assert b"me" in seen[0].content


def test_render_path() -> None:
    """Path values are quoted; missing variables are an error."""
    assert render_path("/files/{name}", {"name": "a b/c"}) == "/files/a%20b%2Fc"
    assert render_path("/flags/{on}", {"on": True}) == "/flags/true"
    with pytest.raises(ValueError, match="Missing path parameter"):
        render_path("/files/{name}", {})


@pytest.mark.parametrize(
    ("content_type", "expected"),
    [
        ("application/json; charset=utf-8", "application/json"),
        ("application/problem+json", "application/json"),
        ("text/plain", "*/*"),
        (None, "*/*"),
    ],
)
def test_match_content_schema(content_type: Optional[str], expected: str) -> None:
    """Exact matches win, JSON variants share a schema, ``*/*`` catches the rest."""
    declared, _ = match_content_schema(
        {"application/json": Pet, "*/*": bytes},
        content_type,
    )
    assert declared == expected


def test_match_content_schema_without_candidates() -> None:
    """A single entry is only assumed when no content type is known."""
    assert match_content_schema({"application/json": Pet}, None) == ("application/json", Pet)
    assert match_content_schema({"application/json": Pet}, "text/xml") == (None, None)


def test_dump_value_uses_wire_names() -> None:
    """Models dump by alias and leave out unset fields."""
    model = create_model(
        "Traced",
        __config__=LOOSE_MODEL_CONFIG,
        x_trace=(Optional[str], Field(None, alias="x-trace")),
        count=(int, 0),
    )
    value = model.model_validate({"x-trace": "t"})

    assert dump_value(value) == {"x-trace": "t"}
    assert dump_value([value, {"k": value}]) == [{"x-trace": "t"}, {"k": {"x-trace": "t"}}]


def test_validate_request_parses_every_part() -> None:
    """Valid requests come back parsed; header names are case-insensitive."""
    outcome = validate_request(
        _server_contract(),
        ServerRequest(
            query={"limit": "5"},
            path={"petId": "7"},
            headers={"X-Trace": "abc"},
            body={"id": 1, "name": "Rex"},
            content_type="application/json",
        ),
    )

    assert isinstance(outcome, ParsedRequest)
    assert outcome.query.limit == 5
    assert outcome.path.petId == 7
    assert outcome.headers.x_trace == "abc"
    assert outcome.body.name == "Rex"


@pytest.mark.parametrize(
    ("request_data", "kind", "error_type"),
    [
        (
            {"query": {"limit": "5", "extra": "1"}, "path": {"petId": "7"}},
            "query_error",
            "extra_forbidden",
        ),
        ({"path": {}}, "path_error", "missing"),
        ({"path": {"petId": "7"}, "headers": {}}, "headers_error", "missing"),
        (
            {"path": {"petId": "7"}, "headers": {"x-trace": "t"}},
            "body_error",
            "missing",
        ),
        (
            {
                "path": {"petId": "7"},
                "headers": {"x-trace": "t"},
                "body": {"id": 1, "name": "Rex"},
                "content_type": "text/xml",
            },
            "body_error",
            "content_type",
        ),
        (
            {
                "path": {"petId": "7"},
                "headers": {"x-trace": "t"},
                "body": {"id": "one", "name": "Rex"},
                "content_type": "application/json",
            },
            "body_error",
            "int_parsing",
        ),
    ],
)
def test_validate_request_reports_the_first_failing_part(
    request_data: dict[str, Any],
    kind: str,
    error_type: str,
) -> None:
    """Failures name the request part and carry the pydantic error."""
    outcome = validate_request(_server_contract(), ServerRequest(**request_data))

    assert isinstance(outcome, RequestValidationFailure)
    assert outcome.kind == kind
    assert outcome.error.errors()[0]["type"] == error_type


def test_wrap_handler_sync_and_async() -> None:
    """Wrappers keep the handler's calling convention."""
    contract = OperationContract(method="get", path_template="/ping")
    calls: list[Any] = []

    def _sync(outcome: Any) -> str:
        calls.append(outcome)
        return "sync"

    async def _async(outcome: Any) -> str:
        calls.append(outcome)
        return "async"

    request = ServerRequest(query={"q": "1"})

    assert wrap_handler(contract, _sync)(request) == "sync"
    assert asyncio.run(wrap_handler(contract, _async)(request)) == "async"
    assert all(isinstance(outcome, ParsedRequest) for outcome in calls)
    assert calls[0].query == {"q": "1"}


def test_auth_headers_come_from_the_config() -> None:
    """Required credential headers are sent; unrelated credentials are not."""
    contract = OperationContract(
        method="get",
        path_template="/me",
        responses={"204": {}},
        auth_headers=("X-API-Key", "Authorization"),
    )
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    client = httpx.Client(transport=httpx.MockTransport(_handler), base_url="https://api.test")
    auth = {"x-api-key": "k", "Authorization": "Bearer t", "X-Other": "unused"}
    send_request(contract, config=ClientConfig(client=client, auth=auth))

    (request,) = seen
    assert request.headers["X-API-Key"] == "k"
    assert request.headers["authorization"] == "Bearer t"
    assert "x-other" not in request.headers

    with pytest.raises(ValueError, match="Missing required auth header: Authorization"):
        send_request(contract, config=ClientConfig(client=client, auth={"X-API-Key": "k"}))
    assert len(seen) == 1


def test_operations_without_auth_headers_send_no_credentials() -> None:
    """Credentials in the config stay out of calls that do not require them."""
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    client = httpx.Client(transport=httpx.MockTransport(_handler), base_url="https://api.test")
    contract = OperationContract(method="get", path_template="/ping", responses={"204": {}})
    send_request(contract, config=ClientConfig(client=client, auth={"Authorization": "t"}))

    assert "authorization" not in seen[0].headers


def test_text_form_bodies_are_parsed_from_strings() -> None:
    """Form fields are parsed from text; JSON bodies keep their strict types."""
    form = create_model(
        "Form",
        __config__=LOOSE_MODEL_CONFIG,
        count=(StrictInt, ...),
        on=(StrictBool, ...),
    )
    contract = OperationContract(
        method="post",
        path_template="/form",
        request_bodies={"application/x-www-form-urlencoded": form, "application/json": form},
    )

    parsed = validate_request(
        contract,
        ServerRequest(
            body={"count": "3", "on": "true"},
            content_type="application/x-www-form-urlencoded",
        ),
    )
    assert isinstance(parsed, ParsedRequest)
    assert (parsed.body.count, parsed.body.on) == (3, True)

    failure = validate_request(
        contract,
        ServerRequest(body={"count": "3", "on": "true"}, content_type="application/json"),
    )
    assert isinstance(failure, RequestValidationFailure)
    assert failure.kind == "body_error"
