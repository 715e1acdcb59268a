"""Unit tests for document loading."""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from openapi_validator_generator.loader import (
    OpenAPILoadError,
    UnsupportedVersionError,
    load_openapi_document,
)

from .fixture_helpers import fixture_path

_MINIMAL_30 = {
    "openapi": "3.0.1",
    "info": {"title": "Tiny", "version": "1"},
    "paths": {},
    "components": {"schemas": {"Name": {"type": "string", "nullable": True}}},
}


def test_json_documents_are_upgraded(tmp_path: Path) -> None:
    """JSON is valid YAML; 3.0 documents come back 3.1-shaped."""
    path = tmp_path / "tiny.json"
    path.write_text(json.dumps(_MINIMAL_30), encoding="utf-8")

    document = load_openapi_document(str(path))

    assert document["openapi"] == "3.1.0"
    assert document["components"]["schemas"]["Name"] == {"type": ["string", "null"]}


def test_swagger_documents_are_converted() -> None:
    """Swagger 2.0 input is converted and then upgraded to 3.1."""
    document = load_openapi_document(str(fixture_path("swagger_petstore.yaml")))

    assert document["openapi"] == "3.1.0"
    assert "swagger" not in document
    assert document["servers"] == [{"url": "https://petstore.test/v1"}]
    tag = document["components"]["schemas"]["Pet"]["properties"]["tag"]
    assert tag == {"type": ["string", "null"]}
    create_pet = document["paths"]["/pets"]["post"]
    assert create_pet["requestBody"]["content"]["application/json"]["schema"] == {
        "$ref": "#/components/schemas/NewPet"
    }


def test_other_swagger_versions_are_rejected(tmp_path: Path) -> None:
    """Only Swagger 2.0 is converted."""
    path = tmp_path / "swagger.yaml"
    path.write_text(
        'swagger: "1.2"\ninfo: {title: Old, version: "1"}\npaths: {}\n',
        encoding="utf-8",
    )

    with pytest.raises(UnsupportedVersionError, match="Unsupported version"):
        load_openapi_document(str(path))


@pytest.mark.parametrize(
    ("content", "message"),
    [
        ("- just\n- a list\n", "mapping"),
        ("openapi: [\n", "Failed to parse"),
        ("info: {title: x, version: '1'}\npaths: {}\n", "version"),
        ("openapi: 2.0.0\ninfo: {title: x, version: '1'}\npaths: {}\n", "Unsupported version"),
        ("openapi: 3.1.0\npaths: {}\n", "validation failed"),
    ],
)
def test_invalid_documents(tmp_path: Path, content: str, message: str) -> None:
    """Unreadable or invalid documents raise OpenAPILoadError."""
    path = tmp_path / "broken.yaml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(OpenAPILoadError, match=message):
        load_openapi_document(str(path))


def test_missing_file() -> None:
    """A missing path is a load error."""
    with pytest.raises(OpenAPILoadError, match="Failed to read"):
        load_openapi_document("/nonexistent/openapi.yaml")


def test_documents_are_fetched_over_http(monkeypatch: pytest.MonkeyPatch) -> None:
    """URLs are downloaded with httpx."""
    requested: list[str] = []

    def _fake_get(url: str, **kwargs: object) -> httpx.Response:
        requested.append(url)
        assert kwargs.get("follow_redirects") is True
        return httpx.Response(
            200,
            text=json.dumps(_MINIMAL_30),
            request=httpx.Request("GET", url),
        )

    monkeypatch.setattr(httpx, "get", _fake_get)

    document = load_openapi_document("https://example.com/openapi.json")

    assert requested == ["https://example.com/openapi.json"]
    assert document["info"]["title"] == "Tiny"


def test_http_errors_are_load_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    """Non-success statuses fail loading."""

    def _fake_get(url: str, **kwargs: object) -> httpx.Response:
        return httpx.Response(404, request=httpx.Request("GET", url))

    monkeypatch.setattr(httpx, "get", _fake_get)

    with pytest.raises(OpenAPILoadError, match="Failed to fetch"):
        load_openapi_document("http://example.com/missing.yaml")
