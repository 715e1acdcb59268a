"""Unit tests for identifier and operation-id naming."""

from __future__ import annotations

import pytest

from openapi_validator_generator.naming import (
    field_identifier,
    generate_operation_id,
    resolve_operations,
    snake_name,
    symbol_name,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Pet", "Pet"),
        ("pet-item", "petItem"),
        ("Pet.Item v2", "PetItemV2"),
        ("2fa", "_2fa"),
        ("list", "listSchema"),
        ("match", "matchSchema"),
        ("Literal", "LiteralSchema"),
    ],
)
def test_symbol_name(raw: str, expected: str) -> None:
    """Component names become identifiers that shadow nothing."""
    assert symbol_name(raw) == expected


def test_symbol_name_rejects_empty_names() -> None:
    """Names without any usable character are an error."""
    with pytest.raises(ValueError):
        symbol_name("---")


@pytest.mark.parametrize(
    ("method", "path", "expected"),
    [
        ("GET", "/users", "getUsers"),
        ("get", "/users/{user-id}/posts", "getUsersUserIdPosts"),
        ("post", "/", "post"),
        ("delete", "/v1/items/{id}", "deleteV1ItemsId"),
    ],
)
def test_generate_operation_id(method: str, path: str, expected: str) -> None:
    """Generated ids join the method and PascalCase path segments."""
    assert generate_operation_id(method, path) == expected


def test_colliding_operation_ids_get_numeric_suffixes() -> None:
    """Operations deriving the same id keep document order."""
    operations = resolve_operations(
        {
            "/users": {"get": {"responses": {}}},
            "/users/": {"get": {"responses": {}}},
            "/accounts": {"get": {"operationId": "getUsers", "responses": {}}},
        }
    )

    assert [operation.operation_id for operation in operations] == [
        "getUsers",
        "getUsers2",
        "getUsers3",
    ]


def test_resolve_operations_keeps_document_order_and_path_parameters() -> None:
    """Only HTTP methods count; path-level parameters are carried along."""
    parameter = {"name": "id", "in": "path", "required": True}
    operations = resolve_operations(
        {
            "/items/{id}": {
                "parameters": [parameter],
                "summary": "not an operation",
                "delete": {"operationId": "removeItem"},
                "get": {"operationId": "get item"},
            },
        }
    )

    assert [(operation.method, operation.operation_id) for operation in operations] == [
        ("delete", "removeItem"),
        ("get", "getItem"),
    ]
    assert operations[0].path_level_parameters == (parameter,)


@pytest.mark.parametrize(
    ("identifier", "expected"),
    [
        ("getUsers", "get_users"),
        ("getUsers2", "get_users2"),
        ("HTTPServer", "http_server"),
        ("listPets", "list_pets"),
    ],
)
def test_snake_name(identifier: str, expected: str) -> None:
    """Module and function names are snake_case."""
    assert snake_name(identifier) == expected


def test_field_identifier_dedupes_and_avoids_model_members() -> None:
    """Property names map to distinct, safe field names."""
    used: set[str] = set()
    assert field_identifier("x-id", used) == "x_id"
    assert field_identifier("x_id", used) == "x_id_2"
    assert field_identifier("model_fields", used) == "model_fields_field"
    assert field_identifier("class", used) == "class_"
    assert used == {"x_id", "x_id_2", "model_fields_field", "class_"}
