"""Naming helpers for operation ids and Python identifiers."""

from __future__ import annotations

import builtins
import keyword
import logging
import re
from collections.abc import Iterable, Mapping

from pydantic import BaseModel

from .codegen_ast import GENERATED_IMPORT_NAMES
from .json_types import JSONValue
from .model_types import OperationMetadata

logger = logging.getLogger(__name__)

HTTP_METHODS: tuple[str, ...] = (
    "get",
    "put",
    "post",
    "delete",
    "options",
    "head",
    "patch",
    "trace",
)

_IDENTIFIER_SANITIZE_RE = re.compile(r"[^0-9a-zA-Z_]+")
_MULTIPLE_UNDERSCORES_RE = re.compile(r"_+")
_SYMBOL_INVALID_CHARS_RE = re.compile(r"[^a-zA-Z0-9_]")
_WORD_SPLIT_RE = re.compile(r"[-_]+")
_OPERATION_WORD_SPLIT_RE = re.compile(r"[-_]")
_NON_ALNUM_RE = re.compile(r"[^a-zA-Z0-9]")
_CAMEL_ACRONYM_RE = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_BOUNDARY_RE = re.compile(r"([a-z0-9])([A-Z])")

_RESERVED_SYMBOLS: frozenset[str] = frozenset(
    {*keyword.kwlist, *keyword.softkwlist, *dir(builtins), *GENERATED_IMPORT_NAMES}
)
_RESERVED_FIELD_NAMES: frozenset[str] = frozenset(
    {*dir(BaseModel), "bool", "bytes", "dict", "float", "int", "list", "str", "type"}
)


def sanitize_identifier(raw: str, *, lowercase: bool = True) -> str:
    """Convert arbitrary text into a valid snake-style Python identifier."""
    text = raw.lower() if lowercase else raw
    text = _IDENTIFIER_SANITIZE_RE.sub("_", text)
    text = _MULTIPLE_UNDERSCORES_RE.sub("_", text).strip("_")
    if not text:
        text = "root"
    if text[0].isdigit():
        text = f"x_{text}"
    if keyword.iskeyword(text):
        text = f"{text}_"
    return text


def symbol_name(raw: str) -> str:
    """Convert a component or operation name into a generated symbol name.

    Invalid characters split the name into words which are joined in
    camelCase, keeping the casing of the first word. Names shadowing a
    keyword, a builtin or a name imported by generated modules get a
    ``Schema`` suffix.

    Args:
        raw (str): Name as written in the OpenAPI document.

    Returns:
        str: A valid Python identifier.

    Raises:
        ValueError: If nothing usable remains after sanitizing.
    """
    text = raw.strip()
    if not text:
        raise ValueError("Cannot derive an identifier from an empty name")

    replaced = _SYMBOL_INVALID_CHARS_RE.sub("_", text)
    parts = [part for part in _WORD_SPLIT_RE.split(replaced) if part]
    if not parts:
        raise ValueError(f"Cannot derive an identifier from {raw!r}")

    name = parts[0] + "".join(part[0].upper() + part[1:] for part in parts[1:])
    if name[0].isdigit():
        name = f"_{name}"
    if name in _RESERVED_SYMBOLS:
        name = f"{name}Schema"
    return name


def pascal_name(identifier: str) -> str:
    """Upper-case the first character of an identifier."""
    return identifier[:1].upper() + identifier[1:]


def snake_name(identifier: str) -> str:
    """Convert a camelCase identifier to a snake_case module or function name."""
    text = _CAMEL_ACRONYM_RE.sub(r"\1_\2", identifier)
    text = _CAMEL_BOUNDARY_RE.sub(r"\1_\2", text)
    return sanitize_identifier(text)


def field_identifier(source_name: str, used_names: set[str]) -> str:
    """Return a unique model field name for an object property.

    The chosen name is added to ``used_names``.
    """
    candidate = sanitize_identifier(source_name, lowercase=False)
    if candidate in _RESERVED_FIELD_NAMES:
        candidate = f"{candidate}_field"
    if candidate in used_names:
        suffix = 2
        while f"{candidate}_{suffix}" in used_names:
            suffix += 1
        candidate = f"{candidate}_{suffix}"
    used_names.add(candidate)
    return candidate


def generate_operation_id(method: str, path: str) -> str:
    """Build an operation id from the HTTP method and path segments.

    ``GET /users/{user-id}/posts`` becomes ``getUsersUserIdPosts``.
    """
    normalized_method = method.lower()
    segments: list[str] = []
    for segment in path.split("/"):
        if not segment:
            continue
        if segment.startswith("{") and segment.endswith("}"):
            segment = segment[1:-1]
        words = (_NON_ALNUM_RE.sub("", word) for word in _OPERATION_WORD_SPLIT_RE.split(segment))
        joined = "".join(pascal_name(word) for word in words if word)
        if joined:
            segments.append(joined)
    return symbol_name(normalized_method + "".join(segments))


def resolve_operations(raw_paths: Mapping[str, JSONValue]) -> list[OperationMetadata]:
    """Extract operations in document order and assign unique operation ids.

    Operations deriving the same base id keep document order; the first keeps
    the id and the others get ``2``, ``3``, ... appended.

    Args:
        raw_paths (Mapping[str, JSONValue]): The document's ``paths`` object.

    Returns:
        list[OperationMetadata]: One entry per (path, method) pair.
    """
    candidates = list(_iter_operation_candidates(raw_paths))

    groups: dict[str, list[int]] = {}
    for index, (_, _, _, _, base_id) in enumerate(candidates):
        groups.setdefault(base_id, []).append(index)

    resolved_ids: dict[int, str] = {}
    for base_id, indexes in groups.items():
        for position, index in enumerate(indexes):
            resolved_ids[index] = base_id if position == 0 else f"{base_id}{position + 1}"
        if len(indexes) > 1:
            logger.debug("Disambiguated %d operations sharing id %s", len(indexes), base_id)

    return [
        OperationMetadata(
            path_key=path,
            method=method,
            operation=operation,
            path_level_parameters=path_parameters,
            operation_id=resolved_ids[index],
        )
        for index, (path, method, operation, path_parameters, _) in enumerate(candidates)
    ]


def _iter_operation_candidates(
    raw_paths: Mapping[str, JSONValue],
) -> Iterable[tuple[str, str, Mapping[str, JSONValue], tuple[JSONValue, ...], str]]:
    for path, path_item in raw_paths.items():
        if not isinstance(path_item, Mapping):
            continue
        raw_parameters = path_item.get("parameters")
        path_parameters = tuple(raw_parameters) if isinstance(raw_parameters, list) else ()
        for method, operation in path_item.items():
            if method not in HTTP_METHODS or not isinstance(operation, Mapping):
                continue
            yield path, method, operation, path_parameters, _base_operation_id(
                method, path, operation
            )


def _base_operation_id(method: str, path: str, operation: Mapping[str, JSONValue]) -> str:
    explicit = operation.get("operationId")
    if isinstance(explicit, str) and explicit.strip():
        return symbol_name(explicit)
    return generate_operation_id(method, path)
