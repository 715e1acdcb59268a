"""Runtime support imported by generated validator modules."""

from __future__ import annotations

import functools
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Annotated, Any, Optional

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    PlainValidator,
    TypeAdapter,
    ValidationError,
)
from pydantic_core import PydanticCustomError, to_jsonable_python

# OpenAPI patterns follow ECMA-262, which the default Rust regex engine
# does not fully cover (look-arounds, back-references).
LOOSE_MODEL_CONFIG = ConfigDict(
    extra="allow",
    defer_build=True,
    populate_by_name=True,
    regex_engine="python-re",
)
STRICT_MODEL_CONFIG = ConfigDict(
    extra="forbid",
    defer_build=True,
    populate_by_name=True,
    regex_engine="python-re",
)
VALIDATOR_CONFIG = ConfigDict(regex_engine="python-re")


def build_validator(tp: Any) -> TypeAdapter[Any]:
    """Create a ``TypeAdapter`` for a generated type expression.

    Args:
        tp (Any): Type alias, model class or type expression.

    Returns:
        TypeAdapter[Any]: Adapter exposing ``validate_python``/``validate_json``.
    """
    if isinstance(tp, type) and issubclass(tp, BaseModel):
        return TypeAdapter(tp)
    return TypeAdapter(tp, config=VALIDATOR_CONFIG)


validator_for = functools.lru_cache(maxsize=None)(build_validator)


def dump_value(value: Any, *, mode: str = "python") -> Any:
    """Turn validated data back into plain mappings keyed by wire names.

    Fields that were absent from the input are left out.
    """
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_unset=True, mode=mode)
    if isinstance(value, Mapping):
        return {key: dump_value(item, mode=mode) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [dump_value(item, mode=mode) for item in value]
    if mode == "json":
        return to_jsonable_python(value)
    return value


def error_details(exc: ValidationError) -> list[dict[str, Any]]:
    """Compact, JSON-friendly error entries of a validation failure."""
    return [
        {"loc": list(error["loc"]), "msg": error["msg"], "type": error["type"]}
        for error in exc.errors(include_url=False, include_context=False, include_input=False)
    ]


class _Branches:
    def __init__(self, branches: Sequence[Any]) -> None:
        self._branches = tuple(branches)

    def adapters(self) -> tuple[TypeAdapter[Any], ...]:
        # Built on first use: branches may name aliases defined later in the module.
        return tuple(validator_for(branch) for branch in self._branches)


class _AllOf(_Branches):
    def __call__(self, value: Any) -> Any:
        merged: Any = None
        for index, adapter in enumerate(self.adapters()):
            try:
                result = dump_value(adapter.validate_python(value))
            except ValidationError as exc:
                raise PydanticCustomError(
                    "all_of",
                    "Input does not satisfy allOf branch {branch}",
                    {"branch": index, "errors": error_details(exc)},
                ) from exc
            if isinstance(merged, dict) and isinstance(result, dict):
                for key, item in result.items():
                    if item is None and key in merged:
                        continue
                    merged[key] = item
            else:
                merged = dict(result) if isinstance(result, dict) else result
        return merged


class _ExactlyOne(_Branches):
    def __call__(self, value: Any) -> Any:
        matches: list[Any] = []
        failures: list[dict[str, Any]] = []
        for index, adapter in enumerate(self.adapters()):
            try:
                matches.append(adapter.validate_python(value))
            except ValidationError as exc:
                failures.append({"branch": index, "errors": error_details(exc)})
        if len(matches) == 1:
            return matches[0]
        raise PydanticCustomError(
            "one_of",
            "Input should match exactly one schema, but matched {matched}",
            {"matched": len(matches), "errors": failures},
        )


class _Discriminated:
    def __init__(
        self,
        property_name: str,
        tagged: Mapping[Any, Any],
        untagged: Sequence[Any],
    ) -> None:
        self._property_name = property_name
        self._tagged = dict(tagged)
        self._untagged = _Branches(untagged)

    def __call__(self, value: Any) -> Any:
        if not isinstance(value, Mapping):
            raise PydanticCustomError(
                "model_attributes_type",
                "Input should be an object to read discriminator {discriminator}",
                {"discriminator": self._property_name},
            )
        if self._property_name not in value:
            raise PydanticCustomError(
                "union_tag_not_found",
                "Unable to extract tag using discriminator {discriminator}",
                {"discriminator": self._property_name},
            )

        tag = value[self._property_name]
        branch = self._tagged.get(tag) if isinstance(tag, (str, int, bool)) else None
        if branch is not None:
            try:
                return validator_for(branch).validate_python(value)
            except ValidationError as exc:
                raise PydanticCustomError(
                    "discriminated_union",
                    "Input does not match the schema for tag {tag}",
                    {"tag": tag, "errors": error_details(exc)},
                ) from exc

        for adapter in self._untagged.adapters():
            try:
                return adapter.validate_python(value)
            except ValidationError:
                continue
        raise PydanticCustomError(
            "union_tag_invalid",
            "Input tag {tag} found using {discriminator} does not match any of the "
            "expected tags: {expected_tags}",
            {
                "tag": repr(tag),
                "discriminator": self._property_name,
                "expected_tags": ", ".join(repr(item) for item in self._tagged),
            },
        )


def all_of(*branches: Any) -> Any:
    """Type accepting values valid against every branch."""
    return Annotated[Any, PlainValidator(_AllOf(branches))]


def exactly_one(*branches: Any) -> Any:
    """Type accepting values valid against exactly one branch."""
    return Annotated[Any, PlainValidator(_ExactlyOne(branches))]


class _TextInput:
    def __init__(self, target: Any) -> None:
        self._target = target

    def __call__(self, value: Any) -> Any:
        if isinstance(value, (str, self._target)):
            return value
        raise PydanticCustomError("string_type", "Input should be a valid string")


def text_format(target: Any) -> Any:
    """Type parsed from its string form only.

    Instances of ``target`` pass through; numbers and other JSON values that
    pydantic would otherwise coerce are rejected.
    """
    return Annotated[target, BeforeValidator(_TextInput(target))]


def discriminated_union(property_name: str, tagged: Mapping[Any, Any], *untagged: Any) -> Any:
    """Type choosing its branch by the value of ``property_name``.

    Tags missing from ``tagged`` fall back to the ``untagged`` branches.
    """
    return Annotated[Any, PlainValidator(_Discriminated(property_name, tagged, untagged))]


@dataclass(frozen=True)
class OperationContract:
    """Validators and routing data for one HTTP operation.

    ``auth_headers`` names the credential headers every call must carry.
    """

    method: str
    path_template: str
    path_model: Optional[Any] = None
    query_model: Optional[Any] = None
    headers_model: Optional[Any] = None
    request_bodies: Mapping[str, Any] = field(default_factory=dict)
    body_required: bool = False
    responses: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    auth_headers: tuple[str, ...] = ()


def media_type(content_type: Optional[str]) -> Optional[str]:
    """Strip parameters such as ``charset`` from a Content-Type value."""
    if not content_type:
        return None
    return content_type.split(";", maxsplit=1)[0].strip().lower() or None


def is_json_media_type(content_type: Optional[str]) -> bool:
    """Return whether a media type carries JSON."""
    base = media_type(content_type)
    return base is not None and (base == "application/json" or base.endswith("+json"))


def match_content_schema(
    schemas: Mapping[str, Any],
    content_type: Optional[str],
) -> tuple[Optional[str], Optional[Any]]:
    """Find the schema registered for a content type.

    Tries an exact match, then a JSON-compatible entry for JSON payloads,
    then the ``*/*`` wildcard. Without a content type the only entry is used
    when there is just one.
    """
    base = media_type(content_type)
    if base is not None:
        for declared, schema in schemas.items():
            if media_type(declared) == base:
                return declared, schema
        if is_json_media_type(base):
            for declared, schema in schemas.items():
                if is_json_media_type(declared):
                    return declared, schema
    if "*/*" in schemas:
        return "*/*", schemas["*/*"]
    if base is None and len(schemas) == 1:
        return next(iter(schemas.items()))
    return None, None
