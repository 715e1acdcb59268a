"""Internal datatypes for compilation, emission and verification."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Optional

from .json_types import JSONObject, JSONValue, SchemaNode


@dataclass(frozen=True)
class CompilationResult:
    """Compiled validator expression for one schema node.

    ``imports`` is the caller's accumulator when one was supplied, so every
    nested compilation unions into the same set.
    """

    code: str
    imports: set[str]
    has_default: bool = False
    default: JSONValue = None
    extensible_enum_values: Optional[tuple[JSONValue, ...]] = None


@dataclass(frozen=True)
class DiscriminatorConfig:
    """Discriminator descriptor attached to an ``anyOf``/``oneOf`` node."""

    property_name: str
    mapping: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class OperationMetadata:
    """One (path, method) pair with its resolved operation id."""

    path_key: str
    method: str
    operation: JSONObject
    path_level_parameters: tuple[JSONValue, ...]
    operation_id: str


@dataclass(frozen=True)
class ContentTypeMapping:
    """Schema declared for one media type of a request body or response."""

    content_type: str
    schema: SchemaNode


@dataclass(frozen=True)
class SchemaDeclaration:
    """A named validator declared in the generated schemas module."""

    name: str
    source_name: str
    code: str
    imports: frozenset[str]
    description: Optional[str] = None
    extensible_enum_values: Optional[tuple[JSONValue, ...]] = None


@dataclass(frozen=True)
class OperationModule:
    """Compiled client or server module for one operation."""

    kind: str
    module_name: str
    function_name: str
    contract_name: str
    operation: OperationMetadata
    declarations: tuple[tuple[str, str], ...]
    contract_code: str
    imports: frozenset[str]
    summary: Optional[str]


@dataclass(frozen=True)
class OperationManifestEntry:
    """Index entry describing the generated modules of one operation."""

    operation_id: str
    method: str
    path: str
    summary: Optional[str]
    module_name: str
    has_client: bool
    has_server: bool


@dataclass(frozen=True)
class GeneratedFile:
    """Rendered source destined for one file below the output directory."""

    relative_path: PurePosixPath
    source: str


@dataclass(frozen=True)
class GenerationOptions:
    """Settings of one generation run."""

    input: str
    output_dir: str
    generate_client: bool = False
    generate_server: bool = False
    verify: bool = False
    concurrency: int = 4


@dataclass(frozen=True)
class GenerationResult:
    """Generation output metadata."""

    output_dir: str
    schema_names: tuple[str, ...]
    operations: tuple[OperationManifestEntry, ...]
    warnings: tuple[str, ...]
