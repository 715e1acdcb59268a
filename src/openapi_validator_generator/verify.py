"""Cross-check of generated validators against jsonschema on schema examples."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jsonschema import Draft202012Validator
from pydantic import ValidationError

from .codegen_ast import validator_name
from .json_types import JSONValue
from .model_types import SchemaDeclaration
from .module_loading import load_module_from_path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerificationMismatch:
    """One example on which the generated validator and jsonschema disagree."""

    schema_name: str
    example_index: int
    example: Any
    expected_valid: bool
    actual_valid: bool
    detail: str


@dataclass(frozen=True)
class VerificationReport:
    """Result of the verification phase."""

    verified_count: int
    mismatch_count: int
    mismatches: tuple[VerificationMismatch, ...]


def verify_examples(
    *,
    declarations: Sequence[SchemaDeclaration],
    components: Mapping[str, JSONValue],
    output_dir: Path,
) -> VerificationReport:
    """Validate every component example with both validators and compare.

    Args:
        declarations (Sequence[SchemaDeclaration]): Declared component schemas.
        components (Mapping[str, JSONValue]): Normalized component schemas.
        output_dir (Path): Directory holding the generated ``schemas.py``.

    Returns:
        VerificationReport: Checked example count and disagreements.
    """
    module = load_module_from_path(
        module_name=f"generated_schemas_{next(_COUNTER)}",
        module_path=output_dir / "schemas.py",
    )

    verified = 0
    mismatches: list[VerificationMismatch] = []
    for declaration in declarations:
        schema = components.get(declaration.source_name)
        if not isinstance(schema, Mapping):
            continue
        examples = schema.get("examples")
        if not isinstance(examples, list) or not examples:
            continue

        reference = _reference_validator(declaration.source_name, components)
        adapter = getattr(module, validator_name(declaration.name))
        for index, example in enumerate(examples):
            verified += 1
            expected = reference.is_valid(example)
            try:
                adapter.validate_python(example)
            except ValidationError as exc:
                actual = False
                detail = f"{exc.error_count()} validation error(s): {exc.errors()[0]['msg']}"
            else:
                actual = True
                detail = ""
            if expected == actual:
                continue
            if expected and not detail:
                detail = "accepted by the generated validator only"
            elif not expected:
                detail = _first_error(reference, example)
            mismatches.append(
                VerificationMismatch(
                    schema_name=declaration.name,
                    example_index=index,
                    example=example,
                    expected_valid=expected,
                    actual_valid=actual,
                    detail=detail,
                )
            )

    logger.info("Verified %d examples, %d mismatches", verified, len(mismatches))
    return VerificationReport(
        verified_count=verified,
        mismatch_count=len(mismatches),
        mismatches=tuple(mismatches),
    )


def format_report(report: VerificationReport) -> str:
    """Render report as CLI output text."""
    lines = [
        f"Verified examples: {report.verified_count}",
        f"Mismatches: {report.mismatch_count}",
    ]
    for mismatch in report.mismatches:
        lines.extend(
            [
                f"- {mismatch.schema_name} example #{mismatch.example_index}",
                f"  example: {short_repr(mismatch.example)}",
                f"  jsonschema valid: {mismatch.expected_valid}",
                f"  generated valid: {mismatch.actual_valid}",
                f"  detail: {mismatch.detail}",
            ]
        )
    return "\n".join(lines)


def short_repr(value: Any, *, limit: int = 160) -> str:
    """A short representation for mismatch diagnostics."""
    text = repr(value)
    return text if len(text) <= limit else f"{text[: limit - 3]}..."


def _reference_validator(
    component_name: str,
    components: Mapping[str, JSONValue],
) -> Draft202012Validator:
    token = component_name.replace("~", "~0").replace("/", "~1")
    root = {
        "$ref": f"#/components/schemas/{token}",
        "components": {"schemas": dict(components)},
    }
    return Draft202012Validator(root)


def _first_error(validator: Draft202012Validator, example: Any) -> str:
    for error in validator.iter_errors(example):
        return f"jsonschema: {error.message}"
    return ""


_COUNTER = itertools.count(1)
