"""OpenAPI document loading and basic validation."""

from __future__ import annotations

import logging
from pathlib import Path

import httpx
import yaml
from openapi_python_client.schema import OpenAPI
from pydantic import ValidationError

from .json_types import JSONObject, JSONValue
from .normalize import is_openapi_30, is_swagger_20, upgrade_from_swagger_20, upgrade_to_31

logger = logging.getLogger(__name__)

_URL_PREFIXES: tuple[str, ...] = ("http://", "https://")


class OpenAPILoadError(RuntimeError):
    """Raised when a source OpenAPI document cannot be loaded."""


class UnsupportedVersionError(OpenAPILoadError):
    """Raised for versions that are neither Swagger 2.0 nor OpenAPI 3."""


def load_openapi_document(source: str) -> JSONObject:
    """Load, validate and normalize an OpenAPI document.

    Args:
        source (str): Local file path or ``http(s)`` URL of a YAML or JSON
            document.

    Returns:
        JSONObject: The document, upgraded to 3.1 when it declares Swagger
        2.0 or OpenAPI 3.0.

    Raises:
        OpenAPILoadError: If the document cannot be read, parsed or validated.
        UnsupportedVersionError: If the document is neither Swagger 2.0 nor
            OpenAPI 3.
    """
    text = _read_source(source)
    try:
        payload = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise OpenAPILoadError(f"Failed to parse {source}: {exc}") from exc

    payload_value: JSONValue = payload
    if not isinstance(payload_value, dict):
        raise OpenAPILoadError(
            f"OpenAPI document must deserialize to a mapping, got {type(payload_value)!r}"
        )

    if is_swagger_20(payload_value):
        logger.info("Detected Swagger 2.0 in %s", source)
        payload_value = upgrade_from_swagger_20(payload_value)

    version = get_openapi_version(payload_value)
    ensure_supported_version(version)
    logger.info("Detected OpenAPI version %s in %s", version, source)

    try:
        OpenAPI.model_validate(payload_value)
    except ValidationError as exc:
        raise OpenAPILoadError(f"OpenAPI schema validation failed for {source}: {exc}") from exc

    if is_openapi_30(payload_value):
        return upgrade_to_31(payload_value)
    return payload_value


def get_openapi_version(document: JSONObject) -> str:
    """Return the declared OpenAPI version string."""
    swagger = document.get("swagger")
    if swagger is not None:
        raise UnsupportedVersionError(
            f"Unsupported version: Swagger {swagger}; only Swagger 2.0 and OpenAPI v3+ "
            "are supported"
        )
    version = document.get("openapi")
    if not isinstance(version, str) or not version.strip():
        raise OpenAPILoadError("Missing or invalid 'openapi' version field")
    return version.strip()


def ensure_supported_version(version: str) -> None:
    """Validate that the input version is OpenAPI v3+."""
    major_text = version.split(".", maxsplit=1)[0]
    try:
        major = int(major_text)
    except ValueError as exc:
        raise OpenAPILoadError(f"Unable to parse OpenAPI version: {version}") from exc
    if major < 3:
        raise UnsupportedVersionError(
            f"Unsupported version: OpenAPI {version}; only v3+ is supported"
        )


def _read_source(source: str) -> str:
    if source.startswith(_URL_PREFIXES):
        try:
            response = httpx.get(source, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise OpenAPILoadError(f"Failed to fetch OpenAPI document {source}: {exc}") from exc
        return response.text

    path = Path(source)
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise OpenAPILoadError(f"Failed to read OpenAPI file {path}: {exc}") from exc
