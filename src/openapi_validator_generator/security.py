"""Credential headers required by the security requirements of a document."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional

from .json_types import JSONObject, JSONValue

BEARER_HEADER = "Authorization"


def scheme_header(scheme: JSONValue) -> Optional[str]:
    """Return the request header carrying a security scheme's credential.

    Header API keys carry it in their named header and HTTP bearer schemes
    in ``Authorization``. Other schemes have no header.
    """
    if not isinstance(scheme, Mapping):
        return None
    kind = scheme.get("type")
    if kind == "apiKey" and scheme.get("in") == "header":
        name = scheme.get("name")
        return name if isinstance(name, str) and name else None
    if kind == "http" and str(scheme.get("scheme", "")).lower() == "bearer":
        return BEARER_HEADER
    return None


def requirement_headers(
    requirements: JSONValue,
    schemes: Mapping[str, JSONValue],
) -> tuple[str, ...]:
    """Header names of every scheme named by a list of security requirements.

    Names keep their first-seen order and appear once. Unknown schemes are
    ignored.
    """
    headers: list[str] = []
    if not isinstance(requirements, list):
        return ()
    for requirement in requirements:
        if not isinstance(requirement, Mapping):
            continue
        for scheme_name in requirement:
            header = scheme_header(schemes.get(str(scheme_name)))
            if header is not None and header not in headers:
                headers.append(header)
    return tuple(headers)


def security_schemes(document: JSONObject) -> Mapping[str, JSONValue]:
    """Return ``components.securitySchemes``, or an empty mapping."""
    components = document.get("components")
    if not isinstance(components, Mapping):
        return {}
    schemes = components.get("securitySchemes")
    return schemes if isinstance(schemes, Mapping) else {}


def global_auth_headers(document: JSONObject) -> tuple[str, ...]:
    """Credential headers of the document-level ``security`` requirements."""
    return requirement_headers(document.get("security"), security_schemes(document))


def operation_auth_headers(
    operation: Mapping[str, JSONValue],
    document: JSONObject,
) -> tuple[str, ...]:
    """Credential headers a call of ``operation`` must send.

    An operation declaring ``security`` replaces the document-level
    requirements, and an empty list there turns authentication off.

    Args:
        operation (Mapping[str, JSONValue]): Operation object.
        document (JSONObject): Loaded OpenAPI document.

    Returns:
        tuple[str, ...]: Header names, each required.
    """
    if "security" in operation:
        return requirement_headers(operation["security"], security_schemes(document))
    return global_auth_headers(document)
