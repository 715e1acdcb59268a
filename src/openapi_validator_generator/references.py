"""Symbolic resolution of ``$ref`` pointers to component schemas."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Optional

from .classifier import is_plain_schema_object
from .json_types import JSONValue
from .model_types import CompilationResult
from .naming import symbol_name

logger = logging.getLogger(__name__)

COMPONENT_SCHEMA_PREFIX = "#/components/schemas/"


@dataclass(frozen=True)
class ResolvedReference:
    """A reference pointing at a named component schema."""

    component_name: str
    symbolic_name: str


def unescape_pointer_token(token: str) -> str:
    """Decode one JSON-pointer token."""
    return token.replace("~1", "/").replace("~0", "~")


def unique_symbol(name: str, used: set[str]) -> str:
    """Return ``name`` or the first free ``name2``, ``name3``, ... and mark it used."""
    candidate = name
    suffix = 2
    while candidate in used:
        candidate = f"{name}{suffix}"
        suffix += 1
    used.add(candidate)
    return candidate


def component_symbol_table(components: Mapping[str, JSONValue]) -> dict[str, str]:
    """Assign every declarable component schema its generated symbol.

    Components are named in document order. A name whose symbol is already
    taken gets a numeric suffix, so two components never share a symbol.
    Malformed entries and names without identifier characters are left out.

    Args:
        components (Mapping[str, JSONValue]): ``components.schemas`` by name.

    Returns:
        dict[str, str]: Symbol by component name.
    """
    symbols: dict[str, str] = {}
    used: set[str] = set()
    for component_name, schema in components.items():
        if not is_plain_schema_object(schema):
            continue
        try:
            base_name = symbol_name(component_name)
        except ValueError:
            continue
        symbols[component_name] = unique_symbol(base_name, used)
    return symbols


def component_name_of(ref: str) -> Optional[str]:
    """Return the component named by a ``#/components/schemas/<name>`` pointer."""
    if not ref.startswith(COMPONENT_SCHEMA_PREFIX):
        return None
    token = ref[len(COMPONENT_SCHEMA_PREFIX) :]
    if not token or "/" in token:
        return None
    return unescape_pointer_token(token)


def resolve_reference(
    ref: str,
    symbols: Optional[Mapping[str, str]] = None,
) -> Optional[ResolvedReference]:
    """Map a ``#/components/schemas/<name>`` pointer to its generated symbol.

    Args:
        ref (str): Raw ``$ref`` value.
        symbols (Optional[Mapping[str, str]]): Symbol table of the document.
            Without one the symbol is derived from the component name alone.

    Returns:
        Optional[ResolvedReference]: The component and symbol names, or None
        when the pointer does not name a local component schema or names one
        missing from ``symbols``.
    """
    component_name = component_name_of(ref)
    if component_name is None:
        return None
    if symbols is not None:
        symbolic = symbols.get(component_name)
        if symbolic is None:
            return None
        return ResolvedReference(component_name=component_name, symbolic_name=symbolic)
    try:
        symbolic = symbol_name(component_name)
    except ValueError:
        return None
    return ResolvedReference(component_name=component_name, symbolic_name=symbolic)


def compile_reference(
    ref: str,
    imports: set[str],
    symbols: Optional[Mapping[str, str]] = None,
) -> CompilationResult:
    """Emit a symbolic reference and record it as a dependency.

    The referent's body is never visited, so reference cycles stay finite.
    Pointers that do not name a component schema compile to ``Any``. A
    component pointer missing from ``symbols`` is recorded as the raw
    pointer, which never matches a declared name.
    """
    resolved = resolve_reference(ref, symbols)
    if resolved is not None:
        imports.add(resolved.symbolic_name)
        return CompilationResult(code=resolved.symbolic_name, imports=imports)
    if symbols is not None and component_name_of(ref) is not None:
        imports.add(ref)
    else:
        logger.debug("Unsupported reference %s compiled as Any", ref)
    return CompilationResult(code="Any", imports=imports)
