"""State threaded through one recursive schema compilation."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import Optional

from .json_types import JSONValue, SchemaNode
from .model_types import CompilationResult


@dataclass(frozen=True)
class CompileContext:
    """Accumulator and flags shared by every node of one compilation.

    ``imports`` is passed by reference to every child, so dependencies are
    only ever added. ``hint`` names the pydantic models created for inline
    objects. ``symbols`` maps component names to their declared symbols.
    ``lax_scalars`` lets scalars coerce from strings, as parameter values
    arrive as text.
    """

    imports: set[str]
    strict_validation: bool
    hint: str
    dispatch: Callable[[SchemaNode, CompileContext], CompilationResult]
    components: Mapping[str, JSONValue] = field(default_factory=dict)
    symbols: Optional[Mapping[str, str]] = None
    lax_scalars: bool = False

    def child(self, node: SchemaNode, suffix: str = "") -> CompilationResult:
        """Compile a sub-schema with the same accumulator and strictness."""
        return self.dispatch(node, replace(self, hint=f"{self.hint}{suffix}"))

    def result(self, code: str, **extra: object) -> CompilationResult:
        """Build a result bound to this compilation's accumulator."""
        return CompilationResult(code=code, imports=self.imports, **extra)
