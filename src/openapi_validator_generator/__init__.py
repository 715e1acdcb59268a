"""OpenAPI to pydantic validator generator package."""

from __future__ import annotations

from .cli import main
from .generator import GenerationError, GenerationRun, run_generation
from .model_types import GenerationOptions

__all__ = ["GenerationError", "GenerationOptions", "GenerationRun", "main", "run_generation"]
