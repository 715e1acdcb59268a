"""Entry point for ``python -m openapi_validator_generator``."""

from __future__ import annotations

from .cli import main

raise SystemExit(main())
