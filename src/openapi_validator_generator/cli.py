"""Command line interface for OpenAPI validator generation."""

from __future__ import annotations

import argparse
import logging

from .generator import (
    GenerationError,
    OpenAPILoadError,
    ResolveError,
    WriteError,
    run_generation,
)
from .model_types import GenerationOptions
from .verify import format_report

_LOG_LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR")


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI parser."""
    parser = argparse.ArgumentParser(
        prog="openapi-validator-generator",
        description="Generate pydantic validators, clients and server wrappers from OpenAPI",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser(
        "generate",
        help="Generate a validator package from an OpenAPI document",
    )
    generate.add_argument(
        "--input",
        required=True,
        help="Path or http(s) URL of an OpenAPI 3.x YAML or JSON document",
    )
    generate.add_argument("--output", required=True, help="Output directory for the package")
    generate.add_argument(
        "--generate-client",
        action="store_true",
        help="Generate one client module per operation",
    )
    generate.add_argument(
        "--generate-server",
        action="store_true",
        help="Generate one request-handler wrapper module per operation",
    )
    generate.add_argument(
        "--verify",
        action="store_true",
        help="Check schema examples against the generated validators and jsonschema",
    )
    generate.add_argument(
        "--concurrency",
        type=int,
        default=4,
        help="Maximum number of worker threads (default: 4)",
    )
    generate.add_argument(
        "--log-level",
        default="WARNING",
        type=str.upper,
        choices=_LOG_LEVELS,
        help="Logging verbosity (default: WARNING)",
    )
    return parser


def options_from_args(args: argparse.Namespace) -> GenerationOptions:
    """Map parsed ``generate`` arguments onto :class:`GenerationOptions`."""
    if args.concurrency < 1:
        raise CLIError(f"--concurrency must be a positive integer, got {args.concurrency}")
    return GenerationOptions(
        input=str(args.input),
        output_dir=str(args.output),
        generate_client=bool(args.generate_client),
        generate_server=bool(args.generate_server),
        verify=bool(args.verify),
        concurrency=int(args.concurrency),
    )


def main(argv: list[str] | None = None) -> int:
    """Run CLI and return process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        run = run_generation(options=options_from_args(args))
    except (OpenAPILoadError, ResolveError, GenerationError, WriteError, CLIError) as exc:
        parser.error(str(exc))
        return 2

    for warning in run.result.warnings:
        print(f"Warning: {warning}")

    if run.verification_report is not None:
        print(format_report(run.verification_report))
        if run.verification_report.mismatch_count > 0:
            return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
