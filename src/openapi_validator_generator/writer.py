"""Filesystem writers for generated validator packages."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
import shutil
import subprocess
import sys

from .model_types import GeneratedFile

logger = logging.getLogger(__name__)

GENERATED_ENTRIES: tuple[str, ...] = ("__init__.py", "schemas.py", "client", "server")

_GENERATED_RUFF_IGNORE_CODES: tuple[str, ...] = (
    "D100",
    "D101",
    "D102",
    "D103",
    "D104",
    "D205",
    "D301",
    "D415",
    "E501",
    "E741",
)

_RUFF_TARGET_VERSION = "py312"


class WriteError(RuntimeError):
    """Raised when output files cannot be written."""


def prepare_output_dir(output_dir: Path) -> None:
    """Create the output directory and remove previously generated entries.

    Files the generator does not own are left in place.

    Args:
        output_dir (Path): Root output directory.
    """
    if output_dir.exists() and not output_dir.is_dir():
        raise WriteError(f"Output path exists and is not a directory: {output_dir}")
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
        for entry in GENERATED_ENTRIES:
            target = output_dir / entry
            if target.is_dir():
                shutil.rmtree(target)
            elif target.exists():
                target.unlink()
    except OSError as exc:
        raise WriteError(f"Failed to prepare output directory {output_dir}: {exc}") from exc


def write_generated_files(
    *,
    output_dir: Path,
    files: Sequence[GeneratedFile],
    concurrency: int = 1,
) -> None:
    """Write rendered sources below ``output_dir`` using a bounded pool.

    Args:
        output_dir (Path): Root output directory.
        files (Sequence[GeneratedFile]): Rendered files with relative paths.
        concurrency (int): Maximum number of concurrent writes.
    """
    directories = {output_dir / Path(*item.relative_path.parent.parts) for item in files}
    for directory in sorted(directories):
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise WriteError(f"Failed to create directory {directory}: {exc}") from exc

    targets = [(output_dir / Path(*item.relative_path.parts), item.source) for item in files]
    with ThreadPoolExecutor(max_workers=max(1, concurrency)) as pool:
        for _ in pool.map(lambda target: _write_file(*target), targets):
            pass
    logger.info("Wrote %d files to %s", len(files), output_dir)


def format_generated_tree(*, output_dir: Path) -> None:
    """Run Ruff auto-fixes and formatter against generated files.

    Findings that Ruff cannot fix do not fail generation.

    Args:
        output_dir (Path): Generated package directory to format.
    """
    paths = [
        str(output_dir / entry) for entry in GENERATED_ENTRIES if (output_dir / entry).exists()
    ]
    if not paths:
        return
    _run_ruff(
        output_dir=output_dir,
        args=("format", "--target-version", _RUFF_TARGET_VERSION, *paths),
    )
    _run_ruff(
        output_dir=output_dir,
        args=(
            "check",
            "--fix",
            "--exit-zero",
            "--target-version",
            _RUFF_TARGET_VERSION,
            "--ignore",
            ",".join(_GENERATED_RUFF_IGNORE_CODES),
            *paths,
        ),
    )
    _run_ruff(
        output_dir=output_dir,
        args=("format", "--target-version", _RUFF_TARGET_VERSION, *paths),
    )


def _run_ruff(*, output_dir: Path, args: tuple[str, ...]) -> None:
    command = [sys.executable, "-m", "ruff", *args]
    command_desc = " ".join(args[:1])
    try:
        subprocess.run(
            command,
            check=True,
            capture_output=True,
            text=True,
        )
    except OSError as exc:
        raise WriteError(f"Failed to execute ruff {command_desc} for {output_dir}: {exc}") from exc
    except subprocess.CalledProcessError as exc:
        error_text = exc.stderr.strip() or exc.stdout.strip() or str(exc)
        raise WriteError(f"ruff {command_desc} failed for {output_dir}: {error_text}") from exc


def _write_file(path: Path, content: str) -> None:
    try:
        path.write_text(content, encoding="utf-8")
    except OSError as exc:
        raise WriteError(f"Failed to write file {path}: {exc}") from exc
