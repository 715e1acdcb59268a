"""Helpers for dynamically loading generated Python modules."""

from __future__ import annotations

import importlib.machinery
import importlib.util
from pathlib import Path
import sys
from types import ModuleType
from typing import Optional


def load_module_from_path(*, module_name: str, module_path: Path) -> ModuleType:
    """Load a module from file path and register it in ``sys.modules``.

    Args:
        module_name (str): Temporary import name for the module.
        module_path (Path): File system path to the Python module.

    Returns:
        ModuleType: Imported Python module object.
    """
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    return _exec_spec(spec, module_name=module_name, origin=module_path)


def load_package_from_path(*, package_name: str, package_dir: Path) -> ModuleType:
    """Load a generated output directory as an importable package.

    Submodules such as ``<package_name>.client.get_pet`` can then be imported
    with :func:`importlib.import_module`, and their relative imports resolve.

    Args:
        package_name (str): Temporary import name for the package.
        package_dir (Path): Directory holding the package ``__init__.py``.

    Returns:
        ModuleType: Imported package object.
    """
    spec = importlib.util.spec_from_file_location(
        package_name,
        package_dir / "__init__.py",
        submodule_search_locations=[str(package_dir)],
    )
    return _exec_spec(spec, module_name=package_name, origin=package_dir)


def _exec_spec(
    spec: Optional[importlib.machinery.ModuleSpec],
    *,
    module_name: str,
    origin: Path,
) -> ModuleType:
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Unable to import module from: {origin}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module
