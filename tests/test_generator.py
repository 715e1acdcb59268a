"""Integration tests for generator behavior."""

from __future__ import annotations

import ast
import importlib
import subprocess
import sys
from pathlib import Path
from typing import Any

import httpx
import pytest

from openapi_validator_generator.cli import main
from openapi_validator_generator.client_runtime import ClientConfig
from openapi_validator_generator.generator import (
    GenerationError,
    build_schema_declarations,
    run_generation,
)
from openapi_validator_generator.model_types import GenerationOptions
from openapi_validator_generator.server_runtime import (
    ParsedRequest,
    RequestValidationFailure,
    ServerRequest,
)

from .fixture_helpers import fixture_path, import_generated_package, parametrize_fixtures

_COLLIDING_OPENAPI_SPEC = """
openapi: 3.1.0
info:
  title: Colliding
  version: 1.0.0
paths:
  /a:
    get:
      operationId: HTTPServer
      responses:
        "200":
          description: ok
  /b:
    get:
      operationId: httpServer
      responses:
        "200":
          description: ok
"""


def _options(source: Path, output_dir: Path, **overrides: Any) -> GenerationOptions:
    settings: dict[str, Any] = {
        "input": str(source),
        "output_dir": str(output_dir),
        "generate_client": True,
        "generate_server": True,
    }
    settings.update(overrides)
    return GenerationOptions(**settings)


def _module_docstring(path: Path) -> str:
    parsed = ast.parse(path.read_text(encoding="utf-8"))
    docstring = ast.get_docstring(parsed)
    if docstring is None:
        raise RuntimeError(f"Module docstring missing: {path}")
    return docstring


@pytest.fixture(scope="module")
def petstore_package(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Generated petstore package, imported under a unique name."""
    output_dir = tmp_path_factory.mktemp("petstore") / "petstore_api"
    run_generation(options=_options(fixture_path("petstore.yaml"), output_dir))
    return import_generated_package(output_dir)


@parametrize_fixtures()
def test_generation_smoke(fixture_path: Path, tmp_path: Path) -> None:
    """Each fixture should generate a package without crashing."""
    output_dir = tmp_path / fixture_path.stem
    run = run_generation(options=_options(fixture_path, output_dir))

    assert Path(run.result.output_dir) == output_dir
    assert run.verification_report is None
    assert (output_dir / "__init__.py").is_file()
    assert (output_dir / "schemas.py").is_file()
    for entry in run.result.operations:
        assert (output_dir / "client" / f"{entry.module_name}.py").is_file()
        assert (output_dir / "server" / f"{entry.module_name}.py").is_file()


def test_schemas_only_generation(tmp_path: Path) -> None:
    """Without client or server flags only the schemas module is written."""
    output_dir = tmp_path / "schemas_only"
    run = run_generation(
        options=_options(
            fixture_path("petstore.yaml"),
            output_dir,
            generate_client=False,
            generate_server=False,
        )
    )

    assert not (output_dir / "client").exists()
    assert not (output_dir / "server").exists()
    assert "Pet" in run.result.schema_names
    assert "AdoptAnimal200Response" in run.result.schema_names


@parametrize_fixtures()
def test_generation_with_verification(fixture_path: Path, tmp_path: Path) -> None:
    """Schema examples agree with jsonschema for every fixture."""
    output_dir = tmp_path / f"{fixture_path.stem}_verified"
    run = run_generation(options=_options(fixture_path, output_dir, verify=True))

    report = run.verification_report
    assert report is not None
    assert report.verified_count > 0
    if report.mismatch_count > 0:
        preview = "\n".join(
            (
                f"{m.schema_name}[{m.example_index}] {m.example!r} | "
                f"expected={m.expected_valid!r} actual={m.actual_valid!r} {m.detail}"
            )
            for m in report.mismatches[:8]
        )
        pytest.fail(
            f"Verification mismatches for {fixture_path.name}: "
            f"{report.mismatch_count}/{report.verified_count}\n{preview}"
        )


def test_rerun_replaces_generated_entries_only(tmp_path: Path) -> None:
    """Generated entries are rewritten; other files in the directory survive."""
    output_dir = tmp_path / "rerun"
    run_generation(options=_options(fixture_path("petstore.yaml"), output_dir))
    stale = output_dir / "client" / "stale_module.py"
    stale.write_text("STALE = True\n", encoding="utf-8")
    foreign = output_dir / "README.md"
    foreign.write_text("keep me\n", encoding="utf-8")

    run_generation(
        options=_options(fixture_path("petstore.yaml"), output_dir, generate_server=False)
    )

    assert not stale.exists()
    assert not (output_dir / "server").exists()
    assert foreign.read_text(encoding="utf-8") == "keep me\n"


def test_generation_invokes_ruff_formatting(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    """Generation should run ruff formatting on the emitted package."""
    output_dir = tmp_path / "formatted"
    captured: dict[str, Path] = {}

    def _fake_format(*, output_dir: Path) -> None:
        captured["output_dir"] = output_dir

    monkeypatch.setattr(
        "openapi_validator_generator.generator.format_generated_tree",
        _fake_format,
    )

    run_generation(options=_options(fixture_path("petstore.yaml"), output_dir))
    assert captured.get("output_dir") == output_dir, f"ruff hook was not called: {captured!r}"


def test_cli_help_screen() -> None:
    """Running the CLI help should succeed and print usage information."""
    result = subprocess.run(
        [sys.executable, "-m", "openapi_validator_generator", "--help"],
        check=False,
        capture_output=True,
        text=True,
    )
    assert result.returncode == 0
    assert "usage:" in result.stdout.lower()


def test_cli_generates_and_verifies(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    """The generate command writes the package and prints the report."""
    output_dir = tmp_path / "cli_output"
    exit_code = main(
        [
            "generate",
            "--input",
            str(fixture_path("features_31.yaml")),
            "--output",
            str(output_dir),
            "--generate-client",
            "--verify",
            "--concurrency",
            "2",
        ]
    )

    assert exit_code == 0
    assert "Verified examples:" in capsys.readouterr().out
    assert (output_dir / "client" / "get_users2.py").is_file()


def test_cli_rejects_non_positive_concurrency(tmp_path: Path) -> None:
    """Invalid concurrency is a usage error."""
    with pytest.raises(SystemExit) as excinfo:
        main(
            [
                "generate",
                "--input",
                str(fixture_path("petstore.yaml")),
                "--output",
                str(tmp_path / "never"),
                "--concurrency",
                "0",
            ]
        )
    assert excinfo.value.code == 2
    assert not (tmp_path / "never").exists()


def test_generated_modules_pass_ruff_check(tmp_path: Path) -> None:
    """Generated modules should pass all ruff checks."""
    output_dir = tmp_path / "no_unused_imports"
    run_generation(options=_options(fixture_path("features_31.yaml"), output_dir))

    lint = subprocess.run(
        [
            sys.executable,
            "-m",
            "ruff",
            "check",
            "--target-version",
            "py312",
            "--ignore",
            "D100,D101,D102,D103,D104,D205,D301,D415,E501,E741",
            str(output_dir),
        ],
        check=False,
        capture_output=True,
        text=True,
    )
    details = f"{lint.stdout}\n{lint.stderr}".strip()
    assert lint.returncode == 0, details


def test_package_docstring_indexes_operations(tmp_path: Path) -> None:
    """The package docstring maps every operation to its modules."""
    output_dir = tmp_path / "indexed"
    run_generation(options=_options(fixture_path("features_31.yaml"), output_dir))

    docstring = _module_docstring(output_dir / "__init__.py")
    assert docstring.startswith("Generated validation layer for Feature Tour.")
    assert "- GET /users (getUsers)" in docstring
    assert "- GET /users/ (getUsers2)" in docstring
    assert "  summary: List users." in docstring
    assert "  client: .client.get_users" in docstring
    assert "  server: .server.upload_avatar" in docstring
    assert "- PUT /users/{user-id}/avatar (uploadAvatar)" in docstring


def test_colliding_module_names_are_rejected(tmp_path: Path) -> None:
    """Operation ids that share a module name abort generation."""
    source = tmp_path / "colliding.yaml"
    source.write_text(_COLLIDING_OPENAPI_SPEC, encoding="utf-8")

    with pytest.raises(GenerationError, match="http_server"):
        run_generation(options=_options(source, tmp_path / "colliding"))
    assert not (tmp_path / "colliding").exists()


def test_undefined_component_references_are_rejected(tmp_path: Path) -> None:
    """References to component schemas that do not exist abort generation."""
    source = tmp_path / "dangling.yaml"
    source.write_text(
        "openapi: 3.1.0\n"
        "info: {title: Dangling, version: '1'}\n"
        "paths: {}\n"
        "components:\n"
        "  schemas:\n"
        "    Holder:\n"
        "      type: object\n"
        "      properties:\n"
        "        item: {$ref: '#/components/schemas/Missing'}\n",
        encoding="utf-8",
    )

    with pytest.raises(GenerationError, match="Missing"):
        run_generation(options=_options(source, tmp_path / "dangling"))


def test_malformed_components_are_skipped_with_warnings() -> None:
    """Entries that are not schemas or cannot be named produce warnings."""
    warnings: list[str] = []
    schemas = build_schema_declarations(
        {"Good": {"type": "string"}, "Bad": "not a schema", "---": {"type": "integer"}},
        warnings=warnings,
    )

    assert [declaration.name for declaration in schemas.declarations] == ["Good"]
    assert len(warnings) == 2
    assert "Skipping malformed component schema 'Bad'" in warnings[0]


def test_generated_client_round_trip(petstore_package: str) -> None:
    """Generated client functions validate requests and responses."""
    list_pets = importlib.import_module(f"{petstore_package}.client.list_pets")
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": 1, "name": "Rex", "tag": None}])

    client = httpx.Client(
        transport=httpx.MockTransport(_handler),
        base_url="https://petstore.test",
    )
    response = list_pets.list_pets(query={"limit": 10}, config=ClientConfig(client=client))

    assert response.status == 200
    assert [pet.name for pet in response.data] == ["Rex"]
    assert seen[0].url.path == "/pets"
    assert seen[0].url.params["limit"] == "10"

    with pytest.raises(ValueError):
        list_pets.list_pets(query={"limit": 0}, config=ClientConfig(client=client))


def test_generated_client_reexports(petstore_package: str) -> None:
    """The client subpackage re-exports one function per operation."""
    client = importlib.import_module(f"{petstore_package}.client")

    assert callable(client.create_pet)
    assert callable(client.show_pet_by_id)


def test_generated_server_wrapper(petstore_package: str) -> None:
    """Generated server wrappers validate requests before the handler runs."""
    create_pet = importlib.import_module(f"{petstore_package}.server.create_pet")
    wrapped = create_pet.create_pet_handler(lambda outcome: outcome)

    assert create_pet.route() == {"path": "/pets", "method": "post"}

    parsed = wrapped(ServerRequest(body={"name": "Tom"}, content_type="application/json"))
    assert isinstance(parsed, ParsedRequest)
    assert parsed.body.name == "Tom"

    failure = wrapped(ServerRequest())
    assert isinstance(failure, RequestValidationFailure)
    assert failure.kind == "body_error"


def test_generated_client_sends_operation_credentials(tmp_path: Path) -> None:
    """Operations with security requirements demand their credential headers."""
    output_dir = tmp_path / "secured_api"
    run_generation(options=_options(fixture_path("swagger_petstore.yaml"), output_dir))
    package = import_generated_package(output_dir)
    create_pet = importlib.import_module(f"{package}.client.create_pet")
    list_pets = importlib.import_module(f"{package}.client.list_pets")
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.method == "POST":
            return httpx.Response(201, json={"id": 3, "name": "Tom", "tag": None})
        return httpx.Response(200, json=[])

    client = httpx.Client(transport=httpx.MockTransport(_handler), base_url="https://pets.test")
    config = ClientConfig(client=client, auth={"X-API-Key": "secret"})

    assert create_pet.CREATE_PET.auth_headers == ("X-API-Key",)
    created = create_pet.create_pet(body={"name": "Tom"}, config=config)
    assert created.data.id == 3
    assert seen[-1].headers["x-api-key"] == "secret"

    list_pets.list_pets(query={"limit": "5"}, config=config)
    assert "x-api-key" not in seen[-1].headers
    assert seen[-1].url.params["limit"] == "5"

    with pytest.raises(ValueError, match="Missing required auth header: X-API-Key"):
        create_pet.create_pet(body={"name": "Tom"}, config=ClientConfig(client=client))


def test_generated_code_uses_union_operators(tmp_path: Path) -> None:
    """Optional and union types are spelled with ``|``."""
    output_dir = tmp_path / "unions"
    run_generation(options=_options(fixture_path("petstore.yaml"), output_dir))

    for path in output_dir.rglob("*.py"):
        source = path.read_text(encoding="utf-8")
        assert "Optional[" not in source, path
        assert "Union[" not in source, path
    assert " | None" in (output_dir / "schemas.py").read_text(encoding="utf-8")
