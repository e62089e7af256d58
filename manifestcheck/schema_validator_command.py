"""The schema-validator command: checking a YAML file against a schema."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, Sequence

from manifestcheck.files import FilesExtractor


class JSONSchemaValidator(Protocol):
    def validate_yaml_schema(self, yaml_schema: str, yaml_content: str) -> Any: ...


class SchemaValidationPrinter(Protocol):
    def print_yaml_schema_results(self, result: Any, error: Exception | None) -> None: ...


@dataclass
class SchemaValidatorCommandContext:
    json_schema_validator: JSONSchemaValidator
    printer: SchemaValidationPrinter


def _read_file_content(path: str) -> str:
    with open(path, encoding="utf-8") as stream:
        return stream.read()


def extract_yaml_files_content(schema_path: str, yaml_path: str) -> tuple[str, str]:
    """Check that the YAML file parses, then return both files' text."""
    _, invalid_files = FilesExtractor().extract_files_configurations([yaml_path])
    if invalid_files:
        raise invalid_files[0].validation_errors[0]
    schema_content = _read_file_content(schema_path)
    yaml_content = _read_file_content(yaml_path)
    return schema_content, yaml_content


def run_schema_validator(ctx: SchemaValidatorCommandContext, args: Sequence[str]) -> Any:
    """Run `schema-validator <schema> <yaml>` and return the validation result."""
    if len(args) != 2:
        raise ValueError("Requires 2 args\n")
    schema_path, yaml_path = args

    try:
        schema_content, yaml_content = extract_yaml_files_content(schema_path, yaml_path)
    except Exception as err:
        ctx.printer.print_yaml_schema_results(None, err)
        raise

    try:
        result = ctx.json_schema_validator.validate_yaml_schema(schema_content, yaml_content)
    except Exception as err:
        ctx.printer.print_yaml_schema_results(None, err)
        raise
    ctx.printer.print_yaml_schema_results(result, None)
    return result