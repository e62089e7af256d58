"""Kubernetes schema validation of manifest files."""

from __future__ import annotations

import enum
import json
import re
import socket
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import IO, Any, Iterable, Protocol
from urllib.parse import urlsplit

import jsonschema
import yaml

from manifestcheck.models import Configuration, FileConfigurations, InvalidFile

NO_CONNECTION_WARNING = "k8s schema validation skipped: no internet connection"

_SCHEMA_REPOSITORY = "https://raw.githubusercontent.com/yannh/kubernetes-json-schema/master/"
_CRD_CATALOG = "https://raw.githubusercontent.com/datreeio/CRDs-catalog/master/"
_STANDALONE_PATH = (
    "{{ .NormalizedKubernetesVersion }}-standalone{{ .StrictSuffix }}"
    "/{{ .ResourceKind }}{{ .KindSuffix }}.json"
)
_DEFAULT_LOCATION = _SCHEMA_REPOSITORY + _STANDALONE_PATH
_TEMPLATE_FIELD = re.compile(r"\{\{\s*\.(\w+)\s*\}\}")


class InvalidK8sSchemaError(Exception):
    """A manifest that does not match its Kubernetes schema."""

    def __init__(self, error_message: str) -> None:
        super().__init__(error_message)
        self.error_message = error_message

    def _usage_suggestion(self) -> str:
        if self.error_message.startswith("could not find schema for "):
            return (
                "You can skip files with missing schemas instead of failing by using "
                "the `--ignore-missing-schemas` flag\n"
            )
        return ""

    def __str__(self) -> str:
        return f"k8s schema validation error: {self.error_message}\n{self._usage_suggestion()}"


class ValidationStatus(enum.Enum):
    VALID = "valid"
    INVALID = "invalid"
    ERROR = "error"
    SKIPPED = "skipped"
    EMPTY = "empty"


@dataclass
class ValidationResult:
    """The outcome of validating one resource of a file."""

    status: ValidationStatus
    error: Exception | None = None
    kind: str = ""
    name: str = ""


@dataclass(frozen=True)
class FileWithWarning:
    filename: str
    warning: str


@dataclass
class ResourceValidationOutcome:
    """Files split by the outcome of schema validation."""

    valid_files: list[FileConfigurations] = field(default_factory=list)
    invalid_files: list[InvalidFile] = field(default_factory=list)
    files_with_warnings: list[FileWithWarning] = field(default_factory=list)

    @property
    def warnings_per_file(self) -> dict[str, str]:
        return {item.filename: item.warning for item in self.files_with_warnings}


class ValidationClient(Protocol):
    def validate(self, filename: str, stream: IO[str]) -> list[ValidationResult]: ...


class _OpenError(OSError):
    pass


class _SchemaFetchError(Exception):
    pass


def crd_schema_location(catalog_name: str) -> str:
    """Schema location template for a custom resource catalog."""
    return _CRD_CATALOG + catalog_name + "/{{ .ResourceKind }}_{{ .ResourceAPIVersion }}.json"


def default_schema_locations() -> list[str]:
    """Schema locations searched before any given by the user, in order."""
    return [
        "default",
        # Fallback without strict mode; it must come after "default".
        _SCHEMA_REPOSITORY
        + "{{ .NormalizedKubernetesVersion }}/{{ .ResourceKind }}{{ .KindSuffix }}.json",
        crd_schema_location("argo"),
    ]


def _is_network_error(message: str) -> bool:
    return "no such host" in message or "connection refused" in message


def _expand_location(location: str) -> str:
    if location == "default":
        return _DEFAULT_LOCATION
    if location.endswith("json"):
        return location
    return location.rstrip("/") + "/" + _STANDALONE_PATH


def _template_fields(kind: str, api_version: str, k8s_version: str, strict: bool) -> dict[str, str]:
    group_parts = api_version.split("/")
    version_parts = group_parts[0].split(".")
    if len(group_parts) == 1:
        kind_suffix = "-" + group_parts[0].lower()
        group = ""
    else:
        kind_suffix = f"-{version_parts[0].lower()}-{group_parts[1].lower()}"
        group = group_parts[0]
    return {
        "NormalizedKubernetesVersion": "master" if k8s_version == "master" else "v" + k8s_version,
        "StrictSuffix": "-strict" if strict else "",
        "ResourceKind": kind.lower(),
        "ResourceAPIVersion": group_parts[-1],
        "Group": group,
        "KindSuffix": kind_suffix,
    }


def _render(location: str, fields: dict[str, str]) -> str:
    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in fields:
            raise _SchemaFetchError(f"unknown field {name!r} in schema location {location}")
        return fields[name]

    return _TEMPLATE_FIELD.sub(replace, location)


def _describe_network_error(url: str, reason: Any) -> str:
    host = urlsplit(url).hostname or url
    if isinstance(reason, socket.gaierror):
        return f"lookup {host}: no such host"
    if isinstance(reason, ConnectionRefusedError):
        return f"dial {host}: connection refused"
    return f"failed downloading schema at {url}: {reason}"


def _field_path(error: jsonschema.ValidationError) -> str:
    parts = [str(part) for part in error.absolute_path]
    return ".".join(parts) if parts else "(root)"


class _SchemaRegistryClient:
    """Validates each resource of a YAML stream against downloaded schemas."""

    def __init__(
        self,
        schema_locations: Iterable[str],
        k8s_version: str,
        ignore_missing_schemas: bool,
        strict: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self._locations = [_expand_location(loc) for loc in schema_locations]
        self._k8s_version = k8s_version
        self._ignore_missing_schemas = ignore_missing_schemas
        self._strict = strict
        self._timeout = timeout
        self._cache: dict[str, Any] = {}

    def validate(self, filename: str, stream: IO[str]) -> list[ValidationResult]:
        try:
            documents = list(yaml.safe_load_all(stream))
        except yaml.YAMLError as err:
            return [ValidationResult(ValidationStatus.ERROR, error=err)]
        if not documents:
            return [ValidationResult(ValidationStatus.EMPTY)]
        return [self._validate_document(document) for document in documents]

    def _validate_document(self, document: Any) -> ValidationResult:
        if document is None:
            return ValidationResult(ValidationStatus.EMPTY)
        if not isinstance(document, dict):
            return ValidationResult(
                ValidationStatus.ERROR, error=ValueError("resource is not a YAML mapping")
            )
        kind = document.get("kind")
        if not kind:
            return ValidationResult(ValidationStatus.ERROR, error=ValueError("missing 'kind' key"))
        api_version = document.get("apiVersion")
        if not api_version:
            return ValidationResult(
                ValidationStatus.ERROR, error=ValueError("missing 'apiVersion' key"), kind=str(kind)
            )
        metadata = document.get("metadata")
        name = str(metadata.get("name", "")) if isinstance(metadata, dict) else ""

        try:
            schema = self._find_schema(str(kind), str(api_version))
        except _SchemaFetchError as err:
            return ValidationResult(ValidationStatus.ERROR, error=err, kind=str(kind), name=name)

        if schema is None:
            if self._ignore_missing_schemas:
                return ValidationResult(ValidationStatus.SKIPPED, kind=str(kind), name=name)
            return ValidationResult(
                ValidationStatus.ERROR,
                error=ValueError(f"could not find schema for {kind}"),
                kind=str(kind),
                name=name,
            )

        validator_class = jsonschema.validators.validator_for(
            schema, default=jsonschema.Draft4Validator
        )
        try:
            errors = sorted(
                validator_class(schema).iter_errors(document),
                key=lambda e: [str(part) for part in e.absolute_path],
            )
        except jsonschema.SchemaError as err:
            return ValidationResult(ValidationStatus.ERROR, error=err, kind=str(kind), name=name)

        if not errors:
            return ValidationResult(ValidationStatus.VALID, kind=str(kind), name=name)
        message = " - ".join(f"For field {_field_path(e)}: {e.message}" for e in errors)
        return ValidationResult(
            ValidationStatus.INVALID, error=ValueError(message), kind=str(kind), name=name
        )

    def _find_schema(self, kind: str, api_version: str) -> Any:
        fields = _template_fields(kind, api_version, self._k8s_version, self._strict)
        for location in self._locations:
            path = _render(location, fields)
            if path not in self._cache:
                self._cache[path] = self._load(path)
            if self._cache[path] is not None:
                return self._cache[path]
        return None

    def _load(self, path: str) -> Any:
        if path.startswith(("http://", "https://")):
            try:
                with urllib.request.urlopen(path, timeout=self._timeout) as response:
                    body = response.read()
            except urllib.error.HTTPError as err:
                if err.code == 404:
                    return None
                raise _SchemaFetchError(
                    f"could not download schema at {path}: HTTP status {err.code}"
                ) from err
            except urllib.error.URLError as err:
                raise _SchemaFetchError(_describe_network_error(path, err.reason)) from err
            except OSError as err:
                raise _SchemaFetchError(_describe_network_error(path, err)) from err
        else:
            try:
                with open(path, "rb") as schema_file:
                    body = schema_file.read()
            except FileNotFoundError:
                return None
            except OSError as err:
                raise _SchemaFetchError(f"failed reading schema {path}: {err}") from err
        try:
            return json.loads(body)
        except ValueError as err:
            raise _SchemaFetchError(f"failed parsing schema {path}: {err}") from err


class K8sValidator:
    """Checks manifest files against Kubernetes resource schemas."""

    def __init__(self, validation_client: ValidationClient | None = None) -> None:
        self.validation_client = validation_client

    def init_client(
        self, k8s_version: str, ignore_missing_schemas: bool, schema_locations: Iterable[str]
    ) -> None:
        self.validation_client = _SchemaRegistryClient(
            [*default_schema_locations(), *schema_locations],
            k8s_version,
            ignore_missing_schemas,
            strict=True,
        )

    def validate_resources(
        self, files_configurations: Iterable[FileConfigurations]
    ) -> ResourceValidationOutcome:
        outcome = ResourceValidationOutcome()
        for file_configurations in files_configurations:
            path = file_configurations.file_name
            try:
                is_valid, errors, warning = self._validate_resource(path)
            except _OpenError as err:
                outcome.invalid_files.append(InvalidFile(path=path, validation_errors=[err]))
                continue
            if is_valid:
                outcome.valid_files.append(file_configurations)
                if warning:
                    outcome.files_with_warnings.append(FileWithWarning(path, warning))
            else:
                outcome.invalid_files.append(InvalidFile(path=path, validation_errors=errors))
        return outcome

    def get_k8s_files(
        self, files_configurations: Iterable[FileConfigurations]
    ) -> tuple[list[FileConfigurations], list[FileConfigurations]]:
        """Split files into Kubernetes manifests and other YAML files."""
        k8s_files: list[FileConfigurations] = []
        ignored_files: list[FileConfigurations] = []
        for file_configurations in files_configurations:
            if self._is_k8s_file(file_configurations.configurations):
                k8s_files.append(file_configurations)
            else:
                ignored_files.append(file_configurations)
        return k8s_files, ignored_files

    @staticmethod
    def _is_k8s_file(configurations: list[Configuration]) -> bool:
        return all("apiVersion" in c and "kind" in c for c in configurations)

    def _validate_resource(self, path: str) -> tuple[bool, list[Exception], str]:
        if self.validation_client is None:
            raise RuntimeError("validation client is not initialised; call init_client first")
        try:
            stream = open(path, encoding="utf-8")
        except OSError as err:
            raise _OpenError(f"failed opening {path}: {InvalidK8sSchemaError(str(err))}") from err

        with stream:
            results = self.validation_client.validate(path, stream)

        # Empty files are rejected by Kubernetes.
        if all(result.status is ValidationStatus.EMPTY for result in results):
            return False, [InvalidK8sSchemaError("empty file")], ""

        is_valid = True
        errors: list[Exception] = []
        for result in results:
            if result.status not in (ValidationStatus.INVALID, ValidationStatus.ERROR):
                continue
            message = str(result.error) if result.error is not None else ""
            if _is_network_error(message):
                return is_valid, [], NO_CONNECTION_WARNING
            is_valid = False
            errors.extend(InvalidK8sSchemaError(part.strip(" ")) for part in message.split("-"))
        return is_valid, errors, ""