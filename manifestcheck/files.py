"""Reading YAML files into configurations."""

from __future__ import annotations

import os
from typing import Any, Iterable

import yaml

from manifestcheck.models import Configuration, FileConfigurations, InvalidFile

UnknownStruct = dict[str, Any]

_NO_DOCUMENT = object()


def _yaml_error(err: yaml.YAMLError) -> ValueError:
    mark = getattr(err, "problem_mark", None)
    problem = getattr(err, "problem", None)
    if mark is not None and problem:
        return ValueError(f"yaml: line {mark.line + 1}: {problem}")
    return ValueError(f"yaml: {err}")


def _read_text(path: str) -> str:
    with open(path, encoding="utf-8") as stream:
        return stream.read()


def _read_configurations(path: str) -> tuple[list[Configuration], str]:
    absolute_path = os.path.abspath(path)
    content = _read_text(absolute_path)
    try:
        documents = list(yaml.safe_load_all(content))
    except yaml.YAMLError as err:
        raise _yaml_error(err) from err

    configurations: list[Configuration] = []
    for document in documents:
        if document is None:
            continue
        if not isinstance(document, dict):
            raise ValueError(
                f"yaml: document in {path} is a {type(document).__name__}, not a mapping"
            )
        configurations.append(document)
    return configurations, absolute_path


class FilesExtractor:
    """Extracts configurations from YAML files."""

    def extract_files_configurations(
        self, paths: Iterable[str]
    ) -> tuple[list[FileConfigurations], list[InvalidFile]]:
        """Read each path; return the readable files and the invalid ones."""
        valid: list[FileConfigurations] = []
        invalid: list[InvalidFile] = []
        for path in paths:
            try:
                configurations, absolute_path = _read_configurations(path)
            except (OSError, ValueError, UnicodeDecodeError) as err:
                invalid.append(InvalidFile(path=path, validation_errors=[err]))
                continue
            valid.append(FileConfigurations(file_name=absolute_path, configurations=configurations))
        return valid, invalid

    def extract_yaml_file_to_unknown_struct(self, path: str) -> UnknownStruct:
        """Decode the first YAML document of a file into a mapping."""
        content = _read_text(os.path.abspath(path))
        try:
            document = next(iter(yaml.safe_load_all(content)), _NO_DOCUMENT)
        except yaml.YAMLError as err:
            raise _yaml_error(err) from err

        if document is _NO_DOCUMENT:
            raise ValueError(f"yaml: no document found in {path}")
        if document is None:
            return {}
        if not isinstance(document, dict):
            raise ValueError(
                f"yaml: cannot decode a {type(document).__name__} into a mapping"
            )
        return document