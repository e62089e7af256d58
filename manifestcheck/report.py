"""Rendering evaluation results as text, JSON, YAML or XML."""

from __future__ import annotations

import enum
import json
import os
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Any, Protocol

import yaml

from manifestcheck.evaluator import EvaluationResults, FormattedResults
from manifestcheck.models import (
    FormattedOutput,
    InvalidFile,
    NonInteractiveEvaluationResults,
    NonInteractiveEvaluationSummary,
)

STRUCTURED_FORMATS = ("json", "yaml", "xml")
XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>\n'

_HELM_MESSAGE = (
    "Are you trying to test a raw Helm file? To run the check with Helm, "
    "render the chart first and test the rendered manifests.\n"
)
_KUSTOMIZE_MESSAGE = (
    "Are you trying to test Kustomize files? To run the check with Kustomize, "
    "use the `kustomize test` command on the build directory.\n"
)


class OutputTitle(str, enum.Enum):
    """Left-column titles of the summary table."""

    EVALUATED_CONFIGURATIONS = "Configs tested against policy"
    TOTAL_RULES_EVALUATED = "Total rules evaluated"
    SEE_ALL = "See all rules in policy"
    TOTAL_RULES_PASSED = "Total rules passed"
    TOTAL_SKIPPED_RULES = "Total rules skipped"
    TOTAL_RULES_FAILED = "Total rules failed"

    def __str__(self) -> str:
        return self.value


@dataclass
class PrintedOccurrence:
    metadata_name: str
    kind: str
    skip_message: str = ""


@dataclass
class PrintedRule:
    """A rule as shown in a file's warning block."""

    name: str
    documentation_url: str = ""
    suggestion: str = ""
    occurrences: int = 0
    occurrences_details: list[PrintedOccurrence] = field(default_factory=list)


@dataclass(frozen=True)
class ExtraMessage:
    text: str
    color: str


@dataclass
class Warning:
    """Everything printed about one file."""

    title: str
    failed_rules: list[PrintedRule] = field(default_factory=list)
    skipped_rules: list[PrintedRule] = field(default_factory=list)
    yaml_validation_errors: list[Exception] = field(default_factory=list)
    k8s_validation_errors: list[Exception] = field(default_factory=list)
    k8s_version: str = ""
    k8s_validation_warning: str = ""
    extra_messages: list[ExtraMessage] = field(default_factory=list)


@dataclass(frozen=True)
class SummaryItem:
    left_col: str
    right_col: str
    row_index: int


@dataclass
class Summary:
    plain_rows: list[SummaryItem]
    skip_row: SummaryItem
    success_row: SummaryItem
    error_row: SummaryItem


@dataclass
class EvaluationSummary:
    configs_count: int = 0
    rules_count: int = 0
    files_count: int = 0
    passed_yaml_validation_count: int = 0
    k8s_validation: str = ""
    passed_policy_check_count: int = 0


class Printer(Protocol):
    def print_warnings(self, warnings: list[Warning]) -> None: ...

    def print_summary_table(self, summary: Summary) -> None: ...

    def print_evaluation_summary(
        self, summary: EvaluationSummary, k8s_version: str
    ) -> None: ...


@dataclass
class PrintResultsData:
    results: FormattedResults = field(default_factory=FormattedResults)
    invalid_yaml_files: list[InvalidFile] = field(default_factory=list)
    invalid_k8s_files: list[InvalidFile] = field(default_factory=list)
    evaluation_summary: EvaluationSummary = field(default_factory=EvaluationSummary)
    login_url: str = ""
    output_format: str = ""
    printer: Printer | None = None
    k8s_version: str = ""
    verbose: bool = False
    policy_name: str = ""
    k8s_validation_warnings: dict[str, str] = field(default_factory=dict)


def print_results(data: PrintResultsData) -> None:
    """Write the results in the requested output format."""
    if data.output_format in STRUCTURED_FORMATS:
        output = _formatted_output(data)
        if data.output_format == "json":
            _json_output(output)
        elif data.output_format == "yaml":
            _yaml_output(output)
        else:
            _xml_output(output)
    else:
        _text_output(data)


def _formatted_output(data: PrintResultsData) -> FormattedOutput:
    non_interactive = (
        data.results.non_interactive_evaluation_results
        or NonInteractiveEvaluationResults()
    )
    summary = data.evaluation_summary
    return FormattedOutput(
        policy_validation_results=non_interactive.formatted_evaluation_results,
        policy_summary=non_interactive.policy_summary,
        evaluation_summary=NonInteractiveEvaluationSummary(
            configs_count=summary.configs_count,
            files_count=summary.files_count,
            passed_yaml_validation_count=summary.passed_yaml_validation_count,
            k8s_validation=summary.k8s_validation,
            passed_policy_validation_count=summary.passed_policy_check_count,
        ),
        yaml_validation_results=data.invalid_yaml_files,
        k8s_validation_results=data.invalid_k8s_files,
    )


def _json_output(output: FormattedOutput) -> None:
    print(json.dumps(output.to_dict(), separators=(",", ":"), ensure_ascii=False))


def _yaml_output(output: FormattedOutput) -> None:
    print(yaml.safe_dump(output.to_dict(), sort_keys=False, allow_unicode=True))


def _append_xml(parent: ET.Element, tag: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, list):
        for item in value:
            _append_xml(parent, tag, item)
        return
    element = ET.SubElement(parent, tag)
    if isinstance(value, dict):
        for key, child in value.items():
            _append_xml(element, key, child)
    elif isinstance(value, bool):
        element.text = "true" if value else "false"
    else:
        element.text = str(value)


def _xml_output(output: FormattedOutput) -> None:
    root = ET.Element("FormattedOutput")
    for key, value in output.to_dict().items():
        _append_xml(root, key, value)
    ET.indent(root, space="\t")
    body = ET.tostring(root, encoding="unicode", short_empty_elements=False)
    print(XML_HEADER + body)


def _text_output(data: PrintResultsData) -> None:
    if data.printer is None:
        raise ValueError("text output needs a printer")
    warnings = parse_to_printer_warnings(
        data.results.evaluation_results,
        data.invalid_yaml_files,
        data.invalid_k8s_files,
        os.getcwd(),
        data.k8s_version,
        data.k8s_validation_warnings,
        data.verbose,
    )
    data.printer.print_warnings(warnings)
    summary = parse_evaluation_results_to_summary(
        data.results.evaluation_results,
        data.evaluation_summary,
        data.login_url,
        data.policy_name,
    )
    data.printer.print_evaluation_summary(data.evaluation_summary, data.k8s_version)
    data.printer.print_summary_table(summary)


def _file_title(path: str) -> str:
    return f">>  File: {path}\n"


def _extension(path: str) -> str:
    for index in range(len(path) - 1, -1, -1):
        char = path[index]
        if char in ("/", os.sep):
            break
        if char == ".":
            return path[index:]
    return ""


def is_helm_file(path: str) -> bool:
    """Whether the path looks like a raw Helm chart or values file."""
    clean = path.replace("\n", "")
    if _extension(clean) not in (".yml", ".yaml"):
        return False
    return any(marker in clean for marker in ("Chart", "chart", "Values", "values"))


def is_kustomization_file(path: str) -> bool:
    """Whether the path looks like a Kustomize kustomization file."""
    clean = path.replace("\n", "")
    return any(
        marker in clean
        for marker in ("kustomization.yml", "kustomization.yaml", "Kustomization")
    )


def warning_extra_messages(invalid_file: InvalidFile) -> list[ExtraMessage]:
    """Hints shown under a file that failed Kubernetes validation."""
    if is_helm_file(invalid_file.path):
        return [ExtraMessage(_HELM_MESSAGE, "cyan")]
    if is_kustomization_file(invalid_file.path):
        return [ExtraMessage(_KUSTOMIZE_MESSAGE, "cyan")]
    return []


def _relative_path(pwd: str, filename: str) -> str:
    if os.path.isabs(pwd) != os.path.isabs(filename):
        return ""
    try:
        return os.path.relpath(filename, pwd)
    except ValueError:
        return ""


def parse_to_printer_warnings(
    results: EvaluationResults | None,
    invalid_yaml_files: list[InvalidFile],
    invalid_k8s_files: list[InvalidFile],
    pwd: str,
    k8s_version: str,
    k8s_validation_warnings: dict[str, str],
    verbose: bool,
) -> list[Warning]:
    """Build one warning per invalid file and per file with rule results."""
    warnings = [
        Warning(
            title=_file_title(invalid.path),
            yaml_validation_errors=list(invalid.validation_errors),
        )
        for invalid in invalid_yaml_files
    ]
    warnings.extend(
        Warning(
            title=_file_title(invalid.path),
            k8s_validation_errors=list(invalid.validation_errors),
            k8s_version=k8s_version,
            extra_messages=warning_extra_messages(invalid),
        )
        for invalid in invalid_k8s_files
    )

    if results is None:
        return warnings

    for filename in sorted(results.file_name_rule_mapper):
        failed_rules: list[PrintedRule] = []
        skipped_rules: list[PrintedRule] = []
        for rule in results.file_name_rule_mapper[filename].values():
            documentation_url = rule.documentation_url if verbose else ""
            occurrences = rule.failed_occurrences_count()
            failed_details = [
                PrintedOccurrence(detail.metadata_name, detail.kind)
                for detail in rule.occurrences_details
                if not detail.is_skipped
            ]
            skipped_details = [
                PrintedOccurrence(detail.metadata_name, detail.kind, detail.skip_message)
                for detail in rule.occurrences_details
                if detail.is_skipped
            ]
            if skipped_details:
                skipped_rules.append(
                    PrintedRule(
                        rule.name,
                        documentation_url,
                        rule.message_on_failure,
                        occurrences,
                        skipped_details,
                    )
                )
            if failed_details:
                failed_rules.append(
                    PrintedRule(
                        rule.name,
                        documentation_url,
                        rule.message_on_failure,
                        occurrences,
                        failed_details,
                    )
                )

        warnings.append(
            Warning(
                title=_file_title(_relative_path(pwd, filename)),
                failed_rules=failed_rules,
                skipped_rules=skipped_rules,
                k8s_validation_warning=k8s_validation_warnings.get(filename, ""),
            )
        )
    return warnings


def _enabled_rules_title(policy_name: str) -> str:
    return f"Enabled rules in policy \u201c{policy_name}\u201d"


def parse_evaluation_results_to_summary(
    results: EvaluationResults | None,
    evaluation_summary: EvaluationSummary,
    login_url: str,
    policy_name: str,
) -> Summary:
    """Rows of the summary table printed after the warnings."""
    total_rules_evaluated = 0
    total_failed = 0
    total_skipped = 0
    total_passed = 0
    if results is not None:
        total_rules_evaluated = evaluation_summary.rules_count * results.summary.files_count
        total_failed = results.summary.total_failed_rules
        total_skipped = results.summary.total_skipped_rules
        total_passed = results.summary.total_passed_rules

    plain_rows = [
        SummaryItem(_enabled_rules_title(policy_name), str(evaluation_summary.rules_count), 0),
        SummaryItem(
            str(OutputTitle.EVALUATED_CONFIGURATIONS), str(evaluation_summary.configs_count), 1
        ),
        SummaryItem(str(OutputTitle.TOTAL_RULES_EVALUATED), str(total_rules_evaluated), 2),
        SummaryItem(str(OutputTitle.SEE_ALL), login_url, 6),
    ]
    return Summary(
        plain_rows=plain_rows,
        skip_row=SummaryItem(str(OutputTitle.TOTAL_SKIPPED_RULES), str(total_skipped), 3),
        success_row=SummaryItem(str(OutputTitle.TOTAL_RULES_PASSED), str(total_passed), 5),
        error_row=SummaryItem(str(OutputTitle.TOTAL_RULES_FAILED), str(total_failed), 4),
    )