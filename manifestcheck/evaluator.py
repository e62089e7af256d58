"""Evaluating manifest configurations against the rules of a policy."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol

import jsonschema

from manifestcheck.models import (
    Configuration,
    FileConfigurations,
    FormattedEvaluationResults,
    NonInteractiveEvaluationResults,
    OccurrenceDetails,
    OSInfo,
    PolicySummary,
    Rule,
    RuleResult,
    os_info,
)
from manifestcheck.policy import Policy, RuleWithSchema

SKIP_RULE_PREFIX = "datree.io/skip/"

# Errors that only wrap the errors of nested schemas are not occurrences.
_WRAPPER_ERROR_KEYWORDS = frozenset({"then", "allOf"})


@dataclass
class FailedConfiguration:
    name: str
    kind: str
    occurrences: int = 0
    is_skipped: bool = False
    skip_message: str = ""


@dataclass
class FailedRule:
    name: str
    documentation_url: str = ""
    message_on_failure: str = ""
    configurations: list[FailedConfiguration] = field(default_factory=list)


FailedRulesByFiles = dict[str, dict[str, FailedRule]]


@dataclass(frozen=True)
class RuleData:
    identifier: str
    name: str


@dataclass(frozen=True)
class FileData:
    file_path: str
    configurations_count: int


@dataclass
class EvaluationResultsSummary:
    total_failed_rules: int = 0
    total_skipped_rules: int = 0
    total_passed_rules: int = 0
    files_count: int = 0
    files_passed_count: int = 0


@dataclass
class EvaluationResults:
    file_name_rule_mapper: dict[str, dict[str, Rule]] = field(default_factory=dict)
    summary: EvaluationResultsSummary = field(default_factory=EvaluationResultsSummary)


@dataclass
class FormattedResults:
    evaluation_results: EvaluationResults | None = None
    non_interactive_evaluation_results: NonInteractiveEvaluationResults | None = None


@dataclass
class PolicyCheckData:
    files_configurations: list[FileConfigurations]
    is_interactive_mode: bool
    policy_name: str
    policy: Policy


@dataclass
class PolicyCheckResultData:
    formatted_results: FormattedResults
    rules_data: list[RuleData]
    files_data: list[FileData]
    raw_results: FailedRulesByFiles
    rules_count: int


@dataclass
class EvaluationRequestData:
    token: str = ""
    client_id: str = ""
    cli_version: str = ""
    k8s_version: str = ""
    policy_name: str = ""
    ci_context: Any = None
    rules_data: list[RuleData] = field(default_factory=list)
    files_data: list[FileData] = field(default_factory=list)
    failed_yaml_files: list[str] = field(default_factory=list)
    failed_k8s_files: list[str] = field(default_factory=list)
    policy_check_results: FailedRulesByFiles | None = None


class EvaluationClient(Protocol):
    def send_evaluation_result(self, request: dict[str, Any]) -> Any: ...


class Evaluator:
    """Runs policy rules over configurations and reports the results."""

    def __init__(
        self,
        cli_client: EvaluationClient,
        os_info_fn: Callable[[], OSInfo] = os_info,
    ) -> None:
        self.cli_client = cli_client
        self.os_info_fn = os_info_fn

    def send_evaluation_result(self, request_data: EvaluationRequestData) -> Any:
        """Send the evaluation to the server and return its response."""
        info = self.os_info_fn()
        request = {
            "k8sVersion": request_data.k8s_version,
            "clientId": request_data.client_id,
            "token": request_data.token,
            "policyName": request_data.policy_name,
            "metadata": {
                "cliVersion": request_data.cli_version,
                "os": info.os,
                "platformVersion": info.platform_version,
                "kernelVersion": info.kernel_version,
                "ciContext": request_data.ci_context,
            },
            "failedYamlFiles": request_data.failed_yaml_files,
            "failedK8sFiles": request_data.failed_k8s_files,
            "allExecutedRules": request_data.rules_data,
            "allEvaluatedFiles": request_data.files_data,
            "policyCheckResults": request_data.policy_check_results,
        }
        return self.cli_client.send_evaluation_result(request)

    def evaluate(self, policy_check_data: PolicyCheckData) -> PolicyCheckResultData:
        rules = policy_check_data.policy.rules
        rules_count = len(rules)
        files = list(policy_check_data.files_configurations)

        if not files:
            return PolicyCheckResultData(FormattedResults(), [], [], {}, rules_count)

        files_data = [FileData(f.file_name, len(f.configurations)) for f in files]
        rules_data = [RuleData(r.rule_identifier, r.rule_name) for r in rules]

        failed_rules_by_files: FailedRulesByFiles = {}
        if any(f.configurations for f in files):
            validators = [_compile_schema(rule.schema) for rule in rules]
            for file_configurations in files:
                for configuration in file_configurations.configurations:
                    self._evaluate_configuration(
                        failed_rules_by_files,
                        list(zip(rules, validators)),
                        file_configurations.file_name,
                        configuration,
                    )

        evaluation_results = _format_evaluation_results(
            failed_rules_by_files, len(files), rules_count
        )
        non_interactive = None
        if not policy_check_data.is_interactive_mode:
            non_interactive = _format_non_interactive_results(
                evaluation_results, policy_check_data.policy_name, rules_count
            )

        return PolicyCheckResultData(
            FormattedResults(evaluation_results, non_interactive),
            rules_data,
            files_data,
            failed_rules_by_files,
            rules_count,
        )

    def _evaluate_configuration(
        self,
        failed_rules_by_files: FailedRulesByFiles,
        rules_with_validators: list[tuple[RuleWithSchema, Any]],
        file_name: str,
        configuration: Configuration,
    ) -> None:
        skip_annotations = extract_skip_annotations(configuration)
        name, kind = extract_configuration_info(configuration)
        instance = _to_json_compatible(configuration)

        for rule, validator in rules_with_validators:
            failed_rule = _evaluate_rule(rule, validator, instance, name, kind, skip_annotations)
            if failed_rule is not None:
                _add_failed_rule(failed_rules_by_files, file_name, rule.rule_identifier, failed_rule)


def _to_json_compatible(value: Any) -> Any:
    return json.loads(json.dumps(value, default=str))


def _compile_schema(schema: Any) -> Any:
    normalized = _to_json_compatible(schema)
    validator_class = jsonschema.validators.validator_for(
        normalized, default=jsonschema.Draft7Validator
    )
    validator_class.check_schema(normalized)
    return validator_class(normalized, format_checker=jsonschema.FormatChecker())


def _evaluate_rule(
    rule: RuleWithSchema,
    validator: Any,
    instance: Any,
    configuration_name: str,
    configuration_kind: str,
    skip_annotations: dict[str, str],
) -> FailedRule | None:
    occurrences = count_occurrences(validator.iter_errors(instance))
    skip_key = SKIP_RULE_PREFIX + rule.rule_identifier
    is_skipped = skip_key in skip_annotations

    if occurrences < 1 and not is_skipped:
        return None

    configuration = FailedConfiguration(
        name=configuration_name,
        kind=configuration_kind,
        occurrences=occurrences,
        is_skipped=is_skipped,
        skip_message=skip_annotations.get(skip_key, ""),
    )
    return FailedRule(
        name=rule.rule_name,
        documentation_url=rule.documentation_url,
        message_on_failure=rule.message_on_failure,
        configurations=[configuration],
    )


def _add_failed_rule(
    failed_rules_by_files: FailedRulesByFiles,
    file_name: str,
    rule_identifier: str,
    failed_rule: FailedRule,
) -> None:
    file_rules = failed_rules_by_files.setdefault(file_name, {})
    existing = file_rules.get(rule_identifier)
    if existing is None:
        file_rules[rule_identifier] = failed_rule
    else:
        existing.configurations.extend(failed_rule.configurations)


def count_occurrences(errors: Iterable[Any]) -> int:
    """Number of validation errors, leaving out those that only wrap others."""
    return sum(1 for error in errors if error.validator not in _WRAPPER_ERROR_KEYWORDS)


def _expect_str(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{what} must be a string, not {type(value).__name__}")
    return value


def extract_skip_annotations(configuration: Configuration) -> dict[str, str]:
    """Annotations of the configuration that ask to skip a rule."""
    metadata = configuration.get("metadata")
    if not isinstance(metadata, dict):
        return {}
    annotations = metadata.get("annotations")
    if not isinstance(annotations, dict):
        return {}
    return {
        key: _expect_str(value, f"annotation {key}")
        for key, value in annotations.items()
        if SKIP_RULE_PREFIX in key
    }


def extract_configuration_info(configuration: Configuration) -> tuple[str, str]:
    """Return the configuration's metadata name and kind."""
    kind = ""
    name = ""

    raw_kind = configuration.get("kind")
    if raw_kind is not None:
        kind = _expect_str(raw_kind, "kind")

    metadata = configuration.get("metadata")
    if metadata is not None:
        if not isinstance(metadata, dict):
            raise TypeError(f"metadata must be a mapping, not {type(metadata).__name__}")
        raw_name = metadata.get("name")
        if raw_name is not None:
            name = _expect_str(raw_name, "metadata.name")

    return name, kind


def _format_non_interactive_results(
    evaluation_results: EvaluationResults, policy_name: str, total_rules_in_policy: int
) -> NonInteractiveEvaluationResults:
    formatted = [
        FormattedEvaluationResults(
            file_name=file_name,
            rule_results=[
                RuleResult(
                    identifier=rule.identifier,
                    name=rule.name,
                    message_on_failure=rule.message_on_failure,
                    occurrences_details=rule.occurrences_details,
                )
                for rule in rules.values()
            ],
        )
        for file_name, rules in evaluation_results.file_name_rule_mapper.items()
    ]
    summary = evaluation_results.summary
    return NonInteractiveEvaluationResults(
        formatted_evaluation_results=formatted,
        policy_summary=PolicySummary(
            policy_name=policy_name,
            total_rules_in_policy=total_rules_in_policy,
            total_rules_failed=summary.total_failed_rules,
            total_skipped_rules=summary.total_skipped_rules,
            total_passed_count=summary.total_passed_rules,
        ),
    )


def _format_evaluation_results(
    failed_rules_by_files: FailedRulesByFiles, files_count: int, rules_count: int
) -> EvaluationResults:
    mapper: dict[str, dict[str, Rule]] = {}
    total_failed = 0
    total_skipped = 0
    failed_files_count = len(failed_rules_by_files)

    for file_path, failed_rules in failed_rules_by_files.items():
        file_rules = mapper.setdefault(file_path, {})
        for rule_identifier, failed_rule in failed_rules.items():
            rule = file_rules.setdefault(
                rule_identifier,
                Rule(
                    identifier=rule_identifier,
                    name=failed_rule.name,
                    message_on_failure=failed_rule.message_on_failure,
                    documentation_url=failed_rule.documentation_url,
                ),
            )
            rule.occurrences_details.extend(
                OccurrenceDetails(
                    metadata_name=configuration.name,
                    kind=configuration.kind,
                    skip_message=configuration.skip_message,
                    occurrences=configuration.occurrences,
                    is_skipped=configuration.is_skipped,
                )
                for configuration in failed_rule.configurations
            )

        all_rules_are_skipped = True
        for rule in file_rules.values():
            skipped = sum(1 for d in rule.occurrences_details if d.is_skipped)
            total = len(rule.occurrences_details)
            if skipped < total:
                all_rules_are_skipped = False

            if total == skipped:
                total_skipped += 1
            elif skipped >= 1:
                total_skipped += 1
                total_failed += 1
            else:
                total_failed += 1

        if all_rules_are_skipped:
            failed_files_count -= 1

    return EvaluationResults(
        file_name_rule_mapper=mapper,
        summary=EvaluationResultsSummary(
            total_failed_rules=total_failed,
            total_skipped_rules=total_skipped,
            total_passed_rules=rules_count * files_count - (total_failed + total_skipped),
            files_count=files_count,
            files_passed_count=files_count - failed_files_count,
        ),
    )