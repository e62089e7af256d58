"""Data structures shared by evaluation, validation and reporting."""

from __future__ import annotations

import platform
from dataclasses import dataclass, field
from typing import Any

Configuration = dict[str, Any]


@dataclass
class OccurrenceDetails:
    """One configuration in which a rule was violated or skipped."""

    metadata_name: str = ""
    kind: str = ""
    skip_message: str = ""
    occurrences: int = 0
    is_skipped: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "metadataName": self.metadata_name,
            "kind": self.kind,
            "skipMessage": self.skip_message,
            "occurrences": self.occurrences,
            "isSkipped": self.is_skipped,
        }


@dataclass
class Rule:
    """A rule that failed or was skipped in a file, with its occurrences."""

    identifier: str
    name: str
    message_on_failure: str = ""
    documentation_url: str = ""
    occurrences_details: list[OccurrenceDetails] = field(default_factory=list)

    def failed_occurrences_count(self) -> int:
        """Total occurrences over all configurations that were not skipped."""
        return sum(
            detail.occurrences
            for detail in self.occurrences_details
            if not detail.is_skipped
        )


@dataclass
class RuleResult:
    identifier: str
    name: str
    message_on_failure: str = ""
    occurrences_details: list[OccurrenceDetails] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "identifier": self.identifier,
            "name": self.name,
            "messageOnFailure": self.message_on_failure,
            "occurrencesDetails": [d.to_dict() for d in self.occurrences_details],
        }


@dataclass
class FormattedEvaluationResults:
    file_name: str
    rule_results: list[RuleResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "ruleResults": [r.to_dict() for r in self.rule_results],
        }


@dataclass
class PolicySummary:
    policy_name: str
    total_rules_in_policy: int = 0
    total_rules_failed: int = 0
    total_skipped_rules: int = 0
    total_passed_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "policyName": self.policy_name,
            "totalRulesInPolicy": self.total_rules_in_policy,
            "totalRulesFailed": self.total_rules_failed,
            "totalSkippedRules": self.total_skipped_rules,
            "totalPassedCount": self.total_passed_count,
        }


@dataclass
class NonInteractiveEvaluationResults:
    formatted_evaluation_results: list[FormattedEvaluationResults] = field(
        default_factory=list
    )
    policy_summary: PolicySummary | None = None


@dataclass
class NonInteractiveEvaluationSummary:
    configs_count: int = 0
    files_count: int = 0
    passed_yaml_validation_count: int = 0
    k8s_validation: str = ""
    passed_policy_validation_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "configsCount": self.configs_count,
            "filesCount": self.files_count,
            "passedYamlValidationCount": self.passed_yaml_validation_count,
            "k8sValidation": self.k8s_validation,
            "passedPolicyValidationCount": self.passed_policy_validation_count,
        }


@dataclass
class FileConfigurations:
    """The YAML documents read from one file."""

    file_name: str
    configurations: list[Configuration] = field(default_factory=list)


@dataclass
class InvalidFile:
    """A file that failed YAML or Kubernetes schema validation."""

    path: str
    validation_errors: list[Exception] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "validationErrors": [str(error) for error in self.validation_errors],
        }


@dataclass
class FormattedOutput:
    """The document written for json, yaml and xml output."""

    policy_validation_results: list[FormattedEvaluationResults] = field(
        default_factory=list
    )
    policy_summary: PolicySummary | None = None
    evaluation_summary: NonInteractiveEvaluationSummary = field(
        default_factory=NonInteractiveEvaluationSummary
    )
    yaml_validation_results: list[InvalidFile] = field(default_factory=list)
    k8s_validation_results: list[InvalidFile] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "policyValidationResults": [
                r.to_dict() for r in self.policy_validation_results
            ],
            "policySummary": (
                self.policy_summary.to_dict() if self.policy_summary else None
            ),
            "evaluationSummary": self.evaluation_summary.to_dict(),
            "yamlValidationResults": [
                f.to_dict() for f in self.yaml_validation_results
            ],
            "k8sValidationResults": [f.to_dict() for f in self.k8s_validation_results],
        }


@dataclass(frozen=True)
class OSInfo:
    os: str
    platform_version: str
    kernel_version: str


def _platform_version(system: str) -> str:
    if system == "darwin":
        return platform.mac_ver()[0]
    if system == "linux":
        try:
            return platform.freedesktop_os_release().get("VERSION_ID", "")
        except OSError:
            return ""
    if system == "windows":
        return platform.version()
    return ""


def os_info() -> OSInfo:
    """Describe the operating system the program runs on."""
    system = platform.system().lower()
    return OSInfo(
        os=system,
        platform_version=_platform_version(system),
        kernel_version=platform.release(),
    )