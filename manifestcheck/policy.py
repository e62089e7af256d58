"""Building the policy whose rules are evaluated against manifests."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Iterable

DEFAULT_POLICY_NAME = "Default"


class PolicyError(Exception):
    """A policy or one of its rules cannot be resolved."""


@dataclass
class RuleWithSchema:
    """A rule of the chosen policy, ready to be evaluated."""

    rule_identifier: str
    rule_name: str
    documentation_url: str
    schema: Any
    message_on_failure: str


@dataclass
class Policy:
    name: str = ""
    rules: list[RuleWithSchema] = field(default_factory=list)


@dataclass
class DefaultRule:
    """A built-in rule definition."""

    unique_name: str
    name: str
    documentation_url: str = ""
    schema: Any = None
    message_on_failure: str = ""
    enabled_by_default: bool = False


@dataclass
class PolicyRule:
    """A reference from a policy to a rule, with the message it uses."""

    identifier: str
    message_on_failure: str = ""


@dataclass
class CustomRule:
    """A user-defined rule; its schema is given parsed or as JSON text."""

    identifier: str
    name: str
    schema: Any = None
    json_schema: str = ""
    default_message_on_failure: str = ""


@dataclass
class PrerunPolicy:
    name: str
    is_default: bool = False
    rules: list[PolicyRule] = field(default_factory=list)


@dataclass
class PrerunPolicies:
    """Policies and custom rules known for an account."""

    policies: list[PrerunPolicy] = field(default_factory=list)
    custom_rules: list[CustomRule] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PrerunPolicies:
        policies = [
            PrerunPolicy(
                name=item.get("name", ""),
                is_default=bool(item.get("isDefault", False)),
                rules=[
                    PolicyRule(
                        identifier=rule.get("identifier", ""),
                        message_on_failure=rule.get("messageOnFailure", ""),
                    )
                    for rule in item.get("rules") or []
                ],
            )
            for item in data.get("policies") or []
        ]
        custom_rules = [
            CustomRule(
                identifier=item.get("identifier", ""),
                name=item.get("name", ""),
                schema=item.get("schema"),
                json_schema=item.get("jsonSchema", ""),
                default_message_on_failure=item.get("defaultMessageOnFailure", ""),
            )
            for item in data.get("customRules") or []
        ]
        return cls(policies=policies, custom_rules=custom_rules)


def create_policy(
    policies: PrerunPolicies | None,
    policy_name: str,
    registration_url: str,
    default_rules: Iterable[DefaultRule],
) -> Policy:
    """Choose the named policy (or the default one) and resolve its rules."""
    if policies is None and policy_name not in ("", DEFAULT_POLICY_NAME):
        raise PolicyError(
            f"policy {policy_name} doesn't exist, sign in to the dashboard to "
            f"customize your policies: {registration_url}"
        )

    default_rules = list(default_rules)

    if policies is None:
        return _create_default_policy(default_rules)

    chosen: PrerunPolicy | None = None
    for candidate in policies.policies:
        if policy_name == "" and candidate.is_default:
            chosen = candidate
            policy_name = candidate.name
            break
        if candidate.name == policy_name:
            chosen = candidate
            break

    if chosen is None:
        raise PolicyError(f"policy {policy_name} doesn't exist")

    rules = _populate_rules(chosen.rules, policies.custom_rules, default_rules)
    return Policy(policy_name, rules)


def _populate_rules(
    policy_rules: Iterable[PolicyRule],
    custom_rules: list[CustomRule],
    default_rules: list[DefaultRule],
) -> list[RuleWithSchema]:
    custom_by_id = {}
    for custom in custom_rules:
        custom_by_id.setdefault(custom.identifier, custom)
    default_by_id = {}
    for default in default_rules:
        default_by_id.setdefault(default.unique_name, default)

    rules: list[RuleWithSchema] = []
    for rule in policy_rules:
        custom = custom_by_id.get(rule.identifier)
        if custom is not None:
            schema = custom.schema
            if schema is None:
                schema = json.loads(custom.json_schema)
            rules.append(
                RuleWithSchema(rule.identifier, custom.name, "", schema, rule.message_on_failure)
            )
            continue

        default = default_by_id.get(rule.identifier)
        if default is None:
            raise PolicyError(f"rule {rule.identifier} is not custom nor default")
        rules.append(
            RuleWithSchema(
                rule.identifier,
                default.name,
                default.documentation_url,
                default.schema,
                rule.message_on_failure,
            )
        )
    return rules


def _create_default_policy(default_rules: list[DefaultRule]) -> Policy:
    rules = [
        RuleWithSchema(
            rule.unique_name,
            rule.name,
            rule.documentation_url,
            rule.schema,
            rule.message_on_failure,
        )
        for rule in default_rules
        if rule.enabled_by_default
    ]
    return Policy(DEFAULT_POLICY_NAME, rules)