import json

import pytest

from manifestcheck.policy import (
    CustomRule,
    DefaultRule,
    Policy,
    PolicyError,
    PolicyRule,
    PrerunPolicies,
    PrerunPolicy,
    RuleWithSchema,
    create_policy,
)

REGISTRATION_URL = "https://app.example.com/login?t=token"

NAMESPACE_SCHEMA = {
    "properties": {"metadata": {"properties": {"namespace": {"not": {"enum": ["default"]}}}}}
}
PRIVILEGED_SCHEMA = {
    "properties": {"securityContext": {"properties": {"privileged": {"const": False}}}}
}
IMAGE_SCHEMA = {"properties": {"image": {"pattern": ":"}}}

DEFAULT_RULES = [
    DefaultRule(
        unique_name="WORKLOAD_INCORRECT_NAMESPACE_VALUE_DEFAULT",
        name="Ensure workload has valid namespace",
        documentation_url="https://docs.example.com/namespace",
        schema=NAMESPACE_SCHEMA,
        message_on_failure="default namespace message",
        enabled_by_default=True,
    ),
    DefaultRule(
        unique_name="CONTAINERS_INCORRECT_PRIVILEGED_VALUE_TRUE",
        name="Prevent container from running with privileged mode",
        documentation_url="https://docs.example.com/privileged",
        schema=PRIVILEGED_SCHEMA,
        message_on_failure="default privileged message",
        enabled_by_default=True,
    ),
    DefaultRule(
        unique_name="CONTAINERS_MISSING_IMAGE_VALUE_VERSION",
        name="Ensure each container image has a pinned tag version",
        documentation_url="https://docs.example.com/image",
        schema=IMAGE_SCHEMA,
        message_on_failure="default image message",
        enabled_by_default=False,
    ),
]

LABELS_SCHEMA_STR = (
    '{"properties":{"metadata":{"properties":{"labels":{"additionalProperties":false,'
    '"patternProperties":{"^.*$":{"format":"hostname"}}}}}}}'
)
API_VERSION_SCHEMA_STR = (
    '{"type":"object","properties":{"apiVersion":{"type":"string"}},"required":["apiVersion"]}'
)
NAMESPACE_MESSAGE = (
    "Incorrect value for key `namespace` - use an explicit namespace instead of the "
    "default one (`default`)"
)
PRIVILEGED_MESSAGE = (
    "Incorrect value for key `privileged` - this mode will allow the container thenhjgjgj "
    "same access as processes running on the host"
)
LABELS_MESSAGE = "All lables values must follow the RFC 1123 hostname standard"

PRERUN_DATA = {
    "policies": [
        {
            "name": "labels_best_practices",
            "isDefault": True,
            "rules": [
                {
                    "identifier": "WORKLOAD_INCORRECT_NAMESPACE_VALUE_DEFAULT",
                    "messageOnFailure": NAMESPACE_MESSAGE,
                },
                {
                    "identifier": "CONTAINERS_INCORRECT_PRIVILEGED_VALUE_TRUE",
                    "messageOnFailure": PRIVILEGED_MESSAGE,
                },
                {
                    "identifier": "CUSTOM_WORKLOAD_INVALID_LABELS_VALUE",
                    "messageOnFailure": LABELS_MESSAGE,
                },
            ],
        },
        {
            "name": "labels_best_practices2",
            "isDefault": False,
            "rules": [
                {
                    "identifier": "CUSTOM_WORKLOAD_INVALID_LABELS_VALUE",
                    "messageOnFailure": LABELS_MESSAGE,
                }
            ],
        },
        {
            "name": "labels_best_practices3",
            "rules": [
                {
                    "identifier": "UNIQUE2",
                    "messageOnFailure": "default message for rule fail number 2",
                },
                {
                    "identifier": "UNIQUE3",
                    "messageOnFailure": "default message for rule fail number 3",
                },
            ],
        },
        {"name": "broken", "rules": [{"identifier": "UNKNOWN_RULE"}]},
        {"name": "empty"},
    ],
    "customRules": [
        {
            "identifier": "CUSTOM_WORKLOAD_INVALID_LABELS_VALUE",
            "name": "Ensure workload has valid label values [CUSTOM RULE]",
            "jsonSchema": LABELS_SCHEMA_STR,
        },
        {"identifier": "UNIQUE2", "name": "rule unique 2", "jsonSchema": API_VERSION_SCHEMA_STR},
        {
            "identifier": "UNIQUE3",
            "name": "rule unique 3",
            "schema": json.loads(API_VERSION_SCHEMA_STR),
        },
    ],
}


@pytest.fixture
def prerun():
    return PrerunPolicies.from_dict(PRERUN_DATA)


def test_from_dict_reads_policies_and_custom_rules(prerun):
    assert prerun.policies[0] == PrerunPolicy(
        name="labels_best_practices",
        is_default=True,
        rules=[
            PolicyRule("WORKLOAD_INCORRECT_NAMESPACE_VALUE_DEFAULT", NAMESPACE_MESSAGE),
            PolicyRule("CONTAINERS_INCORRECT_PRIVILEGED_VALUE_TRUE", PRIVILEGED_MESSAGE),
            PolicyRule("CUSTOM_WORKLOAD_INVALID_LABELS_VALUE", LABELS_MESSAGE),
        ],
    )
    assert prerun.custom_rules[1] == CustomRule(
        identifier="UNIQUE2", name="rule unique 2", json_schema=API_VERSION_SCHEMA_STR
    )
    assert prerun.policies[4].rules == []


def test_create_policy_with_default_policy(prerun):
    policy = create_policy(prerun, "", REGISTRATION_URL, DEFAULT_RULES)

    expected = Policy(
        name="labels_best_practices",
        rules=[
            RuleWithSchema(
                "WORKLOAD_INCORRECT_NAMESPACE_VALUE_DEFAULT",
                "Ensure workload has valid namespace",
                "https://docs.example.com/namespace",
                NAMESPACE_SCHEMA,
                NAMESPACE_MESSAGE,
            ),
            RuleWithSchema(
                "CONTAINERS_INCORRECT_PRIVILEGED_VALUE_TRUE",
                "Prevent container from running with privileged mode",
                "https://docs.example.com/privileged",
                PRIVILEGED_SCHEMA,
                PRIVILEGED_MESSAGE,
            ),
            RuleWithSchema(
                "CUSTOM_WORKLOAD_INVALID_LABELS_VALUE",
                "Ensure workload has valid label values [CUSTOM RULE]",
                "",
                json.loads(LABELS_SCHEMA_STR),
                LABELS_MESSAGE,
            ),
        ],
    )
    assert policy == expected


def test_create_policy_with_specific_policy(prerun):
    policy = create_policy(prerun, "labels_best_practices2", REGISTRATION_URL, DEFAULT_RULES)

    assert policy == Policy(
        name="labels_best_practices2",
        rules=[
            RuleWithSchema(
                "CUSTOM_WORKLOAD_INVALID_LABELS_VALUE",
                "Ensure workload has valid label values [CUSTOM RULE]",
                "",
                json.loads(LABELS_SCHEMA_STR),
                LABELS_MESSAGE,
            )
        ],
    )


def test_create_policy_with_custom_rules(prerun):
    policy = create_policy(prerun, "labels_best_practices3", REGISTRATION_URL, DEFAULT_RULES)
    schema = json.loads(API_VERSION_SCHEMA_STR)

    assert policy.rules == [
        RuleWithSchema("UNIQUE2", "rule unique 2", "", schema, "default message for rule fail number 2"),
        RuleWithSchema("UNIQUE3", "rule unique 3", "", schema, "default message for rule fail number 3"),
    ]


def test_anonymous_user_with_default_policy_flag():
    policy = create_policy(None, "Default", REGISTRATION_URL, DEFAULT_RULES)

    assert policy.name == "Default"
    assert [rule.rule_identifier for rule in policy.rules] == [
        "WORKLOAD_INCORRECT_NAMESPACE_VALUE_DEFAULT",
        "CONTAINERS_INCORRECT_PRIVILEGED_VALUE_TRUE",
    ]
    assert policy.rules[0].message_on_failure == "default namespace message"


def test_anonymous_user_with_non_default_policy_flag():
    with pytest.raises(PolicyError) as excinfo:
        create_policy(None, "my-policy", REGISTRATION_URL, DEFAULT_RULES)

    assert str(excinfo.value) == (
        "policy my-policy doesn't exist, sign in to the dashboard to customize your "
        f"policies: {REGISTRATION_URL}"
    )


def test_unknown_policy_name(prerun):
    with pytest.raises(PolicyError, match="^policy nope doesn't exist$"):
        create_policy(prerun, "nope", REGISTRATION_URL, DEFAULT_RULES)


def test_rule_that_is_neither_custom_nor_default(prerun):
    with pytest.raises(PolicyError, match="^rule UNKNOWN_RULE is not custom nor default$"):
        create_policy(prerun, "broken", REGISTRATION_URL, DEFAULT_RULES)


def test_policy_without_rules(prerun):
    assert create_policy(prerun, "empty", REGISTRATION_URL, DEFAULT_RULES) == Policy("empty", [])


def test_custom_rule_with_malformed_json_schema():
    policies = PrerunPolicies(
        policies=[PrerunPolicy("p", True, [PolicyRule("BAD")])],
        custom_rules=[CustomRule(identifier="BAD", name="bad", json_schema="{not json")],
    )
    with pytest.raises(ValueError):
        create_policy(policies, "", REGISTRATION_URL, DEFAULT_RULES)