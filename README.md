# manifestcheck

`manifestcheck` is a library for checking Kubernetes manifests before they
reach a cluster. It reads YAML files, checks that they are well-formed
Kubernetes resources, runs them against a policy of JSON-schema rules and
reports what failed, what passed and what was deliberately skipped.

## Modules

- **`manifestcheck.files`**: `FilesExtractor.extract_files_configurations(paths)`
  returns a pair of lists: one `FileConfigurations` per readable file (holding
  its absolute path and one mapping per non-empty YAML document) and one
  `InvalidFile` per file that could not be read or parsed.
  `extract_yaml_file_to_unknown_struct(path)` decodes the first YAML document
  of a file into a dict and raises `ValueError` (for example
  `yaml: line 2: did not find expected key`) when it cannot.
- **`manifestcheck.k8s_validation`**: `K8sValidator.get_k8s_files` splits files
  into those whose every document has `apiVersion` and `kind` and the rest.
  `K8sValidator.init_client(k8s_version, ignore_missing_schemas, schema_locations)`
  sets up validation against schemas fetched over HTTP(S) or read from local
  paths, searching `default_schema_locations()` first and then the given
  locations. `validate_resources` returns a `ResourceValidationOutcome` with
  valid files, `InvalidFile` records whose errors are `InvalidK8sSchemaError`
  instances, and `FileWithWarning` entries for files whose validation was
  skipped because the schema host could not be reached. A file with no
  resources is invalid (`empty file`).
- **`manifestcheck.policy`**: `create_policy(policies, policy_name,
  registration_url, default_rules)` picks a policy from `PrerunPolicies` (built
  with `PrerunPolicies.from_dict`) by name, or the one marked default when the
  name is empty, and resolves each rule to a `CustomRule` or a `DefaultRule`.
  With no `PrerunPolicies`, it builds the `Default` policy from the default
  rules that are enabled by default. An unknown policy or rule raises
  `PolicyError`.
- **`manifestcheck.evaluator`**: `Evaluator.evaluate(PolicyCheckData)` applies
  every rule of a `Policy` to every configuration and returns a
  `PolicyCheckResultData` with the failed rules per file and an
  `EvaluationResultsSummary`. When not interactive, it also fills in the
  results used for structured output. `Evaluator.send_evaluation_result`
  builds the request dict, including OS details from `models.os_info()`, and
  hands it to the client it was given.
- **`manifestcheck.report`**: `print_results(PrintResultsData)` prints JSON,
  YAML or XML to standard output for those formats, and otherwise passes
  warnings and summary rows to the given printer object.
  `is_helm_file` and `is_kustomization_file` recognise files that have to be
  rendered before they can be tested; `warning_extra_messages` returns a hint
  for such files.
- **`manifestcheck.messager`**: `Messager.load_version_messages(cli_version)`
  fetches the message for a version in a background thread; the returned
  iterator yields at most one `VersionMessage`.
- **`manifestcheck.error_reporter`**: `ErrorReporter` sends an `ErrorReport`
  with a stack trace to a client; the report carries `unknown` as client id
  and token when the local configuration cannot be read, and reporting never
  raises.
- **Command handlers**: `config_command.run_get` / `run_set` (keys `token` and
  `offline`, checked by `validate_key`), `version_command.run_version`,
  `publish_command.run_publish` and
  `schema_validator_command.run_schema_validator`. Each takes a context
  dataclass holding the objects it works with.

## Example

```python
from manifestcheck.config_command import validate_key
from manifestcheck.files import FilesExtractor
from manifestcheck.report import is_helm_file, is_kustomization_file

valid, invalid = FilesExtractor().extract_files_configurations(["deploy.yaml"])

is_helm_file("charts/app/values.yaml")            # True
is_kustomization_file("base/kustomization.yaml")  # True

validate_key("token")     # accepted
validate_key("colour")    # raises ValueError
```

## Skipping a rule for one resource

```yaml
apiVersion: apps/v1
kind: Deployment
metadata:
  name: legacy-app
  annotations:
    datree.io/skip/MY_RULE_IDENTIFIER: "reviewed and accepted"
```

The rule with identifier `MY_RULE_IDENTIFIER` is then reported as skipped for
`legacy-app`, with the annotation's value as the reason, and does not count as
a failure.

## What the package does not do

- It has no command-line program; the command handlers are functions to be
  called from your own code.
- It ships no built-in rule set: default rules are passed to `create_policy`
  as `DefaultRule` objects.
- It has no client for a policy server and no storage for local
  configuration. Sending results, fetching version messages, publishing
  policies and reporting errors go through client objects you supply, and
  configuration values are read and written through a local-config object you
  supply.
- It does not run Helm or Kustomize; rendered manifests must be produced
  beforehand.

## Requirements

Python 3.10 or later, with PyYAML and jsonschema.