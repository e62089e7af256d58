"""Policy checks for Kubernetes manifests: extraction, validation, evaluation and reporting."""

__version__ = "0.1.0"

__all__ = [
    "config_command",
    "error_reporter",
    "evaluator",
    "files",
    "k8s_validation",
    "messager",
    "models",
    "policy",
    "publish_command",
    "report",
    "schema_validator_command",
    "version_command",
]