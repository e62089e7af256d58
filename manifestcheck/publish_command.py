"""The publish command: uploading a policy-as-code configuration file."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol, Sequence

from manifestcheck.files import FilesExtractor, UnknownStruct

STRUCTURED_OUTPUTS = ("json", "yaml", "xml")


class PublishFailedResponse(Exception):
    """The server rejected the published policies, with its reasons."""

    def __init__(self, message: str, code: str = "", payload: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload = list(payload)


class Messager(Protocol):
    def load_version_messages(self, cli_version: str) -> Iterable[Any]: ...


class Printer(Protocol):
    def print_message(self, message_text: str, message_color: str) -> None: ...


class LocalConfig(Protocol):
    def get_local_configuration(self) -> Any: ...


class PublishClient(Protocol):
    def publish_policies(self, policies_configuration: UnknownStruct, token: str) -> Any:
        """Upload the policies; raise PublishFailedResponse when rejected."""
        ...


class YamlExtractor(Protocol):
    def extract_yaml_file_to_unknown_struct(self, path: str) -> UnknownStruct: ...


@dataclass
class PublishCommandContext:
    cli_version: str
    local_config: LocalConfig
    messager: Messager
    printer: Printer
    publish_client: PublishClient
    files_extractor: YamlExtractor = field(default_factory=FilesExtractor)


def publish(ctx: PublishCommandContext, path: str, local_config: Any) -> Any:
    """Read the policies file and publish it with the configured token."""
    policies_configuration = ctx.files_extractor.extract_yaml_file_to_unknown_struct(path)
    return ctx.publish_client.publish_policies(policies_configuration, local_config.token)


def run_publish(ctx: PublishCommandContext, args: Sequence[str], output: str = "") -> None:
    """Run `publish <fileName>`, reporting the outcome through the printer."""
    if len(args) != 1:
        raise ValueError("Requires 1 arg\n")

    if output not in STRUCTURED_OUTPUTS:
        for message in ctx.messager.load_version_messages(ctx.cli_version):
            ctx.printer.print_message(message.message_text + "\n", message.message_color)

    local_config = ctx.local_config.get_local_configuration()

    try:
        publish(ctx, args[0], local_config)
    except PublishFailedResponse as failure:
        ctx.printer.print_message("Publish failed:\n", "error")
        for line in failure.payload:
            ctx.printer.print_message("\t" + line + "\n", "error")
        raise
    except Exception as err:
        ctx.printer.print_message("Publish failed: \n" + str(err) + "\n", "error")
        raise
    ctx.printer.print_message("Published successfully\n", "green")