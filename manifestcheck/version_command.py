"""The version command."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Protocol


class Messager(Protocol):
    def load_version_messages(self, cli_version: str) -> Iterable[Any]: ...


class Printer(Protocol):
    def print_message(self, message_text: str, message_color: str) -> None: ...


@dataclass
class VersionCommandContext:
    cli_version: str
    messager: Messager
    printer: Printer


def run_version(ctx: VersionCommandContext) -> None:
    """Print the version, then the server's message for it if there is one."""
    messages = ctx.messager.load_version_messages(ctx.cli_version)
    print(ctx.cli_version)
    message = next(iter(messages), None)
    if message is not None:
        ctx.printer.print_message(message.message_text + "\n", message.message_color)