"""The config command: reading and writing local configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Protocol, Sequence

CONFIG_AVAILABLE_KEYS = ("token", "offline")


class Messager(Protocol):
    def load_version_messages(self, cli_version: str) -> Iterable[Any]: ...


class Printer(Protocol):
    def print_message(self, message_text: str, message_color: str) -> None: ...


class LocalConfig(Protocol):
    def get_local_configuration(self) -> Any: ...

    def set(self, key: str, value: str) -> None: ...

    def get(self, key: str) -> str: ...


@dataclass
class ConfigCommandContext:
    messager: Messager
    cli_version: str
    printer: Printer
    local_config: LocalConfig


def validate_key(key: str) -> None:
    """Raise ValueError unless the key is a known configuration key."""
    if key not in CONFIG_AVAILABLE_KEYS:
        raise ValueError(f"key must be one of: [{' '.join(CONFIG_AVAILABLE_KEYS)}]")


def get_value(ctx: ConfigCommandContext, key: str) -> str:
    """Print the configured value for the key and return it."""
    ctx.local_config.get_local_configuration()
    value = ctx.local_config.get(key)
    print(value)
    return value


def set_value(ctx: ConfigCommandContext, key: str, value: str) -> None:
    ctx.local_config.set(key, value)


def _print_version_message(ctx: ConfigCommandContext, messages: Iterable[Any]) -> None:
    message = next(iter(messages), None)
    if message is not None:
        ctx.printer.print_message(message.message_text + "\n", message.message_color)


def run_get(ctx: ConfigCommandContext, args: Sequence[str]) -> None:
    """Run `config get <key>`."""
    if len(args) != 1:
        raise ValueError("requires exactly 1 argument")
    validate_key(args[0])

    messages = ctx.messager.load_version_messages(ctx.cli_version)
    try:
        get_value(ctx, args[0])
    except Exception as err:
        print(f"Failed getting {args[0]} . Error: {err}", end="")
    _print_version_message(ctx, messages)


def run_set(ctx: ConfigCommandContext, args: Sequence[str]) -> None:
    """Run `config set <key> <value>`."""
    if len(args) != 2:
        raise ValueError("requires exactly 2 arguments")
    validate_key(args[0])

    messages = ctx.messager.load_version_messages(ctx.cli_version)
    try:
        set_value(ctx, args[0], args[1])
    except Exception as err:
        print(f"Failed setting {args[0]} with value {args[1]}. Error: {err}", end="")
    _print_version_message(ctx, messages)